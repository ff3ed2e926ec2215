"""
Order service - checkout snapshot and back office fulfillment.

Order items freeze price, quantity and the chosen variation/color at checkout.
Admin edits to items recompute the order total from those frozen values.
"""
import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, cast, String
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.models import Order, OrderItem, OrderStatus
from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.services.cart_service import CartTotals
from storefront.utils.formatters import format_price
from storefront.utils.number_format import to_price, quantize_money, parse_quantity

logger = logging.getLogger(__name__)

FIRST_ORDER_NUMBER = 1001
ORDER_NUMBER_ATTEMPTS = 3

REQUIRED_CONTACT_FIELDS = (
    'first_name', 'last_name', 'phone',
    'shipping_address', 'shipping_city', 'shipping_state', 'shipping_zip',
)
OPTIONAL_CONTACT_FIELDS = ('email', 'notes')

# Fields the back office may edit after checkout
EDITABLE_ORDER_FIELDS = (
    'admin_notes', 'courier_company', 'customer_confirmation',
    'phone', 'shipping_address', 'shipping_city',
)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _next_order_number(session: Session) -> int:
    current = session.query(func.max(Order.order_number)).scalar()
    return (current or FIRST_ORDER_NUMBER - 1) + 1


def place_order(session: Session, contact: Dict[str, Any], totals: CartTotals,
                user_id: Optional[str] = None) -> Order:
    """
    Create an order from a priced cart.

    Args:
        session: SQLAlchemy session
        contact: shipping/contact form values
        totals: result of cart_service.get_cart_summary
        user_id: authenticated customer, None for guest checkout

    Raises:
        BusinessLogicError: missing contact fields, empty cart, or no free
            order number after ORDER_NUMBER_ATTEMPTS tries (409)
    """
    contact = {key: _clean(contact.get(key)) for key in REQUIRED_CONTACT_FIELDS + OPTIONAL_CONTACT_FIELDS}

    missing = [key for key in REQUIRED_CONTACT_FIELDS if not contact[key]]
    if missing:
        raise BusinessLogicError('Please fill in all required fields', payload={'missing': missing})

    if totals is None or totals.is_empty:
        raise BusinessLogicError('Your cart is empty')

    # max + 1 can collide with a concurrent checkout; the unique index decides
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            order = _write_order(session, contact, totals, user_id)
            session.commit()
            break
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"[ORDERS] Order number collision (attempt {attempt}): {e.orig}")
        except Exception:
            session.rollback()
            raise
    else:
        raise BusinessLogicError('Could not place the order right now, please try again', status_code=409)

    logger.info(f"[ORDERS] Order #{order.order_number} placed: total={order.total_amount} "
                f"items={len(totals.lines)} user={user_id or 'guest'}")
    return order


def _write_order(session: Session, contact: Dict[str, Optional[str]], totals: CartTotals,
                 user_id: Optional[str]) -> Order:
    order = Order(
        order_number=_next_order_number(session),
        user_id=user_id,
        first_name=contact['first_name'],
        last_name=contact['last_name'],
        email=contact['email'],
        phone=contact['phone'],
        shipping_address=contact['shipping_address'],
        shipping_city=contact['shipping_city'],
        shipping_state=contact['shipping_state'],
        shipping_zip=contact['shipping_zip'],
        notes=contact['notes'],
        shipping_cost=totals.shipping_cost,
        total_amount=totals.total,
        status=OrderStatus.PENDING.value
    )
    session.add(order)
    session.flush()

    for line in totals.lines:
        session.add(OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            price=quantize_money(line.unit_price),
            variation_id=line.variation_id,
            variation_name=line.variation_name,
            variation_price=line.variation_price,
            color_id=line.color_id,
            color_name=line.color_name,
            color_code=line.color_code,
            color_price=line.color_price
        ))
    session.flush()
    return order


def get_order(session: Session, order_id: str) -> Order:
    order = session.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError('Order not found')
    return order


def get_user_orders(session: Session, user_id: str) -> List[Order]:
    return session.query(Order).options(selectinload(Order.items)).filter(
        Order.user_id == user_id
    ).order_by(Order.order_number.desc()).all()


def list_orders(
    session: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: int = 20
) -> Tuple[List[Order], int]:
    """
    Back office order list, newest first.

    Args:
        status: one of OrderStatus values, or None/'all'
        search: matches name, phone, email, city or order number
        page: 1-based page index

    Returns:
        (orders on the page, total matching orders)
    """
    query = session.query(Order)

    if status and status != 'all':
        query = query.filter(Order.status == _validate_status(status))

    search = _clean(search)
    if search:
        pattern = f"%{search.lstrip('#')}%"
        query = query.filter(or_(
            Order.first_name.ilike(pattern),
            Order.last_name.ilike(pattern),
            Order.phone.ilike(pattern),
            Order.email.ilike(pattern),
            Order.shipping_city.ilike(pattern),
            cast(Order.order_number, String).ilike(pattern)
        ))

    total = query.count()

    page = max(int(page or 1), 1)
    per_page = max(int(per_page or 20), 1)
    orders = query.options(selectinload(Order.items)).order_by(
        Order.order_number.desc()
    ).offset((page - 1) * per_page).limit(per_page).all()

    return orders, total


def _validate_status(status: str) -> str:
    try:
        return OrderStatus(str(status).lower()).value
    except ValueError:
        raise BusinessLogicError(f'Invalid order status: {status}')


def update_order_status(session: Session, order_id: str, status: str) -> Order:
    """Set order status. Any known status is accepted, as in the admin status select."""
    order = get_order(session, order_id)
    new_status = _validate_status(status)
    old_status = order.status
    try:
        order.status = new_status
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order #{order.order_number} status {old_status} -> {new_status}")
    return order


def update_order_fields(session: Session, order_id: str, fields: Dict[str, Any]) -> Order:
    """Update back office annotations / contact corrections."""
    unknown = [key for key in fields if key not in EDITABLE_ORDER_FIELDS]
    if unknown:
        raise BusinessLogicError(f'Fields not editable: {", ".join(sorted(unknown))}')

    cleaned = {key: _clean(value) for key, value in fields.items()}
    for key in ('phone', 'shipping_address', 'shipping_city'):
        if key in cleaned and not cleaned[key]:
            raise BusinessLogicError(f'{key.replace("_", " ").capitalize()} cannot be empty')

    order = get_order(session, order_id)
    try:
        for key, value in cleaned.items():
            setattr(order, key, value)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return order


def recalculate_order_total(order: Order) -> Decimal:
    """Sum of frozen item prices times quantities plus the order's shipping."""
    subtotal = sum(
        (to_price(item.price, default=Decimal('0')) * item.quantity for item in order.items),
        Decimal('0')
    )
    order.total_amount = quantize_money(subtotal + to_price(order.shipping_cost, default=Decimal('0')))
    return order.total_amount


def _get_order_item(order: Order, item_id: str) -> OrderItem:
    for item in order.items:
        if item.id == item_id:
            return item
    raise NotFoundError('Order item not found')


def update_order_item(session: Session, order_id: str, item_id: str,
                      quantity: Any = None, price: Any = None) -> Order:
    """Correct quantity and/or unit price of an order line, then recompute the total."""
    order = get_order(session, order_id)
    item = _get_order_item(order, item_id)

    # Validate everything before the line is touched
    try:
        if quantity is not None:
            quantity = parse_quantity(quantity)
            if quantity < 1:
                raise BusinessLogicError('Quantity must be at least 1')
        if price is not None:
            price = to_price(price)
            if price is None:
                raise BusinessLogicError('Price is required')
            if price < 0:
                raise BusinessLogicError('Price cannot be negative')
    except ValueError as e:
        raise BusinessLogicError(str(e))

    try:
        if quantity is not None:
            item.quantity = quantity
        if price is not None:
            item.price = quantize_money(price)
        recalculate_order_total(order)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order #{order.order_number} item {item_id} updated, total={order.total_amount}")
    return order


def delete_order_item(session: Session, order_id: str, item_id: str) -> Order:
    """Remove an order line and recompute the total."""
    order = get_order(session, order_id)
    item = _get_order_item(order, item_id)

    try:
        order.items.remove(item)
        session.flush()
        recalculate_order_total(order)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order #{order.order_number} item {item_id} deleted, total={order.total_amount}")
    return order


def normalize_whatsapp_phone(phone: str) -> str:
    """Digits with Pakistan country code: 0300... -> 92300..., 300... -> 92300..."""
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('0'):
        return '92' + digits[1:]
    if digits.startswith('92'):
        return digits
    return '92' + digits


def format_order_summary(order: Order, symbol: str = 'Rs') -> str:
    """Confirmation request text sent to the customer over messaging."""
    if order.items:
        blocks = []
        for item in order.items:
            block = f"• {item.product_name}"
            if item.variation_name:
                block += f"\n  Variation: {item.variation_name}"
            if item.color_name:
                block += f"\n  Color: {item.color_name}"
            block += (f"\n  Qty: {item.quantity} × {format_price(item.price, symbol)}"
                      f" = {format_price(item.line_total, symbol)}")
            blocks.append(block)
        items_text = '\n\n'.join(blocks)
    else:
        items_text = 'No items'

    region = f"{order.shipping_state or ''} {order.shipping_zip or ''}".strip()

    return (
        "*Order Confirmation Request*\n"
        "\n"
        f"Order #: {order.order_number}\n"
        f"Customer: {order.customer_name}\n"
        "\n"
        "*Order Items:*\n"
        f"{items_text}\n"
        "\n"
        f"*Order Total: {format_price(order.total_amount, symbol)}*\n"
        "\n"
        "*Delivery Address:*\n"
        f"{order.shipping_address}\n"
        f"{order.shipping_city}, {region}\n"
        "\n"
        "Do you confirm this order?\n"
        "Please reply YES to confirm or NO to cancel."
    )


def order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        'id': order.id,
        'order_number': order.order_number,
        'user_id': order.user_id,
        'first_name': order.first_name,
        'last_name': order.last_name,
        'email': order.email,
        'phone': order.phone,
        'shipping_address': order.shipping_address,
        'shipping_city': order.shipping_city,
        'shipping_state': order.shipping_state,
        'shipping_zip': order.shipping_zip,
        'notes': order.notes,
        'shipping_cost': str(order.shipping_cost),
        'total_amount': str(order.total_amount),
        'status': order.status,
        'admin_notes': order.admin_notes,
        'courier_company': order.courier_company,
        'customer_confirmation': order.customer_confirmation,
        'created_at': order.created_at.isoformat() if order.created_at else None,
        'items': [
            {
                'id': item.id,
                'product_id': item.product_id,
                'product_name': item.product_name,
                'quantity': item.quantity,
                'price': str(item.price),
                'line_total': str(quantize_money(item.line_total)),
                'variation_name': item.variation_name,
                'color_name': item.color_name,
                'color_code': item.color_code,
            }
            for item in order.items
        ],
    }
