"""
Cart service - guest (session) and authenticated (database) carts.

Both cart flavours store raw selections; prices are resolved on every read
against the current catalog and the active sales, then aggregated by
calculate_cart_totals.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from flask import session as http_session, current_app
from sqlalchemy.orm import Session

from storefront.models import Product, ProductVariation, ProductColor, CartItem
from storefront.exceptions import BusinessLogicError, NotFoundError, InsufficientStockError
from storefront.services.pricing_service import price_item, item_applies_sale
from storefront.services.sale_lookup_service import SaleLookup, find_applicable_sales, get_active_sales_cached
from storefront.utils.number_format import to_price, quantize_money

logger = logging.getLogger(__name__)

GUEST_CART_KEY = 'guest_cart'


@dataclass
class CartLine:
    """One priced cart line."""

    line_key: str
    product_id: str
    product_name: str
    quantity: int
    base_price: Decimal
    unit_price: Decimal
    discount_percent: Optional[int] = None
    variation_id: Optional[str] = None
    variation_name: Optional[str] = None
    variation_price: Optional[Decimal] = None
    color_id: Optional[str] = None
    color_name: Optional[str] = None
    color_code: Optional[str] = None
    color_price: Optional[Decimal] = None
    in_stock: bool = True

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'line_key': self.line_key,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'base_price': str(self.base_price),
            'unit_price': str(self.unit_price),
            'discount_percent': self.discount_percent,
            'line_total': str(quantize_money(self.line_total)),
            'variation_id': self.variation_id,
            'variation_name': self.variation_name,
            'color_id': self.color_id,
            'color_name': self.color_name,
            'color_code': self.color_code,
            'in_stock': self.in_stock,
        }


@dataclass
class CartTotals:
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    item_count: int = 0
    lines: List[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [line.to_dict() for line in self.lines],
            'item_count': self.item_count,
            'subtotal': str(self.subtotal),
            'shipping_cost': str(self.shipping_cost),
            'total': str(self.total),
        }


def make_line_key(product_id: str, variation_id: Optional[str] = None, color_id: Optional[str] = None) -> str:
    """Identity of a cart line: same product with another variation/color is another line."""
    return f"{product_id}:{variation_id or ''}:{color_id or ''}"


def split_line_key(line_key: str) -> Tuple[str, Optional[str], Optional[str]]:
    parts = (line_key or '').split(':')
    if len(parts) != 3 or not parts[0]:
        raise NotFoundError('Cart item not found')
    product_id, variation_id, color_id = parts
    return product_id, variation_id or None, color_id or None


# =====================================================
# AGGREGATION
# =====================================================

def calculate_cart_totals(lines: Iterable, shipping_cost: Any = 0) -> CartTotals:
    """
    Sum resolved unit prices times quantities.

    Shipping is a separate addend (zero by default). Missing products or zero
    stock are not rejected here; that is the order placement's concern.
    """
    lines = list(lines)
    subtotal = sum((line.unit_price * line.quantity for line in lines), Decimal('0'))
    shipping = to_price(shipping_cost, default=Decimal('0'))

    return CartTotals(
        subtotal=quantize_money(subtotal),
        shipping_cost=quantize_money(shipping),
        total=quantize_money(subtotal + shipping),
        item_count=sum(line.quantity for line in lines),
        lines=lines
    )


# =====================================================
# CATALOG SELECTION / VALIDATION
# =====================================================

def load_selection(
    session: Session,
    product_id: str,
    variation_id: Optional[str] = None,
    color_id: Optional[str] = None
) -> Tuple[Product, Optional[ProductVariation], Optional[ProductColor]]:
    """Fetch product and optional variation/color, checking they belong together."""
    product = session.get(Product, product_id) if product_id else None
    if not product:
        raise NotFoundError('Product not found')

    variation = None
    if variation_id:
        variation = session.get(ProductVariation, variation_id)
        if not variation:
            raise NotFoundError('Variation not found')
        if variation.product_id != product.id:
            raise BusinessLogicError('Variation does not belong to this product')

    color = None
    if color_id:
        color = session.get(ProductColor, color_id)
        if not color:
            raise NotFoundError('Color not found')
        if color.product_id != product.id:
            raise BusinessLogicError('Color does not belong to this product')

    return product, variation, color


def available_quantity(product: Product, variation=None, color=None) -> Optional[int]:
    """Stock of the most specific selection; None when the product is not tracked."""
    if color is not None:
        return color.quantity
    if variation is not None:
        return variation.quantity
    return product.stock_quantity


def _selection_name(product: Product, variation=None, color=None) -> str:
    parts = [product.name]
    if variation is not None:
        parts.append(variation.name)
    if color is not None:
        parts.append(color.name)
    return ' / '.join(parts)


def validate_add(product: Product, variation, color, quantity: int) -> None:
    """Reject what the storefront's Add to Cart button refuses."""
    if quantity < 1:
        raise BusinessLogicError('Quantity must be at least 1')

    available = available_quantity(product, variation, color)
    if available is not None and available <= 0:
        raise InsufficientStockError(_selection_name(product, variation, color), quantity, available)


def _snapshot_entry(product: Product, variation, color, quantity: int) -> Dict[str, Any]:
    """Session-safe dict (no Decimals) describing a selection."""
    return {
        'product_id': product.id,
        'product_name': product.name,
        'product_price': str(product.price),
        'quantity': quantity,
        'variation_id': variation.id if variation else None,
        'variation_name': variation.name if variation else None,
        'variation_price': str(variation.price) if variation else None,
        'variation_apply_sale': bool(variation.apply_sale) if variation else None,
        'color_id': color.id if color else None,
        'color_name': color.name if color else None,
        'color_code': color.color_code if color else None,
        'color_price': str(color.price) if color else None,
        'color_apply_sale': bool(color.apply_sale) if color else None,
    }


# =====================================================
# GUEST CART (Flask session)
# =====================================================

def get_guest_cart() -> List[Dict[str, Any]]:
    """Get guest cart entries from the session."""
    cart = http_session.get(GUEST_CART_KEY)
    if not isinstance(cart, list):
        return []
    return cart


def save_guest_cart(cart: List[Dict[str, Any]]) -> None:
    http_session[GUEST_CART_KEY] = cart
    http_session.modified = True


def _entry_key(entry: Dict[str, Any]) -> str:
    return make_line_key(entry.get('product_id'), entry.get('variation_id'), entry.get('color_id'))


def add_to_guest_cart(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Add entry, merging quantity into an existing line with the same selection."""
    cart = get_guest_cart()
    key = _entry_key(entry)

    for existing in cart:
        if _entry_key(existing) == key:
            existing['quantity'] = int(existing.get('quantity', 0)) + int(entry['quantity'])
            save_guest_cart(cart)
            return existing

    cart.append(entry)
    save_guest_cart(cart)
    return entry


def update_guest_cart_quantity(line_key: str, quantity: int) -> None:
    """Set quantity for a line; zero or less removes it."""
    cart = get_guest_cart()
    for index, entry in enumerate(cart):
        if _entry_key(entry) == line_key:
            if quantity <= 0:
                cart.pop(index)
            else:
                entry['quantity'] = quantity
            save_guest_cart(cart)
            return
    raise NotFoundError('Cart item not found')


def remove_from_guest_cart(line_key: str) -> None:
    cart = get_guest_cart()
    filtered = [entry for entry in cart if _entry_key(entry) != line_key]
    if len(filtered) == len(cart):
        raise NotFoundError('Cart item not found')
    save_guest_cart(filtered)


def clear_guest_cart() -> None:
    http_session.pop(GUEST_CART_KEY, None)


# =====================================================
# AUTHENTICATED CART (cart_items table)
# =====================================================

def _find_cart_item(session: Session, user_id: str, product_id: str,
                    variation_id: Optional[str], color_id: Optional[str]) -> Optional[CartItem]:
    return session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == product_id,
        CartItem.variation_id.is_(None) if variation_id is None else CartItem.variation_id == variation_id,
        CartItem.color_id.is_(None) if color_id is None else CartItem.color_id == color_id
    ).first()


def get_cart_items(session: Session, user_id: str) -> List[CartItem]:
    return session.query(CartItem).filter(
        CartItem.user_id == user_id
    ).order_by(CartItem.created_at, CartItem.id).all()


def add_to_cart(session: Session, user_id: str, product: Product, variation=None,
                color=None, quantity: int = 1) -> CartItem:
    """Add a selection to the user's cart or bump the quantity of the matching line."""
    item = _find_cart_item(
        session, user_id, product.id,
        variation.id if variation else None,
        color.id if color else None
    )

    if item:
        item.quantity += quantity
    else:
        item = CartItem(
            user_id=user_id,
            product_id=product.id,
            quantity=quantity,
            variation_id=variation.id if variation else None,
            variation_name=variation.name if variation else None,
            variation_price=variation.price if variation else None,
            variation_apply_sale=variation.apply_sale if variation else None,
            color_id=color.id if color else None,
            color_name=color.name if color else None,
            color_code=color.color_code if color else None,
            color_price=color.price if color else None,
            color_apply_sale=color.apply_sale if color else None,
        )
        session.add(item)

    session.flush()
    return item


def update_cart_item(session: Session, user_id: str, line_key: str, quantity: int) -> None:
    """Set quantity for a persisted line; zero or less removes it."""
    product_id, variation_id, color_id = split_line_key(line_key)
    item = _find_cart_item(session, user_id, product_id, variation_id, color_id)
    if not item:
        raise NotFoundError('Cart item not found')

    if quantity <= 0:
        session.delete(item)
    else:
        item.quantity = quantity
    session.flush()


def remove_cart_item(session: Session, user_id: str, line_key: str) -> None:
    product_id, variation_id, color_id = split_line_key(line_key)
    item = _find_cart_item(session, user_id, product_id, variation_id, color_id)
    if not item:
        raise NotFoundError('Cart item not found')
    session.delete(item)
    session.flush()


def clear_cart(session: Session, user_id: str) -> int:
    deleted = session.query(CartItem).filter(CartItem.user_id == user_id).delete()
    session.flush()
    return deleted


def merge_guest_cart(session: Session, user_id: str) -> int:
    """Move guest session lines into the user's persisted cart after login."""
    merged = 0
    for entry in get_guest_cart():
        try:
            product, variation, color = load_selection(
                session, entry.get('product_id'), entry.get('variation_id'), entry.get('color_id')
            )
        except (NotFoundError, BusinessLogicError):
            logger.warning(f"[CART] Dropping stale guest line {_entry_key(entry)} on merge")
            continue
        add_to_cart(session, user_id, product, variation, color, int(entry.get('quantity', 1)))
        merged += 1

    session.commit()
    clear_guest_cart()
    return merged


def _entry_from_cart_item(item: CartItem) -> Dict[str, Any]:
    return {
        'product_id': item.product_id,
        'quantity': item.quantity,
        'variation_id': item.variation_id,
        'variation_name': item.variation_name,
        'variation_price': item.variation_price,
        'variation_apply_sale': item.variation_apply_sale,
        'color_id': item.color_id,
        'color_name': item.color_name,
        'color_code': item.color_code,
        'color_price': item.color_price,
        'color_apply_sale': item.color_apply_sale,
    }


# =====================================================
# PRICING OF STORED ENTRIES
# =====================================================

def _entry_applies_sale(entry: Dict[str, Any], variation=None, color=None) -> bool:
    """Live apply_sale of the selected rows, or the flag captured on add when a row is gone."""
    if not item_applies_sale(variation, color):
        return False
    if variation is None and entry.get('variation_apply_sale') is False:
        return False
    if color is None and entry.get('color_apply_sale') is False:
        return False
    return True


def build_cart_lines(
    session: Session,
    entries: Iterable[Dict[str, Any]],
    lookup_fn: Callable[[str], SaleLookup],
    clamp_to_zero: bool = False
) -> List[CartLine]:
    """
    Price stored cart entries against the current catalog.

    Lines whose product has been deleted are skipped.
    """
    lines = []
    for entry in entries:
        product = session.get(Product, entry.get('product_id'))
        if not product:
            logger.warning(f"[CART] Skipping line for missing product {entry.get('product_id')}")
            continue

        variation = session.get(ProductVariation, entry['variation_id']) if entry.get('variation_id') else None
        color = session.get(ProductColor, entry['color_id']) if entry.get('color_id') else None

        # Deleted variation/color rows fall back to the prices captured on add
        variation_price = variation.price if variation is not None else entry.get('variation_price')
        color_price = color.price if color is not None else entry.get('color_price')
        item_price = price_item(
            product.price,
            lookup_fn(product.id),
            variation_price=variation_price,
            color_price=color_price,
            apply_sale=_entry_applies_sale(entry, variation, color),
            clamp_to_zero=clamp_to_zero
        )

        available = available_quantity(product, variation, color)
        lines.append(CartLine(
            line_key=_entry_key(entry),
            product_id=product.id,
            product_name=product.name,
            quantity=int(entry.get('quantity', 1)),
            base_price=item_price.base_price,
            unit_price=item_price.final_price,
            discount_percent=item_price.discount_percent,
            variation_id=entry.get('variation_id'),
            variation_name=variation.name if variation else entry.get('variation_name'),
            variation_price=to_price(variation_price),
            color_id=entry.get('color_id'),
            color_name=color.name if color else entry.get('color_name'),
            color_code=color.color_code if color else entry.get('color_code'),
            color_price=to_price(color_price),
            in_stock=available is None or available > 0,
        ))
    return lines


def sale_lookup_for(session: Session) -> Callable[[str], SaleLookup]:
    """Fetch active sales once and return a per-product lookup over them."""
    sales = get_active_sales_cached(session)
    return lambda product_id: find_applicable_sales(sales, product_id)


def get_cart_summary(session: Session, user_id: Optional[str] = None) -> CartTotals:
    """Priced cart of the current owner: the user's table cart or the guest session cart."""
    if user_id:
        entries = [_entry_from_cart_item(item) for item in get_cart_items(session, user_id)]
    else:
        entries = get_guest_cart()

    lines = build_cart_lines(
        session,
        entries,
        sale_lookup_for(session),
        clamp_to_zero=current_app.config.get('PRICING_CLAMP_NEGATIVE', False)
    )
    return calculate_cart_totals(lines, current_app.config.get('SHIPPING_COST', 0))


def add_item(session: Session, user_id: Optional[str], product_id: str, quantity: int,
             variation_id: Optional[str] = None, color_id: Optional[str] = None) -> str:
    """Validate a selection and add it to the owner's cart. Returns the line key."""
    product, variation, color = load_selection(session, product_id, variation_id, color_id)
    validate_add(product, variation, color, quantity)

    if user_id:
        try:
            add_to_cart(session, user_id, product, variation, color, quantity)
            session.commit()
        except Exception:
            session.rollback()
            raise
    else:
        add_to_guest_cart(_snapshot_entry(product, variation, color, quantity))

    logger.info(f"[CART] Added {quantity} x {_selection_name(product, variation, color)} "
                f"({'user ' + user_id if user_id else 'guest'})")
    return make_line_key(product.id, variation_id, color_id)


def update_item(session: Session, user_id: Optional[str], line_key: str, quantity: int) -> None:
    if user_id:
        try:
            update_cart_item(session, user_id, line_key, quantity)
            session.commit()
        except Exception:
            session.rollback()
            raise
    else:
        update_guest_cart_quantity(line_key, quantity)


def remove_item(session: Session, user_id: Optional[str], line_key: str) -> None:
    if user_id:
        try:
            remove_cart_item(session, user_id, line_key)
            session.commit()
        except Exception:
            session.rollback()
            raise
    else:
        remove_from_guest_cart(line_key)


def clear(session: Session, user_id: Optional[str]) -> None:
    if user_id:
        clear_cart(session, user_id)
        session.commit()
    else:
        clear_guest_cart()
