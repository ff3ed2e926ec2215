"""Sale administration - create, edit, toggle and delete promotional sales."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models import Sale, Product, as_utc
from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.services.sale_lookup_service import parse_timestamp, invalidate_sales_cache
from storefront.utils.number_format import to_price

logger = logging.getLogger(__name__)

MAX_DISCOUNT = Decimal('100')


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'on', 'yes')
    return bool(value)


def _parse_discount(value: Any) -> Decimal:
    try:
        discount = to_price(value)
    except ValueError:
        discount = None
    if discount is None:
        raise BusinessLogicError('Discount percentage is required')
    if discount <= 0 or discount > MAX_DISCOUNT:
        raise BusinessLogicError('Discount percentage must be greater than 0 and at most 100')
    return discount


def _parse_date(value: Any, label: str) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'Invalid {label}')


def _apply_fields(session: Session, sale: Sale, data: Dict[str, Any]) -> None:
    """Validate admin form values and copy them onto sale."""
    is_global = _as_bool(data.get('is_global', sale.is_global or False))

    product_id = None
    if not is_global:
        product_id = data.get('product_id', sale.product_id)
        if not product_id:
            raise BusinessLogicError('Please select a product')
        if not session.get(Product, product_id):
            raise NotFoundError('Product not found')

    if 'discount_percentage' in data or sale.discount_percentage is None:
        sale.discount_percentage = _parse_discount(data.get('discount_percentage'))

    start_date = sale.start_date
    if data.get('start_date'):
        start_date = _parse_date(data['start_date'], 'start date')
    elif start_date is None:
        start_date = datetime.now(timezone.utc)

    end_date = sale.end_date
    if 'end_date' in data:
        end_date = _parse_date(data['end_date'], 'end date')
    if end_date is None:
        raise BusinessLogicError('Please select an end date')
    if as_utc(end_date) <= as_utc(start_date):
        raise BusinessLogicError('End date must be after the start date')

    sale.is_global = is_global
    sale.product_id = product_id
    sale.start_date = as_utc(start_date)
    sale.end_date = as_utc(end_date)
    if 'is_active' in data:
        sale.is_active = _as_bool(data['is_active'])


def list_sales(session: Session) -> List[Sale]:
    """All sales, newest first, including expired and inactive ones."""
    return session.query(Sale).options(joinedload(Sale.product)).order_by(
        Sale.created_at.desc(), Sale.id
    ).all()


def get_sale(session: Session, sale_id: str) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError('Sale not found')
    return sale


def create_sale(session: Session, data: Dict[str, Any]) -> Sale:
    sale = Sale(is_active=True, is_global=False)
    _apply_fields(session, sale, data)

    try:
        session.add(sale)
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_sales_cache()
    logger.info(f"[SALES] Created {sale!r}")
    return sale


def update_sale(session: Session, sale_id: str, data: Dict[str, Any]) -> Sale:
    sale = get_sale(session, sale_id)
    try:
        _apply_fields(session, sale, data)
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_sales_cache()
    logger.info(f"[SALES] Updated {sale!r}")
    return sale


def toggle_sale_active(session: Session, sale_id: str) -> Sale:
    sale = get_sale(session, sale_id)
    try:
        sale.is_active = not sale.is_active
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_sales_cache()
    logger.info(f"[SALES] {sale!r} active={sale.is_active}")
    return sale


def delete_sale(session: Session, sale_id: str) -> None:
    sale = get_sale(session, sale_id)
    try:
        session.delete(sale)
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_sales_cache()
    logger.info(f"[SALES] Deleted sale {sale_id}")
