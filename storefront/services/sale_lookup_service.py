"""
Sale lookup service.

Loads the currently applicable sale records and picks, for a given product,
the product-specific sale and the global sale. Selection is pure; the only
I/O lives in get_active_sales / get_active_sales_cached.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.orm import Session

from storefront.models import Sale, as_utc
from storefront.utils.number_format import to_price

logger = logging.getLogger(__name__)

CACHE_MODULE = 'sales'
CACHE_KEY_ACTIVE = 'active'


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 (with or without a trailing Z) to an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return as_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class SaleRecord:
    """Immutable in-memory view of a sale row."""

    id: str
    discount_percentage: Decimal
    end_date: datetime
    start_date: Optional[datetime] = None
    is_active: bool = True
    is_global: bool = False
    product_id: Optional[str] = None

    @classmethod
    def from_model(cls, sale: Sale) -> "SaleRecord":
        return cls(
            id=sale.id,
            discount_percentage=to_price(sale.discount_percentage, default=Decimal('0')),
            start_date=as_utc(sale.start_date),
            end_date=as_utc(sale.end_date),
            is_active=bool(sale.is_active),
            is_global=bool(sale.is_global),
            product_id=None if sale.is_global else sale.product_id,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SaleRecord":
        """Build from the wire shape (ISO-8601 dates, numeric or string percentage)."""
        is_global = bool(data.get('is_global', False))
        return cls(
            id=str(data['id']),
            discount_percentage=to_price(data.get('discount_percentage'), default=Decimal('0')),
            start_date=parse_timestamp(data.get('start_date')),
            end_date=parse_timestamp(data.get('end_date')),
            is_active=bool(data.get('is_active', True)),
            is_global=is_global,
            product_id=None if is_global else data.get('product_id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'discount_percentage': str(self.discount_percentage),
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'is_active': self.is_active,
            'is_global': self.is_global,
            'product_id': self.product_id,
        }

    def is_applicable(self, now: Optional[datetime] = None) -> bool:
        return is_sale_applicable(self, now)


@dataclass(frozen=True)
class SaleLookup:
    """Sales relevant to one product."""

    product_sale: Optional[SaleRecord] = None
    global_sale: Optional[SaleRecord] = None

    def precedence(self) -> List[SaleRecord]:
        """Sales in the order they win: product-specific first, then global."""
        return [sale for sale in (self.product_sale, self.global_sale) if sale is not None]

    @property
    def effective_sale(self) -> Optional[SaleRecord]:
        ordered = self.precedence()
        return ordered[0] if ordered else None


def is_sale_applicable(sale, now: Optional[datetime] = None) -> bool:
    """
    A sale applies when it is flagged active and now falls inside
    [start_date, end_date). A missing start date means "already started";
    a missing end date never applies.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    if not sale.is_active:
        return False
    if sale.end_date is None:
        return False
    if sale.start_date is not None and as_utc(sale.start_date) > now:
        return False
    return as_utc(sale.end_date) > now


def find_applicable_sales(
    sales: Iterable[SaleRecord],
    product_id: Optional[str],
    now: Optional[datetime] = None
) -> SaleLookup:
    """
    Pick the first global sale and the first sale scoped to product_id.

    ``sales`` is expected to be pre-filtered (see get_active_sales); pass
    ``now`` to additionally drop records whose window has closed. Overlapping
    sales are resolved by input order.
    """
    global_sale = None
    product_sale = None

    for sale in sales or ():
        if now is not None and not is_sale_applicable(sale, now):
            continue
        if sale.is_global:
            if global_sale is None:
                global_sale = sale
        elif product_id is not None and product_sale is None and sale.product_id == product_id:
            product_sale = sale
        if global_sale is not None and product_sale is not None:
            break

    return SaleLookup(product_sale=product_sale, global_sale=global_sale)


def get_active_sales(session: Session, now: Optional[datetime] = None) -> List[SaleRecord]:
    """Query applicable sales, newest first."""
    now = as_utc(now or datetime.now(timezone.utc))

    rows = session.query(Sale).filter(
        Sale.is_active.is_(True),
        Sale.start_date <= now,
        Sale.end_date > now
    ).order_by(Sale.created_at.desc(), Sale.id).all()

    return [SaleRecord.from_model(sale) for sale in rows]


def get_active_sales_cached(session: Session) -> List[SaleRecord]:
    """
    Active sales through the shared cache.

    Cached windows can outlive a sale's end date by up to the TTL, so the
    date filter is re-applied on every read.
    """
    from storefront.services.cache_service import get_cache

    try:
        cache = get_cache()
    except RuntimeError:
        return get_active_sales(session)

    ttl = current_app.config.get('CACHE_SALES_TTL', 60)
    rows = cache.memoize(
        CACHE_MODULE,
        CACHE_KEY_ACTIVE,
        lambda: [sale.to_dict() for sale in get_active_sales(session)],
        ttl
    )

    now = datetime.now(timezone.utc)
    return [record for record in (SaleRecord.from_dict(row) for row in rows) if record.is_applicable(now)]


def invalidate_sales_cache() -> None:
    """Drop cached sale lists after an admin write."""
    from storefront.services.cache_service import get_cache

    try:
        get_cache().invalidate_module(CACHE_MODULE)
    except RuntimeError:
        logger.debug("[SALES] Cache not initialized, nothing to invalidate")
