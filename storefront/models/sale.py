"""Sale model (time-boxed percentage promotion)."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Sale(Base):
    """
    Promotional sale.

    A global sale (is_global=True, product_id NULL) applies to the whole
    catalog; otherwise the sale is scoped to a single product. Expired sales
    are never deleted, they simply stop matching the date window.
    """

    __tablename__ = 'sales'

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default='1')
    is_global = Column(Boolean, nullable=False, default=False, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product', back_populates='sales')

    __table_args__ = (
        Index('idx_sales_active_window', 'is_active', 'start_date', 'end_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'discount_percentage': str(self.discount_percentage),
            'start_date': as_utc(self.start_date).isoformat() if self.start_date else None,
            'end_date': as_utc(self.end_date).isoformat() if self.end_date else None,
            'is_active': bool(self.is_active),
            'is_global': bool(self.is_global),
        }

    def __repr__(self):
        scope = 'global' if self.is_global else f'product={self.product_id}'
        return f"<Sale(id={self.id}, {scope}, discount={self.discount_percentage}%)>"
