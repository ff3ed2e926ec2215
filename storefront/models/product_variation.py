"""Product Variation model."""
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


class ProductVariation(Base):
    """Size/pack variation of a product with its own price and stock."""

    __tablename__ = 'product_variations'

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    apply_sale = Column(Boolean, nullable=False, default=True, server_default='1')
    quantity = Column(Integer, nullable=False, default=0, server_default='0')
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product', back_populates='variations')

    def __repr__(self):
        return f"<ProductVariation(id={self.id}, name='{self.name}', price={self.price})>"
