"""Order Item model."""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


class OrderItem(Base):
    """Order line. Prices and names are frozen at checkout and never re-resolved."""

    __tablename__ = 'order_items'

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # resolved unit price

    variation_id = Column(String(36), nullable=True)
    variation_name = Column(String, nullable=True)
    variation_price = Column(Numeric(10, 2), nullable=True)

    color_id = Column(String(36), nullable=True)
    color_name = Column(String, nullable=True)
    color_code = Column(String(16), nullable=True)
    color_price = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    @property
    def line_total(self):
        return (self.price or 0) * (self.quantity or 0)

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
