"""Cart Item model (server-persisted cart of an authenticated user)."""
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


class CartItem(Base):
    """
    One cart line. Names and prices of the selected variation/color are
    captured when the line is added; pricing is re-resolved on read.
    """

    __tablename__ = 'cart_items'

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    variation_id = Column(String(36), ForeignKey('product_variations.id', ondelete='SET NULL'), nullable=True)
    variation_name = Column(String, nullable=True)
    variation_price = Column(Numeric(10, 2), nullable=True)
    variation_apply_sale = Column(Boolean, nullable=True)

    color_id = Column(String(36), ForeignKey('product_colors.id', ondelete='SET NULL'), nullable=True)
    color_name = Column(String, nullable=True)
    color_code = Column(String(16), nullable=True)
    color_price = Column(Numeric(10, 2), nullable=True)
    color_apply_sale = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product')
    variation = relationship('ProductVariation')
    color = relationship('ProductColor')

    def __repr__(self):
        return f"<CartItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
