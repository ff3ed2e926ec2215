"""Product Color model."""
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


class ProductColor(Base):
    """Color option of a product. A zero price means "use the variation/product price"."""

    __tablename__ = 'product_colors'

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    color_code = Column(String(16), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    apply_sale = Column(Boolean, nullable=False, default=True, server_default='1')
    quantity = Column(Integer, nullable=False, default=0, server_default='0')
    sort_order = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product', back_populates='colors')

    def __repr__(self):
        return f"<ProductColor(id={self.id}, name='{self.name}', code='{self.color_code}')>"
