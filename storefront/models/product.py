"""Product model."""
from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id


class Product(Base):
    """Catalog product."""

    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    sku = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=True)  # NULL = not tracked
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    variations = relationship(
        'ProductVariation', back_populates='product',
        cascade='all, delete-orphan', order_by='ProductVariation.sort_order'
    )
    colors = relationship(
        'ProductColor', back_populates='product',
        cascade='all, delete-orphan', order_by='ProductColor.sort_order'
    )
    sales = relationship('Sale', back_populates='product', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"

    @property
    def in_stock(self):
        """Products without a tracked quantity are always sellable."""
        if self.stock_quantity is None:
            return True
        return self.stock_quantity > 0
