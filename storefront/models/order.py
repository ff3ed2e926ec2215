"""Order model."""
from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, new_id
import enum


class OrderStatus(str, enum.Enum):
    """Fulfillment status."""
    PENDING = 'pending'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class Order(Base):
    """Customer order (snapshot of the cart at checkout)."""

    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=new_id)
    order_number = Column(Integer, nullable=False, unique=True)
    user_id = Column(String(36), nullable=True, index=True)  # NULL for guest checkout

    # Contact / shipping
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=False)
    shipping_address = Column(String, nullable=False)
    shipping_city = Column(String, nullable=False)
    shipping_state = Column(String, nullable=True)
    shipping_zip = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Amounts
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    # Back office annotations
    admin_notes = Column(Text, nullable=True)
    courier_company = Column(String, nullable=True)
    customer_confirmation = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship(
        'OrderItem', back_populates='order',
        cascade='all, delete-orphan', order_by='OrderItem.created_at'
    )

    @property
    def customer_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Order(number={self.order_number}, total={self.total_amount}, status={self.status})>"
