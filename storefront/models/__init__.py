"""Models package - exports all SQLAlchemy models."""
# Catalog
from storefront.models.product import Product
from storefront.models.product_variation import ProductVariation
from storefront.models.product_color import ProductColor

# Promotions
from storefront.models.sale import Sale, as_utc

# Cart / Orders
from storefront.models.cart_item import CartItem
from storefront.models.order import Order, OrderStatus
from storefront.models.order_item import OrderItem

__all__ = [
    # Catalog
    'Product', 'ProductVariation', 'ProductColor',
    # Promotions
    'Sale', 'as_utc',
    # Cart / Orders
    'CartItem', 'Order', 'OrderStatus', 'OrderItem',
]
