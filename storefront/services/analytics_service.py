"""
Order analytics for the back office dashboard.
Revenue counts delivered orders only; order counts include every status.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session, selectinload

from storefront.models import Order, OrderStatus
from storefront.utils.number_format import to_price, quantize_money

TOP_LIMIT = 10


def get_order_analytics(session: Session, city: Optional[str] = None,
                        product_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Aggregate order figures.

    Args:
        session: SQLAlchemy session
        city: restrict headline figures to one shipping city ('all' or None = every city)
        product_id: restrict headline figures to orders containing this product

    Returns:
        dict with keys:
            - total_orders: int (after filters)
            - total_revenue: Decimal, delivered orders after filters
            - average_order_value: Decimal, total_revenue / total_orders
            - orders_by_status: {status: count} after filters
            - top_cities: [{'city', 'orders', 'revenue'}] over all orders
            - top_products: [{'product_id', 'name', 'quantity', 'revenue'}] over all orders
    """
    orders = session.query(Order).options(selectinload(Order.items)).all()

    city = None if city in (None, '', 'all') else city
    product_id = None if product_id in (None, '', 'all') else product_id

    def matches(order: Order) -> bool:
        if city and order.shipping_city != city:
            return False
        if product_id and not any(item.product_id == product_id for item in order.items):
            return False
        return True

    filtered = [order for order in orders if matches(order)]

    total_orders = len(filtered)
    total_revenue = sum(
        (to_price(order.total_amount, default=Decimal('0'))
         for order in filtered if order.status == OrderStatus.DELIVERED.value),
        Decimal('0')
    )
    average = total_revenue / total_orders if total_orders else Decimal('0')

    orders_by_status = {status.value: 0 for status in OrderStatus}
    for order in filtered:
        orders_by_status[order.status] = orders_by_status.get(order.status, 0) + 1

    return {
        'total_orders': total_orders,
        'total_revenue': quantize_money(total_revenue),
        'average_order_value': quantize_money(average),
        'orders_by_status': orders_by_status,
        'cities': sorted({order.shipping_city for order in orders if order.shipping_city}),
        'top_cities': _city_stats(orders),
        'top_products': _product_stats(orders),
    }


def _city_stats(orders) -> list:
    stats = defaultdict(lambda: {'orders': 0, 'revenue': Decimal('0')})
    for order in orders:
        entry = stats[order.shipping_city or 'Unknown']
        entry['orders'] += 1
        entry['revenue'] += to_price(order.total_amount, default=Decimal('0'))

    ranked = sorted(stats.items(), key=lambda kv: kv[1]['revenue'], reverse=True)[:TOP_LIMIT]
    return [
        {'city': city, 'orders': data['orders'], 'revenue': quantize_money(data['revenue'])}
        for city, data in ranked
    ]


def _product_stats(orders) -> list:
    stats = {}
    for order in orders:
        for item in order.items:
            key = item.product_id or item.product_name
            entry = stats.setdefault(key, {
                'product_id': item.product_id,
                'name': item.product_name or 'Unknown Product',
                'quantity': 0,
                'revenue': Decimal('0'),
            })
            entry['quantity'] += item.quantity
            entry['revenue'] += to_price(item.price, default=Decimal('0')) * item.quantity

    ranked = sorted(stats.values(), key=lambda data: data['revenue'], reverse=True)[:TOP_LIMIT]
    for data in ranked:
        data['revenue'] = quantize_money(data['revenue'])
    return ranked
