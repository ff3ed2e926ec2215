"""Checkout blueprint - turns the priced cart into an order."""
from flask import Blueprint, request, jsonify, g, current_app
from storefront.database import get_session
from storefront.middleware import require_login
from storefront.services import cart_service
from storefront.services.order_service import place_order, get_order, get_user_orders, order_to_dict
from storefront.exceptions import NotFoundError
from storefront.blueprints.metrics import orders_placed_total

checkout_bp = Blueprint('checkout', __name__, url_prefix='/api')


@checkout_bp.route('/checkout', methods=['POST'])
def checkout():
    """
    Place an order for the current cart.

    Prices are re-resolved here against the sales running at submit time,
    so a sale ending while the customer fills the form is not honoured.
    """
    db_session = get_session()
    contact = request.get_json(silent=True) if request.is_json else request.form.to_dict()

    totals = cart_service.get_cart_summary(db_session, g.user_id)
    order = place_order(db_session, contact or {}, totals, user_id=g.user_id)

    cart_service.clear(db_session, g.user_id)
    orders_placed_total.inc()

    current_app.logger.info(f"[checkout] order=#{order.order_number} total={order.total_amount}")
    return jsonify(order_to_dict(order)), 201


@checkout_bp.route('/orders', methods=['GET'])
@require_login
def my_orders():
    orders = get_user_orders(get_session(), g.user_id)
    return jsonify({'orders': [order_to_dict(order) for order in orders]})


@checkout_bp.route('/orders/<order_id>', methods=['GET'])
@require_login
def my_order_detail(order_id: str):
    order = get_order(get_session(), order_id)
    # Other customers' orders look like missing ones
    if order.user_id != g.user_id:
        raise NotFoundError('Order not found')
    return jsonify(order_to_dict(order))
