"""Cart blueprint - guest (session) and signed-in (database) carts."""
from flask import Blueprint, request, jsonify, g, current_app
from flask_wtf.csrf import generate_csrf
from storefront.database import get_session
from storefront.exceptions import BusinessLogicError
from storefront.services import cart_service
from storefront.utils.number_format import parse_quantity

cart_bp = Blueprint('cart', __name__, url_prefix='/api')


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _quantity(payload: dict, default=None) -> int:
    raw = payload.get('quantity', default)
    try:
        return parse_quantity(raw)
    except ValueError:
        raise BusinessLogicError('Quantity must be a whole number')


def _cart_response(status_code: int = 200):
    totals = cart_service.get_cart_summary(get_session(), g.user_id)
    return jsonify(totals.to_dict()), status_code


@cart_bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    """Token for the SPA to send back in the X-CSRFToken header."""
    return jsonify({'csrf_token': generate_csrf()})


@cart_bp.route('/cart', methods=['GET'])
def view_cart():
    return _cart_response()


@cart_bp.route('/cart/items', methods=['POST'])
def add_item():
    """Add a product (optionally with variation/color) to the cart."""
    payload = _payload()
    product_id = payload.get('product_id')
    if not product_id:
        raise BusinessLogicError('Missing product_id')

    line_key = cart_service.add_item(
        get_session(),
        g.user_id,
        str(product_id),
        _quantity(payload, default=1),
        variation_id=payload.get('variation_id') or None,
        color_id=payload.get('color_id') or None
    )
    current_app.logger.info(f"[cart_add] line={line_key} user={g.user_id or 'guest'}")
    return _cart_response(201)


@cart_bp.route('/cart/items/<line_key>', methods=['PATCH', 'PUT'])
def update_item(line_key: str):
    """Set a line's quantity; 0 removes the line."""
    payload = _payload()
    if 'quantity' not in payload:
        raise BusinessLogicError('Missing quantity')
    cart_service.update_item(get_session(), g.user_id, line_key, _quantity(payload))
    return _cart_response()


@cart_bp.route('/cart/items/<line_key>', methods=['DELETE'])
def remove_item(line_key: str):
    cart_service.remove_item(get_session(), g.user_id, line_key)
    return _cart_response()


@cart_bp.route('/cart', methods=['DELETE'])
def clear_cart():
    cart_service.clear(get_session(), g.user_id)
    return _cart_response()


@cart_bp.route('/cart/merge', methods=['POST'])
def merge_cart():
    """Called by the SPA right after sign-in to keep what the guest had added."""
    if not g.user_id:
        raise BusinessLogicError('Sign in before merging the guest cart', status_code=401)
    merged = cart_service.merge_guest_cart(get_session(), g.user_id)
    current_app.logger.info(f"[cart_merge] user={g.user_id} merged_lines={merged}")
    return _cart_response()
