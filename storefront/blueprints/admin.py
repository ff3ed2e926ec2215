"""Back office blueprint - sales, orders and analytics (admin role only)."""
from flask import Blueprint, request, jsonify, current_app
from storefront.database import get_session
from storefront.middleware import require_admin
from storefront.exceptions import BusinessLogicError
from storefront.services import sale_admin_service, order_service
from storefront.services.analytics_service import get_order_analytics
from storefront.utils.number_format import quantize_money

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _sale_to_dict(sale) -> dict:
    data = sale.to_dict()
    data['product_name'] = sale.product.name if sale.product else None
    return data


# =====================================================
# SALES
# =====================================================

@admin_bp.route('/sales', methods=['GET'])
@require_admin
def sales_list():
    sales = sale_admin_service.list_sales(get_session())
    return jsonify({'sales': [_sale_to_dict(sale) for sale in sales]})


@admin_bp.route('/sales', methods=['POST'])
@require_admin
def sales_create():
    sale = sale_admin_service.create_sale(get_session(), _payload())
    return jsonify(_sale_to_dict(sale)), 201


@admin_bp.route('/sales/<sale_id>', methods=['GET'])
@require_admin
def sales_detail(sale_id: str):
    return jsonify(_sale_to_dict(sale_admin_service.get_sale(get_session(), sale_id)))


@admin_bp.route('/sales/<sale_id>', methods=['PUT', 'PATCH'])
@require_admin
def sales_update(sale_id: str):
    sale = sale_admin_service.update_sale(get_session(), sale_id, _payload())
    return jsonify(_sale_to_dict(sale))


@admin_bp.route('/sales/<sale_id>/toggle', methods=['POST'])
@require_admin
def sales_toggle(sale_id: str):
    sale = sale_admin_service.toggle_sale_active(get_session(), sale_id)
    return jsonify(_sale_to_dict(sale))


@admin_bp.route('/sales/<sale_id>', methods=['DELETE'])
@require_admin
def sales_delete(sale_id: str):
    sale_admin_service.delete_sale(get_session(), sale_id)
    return jsonify({'status': 'ok'})


# =====================================================
# ORDERS
# =====================================================

@admin_bp.route('/orders', methods=['GET'])
@require_admin
def orders_list():
    """Paginated order list with status filter and free-text search."""
    try:
        page = int(request.args.get('page', 1))
    except ValueError:
        page = 1
    per_page = current_app.config.get('ORDERS_PER_PAGE', 20)

    orders, total = order_service.list_orders(
        get_session(),
        status=request.args.get('status'),
        search=request.args.get('q'),
        page=page,
        per_page=per_page
    )
    return jsonify({
        'orders': [order_service.order_to_dict(order) for order in orders],
        'total': total,
        'page': max(page, 1),
        'per_page': per_page,
        'pages': (total + per_page - 1) // per_page,
    })


@admin_bp.route('/orders/<order_id>', methods=['GET'])
@require_admin
def orders_detail(order_id: str):
    return jsonify(order_service.order_to_dict(order_service.get_order(get_session(), order_id)))


@admin_bp.route('/orders/<order_id>/status', methods=['POST', 'PATCH'])
@require_admin
def orders_status(order_id: str):
    status = _payload().get('status')
    if not status:
        raise BusinessLogicError('Missing status')
    order = order_service.update_order_status(get_session(), order_id, status)
    return jsonify(order_service.order_to_dict(order))


@admin_bp.route('/orders/<order_id>', methods=['PATCH'])
@require_admin
def orders_update(order_id: str):
    order = order_service.update_order_fields(get_session(), order_id, _payload())
    return jsonify(order_service.order_to_dict(order))


@admin_bp.route('/orders/<order_id>/items/<item_id>', methods=['PATCH'])
@require_admin
def orders_item_update(order_id: str, item_id: str):
    payload = _payload()
    order = order_service.update_order_item(
        get_session(), order_id, item_id,
        quantity=payload.get('quantity'),
        price=payload.get('price')
    )
    return jsonify(order_service.order_to_dict(order))


@admin_bp.route('/orders/<order_id>/items/<item_id>', methods=['DELETE'])
@require_admin
def orders_item_delete(order_id: str, item_id: str):
    order = order_service.delete_order_item(get_session(), order_id, item_id)
    return jsonify(order_service.order_to_dict(order))


@admin_bp.route('/orders/<order_id>/summary', methods=['GET'])
@require_admin
def orders_summary(order_id: str):
    """Confirmation text and the customer's messaging number."""
    order = order_service.get_order(get_session(), order_id)
    symbol = current_app.config.get('CURRENCY_SYMBOL', 'Rs')
    return jsonify({
        'order_number': order.order_number,
        'phone': order_service.normalize_whatsapp_phone(order.phone),
        'message': order_service.format_order_summary(order, symbol),
    })


# =====================================================
# ANALYTICS
# =====================================================

@admin_bp.route('/analytics', methods=['GET'])
@require_admin
def analytics():
    data = get_order_analytics(
        get_session(),
        city=request.args.get('city'),
        product_id=request.args.get('product_id')
    )
    data['total_revenue'] = str(data['total_revenue'])
    data['average_order_value'] = str(data['average_order_value'])
    for row in data['top_cities'] + data['top_products']:
        row['revenue'] = str(quantize_money(row['revenue']))
    return jsonify(data)
