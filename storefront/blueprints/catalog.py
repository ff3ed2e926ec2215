"""Catalog blueprint - sale-aware prices for the storefront."""
from flask import Blueprint, request, jsonify, current_app
from storefront.database import get_session
from storefront.services.cart_service import load_selection
from storefront.services.pricing_service import price_product
from storefront.services.sale_lookup_service import get_active_sales_cached, find_applicable_sales
from storefront.utils.formatters import format_price, format_discount

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _clamp() -> bool:
    return current_app.config.get('PRICING_CLAMP_NEGATIVE', False)


def _price_payload(item_price) -> dict:
    symbol = current_app.config.get('CURRENCY_SYMBOL', 'Rs')
    payload = item_price.to_dict()
    payload['display_price'] = format_price(item_price.final_price, symbol)
    payload['display_original_price'] = format_price(item_price.base_price, symbol)
    payload['badge'] = format_discount(item_price.discount_percent)
    return payload


@catalog_bp.route('/products/<product_id>/price', methods=['GET'])
def product_price(product_id: str):
    """Price of a product selection under the currently running sales."""
    db_session = get_session()
    product, variation, color = load_selection(
        db_session,
        product_id,
        request.args.get('variation_id') or None,
        request.args.get('color_id') or None
    )

    lookup = find_applicable_sales(get_active_sales_cached(db_session), product.id)
    item_price = price_product(product, lookup, variation, color, clamp_to_zero=_clamp())

    payload = _price_payload(item_price)
    payload.update({
        'product_id': product.id,
        'variation_id': variation.id if variation else None,
        'color_id': color.id if color else None,
        'sale_id': lookup.effective_sale.id if item_price.resolution.on_sale else None,
    })
    return jsonify(payload)


@catalog_bp.route('/products/<product_id>', methods=['GET'])
def product_detail(product_id: str):
    """Product with every variation and color priced."""
    db_session = get_session()
    product, _, _ = load_selection(db_session, product_id)
    lookup = find_applicable_sales(get_active_sales_cached(db_session), product.id)

    return jsonify({
        'id': product.id,
        'name': product.name,
        'slug': product.slug,
        'sku': product.sku,
        'description': product.description,
        'stock_quantity': product.stock_quantity,
        'in_stock': product.in_stock,
        'price': _price_payload(price_product(product, lookup, clamp_to_zero=_clamp())),
        'variations': [
            {
                'id': variation.id,
                'name': variation.name,
                'quantity': variation.quantity,
                'price': _price_payload(price_product(product, lookup, variation=variation, clamp_to_zero=_clamp())),
            }
            for variation in product.variations
        ],
        'colors': [
            {
                'id': color.id,
                'name': color.name,
                'color_code': color.color_code,
                'quantity': color.quantity,
                'price': _price_payload(price_product(product, lookup, color=color, clamp_to_zero=_clamp())),
            }
            for color in product.colors
        ],
    })


@catalog_bp.route('/sales/active', methods=['GET'])
def active_sales():
    """Currently running sales (global banner + product badges)."""
    sales = get_active_sales_cached(get_session())
    global_sale = next((sale for sale in sales if sale.is_global), None)
    return jsonify({
        'sales': [sale.to_dict() for sale in sales],
        'global_sale': global_sale.to_dict() if global_sale else None,
    })
