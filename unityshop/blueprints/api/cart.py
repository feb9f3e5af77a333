from flask import jsonify, session

from unityshop.constants import DeliveryArea
from unityshop.services.cart import Cart, SESSION_KEY
from unityshop.services.catalog_service import CatalogService
from unityshop.services.order_service import OrderService
from unityshop.utils import parse_int
from . import shop_bp
from .utils import json_body, result_response

def _load_cart():
    return Cart.from_list(session.get(SESSION_KEY))

def _save_cart(cart):
    session[SESSION_KEY] = cart.to_list()
    session.modified = True

@shop_bp.route('/api/cart', methods=['GET'])
def get_cart():
    return jsonify({'status': 'success', 'cart': _load_cart().to_dict()})

@shop_bp.route('/api/cart/items', methods=['POST'])
def add_cart_item():
    data = json_body()
    quantity = parse_int(data.get('quantity'), 1)
    if quantity < 1:
        return jsonify({'status': 'error', 'message': 'Quantity must be at least 1'}), 400

    product = CatalogService.get_product(parse_int(data.get('product_id')))
    if not product:
        return jsonify({'status': 'error', 'message': 'Product not found'}), 404

    size = (data.get('size') or '').strip() or None
    if product.sizes and size not in product.sizes:
        return jsonify({'status': 'error', 'message': 'Please select a size'}), 400

    cart = _load_cart()
    item = cart.add_item(product.to_dict(), size=size, quantity=quantity)
    if item is None:
        return jsonify({'status': 'error', 'message': 'Sorry, this product is out of stock'}), 409

    _save_cart(cart)
    return jsonify({'status': 'success', 'item': item, 'cart': cart.to_dict()})

@shop_bp.route('/api/cart/items/<item_id>', methods=['PATCH'])
def update_cart_item(item_id):
    quantity = parse_int(json_body().get('quantity'))
    if quantity is None:
        return jsonify({'status': 'error', 'message': 'Quantity is required'}), 400

    cart = _load_cart()
    if not cart.find(item_id):
        return jsonify({'status': 'error', 'message': 'Item is not in the cart'}), 404

    item = cart.update_quantity(item_id, quantity)
    _save_cart(cart)
    return jsonify({'status': 'success', 'item': item, 'cart': cart.to_dict()})

@shop_bp.route('/api/cart/items/<item_id>', methods=['DELETE'])
def remove_cart_item(item_id):
    cart = _load_cart()
    if not cart.remove_item(item_id):
        return jsonify({'status': 'error', 'message': 'Item is not in the cart'}), 404
    _save_cart(cart)
    return jsonify({'status': 'success', 'cart': cart.to_dict()})

@shop_bp.route('/api/cart', methods=['DELETE'])
def clear_cart():
    cart = _load_cart()
    cart.clear()
    _save_cart(cart)
    return jsonify({'status': 'success', 'cart': cart.to_dict()})

@shop_bp.route('/api/cart/preview', methods=['POST'])
def preview_cart():
    data = json_body()
    result = OrderService.preview_totals(
        _load_cart().checkout_lines(),
        data.get('delivery_area') or DeliveryArea.LOCAL,
        coupon_code=data.get('coupon_code'),
        phone=data.get('phone')
    )
    return result_response(result)

@shop_bp.route('/api/cart/checkout', methods=['POST'])
def checkout():
    data = json_body()
    cart = _load_cart()
    result = OrderService.submit_order(
        cart.checkout_lines(),
        data,
        coupon_code=data.get('coupon_code'),
        referral_code=data.get('referral_code')
    )
    if result.get('status') == 'success':
        cart.clear()
        _save_cart(cart)
    return result_response(result, success_code=201)
