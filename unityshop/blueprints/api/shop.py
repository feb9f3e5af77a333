from datetime import datetime
from flask import request, jsonify, session
from sqlalchemy import text

from unityshop.extensions import db
from unityshop.services.catalog_service import CatalogService
from unityshop.services.promotion_service import PromotionService
from unityshop.services.order_service import OrderService
from unityshop.utils import parse_int
from . import shop_bp
from .utils import json_body, result_response

MEMBER_LOOKUP_SEQ = 'member_lookup_seq'

@shop_bp.route('/api/shop/products', methods=['GET'])
def list_products():
    products = CatalogService.list_products(
        category_id=parse_int(request.args.get('category')),
        search=request.args.get('search'),
        featured=request.args.get('featured') in ('1', 'true', 'yes')
    )
    return jsonify({'status': 'success', 'products': [p.to_dict() for p in products]})

@shop_bp.route('/api/shop/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    product = CatalogService.get_product(product_id)
    if not product:
        return jsonify({'status': 'error', 'message': 'Product not found'}), 404
    return jsonify({'status': 'success', 'product': product.to_dict()})

@shop_bp.route('/api/shop/categories', methods=['GET'])
def list_categories():
    categories = CatalogService.list_categories()
    return jsonify({'status': 'success', 'categories': [c.to_dict() for c in categories]})

@shop_bp.route('/api/shop/banners', methods=['GET'])
def list_banners():
    banners = CatalogService.active_banners()
    return jsonify({'status': 'success', 'banners': [b.to_dict() for b in banners]})

@shop_bp.route('/api/shop/notice', methods=['GET'])
def get_notice():
    notice = CatalogService.active_notice()
    return jsonify({'status': 'success', 'notice': notice.to_dict() if notice else None})

@shop_bp.route('/api/shop/coupon/validate', methods=['POST'])
def validate_coupon():
    data = json_body()
    subtotal = parse_int(data.get('subtotal'))
    if subtotal is None or subtotal < 0:
        return jsonify({'status': 'error', 'message': 'Subtotal is required'}), 400
    return result_response(PromotionService.validate_coupon(data.get('code'), subtotal))

@shop_bp.route('/api/shop/referral/validate', methods=['POST'])
def validate_referral():
    data = json_body()
    return result_response(PromotionService.validate_referral(data.get('code')))

@shop_bp.route('/api/shop/member/detect', methods=['POST'])
def detect_member():
    """
    Member lookup fired as the shopper types a phone number. Each call carries
    an increasing ``seq``; a call older than the newest one seen in this session
    is answered without touching the store.
    """
    data = json_body()
    seq = parse_int(data.get('seq'))
    if seq is not None:
        latest = session.get(MEMBER_LOOKUP_SEQ)
        if latest is not None and seq < latest:
            return jsonify({'status': 'superseded', 'seq': seq})
        session[MEMBER_LOOKUP_SEQ] = seq

    subtotal = parse_int(data.get('subtotal'), 0)
    member = PromotionService.detect_member(data.get('phone'), subtotal)
    return jsonify({'status': 'success', 'seq': seq, 'member': member})

@shop_bp.route('/api/shop/buy_now', methods=['POST'])
def buy_now():
    data = json_body()
    result = OrderService.buy_now(
        data.get('product_id'),
        data.get('size'),
        data,
        coupon_code=data.get('coupon_code'),
        referral_code=data.get('referral_code')
    )
    return result_response(result, success_code=201)

@shop_bp.route('/health', methods=['GET'])
def health_check():
    try:
        db.session.execute(text('SELECT 1'))
        return jsonify({'status': 'ok', 'timestamp': datetime.now().isoformat()}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': str(e)}), 503
