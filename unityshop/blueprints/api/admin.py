from datetime import datetime, timezone
from flask import request, jsonify, current_app
from flask_login import current_user
from sqlalchemy import or_, update, delete, exc

from unityshop.extensions import db
from unityshop.models import Coupon, Referral, Member, Category, Product, Order, OrderItem, StockHistory, Banner, Notice
from unityshop.constants import DiscountType, BannerOverlay, MIN_PHONE_DIGITS
from unityshop.utils import normalize_code, count_digits, parse_int, parse_bool, provisional_code, sequential_code
from unityshop.services.promotion_service import PromotionService
from unityshop.services.membership_service import MembershipService
from unityshop.services.settings_service import SettingsService
from unityshop.services.inventory_service import InventoryService
from unityshop.celery_tasks import task_refresh_membership
from . import api_bp
from .utils import admin_required, json_body, server_error

def _parse_discount(data, type_key='discount_type', value_key='discount_value', allow_zero=False):
    discount_type = data.get(type_key) or DiscountType.FIXED
    value = parse_int(data.get(value_key))
    if discount_type not in DiscountType.ALL:
        return None, None, f"Unknown discount type '{discount_type}'"
    if value is None or value < 0 or (value == 0 and not allow_zero):
        return None, None, 'Discount value must be a positive number'
    if discount_type == DiscountType.PERCENTAGE and value > 100:
        return None, None, 'Percentage can not exceed 100'
    return discount_type, value, None

def _parse_expiry(raw):
    if not raw:
        return None
    expiry = datetime.fromisoformat(str(raw))
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry

def _not_found(what):
    return jsonify({'status': 'error', 'message': f'{what} not found'}), 404

# --- Coupons ---

@api_bp.route('/api/admin/coupons', methods=['GET'])
@admin_required
def list_coupons():
    coupons = Coupon.query.order_by(Coupon.created_at.desc()).all()
    return jsonify({'status': 'success', 'coupons': [c.to_dict() for c in coupons]})

def _apply_coupon_fields(coupon, data):
    discount_type, value, error = _parse_discount(data)
    if error:
        return error
    min_purchase = parse_int(data.get('min_purchase'), 0)
    if min_purchase < 0:
        return 'Minimum purchase can not be negative'
    try:
        expiry = _parse_expiry(data.get('expiry_date'))
    except ValueError:
        return 'Expiry date must be an ISO date'

    coupon.discount_type = discount_type
    coupon.discount_value = value
    coupon.min_purchase = min_purchase
    coupon.expiry_date = expiry
    coupon.is_active = parse_bool(data.get('is_active'), True)
    return None

@api_bp.route('/api/admin/coupons', methods=['POST'])
@admin_required
def create_coupon():
    data = json_body()
    code = normalize_code(data.get('code'))
    if not code:
        return jsonify({'status': 'error', 'message': 'Coupon code is required'}), 400

    coupon = Coupon(code=code)
    error = _apply_coupon_fields(coupon, data)
    if error:
        return jsonify({'status': 'error', 'message': error}), 400

    try:
        db.session.add(coupon)
        db.session.commit()
        current_app.logger.info(f"Coupon {code} created by {current_user.username}")
        return jsonify({'status': 'success', 'coupon': coupon.to_dict()}), 201
    except exc.IntegrityError:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': f"Coupon '{code}' already exists"}), 400
    except Exception as e:
        return server_error(e, 'Error creating coupon')

@api_bp.route('/api/admin/coupons/<int:coupon_id>', methods=['PUT'])
@admin_required
def update_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return _not_found('Coupon')

    error = _apply_coupon_fields(coupon, json_body())
    if error:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': error}), 400
    try:
        db.session.commit()
        return jsonify({'status': 'success', 'coupon': coupon.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating coupon')

@api_bp.route('/api/admin/coupons/<int:coupon_id>', methods=['DELETE'])
@admin_required
def delete_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return _not_found('Coupon')
    code = coupon.code
    try:
        db.session.delete(coupon)
        db.session.commit()
        return jsonify({'status': 'success', 'message': f'Coupon {code} deleted'})
    except Exception as e:
        return server_error(e, 'Error deleting coupon')

# --- Referrals ---

@api_bp.route('/api/admin/referrals', methods=['GET'])
@admin_required
def list_referrals():
    referrals = Referral.query.order_by(Referral.created_at.desc()).all()
    return jsonify({'status': 'success', 'referrals': [r.to_dict() for r in referrals]})

@api_bp.route('/api/admin/referrals/report', methods=['GET'])
@admin_required
def referral_report():
    return jsonify({'status': 'success', 'report': PromotionService.referral_report()})

def _apply_referral_fields(referral, data):
    name = (data.get('referrer_name') or '').strip()
    if not name:
        return 'Referrer name is required'
    commission_type, value, error = _parse_discount(data, 'commission_type', 'commission_value', allow_zero=True)
    if error:
        return error
    referral.referrer_name = name
    referral.commission_type = commission_type
    referral.commission_value = value
    referral.is_active = parse_bool(data.get('is_active'), True)
    return None

@api_bp.route('/api/admin/referrals', methods=['POST'])
@admin_required
def create_referral():
    data = json_body()
    code = normalize_code(data.get('code'))
    if not code:
        return jsonify({'status': 'error', 'message': 'Referral code is required'}), 400

    referral = Referral(code=code)
    error = _apply_referral_fields(referral, data)
    if error:
        return jsonify({'status': 'error', 'message': error}), 400

    try:
        db.session.add(referral)
        db.session.commit()
        return jsonify({'status': 'success', 'referral': referral.to_dict()}), 201
    except exc.IntegrityError:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': f"Referral '{code}' already exists"}), 400
    except Exception as e:
        return server_error(e, 'Error creating referral')

@api_bp.route('/api/admin/referrals/<int:referral_id>', methods=['PUT'])
@admin_required
def update_referral(referral_id):
    referral = db.session.get(Referral, referral_id)
    if not referral:
        return _not_found('Referral')

    error = _apply_referral_fields(referral, json_body())
    if error:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': error}), 400
    try:
        db.session.commit()
        return jsonify({'status': 'success', 'referral': referral.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating referral')

@api_bp.route('/api/admin/referrals/<int:referral_id>', methods=['DELETE'])
@admin_required
def delete_referral(referral_id):
    referral = db.session.get(Referral, referral_id)
    if not referral:
        return _not_found('Referral')
    code = referral.code
    try:
        db.session.delete(referral)
        db.session.commit()
        return jsonify({'status': 'success', 'message': f'Referral {code} deleted'})
    except Exception as e:
        return server_error(e, 'Error deleting referral')

# --- Members ---

@api_bp.route('/api/admin/members', methods=['GET'])
@admin_required
def list_members():
    query = Member.query
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(or_(
            Member.name.ilike(f"%{search}%"),
            Member.phone.contains(search),
            Member.member_code.ilike(f"%{search}%")
        ))
    members = query.order_by(Member.created_at.desc()).all()
    return jsonify({'status': 'success', 'members': [m.to_dict() for m in members]})

@api_bp.route('/api/admin/members/<int:member_id>/orders', methods=['GET'])
@admin_required
def member_orders(member_id):
    member, orders = MembershipService.member_orders(member_id)
    if not member:
        return _not_found('Member')
    return jsonify({
        'status': 'success',
        'member': member.to_dict(),
        'orders': [o.to_dict() for o in orders]
    })

def _apply_member_fields(member, data):
    name = (data.get('name') or '').strip()
    if len(name) < 2:
        return 'Name must be at least 2 characters'
    discount_type, value, error = _parse_discount(data, allow_zero=True)
    if error:
        return error
    member.name = name
    member.address = (data.get('address') or '').strip() or None
    member.email = (data.get('email') or '').strip() or None
    member.discount_type = discount_type
    member.discount_value = value
    member.is_active = parse_bool(data.get('is_active'), True)
    return None

@api_bp.route('/api/admin/members', methods=['POST'])
@admin_required
def create_member():
    data = json_body()
    phone = (data.get('phone') or '').strip()
    if count_digits(phone) < MIN_PHONE_DIGITS:
        return jsonify({'status': 'error', 'message': 'Phone number must be at least 11 digits'}), 400

    prefix = current_app.config.get('MEMBER_CODE_PREFIX', 'UCM')
    member = Member(phone=phone, member_code=provisional_code(prefix))
    error = _apply_member_fields(member, data)
    if error:
        return jsonify({'status': 'error', 'message': error}), 400

    try:
        db.session.add(member)
        db.session.flush()
        member.member_code = sequential_code(prefix, member.id)
        total, count = MembershipService.delivered_totals(phone)
        member.total_purchases = total
        member.order_count = count
        db.session.execute(
            update(Order)
            .where(Order.phone == phone, Order.member_id.is_(None))
            .values(member_id=member.id)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        current_app.logger.info(f"Member {member.member_code} ({phone}) created by {current_user.username}")
        return jsonify({'status': 'success', 'member': member.to_dict()}), 201
    except exc.IntegrityError:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': f'A member with phone {phone} already exists'}), 400
    except Exception as e:
        return server_error(e, 'Error creating member')

@api_bp.route('/api/admin/members/<int:member_id>', methods=['PUT'])
@admin_required
def update_member(member_id):
    member = db.session.get(Member, member_id)
    if not member:
        return _not_found('Member')

    error = _apply_member_fields(member, json_body())
    if error:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': error}), 400
    try:
        db.session.commit()
        return jsonify({'status': 'success', 'member': member.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating member')

@api_bp.route('/api/admin/members/<int:member_id>', methods=['DELETE'])
@admin_required
def delete_member(member_id):
    member = db.session.get(Member, member_id)
    if not member:
        return _not_found('Member')
    code = member.member_code
    try:
        # Orders outlive the member
        db.session.execute(
            update(Order).where(Order.member_id == member_id).values(member_id=None)
            .execution_options(synchronize_session=False)
        )
        db.session.delete(member)
        db.session.commit()
        return jsonify({'status': 'success', 'message': f'Member {code} deleted'})
    except Exception as e:
        return server_error(e, 'Error deleting member')

@api_bp.route('/api/admin/members/refresh', methods=['POST'])
@admin_required
def refresh_member():
    phone = (json_body().get('phone') or '').strip()
    if not phone:
        return jsonify({'status': 'error', 'message': 'Phone number is required'}), 400
    task = task_refresh_membership.delay(phone)
    return jsonify({'status': 'success', 'task_id': task.id}), 202

# --- Membership settings ---

@api_bp.route('/api/admin/settings/membership', methods=['GET'])
@admin_required
def get_membership_settings():
    return jsonify({'status': 'success', 'settings': SettingsService.load_checkout_settings().to_dict()})

@api_bp.route('/api/admin/settings/membership', methods=['POST'])
@admin_required
def save_membership_settings():
    data = json_body()
    threshold = parse_int(data.get('membership_threshold'))
    value = parse_int(data.get('default_discount_value'))
    if threshold is None or value is None:
        return jsonify({'status': 'error', 'message': 'Threshold and discount value are required'}), 400

    result = SettingsService.save_membership_settings(
        threshold, value, data.get('default_discount_type') or DiscountType.PERCENTAGE
    )
    if result['status'] != 'success':
        return jsonify(result), 400
    return jsonify(result)

# --- Categories ---

@api_bp.route('/api/admin/categories', methods=['POST'])
@admin_required
def create_category():
    data = json_body()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'status': 'error', 'message': 'Category name is required'}), 400
    try:
        category = Category(name=name, image_url=data.get('image_url'))
        db.session.add(category)
        db.session.commit()
        return jsonify({'status': 'success', 'category': category.to_dict()}), 201
    except Exception as e:
        return server_error(e, 'Error creating category')

@api_bp.route('/api/admin/categories/<int:category_id>', methods=['PUT'])
@admin_required
def update_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        return _not_found('Category')
    data = json_body()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'status': 'error', 'message': 'Category name is required'}), 400
    try:
        category.name = name
        category.image_url = data.get('image_url', category.image_url)
        db.session.commit()
        return jsonify({'status': 'success', 'category': category.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating category')

@api_bp.route('/api/admin/categories/<int:category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        return _not_found('Category')
    try:
        db.session.execute(
            update(Product).where(Product.category_id == category_id).values(category_id=None)
            .execution_options(synchronize_session=False)
        )
        db.session.delete(category)
        db.session.commit()
        return jsonify({'status': 'success', 'message': f'Category {category_id} deleted'})
    except Exception as e:
        return server_error(e, 'Error deleting category')

# --- Products ---

@api_bp.route('/api/admin/products', methods=['GET'])
@admin_required
def list_all_products():
    products = Product.query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return jsonify({'status': 'success', 'products': [p.to_dict() for p in products]})

def _parse_product(data, partial=False):
    fields = {}
    errors = []

    if 'name' in data or not partial:
        name = (data.get('name') or '').strip()
        if not name:
            errors.append('Product name is required')
        fields['name'] = name
    if 'price' in data or not partial:
        price = parse_int(data.get('price'))
        if price is None or price <= 0:
            errors.append('Price must be a positive number')
        fields['price'] = price
    if 'discount_price' in data:
        raw = data.get('discount_price')
        discount_price = parse_int(raw) if raw not in (None, '') else None
        if discount_price is not None and discount_price < 0:
            errors.append('Discount price can not be negative')
        fields['discount_price'] = discount_price or None
    if 'stock_quantity' in data or not partial:
        stock = parse_int(data.get('stock_quantity'), 0)
        if stock < 0:
            errors.append('Stock can not be negative')
        fields['stock_quantity'] = stock
    if 'sizes' in data:
        sizes = data.get('sizes') or []
        if not isinstance(sizes, list):
            errors.append('Sizes must be a list')
        else:
            fields['sizes'] = [str(s).strip() for s in sizes if str(s).strip()]
    if 'category_id' in data:
        fields['category_id'] = parse_int(data.get('category_id'))
    for key in ('description', 'image_url'):
        if key in data:
            fields[key] = data.get(key)
    for key in ('is_active', 'is_featured'):
        if key in data:
            fields[key] = parse_bool(data.get(key))
    return fields, errors

@api_bp.route('/api/admin/products', methods=['POST'])
@admin_required
def create_product():
    fields, errors = _parse_product(json_body())
    if errors:
        return jsonify({'status': 'error', 'message': errors[0], 'errors': errors}), 400

    stock = fields.pop('stock_quantity')
    try:
        product = Product(stock_quantity=0, **fields)
        db.session.add(product)
        db.session.flush()
        InventoryService.set_stock(product, stock, current_user.id)
        db.session.commit()
        return jsonify({'status': 'success', 'product': product.to_dict()}), 201
    except Exception as e:
        return server_error(e, 'Error creating product')

@api_bp.route('/api/admin/products/<int:product_id>', methods=['PUT'])
@admin_required
def update_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        return _not_found('Product')

    fields, errors = _parse_product(json_body(), partial=True)
    if errors:
        return jsonify({'status': 'error', 'message': errors[0], 'errors': errors}), 400

    stock = fields.pop('stock_quantity', None)
    try:
        for key, value in fields.items():
            setattr(product, key, value)
        if stock is not None:
            InventoryService.set_stock(product, stock, current_user.id)
        db.session.commit()
        return jsonify({'status': 'success', 'product': product.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating product')

@api_bp.route('/api/admin/products/<int:product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        return _not_found('Product')
    name = product.name
    try:
        # Order lines keep their snapshot, only the link goes
        db.session.execute(
            update(OrderItem).where(OrderItem.product_id == product_id).values(product_id=None)
            .execution_options(synchronize_session=False)
        )
        db.session.execute(
            delete(StockHistory).where(StockHistory.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        db.session.delete(product)
        db.session.commit()
        current_app.logger.info(f"Product {product_id} '{name}' deleted by {current_user.username}")
        return jsonify({'status': 'success', 'message': f"'{name}' deleted"})
    except Exception as e:
        return server_error(e, 'Error deleting product')

# --- Banners ---

@api_bp.route('/api/admin/banners', methods=['GET'])
@admin_required
def list_all_banners():
    banners = Banner.query.order_by(Banner.display_order, Banner.id).all()
    return jsonify({'status': 'success', 'banners': [b.to_dict() for b in banners]})

def _apply_banner_fields(banner, data):
    image_url = (data.get('image_url') or '').strip()
    if not image_url:
        return 'Please enter an image URL'
    overlay_type = data.get('overlay_type') or BannerOverlay.GREEN
    if overlay_type not in BannerOverlay.ALL:
        return f"Unknown overlay type '{overlay_type}'"

    banner.image_url = image_url
    banner.title = (data.get('title') or '').strip() or None
    banner.subtitle = (data.get('subtitle') or '').strip() or None
    banner.link = (data.get('link') or '').strip() or None
    banner.overlay_type = overlay_type
    banner.display_order = parse_int(data.get('display_order'), 0)
    banner.is_active = parse_bool(data.get('is_active'), True)
    return None

@api_bp.route('/api/admin/banners', methods=['POST'])
@admin_required
def create_banner():
    banner = Banner()
    error = _apply_banner_fields(banner, json_body())
    if error:
        return jsonify({'status': 'error', 'message': error}), 400
    try:
        db.session.add(banner)
        db.session.commit()
        return jsonify({'status': 'success', 'banner': banner.to_dict()}), 201
    except Exception as e:
        return server_error(e, 'Error creating banner')

@api_bp.route('/api/admin/banners/<int:banner_id>', methods=['PUT'])
@admin_required
def update_banner(banner_id):
    banner = db.session.get(Banner, banner_id)
    if not banner:
        return _not_found('Banner')

    error = _apply_banner_fields(banner, json_body())
    if error:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': error}), 400
    try:
        db.session.commit()
        return jsonify({'status': 'success', 'banner': banner.to_dict()})
    except Exception as e:
        return server_error(e, 'Error updating banner')

@api_bp.route('/api/admin/banners/<int:banner_id>', methods=['DELETE'])
@admin_required
def delete_banner(banner_id):
    banner = db.session.get(Banner, banner_id)
    if not banner:
        return _not_found('Banner')
    try:
        db.session.delete(banner)
        db.session.commit()
        return jsonify({'status': 'success', 'message': f'Banner {banner_id} deleted'})
    except Exception as e:
        return server_error(e, 'Error deleting banner')

# --- Notice bar ---

@api_bp.route('/api/admin/notice', methods=['GET'])
@admin_required
def get_notice_settings():
    notice = Notice.query.order_by(Notice.id).first()
    return jsonify({'status': 'success', 'notice': notice.to_dict() if notice else None})

@api_bp.route('/api/admin/notice', methods=['POST'])
@admin_required
def save_notice_settings():
    data = json_body()
    text = (data.get('text') or '').strip()
    if not text:
        return jsonify({'status': 'error', 'message': 'Please enter notice text'}), 400

    try:
        notice = Notice.query.order_by(Notice.id).first()
        if notice is None:
            notice = Notice()
            db.session.add(notice)
        notice.text = text
        notice.is_active = parse_bool(data.get('is_active'), True)
        db.session.commit()
        return jsonify({'status': 'success', 'notice': notice.to_dict()})
    except Exception as e:
        return server_error(e, 'Error saving notice')

# --- Dashboard ---

@api_bp.route('/api/admin/dashboard', methods=['GET'])
@admin_required
def dashboard():
    try:
        stats = {
            'products': Product.query.count(),
            'orders': Order.query.count(),
            'categories': Category.query.count(),
            'coupons': Coupon.query.count(),
        }
        recent = Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
        return jsonify({'status': 'success', 'stats': stats, 'recent_orders': [o.to_dict() for o in recent]})
    except Exception as e:
        return server_error(e, 'Error loading dashboard')
