import traceback
from datetime import datetime
from flask import current_app
from sqlalchemy import update, delete, or_

from unityshop.extensions import db
from unityshop.models import Product, Order, OrderItem, Coupon
from unityshop.constants import OrderStatus, DeliveryArea, RejectionReason, StockChangeType, MIN_PHONE_DIGITS
from unityshop.errors import store_errors, rejection, is_rejection, InvariantViolation
from unityshop.utils import normalize_code, count_digits, parse_int, provisional_code, sequential_code
from unityshop.services.pricing import compute_subtotal, compute_totals
from unityshop.services.promotion_service import PromotionService
from unityshop.services.inventory_service import InventoryService, group_quantities
from unityshop.services.messaging import build_order_message, whatsapp_link
from unityshop.celery_tasks import task_refresh_membership

RESTORE_CHANGE_TYPES = {
    OrderStatus.CANCELLED: StockChangeType.CANCEL,
    OrderStatus.RETURNED: StockChangeType.RETURN,
}

def validate_customer(customer):
    customer = customer or {}
    fields = {
        'customer_name': (customer.get('customer_name') or '').strip(),
        'phone': (customer.get('phone') or '').strip(),
        'address': (customer.get('address') or '').strip(),
        'delivery_area': customer.get('delivery_area') or DeliveryArea.LOCAL,
    }

    errors = []
    if len(fields['customer_name']) < 2:
        errors.append('Name must be at least 2 characters')
    elif len(fields['customer_name']) > 100:
        errors.append('Name can not be longer than 100 characters')
    if len(fields['phone']) > 15:
        errors.append('Phone number can not be longer than 15 characters')
    elif len(fields['phone']) < 11 or count_digits(fields['phone']) < MIN_PHONE_DIGITS:
        errors.append('Phone number must be at least 11 digits')
    if len(fields['address']) < 10:
        errors.append('Please provide a complete address')
    elif len(fields['address']) > 500:
        errors.append('Address can not be longer than 500 characters')
    if fields['delivery_area'] not in DeliveryArea.ALL:
        errors.append('Please choose a delivery area')
    return errors, fields

def _schedule_membership_refresh(phone):
    try:
        task_refresh_membership.delay(phone)
    except Exception as e:
        current_app.logger.warning(f"Could not queue membership refresh for {phone}: {e}")


class OrderService:
    @staticmethod
    def snapshot_lines(lines):
        """
        Turn requested ``{'product_id', 'size', 'quantity'}`` lines into priced
        snapshots taken from the live catalog, or a rejection.
        """
        product_ids = {parse_int(line.get('product_id')) for line in lines}
        products = Product.query.filter(Product.id.in_([pid for pid in product_ids if pid is not None])).all()
        product_map = {p.id: p for p in products}

        snapshot = []
        for line in lines:
            product = product_map.get(parse_int(line.get('product_id')))
            if not product or not product.is_active:
                name = line.get('name') or 'This product'
                return rejection(RejectionReason.PRODUCT_UNAVAILABLE, f'"{name}" is no longer available')

            quantity = parse_int(line.get('quantity'))
            if quantity is None or quantity < 1:
                return rejection(RejectionReason.INVALID_QUANTITY, f'Invalid quantity for "{product.name}"')

            size = (line.get('size') or '').strip() or None
            if product.sizes and size not in product.sizes:
                return rejection(RejectionReason.INVALID_SIZE, f'Please select a valid size for "{product.name}"')

            snapshot.append({
                'product_id': product.id,
                'name': product.name,
                'price': product.effective_price,
                'size': size,
                'quantity': quantity,
            })

        requested = group_quantities([(line['product_id'], line['quantity']) for line in snapshot])
        for product_id, quantity in requested.items():
            product = product_map[product_id]
            if product.stock_quantity < quantity:
                return rejection(
                    RejectionReason.INSUFFICIENT_STOCK,
                    f'Insufficient stock for "{product.name}"',
                    product_id=product_id, available=product.stock_quantity
                )
        return snapshot

    @staticmethod
    def preview_totals(lines, delivery_area, coupon_code=None, phone=None, now=None):
        """Breakdown the shopper would pay right now, with live prices and discounts."""
        if not lines:
            return rejection(RejectionReason.EMPTY_CART, 'Add items to your cart first')
        if delivery_area not in DeliveryArea.ALL:
            return rejection(RejectionReason.INVALID_CUSTOMER, 'Please choose a delivery area')

        with store_errors():
            snapshot = OrderService.snapshot_lines(lines)
        if is_rejection(snapshot):
            return snapshot

        subtotal = compute_subtotal(snapshot)
        coupon = None
        if normalize_code(coupon_code):
            coupon = PromotionService.validate_coupon(coupon_code, subtotal, now=now)
            if is_rejection(coupon):
                return coupon
        member = PromotionService.detect_member(phone, subtotal)

        totals = compute_totals(
            snapshot, delivery_area,
            coupon_discount=coupon['discount'] if coupon else 0,
            member_discount=member['discount'] if member else 0
        )
        return {'status': 'success', 'totals': totals, 'coupon': coupon, 'member': member}

    @staticmethod
    def submit_order(lines, customer, coupon_code=None, referral_code=None, now=None):
        """
        Create an order from cart lines.

        Stock for every line is taken with a conditional update inside the
        same transaction as the order insert: either every line is reserved
        and the order exists, or nothing changed.
        """
        errors, fields = validate_customer(customer)
        if errors:
            return rejection(RejectionReason.INVALID_CUSTOMER, errors[0], errors=errors)
        if not lines:
            return rejection(RejectionReason.EMPTY_CART, 'Add items to your cart first')

        with store_errors():
            snapshot = OrderService.snapshot_lines(lines)
        if is_rejection(snapshot):
            return snapshot

        subtotal = compute_subtotal(snapshot)

        coupon = None
        if normalize_code(coupon_code):
            coupon = PromotionService.validate_coupon(coupon_code, subtotal, now=now)
            if is_rejection(coupon):
                return coupon

        referral = None
        if normalize_code(referral_code):
            referral = PromotionService.validate_referral(referral_code)
            if is_rejection(referral):
                return referral

        member = PromotionService.detect_member(fields['phone'], subtotal)

        try:
            totals = compute_totals(
                snapshot, fields['delivery_area'],
                coupon_discount=coupon['discount'] if coupon else 0,
                member_discount=member['discount'] if member else 0
            )
        except InvariantViolation as e:
            current_app.logger.critical(f"Order totals invariant broken: {e}")
            raise

        prefix = current_app.config.get('ORDER_ID_PREFIX', 'UC')
        names = {line['product_id']: line['name'] for line in snapshot}

        try:
            with store_errors():
                order = Order(
                    order_id=provisional_code(prefix),
                    customer_name=fields['customer_name'],
                    phone=fields['phone'],
                    address=fields['address'],
                    delivery_area=fields['delivery_area'],
                    subtotal=totals['subtotal'],
                    delivery_charge=totals['delivery_charge'],
                    discount_amount=totals['discount'],
                    total=totals['total'],
                    coupon_code=coupon['code'] if coupon else None,
                    referral_code=referral['code'] if referral else None,
                    member_id=member['member_id'] if member else None,
                    status=OrderStatus.PENDING
                )
                for position, line in enumerate(snapshot):
                    order.items.append(OrderItem(position=position, **line))
                db.session.add(order)
                db.session.flush()

                order.order_id = sequential_code(prefix, order.id)

                requested = group_quantities([(line['product_id'], line['quantity']) for line in snapshot])
                for product_id, quantity in requested.items():
                    if not InventoryService.reserve(product_id, quantity, order.order_id):
                        db.session.rollback()
                        current_app.logger.info(f"Stock conflict on product {product_id}, order not created")
                        return rejection(
                            RejectionReason.STOCK_CONFLICT,
                            f'Sorry, "{names[product_id]}" just went out of stock. Please adjust the quantity.',
                            product_id=product_id
                        )

                if coupon:
                    db.session.execute(
                        update(Coupon)
                        .where(Coupon.code == coupon['code'])
                        .values(usage_count=Coupon.usage_count + 1)
                        .execution_options(synchronize_session=False)
                    )

                db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Order {order.order_id} created: {len(snapshot)} line(s), total {order.total}, "
            f"coupon={order.coupon_code}, referral={order.referral_code}, member={order.member_id}"
        )

        message = build_order_message(order, current_app.config.get('SHOP_NAME', 'Unity Collection'))
        return {
            'status': 'success',
            'order': order.to_dict(),
            'totals': totals,
            'member': member,
            'whatsapp_url': whatsapp_link(current_app.config.get('WHATSAPP_NUMBER', ''), message),
        }

    @staticmethod
    def buy_now(product_id, size, customer, coupon_code=None, referral_code=None, now=None):
        pid = parse_int(product_id)
        with store_errors():
            product = db.session.get(Product, pid) if pid is not None else None
        if product and product.stock_quantity < 1:
            return rejection(RejectionReason.INSUFFICIENT_STOCK, 'Sorry, this product is now out of stock',
                             product_id=product.id, available=0)

        line = {'product_id': product_id, 'size': size, 'quantity': 1}
        return OrderService.submit_order([line], customer, coupon_code, referral_code, now=now)

    @staticmethod
    def update_status(order_pk, new_status, user_id=None):
        """
        Relabel an order. Entering cancelled or returned puts the stock back;
        both are final, so an order can only give its stock back once.
        """
        if new_status not in OrderStatus.ALL:
            return rejection(RejectionReason.INVALID_STATUS, f"Unknown status '{new_status}'")

        with store_errors():
            order = db.session.get(Order, order_pk)
        if not order:
            return rejection(RejectionReason.ORDER_NOT_FOUND, 'Order not found')

        old_status = order.status
        if old_status == new_status:
            return {'status': 'success', 'order': order.to_dict(), 'changed': False}
        if old_status in OrderStatus.STOCK_RESTORED:
            return rejection(RejectionReason.INVALID_TRANSITION, f"Order {order.order_id} is already {old_status}")

        order_code = order.order_id
        lines = [(item.product_id, item.quantity, item.name) for item in order.items]

        try:
            with store_errors():
                result = db.session.execute(
                    update(Order)
                    .where(Order.id == order.id, Order.status == old_status)
                    .values(status=new_status, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.session.rollback()
                    return rejection(RejectionReason.INVALID_TRANSITION,
                                     f"Order {order_code} was changed meanwhile, please reload")

                if new_status in OrderStatus.STOCK_RESTORED:
                    InventoryService.restore_lines(order_code, lines, RESTORE_CHANGE_TYPES[new_status], user_id)

                db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"Status change {old_status} -> {new_status} failed for order {order_code}")
            traceback.print_exc()
            raise

        current_app.logger.info(f"Order {order_code}: {old_status} -> {new_status}")
        if OrderStatus.DELIVERED in (old_status, new_status):
            _schedule_membership_refresh(order.phone)

        db.session.refresh(order)
        return {'status': 'success', 'order': order.to_dict(), 'changed': True}

    @staticmethod
    def mark_returned(order_pk, user_id=None):
        return OrderService.update_status(order_pk, OrderStatus.RETURNED, user_id)

    @staticmethod
    def cancel_order(order_pk, user_id=None):
        return OrderService.update_status(order_pk, OrderStatus.CANCELLED, user_id)

    @staticmethod
    def delete_order(order_pk, user_id=None):
        """Remove an order for good, putting back any stock it still holds."""
        with store_errors():
            order = db.session.get(Order, order_pk)
        if not order:
            return rejection(RejectionReason.ORDER_NOT_FOUND, 'Order not found')

        order_code = order.order_id
        phone = order.phone
        old_status = order.status
        holds_stock = order.holds_stock
        lines = [(item.product_id, item.quantity, item.name) for item in order.items]
        db.session.expunge(order)

        try:
            with store_errors():
                # Only the caller that actually removes the row gives the stock back
                result = db.session.execute(
                    delete(Order)
                    .where(Order.id == order_pk, Order.status == old_status)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.session.rollback()
                    return rejection(RejectionReason.INVALID_TRANSITION,
                                     f"Order {order_code} was changed meanwhile, please reload")

                db.session.execute(
                    delete(OrderItem)
                    .where(OrderItem.order_pk == order_pk)
                    .execution_options(synchronize_session=False)
                )

                if holds_stock:
                    InventoryService.restore_lines(order_code, lines, StockChangeType.ORDER_DELETE, user_id)

                db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"Deleting order {order_code} failed, nothing was changed")
            traceback.print_exc()
            raise

        current_app.logger.info(f"Order {order_code} deleted (stock restored: {holds_stock})")
        if old_status == OrderStatus.DELIVERED:
            _schedule_membership_refresh(phone)
        return {'status': 'success', 'order_id': order_code, 'stock_restored': holds_stock}

    @staticmethod
    def cancel_or_delete_order(order_pk, mode, user_id=None):
        handlers = {
            'cancel': OrderService.cancel_order,
            'return': OrderService.mark_returned,
            'delete': OrderService.delete_order,
        }
        handler = handlers.get(mode)
        if not handler:
            return rejection(RejectionReason.INVALID_STATUS, f"Unknown mode '{mode}'")
        return handler(order_pk, user_id)

    @staticmethod
    def list_orders(status=None, search=None, referral_code=None, member_id=None):
        query = Order.query
        if status and status != 'all':
            query = query.filter(Order.status == status)
        if referral_code:
            query = query.filter(Order.referral_code.ilike(f"%{referral_code.strip()}%"))
        if member_id:
            query = query.filter(Order.member_id == member_id)
        if search:
            term = search.strip()
            query = query.filter(or_(
                Order.order_id.ilike(f"%{term}%"),
                Order.customer_name.ilike(f"%{term}%"),
                Order.phone.contains(term)
            ))
        with store_errors():
            return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
