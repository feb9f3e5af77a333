from datetime import datetime, timedelta, timezone

from unityshop.constants import DeliveryArea, OrderStatus, RejectionReason, StockChangeType
from unityshop.extensions import db
from unityshop.models import Coupon, Order, OrderItem, Product, StockHistory
from unityshop.services.inventory_service import InventoryService
from unityshop.services.order_service import OrderService, validate_customer


def stock_of(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_quantity


def line(product, quantity=1, size=None):
    return {'product_id': product.id, 'quantity': quantity, 'size': size, 'name': product.name}


class TestValidateCustomer:
    def test_valid(self, customer):
        errors, fields = validate_customer(customer)
        assert errors == []
        assert fields['delivery_area'] == DeliveryArea.LOCAL

    def test_each_field_is_checked(self):
        errors, _ = validate_customer({
            'customer_name': 'A', 'phone': '12345', 'address': 'short', 'delivery_area': 'mars'
        })
        assert len(errors) == 4

    def test_over_long_fields_get_their_own_messages(self, customer):
        errors, _ = validate_customer(dict(customer, customer_name='N' * 101, phone='0171234567890123'))
        assert errors == [
            'Name can not be longer than 100 characters',
            'Phone number can not be longer than 15 characters',
        ]


class TestSubmitOrder:
    def test_creates_order_and_reserves_stock(self, app, make_product, customer):
        product = make_product(price=1000, stock=3)

        result = OrderService.submit_order([line(product)], customer)

        assert result['status'] == 'success'
        order = result['order']
        assert order['order_id'] == 'UC-0001'
        assert order['status'] == OrderStatus.PENDING
        assert result['totals'] == {'subtotal': 1000, 'delivery_charge': 60, 'discount': 0, 'total': 1060}
        assert stock_of(product.id) == 2

        history = StockHistory.query.filter_by(product_id=product.id).one()
        assert history.change_type == StockChangeType.ORDER
        assert history.quantity_change == -1
        assert history.order_id == 'UC-0001'

    def test_order_ids_are_sequential(self, app, make_product, customer):
        product = make_product(stock=5)
        first = OrderService.submit_order([line(product)], customer)
        second = OrderService.submit_order([line(product)], customer)
        assert first['order']['order_id'] == 'UC-0001'
        assert second['order']['order_id'] == 'UC-0002'

    def test_whatsapp_link(self, app, make_product, customer):
        product = make_product(name='Jamdani Saree', stock=2)
        result = OrderService.submit_order([line(product)], customer)
        url = result['whatsapp_url']
        assert url.startswith('https://wa.me/8801880545357?text=')
        assert 'UC-0001' in url
        assert 'Inside%20Rajshahi' in url

    def test_remote_area_with_coupon(self, app, make_product, make_coupon, customer):
        product = make_product(price=1000, stock=2)
        make_coupon(code='SAVE100', discount_value=100)
        customer['delivery_area'] = DeliveryArea.REMOTE

        result = OrderService.submit_order([line(product)], customer, coupon_code='save100')

        assert result['totals'] == {'subtotal': 1000, 'delivery_charge': 120, 'discount': 100, 'total': 1020}
        assert result['order']['coupon_code'] == 'SAVE100'
        db.session.expire_all()
        assert Coupon.query.filter_by(code='SAVE100').one().usage_count == 1

    def test_uses_live_discounted_price(self, app, make_product, customer):
        product = make_product(price=1000, discount_price=800, stock=2)
        result = OrderService.submit_order([line(product, quantity=2)], customer)
        assert result['order']['items'][0]['price'] == 800
        assert result['totals']['subtotal'] == 1600

    def test_zero_discount_price_sells_at_full_price(self, app, make_product, customer):
        product = make_product(price=1000, discount_price=0, stock=2)
        result = OrderService.submit_order([line(product)], customer)
        assert result['order']['items'][0]['price'] == 1000
        assert result['totals'] == {'subtotal': 1000, 'delivery_charge': 60, 'discount': 0, 'total': 1060}

    def test_referral_is_recorded_without_price_effect(self, app, make_product, make_referral, customer):
        product = make_product(price=1000, stock=2)
        make_referral(code='RAHIM')
        result = OrderService.submit_order([line(product)], customer, referral_code='rahim')
        assert result['order']['referral_code'] == 'RAHIM'
        assert result['totals']['discount'] == 0

    def test_member_discount_applied(self, app, make_product, make_member, customer):
        product = make_product(price=2000, stock=2)
        member = make_member(phone=customer['phone'], discount_value=5)
        result = OrderService.submit_order([line(product)], customer)
        assert result['totals']['discount'] == 100
        assert result['order']['member_id'] == member.id
        assert result['member']['member_code'] == member.member_code

    def test_rejections_leave_no_order(self, app, make_product, make_coupon, make_referral, customer):
        product = make_product(price=1000, stock=2, sizes=['S', 'M'])
        make_coupon(code='OLD', expiry_date=datetime.now(timezone.utc) - timedelta(days=1))

        cases = [
            (([line(product, size='M')], dict(customer, phone='123')), {}, RejectionReason.INVALID_CUSTOMER),
            (([], customer), {}, RejectionReason.EMPTY_CART),
            (([line(product, size='XL')], customer), {}, RejectionReason.INVALID_SIZE),
            (([line(product, quantity=0, size='M')], customer), {}, RejectionReason.INVALID_QUANTITY),
            (([line(product, size='M')], customer), {'coupon_code': 'OLD'}, RejectionReason.EXPIRED_COUPON),
            (([line(product, size='M')], customer), {'coupon_code': 'NONE'}, RejectionReason.INVALID_COUPON),
            (([line(product, size='M')], customer), {'referral_code': 'NONE'}, RejectionReason.INVALID_REFERRAL),
        ]
        for args, kwargs, reason in cases:
            result = OrderService.submit_order(*args, **kwargs)
            assert result['status'] == 'error'
            assert result['reason'] == reason

        assert Order.query.count() == 0
        assert stock_of(product.id) == 2

    def test_inactive_product(self, app, make_product, customer):
        product = make_product(is_active=False)
        result = OrderService.submit_order([line(product)], customer)
        assert result['reason'] == RejectionReason.PRODUCT_UNAVAILABLE

    def test_insufficient_stock_names_the_product(self, app, make_product, customer):
        plenty = make_product(name='Plenty', stock=10)
        scarce = make_product(name='Scarce', stock=1)

        result = OrderService.submit_order([line(plenty, 2), line(scarce, 2)], customer)

        assert result['reason'] == RejectionReason.INSUFFICIENT_STOCK
        assert 'Scarce' in result['message']
        assert Order.query.count() == 0
        assert stock_of(plenty.id) == 10
        assert stock_of(scarce.id) == 1

    def test_same_product_on_two_lines_counts_together(self, app, make_product, customer):
        product = make_product(stock=3, sizes=['S', 'M'])
        result = OrderService.submit_order([line(product, 2, 'S'), line(product, 2, 'M')], customer)
        assert result['reason'] == RejectionReason.INSUFFICIENT_STOCK
        assert stock_of(product.id) == 3

    def test_failed_reservation_rolls_back_every_line(self, app, make_product, make_coupon, customer, monkeypatch):
        first = make_product(name='First', stock=5)
        second = make_product(name='Second', stock=5)
        make_coupon(code='SAVE100')
        reserve = InventoryService.reserve

        def lose_race(product_id, quantity, order_code=None, user_id=None):
            if product_id == second.id:
                return False
            return reserve(product_id, quantity, order_code, user_id)

        monkeypatch.setattr(InventoryService, 'reserve', staticmethod(lose_race))

        result = OrderService.submit_order([line(first), line(second)], customer, coupon_code='SAVE100')

        assert result['status'] == 'error'
        assert result['reason'] == RejectionReason.STOCK_CONFLICT
        assert 'Second' in result['message']
        assert Order.query.count() == 0
        assert OrderItem.query.count() == 0
        assert StockHistory.query.count() == 0
        assert stock_of(first.id) == 5
        assert Coupon.query.filter_by(code='SAVE100').one().usage_count == 0

    def test_buy_now(self, app, make_product, customer):
        product = make_product(stock=1, sizes=['M'])
        result = OrderService.buy_now(product.id, 'M', customer)
        assert result['status'] == 'success'
        assert result['order']['items'][0]['quantity'] == 1
        assert stock_of(product.id) == 0

        again = OrderService.buy_now(product.id, 'M', customer)
        assert again['reason'] == RejectionReason.INSUFFICIENT_STOCK
        assert again['message'] == 'Sorry, this product is now out of stock'


class TestPreviewTotals:
    def test_preview_matches_submission(self, app, make_product, make_coupon, customer):
        product = make_product(price=1000, stock=2)
        make_coupon(code='SAVE100')
        preview = OrderService.preview_totals([line(product)], DeliveryArea.REMOTE, coupon_code='SAVE100')
        assert preview['totals']['total'] == 1020
        assert stock_of(product.id) == 2


class TestStatusChanges:
    def _order(self, make_product, customer, stock=3, quantity=1):
        product = make_product(stock=stock)
        result = OrderService.submit_order([line(product, quantity)], customer)
        return product, result['order']['id']

    def test_plain_relabel_keeps_stock(self, app, make_product, customer):
        product, order_pk = self._order(make_product, customer)
        for status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.PENDING):
            result = OrderService.update_status(order_pk, status)
            assert result['status'] == 'success'
            assert result['order']['status'] == status
        assert stock_of(product.id) == 2

    def test_same_status_is_a_no_op(self, app, make_product, customer):
        _, order_pk = self._order(make_product, customer)
        result = OrderService.update_status(order_pk, OrderStatus.PENDING)
        assert result['changed'] is False

    def test_return_restores_stock_and_keeps_order(self, app, make_product, customer):
        product, order_pk = self._order(make_product, customer, stock=3, quantity=2)
        assert stock_of(product.id) == 1

        result = OrderService.mark_returned(order_pk)

        assert result['order']['status'] == OrderStatus.RETURNED
        assert stock_of(product.id) == 3
        assert db.session.get(Order, order_pk) is not None
        restore = StockHistory.query.filter_by(change_type=StockChangeType.RETURN).one()
        assert restore.quantity_change == 2

    def test_stock_comes_back_only_once(self, app, make_product, customer):
        product, order_pk = self._order(make_product, customer)
        OrderService.cancel_order(order_pk)
        assert stock_of(product.id) == 3

        for status in (OrderStatus.RETURNED, OrderStatus.CANCELLED, OrderStatus.PENDING):
            result = OrderService.update_status(order_pk, status)
            if status == OrderStatus.CANCELLED:
                assert result['changed'] is False
            else:
                assert result['reason'] == RejectionReason.INVALID_TRANSITION
        assert stock_of(product.id) == 3

    def test_unknown_status_and_order(self, app, make_product, customer):
        _, order_pk = self._order(make_product, customer)
        assert OrderService.update_status(order_pk, 'lost')['reason'] == RejectionReason.INVALID_STATUS
        assert OrderService.update_status(9999, OrderStatus.SHIPPED)['reason'] == RejectionReason.ORDER_NOT_FOUND


class TestDeleteOrder:
    def test_delete_restores_stock(self, app, make_product, customer):
        product = make_product(stock=3)
        order_pk = OrderService.submit_order([line(product)], customer)['order']['id']
        assert stock_of(product.id) == 2

        result = OrderService.delete_order(order_pk)

        assert result == {'status': 'success', 'order_id': 'UC-0001', 'stock_restored': True}
        assert stock_of(product.id) == 3
        assert db.session.get(Order, order_pk) is None
        assert OrderItem.query.count() == 0
        assert StockHistory.query.filter_by(change_type=StockChangeType.ORDER_DELETE).count() == 1

    def test_delete_delivered_order(self, app, make_product, customer):
        product = make_product(stock=3)
        order_pk = OrderService.submit_order([line(product)], customer)['order']['id']
        OrderService.update_status(order_pk, OrderStatus.DELIVERED)
        assert stock_of(product.id) == 2

        assert OrderService.delete_order(order_pk)['stock_restored'] is True
        assert stock_of(product.id) == 3
        assert Order.query.count() == 0

    def test_delete_after_cancel_does_not_restore_twice(self, app, make_product, customer):
        product = make_product(stock=3)
        order_pk = OrderService.submit_order([line(product)], customer)['order']['id']
        OrderService.cancel_order(order_pk)

        result = OrderService.delete_order(order_pk)

        assert result['stock_restored'] is False
        assert stock_of(product.id) == 3

    def test_delete_skips_removed_product(self, app, make_order):
        order = make_order(total_items=((500, 1),))
        result = OrderService.delete_order(order.id)
        assert result['status'] == 'success'
        assert Order.query.count() == 0

    def test_missing_order(self, app):
        assert OrderService.delete_order(4242)['reason'] == RejectionReason.ORDER_NOT_FOUND

    def test_cancel_or_delete_modes(self, app, make_product, customer):
        product = make_product(stock=5)
        orders = [OrderService.submit_order([line(product)], customer)['order']['id'] for _ in range(3)]
        assert stock_of(product.id) == 2

        assert OrderService.cancel_or_delete_order(orders[0], 'cancel')['order']['status'] == OrderStatus.CANCELLED
        assert OrderService.cancel_or_delete_order(orders[1], 'return')['order']['status'] == OrderStatus.RETURNED
        assert OrderService.cancel_or_delete_order(orders[2], 'delete')['status'] == 'success'
        assert OrderService.cancel_or_delete_order(orders[0], 'shred')['reason'] == RejectionReason.INVALID_STATUS
        assert stock_of(product.id) == 5


class TestListOrders:
    def test_filters(self, app, make_order):
        make_order(status=OrderStatus.PENDING, phone='01711111111', referral_code='RAHIM')
        make_order(status=OrderStatus.DELIVERED, phone='01722222222')

        assert len(OrderService.list_orders()) == 2
        assert len(OrderService.list_orders(status=OrderStatus.DELIVERED)) == 1
        assert len(OrderService.list_orders(status='all')) == 2
        assert len(OrderService.list_orders(search='0172222')) == 1
        assert len(OrderService.list_orders(referral_code='rahim')) == 1
