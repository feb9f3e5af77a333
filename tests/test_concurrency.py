import threading

from unityshop.constants import OrderStatus, RejectionReason
from unityshop.extensions import db
from unityshop.models import Order, Product
from unityshop.services.order_service import OrderService


def test_last_unit_is_sold_once(app, make_product, customer):
    product = make_product(name='Last One', stock=1)
    product_id = product.id
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def checkout(phone):
        with app.app_context():
            try:
                barrier.wait(timeout=10)
                result = OrderService.submit_order(
                    [{'product_id': product_id, 'quantity': 1}],
                    dict(customer, phone=phone)
                )
                results.append(result)
            except Exception as e:
                errors.append(e)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=checkout, args=(phone,)) for phone in ('01711111111', '01722222222')]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    assert len(results) == 2
    succeeded = [r for r in results if r['status'] == 'success']
    rejected = [r for r in results if r['status'] == 'error']
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert rejected[0]['reason'] in RejectionReason.STOCK

    db.session.expire_all()
    assert db.session.get(Product, product_id).stock_quantity == 0
    assert Order.query.count() == 1


def test_concurrent_cancel_restores_once(app, make_product, customer):
    product = make_product(stock=2)
    product_id = product.id
    order_pk = OrderService.submit_order([{'product_id': product_id, 'quantity': 1}], customer)['order']['id']
    barrier = threading.Barrier(2)
    results = []

    def cancel():
        with app.app_context():
            try:
                barrier.wait(timeout=10)
                results.append(OrderService.cancel_order(order_pk))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=cancel) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert len(results) == 2
    db.session.expire_all()
    assert db.session.get(Product, product_id).stock_quantity == 2
    assert db.session.get(Order, order_pk).status == OrderStatus.CANCELLED
