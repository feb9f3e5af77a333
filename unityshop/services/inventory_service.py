from collections import OrderedDict
from flask import current_app
from sqlalchemy import update

from unityshop.extensions import db
from unityshop.models import Product, StockHistory
from unityshop.constants import StockChangeType


def group_quantities(lines):
    """Total quantity per product, in ascending product id order."""
    totals = OrderedDict()
    for product_id, quantity in sorted(lines, key=lambda line: line[0]):
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


class InventoryService:
    """
    Stock movements. Callers own the transaction: nothing here commits, so a
    reservation or restoration is rolled back together with the order change
    that caused it.
    """

    @staticmethod
    def reserve(product_id, quantity, order_code=None, user_id=None):
        """Take ``quantity`` units off the shelf if and only if they are all there."""
        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        InventoryService._record(product_id, -quantity, StockChangeType.ORDER, order_code, user_id)
        return True

    @staticmethod
    def restore(product_id, quantity, change_type, order_code=None, user_id=None):
        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current_app.logger.warning(
                f"Order {order_code}: product {product_id} no longer exists, {quantity} unit(s) not restored"
            )
            return False

        InventoryService._record(product_id, quantity, change_type, order_code, user_id)
        return True

    @staticmethod
    def restore_lines(order_code, lines, change_type, user_id=None):
        """Put back every ``(product_id, quantity, name)`` line of an order."""
        known = []
        for product_id, quantity, name in lines:
            if product_id is None:
                current_app.logger.warning(
                    f"Order {order_code}: '{name}' has no product, {quantity} unit(s) not restored"
                )
                continue
            known.append((product_id, quantity))

        restored = 0
        for product_id, quantity in group_quantities(known).items():
            if InventoryService.restore(product_id, quantity, change_type, order_code, user_id):
                restored += quantity
        current_app.logger.info(f"Order {order_code}: restored {restored} unit(s) ({change_type})")
        return restored

    @staticmethod
    def set_stock(product, new_quantity, user_id=None):
        change = new_quantity - product.stock_quantity
        product.stock_quantity = new_quantity
        if change:
            db.session.flush()
            InventoryService._record(product.id, change, StockChangeType.MANUAL_UPDATE, None, user_id)
        return change

    @staticmethod
    def _record(product_id, quantity_change, change_type, order_code, user_id):
        current_quantity = db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
        db.session.add(StockHistory(
            product_id=product_id,
            order_id=order_code,
            change_type=change_type,
            quantity_change=quantity_change,
            current_quantity=current_quantity if current_quantity is not None else 0,
            user_id=user_id
        ))
