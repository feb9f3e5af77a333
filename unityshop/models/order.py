from . import db
from datetime import datetime
from sqlalchemy import CheckConstraint, Index
from unityshop.constants import OrderStatus, DeliveryArea

class Order(db.Model):
    __tablename__ = 'orders'
    __table_args__ = (
        CheckConstraint('total = subtotal + delivery_charge - discount_amount', name='ck_order_total'),
        CheckConstraint('discount_amount >= 0', name='ck_order_discount_non_negative'),
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_referral_status', 'referral_code', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(30), nullable=False, unique=True, index=True)

    customer_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False, index=True)
    address = db.Column(db.String(500), nullable=False)
    delivery_area = db.Column(db.String(20), nullable=False, default=DeliveryArea.LOCAL)

    subtotal = db.Column(db.Integer, nullable=False)
    delivery_charge = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)

    coupon_code = db.Column(db.String(50), nullable=True)
    referral_code = db.Column(db.String(50), nullable=True)
    # Weak reference: deleting a member keeps the order
    member_id = db.Column(db.Integer, db.ForeignKey('members.id', ondelete='SET NULL'), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                            order_by='OrderItem.position')
    member = db.relationship('Member', back_populates='orders')

    @property
    def holds_stock(self):
        return self.status not in OrderStatus.STOCK_RESTORED

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'customer_name': self.customer_name,
            'phone': self.phone,
            'address': self.address,
            'delivery_area': self.delivery_area,
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'delivery_charge': self.delivery_charge,
            'discount_amount': self.discount_amount,
            'total': self.total,
            'coupon_code': self.coupon_code,
            'referral_code': self.referral_code,
            'member_id': self.member_id,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

class OrderItem(db.Model):
    """Line snapshot taken at checkout; later product edits do not touch it."""
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_pk = db.Column(db.Integer, db.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='SET NULL'), nullable=True)
    name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Integer, nullable=False)
    size = db.Column(db.String(20), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)

    order = db.relationship('Order', back_populates='items')

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'name': self.name,
            'price': self.price,
            'size': self.size,
            'quantity': self.quantity,
        }
