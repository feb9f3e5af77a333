from . import db
from datetime import datetime
from unityshop.constants import DiscountType

class Coupon(db.Model):
    __tablename__ = 'coupons'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True, index=True)

    discount_type = db.Column(db.String(20), nullable=False, default=DiscountType.FIXED)
    discount_value = db.Column(db.Integer, nullable=False)
    min_purchase = db.Column(db.Integer, nullable=True, default=0)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Informational only, never enforced as a limit
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'min_purchase': self.min_purchase,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
            'is_active': self.is_active,
            'usage_count': self.usage_count,
        }

class Referral(db.Model):
    __tablename__ = 'referrals'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    referrer_name = db.Column(db.String(100), nullable=False)

    commission_type = db.Column(db.String(20), nullable=False, default=DiscountType.FIXED)
    commission_value = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'referrer_name': self.referrer_name,
            'commission_type': self.commission_type,
            'commission_value': self.commission_value,
            'is_active': self.is_active,
        }

class Member(db.Model):
    __tablename__ = 'members'
    id = db.Column(db.Integer, primary_key=True)
    member_code = db.Column(db.String(30), nullable=False, unique=True, index=True)

    phone = db.Column(db.String(20), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(500), nullable=True)
    email = db.Column(db.String(200), nullable=True)

    discount_type = db.Column(db.String(20), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = db.Column(db.Integer, nullable=False, default=5)

    total_purchases = db.Column(db.Integer, default=0, nullable=False)
    order_count = db.Column(db.Integer, default=0, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)

    orders = db.relationship('Order', back_populates='member', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'member_code': self.member_code,
            'phone': self.phone,
            'name': self.name,
            'address': self.address,
            'email': self.email,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'total_purchases': self.total_purchases,
            'order_count': self.order_count,
            'is_active': self.is_active,
        }
