from . import db
from datetime import datetime
from decimal import Decimal
from sqlalchemy import CheckConstraint

from unityshop.services.pricing import round_half_up

class Category(db.Model):
    __tablename__ = 'categories'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    image_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)

    products = db.relationship('Product', back_populates='category', lazy='dynamic')

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'image_url': self.image_url}

class Product(db.Model):
    __tablename__ = 'products'
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True, index=True)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price = db.Column(db.Integer, nullable=False)
    discount_price = db.Column(db.Integer, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    sizes = db.Column(db.JSON, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    is_featured = db.Column(db.Boolean, default=False, nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('Category', back_populates='products')

    @property
    def has_discount(self):
        # A zero discount price means no discount, not a free item
        return bool(self.discount_price) and 0 < self.discount_price < self.price

    @property
    def effective_price(self):
        return self.discount_price if self.has_discount else self.price

    @property
    def discount_percent(self):
        if not self.has_discount or not self.price:
            return 0
        return round_half_up(Decimal(self.price - self.discount_price) * 100 / self.price)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'discount_price': self.discount_price,
            'effective_price': self.effective_price,
            'discount_percent': self.discount_percent,
            'stock_quantity': self.stock_quantity,
            'sizes': self.sizes or [],
            'image_url': self.image_url,
            'is_active': self.is_active,
            'is_featured': self.is_featured,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category else None,
        }

class StockHistory(db.Model):
    __tablename__ = 'stock_history'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    order_id = db.Column(db.String(30), nullable=True, index=True)

    change_type = db.Column(db.String(20), nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    current_quantity = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    description = db.Column(db.String(200))
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
