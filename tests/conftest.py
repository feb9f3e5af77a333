import os
import pytest

os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from unityshop import create_app
from unityshop.config import Config
from unityshop.extensions import db
from unityshop.models import User, Category, Product, Coupon, Referral, Member, Order, OrderItem
from unityshop.constants import OrderStatus, DeliveryArea, DiscountType


@pytest.fixture
def app(tmp_path):
    # A file database so worker threads and eager tasks see committed rows
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'unityshop-test.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30}}
        CACHE_TYPE = 'SimpleCache'
        WTF_CSRF_ENABLED = False
        CELERY = {
            'broker_url': 'memory://',
            'result_backend': 'cache+memory://',
            'task_always_eager': True,
            'task_eager_propagates': True,
        }

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    user = User(username='admin', is_admin=True)
    user.set_password('secret')
    db.session.add(user)
    db.session.commit()

    client = app.test_client()
    response = client.post('/auth/login', json={'username': 'admin', 'password': 'secret'})
    assert response.status_code == 200
    return client


@pytest.fixture
def make_product():
    def _make(name='Silk Saree', price=1000, stock=5, sizes=None, discount_price=None,
              category=None, is_active=True, is_featured=False, description=None):
        product = Product(
            name=name, price=price, stock_quantity=stock, sizes=sizes,
            discount_price=discount_price, category=category,
            is_active=is_active, is_featured=is_featured, description=description
        )
        db.session.add(product)
        db.session.commit()
        return product
    return _make


@pytest.fixture
def make_category():
    def _make(name='Sarees'):
        category = Category(name=name)
        db.session.add(category)
        db.session.commit()
        return category
    return _make


@pytest.fixture
def make_coupon():
    def _make(code='SAVE100', discount_type=DiscountType.FIXED, discount_value=100,
              min_purchase=0, expiry_date=None, is_active=True):
        coupon = Coupon(code=code, discount_type=discount_type, discount_value=discount_value,
                        min_purchase=min_purchase, expiry_date=expiry_date, is_active=is_active)
        db.session.add(coupon)
        db.session.commit()
        return coupon
    return _make


@pytest.fixture
def make_referral():
    def _make(code='RAHIM', referrer_name='Rahim', commission_type=DiscountType.FIXED,
              commission_value=50, is_active=True):
        referral = Referral(code=code, referrer_name=referrer_name, commission_type=commission_type,
                            commission_value=commission_value, is_active=is_active)
        db.session.add(referral)
        db.session.commit()
        return referral
    return _make


@pytest.fixture
def make_member():
    def _make(phone='01712345678', name='Ayesha', discount_type=DiscountType.PERCENTAGE,
              discount_value=5, is_active=True, code='UCM-9001'):
        member = Member(member_code=code, phone=phone, name=name, discount_type=discount_type,
                        discount_value=discount_value, is_active=is_active)
        db.session.add(member)
        db.session.commit()
        return member
    return _make


@pytest.fixture
def make_order():
    """Order rows written straight to the table, bypassing stock reservation."""
    counter = {'n': 0}

    def _make(total_items=((1000, 1),), status=OrderStatus.PENDING, phone='01712345678',
              referral_code=None, delivery_area=DeliveryArea.LOCAL, discount=0, product=None):
        counter['n'] += 1
        subtotal = sum(price * qty for price, qty in total_items)
        delivery = DeliveryArea.CHARGES[delivery_area]
        order = Order(
            order_id=f"UC-T{counter['n']:04d}",
            customer_name='Test Customer',
            phone=phone,
            address='House 1, Road 2, Rajshahi',
            delivery_area=delivery_area,
            subtotal=subtotal,
            delivery_charge=delivery,
            discount_amount=discount,
            total=subtotal + delivery - discount,
            referral_code=referral_code,
            status=status
        )
        for position, (price, qty) in enumerate(total_items):
            order.items.append(OrderItem(
                position=position, product_id=product.id if product else None,
                name=product.name if product else 'Item', price=price, quantity=qty
            ))
        db.session.add(order)
        db.session.commit()
        return order
    return _make


@pytest.fixture
def customer():
    return {
        'customer_name': 'Nusrat Jahan',
        'phone': '01712345678',
        'address': 'House 12, Road 5, Upashahar, Rajshahi',
        'delivery_area': DeliveryArea.LOCAL,
    }
