from unityshop.extensions import db

from .auth import User
from .store import Setting, Banner, Notice
from .catalog import Category, Product, StockHistory
from .promotion import Coupon, Referral, Member
from .order import Order, OrderItem
