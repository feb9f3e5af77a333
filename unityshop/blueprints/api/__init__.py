from flask import Blueprint

# Storefront endpoints called by anonymous shoppers
shop_bp = Blueprint('shop', __name__)

# Back-office endpoints, admin login required
api_bp = Blueprint('api', __name__)

from . import shop, cart, admin, orders, tasks
