class OrderStatus:
    """Order status values"""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    RETURNED = 'returned'

    ALL = [PENDING, CONFIRMED, SHIPPED, DELIVERED, CANCELLED, RETURNED]

    # Stock for these orders has already been put back on the shelf
    STOCK_RESTORED = [CANCELLED, RETURNED]

class DeliveryArea:
    """Flat-rate delivery zones"""
    LOCAL = 'dhaka'
    REMOTE = 'outside'

    ALL = [LOCAL, REMOTE]

    CHARGES = {
        LOCAL: 60,
        REMOTE: 120,
    }

    LABELS = {
        LOCAL: 'Inside Rajshahi',
        REMOTE: 'Outside Rajshahi',
    }

class DiscountType:
    FIXED = 'fixed'
    PERCENTAGE = 'percentage'

    ALL = [FIXED, PERCENTAGE]

class BannerOverlay:
    """Tint drawn over a banner image"""
    GREEN = 'green'
    GOLD = 'gold'
    NONE = 'none'

    ALL = [GREEN, GOLD, NONE]

class RejectionReason:
    """Machine-readable reasons carried by {'status': 'error'} results"""
    INVALID_COUPON = 'INVALID_COUPON'
    EXPIRED_COUPON = 'EXPIRED_COUPON'
    MIN_PURCHASE = 'MIN_PURCHASE'
    INVALID_REFERRAL = 'INVALID_REFERRAL'
    INVALID_CUSTOMER = 'INVALID_CUSTOMER'
    EMPTY_CART = 'EMPTY_CART'
    PRODUCT_UNAVAILABLE = 'PRODUCT_UNAVAILABLE'
    INVALID_SIZE = 'INVALID_SIZE'
    INVALID_QUANTITY = 'INVALID_QUANTITY'
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK'
    STOCK_CONFLICT = 'STOCK_CONFLICT'
    ORDER_NOT_FOUND = 'ORDER_NOT_FOUND'
    INVALID_STATUS = 'INVALID_STATUS'
    INVALID_TRANSITION = 'INVALID_TRANSITION'

    STOCK = [INSUFFICIENT_STOCK, STOCK_CONFLICT]

class StockChangeType:
    """Stock movement types (StockHistory)"""
    ORDER = 'ORDER'                   # reserved by a new order
    CANCEL = 'CANCEL'                 # order cancelled
    RETURN = 'RETURN'                 # order returned
    ORDER_DELETE = 'ORDER_DELETE'     # order deleted by admin
    MANUAL_UPDATE = 'MANUAL_UPDATE'   # admin edit

class SettingKey:
    MEMBERSHIP_THRESHOLD = 'membership_threshold'
    DEFAULT_MEMBER_DISCOUNT = 'default_member_discount'

MIN_PHONE_DIGITS = 11
