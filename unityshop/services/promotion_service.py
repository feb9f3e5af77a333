from flask import current_app
from sqlalchemy import func, case

from unityshop.extensions import db
from unityshop.models import Coupon, Referral, Member, Order
from unityshop.constants import DiscountType, OrderStatus, RejectionReason, MIN_PHONE_DIGITS
from unityshop.errors import store_errors, rejection
from unityshop.utils import normalize_code, count_digits, format_money, to_utc_naive, utcnow
from unityshop.services.pricing import compute_discount, round_half_up


def describe_discount(discount_type, discount_value):
    if discount_type == DiscountType.PERCENTAGE:
        return f"{discount_value}%"
    return format_money(discount_value)


class PromotionService:
    @staticmethod
    def validate_coupon(code, subtotal, now=None):
        """
        Check a coupon code against the current subtotal.

        Returns ``{'status': 'success', 'code', 'discount'}`` or a rejection.
        Validation only reads, so applying the same code twice gives the same answer.
        """
        normalized = normalize_code(code)
        if not normalized:
            return rejection(RejectionReason.INVALID_COUPON, 'Invalid coupon code')

        with store_errors():
            coupon = Coupon.query.filter_by(code=normalized, is_active=True).first()

        if not coupon:
            return rejection(RejectionReason.INVALID_COUPON, 'Invalid coupon code')

        now = to_utc_naive(now or utcnow())
        if coupon.expiry_date and to_utc_naive(coupon.expiry_date) < now:
            return rejection(RejectionReason.EXPIRED_COUPON, 'Coupon has expired')

        if coupon.min_purchase and subtotal < coupon.min_purchase:
            return rejection(
                RejectionReason.MIN_PURCHASE,
                f"Minimum purchase of {format_money(coupon.min_purchase)} required",
                min_purchase=coupon.min_purchase
            )

        discount = compute_discount(coupon.discount_type, coupon.discount_value, subtotal)
        return {'status': 'success', 'code': coupon.code, 'discount': discount}

    @staticmethod
    def validate_referral(code):
        normalized = normalize_code(code)
        if not normalized:
            return rejection(RejectionReason.INVALID_REFERRAL, 'Invalid referral code')

        with store_errors():
            referral = Referral.query.filter_by(code=normalized, is_active=True).first()

        if not referral:
            return rejection(RejectionReason.INVALID_REFERRAL, 'Invalid referral code')
        return {'status': 'success', 'code': referral.code}

    @staticmethod
    def detect_member(phone, subtotal):
        """Active member whose phone matches exactly, with the discount earned on ``subtotal``; else None."""
        phone = (phone or '').strip()
        if count_digits(phone) < MIN_PHONE_DIGITS:
            return None

        with store_errors():
            member = Member.query.filter_by(phone=phone, is_active=True).first()

        if not member:
            return None

        discount = compute_discount(member.discount_type, member.discount_value, subtotal)
        return {
            'member_id': member.id,
            'member_code': member.member_code,
            'name': member.name,
            'discount_type': member.discount_type,
            'discount_value': member.discount_value,
            'discount': discount,
            'message': f"Welcome back, {member.name}! Member discount of "
                       f"{describe_discount(member.discount_type, member.discount_value)} applied",
        }

    @staticmethod
    def referral_report():
        delivered = case((Order.status == OrderStatus.DELIVERED, 1), else_=0)
        delivered_total = case((Order.status == OrderStatus.DELIVERED, Order.total), else_=0)

        with store_errors():
            stats = db.session.query(
                Order.referral_code,
                func.count(Order.id),
                func.sum(delivered),
                func.sum(delivered_total)
            ).filter(Order.referral_code.isnot(None)).group_by(Order.referral_code).all()
            referrals = Referral.query.order_by(Referral.created_at.desc()).all()

        stats_map = {row[0]: row[1:] for row in stats}
        report = []
        for referral in referrals:
            total_orders, completed_orders, total_sales = stats_map.get(referral.code, (0, 0, 0))
            completed_orders = int(completed_orders or 0)
            total_sales = int(total_sales or 0)

            if referral.commission_type == DiscountType.FIXED:
                commission = completed_orders * referral.commission_value
            else:
                commission = round_half_up(total_sales * referral.commission_value / 100)

            report.append({
                **referral.to_dict(),
                'total_orders': int(total_orders or 0),
                'completed_orders': completed_orders,
                'total_sales': total_sales,
                'commission': commission,
            })

        current_app.logger.info(f"Referral report built for {len(report)} referral codes")
        return report
