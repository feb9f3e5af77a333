import traceback
from flask import current_app
from sqlalchemy import func, update

from unityshop.extensions import db
from unityshop.models import Member, Order
from unityshop.constants import OrderStatus
from unityshop.errors import store_errors
from unityshop.utils import provisional_code, sequential_code
from unityshop.services.settings_service import SettingsService


class MembershipService:
    @staticmethod
    def delivered_totals(phone):
        """(total spent, order count) over the delivered orders placed with ``phone``."""
        total, count = db.session.query(
            func.coalesce(func.sum(Order.total), 0),
            func.count(Order.id)
        ).filter(Order.phone == phone, Order.status == OrderStatus.DELIVERED).one()
        return int(total or 0), int(count or 0)

    @staticmethod
    def refresh_membership(phone):
        """
        Recompute a customer's purchase totals from their delivered orders.

        An existing member gets fresh totals. A customer who is not a member yet
        is enrolled with the default discount once the delivered total reaches
        the membership threshold.
        """
        phone = (phone or '').strip()
        if not phone:
            return {'status': 'error', 'message': 'Phone number is required'}

        try:
            with store_errors():
                total, count = MembershipService.delivered_totals(phone)
                member = Member.query.filter_by(phone=phone).first()

                if member:
                    member.total_purchases = total
                    member.order_count = count
                    db.session.commit()
                    return {'status': 'success', 'action': 'updated', 'member': member.to_dict()}

                settings = SettingsService.load_checkout_settings()
                if count == 0 or total < settings.membership_threshold:
                    return {'status': 'success', 'action': 'none', 'total_purchases': total}

                latest = Order.query.filter_by(phone=phone).order_by(Order.created_at.desc(), Order.id.desc()).first()
                prefix = current_app.config.get('MEMBER_CODE_PREFIX', 'UCM')
                member = Member(
                    member_code=provisional_code(prefix),
                    phone=phone,
                    name=latest.customer_name,
                    address=latest.address,
                    discount_type=settings.default_discount_type,
                    discount_value=settings.default_discount_value,
                    total_purchases=total,
                    order_count=count,
                    is_active=True
                )
                db.session.add(member)
                db.session.flush()
                member.member_code = sequential_code(prefix, member.id)

                db.session.execute(
                    update(Order)
                    .where(Order.phone == phone, Order.member_id.is_(None))
                    .values(member_id=member.id)
                    .execution_options(synchronize_session=False)
                )
                db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"Membership refresh failed for {phone}")
            traceback.print_exc()
            raise

        current_app.logger.info(f"New member {member.member_code} ({phone}), delivered purchases {total}")
        return {'status': 'success', 'action': 'created', 'member': member.to_dict()}

    @staticmethod
    def member_orders(member_id):
        with store_errors():
            member = db.session.get(Member, member_id)
            if not member:
                return None, []
            orders = member.orders.order_by(Order.created_at.desc(), Order.id.desc()).all()
        return member, orders
