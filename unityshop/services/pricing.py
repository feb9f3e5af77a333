"""
Order money breakdown.

Everything here is pure: no database, no request state. Amounts are integers in
the shop currency; percentage discounts are rounded half-up to a whole unit.
"""
from decimal import Decimal, ROUND_HALF_UP

from unityshop.constants import DeliveryArea, DiscountType
from unityshop.errors import InvariantViolation


def round_half_up(value):
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_discount(discount_type, discount_value, subtotal):
    """Discount granted by a coupon or membership on ``subtotal``."""
    if discount_type == DiscountType.FIXED:
        return int(discount_value)
    if discount_type == DiscountType.PERCENTAGE:
        return round_half_up(Decimal(subtotal) * Decimal(str(discount_value)) / 100)
    raise ValueError(f"Unknown discount type: {discount_type}")


def compute_subtotal(items):
    return sum(int(item['price']) * int(item['quantity']) for item in items)


def delivery_charge_for(delivery_area, charges=None):
    charges = charges or DeliveryArea.CHARGES
    if delivery_area not in charges:
        raise ValueError(f"Unknown delivery area: {delivery_area}")
    return charges[delivery_area]


def compute_totals(items, delivery_area, coupon_discount=0, member_discount=0, charges=None):
    """
    Breakdown for a list of ``{'price', 'quantity'}`` lines.

    Referral codes never reach this function: they carry no price effect.
    The combined discount is capped at subtotal + delivery so the total can
    not go below zero.
    """
    if coupon_discount < 0 or member_discount < 0:
        raise ValueError("Discounts can not be negative")

    subtotal = compute_subtotal(items)
    delivery_charge = delivery_charge_for(delivery_area, charges)
    discount = min(coupon_discount + member_discount, subtotal + delivery_charge)
    total = subtotal + delivery_charge - discount

    totals = {
        'subtotal': subtotal,
        'delivery_charge': delivery_charge,
        'discount': discount,
        'total': total,
    }
    verify_totals(totals)
    return totals


def verify_totals(totals):
    subtotal = totals['subtotal']
    delivery_charge = totals['delivery_charge']
    discount = totals['discount']
    total = totals['total']

    if discount < 0 or total < 0:
        raise InvariantViolation(f"Negative amount in breakdown: {totals}")
    if total != subtotal + delivery_charge - discount:
        raise InvariantViolation(
            f"total {total} != subtotal {subtotal} + delivery {delivery_charge} - discount {discount}"
        )
