import pytest

from unityshop.constants import DeliveryArea, DiscountType
from unityshop.errors import InvariantViolation
from unityshop.services.pricing import (
    compute_discount, compute_subtotal, compute_totals, delivery_charge_for, round_half_up, verify_totals
)


class TestDiscounts:
    def test_fixed_discount_is_the_value(self):
        assert compute_discount(DiscountType.FIXED, 150, 1000) == 150

    def test_percentage_rounds_half_up(self):
        assert compute_discount(DiscountType.PERCENTAGE, 10, 1005) == 101
        assert compute_discount(DiscountType.PERCENTAGE, 5, 1010) == 51
        assert compute_discount(DiscountType.PERCENTAGE, 5, 1000) == 50

    def test_unknown_type_is_refused(self):
        with pytest.raises(ValueError):
            compute_discount('bogus', 10, 1000)

    def test_round_half_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4) == 2


class TestTotals:
    def test_subtotal_sums_lines(self):
        items = [{'price': 500, 'quantity': 2}, {'price': 250, 'quantity': 1}]
        assert compute_subtotal(items) == 1250

    def test_delivery_charge_by_area(self):
        assert delivery_charge_for(DeliveryArea.LOCAL) == 60
        assert delivery_charge_for(DeliveryArea.REMOTE) == 120
        with pytest.raises(ValueError):
            delivery_charge_for('moon')

    def test_outside_area_with_fixed_coupon(self):
        totals = compute_totals([{'price': 1000, 'quantity': 1}], DeliveryArea.REMOTE, coupon_discount=100)
        assert totals == {'subtotal': 1000, 'delivery_charge': 120, 'discount': 100, 'total': 1020}

    def test_coupon_and_member_discounts_add_up(self):
        items = [{'price': 2000, 'quantity': 1}]
        member = compute_discount(DiscountType.PERCENTAGE, 5, 2000)
        totals = compute_totals(items, DeliveryArea.LOCAL, coupon_discount=200, member_discount=member)
        assert totals['discount'] == 300
        assert totals['total'] == 2000 + 60 - 300

    def test_no_discount(self):
        totals = compute_totals([{'price': 300, 'quantity': 3}], DeliveryArea.LOCAL)
        assert totals == {'subtotal': 900, 'delivery_charge': 60, 'discount': 0, 'total': 960}

    def test_discount_never_pushes_total_below_zero(self):
        totals = compute_totals([{'price': 100, 'quantity': 1}], DeliveryArea.LOCAL, coupon_discount=5000)
        assert totals['discount'] == 160
        assert totals['total'] == 0
        assert totals['total'] == totals['subtotal'] + totals['delivery_charge'] - totals['discount']

    def test_negative_discount_is_refused(self):
        with pytest.raises(ValueError):
            compute_totals([{'price': 100, 'quantity': 1}], DeliveryArea.LOCAL, coupon_discount=-1)

    def test_breakdown_identity_holds(self):
        for area in DeliveryArea.ALL:
            for coupon in (0, 50, 999, 10000):
                totals = compute_totals([{'price': 450, 'quantity': 2}], area, coupon_discount=coupon)
                assert totals['total'] == totals['subtotal'] + totals['delivery_charge'] - totals['discount']
                assert totals['total'] >= 0


class TestVerifyTotals:
    def test_inconsistent_breakdown_raises(self):
        with pytest.raises(InvariantViolation):
            verify_totals({'subtotal': 1000, 'delivery_charge': 60, 'discount': 0, 'total': 1000})

    def test_negative_total_raises(self):
        with pytest.raises(InvariantViolation):
            verify_totals({'subtotal': 0, 'delivery_charge': 0, 'discount': 10, 'total': -10})


def test_ten_percent_of_999_rounds_to_100():
    assert compute_discount(DiscountType.PERCENTAGE, 10, 999) == 100


def test_outside_area_with_ten_percent_coupon():
    discount = compute_discount(DiscountType.PERCENTAGE, 10, 1000)
    totals = compute_totals([{'price': 1000, 'quantity': 1}], DeliveryArea.REMOTE, coupon_discount=discount)
    assert totals == {'subtotal': 1000, 'delivery_charge': 120, 'discount': 100, 'total': 1020}
