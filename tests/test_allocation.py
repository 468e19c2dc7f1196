"""
Test suite for allocation module

Default interest/principal split of ad-hoc payments and caller-supplied splits.
"""

import random
import pytest
from decimal import Decimal

from loan_ledger.allocation import PaymentAllocation, allocate_payment, custom_split, period_interest
from loan_ledger.currency import CENT, ZERO
from loan_ledger.errors import InvalidPayment, InvalidRate


class TestAllocatePayment:
    """Test the default split"""

    def test_interest_first(self):
        allocation = allocate_payment(Decimal('1000'), Decimal('0.12'), Decimal('100'))
        assert allocation.interest == Decimal('10.00')
        assert allocation.principal == Decimal('90.00')
        assert allocation.total == Decimal('100.00')
        assert not allocation.custom

    def test_interest_capped_at_payment(self):
        allocation = allocate_payment(Decimal('1000'), Decimal('0.12'), Decimal('5'))
        assert allocation.interest == Decimal('5')
        assert allocation.principal == ZERO

    def test_weekly_interest_periods(self):
        allocation = allocate_payment(Decimal('5200'), Decimal('0.52'), Decimal('100'), 52)
        assert allocation.interest == Decimal('52.00')
        assert allocation.principal == Decimal('48.00')

    def test_zero_rate_is_all_principal(self):
        allocation = allocate_payment(Decimal('1000'), Decimal('0'), Decimal('250'))
        assert allocation.interest == ZERO
        assert allocation.principal == Decimal('250')

    def test_overpayment_principal_not_capped(self):
        """Principal above the balance is allowed here; the projector clamps"""
        allocation = allocate_payment(Decimal('50'), Decimal('0.12'), Decimal('200'))
        assert allocation.interest == Decimal('0.50')
        assert allocation.principal == Decimal('199.50')

    def test_paid_off_balance(self):
        allocation = allocate_payment(Decimal('0'), Decimal('0.12'), Decimal('20'))
        assert allocation.interest == ZERO
        assert allocation.principal == Decimal('20')

    @pytest.mark.parametrize("total", [0, -10, "NaN", "Infinity"])
    def test_invalid_total(self, total):
        with pytest.raises(InvalidPayment):
            allocate_payment(Decimal('1000'), Decimal('0.12'), total)

    def test_negative_balance(self):
        with pytest.raises(InvalidPayment):
            allocate_payment(Decimal('-1'), Decimal('0.12'), Decimal('10'))

    def test_invalid_rate(self):
        with pytest.raises(InvalidRate):
            allocate_payment(Decimal('1000'), Decimal('1.2'), Decimal('10'))

    def test_invalid_interest_periods(self):
        with pytest.raises(ValueError):
            allocate_payment(Decimal('1000'), Decimal('0.12'), Decimal('10'), 0)

    def test_period_interest(self):
        assert period_interest(Decimal('1105.38'), Decimal('0.12'), 12) == Decimal('11.05')


class TestAllocationProperties:
    """Randomized sweep over balances and payments"""

    def test_split_bounds(self):
        rng = random.Random(7)
        for _ in range(500):
            balance = Decimal(rng.randint(0, 10_000_000)) / Decimal(100)
            rate = Decimal(rng.randint(0, 10000)) / Decimal(10000)
            total = Decimal(rng.randint(1, 1_000_000)) / Decimal(1000)
            periods = rng.choice([1, 4, 12, 26, 52])

            allocation = allocate_payment(balance, rate, total, periods)

            assert ZERO <= allocation.interest <= total
            assert allocation.principal >= ZERO
            assert abs(allocation.principal + allocation.interest - total) <= CENT


class TestCustomSplit:
    """Test caller-supplied splits"""

    def test_accepted_as_given(self):
        allocation = custom_split(Decimal('480'), Decimal('20'))
        assert allocation == PaymentAllocation(Decimal('480'), Decimal('20'), custom=True)
        assert allocation.total == Decimal('500')

    def test_all_principal(self):
        allocation = custom_split("50", "0")
        assert allocation.interest == ZERO
        assert allocation.total == Decimal('50')

    def test_negative_part_rejected(self):
        with pytest.raises(InvalidPayment):
            custom_split(Decimal('-1'), Decimal('20'))

    def test_empty_payment_rejected(self):
        with pytest.raises(InvalidPayment):
            custom_split(Decimal('0'), Decimal('0'))

    def test_to_dict(self):
        assert custom_split(Decimal('90.00'), Decimal('10.00')).to_dict() == {
            'total': '100.00',
            'principal': '90.00',
            'interest': '10.00',
            'custom': True,
        }
