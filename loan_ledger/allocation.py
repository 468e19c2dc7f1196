"""
Payment Allocation Module

Splits an ad-hoc payment into interest and principal. The computed split is
only a default: callers may supply their own split, which is accepted as
long as both parts are non-negative and the payment is positive.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict

from .currency import ZERO, Numeric, quantize_amount, to_decimal
from .errors import InvalidPayment
from .loans import validate_component, validate_payment_amount, validate_rate


DEFAULT_INTEREST_PERIODS_PER_YEAR = 12


@dataclass(frozen=True)
class PaymentAllocation:
    """Principal/interest split of a single payment"""
    principal: Decimal
    interest: Decimal
    custom: bool = False

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': str(self.total),
            'principal': str(self.principal),
            'interest': str(self.interest),
            'custom': self.custom,
        }


def period_interest(outstanding_balance: Decimal, annual_rate: Decimal,
                    periods_per_year: int) -> Decimal:
    """One period of interest on the outstanding balance, rounded to cents"""
    return quantize_amount(outstanding_balance * annual_rate / Decimal(periods_per_year))


def allocate_payment(
    outstanding_balance: Numeric,
    annual_rate: Numeric,
    proposed_total: Numeric,
    periods_per_year_for_interest: int = DEFAULT_INTEREST_PERIODS_PER_YEAR
) -> PaymentAllocation:
    """
    Compute the default split of a payment.

    Interest is one period's interest on the outstanding balance, capped at
    the payment itself; everything else goes to principal.

    Raises:
        InvalidPayment: proposed total not positive, or negative balance
        InvalidRate: annual rate outside [0, 1]
    """
    total = validate_payment_amount(proposed_total)
    annual_rate = validate_rate(annual_rate)
    try:
        balance = to_decimal(outstanding_balance)
    except ValueError as e:
        raise InvalidPayment(f"Outstanding balance: {e}")
    if balance < ZERO:
        raise InvalidPayment(f"Outstanding balance must not be negative, got {balance}")
    if isinstance(periods_per_year_for_interest, bool) or periods_per_year_for_interest < 1:
        raise ValueError(
            f"Interest periods per year must be a positive integer, got {periods_per_year_for_interest}"
        )

    interest = min(period_interest(balance, annual_rate, periods_per_year_for_interest), total)
    principal = quantize_amount(total - interest)

    return PaymentAllocation(principal=principal, interest=interest)


def custom_split(principal: Numeric, interest: Numeric) -> PaymentAllocation:
    """Accept a caller-supplied split without comparing it to the formula"""
    principal = validate_component(principal, "Principal")
    interest = validate_component(interest, "Interest")
    if principal + interest <= ZERO:
        raise InvalidPayment("Payment amount must be positive")
    return PaymentAllocation(principal=principal, interest=interest, custom=True)
