"""
Amortization Module

Level-payment (annuity) calculation and projected amortization schedules.
Everything here is a pure function of the loan terms: no storage, no
shared state, safe to call from any number of concurrent callers.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass
from typing import List, Optional

from .currency import ZERO, Numeric, quantize_amount
from .loans import (
    AmortizationScheduleEntry, PaymentFrequency,
    validate_principal, validate_rate, validate_term
)


def total_periods(term_months: int, frequency: PaymentFrequency) -> int:
    """Number of payments over the term, never fewer than one"""
    periods = (Decimal(term_months) * frequency.periods_per_year / Decimal(12)).quantize(
        Decimal('1'), rounding=ROUND_HALF_UP
    )
    return max(1, int(periods))


def periodic_rate(annual_rate: Decimal, periods_per_year: int) -> Decimal:
    return annual_rate / Decimal(periods_per_year)


def calculate_payment_amount(
    principal: Numeric,
    annual_rate: Numeric,
    term_months: int,
    frequency: PaymentFrequency
) -> Decimal:
    """
    Calculate the level periodic payment for a loan.

    Standard annuity formula: P * r / (1 - (1 + r)^-n), where r is the
    periodic rate and n the number of periods. A zero rate divides the
    principal evenly.

    Args:
        principal: Amount borrowed or lent, must be positive
        annual_rate: Nominal annual rate as a fraction in [0, 1]
        term_months: Loan term in whole months, at least 1
        frequency: Payment frequency

    Returns:
        Periodic payment rounded to cents

    Raises:
        InvalidPrincipal, InvalidRate, InvalidTerm
    """
    principal = validate_principal(principal)
    annual_rate = validate_rate(annual_rate)
    term_months = validate_term(term_months)
    if not isinstance(frequency, PaymentFrequency):
        raise ValueError(f"Unsupported payment frequency: {frequency!r}")

    periods = total_periods(term_months, frequency)
    rate = periodic_rate(annual_rate, frequency.periods_per_year)

    if rate == ZERO:
        return quantize_amount(principal / Decimal(periods))

    payment = principal * rate / (Decimal('1') - (Decimal('1') + rate) ** -periods)
    return quantize_amount(payment)


def generate_schedule(
    principal: Numeric,
    annual_rate: Numeric,
    term_months: int,
    start_date: date,
    frequency: PaymentFrequency
) -> List[AmortizationScheduleEntry]:
    """
    Generate the projected amortization schedule.

    Entry ``i`` falls ``i`` periods after ``start_date``. Interest is rounded
    to cents each period and the rest of the level payment reduces principal.
    The final entry absorbs the rounding residue: its principal is whatever
    balance remains, so the schedule always ends at exactly zero and the
    principal column sums to the original principal.
    """
    payment = calculate_payment_amount(principal, annual_rate, term_months, frequency)
    principal = validate_principal(principal)
    annual_rate = validate_rate(annual_rate)

    periods = total_periods(term_months, frequency)
    rate = periodic_rate(annual_rate, frequency.periods_per_year)

    schedule = []
    balance = principal

    for payment_number in range(1, periods + 1):
        interest = quantize_amount(balance * rate)

        if payment_number == periods:
            principal_portion = balance
        else:
            # Rounding can push the level payment past the balance (or below
            # the interest) on tiny loans
            principal_portion = min(max(payment - interest, ZERO), balance)

        balance = max(ZERO, balance - principal_portion)

        schedule.append(AmortizationScheduleEntry(
            payment_number=payment_number,
            payment_date=frequency.advance(start_date, payment_number),
            payment_amount=principal_portion + interest,
            principal_amount=principal_portion,
            interest_amount=interest,
            remaining_balance_after=balance
        ))

    return schedule


@dataclass(frozen=True)
class ScheduleTotals:
    """Aggregates over a projected schedule"""
    total_payments: Decimal
    total_principal: Decimal
    total_interest: Decimal
    payment_count: int
    maturity_date: Optional[date]


def schedule_totals(schedule: List[AmortizationScheduleEntry]) -> ScheduleTotals:
    total_principal = sum((entry.principal_amount for entry in schedule), ZERO)
    total_interest = sum((entry.interest_amount for entry in schedule), ZERO)
    return ScheduleTotals(
        total_payments=total_principal + total_interest,
        total_principal=total_principal,
        total_interest=total_interest,
        payment_count=len(schedule),
        maturity_date=schedule[-1].payment_date if schedule else None
    )


def maturity_date(term_months: int, start_date: date, frequency: PaymentFrequency) -> date:
    """Date of the final scheduled payment"""
    return frequency.advance(start_date, total_periods(validate_term(term_months), frequency))
