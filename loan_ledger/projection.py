"""
Balance Projection Module

Derives a loan's outstanding balance and paid totals by replaying its full
payment history. This is the only source of truth for balances: no stored
running balance is ever read back, so inserting, editing or deleting any
payment in any order is reflected on the next read.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from .allocation import PaymentAllocation, allocate_payment, period_interest
from .amortization import calculate_payment_amount
from .currency import ZERO, quantize_amount
from .loans import Loan, LoanPayment, LoanStatus, validate_principal


@dataclass(frozen=True)
class PaymentBalance:
    """A payment paired with the loan balance right after it"""
    payment: LoanPayment
    balance_after: Decimal


@dataclass(frozen=True)
class BalanceProjection:
    """Derived figures for a loan at read time"""
    principal_amount: Decimal
    remaining_balance: Decimal
    total_principal_paid: Decimal
    total_interest_paid: Decimal
    running_balances: Tuple[PaymentBalance, ...]

    @property
    def total_paid(self) -> Decimal:
        return self.total_principal_paid + self.total_interest_paid

    @property
    def status(self) -> LoanStatus:
        if self.remaining_balance > ZERO:
            return LoanStatus.ACTIVE
        return LoanStatus.PAID_OFF

    @property
    def is_paid_off(self) -> bool:
        return self.status is LoanStatus.PAID_OFF

    @property
    def progress_percent(self) -> Decimal:
        """Share of principal retired, 0-100"""
        retired = self.principal_amount - self.remaining_balance
        return quantize_amount(retired / self.principal_amount * Decimal('100'))

    @property
    def payment_count(self) -> int:
        return len(self.running_balances)


def payment_sort_key(payment: LoanPayment):
    """Chronological order, ties broken by insertion sequence then id"""
    return (payment.payment_date, payment.sequence, payment.id)


def project_balance(loan: Union[Loan, Decimal], payments: Iterable[LoanPayment]) -> BalanceProjection:
    """
    Replay a payment history against the loan principal.

    The balance is clamped at zero after every payment, not only at the
    end, so an overpayment never leaves a negative balance for a later
    payment to cancel out. Principal paid is still summed in full.

    The input is not modified and the result depends only on the payments'
    content, not on the order they are supplied in.
    """
    if isinstance(loan, Loan):
        principal = loan.principal_amount
    else:
        principal = validate_principal(loan)

    balance = principal
    total_principal = ZERO
    total_interest = ZERO
    running = []

    for payment in sorted(payments, key=payment_sort_key):
        balance = max(ZERO, balance - payment.principal_amount)
        total_principal += payment.principal_amount
        total_interest += payment.interest_amount
        running.append(PaymentBalance(payment=payment, balance_after=balance))

    return BalanceProjection(
        principal_amount=principal,
        remaining_balance=balance,
        total_principal_paid=total_principal,
        total_interest_paid=total_interest,
        running_balances=tuple(running)
    )


def regular_payment_amount(loan: Loan) -> Optional[Decimal]:
    """The loan's level payment: the cached suggestion, else recomputed"""
    if loan.payment_frequency is None:
        return None
    if loan.suggested_payment_amount:
        return loan.suggested_payment_amount
    return calculate_payment_amount(
        loan.principal_amount, loan.annual_interest_rate,
        loan.term_months, loan.payment_frequency
    )


def suggest_next_payment(
    loan: Loan,
    payments: Iterable[LoanPayment],
    periods_per_year_for_interest: Optional[int] = None
) -> PaymentAllocation:
    """
    Propose the next payment for a loan.

    Loans without a frequency are suggested a full payoff with no interest.
    Scheduled loans get their level payment, split by allocate_payment
    against the projected balance; when the level payment would overshoot
    the balance the proposal shrinks to balance plus interest. Interest
    periodicity defaults to the loan's own payment frequency.
    """
    projection = project_balance(loan, payments)
    remaining = projection.remaining_balance

    if remaining <= ZERO:
        return PaymentAllocation(principal=ZERO, interest=ZERO)

    if loan.payment_frequency is None:
        return PaymentAllocation(principal=remaining, interest=ZERO)

    periods_per_year = periods_per_year_for_interest or loan.payment_frequency.periods_per_year
    interest = period_interest(remaining, loan.annual_interest_rate, periods_per_year)
    proposed = min(regular_payment_amount(loan), remaining + interest)

    allocation = allocate_payment(remaining, loan.annual_interest_rate, proposed, periods_per_year)
    if allocation.principal > remaining:
        allocation = PaymentAllocation(principal=remaining, interest=allocation.interest)
    return allocation
