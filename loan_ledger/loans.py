"""
Loan Module

Loan and loan payment records, the payment frequency enum, and the input
validation shared by every calculation in the engine. A loan stores its
terms only; outstanding balance and totals are derived from the payment
history by the projection module.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta, date
from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum
import calendar
import uuid

from .currency import CENT, ZERO, Numeric, amounts_match, quantize_amount, to_decimal
from .errors import InvalidPayment, InvalidPrincipal, InvalidRate, InvalidTerm
from .storage import StorageRecord


class LoanKind(Enum):
    """Direction of the loan from the tenant's point of view"""
    PAYABLE = "payable"        # Money borrowed - cash increases on disbursement
    RECEIVABLE = "receivable"  # Money lent - cash decreases on disbursement

    @property
    def disbursement_sign(self) -> int:
        return 1 if self is LoanKind.PAYABLE else -1

    @property
    def repayment_sign(self) -> int:
        return -self.disbursement_sign


class LoanStatus(Enum):
    """Derived loan status, never stored as authoritative"""
    ACTIVE = "active"
    PAID_OFF = "paid_off"


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping to the last day of short months"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class PaymentFrequency(Enum):
    """Payment frequency options"""
    WEEKLY = "weekly"          # 52 payments per year
    BIWEEKLY = "biweekly"      # 26 payments per year
    MONTHLY = "monthly"        # 12 payments per year
    QUARTERLY = "quarterly"    # 4 payments per year
    ANNUALLY = "annually"      # 1 payment per year

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    def advance(self, start_date: date, periods: int) -> date:
        """
        Date ``periods`` payment periods after ``start_date``.

        Month-based frequencies always step from the origin so a schedule
        starting on the 31st lands on each month's last day and returns to
        the 31st when the month allows it.
        """
        if self is PaymentFrequency.WEEKLY:
            return start_date + timedelta(days=7 * periods)
        if self is PaymentFrequency.BIWEEKLY:
            return start_date + timedelta(days=14 * periods)
        return add_months(start_date, _MONTHS_PER_PERIOD[self] * periods)


_PERIODS_PER_YEAR = {
    PaymentFrequency.WEEKLY: 52,
    PaymentFrequency.BIWEEKLY: 26,
    PaymentFrequency.MONTHLY: 12,
    PaymentFrequency.QUARTERLY: 4,
    PaymentFrequency.ANNUALLY: 1,
}

_MONTHS_PER_PERIOD = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.ANNUALLY: 12,
}

_LABELS = {
    PaymentFrequency.WEEKLY: "Weekly",
    PaymentFrequency.BIWEEKLY: "Bi-weekly",
    PaymentFrequency.MONTHLY: "Monthly",
    PaymentFrequency.QUARTERLY: "Quarterly",
    PaymentFrequency.ANNUALLY: "Annually",
}


# Validation shared by the calculators and the record types

def validate_principal(value: Numeric) -> Decimal:
    try:
        principal = to_decimal(value)
    except ValueError as e:
        raise InvalidPrincipal(str(e))
    if principal <= ZERO:
        raise InvalidPrincipal(f"Principal must be positive, got {principal}")
    return principal


def validate_rate(value: Numeric) -> Decimal:
    try:
        rate = to_decimal(value)
    except ValueError as e:
        raise InvalidRate(str(e))
    if rate < ZERO or rate > Decimal('1'):
        raise InvalidRate(f"Annual interest rate must be between 0 and 1, got {rate}")
    return rate


def validate_term(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidTerm(f"Term must be a whole number of months, got {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise InvalidTerm(f"Term must be a whole number of months, got {value}")
        value = int(value)
    if value < 1:
        raise InvalidTerm(f"Term must be at least 1 month, got {value}")
    return value


def validate_payment_amount(value: Numeric) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise InvalidPayment(str(e))
    if amount <= ZERO:
        raise InvalidPayment(f"Payment amount must be positive, got {amount}")
    return amount


def validate_component(value: Numeric, name: str) -> Decimal:
    """Principal or interest portion of a payment: finite and non-negative"""
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise InvalidPayment(f"{name}: {e}")
    if amount < ZERO:
        raise InvalidPayment(f"{name} must not be negative, got {amount}")
    return amount


def parse_frequency(value: Any) -> Optional[PaymentFrequency]:
    if value is None or value == "":
        return None
    if isinstance(value, PaymentFrequency):
        return value
    try:
        return PaymentFrequency(value)
    except ValueError:
        raise ValueError(f"Unsupported payment frequency: {value}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Loan(StorageRecord):
    """Loan terms. Balances are derived, see projection.project_balance"""
    tenant_id: str
    kind: LoanKind
    name: str
    principal_amount: Decimal
    annual_interest_rate: Decimal       # e.g., 0.12 for 12% APR
    term_months: int
    start_date: date
    payment_frequency: Optional[PaymentFrequency] = None  # None: lump balance only
    suggested_payment_amount: Optional[Decimal] = None    # Advisory cache
    contact_id: Optional[str] = None
    disbursement_account_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.principal_amount = validate_principal(self.principal_amount)
        self.annual_interest_rate = validate_rate(self.annual_interest_rate)
        self.term_months = validate_term(self.term_months)
        if isinstance(self.kind, str):
            self.kind = LoanKind(self.kind)
        self.payment_frequency = parse_frequency(self.payment_frequency)
        if self.suggested_payment_amount is not None:
            self.suggested_payment_amount = to_decimal(self.suggested_payment_amount)

    @property
    def has_schedule(self) -> bool:
        return self.payment_frequency is not None

    @classmethod
    def create(cls, **fields) -> 'Loan':
        """New loan with a generated id and timestamps"""
        now = _utcnow()
        return cls(id=fields.pop('id', None) or str(uuid.uuid4()),
                   created_at=now, updated_at=now, **fields)

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        result.update({
            'tenant_id': self.tenant_id,
            'kind': self.kind.value,
            'name': self.name,
            'principal_amount': str(self.principal_amount),
            'annual_interest_rate': str(self.annual_interest_rate),
            'term_months': self.term_months,
            'start_date': self.start_date.isoformat(),
            'payment_frequency': self.payment_frequency.value if self.payment_frequency else None,
            'suggested_payment_amount': self._encode(self.suggested_payment_amount),
            'contact_id': self.contact_id,
            'disbursement_account_id': self.disbursement_account_id,
            'notes': self.notes,
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        suggested = data.get('suggested_payment_amount')
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            tenant_id=data['tenant_id'],
            kind=LoanKind(data['kind']),
            name=data['name'],
            principal_amount=data['principal_amount'],
            annual_interest_rate=data['annual_interest_rate'],
            term_months=data['term_months'],
            start_date=date.fromisoformat(data['start_date']),
            payment_frequency=parse_frequency(data.get('payment_frequency')),
            suggested_payment_amount=suggested,
            contact_id=data.get('contact_id'),
            disbursement_account_id=data.get('disbursement_account_id'),
            notes=data.get('notes'),
        )


@dataclass
class LoanPayment(StorageRecord):
    """Record of an actual payment against a loan"""
    loan_id: str
    tenant_id: str
    account_id: str                     # Cash account the money moved through
    payment_date: date
    total_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    notes: Optional[str] = None
    transaction_id: Optional[str] = None  # Linked cash movement
    sequence: int = 0                   # Insertion order, breaks same-day ties

    def __post_init__(self):
        self.total_amount = validate_payment_amount(self.total_amount)
        self.principal_amount = validate_component(self.principal_amount, "Principal")
        self.interest_amount = validate_component(self.interest_amount, "Interest")
        if not amounts_match(self.principal_amount + self.interest_amount, self.total_amount, CENT):
            raise InvalidPayment(
                f"Principal {self.principal_amount} + interest {self.interest_amount} "
                f"does not equal total {self.total_amount}"
            )

    @classmethod
    def create(cls, **fields) -> 'LoanPayment':
        """New payment with a generated id and timestamps"""
        now = _utcnow()
        return cls(id=fields.pop('id', None) or str(uuid.uuid4()),
                   created_at=now, updated_at=now, **fields)

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        result.update({
            'loan_id': self.loan_id,
            'tenant_id': self.tenant_id,
            'account_id': self.account_id,
            'payment_date': self.payment_date.isoformat(),
            'total_amount': str(self.total_amount),
            'principal_amount': str(self.principal_amount),
            'interest_amount': str(self.interest_amount),
            'notes': self.notes,
            'transaction_id': self.transaction_id,
            'sequence': self.sequence,
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanPayment':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            loan_id=data['loan_id'],
            tenant_id=data['tenant_id'],
            account_id=data['account_id'],
            payment_date=date.fromisoformat(data['payment_date']),
            total_amount=data['total_amount'],
            principal_amount=data['principal_amount'],
            interest_amount=data['interest_amount'],
            notes=data.get('notes'),
            transaction_id=data.get('transaction_id'),
            sequence=data.get('sequence', 0),
        )


@dataclass(frozen=True)
class AmortizationScheduleEntry:
    """Single projected payment. Derived, never persisted"""
    payment_number: int
    payment_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance_after: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'payment_number': self.payment_number,
            'payment_date': self.payment_date.isoformat(),
            'payment_amount': str(quantize_amount(self.payment_amount)),
            'principal_amount': str(quantize_amount(self.principal_amount)),
            'interest_amount': str(quantize_amount(self.interest_amount)),
            'remaining_balance_after': str(quantize_amount(self.remaining_balance_after)),
        }
