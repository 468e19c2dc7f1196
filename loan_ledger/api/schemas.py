"""
Pydantic schemas for API requests and responses
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field

from ..allocation import PaymentAllocation
from ..amortization import ScheduleTotals
from ..cash import AccountType
from ..loans import AmortizationScheduleEntry, Loan, LoanPayment
from ..projection import BalanceProjection


# Calculator schemas
class LoanTermsModel(BaseModel):
    principal_amount: str = Field(..., description="Decimal amount as string")
    annual_interest_rate: str = Field(..., description="Annual rate as a fraction, e.g. 0.12")
    term_months: int
    payment_frequency: str = "monthly"


class ScheduleRequest(LoanTermsModel):
    start_date: date


class PaymentAmountResponse(BaseModel):
    payment_amount: str
    payment_count: int
    payment_frequency: str


class ScheduleEntryModel(BaseModel):
    payment_number: int
    payment_date: date
    payment_amount: str
    principal_amount: str
    interest_amount: str
    remaining_balance_after: str

    @classmethod
    def from_entry(cls, entry: AmortizationScheduleEntry) -> 'ScheduleEntryModel':
        return cls(**entry.to_dict())


class ScheduleTotalsModel(BaseModel):
    total_payments: str
    total_principal: str
    total_interest: str
    payment_count: int
    maturity_date: Optional[date] = None

    @classmethod
    def from_totals(cls, totals: ScheduleTotals) -> 'ScheduleTotalsModel':
        return cls(
            total_payments=str(totals.total_payments),
            total_principal=str(totals.total_principal),
            total_interest=str(totals.total_interest),
            payment_count=totals.payment_count,
            maturity_date=totals.maturity_date
        )


class ScheduleResponse(BaseModel):
    entries: List[ScheduleEntryModel]
    totals: Optional[ScheduleTotalsModel] = None


# Loan schemas
class CreateLoanRequest(BaseModel):
    kind: str = Field(..., description="payable or receivable")
    name: str
    principal_amount: str
    annual_interest_rate: str
    term_months: int
    start_date: date
    payment_frequency: Optional[str] = None
    contact_id: Optional[str] = None
    notes: Optional[str] = None
    disbursement_account_id: Optional[str] = None


class UpdateLoanRequest(BaseModel):
    name: Optional[str] = None
    principal_amount: Optional[str] = None
    annual_interest_rate: Optional[str] = None
    term_months: Optional[int] = None
    payment_frequency: Optional[str] = None
    start_date: Optional[date] = None
    contact_id: Optional[str] = None
    notes: Optional[str] = None


class LoanModel(BaseModel):
    id: str
    tenant_id: str
    kind: str
    name: str
    principal_amount: str
    annual_interest_rate: str
    term_months: int
    start_date: date
    payment_frequency: Optional[str] = None
    suggested_payment_amount: Optional[str] = None
    contact_id: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_loan(cls, loan: Loan) -> 'LoanModel':
        return cls(
            id=loan.id,
            tenant_id=loan.tenant_id,
            kind=loan.kind.value,
            name=loan.name,
            principal_amount=str(loan.principal_amount),
            annual_interest_rate=str(loan.annual_interest_rate),
            term_months=loan.term_months,
            start_date=loan.start_date,
            payment_frequency=loan.payment_frequency.value if loan.payment_frequency else None,
            suggested_payment_amount=str(loan.suggested_payment_amount)
            if loan.suggested_payment_amount is not None else None,
            contact_id=loan.contact_id,
            notes=loan.notes
        )


class AllocationModel(BaseModel):
    total: str
    principal: str
    interest: str
    custom: bool = False

    @classmethod
    def from_allocation(cls, allocation: PaymentAllocation) -> 'AllocationModel':
        return cls(**allocation.to_dict())


class PaymentModel(BaseModel):
    id: str
    loan_id: str
    account_id: str
    payment_date: date
    total_amount: str
    principal_amount: str
    interest_amount: str
    notes: Optional[str] = None
    transaction_id: Optional[str] = None
    balance_after: Optional[str] = None

    @classmethod
    def from_payment(cls, payment: LoanPayment, balance_after=None) -> 'PaymentModel':
        return cls(
            id=payment.id,
            loan_id=payment.loan_id,
            account_id=payment.account_id,
            payment_date=payment.payment_date,
            total_amount=str(payment.total_amount),
            principal_amount=str(payment.principal_amount),
            interest_amount=str(payment.interest_amount),
            notes=payment.notes,
            transaction_id=payment.transaction_id,
            balance_after=str(balance_after) if balance_after is not None else None
        )


class ProjectionModel(BaseModel):
    remaining_balance: str
    total_principal_paid: str
    total_interest_paid: str
    total_paid: str
    status: str
    progress_percent: str
    payments: List[PaymentModel]

    @classmethod
    def from_projection(cls, projection: BalanceProjection) -> 'ProjectionModel':
        return cls(
            remaining_balance=str(projection.remaining_balance),
            total_principal_paid=str(projection.total_principal_paid),
            total_interest_paid=str(projection.total_interest_paid),
            total_paid=str(projection.total_paid),
            status=projection.status.value,
            progress_percent=str(projection.progress_percent),
            payments=[
                PaymentModel.from_payment(entry.payment, entry.balance_after)
                for entry in projection.running_balances
            ]
        )


class LoanSummaryResponse(BaseModel):
    loan: LoanModel
    projection: ProjectionModel
    next_payment: AllocationModel


# Payment schemas
class RecordPaymentRequest(BaseModel):
    account_id: str
    total_amount: str
    payment_date: Optional[date] = None
    principal_amount: Optional[str] = Field(None, description="Custom split principal")
    interest_amount: Optional[str] = Field(None, description="Custom split interest")
    notes: Optional[str] = None


class UpdatePaymentRequest(BaseModel):
    account_id: Optional[str] = None
    total_amount: Optional[str] = None
    payment_date: Optional[date] = None
    principal_amount: Optional[str] = None
    interest_amount: Optional[str] = None
    notes: Optional[str] = None


# Cash account schemas
class CreateAccountRequest(BaseModel):
    name: str
    account_type: AccountType
    balance: str = "0"
    credit_limit: str = "0"


class AccountModel(BaseModel):
    id: str
    name: str
    account_type: str
    balance: str
    credit_limit: str
