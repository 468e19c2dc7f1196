"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, status

from ..amortization import calculate_payment_amount, generate_schedule, schedule_totals, total_periods
from ..errors import LoanLedgerError
from ..loans import LoanKind, PaymentFrequency, parse_frequency
from ..tenancy import tenant_context
from .dependencies import LoanLedgerSystem, get_system, get_tenant_id, to_http_exception
from .schemas import (
    AllocationModel, CreateLoanRequest, LoanModel, LoanSummaryResponse, LoanTermsModel,
    PaymentAmountResponse, PaymentModel, ProjectionModel, RecordPaymentRequest,
    ScheduleEntryModel, ScheduleRequest, ScheduleResponse, ScheduleTotalsModel,
    UpdateLoanRequest, UpdatePaymentRequest
)


router = APIRouter()


def _required_frequency(value) -> PaymentFrequency:
    frequency = parse_frequency(value)
    if frequency is None:
        raise ValueError("payment_frequency is required for a payment schedule")
    return frequency


def _schedule_response(schedule) -> ScheduleResponse:
    return ScheduleResponse(
        entries=[ScheduleEntryModel.from_entry(entry) for entry in schedule],
        totals=ScheduleTotalsModel.from_totals(schedule_totals(schedule)) if schedule else None
    )


@router.post("/calculate", response_model=PaymentAmountResponse)
async def calculate_payment(request: LoanTermsModel):
    """Level payment for a set of loan terms, without saving anything"""
    try:
        frequency = _required_frequency(request.payment_frequency)
        amount = calculate_payment_amount(
            request.principal_amount, request.annual_interest_rate,
            request.term_months, frequency
        )
        return PaymentAmountResponse(
            payment_amount=str(amount),
            payment_count=total_periods(request.term_months, frequency),
            payment_frequency=frequency.value
        )
    except (LoanLedgerError, ValueError) as e:
        raise to_http_exception(e)


@router.post("/schedule", response_model=ScheduleResponse)
async def preview_schedule(request: ScheduleRequest):
    """Projected amortization schedule for a set of loan terms"""
    try:
        schedule = generate_schedule(
            request.principal_amount, request.annual_interest_rate,
            request.term_months, request.start_date,
            _required_frequency(request.payment_frequency)
        )
        return _schedule_response(schedule)
    except (LoanLedgerError, ValueError) as e:
        raise to_http_exception(e)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=LoanModel)
async def create_loan(
    request: CreateLoanRequest,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Create a loan, posting its disbursement when an account is given"""
    try:
        with tenant_context(tenant_id):
            loan = system.service.create_loan(
                tenant_id=tenant_id,
                kind=LoanKind(request.kind),
                name=request.name,
                principal_amount=request.principal_amount,
                annual_interest_rate=request.annual_interest_rate,
                term_months=request.term_months,
                start_date=request.start_date,
                payment_frequency=parse_frequency(request.payment_frequency),
                contact_id=request.contact_id,
                notes=request.notes,
                disbursement_account_id=request.disbursement_account_id
            )
        return LoanModel.from_loan(loan)
    except (LoanLedgerError, ValueError, PermissionError) as e:
        raise to_http_exception(e)


@router.get("")
async def list_loans(
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """All loans of the tenant with their derived balances"""
    with tenant_context(tenant_id):
        summaries = system.service.list_summaries(tenant_id)
    return [
        {
            "loan": LoanModel.from_loan(summary.loan).model_dump(mode="json"),
            "remaining_balance": str(summary.projection.remaining_balance),
            "status": summary.projection.status.value,
        }
        for summary in summaries
    ]


@router.get("/{loan_id}", response_model=LoanSummaryResponse)
async def get_loan(
    loan_id: str,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Loan with balances replayed from its payment history"""
    try:
        with tenant_context(tenant_id):
            summary = system.service.get_summary(loan_id, include_schedule=False)
        return LoanSummaryResponse(
            loan=LoanModel.from_loan(summary.loan),
            projection=ProjectionModel.from_projection(summary.projection),
            next_payment=AllocationModel.from_allocation(summary.next_payment)
        )
    except LoanLedgerError as e:
        raise to_http_exception(e)


@router.patch("/{loan_id}", response_model=LoanModel)
async def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Edit loan terms"""
    try:
        fields = request.model_dump(exclude_unset=True)
        with tenant_context(tenant_id):
            loan = system.service.update_loan(loan_id, **fields)
        return LoanModel.from_loan(loan)
    except (LoanLedgerError, ValueError, PermissionError) as e:
        raise to_http_exception(e)


@router.get("/{loan_id}/schedule", response_model=ScheduleResponse)
async def get_schedule(
    loan_id: str,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Projected schedule of a saved loan"""
    try:
        with tenant_context(tenant_id):
            schedule = system.service.get_schedule(loan_id)
        return _schedule_response(schedule)
    except LoanLedgerError as e:
        raise to_http_exception(e)


@router.get("/{loan_id}/suggested-payment", response_model=AllocationModel)
async def get_suggested_payment(
    loan_id: str,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Next payment proposal for the record-payment form"""
    try:
        with tenant_context(tenant_id):
            allocation = system.service.suggest_payment(loan_id)
        return AllocationModel.from_allocation(allocation)
    except LoanLedgerError as e:
        raise to_http_exception(e)


@router.post("/{loan_id}/payments", status_code=status.HTTP_201_CREATED, response_model=PaymentModel)
async def record_payment(
    loan_id: str,
    request: RecordPaymentRequest,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Record a payment and its cash movement"""
    try:
        with tenant_context(tenant_id):
            payment = system.service.record_payment(
                loan_id=loan_id,
                account_id=request.account_id,
                total_amount=request.total_amount,
                payment_date=request.payment_date,
                principal_amount=request.principal_amount,
                interest_amount=request.interest_amount,
                notes=request.notes
            )
        return PaymentModel.from_payment(payment)
    except (LoanLedgerError, ValueError, PermissionError) as e:
        raise to_http_exception(e)


@router.put("/payments/{payment_id}", response_model=PaymentModel)
async def update_payment(
    payment_id: str,
    request: UpdatePaymentRequest,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Edit a recorded payment"""
    try:
        with tenant_context(tenant_id):
            payment = system.service.update_payment(payment_id, **request.model_dump(exclude_unset=True))
        return PaymentModel.from_payment(payment)
    except (LoanLedgerError, ValueError, PermissionError) as e:
        raise to_http_exception(e)


@router.delete("/payments/{payment_id}")
async def delete_payment(
    payment_id: str,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Delete a payment together with its cash movement"""
    try:
        with tenant_context(tenant_id):
            payment = system.service.delete_payment(payment_id)
        return {"payment_id": payment.id, "message": "Payment deleted"}
    except LoanLedgerError as e:
        raise to_http_exception(e)
