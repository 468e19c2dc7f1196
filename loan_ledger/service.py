"""
Loan Service Module

Orchestrates the pure engine (amortization, allocation, projection) with
the persistence and cash-ledger collaborators. Recording, editing or
deleting a payment together with its cash movement is one logical unit:
it is written inside a storage transaction, compensated by hand when the
backends do not share one, and reported as PartialFailure when even the
compensation fails.
"""

from contextlib import nullcontext
from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .allocation import PaymentAllocation, allocate_payment, custom_split
from .amortization import ScheduleTotals, calculate_payment_amount, generate_schedule, schedule_totals
from .cash import CashMovementRecorder
from .config import LoanLedgerConfig, get_config
from .currency import Numeric, ZERO
from .errors import (
    InsufficientFunds, InvalidPayment, InvalidPrincipal, LoanLedgerError,
    NotFound, PartialFailure
)
from .loans import (
    AmortizationScheduleEntry, Loan, LoanKind, LoanPayment, PaymentFrequency,
    validate_payment_amount
)
from .logging_config import get_logger, log_action
from .projection import BalanceProjection, project_balance, suggest_next_payment
from .storage import StorageInterface
from .store import LoanStore


@dataclass
class LoanSummary:
    """Everything a loan detail view needs, derived at read time"""
    loan: Loan
    projection: BalanceProjection
    next_payment: PaymentAllocation
    schedule: List[AmortizationScheduleEntry] = field(default_factory=list)
    schedule_totals: Optional[ScheduleTotals] = None


class LoanService:
    """
    Loan lifecycle operations for the UI/API layer.

    Balances are never stored: every read replays the payment history
    through project_balance.
    """

    UPDATABLE_LOAN_FIELDS = {
        'name', 'principal_amount', 'annual_interest_rate', 'term_months',
        'payment_frequency', 'start_date', 'contact_id', 'notes'
    }

    def __init__(
        self,
        store: LoanStore,
        cash_recorder: CashMovementRecorder,
        storage: Optional[StorageInterface] = None,
        config: Optional[LoanLedgerConfig] = None
    ):
        self.store = store
        self.cash = cash_recorder
        self.storage = storage
        self.config = config or get_config()
        self.epsilon = Decimal(self.config.rounding_epsilon)
        self.logger = get_logger("loan_ledger.service")

    def _atomic(self):
        if self.storage is None:
            return nullcontext()
        return self.storage.atomic()

    # Loans

    def create_loan(
        self,
        tenant_id: str,
        kind: LoanKind,
        name: str,
        principal_amount: Numeric,
        annual_interest_rate: Numeric,
        term_months: int,
        start_date: date,
        payment_frequency: Optional[PaymentFrequency] = None,
        contact_id: Optional[str] = None,
        notes: Optional[str] = None,
        disbursement_account_id: Optional[str] = None
    ) -> Loan:
        """
        Create a loan and optionally post its disbursement.

        Payable loans add the principal to the disbursement account;
        receivable loans take it out and must have the funds.
        """
        loan = Loan.create(
            tenant_id=tenant_id,
            kind=kind,
            name=name,
            principal_amount=principal_amount,
            annual_interest_rate=annual_interest_rate,
            term_months=term_months,
            start_date=start_date,
            payment_frequency=payment_frequency,
            contact_id=contact_id,
            notes=notes,
            disbursement_account_id=disbursement_account_id
        )
        loan.suggested_payment_amount = self._suggested_amount(loan)

        if disbursement_account_id:
            self._require_funds(loan, disbursement_account_id,
                                loan.principal_amount * -loan.kind.disbursement_sign)

        completed = []
        try:
            with self._atomic():
                self.store.save_loan(loan)
                completed.append("loan")
                if disbursement_account_id:
                    self.cash.post_transaction(
                        account_id=disbursement_account_id,
                        amount=loan.principal_amount * loan.kind.disbursement_sign,
                        transaction_date=loan.start_date,
                        description=f"Loan disbursement: {loan.name}",
                        loan_id=loan.id,
                        require_funds=loan.kind is LoanKind.RECEIVABLE
                    )
        except Exception as error:
            self._remove_unfunded_loan(loan, completed, error)
            raise

        log_action(
            self.logger, "info", "Loan created",
            tenant_id=tenant_id, action="create_loan", resource=f"loan:{loan.id}",
            extra={
                "kind": loan.kind.value,
                "principal_amount": str(loan.principal_amount),
                "annual_interest_rate": str(loan.annual_interest_rate),
                "term_months": loan.term_months,
                "payment_frequency": loan.payment_frequency.value if loan.payment_frequency else None,
                "suggested_payment_amount": str(loan.suggested_payment_amount)
                if loan.suggested_payment_amount is not None else None,
            }
        )
        return loan

    def update_loan(self, loan_id: str, **fields: Any) -> Loan:
        """
        Edit loan terms.

        The suggested payment is recomputed. Lowering the principal below
        the principal already repaid is refused unless the configuration
        allows it, in which case the projection clamps the balance at zero.
        """
        unknown = set(fields) - self.UPDATABLE_LOAN_FIELDS
        if unknown:
            raise ValueError(f"Cannot update loan fields: {', '.join(sorted(unknown))}")

        loan = self.store.get_loan(loan_id)
        data = loan.to_dict()
        data.update({key: Loan._encode(value) for key, value in fields.items()})
        if isinstance(data.get('payment_frequency'), PaymentFrequency):
            data['payment_frequency'] = data['payment_frequency'].value
        updated = Loan.from_dict(data)

        if 'principal_amount' in fields and self.config.forbid_principal_below_paid:
            paid = project_balance(updated, self.store.list_payments(loan_id)).total_principal_paid
            if updated.principal_amount < paid:
                raise InvalidPrincipal(
                    f"Principal {updated.principal_amount} is below principal already paid {paid}"
                )

        updated.suggested_payment_amount = self._suggested_amount(updated)
        self.store.save_loan(updated)

        log_action(
            self.logger, "info", "Loan updated",
            tenant_id=updated.tenant_id, action="update_loan", resource=f"loan:{loan_id}",
            extra={"fields": sorted(fields)}
        )
        return updated

    def get_loan(self, loan_id: str) -> Loan:
        return self.store.get_loan(loan_id)

    def get_projection(self, loan_id: str) -> BalanceProjection:
        loan = self.store.get_loan(loan_id)
        return project_balance(loan, self.store.list_payments(loan_id))

    def get_schedule(self, loan_id: str) -> List[AmortizationScheduleEntry]:
        """Projected schedule; empty for loans tracked as a lump balance"""
        return self._schedule(self.store.get_loan(loan_id))

    def suggest_payment(self, loan_id: str) -> PaymentAllocation:
        loan = self.store.get_loan(loan_id)
        return suggest_next_payment(loan, self.store.list_payments(loan_id))

    def get_summary(self, loan_id: str, include_schedule: bool = True) -> LoanSummary:
        loan = self.store.get_loan(loan_id)
        payments = self.store.list_payments(loan_id)
        schedule = self._schedule(loan) if include_schedule else []
        return LoanSummary(
            loan=loan,
            projection=project_balance(loan, payments),
            next_payment=suggest_next_payment(loan, payments),
            schedule=schedule,
            schedule_totals=schedule_totals(schedule) if schedule else None
        )

    def list_summaries(self, tenant_id: Optional[str] = None) -> List[LoanSummary]:
        return [
            self.get_summary(loan.id, include_schedule=False)
            for loan in self.store.list_loans(tenant_id)
        ]

    # Payments

    def record_payment(
        self,
        loan_id: str,
        account_id: str,
        total_amount: Numeric,
        payment_date: Optional[date] = None,
        principal_amount: Optional[Numeric] = None,
        interest_amount: Optional[Numeric] = None,
        notes: Optional[str] = None
    ) -> LoanPayment:
        """
        Record a payment and post its cash movement.

        Without an explicit split the total is allocated against the
        current projected balance. Every validation and funds check runs
        before anything is written.
        """
        loan = self.store.get_loan(loan_id)
        payment_date = payment_date or date.today()

        try:
            total = validate_payment_amount(total_amount)
            if principal_amount is None and interest_amount is None:
                remaining = project_balance(loan, self.store.list_payments(loan_id)).remaining_balance
                allocation = self._default_split(loan, remaining, total)
            else:
                allocation = self._custom_split(principal_amount, interest_amount, total)
            self._require_funds(loan, account_id, total * -loan.kind.repayment_sign)

            payment = LoanPayment.create(
                loan_id=loan.id,
                tenant_id=loan.tenant_id,
                account_id=account_id,
                payment_date=payment_date,
                total_amount=total,
                principal_amount=allocation.principal,
                interest_amount=allocation.interest,
                notes=notes
            )
        except LoanLedgerError as error:
            self._log_rejection(loan, "record_payment", error)
            raise

        completed = []
        try:
            with self._atomic():
                self.store.create_payment(payment)
                completed.append("payment")
                transaction = self.cash.post_transaction(
                    account_id=account_id,
                    amount=total * loan.kind.repayment_sign,
                    transaction_date=payment_date,
                    description=f"Loan payment: {loan.name}",
                    loan_id=loan.id,
                    loan_payment_id=payment.id,
                    require_funds=loan.kind is LoanKind.PAYABLE
                )
                completed.append("cash_transaction")
                payment = self.store.update_payment(payment.id, {"transaction_id": transaction.id})
        except Exception as error:
            self._compensate(loan, payment.id, completed, error)
            raise

        log_action(
            self.logger, "info", "Loan payment recorded",
            tenant_id=loan.tenant_id, action="record_payment", resource=f"loan:{loan.id}",
            extra={
                "payment_id": payment.id,
                "transaction_id": payment.transaction_id,
                "total_amount": str(payment.total_amount),
                "principal_amount": str(payment.principal_amount),
                "interest_amount": str(payment.interest_amount),
                "custom_split": allocation.custom,
            }
        )
        return payment

    def update_payment(
        self,
        payment_id: str,
        account_id: Optional[str] = None,
        payment_date: Optional[date] = None,
        total_amount: Optional[Numeric] = None,
        principal_amount: Optional[Numeric] = None,
        interest_amount: Optional[Numeric] = None,
        notes: Optional[str] = None
    ) -> LoanPayment:
        """
        Edit a recorded payment and replace its cash movement.

        A changed total without an explicit split is re-allocated against
        the balance the loan had just before this payment. When the account
        is unchanged the original amount counts as available again for the
        funds check, since its transaction is reversed first.
        """
        current = self.store.get_payment(payment_id)
        loan = self.store.get_loan(current.loan_id)
        account_id = account_id or current.account_id

        try:
            total = validate_payment_amount(total_amount) if total_amount is not None else current.total_amount
            if principal_amount is not None or interest_amount is not None:
                allocation = self._custom_split(principal_amount, interest_amount, total)
            elif total != current.total_amount:
                balance_before = self._balance_before(loan, current)
                allocation = self._default_split(loan, balance_before, total)
            else:
                allocation = PaymentAllocation(current.principal_amount, current.interest_amount)

            credit_back = current.total_amount if account_id == current.account_id else ZERO
            self._require_funds(loan, account_id, total * -loan.kind.repayment_sign, credit_back)
        except LoanLedgerError as error:
            self._log_rejection(loan, "update_payment", error)
            raise

        fields = {
            "account_id": account_id,
            "payment_date": payment_date or current.payment_date,
            "total_amount": total,
            "principal_amount": allocation.principal,
            "interest_amount": allocation.interest,
        }
        if notes is not None:
            fields["notes"] = notes

        completed = []
        try:
            with self._atomic():
                self.cash.delete_for_payment(payment_id)
                completed.append("cash_transaction_reversed")
                transaction = self.cash.post_transaction(
                    account_id=account_id,
                    amount=total * loan.kind.repayment_sign,
                    transaction_date=fields["payment_date"],
                    description=f"Loan payment: {loan.name}",
                    loan_id=loan.id,
                    loan_payment_id=payment_id,
                    require_funds=loan.kind is LoanKind.PAYABLE
                )
                completed.append("cash_transaction")
                fields["transaction_id"] = transaction.id
                updated = self.store.update_payment(payment_id, fields)
        except Exception as error:
            self._restore_cash_movement(loan, current, "update_payment", completed, error)
            raise

        log_action(
            self.logger, "info", "Loan payment updated",
            tenant_id=loan.tenant_id, action="update_payment", resource=f"loan:{loan.id}",
            extra={"payment_id": payment_id, "total_amount": str(updated.total_amount)}
        )
        return updated

    def delete_payment(self, payment_id: str) -> LoanPayment:
        """Delete a payment together with its cash movement"""
        payment = self.store.get_payment(payment_id)
        loan = self.store.get_loan(payment.loan_id)

        completed = []
        try:
            with self._atomic():
                self.cash.delete_for_payment(payment_id)
                completed.append("cash_transaction_reversed")
                self.store.delete_payment(payment_id)
        except Exception as error:
            self._restore_cash_movement(loan, payment, "delete_payment", completed, error)
            raise

        log_action(
            self.logger, "info", "Loan payment deleted",
            tenant_id=payment.tenant_id, action="delete_payment",
            resource=f"loan:{payment.loan_id}",
            extra={"payment_id": payment_id, "total_amount": str(payment.total_amount)}
        )
        return payment

    # Helpers

    def _suggested_amount(self, loan: Loan) -> Optional[Decimal]:
        if loan.payment_frequency is None:
            return None
        return calculate_payment_amount(
            loan.principal_amount, loan.annual_interest_rate,
            loan.term_months, loan.payment_frequency
        )

    def _schedule(self, loan: Loan) -> List[AmortizationScheduleEntry]:
        if loan.payment_frequency is None:
            return []
        return generate_schedule(
            loan.principal_amount, loan.annual_interest_rate,
            loan.term_months, loan.start_date, loan.payment_frequency
        )

    def _default_split(self, loan: Loan, balance: Decimal, total: Decimal) -> PaymentAllocation:
        return allocate_payment(
            balance, loan.annual_interest_rate, total,
            self.config.interest_periods_per_year
        )

    def _custom_split(self, principal: Optional[Numeric], interest: Optional[Numeric],
                      total: Decimal) -> PaymentAllocation:
        if principal is None or interest is None:
            raise InvalidPayment("A custom split needs both principal and interest")
        allocation = custom_split(principal, interest)
        if abs(allocation.total - total) > self.epsilon:
            raise InvalidPayment(
                f"Principal {allocation.principal} + interest {allocation.interest} "
                f"does not equal total {total}"
            )
        return allocation

    def _balance_before(self, loan: Loan, payment: LoanPayment) -> Decimal:
        """Projected balance immediately before ``payment`` in history order"""
        balance = loan.principal_amount
        for entry in project_balance(loan, self.store.list_payments(loan.id)).running_balances:
            if entry.payment.id == payment.id:
                return balance
            balance = entry.balance_after
        raise NotFound("payment", payment.id)

    def _require_funds(self, loan: Loan, account_id: str, outflow: Decimal,
                       credit_back: Decimal = ZERO) -> None:
        """Raise InsufficientFunds when ``outflow`` exceeds what the account can pay"""
        account = self.cash.get_account(account_id)
        if outflow <= ZERO:
            return
        funds = self.cash.check_funds(account_id, outflow)
        available = funds.available + credit_back
        if available < outflow:
            raise InsufficientFunds(account.id, available, outflow, account.name)

    def _compensate(self, loan: Loan, payment_id: str, completed: List[str],
                    error: Exception) -> None:
        """Undo a half-written payment when no storage transaction covered it"""
        if self.storage is not None or not completed:
            self._log_rejection(loan, "record_payment", error)
            return
        try:
            self.cash.delete_for_payment(payment_id)
            self.store.delete_payment(payment_id)
        except Exception as compensation_error:
            log_action(
                self.logger, "error", "Payment compensation failed",
                tenant_id=loan.tenant_id, action="record_payment",
                resource=f"loan:{loan.id}",
                extra={"payment_id": payment_id, "completed": completed,
                       "error": str(compensation_error)}
            )
            raise PartialFailure(
                f"Payment {payment_id} was written but could not be rolled back",
                completed=completed
            ) from error
        self._log_rejection(loan, "record_payment", error)

    def _remove_unfunded_loan(self, loan: Loan, completed: List[str], error: Exception) -> None:
        """Delete a loan whose disbursement failed when no storage transaction covered it"""
        if self.storage is not None or not completed:
            self._log_rejection(loan, "create_loan", error)
            return
        try:
            self.store.delete_loan(loan.id)
        except Exception as compensation_error:
            log_action(
                self.logger, "error", "Loan compensation failed",
                tenant_id=loan.tenant_id, action="create_loan", resource=f"loan:{loan.id}",
                extra={"completed": completed, "error": str(compensation_error)}
            )
            raise PartialFailure(
                f"Loan {loan.id} was saved but its disbursement failed and it could not be removed",
                completed=completed
            ) from error
        self._log_rejection(loan, "create_loan", error)

    def _restore_cash_movement(self, loan: Loan, original: LoanPayment, action: str,
                               completed: List[str], error: Exception) -> None:
        """
        Put back the cash movement of ``original`` after an edit or delete
        failed halfway without a storage transaction.

        The payment row is untouched at this point; only its transaction
        was reversed and possibly replaced.
        """
        if self.storage is not None or not completed:
            self._log_rejection(loan, action, error)
            return
        try:
            if "cash_transaction" in completed:
                self.cash.delete_for_payment(original.id)
            restored = self.cash.post_transaction(
                account_id=original.account_id,
                amount=original.total_amount * loan.kind.repayment_sign,
                transaction_date=original.payment_date,
                description=f"Loan payment: {loan.name}",
                loan_id=loan.id,
                loan_payment_id=original.id
            )
            self.store.update_payment(original.id, {"transaction_id": restored.id})
        except Exception as compensation_error:
            log_action(
                self.logger, "error", "Payment compensation failed",
                tenant_id=loan.tenant_id, action=action, resource=f"loan:{loan.id}",
                extra={"payment_id": original.id, "completed": completed,
                       "error": str(compensation_error)}
            )
            raise PartialFailure(
                f"Payment {original.id} {action} stopped after: {', '.join(completed)}",
                completed=completed
            ) from error
        self._log_rejection(loan, action, error)

    def _log_rejection(self, loan: Loan, action: str, error: Exception) -> None:
        kind = getattr(error, "kind", type(error).__name__)
        log_action(
            self.logger, "warning", f"{action} rejected: {error}",
            tenant_id=loan.tenant_id, action=action, resource=f"loan:{loan.id}",
            extra={"kind": kind}
        )
