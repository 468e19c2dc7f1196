"""
Loan Store Module

Persistence boundary for loans and loan payments. The engine only ever
sees full Loan and LoanPayment values from here; payments come back in
whatever order the backend returns them and are re-sorted by the projector.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import NotFound
from .loans import Loan, LoanPayment
from .storage import StorageInterface


class LoanStore(ABC):
    """Abstract loan persistence"""

    @abstractmethod
    def get_loan(self, loan_id: str) -> Loan:
        """Load a loan or raise NotFound"""
        pass

    @abstractmethod
    def save_loan(self, loan: Loan) -> Loan:
        pass

    @abstractmethod
    def list_loans(self, tenant_id: Optional[str] = None) -> List[Loan]:
        pass

    @abstractmethod
    def delete_loan(self, loan_id: str) -> None:
        pass

    @abstractmethod
    def get_payment(self, payment_id: str) -> LoanPayment:
        """Load a payment or raise NotFound"""
        pass

    @abstractmethod
    def list_payments(self, loan_id: str) -> List[LoanPayment]:
        pass

    @abstractmethod
    def create_payment(self, payment: LoanPayment) -> LoanPayment:
        pass

    @abstractmethod
    def update_payment(self, payment_id: str, fields: Dict[str, Any]) -> LoanPayment:
        pass

    @abstractmethod
    def delete_payment(self, payment_id: str) -> None:
        pass


class StorageLoanStore(LoanStore):
    """LoanStore backed by any StorageInterface"""

    # Fields a payment update may touch
    UPDATABLE_PAYMENT_FIELDS = {
        'account_id', 'payment_date', 'total_amount', 'principal_amount',
        'interest_amount', 'notes', 'transaction_id'
    }

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.loans_table = "loans"
        self.payments_table = "loan_payments"

    def get_loan(self, loan_id: str) -> Loan:
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            raise NotFound("loan", loan_id)
        return Loan.from_dict(data)

    def save_loan(self, loan: Loan) -> Loan:
        loan.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
        return loan

    def list_loans(self, tenant_id: Optional[str] = None) -> List[Loan]:
        filters = {"tenant_id": tenant_id} if tenant_id else {}
        loans = [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]
        loans.sort(key=lambda loan: loan.created_at)
        return loans

    def delete_loan(self, loan_id: str) -> None:
        if not self.storage.delete(self.loans_table, loan_id):
            raise NotFound("loan", loan_id)

    def get_payment(self, payment_id: str) -> LoanPayment:
        data = self.storage.load(self.payments_table, payment_id)
        if not data:
            raise NotFound("payment", payment_id)
        return LoanPayment.from_dict(data)

    def list_payments(self, loan_id: str) -> List[LoanPayment]:
        return [
            LoanPayment.from_dict(data)
            for data in self.storage.find(self.payments_table, {"loan_id": loan_id})
        ]

    def create_payment(self, payment: LoanPayment) -> LoanPayment:
        payment.sequence = self._next_sequence(payment.loan_id)
        self.storage.save(self.payments_table, payment.id, payment.to_dict())
        return payment

    def update_payment(self, payment_id: str, fields: Dict[str, Any]) -> LoanPayment:
        unknown = set(fields) - self.UPDATABLE_PAYMENT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update payment fields: {', '.join(sorted(unknown))}")

        current = self.get_payment(payment_id)
        data = current.to_dict()
        data.update({key: LoanPayment._encode(value) for key, value in fields.items()})
        data['updated_at'] = datetime.now(timezone.utc).isoformat()

        # Round-trip through the dataclass so the split invariant is re-checked
        updated = LoanPayment.from_dict(data)
        self.storage.save(self.payments_table, payment_id, updated.to_dict())
        return updated

    def delete_payment(self, payment_id: str) -> None:
        if not self.storage.delete(self.payments_table, payment_id):
            raise NotFound("payment", payment_id)

    def _next_sequence(self, loan_id: str) -> int:
        existing = self.storage.find(self.payments_table, {"loan_id": loan_id})
        return max((data.get('sequence', 0) for data in existing), default=0) + 1
