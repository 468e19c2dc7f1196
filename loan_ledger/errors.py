"""
Error Taxonomy

Validation errors are raised by the pure engine functions before any
computation starts. Collaborator errors come from the storage and cash
layers and are passed to callers unchanged.
"""

from decimal import Decimal
from typing import Optional


class LoanLedgerError(Exception):
    """Base class for all loan ledger errors"""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class LoanValidationError(LoanLedgerError, ValueError):
    """Input rejected before computation"""
    kind = "validation_error"


class InvalidPrincipal(LoanValidationError):
    kind = "invalid_principal"


class InvalidRate(LoanValidationError):
    kind = "invalid_rate"


class InvalidTerm(LoanValidationError):
    kind = "invalid_term"


class InvalidPayment(LoanValidationError):
    kind = "invalid_payment"


class NotFound(LoanLedgerError, LookupError):
    """Loan, payment, account or transaction missing in the store"""
    kind = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientFunds(LoanLedgerError):
    """Cash account cannot cover the requested movement"""
    kind = "insufficient_funds"

    def __init__(self, account_id: str, available: Decimal, requested: Decimal,
                 account_name: Optional[str] = None):
        label = account_name or account_id
        super().__init__(
            f"Insufficient funds in {label}: available {available}, requested {requested}"
        )
        self.account_id = account_id
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update({
            "account_id": self.account_id,
            "available": str(self.available),
            "requested": str(self.requested),
        })
        return result


class PersistenceError(LoanLedgerError):
    kind = "persistence_error"


class PartialFailure(LoanLedgerError):
    """
    A multi-step write stopped halfway and could not be undone.
    The caller must reconcile manually; ``completed`` lists the steps that
    were written.
    """
    kind = "partial_failure"

    def __init__(self, message: str, completed: Optional[list] = None):
        super().__init__(message)
        self.completed = completed or []

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["completed"] = list(self.completed)
        return result
