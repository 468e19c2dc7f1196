"""
Application wiring and request dependencies
"""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..cash import StorageCashMovementRecorder
from ..config import LoanLedgerConfig, get_config
from ..errors import (
    InsufficientFunds, LoanLedgerError, LoanValidationError, NotFound, PartialFailure
)
from ..service import LoanService
from ..storage import StorageInterface, create_storage
from ..store import StorageLoanStore
from ..tenancy import TenantAwareStorage


class LoanLedgerSystem:
    """Loan ledger with all components initialized over one storage backend"""

    def __init__(self, config: Optional[LoanLedgerConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        inner = storage or create_storage(self.config.use_sqlite, self.config.sqlite_path)
        self.storage = TenantAwareStorage(inner)
        self.store = StorageLoanStore(self.storage)
        self.cash = StorageCashMovementRecorder(self.storage)
        self.service = LoanService(self.store, self.cash, storage=self.storage, config=self.config)

    def close(self) -> None:
        self.storage.close()


def get_system(request: Request) -> LoanLedgerSystem:
    return request.app.state.system


def get_tenant_id(x_tenant_id: str = Header(..., description="Tenant owning the data")) -> str:
    if not x_tenant_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Tenant-ID is required")
    return x_tenant_id


_STATUS_BY_ERROR = (
    (LoanValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InsufficientFunds, status.HTTP_409_CONFLICT),
    (PartialFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(error: Exception) -> HTTPException:
    """Map engine and collaborator errors to HTTP responses, keeping the error kind"""
    if isinstance(error, LoanLedgerError):
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(error, error_type):
                return HTTPException(status_code=status_code, detail=error.to_dict())
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.to_dict())
    if isinstance(error, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                             detail={"kind": "forbidden", "message": str(error)})
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                         detail={"kind": "bad_request", "message": str(error)})
