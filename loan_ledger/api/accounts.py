"""
Cash account endpoints
"""

from fastapi import APIRouter, Depends, status

from ..cash import CashAccount
from ..errors import LoanLedgerError
from ..tenancy import tenant_context
from .dependencies import LoanLedgerSystem, get_system, get_tenant_id, to_http_exception
from .schemas import AccountModel, CreateAccountRequest


router = APIRouter()


def _account_model(account: CashAccount) -> AccountModel:
    return AccountModel(
        id=account.id,
        name=account.name,
        account_type=account.account_type.value,
        balance=str(account.balance),
        credit_limit=str(account.credit_limit)
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=AccountModel)
async def create_account(
    request: CreateAccountRequest,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Open a bank, cash or credit account"""
    try:
        with tenant_context(tenant_id):
            account = system.cash.create_account(
                tenant_id=tenant_id,
                name=request.name,
                account_type=request.account_type,
                balance=request.balance,
                credit_limit=request.credit_limit
            )
        return _account_model(account)
    except (LoanLedgerError, ValueError) as e:
        raise to_http_exception(e)


@router.get("/{account_id}", response_model=AccountModel)
async def get_account(
    account_id: str,
    tenant_id: str = Depends(get_tenant_id),
    system: LoanLedgerSystem = Depends(get_system)
):
    """Account with its current balance"""
    try:
        with tenant_context(tenant_id):
            account = system.cash.get_account(account_id)
        return _account_model(account)
    except LoanLedgerError as e:
        raise to_http_exception(e)
