"""
Cash Movement Module

Boundary to the cash-account ledger. Loan disbursements and payments post
signed transactions against a bank, cash or credit account; the account
balance follows every insert and delete the way the hosted database's
balance trigger does.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .currency import ZERO, Numeric, to_decimal
from .errors import InsufficientFunds, NotFound
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


class AccountType(Enum):
    """Cash account types"""
    BANK = "bank"
    CASH = "cash"
    CREDIT = "credit"   # Balance is negative while owing


@dataclass
class CashAccount(StorageRecord):
    """Bank, cash or credit account"""
    tenant_id: str
    name: str
    account_type: AccountType
    balance: Decimal = ZERO
    credit_limit: Decimal = ZERO

    def __post_init__(self):
        if isinstance(self.account_type, str):
            self.account_type = AccountType(self.account_type)
        self.balance = to_decimal(self.balance)
        self.credit_limit = to_decimal(self.credit_limit)

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        result.update({
            'tenant_id': self.tenant_id,
            'name': self.name,
            'account_type': self.account_type.value,
            'balance': str(self.balance),
            'credit_limit': str(self.credit_limit),
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CashAccount':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            tenant_id=data['tenant_id'],
            name=data['name'],
            account_type=AccountType(data['account_type']),
            balance=Decimal(data['balance']),
            credit_limit=Decimal(data.get('credit_limit', '0')),
        )


@dataclass
class CashTransaction(StorageRecord):
    """Signed movement on a cash account: positive in, negative out"""
    tenant_id: str
    account_id: str
    amount: Decimal
    transaction_date: date
    description: str
    loan_id: Optional[str] = None
    loan_payment_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self._base_dict()
        result.update({
            'tenant_id': self.tenant_id,
            'account_id': self.account_id,
            'amount': str(self.amount),
            'transaction_date': self.transaction_date.isoformat(),
            'description': self.description,
            'loan_id': self.loan_id,
            'loan_payment_id': self.loan_payment_id,
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CashTransaction':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            tenant_id=data['tenant_id'],
            account_id=data['account_id'],
            amount=Decimal(data['amount']),
            transaction_date=date.fromisoformat(data['transaction_date']),
            description=data['description'],
            loan_id=data.get('loan_id'),
            loan_payment_id=data.get('loan_payment_id'),
        )


@dataclass(frozen=True)
class FundsCheck:
    has_funds: bool
    available: Decimal


def check_funds(account: CashAccount, amount: Numeric) -> FundsCheck:
    """
    Can ``account`` pay out ``amount``?

    Credit accounts may draw down to their limit (available = limit +
    balance); bank and cash accounts may not go negative.
    """
    amount = to_decimal(amount)
    if account.account_type is AccountType.CREDIT:
        available = account.credit_limit + account.balance
    else:
        available = account.balance
    return FundsCheck(has_funds=available >= amount, available=available)


class CashMovementRecorder(ABC):
    """Abstract cash ledger used by the loan service"""

    @abstractmethod
    def get_account(self, account_id: str) -> CashAccount:
        """Load an account or raise NotFound"""
        pass

    def check_funds(self, account_id: str, amount: Numeric) -> FundsCheck:
        return check_funds(self.get_account(account_id), amount)

    @abstractmethod
    def post_transaction(
        self,
        account_id: str,
        amount: Numeric,
        transaction_date: date,
        description: str,
        loan_id: Optional[str] = None,
        loan_payment_id: Optional[str] = None,
        require_funds: bool = False
    ) -> CashTransaction:
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> None:
        pass

    @abstractmethod
    def delete_for_payment(self, loan_payment_id: str) -> int:
        """Delete every transaction linked to a loan payment, return the count"""
        pass


class StorageCashMovementRecorder(CashMovementRecorder):
    """CashMovementRecorder backed by any StorageInterface"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.accounts_table = "cash_accounts"
        self.transactions_table = "cash_transactions"
        self.logger = get_logger("loan_ledger.cash")

    def create_account(
        self,
        tenant_id: str,
        name: str,
        account_type: AccountType,
        balance: Numeric = ZERO,
        credit_limit: Numeric = ZERO
    ) -> CashAccount:
        now = datetime.now(timezone.utc)
        account = CashAccount(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            tenant_id=tenant_id,
            name=name,
            account_type=account_type,
            balance=balance,
            credit_limit=credit_limit
        )
        self.storage.save(self.accounts_table, account.id, account.to_dict())
        return account

    def get_account(self, account_id: str) -> CashAccount:
        data = self.storage.load(self.accounts_table, account_id)
        if not data:
            raise NotFound("account", account_id)
        return CashAccount.from_dict(data)

    def get_transaction(self, transaction_id: str) -> CashTransaction:
        data = self.storage.load(self.transactions_table, transaction_id)
        if not data:
            raise NotFound("transaction", transaction_id)
        return CashTransaction.from_dict(data)

    def list_transactions(self, account_id: Optional[str] = None) -> List[CashTransaction]:
        filters = {"account_id": account_id} if account_id else {}
        transactions = [
            CashTransaction.from_dict(data)
            for data in self.storage.find(self.transactions_table, filters)
        ]
        transactions.sort(key=lambda txn: (txn.transaction_date, txn.created_at))
        return transactions

    def post_transaction(
        self,
        account_id: str,
        amount: Numeric,
        transaction_date: date,
        description: str,
        loan_id: Optional[str] = None,
        loan_payment_id: Optional[str] = None,
        require_funds: bool = False
    ) -> CashTransaction:
        amount = to_decimal(amount)
        if amount == ZERO:
            raise ValueError("Transaction amount must not be zero")

        account = self.get_account(account_id)

        if require_funds and amount < ZERO:
            funds = check_funds(account, -amount)
            if not funds.has_funds:
                raise InsufficientFunds(account.id, funds.available, -amount, account.name)

        now = datetime.now(timezone.utc)
        transaction = CashTransaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            tenant_id=account.tenant_id,
            account_id=account.id,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            loan_id=loan_id,
            loan_payment_id=loan_payment_id
        )

        with self.storage.atomic():
            self.storage.save(self.transactions_table, transaction.id, transaction.to_dict())
            self._adjust_balance(account, amount)

        log_action(
            self.logger, "info", "Cash transaction posted",
            tenant_id=account.tenant_id, action="post_transaction",
            resource=f"account:{account.id}",
            extra={"transaction_id": transaction.id, "amount": str(amount),
                   "loan_payment_id": loan_payment_id}
        )
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        transaction = self.get_transaction(transaction_id)
        with self.storage.atomic():
            self.storage.delete(self.transactions_table, transaction_id)
            self._adjust_balance(self.get_account(transaction.account_id), -transaction.amount)

        log_action(
            self.logger, "info", "Cash transaction deleted",
            tenant_id=transaction.tenant_id, action="delete_transaction",
            resource=f"account:{transaction.account_id}",
            extra={"transaction_id": transaction_id, "amount": str(transaction.amount)}
        )

    def delete_for_payment(self, loan_payment_id: str) -> int:
        linked = self.storage.find(self.transactions_table, {"loan_payment_id": loan_payment_id})
        for data in linked:
            self.delete_transaction(data['id'])
        return len(linked)

    def _adjust_balance(self, account: CashAccount, delta: Decimal) -> None:
        account.balance = account.balance + delta
        account.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.accounts_table, account.id, account.to_dict())
