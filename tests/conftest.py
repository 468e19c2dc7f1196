"""
Shared fixtures for the loan ledger test suite
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_ledger.cash import AccountType, StorageCashMovementRecorder
from loan_ledger.config import LoanLedgerConfig
from loan_ledger.loans import Loan, LoanKind, LoanPayment, PaymentFrequency
from loan_ledger.service import LoanService
from loan_ledger.storage import InMemoryStorage
from loan_ledger.store import StorageLoanStore


TENANT = "tenant-a"


def make_loan(**overrides) -> Loan:
    """Payable 10,000 at 6% over 24 months, monthly, unless overridden"""
    fields = dict(
        tenant_id=TENANT,
        kind=LoanKind.PAYABLE,
        name="Equipment loan",
        principal_amount=Decimal('10000.00'),
        annual_interest_rate=Decimal('0.06'),
        term_months=24,
        start_date=date(2024, 1, 15),
        payment_frequency=PaymentFrequency.MONTHLY,
    )
    fields.update(overrides)
    return Loan.create(**fields)


def make_payment(loan: Loan, payment_date: date, principal, interest,
                 sequence: int = 0, payment_id: str = None) -> LoanPayment:
    principal = Decimal(str(principal))
    interest = Decimal(str(interest))
    return LoanPayment.create(
        id=payment_id,
        loan_id=loan.id,
        tenant_id=loan.tenant_id,
        account_id="acct-1",
        payment_date=payment_date,
        total_amount=principal + interest,
        principal_amount=principal,
        interest_amount=interest,
        sequence=sequence
    )


@pytest.fixture
def ledger_config():
    return LoanLedgerConfig(use_sqlite=False, interest_periods_per_year=12,
                            forbid_principal_below_paid=True)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage):
    return StorageLoanStore(storage)


@pytest.fixture
def cash(storage):
    return StorageCashMovementRecorder(storage)


@pytest.fixture
def service(store, cash, storage, ledger_config):
    return LoanService(store, cash, storage=storage, config=ledger_config)


@pytest.fixture
def bank_account(cash):
    return cash.create_account(TENANT, "Checking", AccountType.BANK, balance=Decimal('5000.00'))
