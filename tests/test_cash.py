"""
Test suite for cash movement module

Funds checks and the account balance following posted transactions.
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_ledger.cash import AccountType, CashAccount, check_funds
from loan_ledger.errors import InsufficientFunds, NotFound

from conftest import TENANT


def _account(account_type, balance, credit_limit="0"):
    return CashAccount(
        id="acct-1", created_at=None, updated_at=None, tenant_id=TENANT, name="Test",
        account_type=account_type, balance=balance, credit_limit=credit_limit
    )


class TestCheckFunds:
    """Test available funds by account type"""

    def test_bank_account(self):
        account = _account(AccountType.BANK, "300")
        assert check_funds(account, "300").has_funds
        assert not check_funds(account, "300.01").has_funds
        assert check_funds(account, "1").available == Decimal('300')

    def test_credit_account_uses_limit(self):
        account = _account(AccountType.CREDIT, "-200", credit_limit="1000")
        funds = check_funds(account, "800")
        assert funds.has_funds
        assert funds.available == Decimal('800')
        assert not check_funds(account, "800.01").has_funds

    def test_overdrawn_bank_account(self):
        account = _account(AccountType.CASH, "-5")
        assert not check_funds(account, "0.01").has_funds


class TestCashMovementRecorder:
    """Test posting and deleting transactions"""

    def test_post_updates_balance(self, cash, bank_account):
        transaction = cash.post_transaction(bank_account.id, Decimal('-250.00'),
                                            date(2024, 2, 1), "Rent")
        assert cash.get_account(bank_account.id).balance == Decimal('4750.00')
        assert cash.get_transaction(transaction.id).amount == Decimal('-250.00')
        assert cash.list_transactions(bank_account.id) == [transaction]

    def test_delete_restores_balance(self, cash, bank_account):
        transaction = cash.post_transaction(bank_account.id, Decimal('125.50'),
                                            date(2024, 2, 1), "Deposit")
        cash.delete_transaction(transaction.id)
        assert cash.get_account(bank_account.id).balance == Decimal('5000.00')
        with pytest.raises(NotFound):
            cash.get_transaction(transaction.id)

    def test_require_funds(self, cash, bank_account):
        with pytest.raises(InsufficientFunds) as exc_info:
            cash.post_transaction(bank_account.id, Decimal('-5000.01'), date(2024, 2, 1),
                                  "Too much", require_funds=True)
        assert exc_info.value.available == Decimal('5000.00')
        assert cash.get_account(bank_account.id).balance == Decimal('5000.00')
        assert cash.list_transactions(bank_account.id) == []

    def test_unchecked_withdrawal_may_overdraw(self, cash, bank_account):
        cash.post_transaction(bank_account.id, Decimal('-6000'), date(2024, 2, 1), "Overdraft")
        assert cash.get_account(bank_account.id).balance == Decimal('-1000.00')

    def test_zero_amount_rejected(self, cash, bank_account):
        with pytest.raises(ValueError):
            cash.post_transaction(bank_account.id, Decimal('0'), date(2024, 2, 1), "Nothing")

    def test_unknown_account(self, cash):
        with pytest.raises(NotFound):
            cash.post_transaction("missing", Decimal('10'), date(2024, 2, 1), "Deposit")

    def test_delete_for_payment(self, cash, bank_account):
        cash.post_transaction(bank_account.id, Decimal('-100'), date(2024, 2, 1), "Payment",
                              loan_id="L1", loan_payment_id="P1")
        cash.post_transaction(bank_account.id, Decimal('-50'), date(2024, 2, 2), "Other",
                              loan_id="L1", loan_payment_id="P2")
        assert cash.delete_for_payment("P1") == 1
        assert cash.delete_for_payment("P1") == 0
        assert cash.get_account(bank_account.id).balance == Decimal('4950.00')

    def test_recorder_check_funds(self, cash):
        card = cash.create_account(TENANT, "Card", AccountType.CREDIT,
                                   balance=Decimal('-200'), credit_limit=Decimal('1000'))
        assert cash.check_funds(card.id, Decimal('800')).has_funds
        assert not cash.check_funds(card.id, Decimal('800.01')).has_funds
