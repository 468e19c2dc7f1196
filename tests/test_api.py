"""
Integration tests for the Loan Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from loan_ledger.api import create_app
from loan_ledger.api.dependencies import LoanLedgerSystem
from loan_ledger.config import LoanLedgerConfig
from loan_ledger.storage import InMemoryStorage


TENANT_HEADERS = {"X-Tenant-ID": "tenant-a"}
OTHER_TENANT_HEADERS = {"X-Tenant-ID": "tenant-b"}

LOAN_REQUEST = {
    "kind": "payable",
    "name": "Delivery van",
    "principal_amount": "10000.00",
    "annual_interest_rate": "0.06",
    "term_months": 24,
    "start_date": "2024-01-15",
    "payment_frequency": "monthly",
}


@pytest.fixture
def client():
    """Test client over a fresh in-memory ledger"""
    system = LoanLedgerSystem(config=LoanLedgerConfig(use_sqlite=False), storage=InMemoryStorage())
    return TestClient(create_app(system))


def _create_account(client, balance="5000.00", account_type="bank"):
    r = client.post("/accounts", json={"name": "Checking", "account_type": account_type,
                                       "balance": balance}, headers=TENANT_HEADERS)
    assert r.status_code == 201
    return r.json()


def _create_loan(client, **overrides):
    r = client.post("/loans", json={**LOAN_REQUEST, **overrides}, headers=TENANT_HEADERS)
    assert r.status_code == 201
    return r.json()


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert data["service"] == "loan_ledger_api"


class TestCalculator:
    """Test stateless calculator endpoints"""

    def test_calculate_payment(self, client):
        r = client.post("/loans/calculate", json={
            "principal_amount": "1200", "annual_interest_rate": "0.12", "term_months": 12
        })
        assert r.status_code == 200
        data = r.json()
        assert data["payment_amount"] == "106.62"
        assert data["payment_count"] == 12
        assert data["payment_frequency"] == "monthly"

    def test_invalid_rate(self, client):
        r = client.post("/loans/calculate", json={
            "principal_amount": "1200", "annual_interest_rate": "1.5", "term_months": 12
        })
        assert r.status_code == 400
        assert r.json()["detail"]["kind"] == "invalid_rate"

    def test_unknown_frequency(self, client):
        r = client.post("/loans/calculate", json={
            "principal_amount": "1200", "annual_interest_rate": "0.12", "term_months": 12,
            "payment_frequency": "daily"
        })
        assert r.status_code == 400

    @pytest.mark.parametrize("endpoint, extra", [
        ("/loans/calculate", {}),
        ("/loans/schedule", {"start_date": "2024-01-15"}),
    ])
    def test_blank_frequency_rejected(self, client, endpoint, extra):
        r = client.post(endpoint, json={
            "principal_amount": "1200", "annual_interest_rate": "0.12", "term_months": 12,
            "payment_frequency": "", **extra
        })
        assert r.status_code == 400
        assert r.json()["detail"]["kind"] == "bad_request"

    def test_preview_schedule(self, client):
        r = client.post("/loans/schedule", json={
            "principal_amount": "1200", "annual_interest_rate": "0.12", "term_months": 12,
            "start_date": "2024-01-15"
        })
        assert r.status_code == 200
        data = r.json()
        assert len(data["entries"]) == 12
        assert data["entries"][0]["payment_date"] == "2024-02-15"
        assert data["entries"][-1]["remaining_balance_after"] == "0.00"
        assert Decimal(data["totals"]["total_principal"]) == Decimal('1200')
        assert data["totals"]["maturity_date"] == "2025-01-15"


class TestLoanWorkflow:
    """Create a loan, pay it, edit and delete payments"""

    def test_create_and_get(self, client):
        loan = _create_loan(client)
        assert loan["suggested_payment_amount"] == "443.21"

        r = client.get(f"/loans/{loan['id']}", headers=TENANT_HEADERS)
        assert r.status_code == 200
        data = r.json()
        assert data["projection"]["remaining_balance"] == "10000.00"
        assert data["projection"]["status"] == "active"
        assert data["next_payment"]["total"] == "443.21"

    def test_payment_lifecycle(self, client):
        account = _create_account(client)
        loan = _create_loan(client)

        r = client.post(f"/loans/{loan['id']}/payments", json={
            "account_id": account["id"], "total_amount": "443.21", "payment_date": "2024-02-15"
        }, headers=TENANT_HEADERS)
        assert r.status_code == 201
        payment = r.json()
        assert payment["interest_amount"] == "50.00"
        assert payment["principal_amount"] == "393.21"
        assert payment["transaction_id"]

        data = client.get(f"/loans/{loan['id']}", headers=TENANT_HEADERS).json()
        assert data["projection"]["remaining_balance"] == "9606.79"
        assert data["projection"]["payments"][0]["balance_after"] == "9606.79"

        balance = client.get(f"/accounts/{account['id']}", headers=TENANT_HEADERS).json()["balance"]
        assert Decimal(balance) == Decimal('4556.79')

        r = client.put(f"/loans/payments/{payment['id']}", json={"total_amount": "500"},
                       headers=TENANT_HEADERS)
        assert r.status_code == 200
        assert r.json()["principal_amount"] == "450.00"

        r = client.delete(f"/loans/payments/{payment['id']}", headers=TENANT_HEADERS)
        assert r.status_code == 200
        assert r.json()["message"] == "Payment deleted"

        data = client.get(f"/loans/{loan['id']}", headers=TENANT_HEADERS).json()
        assert data["projection"]["remaining_balance"] == "10000.00"
        balance = client.get(f"/accounts/{account['id']}", headers=TENANT_HEADERS).json()["balance"]
        assert Decimal(balance) == Decimal('5000.00')

    def test_custom_split(self, client):
        account = _create_account(client)
        loan = _create_loan(client)
        r = client.post(f"/loans/{loan['id']}/payments", json={
            "account_id": account["id"], "total_amount": "500",
            "principal_amount": "500", "interest_amount": "0"
        }, headers=TENANT_HEADERS)
        assert r.status_code == 201
        assert r.json()["interest_amount"] == "0"

    def test_insufficient_funds(self, client):
        account = _create_account(client, balance="100")
        loan = _create_loan(client)
        r = client.post(f"/loans/{loan['id']}/payments", json={
            "account_id": account["id"], "total_amount": "443.21"
        }, headers=TENANT_HEADERS)
        assert r.status_code == 409
        detail = r.json()["detail"]
        assert detail["kind"] == "insufficient_funds"
        assert detail["requested"] == "443.21"

    def test_update_loan_terms(self, client):
        loan = _create_loan(client)
        r = client.patch(f"/loans/{loan['id']}", json={"annual_interest_rate": "0"},
                         headers=TENANT_HEADERS)
        assert r.status_code == 200
        assert r.json()["suggested_payment_amount"] == "416.67"

    def test_schedule_and_suggestion(self, client):
        loan = _create_loan(client)
        schedule = client.get(f"/loans/{loan['id']}/schedule", headers=TENANT_HEADERS).json()
        assert len(schedule["entries"]) == 24
        suggestion = client.get(f"/loans/{loan['id']}/suggested-payment", headers=TENANT_HEADERS).json()
        assert suggestion == {"total": "443.21", "principal": "393.21", "interest": "50.00", "custom": False}

    def test_list_loans(self, client):
        _create_loan(client)
        _create_loan(client, name="Second", payment_frequency=None)
        loans = client.get("/loans", headers=TENANT_HEADERS).json()
        assert len(loans) == 2
        assert {entry["status"] for entry in loans} == {"active"}

    def test_missing_loan(self, client):
        r = client.get("/loans/missing", headers=TENANT_HEADERS)
        assert r.status_code == 404
        assert r.json()["detail"]["kind"] == "not_found"


class TestTenantIsolation:
    """Tenants never see each other's loans"""

    def test_other_tenant_gets_404(self, client):
        loan = _create_loan(client)
        r = client.get(f"/loans/{loan['id']}", headers=OTHER_TENANT_HEADERS)
        assert r.status_code == 404
        assert client.get("/loans", headers=OTHER_TENANT_HEADERS).json() == []

    def test_tenant_header_required(self, client):
        r = client.get("/loans")
        assert r.status_code == 422
