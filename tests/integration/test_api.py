"""
Integration tests - HTTP API with database dependencies pointed at a
temporary SQLite file.
"""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from ledger_core.api.dependencies import build_anchoring_client, get_anchoring, get_audit
from ledger_core.application.anchoring import NullAnchoringClient
from ledger_core.core.config import Settings, get_settings
from ledger_core.infrastructure.database import get_db
from ledger_core.infrastructure.database.models import Customer, Expense, Invoice, Payroll
from ledger_core.main import app

HEADERS = {"X-Org-Id": "org-1", "X-User-Id": "u-1"}


@pytest.fixture
def client(session_factory, anchoring, audit, settings):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_anchoring] = lambda: anchoring
    app.dependency_overrides[get_audit] = lambda: audit
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def march_records(db):
    db.add(Customer(id="cust-1", org_id="org-1", name="Acme Pty"))
    db.add(Expense(
        org_id="org-1", amount=Decimal("100"), category="software", date=date(2025, 3, 10),
        tags=["pay:bank"], description="IDE licence", receipt_url="https://r/1", status="approved",
    ))
    db.add(Invoice(
        org_id="org-1", customer_id="cust-1", invoice_number="INV-001", total=Decimal("500"),
        due_date=date(2025, 3, 15), status="sent",
    ))
    for pay_date in (date(2025, 3, 14), date(2025, 3, 28)):
        db.add(Payroll(
            org_id="org-1", total_amount=Decimal("1000"), period_start=pay_date.replace(day=1),
            period_end=pay_date, pay_date=pay_date,
        ))
    db.commit()


def entry_body(debit="250", credit="250", account="6100"):
    return {
        "entry_date": "2025-03-31",
        "description": "Accrue rent",
        "lines": [
            {"account_code": account, "debit_amount": debit},
            {"account_code": "2000", "credit_amount": credit},
        ],
    }


class TestHealth:

    def test_root_and_health(self, client):
        assert client.get("/").json()["name"] == "Ledger Core API"
        assert client.get("/health").json() == {"status": "healthy"}


class TestJournalEntriesApi:

    def test_create_and_fetch(self, client):
        response = client.post("/api/v1/journal-entries", json=entry_body(), headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["entry_number"] == "JE-2025-0001"
        assert body["reference_type"] == "manual"
        assert body["created_by"] == "u-1"
        assert Decimal(body["total_debit"]) == Decimal(body["total_credit"]) == Decimal("250")
        assert [line["account_name"] for line in body["lines"]] == ["Rent", "Accounts Payable"]

        fetched = client.get(f"/api/v1/journal-entries/{body['id']}", headers=HEADERS)
        assert fetched.status_code == 200
        assert fetched.json()["id"] == body["id"]

    def test_org_header_required(self, client):
        assert client.post("/api/v1/journal-entries", json=entry_body()).status_code == 422

    def test_unbalanced(self, client):
        response = client.post("/api/v1/journal-entries", json=entry_body(credit="240"), headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["code"] == "UNBALANCED_ENTRY"
        assert client.get("/api/v1/journal-entries", headers=HEADERS).json() == []

    def test_unknown_account(self, client):
        response = client.post("/api/v1/journal-entries", json=entry_body(account="9999"), headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["code"] == "UNKNOWN_ACCOUNT"

    def test_both_sides_on_one_line(self, client):
        body = entry_body()
        body["lines"][0]["credit_amount"] = "250"
        body["lines"].append({"account_code": "1000", "credit_amount": "250"})
        response = client.post("/api/v1/journal-entries", json=body, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_void(self, client):
        entry_id = client.post("/api/v1/journal-entries", json=entry_body(), headers=HEADERS).json()["id"]

        voided = client.post(f"/api/v1/journal-entries/{entry_id}/void", json={"reason": "Typo"}, headers=HEADERS)
        assert voided.status_code == 200
        assert voided.json()["status"] == "voided"

        again = client.post(f"/api/v1/journal-entries/{entry_id}/void", json={"reason": "Typo"}, headers=HEADERS)
        assert again.status_code == 400

    def test_not_found(self, client):
        response = client.get("/api/v1/journal-entries/missing", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_list_filters(self, client):
        client.post("/api/v1/journal-entries", json=entry_body(), headers=HEADERS)
        second = client.post("/api/v1/journal-entries", json=entry_body(), headers=HEADERS).json()
        client.post(f"/api/v1/journal-entries/{second['id']}/void", json={"reason": "Typo"}, headers=HEADERS)

        voided = client.get("/api/v1/journal-entries", params={"status": "voided"}, headers=HEADERS).json()
        assert [e["id"] for e in voided] == [second["id"]]
        by_account = client.get("/api/v1/journal-entries", params={"account_code": "6100"}, headers=HEADERS)
        assert len(by_account.json()) == 2
        other_org = client.get("/api/v1/journal-entries", headers={"X-Org-Id": "org-2"})
        assert other_org.json() == []


class TestReportsApi:

    def test_trial_balance(self, client, march_records):
        response = client.get(
            "/api/v1/accountancy/trial-balance",
            params={"from": "2025-03-01", "to": "2025-03-31"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total_debit"]) == Decimal(body["total_credit"]) == Decimal("2600")
        assert [row["code"] for row in body["accounts"]] == ["1000", "1100", "2100", "4000", "6000", "6200"]

    def test_inverted_range_rejected(self, client):
        response = client.get(
            "/api/v1/accountancy/trial-balance",
            params={"from": "2025-03-31", "to": "2025-03-01"},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_profit_and_loss(self, client, march_records):
        body = client.get(
            "/api/v1/accountancy/profit-and-loss",
            params={"from": "2025-03-01", "to": "2025-03-31"},
            headers=HEADERS,
        ).json()
        assert Decimal(body["revenue"]) == Decimal("500")
        assert Decimal(body["net_income"]) == Decimal("-1600")

    def test_general_ledger_filter(self, client, march_records):
        body = client.get(
            "/api/v1/accountancy/general-ledger",
            params={"from": "2025-03-01", "to": "2025-03-31", "account_code": "4000"},
            headers=HEADERS,
        ).json()
        assert [e["account_code"] for e in body["entries"]] == ["4000"]

    def test_ar_aging(self, client, march_records):
        body = client.get("/api/v1/accountancy/ar-aging", params={"as_of": "2025-04-29"}, headers=HEADERS).json()
        assert body["rows"][0]["name"] == "Acme Pty"
        assert Decimal(body["rows"][0]["bucket_31_60"]) == Decimal("500")

    def test_ap_aging(self, client, march_records):
        body = client.get("/api/v1/accountancy/ap-aging", params={"as_of": "2025-03-20"}, headers=HEADERS).json()
        assert Decimal(body["totals"]["bucket_1_30"]) == Decimal("100")

    def test_burn_rate(self, client, march_records):
        body = client.get(
            "/api/v1/accountancy/burn-rate",
            params={"from": "2025-03-01", "to": "2025-03-31"},
            headers=HEADERS,
        ).json()
        assert body["days"] == 31
        assert Decimal(body["total"]) == Decimal("2100")


class TestMonthEndApi:

    def test_check_close_reopen(self, client, march_records):
        check = client.get("/api/v1/accountancy/month-end-check", params={"year": 2025, "month": 3}, headers=HEADERS)
        assert check.status_code == 200
        assert check.json()["can_close"] is True

        closed = client.post("/api/v1/accountancy/close-period", json={"year": 2025, "month": 3}, headers=HEADERS)
        assert closed.status_code == 200
        assert closed.json()["period"]["status"] == "closed"
        assert closed.json()["forced"] is False

        twice = client.post("/api/v1/accountancy/close-period", json={"year": 2025, "month": 3}, headers=HEADERS)
        assert twice.status_code == 400

        status = client.get("/api/v1/accountancy/period-status", params={"year": 2025, "month": 3}, headers=HEADERS)
        assert status.json()["closed_by"] == "u-1"

        reopened = client.post(
            "/api/v1/accountancy/reopen-period",
            json={"year": 2025, "month": 3, "reason": "Missed invoice"},
            headers=HEADERS,
        )
        assert reopened.status_code == 200
        assert reopened.json()["status"] == "open"

        history = client.get(
            "/api/v1/accountancy/period-history", params={"year": 2025, "month": 3}, headers=HEADERS
        ).json()
        assert [a["action"] for a in history["history"]] == ["closed", "reopened"]

        audit = client.get(
            "/api/v1/accountancy/audit-log", params={"entity_type": "accounting_period"}, headers=HEADERS
        ).json()
        assert [log["action"] for log in audit] == ["REOPEN", "CLOSE"]

    def test_post_check(self, client):
        response = client.post("/api/v1/accountancy/month-end-check", json={"year": 2025, "month": 3}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["summary"]["failed"] == 0

    def test_unknown_period_status_is_null(self, client):
        response = client.get("/api/v1/accountancy/period-status", params={"year": 2025, "month": 3}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json() is None

    def test_reopen_never_closed(self, client):
        response = client.post(
            "/api/v1/accountancy/reopen-period",
            json={"year": 2025, "month": 3, "reason": "x"},
            headers=HEADERS,
        )
        assert response.status_code == 404


class TestAnchoringWiring:

    def test_disabled_uses_local_receipts(self):
        assert isinstance(build_anchoring_client(Settings(_env_file=None)), NullAnchoringClient)

    def test_enabled_loads_configured_client(self):
        settings = Settings(
            _env_file=None,
            anchoring_enabled=True,
            anchoring_client="ledger_core.application.anchoring.NullAnchoringClient",
        )
        assert settings.anchoring_client is NullAnchoringClient
        assert isinstance(build_anchoring_client(settings), NullAnchoringClient)

    def test_enabled_without_client_rejected(self):
        with pytest.raises(ValueError):
            build_anchoring_client(Settings(_env_file=None, anchoring_enabled=True))

    def test_client_must_implement_contract(self):
        settings = Settings(_env_file=None, anchoring_enabled=True, anchoring_client="collections.OrderedDict")
        with pytest.raises(TypeError):
            build_anchoring_client(settings)
