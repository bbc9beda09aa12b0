"""API endpoint tests.

Requests go through FastAPI's TestClient against an in-memory database.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from ledger_engine.api.app import create_app
from ledger_engine.api.dependencies import get_billing_gate, get_db_session
from ledger_engine.services.billing import PlanLimitGate


INVOICE = {
    "customer_name": "Acme Traders",
    "invoice_date": "2025-04-10",
    "items": [
        {"description": "Widget", "quantity": "2", "unit_price": "100", "tax_rate": "18"},
        {"description": "Service", "quantity": "1", "unit_price": "50", "tax_rate": "0"},
    ],
}


@pytest.fixture
def app(session_factory):
    app = create_app()

    def override_db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def headers(business_id) -> dict[str, str]:
    return {"X-Business-ID": str(business_id), "X-Role": "owner"}


def create_invoice(client, headers, **extra):
    response = client.post("/api/v1/invoices", headers=headers, json={**INVOICE, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    def test_readiness_and_liveness(self, client):
        assert client.get("/ready").json() == {"status": "ready"}
        assert client.get("/live").json() == {"status": "alive"}


class TestTenantHeaders:
    def test_business_id_required(self, client):
        response = client.get("/api/v1/invoices", headers={"X-Role": "owner"})
        assert response.status_code == 400

    def test_business_id_must_be_uuid(self, client):
        response = client.get("/api/v1/invoices", headers={"X-Business-ID": "acme", "X-Role": "owner"})
        assert response.status_code == 400

    def test_role_required(self, client, business_id):
        response = client.get("/api/v1/invoices", headers={"X-Business-ID": str(business_id)})
        assert response.status_code == 403

    def test_unknown_role_forbidden(self, client, business_id):
        response = client.get(
            "/api/v1/invoices", headers={"X-Business-ID": str(business_id), "X-Role": "auditor"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "AUTHORIZATION_ERROR"

    def test_role_is_case_insensitive(self, client, business_id):
        response = client.get(
            "/api/v1/invoices", headers={"X-Business-ID": str(business_id), "X-Role": "Owner"}
        )
        assert response.status_code == 200


class TestInvoiceEndpoints:
    """Invoice lifecycle over HTTP."""

    def test_create_and_get(self, client, headers):
        created = create_invoice(client, headers)
        assert created["status"] == "draft"
        assert created["draft_state"] == "intentional"

        response = client.get(f"/api/v1/invoices/{created['invoice_id']}", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_amount"] == "286.00"
        assert data["outstanding"] == "286.00"
        assert len(data["items"]) == 2

    def test_issue_pay_and_stats(self, client, headers):
        created = create_invoice(client, headers, issue=True)
        assert created["status"] == "issued"

        paid = client.post(
            f"/api/v1/invoices/{created['invoice_id']}/mark-paid",
            headers=headers,
            json={"payment_date": "2025-04-20"},
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

        again = client.post(f"/api/v1/invoices/{created['invoice_id']}/mark-paid", headers=headers, json={})
        assert again.status_code == 409
        assert again.json()["code"] == "CONFLICT"

        stats = client.get("/api/v1/invoices/stats", headers=headers).json()
        assert stats["paid_count"] == 1
        assert stats["collected"] == "286.00"

    def test_validation_error_is_422(self, client, headers):
        response = client.post(
            "/api/v1/invoices",
            headers=headers,
            json={**INVOICE, "due_date": "2025-04-01"},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["field"] == "due_date"

    def test_cancel_and_delete(self, client, headers):
        issued = create_invoice(client, headers, issue=True)
        cancelled = client.post(
            f"/api/v1/invoices/{issued['invoice_id']}/cancel",
            headers=headers,
            json={"reason": "wrong customer"},
        )
        assert cancelled.json()["status"] == "cancelled"

        draft = create_invoice(client, headers)
        response = client.delete(f"/api/v1/invoices/{draft['invoice_id']}", headers=headers)
        assert response.status_code == 204
        assert client.get(f"/api/v1/invoices/{draft['invoice_id']}", headers=headers).status_code == 404

    def test_invalid_transition_is_409(self, client, headers):
        draft = create_invoice(client, headers)
        response = client.post(
            f"/api/v1/invoices/{draft['invoice_id']}/cancel", headers=headers, json={"reason": "x"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_staff_cannot_cancel(self, client, headers, business_id):
        issued = create_invoice(client, headers, issue=True)
        response = client.post(
            f"/api/v1/invoices/{issued['invoice_id']}/cancel",
            headers={"X-Business-ID": str(business_id), "X-Role": "staff"},
            json={"reason": "x"},
        )
        assert response.status_code == 403

    def test_other_business_gets_403(self, client, headers):
        created = create_invoice(client, headers)
        response = client.get(
            f"/api/v1/invoices/{created['invoice_id']}",
            headers={"X-Business-ID": str(uuid4()), "X-Role": "owner"},
        )
        assert response.status_code == 403

    def test_plan_limit_is_402(self, app, client, headers, session):
        app.dependency_overrides[get_billing_gate] = lambda: PlanLimitGate(db=session, plans={})
        response = client.post("/api/v1/invoices", headers=headers, json=INVOICE)
        assert response.status_code == 402
        assert response.json()["code"] == "PLAN_LIMIT"


class TestPaymentAndExpenseEndpoints:
    def test_partial_payment_against_invoice(self, client, headers):
        invoice = create_invoice(client, headers, issue=True)
        response = client.post(
            "/api/v1/payments",
            headers=headers,
            json={
                "payment_type": "received",
                "amount": "100.00",
                "payment_method": "upi",
                "party_name": "Acme Traders",
                "invoice_id": invoice["invoice_id"],
                "payment_date": "2025-04-12",
            },
        )
        assert response.status_code == 201, response.text
        assert response.json()["transaction_id"] is not None

        data = client.get(f"/api/v1/invoices/{invoice['invoice_id']}", headers=headers).json()
        assert data["amount_settled"] == "100.00"
        assert data["status"] == "issued"

    def test_pending_payment_completion(self, client, headers):
        created = client.post(
            "/api/v1/payments",
            headers=headers,
            json={
                "payment_type": "made",
                "amount": "40",
                "payment_method": "cash",
                "party_name": "Landlord",
                "expense_category": "Rent",
                "status": "pending",
            },
        ).json()
        assert created["transaction_id"] is None

        completed = client.post(f"/api/v1/payments/{created['payment_id']}/complete", headers=headers)
        assert completed.json()["status"] == "completed"
        assert client.get("/api/v1/payments/stats", headers=headers).json()["total_paid"] == "40.00"

    def test_record_expense(self, client, headers):
        response = client.post(
            "/api/v1/expenses",
            headers=headers,
            json={"description": "Paper", "amount": "118", "gst_amount": "18", "category": "Office"},
        )
        assert response.status_code == 201
        assert response.json()["source"] == "manual"
        assert len(client.get("/api/v1/expenses", headers=headers).json()) == 1


class TestPayrollEndpoints:
    def test_run_lock_pay(self, client, headers):
        employee = client.post(
            "/api/v1/employees",
            headers=headers,
            json={"first_name": "Asha", "salary_amount": "30000"},
        )
        assert employee.status_code == 201

        run = client.post("/api/v1/payroll-runs", headers=headers, json={"month": 4, "year": 2025})
        assert run.status_code == 201
        run_id = run.json()["run_id"]
        assert run.json()["total_amount"] == "30000.00"

        duplicate = client.post("/api/v1/payroll-runs", headers=headers, json={"month": 4, "year": 2025})
        assert duplicate.status_code == 409

        assert len(client.get(f"/api/v1/payroll-runs/{run_id}/payslips", headers=headers).json()) == 1
        assert client.post(f"/api/v1/payroll-runs/{run_id}/lock", headers=headers).json()["status"] == "locked"
        paid = client.post(f"/api/v1/payroll-runs/{run_id}/pay", headers=headers, json={})
        assert paid.json()["status"] == "paid"

    def test_no_employees_is_422(self, client, headers):
        response = client.post("/api/v1/payroll-runs", headers=headers, json={"month": 4, "year": 2025})
        assert response.status_code == 422


class TestGSTAndReportEndpoints:
    def test_gst_summary_camel_case(self, client, headers):
        create_invoice(client, headers, issue=True)
        response = client.get("/api/v1/gst/summary", headers=headers, params={"month": 4, "year": 2025})
        assert response.status_code == 200
        data = response.json()
        assert data["outputTax"] == "36.00"
        assert data["netPayable"] == "36.00"
        assert data["isCredit"] is False

    def test_gstr1_rows(self, client, headers):
        create_invoice(client, headers, issue=True, customer_gstin="29ABCDE1234F1Z5")
        rows = client.get("/api/v1/gst/gstr1", headers=headers, params={"month": 4, "year": 2025}).json()
        assert rows[0]["supplyType"] == "B2B"

    def test_reports(self, client, headers):
        invoice = create_invoice(client, headers, issue=True)
        client.post(f"/api/v1/invoices/{invoice['invoice_id']}/mark-paid", headers=headers, json={})

        dashboard = client.get("/api/v1/reports/dashboard", headers=headers).json()
        assert dashboard["revenue"] == "250.00"
        assert dashboard["cash_balance"] == "286.00"

        pnl = client.get("/api/v1/reports/profit-and-loss", headers=headers).json()
        assert pnl == [{"account_name": "Sales", "account_class": "income", "amount": "250.00"}]

        balances = {b["account_name"]: b for b in client.get("/api/v1/reports/balances", headers=headers).json()}
        assert balances["Accounts Receivable"]["balance"] == "0.00"

        integrity = client.get("/api/v1/reports/integrity", headers=headers).json()
        assert integrity["passed"] is True


class TestBankingEndpoints:
    def test_import_match_reconcile(self, client, headers):
        invoice = create_invoice(client, headers, issue=True)
        client.post(
            f"/api/v1/invoices/{invoice['invoice_id']}/mark-paid",
            headers=headers,
            json={"payment_date": "2025-04-20"},
        )

        imported = client.post(
            "/api/v1/bank/statements",
            headers=headers,
            json={"lines": [{"statement_date": "2025-04-21", "amount": "286.00", "reference": "UTR77"}]},
        )
        assert imported.status_code == 201
        assert imported.json() == {"imported": 1, "skipped": 0}

        line = client.get("/api/v1/bank/statement-lines", headers=headers).json()[0]
        matches = client.get(f"/api/v1/bank/statement-lines/{line['statement_line_id']}/matches", headers=headers).json()
        assert len(matches) == 1
        assert matches[0]["date_delta_days"] == 1

        reconciled = client.post(
            f"/api/v1/bank/statement-lines/{line['statement_line_id']}/reconcile",
            headers=headers,
            json={"transaction_id": matches[0]["transaction_id"]},
        )
        assert reconciled.status_code == 200
        assert reconciled.json()["matched"] is True

        again = client.post(
            f"/api/v1/bank/statement-lines/{line['statement_line_id']}/reconcile",
            headers=headers,
            json={"transaction_id": matches[0]["transaction_id"]},
        )
        assert again.status_code == 409
