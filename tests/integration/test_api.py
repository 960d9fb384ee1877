"""Integration tests for API endpoints"""

import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from coop_ledger.api.dependencies import get_notification_sink
from coop_ledger.utils.date_utils import add_months

pytestmark = pytest.mark.integration


class RecordingSink:
    """Collects notifications instead of delivering them"""

    def __init__(self):
        self.sent = []

    async def send(self, notification) -> bool:
        self.sent.append(notification)
        return True


@pytest.fixture
def sink(client: TestClient) -> RecordingSink:
    recording = RecordingSink()
    client.app.dependency_overrides[get_notification_sink] = lambda: recording
    return recording


@pytest.fixture
def member_id(client: TestClient) -> str:
    """Long-standing member with 50,000 shares and 25,000 savings"""
    response = client.post(
        "/v1/members",
        json={
            "first_name": "Chidi",
            "last_name": "Eze",
            "email": "chidi@example.com",
            "date_joined": "2020-03-01",
            "shares_balance": "50000.00",
            "savings_balance": "25000.00",
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def borrower_id(client: TestClient, member_id: str, sink: RecordingSink) -> str:
    """Member holding an approved 10,000 loan disbursed today"""
    response = client.post(
        "/v1/loan-applications",
        json={"member_id": member_id, "amount": "10000", "purpose": "Sewing machines"},
    )
    assert response.status_code == 201
    approve = client.post(f"/v1/loan-applications/{response.json()['id']}/approve", json={})
    assert approve.status_code == 200
    return member_id


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "coop_interest_postings_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_and_get_member(client: TestClient, member_id: str):
    response = client.get(f"/v1/members/{member_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["member_number"] == "MEM0001"
    assert Decimal(data["shares_balance"]) == Decimal("50000")
    assert data["loan_summary"] is None
    assert data["next_interest"] is None


def test_create_member_rejects_negative_balance(client: TestClient):
    response = client.post(
        "/v1/members",
        json={"first_name": "A", "last_name": "B", "email": "ab@example.com", "savings_balance": "-5"},
    )
    assert response.status_code == 422


def test_unknown_member(client: TestClient):
    response = client.get("/v1/members/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_eligibility_for_new_member_lists_reasons(client: TestClient):
    created = client.post(
        "/v1/members",
        json={"first_name": "Ngozi", "last_name": "Obi", "email": "ngozi@example.com"},
    )
    member_id = created.json()["id"]

    response = client.get(f"/v1/members/{member_id}/eligibility")
    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is False
    assert "at least 6 months" in data["reasons"][0]
    assert Decimal(data["max_loan_amount"]) == 0

    apply = client.post(
        "/v1/loan-applications",
        json={"member_id": member_id, "amount": "100", "purpose": "Fees"},
    )
    assert apply.status_code == 422
    assert apply.json()["detail"]["reasons"] == data["reasons"]


def test_loan_over_limit_is_rejected(client: TestClient, member_id: str):
    response = client.post(
        "/v1/loan-applications",
        json={"member_id": member_id, "amount": "150000.01", "purpose": "Land"},
    )
    assert response.status_code == 422


def test_loan_application_queue_and_approval(client: TestClient, member_id: str, sink: RecordingSink):
    created = client.post(
        "/v1/loan-applications",
        json={"member_id": member_id, "amount": "10000", "purpose": "Sewing machines", "duration_months": 6},
    )
    assert created.status_code == 201
    application_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    queue = client.get("/v1/loan-applications/queue").json()["applications"]
    assert [a["id"] for a in queue] == [application_id]

    approved = client.post(
        f"/v1/loan-applications/{application_id}/approve",
        json={"reviewer": "treasurer"},
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewed_by"] == "treasurer"

    member = client.get(f"/v1/members/{member_id}").json()
    assert Decimal(member["loan_balance"]) == Decimal("10000")
    assert member["loan_start_date"] == date.today().isoformat()
    assert member["loan_summary"]["status"] == "active"
    assert member["loan_summary"]["months_remaining"] == 6
    assert member["next_interest"]["message"].startswith("First interest of 150.00")

    assert [n.event for n in sink.sent] == ["LOAN_APPROVED"]
    assert client.get("/v1/loan-applications/queue").json()["applications"] == []

    again = client.post(f"/v1/loan-applications/{application_id}/approve", json={})
    assert again.status_code == 409


def test_loan_rejection_notifies_member(client: TestClient, member_id: str, sink: RecordingSink):
    created = client.post(
        "/v1/loan-applications",
        json={"member_id": member_id, "amount": "500", "purpose": "Fees"},
    )
    rejected = client.post(
        f"/v1/loan-applications/{created.json()['id']}/reject",
        json={"notes": "Guarantor missing"},
    )

    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert sink.sent[0].event == "LOAN_REJECTED"
    assert "Guarantor missing" in sink.sent[0].message


def test_unknown_application(client: TestClient, sink: RecordingSink):
    response = client.post("/v1/loan-applications/00000000-0000-0000-0000-000000000000/reject", json={})
    assert response.status_code == 404


def test_interest_preview_and_post(client: TestClient, borrower_id: str):
    as_of = add_months(date.today(), 3).isoformat()

    preview = client.get(f"/v1/members/{borrower_id}/interest", params={"as_of": as_of})
    assert preview.status_code == 200
    assert preview.json()["months_to_calculate"] == 3
    assert Decimal(preview.json()["total_interest"]) == Decimal("450.00")
    assert preview.json()["reference"] is None

    posted = client.post(f"/v1/members/{borrower_id}/interest", params={"as_of": as_of})
    assert posted.status_code == 200
    assert posted.json()["reference"].startswith("INT-")

    # Second posting for the same date owes nothing
    retry = client.post(f"/v1/members/{borrower_id}/interest", params={"as_of": as_of})
    assert retry.json()["months_to_calculate"] == 0
    assert retry.json()["reference"] is None

    member = client.get(f"/v1/members/{borrower_id}").json()
    assert Decimal(member["interest_balance"]) == Decimal("450.00")


def test_interest_run(client: TestClient, borrower_id: str):
    as_of = add_months(date.today(), 2).isoformat()

    response = client.post("/v1/interest/run", params={"as_of": as_of})

    assert response.status_code == 200
    data = response.json()
    assert data["processed_members"] == 1
    assert Decimal(data["total_interest_charged"]) == Decimal("300.00")
    assert data["postings"][0]["member_id"] == borrower_id


def test_payment_preview_and_processing(client: TestClient, borrower_id: str):
    as_of = add_months(date.today(), 1).isoformat()
    client.post(f"/v1/members/{borrower_id}/interest", params={"as_of": as_of})

    preview = client.post(f"/v1/members/{borrower_id}/payments/preview", json={"amount": "1000"})
    assert preview.status_code == 200
    assert Decimal(preview.json()["interest_paid"]) == Decimal("150.00")
    assert Decimal(preview.json()["principal_paid"]) == Decimal("850.00")
    assert preview.json()["references"] == []

    paid = client.post(
        f"/v1/members/{borrower_id}/payments",
        json={"amount": "1000", "note": "Cash at office"},
    )
    assert paid.status_code == 200
    references = paid.json()["references"]
    assert len(references) == 2
    assert {ref.split("-")[0] for ref in references} == {"IP", "LP"}

    member = client.get(f"/v1/members/{borrower_id}").json()
    assert Decimal(member["loan_balance"]) == Decimal("9150.00")
    assert Decimal(member["interest_balance"]) == 0

    ledger = client.get(f"/v1/members/{borrower_id}/transactions").json()["transactions"]
    types = sorted(entry["type"] for entry in ledger)
    assert types == ["interest_charge", "interest_payment", "loan_disbursement", "loan_payment"]


def test_payment_without_loan_conflicts(client: TestClient, member_id: str):
    response = client.post(f"/v1/members/{member_id}/payments", json={"amount": "100"})
    assert response.status_code == 409


def test_payment_amount_must_be_positive(client: TestClient, member_id: str):
    response = client.post(f"/v1/members/{member_id}/payments", json={"amount": "0"})
    assert response.status_code == 422


def test_summary_report(client: TestClient, borrower_id: str):
    response = client.get("/v1/reports/summary")

    assert response.status_code == 200
    data = response.json()
    assert data["total_members"] == 1
    assert data["active_loans"] == 1
    assert data["overdue_loans"] == 0
    assert Decimal(data["total_with_organization"]) == Decimal("75000")
    assert Decimal(data["total_loans"]) == Decimal("10000")


def test_balance_adjustment(client: TestClient, member_id: str):
    response = client.post(
        f"/v1/members/{member_id}/adjustments",
        json={"reason": "Share purchase at AGM", "shares_balance": "55000"},
    )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["member"]["shares_balance"]) == Decimal("55000")
    assert [t["type"] for t in data["transactions"]] == ["shares_deposit"]
    assert Decimal(data["transactions"][0]["amount"]) == Decimal("5000")

    eligibility = client.get(f"/v1/members/{member_id}/eligibility").json()
    assert Decimal(eligibility["max_loan_amount"]) == Decimal("160000")


def test_balance_adjustment_cannot_go_negative(client: TestClient, member_id: str):
    response = client.post(
        f"/v1/members/{member_id}/adjustments",
        json={"reason": "Correction", "savings_balance": "-1"},
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Balances cannot be negative"


def test_balance_adjustment_requires_reason(client: TestClient, member_id: str):
    response = client.post(f"/v1/members/{member_id}/adjustments", json={"reason": "", "shares_balance": "1"})
    assert response.status_code == 422


def test_duplicate_member_number_conflicts(client: TestClient, member_id: str):
    response = client.post(
        "/v1/members",
        json={"first_name": "Ada", "last_name": "Eze", "email": "ada@example.com", "member_number": "MEM0001"},
    )
    assert response.status_code == 409
