"""
Tests for the leave, balance, policy and approval endpoints
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi import status

LEAVE_PAYLOAD = {
    "leave_type": "Annual",
    "start_date": "2026-03-02",
    "end_date": "2026-03-06",
    "days": 5,
    "reason": "Family visit",
}


def _submit(client, headers, **overrides):
    return client.post("/api/v1/leaves", json={**LEAVE_PAYLOAD, **overrides}, headers=headers)


def test_requires_authentication(client, org):
    response = client.get("/api/v1/leaves/my")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    response = client.get("/api/v1/leaves/my", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_submit_and_approve_flow(client, org, annual_balance, headers_for):
    response = _submit(client, headers_for(org["staff"]))
    assert response.status_code == status.HTTP_201_CREATED
    leave = response.json()
    assert leave["status"] == "pending"
    assert Decimal(leave["days"]) == Decimal("5")
    assert [s["approver_role"] for s in leave["steps"]] == ["MANAGER", "HR_OFFICER"]

    pending = client.get("/api/v1/leaves/pending", headers=headers_for(org["manager"])).json()
    assert [p["leave"]["id"] for p in pending] == [leave["id"]]

    response = client.post(
        f"/api/v1/leaves/{leave['id']}/approve",
        json={"level": 1, "comment": "OK", "expected_version": leave["version"]},
        headers=headers_for(org["manager"]),
    )
    assert response.status_code == status.HTTP_200_OK

    response = client.post(
        f"/api/v1/leaves/{leave['id']}/approve", json={"level": 2}, headers=headers_for(org["hr"])
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "approved"

    balances = client.get("/api/v1/balances/me", headers=headers_for(org["staff"])).json()
    annual = [b for b in balances["balances"] if b["leave_type"] == "Annual"][0]
    assert Decimal(annual["remaining"]) == Decimal("15")

    history = client.get(f"/api/v1/leaves/{leave['id']}/history", headers=headers_for(org["staff"])).json()
    assert [h["action"] for h in history] == ["APPROVE", "APPROVE"]


def test_domain_errors_use_error_envelope(client, org, annual_balance, headers_for):
    _submit(client, headers_for(org["staff"]))

    response = _submit(client, headers_for(org["staff"]), start_date="2026-03-05", end_date="2026-03-09")

    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["error"] is True
    assert body["error_code"] == "OVERLAPPING_LEAVE"
    assert body["details"]["overlapping"][0]["start_date"] == "2026-03-02"
    assert body["path"] == "/api/v1/leaves"


def test_insufficient_balance_reports_current_balance(client, org, annual_balance, headers_for):
    response = _submit(client, headers_for(org["staff"]), start_date="2026-04-01", end_date="2026-05-05", days=25)

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error_code"] == "INSUFFICIENT_BALANCE"
    assert response.json()["details"]["current_balance"] == 20.0


def test_out_of_order_approval_conflict(client, org, annual_balance, headers_for):
    leave = _submit(client, headers_for(org["staff"])).json()

    response = client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"level": 2}, headers=headers_for(org["hr"]))

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_code"] == "OUT_OF_ORDER_APPROVAL"


def test_reject_requires_comment(client, org, annual_balance, headers_for):
    leave = _submit(client, headers_for(org["staff"])).json()

    response = client.post(
        f"/api/v1/leaves/{leave['id']}/reject", json={"level": 1, "comment": ""}, headers=headers_for(org["manager"])
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.post(
        f"/api/v1/leaves/{leave['id']}/reject",
        json={"level": 1, "comment": "Audit week"},
        headers=headers_for(org["manager"]),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "rejected"

    response = client.post(
        f"/api/v1/leaves/{leave['id']}/resubmit", json={"reason": "Moved after audit"}, headers=headers_for(org["staff"])
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["current_round"] == 2


def test_leave_visibility(client, org, annual_balance, headers_for):
    leave = _submit(client, headers_for(org["staff"])).json()

    assert client.get(f"/api/v1/leaves/{leave['id']}", headers=headers_for(org["manager"])).status_code == 200
    assert client.get(f"/api/v1/leaves/{leave['id']}", headers=headers_for(org["hr"])).status_code == 200
    response = client.get(f"/api/v1/leaves/{leave['id']}", headers=headers_for(org["peer"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/api/v1/leaves/9999", headers=headers_for(org["hr"])).status_code == 404


def test_draft_endpoints(client, org, annual_balance, headers_for):
    headers = headers_for(org["staff"])
    draft = _submit(client, headers, as_draft=True).json()
    assert draft["status"] == "draft"
    assert draft["steps"] == []

    response = client.patch(f"/api/v1/leaves/{draft['id']}", json={"days": 4}, headers=headers)
    assert Decimal(response.json()["days"]) == Decimal("4")

    response = client.post(f"/api/v1/leaves/{draft['id']}/submit", headers=headers)
    assert response.json()["status"] == "pending"

    other = _submit(client, headers, as_draft=True, start_date="2026-07-01", end_date="2026-07-02", days=2).json()
    assert client.delete(f"/api/v1/leaves/{other['id']}", headers=headers).status_code == 204

    mine = client.get("/api/v1/leaves/my", headers=headers).json()
    assert mine["total"] == 1


def test_cancel_and_payroll_lock(client, org, annual_balance, headers_for):
    leave = _submit(client, headers_for(org["staff"])).json()
    client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"level": 1}, headers=headers_for(org["manager"]))
    client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"level": 2}, headers=headers_for(org["hr"]))

    response = client.post(
        "/api/v1/leaves/payroll-close", json={"period_end": "2026-03-31"}, headers=headers_for(org["staff"])
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        "/api/v1/leaves/payroll-close", json={"period_end": "2026-03-31"}, headers=headers_for(org["hr"])
    )
    assert response.json()["locked_request_ids"] == [leave["id"]]

    response = client.post(f"/api/v1/leaves/{leave['id']}/cancel", json={}, headers=headers_for(org["staff"]))
    assert response.status_code == 423
    assert response.json()["error_code"] == "REQUEST_LOCKED"


def test_policy_validate_endpoint(client, org, headers_for):
    response = client.post(
        "/api/v1/policies/validate", json={"leave_type": "Annual", "max_days": 14}, headers=headers_for(org["staff"])
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["valid"] is False
    assert body["statutory_minimum"] == 21


def test_policy_create_below_minimum_rejected(client, org, headers_for):
    response = client.post(
        "/api/v1/policies", json={"leave_type": "Maternity", "max_days": 60}, headers=headers_for(org["hr"])
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["error_code"] == "STATUTORY_MINIMUM_VIOLATION"
    assert response.json()["details"]["statutory_minimum"] == 84


def test_policy_create_and_activate(client, org, headers_for):
    headers = headers_for(org["hr"])
    created = client.post("/api/v1/policies", json={"leave_type": "Annual", "max_days": 24}, headers=headers)
    assert created.status_code == status.HTTP_201_CREATED

    activated = client.post(f"/api/v1/policies/{created.json()['id']}/activate", headers=headers)
    assert activated.json()["active"] is True


def test_balance_adjustment_by_hr(client, org, headers_for):
    payload = {"employee_id": org["staff"].id, "leave_type": "Annual", "days": 10, "remarks": "Opening balance"}

    response = client.post("/api/v1/balances/adjust", json=payload, headers=headers_for(org["staff"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/balances/adjust", json=payload, headers=headers_for(org["hr"]))
    assert response.status_code == status.HTTP_200_OK
    assert Decimal(response.json()["balance_after"]) == Decimal("10")

    entries = client.get(f"/api/v1/balances/{org['staff'].id}/transactions", headers=headers_for(org["staff"])).json()
    assert entries[0]["entry_type"] == "ADJUSTMENT"
    response = client.get(f"/api/v1/balances/{org['staff'].id}", headers=headers_for(org["peer"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_scan_endpoint_and_notifications(client, org, annual_balance, headers_for):
    _submit(client, headers_for(org["staff"]))
    later = (datetime.now(timezone.utc) + timedelta(hours=25)).isoformat()

    response = client.post("/api/v1/approvals/scan", json={"now": later}, headers=headers_for(org["hr"]))

    assert response.status_code == status.HTTP_200_OK
    assert [e["kind"] for e in response.json()["events"]] == ["APPROVER_REMINDER"]
    notes = client.get("/api/v1/notifications/me", headers=headers_for(org["manager"])).json()
    assert sorted(n["type"] for n in notes) == ["APPROVAL_REQUIRED", "REMINDER"]
