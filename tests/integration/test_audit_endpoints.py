"""Integration tests for the audit trail endpoint."""

from __future__ import annotations

from http import HTTPStatus

import pytest
from flask.testing import FlaskClient

ENDPOINT = "/api/v1/audit/logs"

ENTRY = {
    "entry_type": "income",
    "entry_date": "2025-02-14",
    "amount": 50000,
    "currency": "GBP",
    "jurisdiction": "UK",
    "category": "consulting",
}

CALCULATION = {
    "employee_name": "Jane Doe",
    "jurisdiction": "NL",
    "gross_salary": 500000,
    "period_start": "2025-01-01",
    "period_end": "2025-01-31",
}


def _book_and_calculate(client: FlaskClient) -> None:
    headers = {"User-Agent": "crossledger-tests"}
    assert client.post("/api/v1/ledger/entries", json=ENTRY, headers=headers).status_code == 201
    assert (
        client.post("/api/v1/payroll/calculations", json=CALCULATION, headers=headers).status_code
        == 201
    )


def test_audit_trail_starts_empty(client: FlaskClient) -> None:
    response = client.get(ENDPOINT)

    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"logs": []}


def test_writes_are_listed_newest_first_with_their_origin(client: FlaskClient) -> None:
    _book_and_calculate(client)

    logs = client.get(ENDPOINT).get_json()["logs"]

    assert [log["action"] for log in logs] == [
        "payroll_calculation_create",
        "ledger_entry_create",
    ]
    ledger_log = logs[1]
    assert ledger_log["entity_type"] == "ledger_entry"
    assert ledger_log["entity_id"] == 1
    assert ledger_log["changes"] == {
        "entry_type": "income",
        "amount": 50000,
        "currency": "GBP",
        "amount_base": 50000,
        "jurisdiction": "UK",
    }
    assert ledger_log["ip_address"] == "127.0.0.1"
    assert ledger_log["user_agent"] == "crossledger-tests"
    assert ledger_log["created_at"] is not None


def test_logs_can_be_filtered_by_action(client: FlaskClient) -> None:
    _book_and_calculate(client)

    response = client.get(f"{ENDPOINT}?action=payroll_calculation_create&limit=5")

    assert response.status_code == HTTPStatus.OK
    logs = response.get_json()["logs"]
    assert len(logs) == 1
    assert logs[0]["entity_type"] == "payroll_calculation"
    assert logs[0]["changes"]["status"] == "computed"


def test_failed_writes_are_not_audited(client: FlaskClient) -> None:
    response = client.post("/api/v1/ledger/entries", json={**ENTRY, "amount": -1})

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert client.get(ENDPOINT).get_json() == {"logs": []}


@pytest.mark.parametrize("query", ["limit=0", "limit=many", "entity=ledger_entry"])
def test_invalid_queries_are_rejected(client: FlaskClient, query: str) -> None:
    response = client.get(f"{ENDPOINT}?{query}")

    assert response.status_code == HTTPStatus.BAD_REQUEST
    body = response.get_json()
    assert body["error"] == "validation_error"
    assert body["message"].startswith("Invalid audit query:")
