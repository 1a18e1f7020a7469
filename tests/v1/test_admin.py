# mypy: ignore-errors
# tests/v1/test_admin.py
"""Tests for administrator endpoints."""

from __future__ import annotations

from fastapi import status

from billing_core.models import TransactionStatus


def test_list_transactions(client, admin_token, make_transaction) -> None:
    make_transaction()
    make_transaction(status=TransactionStatus.PAID)

    response = client.get("/api/v1/admin/transactions", headers=admin_token)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert data["limit"] == 50
    assert {item["status"] for item in data["items"]} == {"created", "paid"}


def test_list_transactions_by_status(client, admin_token, make_transaction) -> None:
    make_transaction()
    paid = make_transaction(status=TransactionStatus.PAID)

    response = client.get(
        "/api/v1/admin/transactions", params={"status": "paid"}, headers=admin_token
    )

    assert [item["order_id"] for item in response.json()["items"]] == [paid.order_id]


def test_list_transactions_requires_admin(client, auth_token) -> None:
    response = client.get("/api/v1/admin/transactions", headers=auth_token)

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_system_status(client, admin_token, make_transaction) -> None:
    make_transaction()
    make_transaction(status=TransactionStatus.FAILED)

    response = client.get("/api/v1/system/status", headers=admin_token)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["ok"] is True
    assert [check["label"] for check in data["checks"]] == ["database", "transactions"]
    assert data["transactions_by_status"] == {"created": 1, "failed": 1}
    assert data["backends"] == {"rate_limit": "memory", "replay": "memory"}


def test_system_status_requires_admin(client, auth_token) -> None:
    response = client.get("/api/v1/system/status", headers=auth_token)

    assert response.status_code == status.HTTP_403_FORBIDDEN
