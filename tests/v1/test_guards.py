# mypy: ignore-errors
# tests/v1/test_guards.py
"""Tests for the rate-limit and replay RPC endpoints."""

from __future__ import annotations

from fastapi import status

from tests.conftest import START_MS


def test_rate_limit_check_reports_decisions(client, admin_token, clock) -> None:
    body = {"key": "export:u1", "limit": 1, "window_ms": 2500}

    allowed = client.post("/api/v1/rate-limit/check", json=body, headers=admin_token)
    denied = client.post("/api/v1/rate-limit/check", json=body, headers=admin_token)

    assert allowed.json() == {
        "allowed": True,
        "reset_at": START_MS + 2500,
        "remaining": 0,
        "retry_after": None,
    }
    assert denied.json()["allowed"] is False
    assert denied.json()["retry_after"] == 3


def test_rate_limit_check_validates_input(client, admin_token) -> None:
    response = client.post(
        "/api/v1/rate-limit/check",
        json={"key": "k", "limit": 0, "window_ms": 1000},
        headers=admin_token,
    )

    assert response.status_code == 422


def test_replay_record_then_check(client, admin_token, clock) -> None:
    token = {"token": "google:abc"}

    assert client.post("/api/v1/replay/check", json=token, headers=admin_token).json() == {
        "seen": False
    }
    recorded = client.post("/api/v1/replay/record", json=token, headers=admin_token)
    assert recorded.status_code == status.HTTP_204_NO_CONTENT
    assert client.post("/api/v1/replay/check", json=token, headers=admin_token).json()["seen"]

    clock.advance(61_000)
    assert not client.post("/api/v1/replay/check", json=token, headers=admin_token).json()["seen"]


def test_empty_replay_token_is_never_seen(client, admin_token) -> None:
    client.post("/api/v1/replay/record", json={"token": ""}, headers=admin_token)

    response = client.post("/api/v1/replay/check", json={}, headers=admin_token)

    assert response.json() == {"seen": False}


def test_guard_endpoints_require_admin(client, auth_token) -> None:
    response = client.post("/api/v1/replay/check", json={"token": "t"}, headers=auth_token)

    assert response.status_code == status.HTTP_403_FORBIDDEN
