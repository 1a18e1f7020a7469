# src/billing_core/api/v1/endpoints/system.py
"""Service status probe for administrators."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text

from billing_core.api.v1.dependencies import AdminUserDep, RateLimit, SessionDep
from billing_core.core.settings import settings
from billing_core.models import PaymentTransaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])

status_rate_limit = RateLimit(
    "status",
    limit_setting="status_probe_limit",
    window_setting="status_probe_window_ms",
    per="ip",
)


def _run_check(label: str, fn: Callable[[], int]) -> dict[str, Any]:
    started = time.perf_counter()
    try:
        count = fn()
    except Exception as exc:
        logger.error("[status] %s check failed: %s", label, exc)
        return {
            "label": label,
            "status": "error",
            "ms": round((time.perf_counter() - started) * 1000, 2),
            "error": str(exc),
        }
    return {
        "label": label,
        "status": "ok",
        "ms": round((time.perf_counter() - started) * 1000, 2),
        "count": count,
    }


@router.get("/status", dependencies=[Depends(status_rate_limit)])
async def get_status(_admin: AdminUserDep, db: SessionDep) -> dict[str, object]:
    """Probe the database and summarise the ledger by status."""
    checks = [
        _run_check("database", lambda: int(db.scalar(text("SELECT 1")) or 0)),
        _run_check(
            "transactions",
            lambda: int(db.scalar(select(func.count()).select_from(PaymentTransaction)) or 0),
        ),
    ]
    by_status = dict(
        db.execute(
            select(PaymentTransaction.status, func.count()).group_by(PaymentTransaction.status)
        ).all()
    )
    return {
        "app": {"name": settings.app_name, "version": settings.app_version},
        "ok": all(check["status"] == "ok" for check in checks),
        "checks": checks,
        "transactions_by_status": {key: int(value) for key, value in by_status.items()},
        "backends": {
            "rate_limit": settings.rate_limit_backend,
            "replay": settings.replay_backend,
        },
    }
