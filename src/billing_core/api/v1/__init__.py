# src/billing_core/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    activity_router,
    admin_router,
    auth_router,
    billing_router,
    guards_router,
    system_router,
)

__all__ = [
    "activity_router",
    "admin_router",
    "auth_router",
    "billing_router",
    "guards_router",
    "system_router",
]
