# src/billing_core/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .activity import router as activity_router
from .admin import router as admin_router
from .auth import router as auth_router
from .billing import router as billing_router
from .guards import router as guards_router
from .system import router as system_router

__all__ = [
    "activity_router",
    "admin_router",
    "auth_router",
    "billing_router",
    "guards_router",
    "system_router",
]
