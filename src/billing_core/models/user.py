# src/billing_core/models/user.py
"""SQLAlchemy model for authenticated principals."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_core.db.session import Base
from billing_core.db.time import utcnow

ROLE_REGULAR = "regular"
ROLE_GUEST = "guest"
ROLE_ADMIN = "admin"


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Account that owns transactions and entitlements."""

    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_REGULAR)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
