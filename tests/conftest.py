# tests/conftest.py
from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from itertools import count
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from billing_core.api.v1 import dependencies as api_dependencies
from billing_core.api.v1.endpoints.auth import create_access_token
from billing_core.core.clock import ManualClock
from billing_core.core.security import compute_payment_signature
from billing_core.core.settings import settings
from billing_core.db.session import Base
from billing_core.db.session import get_db as app_get_session
from billing_core.main import app as fastapi_app
from billing_core.models import PaymentTransaction, PricingPlan, TransactionStatus, User
from billing_core.models.user import ROLE_ADMIN
from billing_core.services.gateway import GatewayClient
from billing_core.services.rate_limit import RateLimiter
from billing_core.services.replay import ReplayGuard
from billing_core.services.store import MemoryCounterStore, MemoryTokenStore

TEST_DB_URL = "sqlite://"
START_MS = 1_700_000_000_000

_ORDER_COUNTER = count(1)


class FakeRazorpay:
    """In-memory stand-in for the gateway's orders API, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def add_order(
        self, order_id: str, *, amount: int, currency: str = "INR", status: str = "paid"
    ) -> dict[str, Any]:
        order = {
            "id": order_id,
            "amount": amount,
            "currency": currency,
            "status": status,
            "receipt": f"recharge-{order_id}",
            "notes": {},
        }
        self.orders[order_id] = order
        return order

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Yield so concurrent settlements interleave at the gateway call.
        await asyncio.sleep(0)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "boom"})
        path = request.url.path
        if request.method == "POST" and path.endswith("/orders"):
            body = json.loads(request.content)
            order_id = f"order_{next(_ORDER_COUNTER):06d}"
            order = self.add_order(
                order_id, amount=body["amount"], currency=body["currency"], status="created"
            )
            order["receipt"] = body["receipt"]
            order["notes"] = body.get("notes") or {}
            return httpx.Response(200, json=order)
        if request.method == "GET" and "/orders/" in path:
            order_id = path.rsplit("/", 1)[-1]
            order = self.orders.get(order_id)
            if order is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=order)
        return httpx.Response(400, json={"error": "unsupported"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(START_MS)


@pytest.fixture()
def rate_limiter(clock: ManualClock) -> RateLimiter:
    return RateLimiter(MemoryCounterStore(), clock)


@pytest.fixture()
def replay_guard(clock: ManualClock) -> ReplayGuard:
    return ReplayGuard(MemoryTokenStore(), ttl_ms=60_000, clock=clock)


@pytest.fixture()
def fake_razorpay() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture()
def gateway(fake_razorpay: FakeRazorpay) -> GatewayClient:
    return GatewayClient(settings, transport=fake_razorpay.transport())


@pytest.fixture()
def app(
    db_session: Session,
    rate_limiter: RateLimiter,
    replay_guard: ReplayGuard,
    gateway: GatewayClient,
) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        app_get_session: _get_session_override,
        api_dependencies.get_rate_limiter_dep: lambda: rate_limiter,
        api_dependencies.get_replay_guard_dep: lambda: replay_guard,
        api_dependencies.get_gateway_dep: lambda: gateway,
    }
    fastapi_app.dependency_overrides.update(overrides)
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture()
def test_user(db_session: Session) -> User:
    user = User(email="buyer@example.com")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def other_user(db_session: Session) -> User:
    user = User(email="other@example.com")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    user = User(email="admin@example.com", role=ROLE_ADMIN)
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers(test_user)


@pytest.fixture()
def admin_token(admin_user: User) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture()
def plan(db_session: Session) -> PricingPlan:
    plan = PricingPlan(
        name="Starter",
        description="Starter recharge",
        price_minor=49_900,
        currency="INR",
        token_allowance=50_000,
        billing_cycle_days=30,
        is_active=True,
    )
    db_session.add(plan)
    db_session.commit()
    return plan


@pytest.fixture()
def make_transaction(
    db_session: Session, test_user: User, plan: PricingPlan
) -> Callable[..., PaymentTransaction]:
    def _make(
        *,
        order_id: str | None = None,
        user: User | None = None,
        amount: int | None = None,
        currency: str = "INR",
        status: TransactionStatus = TransactionStatus.CREATED,
        claimed_at: datetime | None = None,
    ) -> PaymentTransaction:
        transaction = PaymentTransaction(
            order_id=order_id or f"order_{next(_ORDER_COUNTER):06d}",
            user_id=(user or test_user).id,
            plan_id=plan.id,
            amount=plan.price_minor if amount is None else amount,
            currency=currency,
            status=status.value,
            claimed_at=claimed_at,
        )
        db_session.add(transaction)
        db_session.commit()
        return transaction

    return _make


def sign(order_id: str, payment_id: str) -> str:
    """Return the signature the gateway would hand the browser."""
    return compute_payment_signature(order_id, payment_id, settings.razorpay_key_secret or "")
