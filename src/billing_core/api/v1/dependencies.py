"""Shared API dependencies for authentication, rate limiting and services."""

from typing import Annotated, Literal

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import settings
from billing_core.db.session import get_db
from billing_core.models import User
from billing_core.services.checkout import CheckoutService
from billing_core.services.entitlements import EntitlementProvider, SubscriptionEntitlements
from billing_core.services.gateway import GatewayClient, get_gateway_client
from billing_core.services.ledger import TransactionLedger
from billing_core.services.rate_limit import RateLimiter, get_rate_limiter
from billing_core.services.replay import ReplayGuard, get_replay_guard
from billing_core.services.settlement import SettlementService

# HTTP Bearer scheme; missing credentials are handled by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

UNKNOWN_CLIENT = "unknown"


def get_current_user_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User | None:
    """Return the user behind the bearer token, or None when there is no valid session."""
    if credentials is None:
        return None
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return db.get(User, subject)


OptionalUserDep = Annotated[User | None, Depends(get_current_user_optional)]


def get_current_user(user: OptionalUserDep) -> User:
    """Get the current authenticated user or fail with ``unauthorized``."""
    if user is None:
        raise BillingError(ErrorKind.UNAUTHORIZED)
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_admin_user(user: CurrentUserDep) -> User:
    if not user.is_admin:
        raise BillingError(ErrorKind.FORBIDDEN, "Only administrators can access this resource.")
    return user


AdminUserDep = Annotated[User, Depends(get_admin_user)]


def get_client_key(request: Request) -> str:
    """Return a best-effort client fingerprint (first forwarded IP, else the peer)."""
    headers = request.headers
    forwarded_for = headers.get("x-forwarded-for") or headers.get("forwarded") or ""
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = (headers.get(header) or "").strip()
        if value:
            return value
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


ClientKeyDep = Annotated[str, Depends(get_client_key)]


def get_rate_limiter_dep() -> RateLimiter:
    return get_rate_limiter()


def get_replay_guard_dep() -> ReplayGuard:
    return get_replay_guard()


def get_gateway_dep() -> GatewayClient:
    return get_gateway_client()


RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter_dep)]
ReplayGuardDep = Annotated[ReplayGuard, Depends(get_replay_guard_dep)]
GatewayDep = Annotated[GatewayClient, Depends(get_gateway_dep)]


def get_ledger(db: SessionDep) -> TransactionLedger:
    return TransactionLedger(db)


LedgerDep = Annotated[TransactionLedger, Depends(get_ledger)]


def get_entitlements(db: SessionDep) -> EntitlementProvider:
    return SubscriptionEntitlements(db)


EntitlementsDep = Annotated[EntitlementProvider, Depends(get_entitlements)]


def get_settlement_service(
    ledger: LedgerDep, gateway: GatewayDep, entitlements: EntitlementsDep
) -> SettlementService:
    return SettlementService(ledger, gateway, entitlements)


def get_checkout_service(
    db: SessionDep, ledger: LedgerDep, gateway: GatewayDep
) -> CheckoutService:
    return CheckoutService(db, ledger, gateway)


SettlementServiceDep = Annotated[SettlementService, Depends(get_settlement_service)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]


class RateLimit:
    """Dependency enforcing a fixed-window limit on an endpoint.

    Limits are read from settings on every call so they can be tuned at runtime.

    Args:
        scope: Action name prefixed to the key and used as the error scope.
        limit_setting: Name of the settings attribute holding the request limit.
        window_setting: Name of the settings attribute holding the window in ms.
        per: Actor the key is scoped to: client IP, user, or both.
        message: Message returned when the limit is exceeded.
    """

    def __init__(
        self,
        scope: str,
        *,
        limit_setting: str,
        window_setting: str,
        per: Literal["ip", "user", "user_ip"] = "ip",
        message: str | None = None,
    ) -> None:
        self.scope = scope
        self.limit_setting = limit_setting
        self.window_setting = window_setting
        self.per = per
        self.message = message

    def key_for(self, client_key: str, user: User | None) -> str:
        if self.per == "ip":
            return f"{self.scope}:{client_key}"
        user_part = user.id if user is not None else "anonymous"
        if self.per == "user":
            return f"{self.scope}:{user_part}"
        return f"{self.scope}:{user_part}:{client_key}"

    def __call__(
        self,
        limiter: RateLimiterDep,
        client_key: ClientKeyDep,
        user: OptionalUserDep,
    ) -> None:
        limiter.enforce(
            self.key_for(client_key, user),
            getattr(settings, self.limit_setting),
            getattr(settings, self.window_setting),
            scope=self.scope,
            message=self.message,
        )
