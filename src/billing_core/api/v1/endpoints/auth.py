# src/billing_core/api/v1/endpoints/auth.py
"""Guest sign-in and the OAuth callback replay boundary."""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated, Protocol

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from jose import jwt

from billing_core.api.v1.dependencies import RateLimit, ReplayGuardDep, SessionDep
from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import settings
from billing_core.models.user import ROLE_GUEST, User
from billing_core.schemas.user import GuestLoginResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

guest_rate_limit = RateLimit(
    "guest",
    limit_setting="guest_signin_limit",
    window_setting="guest_signin_window_ms",
    per="ip",
    message="Too many guest sign-ins. Please try again later.",
)


def require_guest_login() -> None:
    """Reject guest sign-in before it counts against the caller's quota."""
    if not settings.enable_guest_login:
        raise BillingError(
            ErrorKind.FORBIDDEN,
            "Guest login is disabled. Ask an admin to enable ENABLE_GUEST_LOGIN.",
            scope="auth",
        )


class CallbackHandler(Protocol):
    """Completes a provider login and returns the URL to redirect the browser to."""

    async def __call__(self, *, provider: str, code: str, state: str | None) -> str: ...


class UnconfiguredCallbackHandler:
    """Placeholder used until the application wires a provider integration."""

    async def __call__(self, *, provider: str, code: str, state: str | None) -> str:
        raise BillingError(
            ErrorKind.BAD_REQUEST,
            f"Sign-in provider '{provider}' is not configured.",
            scope="auth",
        )


def get_callback_handler() -> CallbackHandler:
    return UnconfiguredCallbackHandler()


CallbackHandlerDep = Annotated[CallbackHandler, Depends(get_callback_handler)]


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create JWT access token for user authentication."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def _replay_cookie_value(token: str) -> str:
    # Only a digest of the authorization code ever reaches the browser.
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _replay_redirect(previous: str | None) -> RedirectResponse:
    # The browser cookie can outlive the server entry; fall back to the landing page.
    return RedirectResponse(
        previous or settings.oauth_redirect_path, status_code=status.HTTP_303_SEE_OTHER
    )


@router.post(
    "/guest",
    summary="Create a guest account and issue a token",
    status_code=status.HTTP_201_CREATED,
    response_model=GuestLoginResponse,
    dependencies=[Depends(require_guest_login), Depends(guest_rate_limit)],
)
async def guest_sign_in(db: SessionDep) -> GuestLoginResponse:
    user = User(role=ROLE_GUEST)
    db.add(user)
    db.commit()
    db.refresh(user)
    return GuestLoginResponse(
        access_token=create_access_token(user.id, {"role": user.role}),
        user_id=user.id,
    )


@router.get(
    "/callback/{provider}",
    summary="Complete an OAuth sign-in exactly once per authorization code",
)
async def oauth_callback(
    provider: str,
    request: Request,
    guard: ReplayGuardDep,
    handler: CallbackHandlerDep,
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """Run the provider handler once per code; repeated deliveries get the first redirect."""
    token = f"{provider}:{code}" if code else ""

    if token:
        cookie = request.cookies.get(settings.replay_cookie_name)
        if cookie and cookie == _replay_cookie_value(token):
            logger.info("Callback for %s replayed by the browser; skipping handler", provider)
            return _replay_redirect(guard.previous_result(token))
        if guard.seen(token):
            logger.info("Callback for %s already processed; skipping handler", provider)
            return _replay_redirect(guard.previous_result(token))

    redirect_to = await handler(provider=provider, code=code or "", state=state)
    guard.record(token, result=redirect_to)

    response = RedirectResponse(redirect_to, status_code=status.HTTP_303_SEE_OTHER)
    if token:
        response.set_cookie(
            settings.replay_cookie_name,
            _replay_cookie_value(token),
            max_age=settings.replay_ttl_seconds,
            httponly=True,
            samesite="lax",
            secure=not settings.debug,
        )
    return response
