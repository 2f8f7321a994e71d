"""Account endpoints: login, register, refresh, logout, current user."""

from __future__ import annotations

import logging
from typing import Any

from pyiiot._api._envelope import unwrap, validate_model
from pyiiot._constants import CURRENT_USER_PATH, LOGIN_PATH, LOGOUT_PATH, REFRESH_PATH, REGISTER_PATH
from pyiiot._redact import mask_token
from pyiiot._transport import Transport
from pyiiot.exceptions import IiotApiError, IiotAuthenticationError, IiotMalformedPayloadError
from pyiiot.models.user import AuthResult, UserSummary

_logger = logging.getLogger(__name__)


def parse_auth_response(body: Any, *, endpoint: str) -> AuthResult:
    """Extract tokens (and user, when present) from an auth response.

    Raises
    ------
    IiotAuthenticationError
        If the response carries no access token.
    """
    try:
        result = validate_model(AuthResult, unwrap(body), endpoint=endpoint)
    except IiotMalformedPayloadError as exc:
        raise IiotAuthenticationError(f"{endpoint} response missing token fields", endpoint=endpoint) from exc
    _logger.debug(
        "%s succeeded token=%s refresh=%s",
        endpoint,
        mask_token(result.token),
        mask_token(result.refresh_token),
    )
    return result


def _as_auth_error(exc: IiotApiError, action: str) -> IiotAuthenticationError:
    if isinstance(exc, IiotAuthenticationError):
        return exc
    return IiotAuthenticationError(
        f"{action} failed: {exc}",
        status_code=exc.status_code,
        endpoint=exc.endpoint,
    )


async def login(transport: Transport, email: str, password: str) -> AuthResult:
    """``POST /auth/login``."""
    try:
        body = await transport.request("POST", LOGIN_PATH, json={"email": email, "password": password})
    except IiotApiError as exc:
        raise _as_auth_error(exc, "Login") from exc
    return parse_auth_response(body, endpoint=LOGIN_PATH)


async def register(
    transport: Transport,
    email: str,
    password: str,
    *,
    password_confirmation: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> AuthResult | None:
    """``POST /auth/register``.

    Returns ``None`` when the server creates the account without issuing
    tokens (e.g. pending email verification).
    """
    payload: dict[str, Any] = {
        "email": email,
        "password": password,
        "password_confirmation": password_confirmation if password_confirmation is not None else password,
    }
    if first_name is not None:
        payload["firstName"] = first_name
    if last_name is not None:
        payload["lastName"] = last_name
    try:
        body = await transport.request("POST", REGISTER_PATH, json=payload)
    except IiotApiError as exc:
        raise _as_auth_error(exc, "Registration") from exc
    data = unwrap(body)
    if not isinstance(data, dict) or not data.get("token"):
        return None
    return parse_auth_response(data, endpoint=REGISTER_PATH)


async def refresh(transport: Transport, refresh_token: str) -> AuthResult:
    """``POST /auth/refresh``."""
    try:
        body = await transport.request("POST", REFRESH_PATH, json={"refreshToken": refresh_token})
    except IiotApiError as exc:
        raise _as_auth_error(exc, "Token refresh") from exc
    return parse_auth_response(body, endpoint=REFRESH_PATH)


async def logout(transport: Transport) -> None:
    """``POST /auth/logout``."""
    await transport.request("POST", LOGOUT_PATH)


async def current_user(transport: Transport) -> UserSummary:
    """``GET /auth/me``."""
    body = await transport.request("GET", CURRENT_USER_PATH)
    return validate_model(UserSummary, unwrap(body), endpoint=CURRENT_USER_PATH)
