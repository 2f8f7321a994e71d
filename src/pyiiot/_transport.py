"""Authenticated HTTP transport with bearer tokens and session-expiry handling."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp

from pyiiot._constants import USER_AGENT
from pyiiot._redact import redact_for_log, redact_headers
from pyiiot.config import IiotConfig
from pyiiot.exceptions import (
    IiotApiError,
    IiotNetworkError,
    IiotSessionExpiredError,
    IiotSessionStorageError,
    IiotTransportError,
)
from pyiiot.session import SessionStore

_logger = logging.getLogger(__name__)

SessionEndedCallback = Callable[[], None]


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`AuthenticatedTransport`)
    concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any: ...


class SessionEndedSignal:
    """Ordered set of callbacks fired when an authorization failure ends the session.

    The hosting application subscribes and decides what to do (typically
    route to its login screen).
    """

    def __init__(self) -> None:
        self._callbacks: list[SessionEndedCallback] = []

    def connect(self, callback: SessionEndedCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    def emit(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                _logger.warning("session-ended callback failed", exc_info=True)


def _error_message(body: Any, text: str) -> str:
    """Pull the server's human-readable message out of an error body."""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return str(error["message"])
    return text[:200]


class AuthenticatedTransport:
    """REST transport that attaches the session's bearer token.

    Every outbound call reads the :class:`SessionStore`; a 401 response
    clears it, fires :attr:`session_ended` once per cleared session, and
    still raises to the caller.
    """

    def __init__(
        self,
        config: IiotConfig,
        session_store: SessionStore,
        http_session: aiohttp.ClientSession,
        *,
        session_ended: SessionEndedSignal | None = None,
    ) -> None:
        self._config = config
        self._session_store = session_store
        self._http = http_session
        self.session_ended = session_ended if session_ended is not None else SessionEndedSignal()
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        token = self._session_store.get().access_token
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    def _handle_unauthorized(self) -> IiotSessionStorageError | None:
        # Clearing an already-cleared session is a no-op, so only the
        # first of several concurrent 401s emits.
        storage_error: IiotSessionStorageError | None = None
        try:
            cleared = self._session_store.clear()
        except IiotSessionStorageError as exc:
            _logger.warning("Session cleared in memory but not in storage: %s", exc)
            cleared = True
            storage_error = exc
        if cleared:
            _logger.info("Session ended by authorization failure")
            self.session_ended.emit()
        return storage_error

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send one REST call and return the decoded JSON body.

        Raises
        ------
        IiotSessionExpiredError
            HTTP 401; the session has been cleared.
        IiotApiError
            Any other non-2xx status.
        IiotNetworkError
            No response was received.
        IiotTransportError
            The response body is not JSON.
        """
        url = f"{self._config.base_url.rstrip('/')}{path}"
        headers = self._build_headers()

        _logger.debug(
            "%s %s params=%s headers=%s body=%s",
            method,
            url,
            dict(params) if params else None,
            redact_headers(headers),
            redact_for_log(json),
        )

        try:
            async with self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise IiotNetworkError(
                f"Request to {path} failed: {exc or type(exc).__name__}",
                endpoint=path,
            ) from exc

        body: Any = None
        decode_error: ValueError | None = None
        if text.strip():
            try:
                body = _decode_json(text)
            except ValueError as exc:
                decode_error = exc

        if status == 401:
            storage_error = self._handle_unauthorized()
            raise IiotSessionExpiredError(
                f"HTTP 401 from {path}: {_error_message(body, text)}",
                status_code=status,
                endpoint=path,
            ) from storage_error

        if not 200 <= status < 300:
            raise IiotApiError(
                f"HTTP {status} from {path}: {_error_message(body, text)}",
                status_code=status,
                endpoint=path,
            )

        if decode_error is not None:
            raise IiotTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            ) from decode_error

        _logger.debug("%s %s -> %s body=%s", method, path, status, redact_for_log(body))
        return body


def _decode_json(text: str) -> Any:
    return json.loads(text)
