"""Session state and its durable store.

One :class:`SessionStore` exists per running client. It is passed
explicitly to the request transport and the realtime channel; nothing in
pyiiot reaches for a module-level session.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from pyiiot._constants import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, SESSION_KEYS, USER_KEY
from pyiiot._redact import mask_token
from pyiiot.exceptions import IiotSessionStorageError
from pyiiot.models.user import UserSummary

_logger = logging.getLogger(__name__)


def _jwt_expiry(token: str | None) -> float | None:
    """Return the ``exp`` claim of a JWT as epoch seconds, without verifying it."""
    if not token or token.count(".") != 2:
        return None
    payload_segment = token.split(".")[1]
    padded = payload_segment + "=" * (-len(payload_segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, UnicodeError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return float(exp)
    return None


class Session(BaseModel):
    """Current credentials plus the signed-in user.

    Parameters
    ----------
    access_token : str or None
        Bearer token attached to every REST call.
    refresh_token : str or None
        Token exchanged for a new access token.
    user : UserSummary or None
        Signed-in user identity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    access_token: str | None = None
    refresh_token: str | None = None
    user: UserSummary | None = None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None and self.refresh_token is None and self.user is None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    @property
    def expires_at(self) -> datetime | None:
        """Expiry decoded from the access token's ``exp`` claim, if it is a JWT."""
        exp = _jwt_expiry(self.access_token)
        if exp is None:
            return None
        return datetime.fromtimestamp(exp, tz=UTC)

    def is_expired(self, skew: float = 0.0, *, now: float | None = None) -> bool:
        """Whether the access token is missing or expires within *skew* seconds.

        Tokens without a readable ``exp`` claim are never considered
        expired here; the server's 401 remains authoritative.
        """
        if not self.access_token:
            return True
        exp = _jwt_expiry(self.access_token)
        if exp is None:
            return False
        current = time.time() if now is None else now
        return current + skew >= exp


class SessionBackend(Protocol):
    """Durable key/value storage for the three session keys."""

    def load(self) -> dict[str, str]: ...

    def save(self, values: dict[str, str]) -> None: ...

    def remove_all(self) -> None: ...


class MemorySessionBackend:
    """Non-durable backend; useful for tests and short-lived scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def load(self) -> dict[str, str]:
        return dict(self.values)

    def save(self, values: dict[str, str]) -> None:
        self.values = dict(values)

    def remove_all(self) -> None:
        self.values = {}


class FileSessionBackend:
    """JSON file backend.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash never leaves a half-written session.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise IiotSessionStorageError(f"Cannot read session file {self._path}: {exc}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            _logger.warning("Ignoring corrupt session file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if key in SESSION_KEYS and isinstance(value, str)}

    def save(self, values: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".session-", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(values, handle)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise IiotSessionStorageError(f"Cannot write session file {self._path}: {exc}") from exc

    def remove_all(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise IiotSessionStorageError(f"Cannot remove session file {self._path}: {exc}") from exc


def _session_to_storage(session: Session) -> dict[str, str]:
    values: dict[str, str] = {}
    if session.access_token:
        values[ACCESS_TOKEN_KEY] = session.access_token
    if session.refresh_token:
        values[REFRESH_TOKEN_KEY] = session.refresh_token
    if session.user is not None:
        values[USER_KEY] = json.dumps(session.user.to_storage(), separators=(",", ":"))
    return values


def _session_from_storage(values: dict[str, str]) -> Session:
    user: UserSummary | None = None
    raw_user = values.get(USER_KEY)
    if raw_user:
        try:
            parsed: Any = json.loads(raw_user)
            user = UserSummary.model_validate(parsed) if isinstance(parsed, dict) else None
        except (json.JSONDecodeError, ValidationError):
            _logger.warning("Dropping unreadable stored user entry")
    return Session(
        access_token=values.get(ACCESS_TOKEN_KEY) or None,
        refresh_token=values.get(REFRESH_TOKEN_KEY) or None,
        user=user,
    )


class SessionStore:
    """Holds the current :class:`Session` and mirrors it to a backend.

    ``set`` and ``clear`` write the backend first and only then swap the
    in-memory value, so callers never observe the two out of step.
    """

    def __init__(self, backend: SessionBackend | None = None) -> None:
        self._backend: SessionBackend = backend if backend is not None else MemorySessionBackend()
        self._session = _session_from_storage(self._backend.load())
        if self._session.is_authenticated:
            _logger.debug("Session rehydrated token=%s", mask_token(self._session.access_token))

    def get(self) -> Session:
        return self._session

    def set(self, session: Session) -> None:
        """Replace the current session (login or refresh)."""
        self._backend.save(_session_to_storage(session))
        self._session = session
        _logger.debug("Session replaced token=%s", mask_token(session.access_token))

    def clear(self) -> bool:
        """Drop the current session.

        Returns ``True`` when a non-empty session was cleared and
        ``False`` when there was nothing to clear; repeated calls are
        no-ops. The in-memory session is dropped even when removing it
        from the backend raises :class:`IiotSessionStorageError`.
        """
        if self._session.is_empty:
            return False
        self._session = Session()
        _logger.debug("Session cleared")
        self._backend.remove_all()
        return True
