"""Custom exception hierarchy for pyiiot."""

from __future__ import annotations


class IiotError(Exception):
    """Base exception for all pyiiot errors."""


class IiotConfigError(IiotError):
    """Invalid or missing configuration."""


class IiotSessionStorageError(IiotError):
    """The durable session backend could not be read or written."""


class IiotTransportError(IiotError):
    """Request/response failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether the caller may reasonably retry the same call."""
        return False


class IiotNetworkError(IiotTransportError):
    """No response was received (connection refused, DNS, timeout)."""

    @property
    def retryable(self) -> bool:
        return True


class IiotApiError(IiotTransportError):
    """Server answered with a non-2xx status."""

    @property
    def retryable(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class IiotAuthenticationError(IiotApiError):
    """Login or token refresh failed."""


class IiotSessionExpiredError(IiotAuthenticationError):
    """Credential rejected by the server (HTTP 401).

    The session store has already been cleared by the time this reaches
    the caller.
    """


class IiotMalformedPayloadError(IiotError):
    """A payload is missing required fields or has the wrong shape."""

    def __init__(self, message: str, *, event: str = "") -> None:
        self.event = event
        super().__init__(message)


class IiotChannelError(IiotError):
    """The realtime channel could not be opened."""
