"""High-level async client for the IIoT monitoring backend."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pyiiot._api import auth as _auth_api
from pyiiot._transport import AuthenticatedTransport, SessionEndedSignal
from pyiiot.bootstrap import BootstrapController
from pyiiot.channel.mqtt_transport import MqttTransport
from pyiiot.channel.realtime import ChannelTransport, RealtimeChannel
from pyiiot.channel.socketio_transport import SocketIOTransport
from pyiiot.config import IiotConfig
from pyiiot.exceptions import (
    IiotAuthenticationError,
    IiotConfigError,
    IiotError,
    IiotSessionExpiredError,
    IiotSessionStorageError,
)
from pyiiot.models.user import AuthResult, UserSummary
from pyiiot.session import FileSessionBackend, Session, SessionStore
from pyiiot.state.store import StateReconciler

_logger = logging.getLogger(__name__)


class IiotClient:
    """Async client for the IIoT monitoring backend.

    Usage::

        async with IiotClient(IiotConfig.from_env()) as client:
            await client.login()
            dashboard = await client.start_dashboard()
            print(dashboard.reconciler.metrics())
    """

    def __init__(
        self,
        config: IiotConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        session_store: SessionStore | None = None,
        channel_transport: ChannelTransport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        if session_store is None:
            backend = FileSessionBackend(config.session_file) if config.session_file is not None else None
            session_store = SessionStore(backend)
        self._session_store = session_store
        self._session_ended = SessionEndedSignal()
        self._channel_transport = channel_transport
        self._reconciler = StateReconciler(capacity=config.telemetry_capacity)
        self._transport: AuthenticatedTransport | None = None
        self._channel: RealtimeChannel | None = None
        self._dashboard: BootstrapController | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> IiotClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = AuthenticatedTransport(
            self._config,
            self._session_store,
            self._http_session,
            session_ended=self._session_ended,
        )
        self._channel = RealtimeChannel(self._build_channel_transport(), self._session_store)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._dashboard is not None:
            await self._dashboard.stop()
            self._dashboard = None
        elif self._channel is not None:
            await self._channel.disconnect()
        self._channel = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    def _build_channel_transport(self) -> ChannelTransport:
        if self._channel_transport is not None:
            return self._channel_transport
        if self._config.channel_transport == "socketio":
            return SocketIOTransport(self._config, http_session=self._http_session)
        if self._config.channel_transport == "mqtt":
            return MqttTransport(self._config)
        raise IiotConfigError(f"Unknown channel transport {self._config.channel_transport!r}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> IiotConfig:
        return self._config

    @property
    def session(self) -> Session:
        """Current session snapshot (empty when signed out)."""
        return self._session_store.get()

    @property
    def session_store(self) -> SessionStore:
        return self._session_store

    @property
    def reconciler(self) -> StateReconciler:
        return self._reconciler

    @property
    def channel(self) -> RealtimeChannel:
        if self._channel is None:
            raise IiotError("Client not initialized. Use 'async with IiotClient(...) as client:'")
        return self._channel

    def on_session_ended(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call *callback* whenever an authorization failure ends the session.

        Returns a function that removes the callback.
        """
        return self._session_ended.connect(callback)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, email: str | None = None, password: str | None = None) -> Session:
        """Sign in and store the resulting session.

        Credentials default to ``config.email`` / ``config.password``.
        """
        transport = self._require_transport()
        email = email if email is not None else self._config.email
        password = password if password is not None else self._config.password
        if not email or not password:
            raise IiotConfigError("No credentials available (pass email/password or set IIOT_EMAIL/IIOT_PASSWORD)")
        result = await _auth_api.login(transport, email, password)
        return self._store_auth_result(result)

    async def register(
        self,
        email: str,
        password: str,
        *,
        password_confirmation: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> Session | None:
        """Create an account.

        When the server signs the new user in right away the session is
        stored and returned; otherwise ``None``.
        """
        transport = self._require_transport()
        result = await _auth_api.register(
            transport,
            email,
            password,
            password_confirmation=password_confirmation,
            first_name=first_name,
            last_name=last_name,
        )
        if result is None:
            return None
        return self._store_auth_result(result)

    async def logout(self) -> None:
        """Sign out. The local session is cleared even if the server call fails."""
        transport = self._require_transport()
        try:
            if self._session_store.get().is_authenticated:
                await _auth_api.logout(transport)
        except IiotError:
            _logger.debug("Server-side logout failed; clearing local session anyway", exc_info=True)
        finally:
            if self._channel is not None:
                await self._channel.disconnect()
            self._session_store.clear()

    async def current_user(self) -> UserSummary:
        """Fetch the signed-in user and keep it in the stored session."""
        transport = self._require_transport()
        user = await _auth_api.current_user(transport)
        session = self._session_store.get()
        if session.is_authenticated and session.user != user:
            self._session_store.set(session.model_copy(update={"user": user}))
        return user

    async def refresh_session(self) -> Session:
        """Exchange the refresh token for a new access token.

        Raises
        ------
        IiotAuthenticationError
            If there is no refresh token or the server rejects it. The
            session is cleared in both cases.
        """
        transport = self._require_transport()
        current = self._session_store.get()
        if not current.refresh_token:
            self._end_session()
            raise IiotAuthenticationError("No refresh token available")
        try:
            result = await _auth_api.refresh(transport, current.refresh_token)
        except IiotAuthenticationError:
            self._end_session()
            raise
        refreshed = Session(
            access_token=result.token,
            refresh_token=result.refresh_token or current.refresh_token,
            user=result.user or current.user,
        )
        self._session_store.set(refreshed)
        _logger.info("Access token refreshed")
        return refreshed

    async def ensure_session(self) -> Session:
        """Return a usable session, refreshing the access token if it is about to expire.

        Raises
        ------
        IiotSessionExpiredError
            If no usable credential remains.
        """
        current = self._session_store.get()
        if current.is_authenticated and not current.is_expired(self._config.refresh_skew):
            return current
        if current.refresh_token:
            try:
                return await self.refresh_session()
            except IiotSessionExpiredError:
                raise
            except IiotAuthenticationError as exc:
                raise IiotSessionExpiredError(str(exc), status_code=exc.status_code, endpoint=exc.endpoint) from exc
        self._end_session()
        raise IiotSessionExpiredError("Session expired and no refresh token is available")

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard(self) -> BootstrapController:
        """Return the dashboard controller, creating it on first use."""
        if self._dashboard is None:
            self._dashboard = BootstrapController(self._require_transport(), self.channel, self._reconciler)
        return self._dashboard

    async def start_dashboard(self) -> BootstrapController:
        """Refresh the session if needed, then load snapshots and connect the channel."""
        if not self._session_store.get().is_empty:
            await self.ensure_session()
        controller = self.dashboard()
        await controller.start()
        return controller

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> AuthenticatedTransport:
        if self._transport is None:
            raise IiotError("Client not initialized. Use 'async with IiotClient(...) as client:'")
        return self._transport

    def _store_auth_result(self, result: AuthResult) -> Session:
        session = Session(access_token=result.token, refresh_token=result.refresh_token, user=result.user)
        self._session_store.set(session)
        _logger.info("Signed in user_id=%s", result.user.id if result.user else "<unknown>")
        return session

    def _end_session(self) -> None:
        try:
            cleared = self._session_store.clear()
        except IiotSessionStorageError as exc:
            _logger.warning("Session cleared in memory but not in storage: %s", exc)
            cleared = True
        if cleared:
            _logger.info("Session ended")
            self._session_ended.emit()
