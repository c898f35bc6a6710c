"""
Authentication state for one Atoll session.

AuthSession owns the token pair, pushes the bearer header to the transport,
and acts as the transport's AuthRefresher once the auto-refresh hook is
registered. At most one refresh runs at a time per session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import (
    AtollClientError,
    AtollPreconditionError,
    AtollSessionChangedError,
)
from .models import AuthTokens, envelope_item
from .notifications import (
    RECONNECT_FAILED_MESSAGE,
    RECONNECTED_MESSAGE,
    RECONNECTING_MESSAGE,
    HostNotificationHandler,
    NotificationLevel,
    notify,
)
from .observability import log_event
from .transport import AUTHORIZATION_HEADER, RestTransport


class AuthSession:
    def __init__(
        self,
        transport: RestTransport,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.log = logger or logging.getLogger("atoll_client.auth")
        self.auth_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.notification_handler: Optional[HostNotificationHandler] = None
        self._refresh_token_uri: Optional[str] = None
        self._refresh_lock = asyncio.Lock()
        # bumped by login and clear; a refresh started under an older value is stale
        self._generation = 0

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    @property
    def refresh_token_uri(self) -> Optional[str]:
        return self._refresh_token_uri

    def _store(self, tokens: AuthTokens) -> None:
        self.auth_token = tokens.auth_token
        self.refresh_token = tokens.refresh_token
        self.transport.set_default_header(
            AUTHORIZATION_HEADER, f"Bearer {tokens.auth_token}"
        )

    def clear(self) -> None:
        self._generation += 1
        self.auth_token = None
        self.refresh_token = None
        self.transport.remove_default_header(AUTHORIZATION_HEADER)

    async def login(self, login_uri: str, username: str, password: str) -> AuthTokens:
        # bad credentials are a plain 401, not an expired token
        payload = await self.transport.exec_action(
            login_uri,
            {"username": username, "password": password},
            skip_retry_on_auth_failure=True,
            operation="login",
        )
        tokens = envelope_item(payload, AuthTokens)
        self._generation += 1
        self._store(tokens)
        return tokens

    async def refresh(
        self, refresh_token_uri: str, refresh_token: Optional[str] = None
    ) -> AuthTokens:
        """
        Exchange a refresh token for a new token pair.
        Uses the held refresh token unless one is passed in (session resume).
        The call skips the transport's auth-failure hook so a rejected refresh
        token cannot recurse into another refresh.
        """
        generation = self._generation
        token_before_wait = self.refresh_token
        async with self._refresh_lock:
            if (
                refresh_token is None
                and self.refresh_token is not None
                and self.auth_token is not None
                and self.refresh_token != token_before_wait
            ):
                # rotated by the refresh we were queued behind
                return AuthTokens(
                    auth_token=self.auth_token, refresh_token=self.refresh_token
                )
            token = refresh_token or self.refresh_token
            if not token:
                raise AtollPreconditionError("No refresh token is available!")

            payload = await self.transport.exec_action(
                refresh_token_uri,
                {"refreshToken": token},
                skip_retry_on_auth_failure=True,
                operation="refresh",
            )
            tokens = envelope_item(payload, AuthTokens)
            if self._generation != generation:
                raise AtollSessionChangedError(
                    "Session was cleared or replaced while refreshing the token."
                )
            self._store(tokens)
            return tokens

    def register_auto_refresh_hook(self, refresh_token_uri: str) -> None:
        self._refresh_token_uri = refresh_token_uri
        self.transport.auth_refresher = self

    async def _notify(self, message: str, level: NotificationLevel) -> None:
        # the hook reports a bool to the transport; a broken handler must not escape it
        try:
            await notify(self.notification_handler, message, level)
        except Exception:
            self.log.exception("Notification handler failed for %r", message)

    async def refresh_on_auth_failure(self) -> bool:
        if not self._refresh_token_uri:
            return False

        await self._notify(RECONNECTING_MESSAGE, NotificationLevel.WARN)
        try:
            await self.refresh(self._refresh_token_uri)
        except AtollClientError as exc:
            self.log.warning("Token refresh failed: %s", exc)
            log_event("token_refresh_failed", error_type=type(exc).__name__)
            await self._notify(RECONNECT_FAILED_MESSAGE, NotificationLevel.ERROR)
            return False

        log_event("token_refresh", outcome="ok")
        await self._notify(RECONNECTED_MESSAGE, NotificationLevel.INFO)
        return True


__all__ = ["AuthSession"]
