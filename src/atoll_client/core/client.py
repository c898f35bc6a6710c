import logging
from typing import List, Optional, Type, TypeVar
from urllib.parse import urlsplit

from pydantic import BaseModel

from . import links as _links
from .api_map import ApiMap, canonicalize_url, load_map, resolve_absolute
from .auth import AuthSession
from .errors import (
    AtollBusyError,
    AtollHTTPError,
    AtollPreconditionError,
    AtollTransportError,
)
from .models import (
    Link,
    ProjectResourceItem,
    SprintBacklogItemResourceItem,
    SprintResourceItem,
    envelope_item,
    envelope_items,
)
from .notifications import HostNotificationHandler
from .observability import log_event
from .transport import RestTransport, RetryConfig

T = TypeVar("T", bound=BaseModel)

USER_AUTH_ID = "user-auth"
REFRESH_TOKEN_ID = "refresh-token"
PROJECTS_ID = "projects"
ACTION_REL = "action"
COLLECTION_REL = "collection"


class AtollClient:
    """
    Session manager for the Atoll REST API.
    - Discovers endpoints from the host's API map instead of hardcoding URLs
    - Owns the login/refresh lifecycle through an AuthSession
    - connect* return an error string for transport failures; misuse raises
    """

    def __init__(
        self,
        *,
        transport: Optional[RestTransport] = None,
        timeout_seconds: float = 10.0,
        retry: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._owns_transport = transport is None
        self.transport = transport or RestTransport(
            timeout_seconds=timeout_seconds, retry=retry
        )
        self.log = logger or logging.getLogger("atoll_client.client")
        self.auth = AuthSession(self.transport)

        self.connecting = False
        self.api_map: Optional[ApiMap] = None
        self.canonical_host_base_url: Optional[str] = None
        self.notification_handler: Optional[HostNotificationHandler] = None

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "AtollClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def auth_token(self) -> Optional[str]:
        return self.auth.auth_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.auth.refresh_token

    # --- Session lifecycle ------------------------------------------------- #

    def _begin_connect(self) -> None:
        if self.connecting:
            raise AtollBusyError("Another connection is already in progress!")
        if self.auth.is_refreshing:
            raise AtollBusyError("A token refresh is in progress!")
        self.connecting = True

    async def _load_api_map(self, canonical_host_base_url: str) -> ApiMap:
        items = await load_map(self.transport, canonical_host_base_url)
        return ApiMap.from_items(items)

    def _commit(
        self,
        canonical_host_base_url: str,
        api_map: ApiMap,
        refresh_token_uri: str,
        notification_handler: Optional[HostNotificationHandler],
    ) -> None:
        self.canonical_host_base_url = canonical_host_base_url
        self.api_map = api_map
        self.notification_handler = notification_handler
        self.auth.notification_handler = notification_handler
        self.auth.register_auto_refresh_hook(refresh_token_uri)

    def _build_error_result(
        self, error: AtollTransportError, function_name: str
    ) -> str:
        status = error.status if error.status is not None else "network"
        return f"Atoll REST API error: {status} - {error.detail} ({function_name})"

    async def connect(
        self,
        host_base_url: str,
        username: str,
        password: str,
        notification_handler: Optional[HostNotificationHandler] = None,
    ) -> Optional[str]:
        """
        Authenticate user on the provided Atoll host server.

        Args:
            host_base_url: for example, https://atoll.yourdomain.com/
            username: a valid user in the Atoll database
            password: password for the provided username
            notification_handler: receives reconnect events during the session

        Returns:
            None on success, otherwise a message describing the failure.
        """
        self._begin_connect()
        canonical_host_base_url = canonicalize_url(host_base_url)
        try:
            api_map = await self._load_api_map(canonical_host_base_url)
            login_uri = resolve_absolute(
                canonical_host_base_url, api_map, USER_AUTH_ID, ACTION_REL
            )
            refresh_token_uri = resolve_absolute(
                canonical_host_base_url, api_map, REFRESH_TOKEN_ID, ACTION_REL
            )
            await self.auth.login(login_uri, username, password)
        except AtollTransportError as exc:
            log_event(
                "session_connect_failed",
                host=canonical_host_base_url,
                status=exc.status,
                error_type=type(exc).__name__,
            )
            return self._build_error_result(exc, "connect")
        finally:
            self.connecting = False

        self._commit(
            canonical_host_base_url, api_map, refresh_token_uri, notification_handler
        )
        log_event("session_connect", host=canonical_host_base_url, outcome="ok")
        return None

    async def connect_with_refresh_token(
        self,
        host_base_url: str,
        notification_handler: Optional[HostNotificationHandler] = None,
        *,
        refresh_token: Optional[str] = None,
    ) -> Optional[str]:
        """
        Resume a session without credentials, using `refresh_token` or the
        refresh token this client already holds.
        """
        self._begin_connect()
        canonical_host_base_url = canonicalize_url(host_base_url)
        try:
            if not (refresh_token or self.auth.refresh_token):
                raise AtollPreconditionError("No refresh token is available!")
            api_map = await self._load_api_map(canonical_host_base_url)
            refresh_token_uri = resolve_absolute(
                canonical_host_base_url, api_map, REFRESH_TOKEN_ID, ACTION_REL
            )
            await self.auth.refresh(refresh_token_uri, refresh_token)
        except AtollTransportError as exc:
            log_event(
                "session_connect_failed",
                host=canonical_host_base_url,
                status=exc.status,
                error_type=type(exc).__name__,
            )
            return self._build_error_result(exc, "connectWithRefreshToken")
        finally:
            self.connecting = False

        self._commit(
            canonical_host_base_url, api_map, refresh_token_uri, notification_handler
        )
        log_event("session_connect", host=canonical_host_base_url, outcome="resumed")
        return None

    def disconnect(self) -> None:
        if self.is_connecting():
            raise AtollPreconditionError(
                "Unable to disconnect while connection is being established!"
            )
        if self.is_connected():
            self.auth.clear()
            self.transport.auth_refresher = None
            log_event("session_disconnect", host=self.canonical_host_base_url)

    def is_connecting(self) -> bool:
        return self.connecting

    def is_connected(self) -> bool:
        return bool(self.auth.auth_token)

    # --- Resources --------------------------------------------------------- #

    def build_full_uri(self, uri: str) -> str:
        """
        Turn a resource link URI into an absolute URL on the connected host.
        Relative URIs ('/api/v1/...') are prefixed with the canonical host;
        anything that is not an absolute http(s) URL raises ValueError.
        """
        if self.api_map is None:
            raise AtollPreconditionError("API Map needs to be retrieved first!")
        if uri.startswith("/"):
            if not self.canonical_host_base_url:
                raise AtollPreconditionError("Canonical host URL has not been set!")
            uri = f"{self.canonical_host_base_url}{uri}"

        parts = urlsplit(uri)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise ValueError(f"Expected an absolute http(s) URI, got {uri!r}")
        return uri

    async def _fetch_item_or_none(
        self, uri: str, model: Type[T], *, operation: str
    ) -> Optional[T]:
        full_uri = self.build_full_uri(uri)
        try:
            payload = await self.transport.get(full_uri, operation=operation)
        except AtollHTTPError as exc:
            if exc.status_code == 404:
                return None
            raise
        return envelope_item(payload, model)

    async def _fetch_items(
        self, uri: str, model: Type[T], *, operation: str
    ) -> List[T]:
        payload = await self.transport.get(self.build_full_uri(uri), operation=operation)
        return envelope_items(payload, model)

    async def fetch_projects(self) -> List[ProjectResourceItem]:
        projects_uri = resolve_absolute(
            self.canonical_host_base_url, self.api_map, PROJECTS_ID, COLLECTION_REL
        )
        payload = await self.transport.get(projects_uri, operation="fetch_projects")
        return envelope_items(payload, ProjectResourceItem)

    async def fetch_sprints_by_uri(self, uri: str) -> List[SprintResourceItem]:
        return await self._fetch_items(
            uri, SprintResourceItem, operation="fetch_sprints"
        )

    async def fetch_sprint_by_uri(self, uri: str) -> Optional[SprintResourceItem]:
        """Fetch one sprint; None when the server reports it no longer exists (404)."""
        return await self._fetch_item_or_none(
            uri, SprintResourceItem, operation="fetch_sprint"
        )

    async def fetch_sprint_backlog_items_by_uri(
        self, uri: str
    ) -> List[SprintBacklogItemResourceItem]:
        return await self._fetch_items(
            uri, SprintBacklogItemResourceItem, operation="fetch_sprint_backlog_items"
        )

    async def fetch_backlog_item_by_uri(
        self, uri: str
    ) -> Optional[SprintBacklogItemResourceItem]:
        return await self._fetch_item_or_none(
            uri, SprintBacklogItemResourceItem, operation="fetch_backlog_item"
        )

    @staticmethod
    def find_link_by_rel(links: List[Link], rel: str) -> Optional[Link]:
        return _links.find_link_by_rel(links, rel)

    @staticmethod
    def find_link_uri_by_rel(links: List[Link], rel: str) -> Optional[str]:
        return _links.find_link_uri_by_rel(links, rel)


__all__ = [
    "AtollClient",
    "USER_AUTH_ID",
    "REFRESH_TOKEN_ID",
    "PROJECTS_ID",
    "ACTION_REL",
    "COLLECTION_REL",
]
