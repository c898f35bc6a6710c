"""Core session surface for atoll-client."""

from .api_map import (
    MAP_RELATIVE_URL,
    ApiMap,
    canonicalize_url,
    load_map,
    resolve_absolute,
    resolve_relative,
)
from .auth import AuthSession
from .client import AtollClient
from .config import AtollSettings, create_client_from_env, load_env_config
from .errors import (
    AtollAmbiguousError,
    AtollBusyError,
    AtollSessionChangedError,
    AtollClientError,
    AtollHTTPError,
    AtollModelValidationError,
    AtollNetworkError,
    AtollNotFoundError,
    AtollParseError,
    AtollPreconditionError,
    AtollResolutionError,
    AtollTransportError,
)
from .links import find_link_by_rel, find_link_uri_by_rel, find_unique
from .models import (
    ApiMapItem,
    AuthTokens,
    Link,
    ProjectResourceItem,
    SprintBacklogItemResourceItem,
    SprintResourceItem,
)
from .notifications import HostNotificationHandler, NotificationLevel
from .transport import AuthRefresher, RestTransport, RetryConfig

__all__ = [
    # Client
    "AtollClient",
    "AuthSession",
    "RestTransport",
    "RetryConfig",
    "AuthRefresher",
    # API map
    "MAP_RELATIVE_URL",
    "ApiMap",
    "canonicalize_url",
    "load_map",
    "resolve_relative",
    "resolve_absolute",
    # Links
    "find_unique",
    "find_link_by_rel",
    "find_link_uri_by_rel",
    # Models
    "Link",
    "ApiMapItem",
    "AuthTokens",
    "ProjectResourceItem",
    "SprintResourceItem",
    "SprintBacklogItemResourceItem",
    # Notifications
    "HostNotificationHandler",
    "NotificationLevel",
    # Exceptions
    "AtollClientError",
    "AtollPreconditionError",
    "AtollBusyError",
    "AtollSessionChangedError",
    "AtollResolutionError",
    "AtollNotFoundError",
    "AtollAmbiguousError",
    "AtollTransportError",
    "AtollHTTPError",
    "AtollNetworkError",
    "AtollParseError",
    "AtollModelValidationError",
    # Config
    "AtollSettings",
    "create_client_from_env",
    "load_env_config",
]
