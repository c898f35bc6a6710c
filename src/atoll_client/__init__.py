"""atoll_client package exports."""

from .cli import main as run_cli
from .core import (
    ApiMap,
    AtollAmbiguousError,
    AtollBusyError,
    AtollSessionChangedError,
    AtollClient,
    AtollClientError,
    AtollHTTPError,
    AtollModelValidationError,
    AtollNetworkError,
    AtollNotFoundError,
    AtollParseError,
    AtollPreconditionError,
    AtollResolutionError,
    AtollTransportError,
    HostNotificationHandler,
    Link,
    NotificationLevel,
    ProjectResourceItem,
    RestTransport,
    RetryConfig,
    SprintBacklogItemResourceItem,
    SprintResourceItem,
    canonicalize_url,
    find_link_by_rel,
    find_link_uri_by_rel,
)

__all__ = [
    # Client
    "AtollClient",
    "RestTransport",
    "RetryConfig",
    "ApiMap",
    "canonicalize_url",
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
    # Resources and links
    "Link",
    "ProjectResourceItem",
    "SprintResourceItem",
    "SprintBacklogItemResourceItem",
    "find_link_by_rel",
    "find_link_uri_by_rel",
    # Notifications
    "HostNotificationHandler",
    "NotificationLevel",
    # Entry point
    "run_cli",
]
