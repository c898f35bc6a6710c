from typing import Any, Dict, Optional


class AtollClientError(Exception):
    """Base error for client failures."""


class AtollPreconditionError(AtollClientError):
    """Raised when the client is used out of order (no map, no host, etc.)."""


class AtollBusyError(AtollPreconditionError):
    """Raised when a connection attempt is already in progress."""


class AtollSessionChangedError(AtollPreconditionError):
    """A token refresh finished after the session was cleared or logged in again."""


class AtollResolutionError(AtollClientError):
    """The API map or a links list does not match what the caller asked for."""


class AtollNotFoundError(AtollResolutionError):
    pass


class AtollAmbiguousError(AtollResolutionError):
    pass


class AtollTransportError(AtollClientError):
    """
    Structured transport failure.
    Connect-style operations turn these into a display string instead of raising.
    """

    status: Optional[int] = None
    detail: str = ""


class AtollHTTPError(AtollTransportError):
    def __init__(
        self,
        *,
        status_code: int,
        method: str,
        url: str,
        message: str,
        response_json: Optional[Dict[str, Any]] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(f"{status_code} {method} {url}: {message}")
        self.status_code = status_code
        self.status = status_code
        self.detail = message
        self.method = method
        self.url = url
        self.response_json = response_json
        self.response_text = response_text


class AtollNetworkError(AtollTransportError):
    def __init__(self, message: str):
        super().__init__(message)
        self.detail = message


class AtollParseError(AtollClientError):
    pass


class AtollModelValidationError(AtollClientError):
    pass


__all__ = [
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
]
