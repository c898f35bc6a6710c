import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import AtollHTTPError, AtollNetworkError, AtollParseError

AUTHORIZATION_HEADER = "Authorization"


class AuthRefresher(Protocol):
    """Capability the transport calls when the server rejects a request with 401."""

    async def refresh_on_auth_failure(self) -> bool:
        """Return True to retry the original request, False to surface the 401."""
        ...


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 2  # total extra attempts
    backoff_base_seconds: float = 0.3  # 0.3, 0.6, 1.2...
    retry_statuses: frozenset[int] = frozenset({502, 503, 504})
    retry_on_429: bool = False


class RestTransport:
    """
    Shared HTTP transport for the Atoll JSON API.
    - Handles default headers, timeouts, retries
    - Hands 401s to the registered AuthRefresher, then retries once
    - Returns raw dict payloads; the session layer owns envelopes and models
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        retry: Optional[RetryConfig] = None,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.retry = retry if retry is not None else RetryConfig()
        self.log = logger or logging.getLogger("atoll_client.transport")
        self.auth_refresher: Optional[AuthRefresher] = None

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "RestTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def set_default_header(self, name: str, value: str) -> None:
        self.http.headers[name] = value

    def remove_default_header(self, name: str) -> None:
        self.http.headers.pop(name, None)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        skip_retry_on_auth_failure: bool = False,
        operation: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Core request method.
        - Retries on transient failures (network/timeouts + 502/503/504; optionally 429)
        - On 401 asks the AuthRefresher (unless skipped) and retries once if it recovers
        - Auth calls (skip_retry_on_auth_failure) are not resent after a read timeout
        - Raises AtollHTTPError on non-2xx HTTP responses
        - Raises AtollNetworkError on network/timeout errors after retries
        - Raises AtollParseError if response isn't a JSON object
        - Returns parsed JSON dict on success
        """
        method = method.upper()
        start = time.perf_counter()

        attempt = 0
        auth_refreshed = False

        while True:
            try:
                resp = await self.http.request(method, url, json=json)
                duration_ms = int((time.perf_counter() - start) * 1000)

                # structured-ish log without secrets
                self.log.debug(
                    "op.request",
                    extra={
                        "operation": operation,
                        "method": method,
                        "url": str(resp.request.url),
                        "status": resp.status_code,
                        "duration_ms": duration_ms,
                        "attempt": attempt,
                    },
                )

                # Retry certain status codes
                if resp.status_code in self.retry.retry_statuses or (
                    self.retry.retry_on_429 and resp.status_code == 429
                ):
                    if attempt < self.retry.max_retries:
                        await asyncio.sleep(
                            self.retry.backoff_base_seconds * (2**attempt)
                        )
                        attempt += 1
                        continue

                if (
                    resp.status_code == 401
                    and not skip_retry_on_auth_failure
                    and not auth_refreshed
                    and self.auth_refresher is not None
                ):
                    auth_refreshed = True
                    if await self.auth_refresher.refresh_on_auth_failure():
                        continue

                # Raise on non-2xx
                if resp.status_code < 200 or resp.status_code >= 300:
                    raise self._to_http_error(resp, method=method)

                return self._safe_json(resp)

            except (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout) as exc:
                # a read timeout may mean the server already rotated the token
                resend_allowed = not (
                    skip_retry_on_auth_failure and isinstance(exc, httpx.ReadTimeout)
                )
                if resend_allowed and attempt < self.retry.max_retries:
                    await asyncio.sleep(self.retry.backoff_base_seconds * (2**attempt))
                    attempt += 1
                    continue
                raise AtollNetworkError(
                    f"Network/timeout error calling {method} {url}: {exc}"
                ) from exc

            except httpx.HTTPError as exc:
                # Other httpx exceptions (rare) - do not blindly retry
                raise AtollNetworkError(
                    f"HTTPX error calling {method} {url}: {exc}"
                ) from exc

    def _safe_json(self, resp: httpx.Response) -> Dict[str, Any]:
        # Handle empty responses (204 No Content, etc.)
        if not resp.content:
            return {}

        try:
            data = resp.json()
        except ValueError as exc:
            snippet = (resp.text or "")[:500]
            raise AtollParseError(
                f"Expected JSON from {resp.request.method} "
                f"{resp.request.url}, got non-JSON body snippet: "
                f"{snippet!r}"
            ) from exc

        if not isinstance(data, dict):
            raise AtollParseError(
                f"Expected top-level JSON object from "
                f"{resp.request.method} {resp.request.url}, "
                f"got {type(data).__name__}"
            )
        return data

    def _to_http_error(self, resp: httpx.Response, *, method: str) -> AtollHTTPError:
        url = str(resp.request.url)
        # Try JSON first; fall back to text snippet.
        response_json: Optional[Dict[str, Any]] = None
        response_text: Optional[str] = None
        message = resp.reason_phrase or "request failed"

        try:
            parsed = resp.json()
            if isinstance(parsed, dict):
                response_json = parsed
                # Atoll error envelopes carry {"status": ..., "message": ...}
                message = parsed.get("message") or parsed.get("error") or message
        except ValueError:
            response_text = (resp.text or "")[:500]

        return AtollHTTPError(
            status_code=resp.status_code,
            method=method,
            url=url,
            message=message,
            response_json=response_json,
            response_text=response_text,
        )

    async def get(self, url: str, *, operation: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("GET", url, operation=operation)

    async def exec_action(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        skip_retry_on_auth_failure: bool = False,
        operation: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            url,
            json=payload,
            skip_retry_on_auth_failure=skip_retry_on_auth_failure,
            operation=operation,
        )


__all__ = ["AUTHORIZATION_HEADER", "AuthRefresher", "RetryConfig", "RestTransport"]
