import asyncio

import pytest
from atoll_client.core.auth import AuthSession
from atoll_client.core.errors import (
    AtollHTTPError,
    AtollNetworkError,
    AtollPreconditionError,
    AtollSessionChangedError,
)
from atoll_client.core.notifications import (
    RECONNECT_FAILED_MESSAGE,
    RECONNECTED_MESSAGE,
    RECONNECTING_MESSAGE,
    NotificationLevel,
)

LOGIN_URI = "https://atoll.test/api/v1/actions/login"
REFRESH_URI = "https://atoll.test/api/v1/actions/refresh-token"


def _tokens(auth: str, refresh: str) -> dict:
    return {"status": 200, "data": {"item": {"authToken": auth, "refreshToken": refresh}}}


def _http_error(status: int) -> AtollHTTPError:
    return AtollHTTPError(
        status_code=status, method="POST", url=REFRESH_URI, message="rejected"
    )


class FakeTransport:
    """Records exec_action calls and replays canned responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.auth_refresher = None
        self.gate = None

    def set_default_header(self, name, value):
        self.headers[name] = value

    def remove_default_header(self, name):
        self.headers.pop(name, None)

    async def exec_action(
        self, url, payload, *, skip_retry_on_auth_failure=False, operation=None
    ):
        self.calls.append((url, payload, skip_retry_on_auth_failure))
        if self.gate is not None:
            await self.gate.wait()
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def recorder():
    events = []

    async def handler(message: str, level: NotificationLevel) -> None:
        events.append((message, level))

    return events, handler


@pytest.mark.asyncio
async def test_login_stores_tokens_and_header():
    transport = FakeTransport([_tokens("t1", "r1")])
    session = AuthSession(transport)

    tokens = await session.login(LOGIN_URI, "alice", "secret")

    assert tokens.auth_token == "t1"
    assert session.auth_token == "t1"
    assert session.refresh_token == "r1"
    assert transport.headers["Authorization"] == "Bearer t1"
    url, payload, skipped = transport.calls[0]
    assert url == LOGIN_URI
    assert payload == {"username": "alice", "password": "secret"}
    assert skipped is True


@pytest.mark.asyncio
async def test_login_failure_keeps_prior_tokens():
    transport = FakeTransport([_tokens("t1", "r1"), _http_error(401)])
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")

    with pytest.raises(AtollHTTPError):
        await session.login(LOGIN_URI, "alice", "wrong")

    assert session.auth_token == "t1"
    assert session.refresh_token == "r1"
    assert transport.headers["Authorization"] == "Bearer t1"


@pytest.mark.asyncio
async def test_refresh_uses_current_token_and_skips_hook():
    transport = FakeTransport([_tokens("t1", "r1"), _tokens("t2", "r2")])
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")

    tokens = await session.refresh(REFRESH_URI)

    assert tokens.auth_token == "t2"
    assert session.refresh_token == "r2"
    assert transport.headers["Authorization"] == "Bearer t2"
    assert transport.calls[1] == (REFRESH_URI, {"refreshToken": "r1"}, True)


@pytest.mark.asyncio
async def test_refresh_with_explicit_token():
    transport = FakeTransport([_tokens("t9", "r9")])
    session = AuthSession(transport)

    await session.refresh(REFRESH_URI, "saved-token")

    assert transport.calls[0][1] == {"refreshToken": "saved-token"}
    assert session.auth_token == "t9"


@pytest.mark.asyncio
async def test_refresh_without_token_is_precondition_error():
    session = AuthSession(FakeTransport([]))
    with pytest.raises(AtollPreconditionError):
        await session.refresh(REFRESH_URI)


def test_register_hook_installs_session_on_transport():
    transport = FakeTransport([])
    session = AuthSession(transport)

    session.register_auto_refresh_hook(REFRESH_URI)

    assert transport.auth_refresher is session
    assert session.refresh_token_uri == REFRESH_URI


def test_clear_drops_tokens_and_header():
    transport = FakeTransport([])
    session = AuthSession(transport)
    session.auth_token = "t1"
    session.refresh_token = "r1"
    transport.headers["Authorization"] = "Bearer t1"

    session.clear()

    assert session.auth_token is None
    assert session.refresh_token is None
    assert "Authorization" not in transport.headers


@pytest.mark.asyncio
async def test_hook_success_notifies_and_updates_header():
    transport = FakeTransport([_tokens("t1", "r1"), _tokens("t2", "r2")])
    session = AuthSession(transport)
    events, handler = recorder()
    session.notification_handler = handler
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    assert await session.refresh_on_auth_failure() is True

    assert [m for m, _ in events] == [RECONNECTING_MESSAGE, RECONNECTED_MESSAGE]
    assert events[0][1] is NotificationLevel.WARN
    assert events[1][1] is NotificationLevel.INFO
    assert transport.headers["Authorization"] == "Bearer t2"


@pytest.mark.asyncio
async def test_hook_failure_notifies_and_keeps_tokens():
    transport = FakeTransport([_tokens("t1", "r1"), _http_error(401)])
    session = AuthSession(transport)
    events, handler = recorder()
    session.notification_handler = handler
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    assert await session.refresh_on_auth_failure() is False

    assert [m for m, _ in events] == [RECONNECTING_MESSAGE, RECONNECT_FAILED_MESSAGE]
    assert events[1][1] is NotificationLevel.ERROR
    assert session.auth_token == "t1"
    assert session.refresh_token == "r1"
    assert transport.headers["Authorization"] == "Bearer t1"


@pytest.mark.asyncio
async def test_hook_converts_network_error_to_false():
    transport = FakeTransport([_tokens("t1", "r1"), AtollNetworkError("down")])
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    assert await session.refresh_on_auth_failure() is False


@pytest.mark.asyncio
async def test_hook_without_registration_declines():
    session = AuthSession(FakeTransport([]))
    assert await session.refresh_on_auth_failure() is False


@pytest.mark.asyncio
async def test_concurrent_auth_failures_share_one_refresh():
    transport = FakeTransport([_tokens("t1", "r1"), _tokens("t2", "r2")])
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    transport.gate = asyncio.Event()
    first = asyncio.create_task(session.refresh_on_auth_failure())
    second = asyncio.create_task(session.refresh_on_auth_failure())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert session.is_refreshing is True

    transport.gate.set()
    results = await asyncio.gather(first, second)

    assert results == [True, True]
    refresh_calls = [c for c in transport.calls if c[0] == REFRESH_URI]
    assert len(refresh_calls) == 1
    assert session.auth_token == "t2"
    assert session.is_refreshing is False


@pytest.mark.asyncio
async def test_hook_survives_a_failing_notification_handler(caplog):
    transport = FakeTransport([_tokens("t1", "r1"), _tokens("t2", "r2")])
    session = AuthSession(transport)

    async def broken(message, level):
        raise RuntimeError("handler exploded")

    session.notification_handler = broken
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    assert await session.refresh_on_auth_failure() is True
    assert session.auth_token == "t2"
    assert "Notification handler failed" in caplog.text


@pytest.mark.asyncio
async def test_hook_reports_failed_refresh_even_when_handler_raises():
    transport = FakeTransport([_tokens("t1", "r1"), _http_error(401)])
    session = AuthSession(transport)

    def broken(message, level):
        raise RuntimeError("handler exploded")

    session.notification_handler = broken
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    assert await session.refresh_on_auth_failure() is False
    assert session.auth_token == "t1"
    assert session.refresh_token == "r1"


@pytest.mark.asyncio
async def test_clear_during_refresh_discards_the_new_tokens():
    transport = FakeTransport([_tokens("t1", "r1"), _tokens("t2", "r2")])
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")
    session.register_auto_refresh_hook(REFRESH_URI)

    transport.gate = asyncio.Event()
    task = asyncio.create_task(session.refresh_on_auth_failure())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert session.is_refreshing is True

    session.clear()
    transport.gate.set()

    assert await task is False
    assert session.auth_token is None
    assert session.refresh_token is None
    assert "Authorization" not in transport.headers


@pytest.mark.asyncio
async def test_login_during_refresh_wins_over_the_stale_refresh():
    transport = FakeTransport(
        [_tokens("t1", "r1"), _tokens("fresh", "r-fresh"), _tokens("stale", "r-stale")]
    )
    session = AuthSession(transport)
    await session.login(LOGIN_URI, "alice", "secret")

    gate = asyncio.Event()
    transport.gate = gate
    task = asyncio.create_task(session.refresh(REFRESH_URI))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    # let the second login through while the refresh is still parked on the gate
    transport.gate = None
    await session.login(LOGIN_URI, "alice", "secret")
    gate.set()

    with pytest.raises(AtollSessionChangedError):
        await task
    assert session.auth_token == "fresh"
    assert session.refresh_token == "r-fresh"
    assert transport.headers["Authorization"] == "Bearer fresh"
