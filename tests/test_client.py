import asyncio

import pytest

from scrapekit.cancellation import RequestContext
from scrapekit.exceptions import (
    CancellationError,
    HandlerConflictError,
    HandlerFailure,
    HTTPStatusError,
    TransportError,
)
from scrapekit.models import HandlerState

from conftest import FakeTransport, reply

URL = "https://example.com/page"


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts", [1, 2, 5])
async def test_recovers_after_failures_with_one_dump_per_attempt(make_client, attempts):
    replies = [reply(500, b"oops")] * (attempts - 1) + [reply(200, b"ok")]
    transport = FakeTransport(*replies)
    client = make_client(transport, dump=True, max_attempts=5)

    body = await client.get(URL)

    assert body == b"ok"
    assert len(transport.requests) == attempts
    files = sorted(p.name for p in client.dump_dir.iterdir())
    assert files == [f"{n:04d}-{n:02d}.txt" for n in range(1, attempts + 1)]


@pytest.mark.asyncio
async def test_always_failing_status_stops_at_max_attempts(make_client):
    transport = FakeTransport(reply(503, b"busy"))
    client = make_client(transport, max_attempts=4)

    with pytest.raises(HTTPStatusError) as exc_info:
        await client.get(URL)

    assert len(transport.requests) == 4
    err = exc_info.value
    assert err.status_code == 503
    assert err.response.body == b"busy"
    assert err.attempt == 4
    assert err.request_number == 4


@pytest.mark.asyncio
async def test_always_failing_transport_reports_last_error(make_client):
    transport = FakeTransport(TransportError("connection refused"), TransportError("connection reset"))
    client = make_client(transport, max_attempts=3)

    with pytest.raises(TransportError, match="connection reset"):
        await client.get(URL)

    assert len(transport.requests) == 3


@pytest.mark.asyncio
async def test_cancelled_context_makes_no_attempt(make_client):
    transport = FakeTransport(reply(200))
    client = make_client(transport)
    ctx = RequestContext()
    ctx.cancel()

    with pytest.raises(CancellationError) as exc_info:
        await client.get(URL, context=ctx)

    assert transport.requests == []
    assert client.request_count == 0
    assert exc_info.value.attempt == 0


@pytest.mark.asyncio
async def test_cancel_during_backoff_stops_before_next_attempt(make_client):
    transport = FakeTransport(reply(500))
    client = make_client(transport, backoff_step=10, max_attempts=5)
    ctx = RequestContext()
    asyncio.get_running_loop().call_later(0.05, ctx.cancel)

    with pytest.raises(CancellationError):
        await asyncio.wait_for(client.get(URL, context=ctx), timeout=2)

    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_deadline_during_send_is_terminal(make_client):
    async def slow(request):
        await asyncio.sleep(5)
        return reply(200)

    transport = FakeTransport(slow)
    client = make_client(transport, max_attempts=5)

    with pytest.raises(CancellationError) as exc_info:
        await client.get(URL, context=RequestContext(timeout=0.05))

    assert exc_info.value.deadline_exceeded
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_status_error_keeps_response_for_inspection(make_client):
    transport = FakeTransport(reply(404, b"missing"))
    client = make_client(transport, max_attempts=1)

    with pytest.raises(HTTPStatusError) as exc_info:
        await client.get(URL)

    assert exc_info.value.response.body == b"missing"
    assert "404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_payload_resent_on_every_attempt(make_client):
    transport = FakeTransport(reply(502), reply(502), reply(200))
    client = make_client(transport, max_attempts=3)

    await client.post(URL, b"a=1")

    assert [r.body for r in transport.requests] == [b"a=1"] * 3
    assert all(r.method == "POST" for r in transport.requests)


@pytest.mark.asyncio
async def test_transport_failure_without_response_is_not_dumped(make_client):
    transport = FakeTransport(TransportError("timeout"), reply(200, b"ok"))
    client = make_client(transport, dump=True, max_attempts=3)

    await client.get(URL)

    assert sorted(p.name for p in client.dump_dir.iterdir()) == ["0002-02.txt"]


@pytest.mark.asyncio
async def test_request_numbers_keep_growing_across_requests(make_client):
    transport = FakeTransport(reply(500), reply(200), reply(200))
    client = make_client(transport, dump=True, max_attempts=3)

    await client.get(URL)
    await client.get(URL)

    assert client.request_count == 3
    assert sorted(p.name for p in client.dump_dir.iterdir()) == [
        "0001-01.txt",
        "0002-02.txt",
        "0003-01.txt",
    ]


@pytest.mark.asyncio
async def test_default_headers_added_but_caller_headers_win(make_client):
    transport = FakeTransport(reply(200))
    client = make_client(transport, user_agent="scrapekit-test/1.0")

    await client.get(URL)
    await client.get(URL, headers={"user-agent": "custom/2.0", "Accept": "text/html"})

    first, second = (r.headers for r in transport.requests)
    assert first["User-Agent"] == "scrapekit-test/1.0"
    assert first["Accept"] == "*/*"
    assert first["Cache-Control"] == "max-age=0"
    assert second["User-Agent"] == "custom/2.0"
    assert second["Accept"] == "text/html"
    assert second["Accept-Language"]


@pytest.mark.asyncio
async def test_reset_drops_cookies_and_current_url(make_client):
    transport = FakeTransport(
        reply(200, headers={"Set-Cookie": "sid=abc123; Path=/"}),
        reply(200),
    )
    client = make_client(transport)

    await client.get("https://example.com/login")
    await client.get("https://example.com/account")
    assert transport.sent_cookies[1] == {"sid": "abc123"}
    assert client.current_url == "https://example.com/account"

    client.reset()
    assert client.current_url is None

    await client.get("https://example.com/account")
    assert transport.sent_cookies[2] == {}
    assert transport.resets == 1


@pytest.mark.asyncio
async def test_error_handler_gets_attempt_context_and_recovers(make_client):
    transport = FakeTransport(reply(401, b"login first"), reply(200, b"welcome"))
    client = make_client(transport, max_attempts=3)
    seen = []

    async def handler(ctx):
        seen.append(ctx)

    client.set_error_handler(handler)
    body = await client.get(URL)

    assert body == b"welcome"
    assert len(seen) == 1
    ctx = seen[0]
    assert ctx.client is client
    assert ctx.attempt == 1
    assert ctx.response.status_code == 401
    assert isinstance(ctx.error, HTTPStatusError)
    assert ctx.request.url == URL


@pytest.mark.asyncio
async def test_sync_error_handler_is_supported(make_client):
    transport = FakeTransport(reply(500), reply(200))
    client = make_client(transport, max_attempts=2)
    calls = []
    client.set_error_handler(lambda ctx: calls.append(ctx.attempt))

    await client.get(URL)

    assert calls == [1]


@pytest.mark.asyncio
async def test_handler_failure_aborts_with_combined_error(make_client):
    transport = FakeTransport(reply(403))
    client = make_client(transport, max_attempts=5)

    async def handler(ctx):
        raise RuntimeError("login failed")

    client.set_error_handler(handler)

    with pytest.raises(HandlerFailure) as exc_info:
        await client.get(URL)

    err = exc_info.value
    assert len(transport.requests) == 1
    assert isinstance(err.original, HTTPStatusError)
    assert "403" in str(err) and "login failed" in str(err)
    assert client.error_guard.state == HandlerState.IDLE


@pytest.mark.asyncio
async def test_handler_runs_on_last_attempt_too(make_client):
    transport = FakeTransport(reply(500))
    client = make_client(transport, max_attempts=2)
    calls = []
    client.set_error_handler(lambda ctx: calls.append(ctx.attempt))

    with pytest.raises(HTTPStatusError):
        await client.get(URL)

    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_concurrent_failures_never_run_two_handlers(make_client):
    both_sent = asyncio.Event()

    def gated(request):
        if len(transport.requests) >= 2:
            both_sent.set()

        async def wait_then_fail():
            await both_sent.wait()
            return reply(500)

        return wait_then_fail()

    transport = FakeTransport(gated)
    client = make_client(transport, max_attempts=1)
    running = 0
    peak = 0
    calls = 0

    async def handler(ctx):
        nonlocal running, peak, calls
        calls += 1
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1

    client.set_error_handler(handler)

    results = await asyncio.gather(
        client.get("https://example.com/a"),
        client.get("https://example.com/b"),
        return_exceptions=True,
    )

    assert peak == 1
    assert calls == 1
    assert sum(isinstance(r, HandlerConflictError) for r in results) == 1
    assert sum(isinstance(r, HTTPStatusError) for r in results) == 1


@pytest.mark.asyncio
async def test_new_attempts_wait_while_handler_runs(make_client):
    transport = FakeTransport(reply(500), reply(200, b"ok"))
    client = make_client(transport, max_attempts=2)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(ctx):
        entered.set()
        await release.wait()

    client.set_error_handler(handler)

    first = asyncio.create_task(client.get("https://example.com/a"))
    await entered.wait()
    second = asyncio.create_task(client.get("https://example.com/b"))
    await asyncio.sleep(0.05)

    # Only the failed attempt has been sent so far
    assert len(transport.requests) == 1
    assert client.error_guard.active

    release.set()
    assert await asyncio.wait_for(first, 2) == b"ok"
    assert await asyncio.wait_for(second, 2) == b"ok"
    assert len(transport.requests) == 3


@pytest.mark.asyncio
async def test_handler_can_issue_requests_through_the_same_client(make_client):
    def route(request):
        if request.url.endswith("/login"):
            return reply(200, headers={"Set-Cookie": "sid=fresh"})
        if transport.cookies.get("sid") == "fresh":
            return reply(200, b"data")
        return reply(403)

    transport = FakeTransport(route)
    client = make_client(transport, max_attempts=3)

    async def relogin(ctx):
        await ctx.client.get("https://example.com/login")

    client.set_error_handler(relogin)

    body = await asyncio.wait_for(client.get(URL), timeout=2)

    assert body == b"data"
    assert [r.url for r in transport.requests] == [URL, "https://example.com/login", URL]


@pytest.mark.asyncio
async def test_nested_failure_inside_handler_is_a_conflict(make_client):
    transport = FakeTransport(reply(500))
    client = make_client(transport, max_attempts=3)

    async def handler(ctx):
        await ctx.client.get("https://example.com/login")

    client.set_error_handler(handler)

    with pytest.raises(HandlerFailure) as exc_info:
        await client.get(URL)

    assert isinstance(exc_info.value.handler_error, HandlerConflictError)
    assert client.error_guard.invocations == 1


@pytest.mark.asyncio
async def test_context_manager_closes_transport(make_client):
    transport = FakeTransport(reply(200))

    async with make_client(transport) as client:
        await client.get(URL)

    assert transport.closed
    assert client.session is transport


def test_dump_directory_is_named_after_session(make_client, tmp_path):
    client = make_client(FakeTransport(), dump=True)

    assert client.dump_dir == (tmp_path / "dumps" / client.id).absolute()
    assert client.dump_dir.is_dir()


def test_max_attempts_must_be_positive(make_client):
    with pytest.raises(ValueError):
        make_client(FakeTransport(), max_attempts=0)
