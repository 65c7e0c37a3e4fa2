import asyncio

import pytest

from imclient.network import ConnectionState, Event, KeepaliveTimeoutError, ReconnectFailedError


@pytest.mark.asyncio
async def test_dropped_connection_reconnects(make_session, transports, record, wait_for):
    session = make_session()
    seen = record(session, Event.DISCONNECT, Event.RECONNECTING, Event.CONNECT)
    try:
        await session.connect()
        transports.last.drop(1006, "network down")

        assert await wait_for(lambda: len(seen[Event.CONNECT]) == 2)
        assert session.is_connected
        assert len(transports.created) == 2
        assert seen[Event.DISCONNECT] == [{"code": 1006, "reason": "network down"}]
        assert seen[Event.RECONNECTING] == [{"attempt": 1, "delay": pytest.approx(0.01)}]
        assert session.reconnect_attempts == 0
        assert len(transports.last.requests("connect")) == 1
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_backoff_doubles_across_failed_attempts(make_session, transports, record, wait_for):
    session = make_session()
    seen = record(session, Event.RECONNECTING, Event.CONNECT)
    counters = []
    session.on(Event.RECONNECTING, lambda info: counters.append(session.reconnect_attempts))
    try:
        await session.connect()
        transports.connect_failures = 2
        transports.last.drop()

        assert await wait_for(lambda: len(seen[Event.CONNECT]) == 2)
        delays = [info["delay"] for info in seen[Event.RECONNECTING]]
        assert delays == pytest.approx([0.01, 0.02, 0.04])
        assert [info["attempt"] for info in seen[Event.RECONNECTING]] == [1, 2, 3]
        assert counters == [1, 2, 3]
        assert len(transports.created) == 4
        assert session.reconnect_attempts == 0
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(make_session, transports, record, wait_for):
    session = make_session()
    seen = record(session, Event.RECONNECTING, Event.ERROR)
    try:
        await session.connect()
        transports.connect_failures = 100
        transports.last.drop()

        assert await wait_for(
            lambda: any(isinstance(err, ReconnectFailedError) for err in seen[Event.ERROR])
        )
        assert await wait_for(lambda: not session.is_reconnecting)
        failure = next(err for err in seen[Event.ERROR] if isinstance(err, ReconnectFailedError))
        assert failure.attempts == 3
        assert len(seen[Event.RECONNECTING]) == 3
        assert session.state is ConnectionState.CLOSED
        assert session.reconnect_attempts == 0

        transports.connect_failures = 0
        await session.connect()
        assert session.is_connected
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_disconnect_during_backoff_cancels_reconnect(make_session, settings, transports, record, wait_for):
    session = make_session(settings=settings.model_copy(update={"reconnect_base_delay_seconds": 0.2}))
    seen = record(session, Event.RECONNECTING)
    try:
        await session.connect()
        transports.last.drop()
        assert await wait_for(lambda: seen[Event.RECONNECTING])

        await session.disconnect()
        await asyncio.sleep(0.3)

        assert len(transports.created) == 1
        assert session.state is ConnectionState.CLOSED
        assert not session.is_reconnecting
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_keepalive_pings_while_connected(make_session, settings, transports, wait_for):
    fast = settings.model_copy(update={"ping_interval_seconds": 0.02, "pong_timeout_seconds": 0.01})
    session = make_session(settings=fast)
    try:
        await session.connect()
        transport = transports.last

        assert await wait_for(lambda: len(transport.requests("ping")) >= 2)
        assert session.last_pong_at is not None
        assert session.is_connected
        assert transport.requests("ping")[0]["params"] == {}
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_missed_pong_forces_close_and_reconnect(make_session, settings, transports, record, wait_for):
    fast = settings.model_copy(update={"ping_interval_seconds": 0.03, "pong_timeout_seconds": 0.02})
    session = make_session(settings=fast)
    seen = record(session, Event.ERROR, Event.CONNECT)
    try:
        await session.connect()
        first = transports.last
        first.responders["ping"] = lambda params: None

        assert await wait_for(lambda: len(seen[Event.CONNECT]) == 2)
        assert first.close_code == 4000
        assert first.close_reason == "Ping timeout"
        assert any(isinstance(err, KeepaliveTimeoutError) for err in seen[Event.ERROR])
        assert session.is_connected
        assert len(transports.created) == 2
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_manual_disconnect_never_reconnects(make_session, transports, record):
    session = make_session()
    seen = record(session, Event.RECONNECTING)
    try:
        await session.connect()
        await session.disconnect()
        await asyncio.sleep(0.05)

        assert seen[Event.RECONNECTING] == []
        assert len(transports.created) == 1
    finally:
        await session.destroy()


@pytest.mark.asyncio
async def test_missed_pong_recovers_without_waiting_for_close(make_session, settings, transports, record, wait_for):
    fast = settings.model_copy(update={"ping_interval_seconds": 0.03, "pong_timeout_seconds": 0.02})
    session = make_session(settings=fast)
    seen = record(session, Event.RECONNECTING, Event.CONNECT)
    release = asyncio.Event()
    closes = []

    async def stalled_close(code=1000, reason=""):
        closes.append((code, reason))
        await release.wait()

    try:
        await session.connect()
        first = transports.last
        first.responders["ping"] = lambda params: None
        first.close = stalled_close

        assert await wait_for(lambda: len(seen[Event.CONNECT]) == 2, timeout=0.5)
        assert closes == [(4000, "Ping timeout")]
        assert [info["attempt"] for info in seen[Event.RECONNECTING]] == [1]
        assert session.is_connected
    finally:
        release.set()
        await session.destroy()
        await asyncio.sleep(0)
