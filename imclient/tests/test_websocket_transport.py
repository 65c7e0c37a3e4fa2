import contextlib
import json

import pytest
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from imclient.network import Event, ProtocolError, ReadyState, SessionRegistry, WebSocketTransport, init
from imclient.network.transport import TransportClosed


@contextlib.asynccontextmanager
async def _serve(handler):
    async with serve(handler, "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


@pytest.mark.asyncio
async def test_binary_frames_are_returned_undecoded(settings, wait_for):
    closed = {}

    async def handler(ws):
        await ws.send(b"\xff\xfe garbage")
        try:
            with contextlib.suppress(ConnectionClosed):
                async for message in ws:
                    await ws.send(message)
        finally:
            closed["code"], closed["reason"] = ws.close_code, ws.close_reason

    async with _serve(handler) as url:
        transport = WebSocketTransport(url, settings)
        await transport.connect()
        assert transport.ready_state is ReadyState.OPEN

        assert await transport.receive() == b"\xff\xfe garbage"
        await transport.send('{"method":"pong"}')
        assert await transport.receive() == '{"method":"pong"}'

        await transport.close(4000, "bye")
        assert transport.ready_state is ReadyState.CLOSED
        assert await wait_for(lambda: closed)
        assert closed == {"code": 4000, "reason": "bye"}


@pytest.mark.asyncio
async def test_server_close_surfaces_code_and_reason(settings):
    async def handler(ws):
        await ws.close(4001, "kicked")

    async with _serve(handler) as url:
        transport = WebSocketTransport(url, settings)
        await transport.connect()

        with pytest.raises(TransportClosed) as exc_info:
            await transport.receive()
        assert exc_info.value.code == 4001
        assert exc_info.value.reason == "kicked"
        assert transport.ready_state is ReadyState.CLOSED


@pytest.mark.asyncio
async def test_rejected_close_code_still_drops_socket(settings, wait_for):
    finished = []

    async def handler(ws):
        try:
            with contextlib.suppress(ConnectionClosed):
                async for _ in ws:
                    pass
        finally:
            finished.append(True)

    async with _serve(handler) as url:
        transport = WebSocketTransport(url, settings)
        await transport.connect()

        with contextlib.suppress(Exception):
            await transport.close(1006, "reserved code")

        assert transport.ready_state is ReadyState.CLOSED
        assert await wait_for(lambda: finished)


@pytest.mark.asyncio
async def test_session_drops_undecodable_frame_and_keeps_connection(settings, credentials, record, wait_for):
    acks = []

    async def handler(ws):
        with contextlib.suppress(ConnectionClosed):
            async for raw in ws:
                frame = json.loads(raw)
                if frame.get("method") == "connect":
                    await ws.send(json.dumps({"id": frame["id"], "result": {"serverKey": "k", "salt": "s"}}))
                    await ws.send(b"\xff\xfe garbage")
                    await ws.send(
                        json.dumps({"method": "recv", "params": {"messageId": "m1", "messageSeq": 7, "payload": {}}})
                    )
                elif frame.get("method") == "recvack":
                    acks.append(frame["params"])

    async with _serve(handler) as url:
        session = init(
            url,
            credentials,
            settings=settings,
            singleton=False,
            registry=SessionRegistry(),
            transport_factory=WebSocketTransport,
        )
        seen = record(session, Event.ERROR, Event.MESSAGE, Event.DISCONNECT)
        try:
            await session.connect()

            assert await wait_for(lambda: acks)
            assert acks == [{"messageId": "m1", "messageSeq": 7}]
            assert len(seen[Event.MESSAGE]) == 1
            assert len(seen[Event.ERROR]) == 1
            assert isinstance(seen[Event.ERROR][0], ProtocolError)
            assert seen[Event.DISCONNECT] == []
            assert session.is_connected
        finally:
            await session.destroy()
