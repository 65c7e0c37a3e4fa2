import asyncio
import json
from typing import Any, Callable, Optional

import pytest

from imclient.config import ClientSettings
from imclient.identity import Credentials
from imclient.network import Event, SessionRegistry, init
from imclient.network.transport import ReadyState
from imclient.network.transport.dummy import DummyTransport

HANDSHAKE_RESULT = {
    "serverKey": "server-key",
    "salt": "salt",
    "timeDiff": 12,
    "reasonCode": 1,
    "serverVersion": 5,
    "nodeId": 1001,
}

Responder = Callable[[dict[str, Any]], Optional[dict[str, Any]]]


def default_responders() -> dict[str, Responder]:
    return {
        "connect": lambda params: {"result": dict(HANDSHAKE_RESULT)},
        "ping": lambda params: {"result": {}},
        "send": lambda params: {"result": {"messageId": 9001, "messageSeq": 3, "reasonCode": 1}},
    }


class ScriptedTransport(DummyTransport):
    """Dummy transport that answers requests through per-method responders."""

    def __init__(
        self,
        url,
        settings,
        *,
        responders: dict[str, Responder],
        fail_connect: bool = False,
        connect_gate: Optional[asyncio.Event] = None,
    ) -> None:
        super().__init__(url, settings)
        self.responders = responders
        self.fail_connect = fail_connect
        self.connect_gate = connect_gate

    async def connect(self) -> None:
        if self.fail_connect:
            raise OSError("connection refused")
        if self.connect_gate is not None:
            self._state = ReadyState.CONNECTING
            await self.connect_gate.wait()
            if self._state is ReadyState.CLOSED:
                raise OSError("closed while connecting")
        await super().connect()

    async def send(self, frame: str) -> None:
        await super().send(frame)
        message = json.loads(frame)
        if "id" not in message:
            return
        responder = self.responders.get(message["method"])
        if responder is None:
            return
        reply = responder(message.get("params") or {})
        if reply is None:
            return
        self.feed({"id": message["id"], **reply})

    async def receive(self):
        item = await super().receive()
        if isinstance(item, Exception):
            raise item
        return item

    def fail(self, exc: Exception) -> None:
        """Make the next receive() raise ``exc`` without closing the transport."""

        self._inbound.put_nowait(exc)

    def requests(self, method: Optional[str] = None) -> list[dict[str, Any]]:
        return [f for f in self.sent_frames() if "id" in f and (method is None or f["method"] == method)]

    def notifications(self, method: Optional[str] = None) -> list[dict[str, Any]]:
        return [f for f in self.sent_frames() if "id" not in f and (method is None or f["method"] == method)]


class TransportFactory:
    """Builds scripted transports and remembers every one it created."""

    def __init__(self) -> None:
        self.created: list[ScriptedTransport] = []
        self.responders = default_responders()
        self.connect_failures = 0
        self.connect_gate: Optional[asyncio.Event] = None

    def __call__(self, url: str, settings: ClientSettings) -> ScriptedTransport:
        fail = self.connect_failures > 0
        if fail:
            self.connect_failures -= 1
        transport = ScriptedTransport(
            url,
            settings,
            responders=dict(self.responders),
            fail_connect=fail,
            connect_gate=self.connect_gate,
        )
        self.created.append(transport)
        return transport

    @property
    def last(self) -> ScriptedTransport:
        return self.created[-1]


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(
        request_timeout_seconds=0.5,
        handshake_timeout_seconds=0.2,
        ping_interval_seconds=30,
        pong_timeout_seconds=1,
        reconnect_base_delay_seconds=0.01,
        reconnect_max_attempts=3,
    )


@pytest.fixture
def transports() -> TransportFactory:
    return TransportFactory()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(uid="u1", token="secret-token")


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def make_session(settings, transports, credentials, registry):
    def _make(**overrides):
        kwargs = dict(
            settings=settings,
            transport_factory=transports,
            registry=registry,
            singleton=False,
        )
        kwargs.update(overrides)
        return init("ws://im.test:5100", credentials, **kwargs)

    return _make


@pytest.fixture
def record():
    """Attach list-recording listeners for the given events."""

    def _record(session, *events: Event) -> dict[Event, list[Any]]:
        seen: dict[Event, list[Any]] = {}
        for event in events:
            seen[event] = []
            session.on(event, seen[event].append)
        return seen

    return _record


@pytest.fixture
def wait_for():
    async def _wait_for(predicate, *, timeout: float = 1.0, interval: float = 0.005) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait_for
