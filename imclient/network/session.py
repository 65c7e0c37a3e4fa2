"""Client session for the IM server's JSON-RPC WebSocket endpoint.

The session owns a single logical connection and is responsible for:
- Transport lifecycle (open, close, forced teardown)
- The connect handshake (credentials exchange)
- Request/response correlation with per-request timeouts
- Keepalive pings and reconnection with exponential backoff
- Routing of server notifications to application listeners

All state is mutated from the event loop that runs the session; each inbound
frame is handled to completion before the next one is read.
"""

from __future__ import annotations

import asyncio
import atexit
import json
import logging
import time
import uuid
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import ValidationError

from imclient.config import ClientSettings, get_settings
from imclient.identity import Credentials, new_session_id, with_device_id
from shared.models.im import (
    ChannelType,
    ConnectParams,
    ConnectResult,
    DisconnectNotice,
    EventNotification,
    MessageHeader,
    RecvAckParams,
    RecvMessage,
    SendParams,
    SendResult,
)
from shared.models.rpc import RpcResponse
from shared.protocol import (
    CLOSE_ABNORMAL,
    CLOSE_CLIENT_FORCED,
    CLOSE_NORMAL,
    FrameDecodeError,
    build_notification,
    build_request,
    encode_frame,
    parse_frame,
    truncate_close_reason,
)

from .backoff import ReconnectPolicy
from .correlator import RequestCorrelator
from .errors import (
    AuthenticationError,
    ConnectError,
    ConnectionClosedError,
    KeepaliveTimeoutError,
    NotConnectedError,
    ProtocolError,
    ReconnectFailedError,
    RpcRequestError,
    SessionDestroyedError,
    SessionError,
)
from .events import Event, EventEmitter, Listener
from .state import ConnectionState, ConnectionTracker
from .transport.base import BaseTransport, ReadyState, TransportClosed
from .transport.websocket import WebSocketTransport

if TYPE_CHECKING:
    from .registry import SessionRegistry

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[str, ClientSettings], BaseTransport]


def _log_connect_outcome(task: "asyncio.Task[ConnectResult]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug("Connect attempt ended with %s: %s", type(exc).__name__, exc)


def _run_exit_hook(ref: "weakref.WeakMethod[Callable[[], None]]") -> None:
    # the atexit table only holds a weak reference to the session
    hook = ref()
    if hook is not None:
        hook()


@dataclass
class Session:
    """Client-side session for the IM server."""

    url: str
    credentials: Credentials
    settings: ClientSettings = field(default_factory=get_settings)
    transport_factory: TransportFactory = WebSocketTransport
    registry: Optional["SessionRegistry"] = None
    tracker: ConnectionTracker = field(default_factory=ConnectionTracker)

    session_id: str = field(default_factory=new_session_id, init=False)
    _emitter: EventEmitter = field(default_factory=EventEmitter, init=False, repr=False)
    _correlator: RequestCorrelator = field(init=False, repr=False)
    _policy: ReconnectPolicy = field(init=False, repr=False)
    _transport: Optional[BaseTransport] = field(default=None, init=False, repr=False)
    _connect_task: Optional[asyncio.Task[ConnectResult]] = field(default=None, init=False, repr=False)
    _receive_task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _keepalive_task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _reconnect_task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _connect_result: Optional[ConnectResult] = field(default=None, init=False, repr=False)
    _manual_disconnect: bool = field(default=False, init=False, repr=False)
    _destroyed: bool = field(default=False, init=False, repr=False)
    _exit_hook: Optional[Callable[[], None]] = field(default=None, init=False, repr=False)
    _last_recv_at: Optional[float] = field(default=None, init=False, repr=False)
    _last_pong_at: Optional[float] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("URL is required for initialization")
        self.credentials = with_device_id(self.credentials, self.session_id)
        self._correlator = RequestCorrelator(self.settings.request_timeout_seconds)
        self._policy = ReconnectPolicy(
            base_delay=float(self.settings.reconnect_base_delay_seconds),
            max_attempts=int(self.settings.reconnect_max_attempts),
            max_delay=self.settings.reconnect_max_delay_seconds,
        )
        self._register_exit_hook()

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> ConnectionState:
        return self.tracker.state

    @property
    def is_connected(self) -> bool:
        return self.tracker.state is ConnectionState.CONNECTED

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def is_reconnecting(self) -> bool:
        return self._policy.is_reconnecting

    @property
    def reconnect_attempts(self) -> int:
        return self._policy.attempts

    @property
    def connect_result(self) -> Optional[ConnectResult]:
        return self._connect_result

    @property
    def pending_requests(self) -> int:
        return len(self._correlator)

    @property
    def last_pong_at(self) -> Optional[float]:
        return self._last_pong_at

    # ------------------------------------------------------------------
    # Listeners

    def on(self, event: Union[Event, str], callback: Listener) -> None:
        self._emitter.on(event, callback)

    def off(self, event: Union[Event, str], callback: Listener) -> None:
        self._emitter.off(event, callback)

    # ------------------------------------------------------------------
    # Lifecycle

    async def connect(self) -> ConnectResult:
        """Open the transport and authenticate.

        Resolves immediately when already connected and joins the in-flight
        attempt when one is running, so at most one transport is opened.
        """

        self._ensure_alive()
        if self.tracker.state is ConnectionState.CONNECTED and self._connect_result is not None:
            return self._connect_result
        task = self._connect_task
        if task is not None and not task.done():
            LOGGER.debug("Connection attempt already in progress; joining it")
            return await asyncio.shield(task)
        self._manual_disconnect = False
        self._register_exit_hook()
        task = asyncio.create_task(self._open_and_authenticate(), name="session-connect")
        self._connect_task = task
        task.add_done_callback(_log_connect_outcome)
        return await asyncio.shield(task)

    async def disconnect(self) -> None:
        """Close the connection and suppress any automatic reconnection."""

        LOGGER.info("Disconnecting session %s", self.session_id)
        self._manual_disconnect = True
        self._unregister_exit_hook()
        self._cancel_reconnect()
        self._stop_keepalive()
        transport = self._transport
        if transport is None:
            self._try_transition(ConnectionState.CLOSED)
            return
        if transport.ready_state is ReadyState.OPEN:
            await self._teardown(transport, CLOSE_NORMAL, "Client disconnected", reconnect=False)
        else:
            await self._teardown(transport, CLOSE_CLIENT_FORCED, "Manual disconnection", reconnect=False)

    async def destroy(self) -> None:
        """Disconnect, drop all listeners and release the registry slot."""

        if self._destroyed:
            return
        await self.disconnect()
        self._mark_destroyed()
        LOGGER.info("Session %s destroyed", self.session_id)

    def force_close(self, reason: str = "Session replaced") -> None:
        """Synchronously abort the transport and stop all background work."""

        LOGGER.info("Force closing session %s: %s", self.session_id, reason)
        self._manual_disconnect = True
        self._unregister_exit_hook()
        self._cancel_reconnect()
        self._stop_keepalive()
        self._cancel_task(self._receive_task)
        self._receive_task = None
        transport = self._transport
        self._transport = None
        self._connect_result = None
        self._correlator.fail_all(reason)
        self._try_transition(ConnectionState.CLOSED)
        if transport is None:
            return
        transport.abort()
        self._emitter.emit(Event.DISCONNECT, {"code": CLOSE_CLIENT_FORCED, "reason": reason})

    def _mark_destroyed(self) -> None:
        self._destroyed = True
        self._emitter.clear()
        if self.registry is not None:
            self.registry.clear(self)

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise SessionDestroyedError("Session has been destroyed")

    async def _open_and_authenticate(self) -> ConnectResult:
        if self._manual_disconnect:
            raise ConnectionClosedError("Connection cancelled by disconnect()")
        self._try_transition(ConnectionState.CONNECTING)
        transport = self.transport_factory(self.url, self.settings)
        self._transport = transport
        LOGGER.info("Connecting to %s", self.url)
        try:
            await transport.connect()
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Failed to open transport to %s: %s", self.url, exc)
            self._emitter.emit(Event.ERROR, exc)
            await self._teardown(transport, CLOSE_CLIENT_FORCED, f"Transport open failed: {exc}", reconnect=False)
            raise ConnectError(f"Failed to connect to {self.url}: {exc}") from exc
        if self._transport is not transport:
            if transport.ready_state is ReadyState.OPEN:
                await transport.close(CLOSE_CLIENT_FORCED, "Connection abandoned")
            raise ConnectionClosedError("Connection closed before authentication")
        self._receive_task = asyncio.create_task(self._receive_loop(transport), name="session-receive")
        self._try_transition(ConnectionState.AUTHENTICATING)
        LOGGER.info("Transport open; authenticating uid=%s", self.credentials.uid)
        return await self._authenticate(transport)

    async def _authenticate(self, transport: BaseTransport) -> ConnectResult:
        params = ConnectParams(
            uid=self.credentials.uid,
            token=self.credentials.token,
            device_id=self.credentials.device_id,
            device_flag=self.credentials.device_flag,
            client_timestamp=int(time.time() * 1000),
        )
        try:
            raw = await self.send_request(
                "connect",
                params,
                timeout=float(self.settings.handshake_timeout_seconds),
            )
            result = ConnectResult.model_validate(raw or {})
        except ConnectionClosedError:
            LOGGER.warning("Connection closed during authentication")
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Authentication failed: %s", exc)
            error = AuthenticationError(f"Authentication failed: {exc}")
            self._emitter.emit(Event.ERROR, error)
            await self._teardown(transport, CLOSE_CLIENT_FORCED, "Authentication failed", reconnect=False)
            raise error from exc
        if self._transport is not transport:
            raise ConnectionClosedError("Connection closed during authentication")

        self._try_transition(ConnectionState.CONNECTED)
        self._policy.reset()
        self._manual_disconnect = False
        self._connect_result = result
        self._start_keepalive()
        LOGGER.info(
            "Authenticated uid=%s reason_code=%s server_version=%s node_id=%s",
            self.credentials.uid,
            result.reason_code,
            result.server_version,
            result.node_id,
        )
        self._emitter.emit(Event.CONNECT, result)
        return result

    async def _teardown(self, transport: BaseTransport, code: int, reason: str, *, reconnect: bool) -> None:
        """Release everything bound to ``transport``; no-op if it is no longer current."""

        if transport is not self._transport:
            return
        self._transport = None
        was_connected = self.tracker.state is ConnectionState.CONNECTED
        self._stop_keepalive()
        self._cancel_task(self._receive_task)
        self._receive_task = None
        self._connect_result = None
        failed = self._correlator.fail_all("Connection closed")
        self._try_transition(ConnectionState.CLOSED)
        LOGGER.info("Connection closed code=%s reason=%s pending_failed=%s", code, reason, failed)
        self._emitter.emit(Event.DISCONNECT, {"code": code, "reason": reason})
        if reconnect and was_connected and not self._manual_disconnect and not self._destroyed:
            self._schedule_reconnect()
        if transport.ready_state in (ReadyState.CONNECTING, ReadyState.OPEN):
            try:
                await transport.close(code, truncate_close_reason(reason))
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress transport close error", exc_info=True)

    # ------------------------------------------------------------------
    # Requests

    async def send_request(
        self,
        method: str,
        params: Optional[Union[Mapping[str, Any], Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a correlated request and await its result."""

        transport = self._transport
        if transport is None or transport.ready_state is not ReadyState.OPEN:
            raise NotConnectedError("WebSocket is not open")
        request_id, future = self._correlator.register(method, timeout)
        frame = encode_frame(build_request(method, params, request_id))
        LOGGER.debug("--> request id=%s method=%s", request_id, method)
        try:
            await transport.send(frame)
        except Exception:
            self._correlator.discard(request_id)
            if not future.done():
                future.cancel()
            raise
        return await future

    async def send_notification(self, method: str, params: Optional[Union[Mapping[str, Any], Any]] = None) -> bool:
        """Send an uncorrelated frame; write failures surface as error events."""

        transport = self._transport
        if transport is None or transport.ready_state is not ReadyState.OPEN:
            LOGGER.error("Cannot send notification %s; WebSocket is not open", method)
            self._emitter.emit(Event.ERROR, NotConnectedError(f"Cannot send notification {method}: not open"))
            return False
        frame = encode_frame(build_notification(method, params))
        LOGGER.debug("--> notification method=%s", method)
        try:
            await transport.send(frame)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error sending notification %s: %s", method, exc)
            self._emitter.emit(Event.ERROR, SessionError(f"Failed to send notification {method}: {exc}"))
            return False
        return True

    async def send(
        self,
        channel_id: str,
        channel_type: Union[ChannelType, int],
        payload: Mapping[str, Any],
        *,
        client_msg_no: Optional[str] = None,
        header: Optional[Union[MessageHeader, Mapping[str, Any]]] = None,
        setting: Optional[int] = None,
        msg_key: Optional[str] = None,
        expire: Optional[int] = None,
        topic: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> SendResult:
        """Send a message to a channel and await the server's acknowledgement."""

        self._ensure_alive()
        if not self.is_connected:
            raise NotConnectedError("Not connected. Call connect() first.")
        if not isinstance(payload, Mapping):
            raise ValueError("Payload must be a non-null object.")
        params = SendParams(
            client_msg_no=client_msg_no or str(uuid.uuid4()),
            channel_id=channel_id,
            channel_type=int(channel_type),
            payload=dict(payload),
            header=MessageHeader.model_validate(header) if isinstance(header, Mapping) else header,
            setting=setting,
            msg_key=msg_key,
            expire=expire,
            topic=topic,
        )
        raw = await self.send_request("send", params, timeout=timeout)
        result = SendResult.model_validate(raw or {})
        self._emitter.emit(Event.SEND_ACK, result)
        return result

    # ------------------------------------------------------------------
    # Inbound

    async def _receive_loop(self, transport: BaseTransport) -> None:
        code, reason = CLOSE_ABNORMAL, "Connection lost"
        try:
            while transport is self._transport:
                raw = await transport.receive()
                try:
                    await self._handle_frame(raw)
                except (FrameDecodeError, ValidationError) as exc:
                    LOGGER.warning("Dropping malformed frame: %s", exc)
                    self._emitter.emit(Event.ERROR, ProtocolError(str(exc)))
                except Exception:  # noqa: BLE001
                    LOGGER.exception("Failed to process inbound frame")
            return
        except asyncio.CancelledError:
            LOGGER.debug("Session receive loop cancelled")
            raise
        except TransportClosed as exc:
            code, reason = exc.code, exc.reason
            LOGGER.info("Transport closed code=%s reason=%s", code, reason)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Transport receive failed: %s", exc)
            self._emitter.emit(Event.ERROR, exc)
            code, reason = CLOSE_CLIENT_FORCED, str(exc)
        await self._teardown(transport, code, reason, reconnect=True)

    async def _handle_frame(self, raw: Union[str, bytes]) -> None:
        frame = parse_frame(raw)
        self._last_recv_at = asyncio.get_running_loop().time()
        if isinstance(frame, RpcResponse):
            self._handle_response(frame)
            return
        await self._handle_notification(frame.method, frame.params or {})

    def _handle_response(self, response: RpcResponse) -> None:
        LOGGER.debug("<-- response id=%s", response.id)
        if response.error is not None:
            matched = self._correlator.reject(response.id, RpcRequestError.from_error(response.error))
        else:
            matched = self._correlator.resolve(response.id, response.result)
        if not matched:
            LOGGER.warning("Received response for unknown request id=%s", response.id)

    async def _handle_notification(self, method: str, params: dict[str, Any]) -> None:
        LOGGER.debug("<-- notification method=%s", method)
        if method == "recv":
            message = RecvMessage.model_validate(params)
            self._emitter.emit(Event.MESSAGE, message)
            ack = RecvAckParams(
                header=message.header,
                message_id=message.message_id,
                message_seq=message.message_seq,
            )
            if not await self.send_notification("recvack", ack):
                LOGGER.warning(
                    "Failed to send recvack for msg %s (seq %s)",
                    message.message_id,
                    message.message_seq,
                )
            return

        if method == "pong":
            self._last_pong_at = asyncio.get_running_loop().time()
            return

        if method == "disconnect":
            notice = DisconnectNotice.model_validate(params)
            LOGGER.warning("Server initiated disconnect reason_code=%s reason=%s", notice.reason_code, notice.reason)
            self._emitter.emit(Event.DISCONNECT, notice)
            transport = self._transport
            if transport is not None:
                reason = notice.reason or f"reason code {notice.reason_code}"
                await self._teardown(transport, CLOSE_CLIENT_FORCED, f"Server disconnected: {reason}", reconnect=True)
            return

        if method == "event":
            self._handle_event(params)
            return

        LOGGER.warning("Received unhandled notification method: %s", method)

    def _handle_event(self, params: dict[str, Any]) -> None:
        if not params.get("id") or not params.get("type") or not isinstance(params.get("type"), str):
            LOGGER.warning("Dropping event notification without id/type: %s", params)
            self._emitter.emit(Event.ERROR, ProtocolError("Invalid event notification: missing id or type"))
            return
        data = params.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                LOGGER.debug("Event %s data is not JSON; delivering as string", params.get("id"))
        event = EventNotification.model_validate({**params, "data": data})
        self._emitter.emit(Event.CUSTOM_EVENT, event)

    # ------------------------------------------------------------------
    # Keepalive

    def _start_keepalive(self) -> None:
        self._stop_keepalive()
        self._keepalive_task = asyncio.create_task(self._keepalive_loop(), name="session-keepalive")
        LOGGER.debug("Keepalive started (%.2fs)", self.settings.ping_interval_seconds)

    def _stop_keepalive(self) -> None:
        self._cancel_task(self._keepalive_task)
        self._keepalive_task = None

    async def _keepalive_loop(self) -> None:
        interval = float(self.settings.ping_interval_seconds)
        timeout = float(self.settings.pong_timeout_seconds)
        while self.tracker.state is ConnectionState.CONNECTED:
            await asyncio.sleep(interval)
            transport = self._transport
            if transport is None or self.tracker.state is not ConnectionState.CONNECTED:
                return
            try:
                await self.send_request("ping", {}, timeout=timeout)
            except asyncio.CancelledError:
                raise
            except ConnectionClosedError:
                return
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Ping failed or timed out: %s", exc)
                self._emitter.emit(Event.ERROR, KeepaliveTimeoutError("Ping timeout"))
                await self._teardown(transport, CLOSE_CLIENT_FORCED, "Ping timeout", reconnect=True)
                return
            self._last_pong_at = asyncio.get_running_loop().time()

    # ------------------------------------------------------------------
    # Reconnection

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop(), name="session-reconnect")

    def _cancel_reconnect(self) -> None:
        self._cancel_task(self._reconnect_task)
        self._reconnect_task = None
        self._policy.is_reconnecting = False

    async def _reconnect_loop(self) -> None:
        policy = self._policy
        policy.is_reconnecting = True
        try:
            while not self._manual_disconnect and not self._destroyed:
                if policy.exhausted():
                    attempts = policy.attempts
                    policy.reset()
                    LOGGER.error("Giving up after %s reconnection attempt(s)", attempts)
                    self._emitter.emit(Event.ERROR, ReconnectFailedError(attempts))
                    return
                delay = policy.next_delay()
                self._try_transition(ConnectionState.RECONNECTING)
                LOGGER.warning("Reconnecting in %.2fs (attempt %s/%s)", delay, policy.attempts, policy.max_attempts)
                self._emitter.emit(Event.RECONNECTING, {"attempt": policy.attempts, "delay": delay})
                await asyncio.sleep(delay)
                if self._manual_disconnect or self._destroyed:
                    LOGGER.debug("Reconnection aborted by manual disconnect")
                    return
                try:
                    await self.connect()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    LOGGER.warning("Reconnection attempt %s failed: %s", policy.attempts, exc)
                    continue
                return
        finally:
            policy.is_reconnecting = False

    # ------------------------------------------------------------------
    # Helpers

    def _cancel_task(self, task: Optional[asyncio.Task[Any]]) -> None:
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _try_transition(self, state: ConnectionState) -> None:
        if self.tracker.state is state:
            return
        try:
            self.tracker.transition(state)
        except ValueError:
            LOGGER.debug(
                "Ignoring invalid connection transition %s -> %s",
                self.tracker.state.value,
                state.value,
            )

    def _register_exit_hook(self) -> None:
        if self._exit_hook is None:
            self._exit_hook = partial(_run_exit_hook, weakref.WeakMethod(self._on_process_exit))
            atexit.register(self._exit_hook)

    def _unregister_exit_hook(self) -> None:
        if self._exit_hook is not None:
            atexit.unregister(self._exit_hook)
            self._exit_hook = None

    def _on_process_exit(self) -> None:
        self._manual_disconnect = True
        transport = self._transport
        self._transport = None
        if transport is None:
            return
        try:
            transport.abort()
        except RuntimeError:
            LOGGER.debug("Suppress transport abort error at exit", exc_info=True)
