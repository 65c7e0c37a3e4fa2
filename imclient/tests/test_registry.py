import pytest
from pydantic import ValidationError

from imclient.identity import Credentials, derive_device_id
from imclient.network import ConnectionState, Event, get_default_session, init
from imclient.network.transport import ReadyState


@pytest.mark.asyncio
async def test_singleton_init_replaces_previous_session(settings, transports, credentials, registry):
    first = init("ws://im.test", credentials, settings=settings, singleton=True, registry=registry, transport_factory=transports)
    disconnects = []
    first.on(Event.DISCONNECT, disconnects.append)
    await first.connect()
    assert get_default_session(registry) is first

    second = init("ws://im.test", credentials, settings=settings, singleton=True, registry=registry, transport_factory=transports)
    try:
        assert get_default_session(registry) is second
        assert first.is_destroyed
        assert first.state is ConnectionState.CLOSED
        assert transports.created[0].aborted
        assert transports.created[0].ready_state is ReadyState.CLOSED
        assert disconnects == [{"code": 4000, "reason": "Session replaced by init()"}]

        await second.connect()
        assert second.is_connected
        assert len(transports.created) == 2
    finally:
        await second.destroy()
    assert registry.get() is None


@pytest.mark.asyncio
async def test_non_singleton_sessions_are_not_registered(make_session, registry):
    session = make_session()
    other = make_session()
    try:
        assert registry.get() is None
        assert session.session_id != other.session_id
    finally:
        await session.destroy()
        await other.destroy()


@pytest.mark.asyncio
async def test_destroying_unregistered_session_keeps_default(make_session, registry):
    default = make_session(singleton=True)
    stray = make_session()
    await stray.destroy()
    assert registry.get() is default
    await default.destroy()
    assert registry.get() is None


def test_init_requires_url_and_credentials(settings, transports):
    with pytest.raises(ValueError):
        init("", Credentials(uid="u1", token="t"), settings=settings, transport_factory=transports)
    with pytest.raises(ValidationError):
        Credentials(uid="", token="t")
    with pytest.raises(ValidationError):
        Credentials(uid="u1", token="")


def test_device_id_is_derived_unless_given(make_session, settings, credentials):
    session = make_session()
    assert session.credentials.device_id.startswith(session.session_id[:8])
    assert credentials.device_id is None

    explicit = init(
        "ws://im.test",
        credentials.model_copy(update={"device_id": "fixed-device"}),
        settings=settings,
        singleton=False,
    )
    assert explicit.credentials.device_id == "fixed-device"

    assert derive_device_id("abcdef123456", now_ms=42) == "abcdef1242"
    assert "secret-token" not in repr(credentials)
