"""Tests for LAN and cloud relay feed dispatch."""

from unittest.mock import AsyncMock

import pytest

from pawfeeds.exceptions import RelayAuthError, RelayError
from pawfeeds.models import FeederSlot
from pawfeeds.transport import DEFAULT_RELAY_URL, CloudRelayClient, LocalTransport, RemoteTransport

FEED_URL = "http://192.168.1.11/feed"


def _slot(**kwargs) -> FeederSlot:
    values = dict(id=1, name="Kitchen", feeder_address="192.168.1.11", device_id="dev-1")
    values.update(kwargs)
    return FeederSlot(**values)


async def test_local_dispatch_success(session):
    session.add("POST", FEED_URL, body="ok")
    result = await LocalTransport(session).dispatch(_slot(), 60)

    assert result.success
    assert result.transport == "local"
    assert session.calls[0].json == {"grams": 60, "feeder": 1}


async def test_local_dispatch_http_error(session):
    session.add("POST", FEED_URL, status=500, body="jammed")
    result = await LocalTransport(session).dispatch(_slot(), 60)

    assert not result.success
    assert "500" in result.message


async def test_local_dispatch_unreachable(session):
    result = await LocalTransport(session).dispatch(_slot(), 60)
    assert not result.success
    assert result.transport == "local"


@pytest.mark.parametrize(
    "slot,grams",
    [
        (_slot(feeder_address="N/A"), 60),
        (_slot(feeder_address=""), 60),
        (_slot(), 0),
        (_slot(), -5),
        (_slot(id=3), 60),
    ],
)
async def test_local_dispatch_guard(session, slot, grams):
    result = await LocalTransport(session).dispatch(slot, grams)
    assert not result.success
    assert session.calls == []


def test_local_can_dispatch():
    transport = LocalTransport()
    assert transport.can_dispatch(_slot())
    assert not transport.can_dispatch(_slot(feeder_address="unknown"))


async def test_remote_dispatch_success(session):
    session.add("POST", DEFAULT_RELAY_URL, body={"result": {"success": True, "message": "Queued"}})
    transport = RemoteTransport(CloudRelayClient(lambda: "token-1", session=session))
    result = await transport.dispatch(_slot(feeder_address=""), 75)

    assert result.success
    assert result.transport == "remote"
    assert result.message == "Queued"
    call = session.calls[0]
    assert call.headers == {"Authorization": "Bearer token-1"}
    assert call.json == {"data": {"deviceId": "dev-1", "command": {"type": "FEED", "feeder": 1, "grams": 75}}}


async def test_remote_success_without_flag(session):
    session.add("POST", DEFAULT_RELAY_URL, body={"result": {}})
    relay = CloudRelayClient(AsyncMock(return_value="token-1"), session=session)
    assert await relay.send_command("dev-1", {"type": "FEED"}) == "Command sent successfully."


async def test_remote_auth_rejected(session):
    session.add("POST", DEFAULT_RELAY_URL, status=401, body={"error": {"message": "Unauthenticated"}})
    relay = CloudRelayClient(lambda: "expired", session=session)

    with pytest.raises(RelayAuthError, match="Unauthenticated"):
        await relay.send_command("dev-1", {"type": "FEED"})
    result = await RemoteTransport(relay).dispatch(_slot(), 75)
    assert not result.success
    assert result.message == "Unauthenticated"


async def test_remote_without_token(session):
    relay = CloudRelayClient(lambda: "", session=session)
    with pytest.raises(RelayAuthError, match="Not signed in"):
        await relay.send_command("dev-1", {"type": "FEED"})
    assert session.calls == []


async def test_remote_token_provider_failure(session):
    relay = CloudRelayClient(AsyncMock(side_effect=RuntimeError("keychain locked")), session=session)
    with pytest.raises(RelayAuthError, match="keychain locked"):
        await relay.send_command("dev-1", {"type": "FEED"})


async def test_remote_application_failure(session):
    session.add("POST", DEFAULT_RELAY_URL, body={"result": {"success": False, "message": "Device offline"}})
    result = await RemoteTransport(CloudRelayClient(lambda: "t", session=session)).dispatch(_slot(), 75)

    assert not result.success
    assert result.message == "Device offline"


async def test_remote_server_error(session):
    session.add("POST", DEFAULT_RELAY_URL, status=503, body="unavailable")
    relay = CloudRelayClient(lambda: "t", session=session)
    with pytest.raises(RelayError, match="HTTP 503"):
        await relay.send_command("dev-1", {"type": "FEED"})


async def test_remote_unreachable(session):
    relay = CloudRelayClient(lambda: "t", session=session)
    with pytest.raises(RelayError, match="Relay request failed"):
        await relay.send_command("dev-1", {"type": "FEED"})


async def test_remote_requires_device_id(session):
    transport = RemoteTransport(CloudRelayClient(lambda: "t", session=session))
    assert not transport.can_dispatch(_slot(device_id="  "))
    result = await transport.dispatch(_slot(device_id=""), 75)
    assert not result.success
    assert session.calls == []
