"""Tests for AP-mode provisioning."""

import pytest

from pawfeeds.exceptions import DeviceConnectionError
from pawfeeds.provisioning import ProvisioningClient

AP = "http://192.168.4.1"


async def test_scan_networks(session):
    session.add("GET", f"{AP}/scan", body={"networks": [{"ssid": "attic", "rssi": -70}, {"ssid": "home", "rssi": -45}]})
    networks = await ProvisioningClient(session).scan_networks()
    assert [n.ssid for n in networks] == ["home", "attic"]


async def test_scan_networks_http_error(session):
    session.add("GET", f"{AP}/scan", status=503)
    with pytest.raises(DeviceConnectionError):
        await ProvisioningClient(session).scan_networks()


async def test_provision_feeder(session):
    session.add(
        "POST",
        f"{AP}/provision",
        body={"success": True, "deviceId": "dev-9", "feederId": 2, "cameraIp": "192.168.1.12"},
    )
    result = await ProvisioningClient(session).provision_feeder("home", "secret", "kitchen", "user-1", feeder_id=2)

    assert result.success
    assert result.device_id == "dev-9"
    assert result.feeder_id == 2
    assert session.calls[0].json == {
        "ssid": "home",
        "password": "secret",
        "hostname": "pawfeeds-cam-kitchen-2",
        "uid": "user-1",
        "feederId": 2,
    }


async def test_provision_refused(session):
    session.add("POST", f"{AP}/provision", status=400, body="bad password")
    result = await ProvisioningClient(session).provision_feeder("home", "x", "kitchen", "user-1")
    assert not result.success
    assert result.message == "HTTP 400"


async def test_provision_unreachable(session):
    result = await ProvisioningClient(session).provision_feeder("home", "x", "kitchen", "user-1")
    assert not result.success
    assert "192.168.4.1" in result.message


async def test_get_status(session):
    client = ProvisioningClient(session)
    assert await client.get_status() is None
    session.add("GET", f"{AP}/status", body="ap-mode")
    assert await client.get_status() == "ap-mode"
