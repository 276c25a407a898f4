"""Tests for LAN scanning, cancellation and single-flight sessions."""

import asyncio

from pawfeeds.discovery import (
    ScanSession,
    discover_feeders,
    scan_for_any_device,
    scan_network,
    subnet_hosts,
)
from pawfeeds.models import DeviceRole

LOCAL = "192.168.1.5"


def _add_unit(session):
    session.add("GET", "http://192.168.1.10/hello", body={"hostname": "pawfeeds-cam-kitchen", "role": "camera"})
    session.add("GET", "http://192.168.1.10/status", status=404)
    session.add("GET", "http://192.168.1.11/hello", status=404)
    session.add("GET", "http://192.168.1.11/status", body={"hostname": "pawfeeds-std-kitchen", "weight": 412.5})


def test_subnet_hosts_excludes_self():
    hosts = subnet_hosts(LOCAL)
    assert len(hosts) == 253
    assert LOCAL not in hosts
    assert hosts[0] == "192.168.1.1"
    assert hosts[-1] == "192.168.1.254"


def test_subnet_hosts_invalid_address():
    assert subnet_hosts("not-an-ip") == []
    assert subnet_hosts("") == []
    assert subnet_hosts(None) == []


async def test_scan_finds_hits(session):
    _add_unit(session)
    hits = await scan_network(LOCAL, session=session)

    assert [h.address for h in hits] == ["192.168.1.10", "192.168.1.11"]
    assert hits[0].role == DeviceRole.CAMERA
    assert hits[1].role == DeviceRole.FEEDER
    assert hits[1].container_weight_grams == 412.5
    assert not session.calls_to("http://192.168.1.5/hello")


async def test_scan_without_local_network(session):
    assert await scan_network("garbage", session=session) == []
    assert session.calls == []


async def test_discover_feeders_pairs_hits(session):
    _add_unit(session)
    paired = await discover_feeders(LOCAL, session=session)

    assert len(paired) == 1
    assert paired[0].core_name == "kitchen"
    assert paired[0].camera_address == "192.168.1.10"
    assert paired[0].feeder_address == "192.168.1.11"
    assert paired[0].container_weight_grams == 412.5


async def test_cancel_returns_partial_results_promptly(session):
    session.set_default(delay=30)
    session.add("GET", "http://192.168.1.1/hello", body={"hostname": "pawfeeds-std-attic"})
    session.add("GET", "http://192.168.1.1/status", status=404)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    started = loop.time()
    task = asyncio.ensure_future(scan_network(LOCAL, session=session, cancel_event=cancel_event))
    await asyncio.sleep(0.1)
    cancel_event.set()
    hits = await asyncio.wait_for(task, timeout=5)

    assert loop.time() - started < 5
    assert [h.address for h in hits] == ["192.168.1.1"]


async def test_deadline_bounds_the_scan(session):
    session.set_default(delay=30)
    hits = await asyncio.wait_for(scan_network(LOCAL, session=session, deadline=0.1), timeout=5)
    assert hits == []


async def test_concurrency_is_bounded(session):
    session.set_default(delay=30)
    cancel_event = asyncio.Event()
    task = asyncio.ensure_future(
        scan_network(LOCAL, session=session, concurrency=4, cancel_event=cancel_event)
    )
    await asyncio.sleep(0.1)
    assert len(session.calls) == 4
    cancel_event.set()
    await task


async def test_scan_for_any_device(session):
    session.add("GET", "http://192.168.1.20/status", body="ok")
    session.add("GET", "http://192.168.1.9/status", status=500)
    session.add("GET", "http://192.168.1.3/status", body="ok")
    assert await scan_for_any_device(LOCAL, session=session) == ["192.168.1.3", "192.168.1.20"]


async def test_new_scan_supersedes_running_one(session):
    session.set_default(delay=30)
    session.add("GET", "http://192.168.1.1/hello", body={"hostname": "pawfeeds-cam-attic"})
    session.add("GET", "http://192.168.1.1/status", status=404)
    scans = ScanSession(LOCAL, session=session)

    first = asyncio.ensure_future(scans.scan())
    await asyncio.sleep(0.1)
    assert scans.is_scanning

    session.set_default()
    second = await asyncio.wait_for(scans.scan(), timeout=5)
    partial = await asyncio.wait_for(first, timeout=5)

    assert [h.address for h in partial] == ["192.168.1.1"]
    assert [h.address for h in second] == ["192.168.1.1"]
    assert not scans.is_scanning


async def test_scan_session_cancel(session):
    session.set_default(delay=30)
    scans = ScanSession(LOCAL, session=session)
    task = asyncio.ensure_future(scans.discover())
    await asyncio.sleep(0.1)
    scans.cancel()
    assert await asyncio.wait_for(task, timeout=5) == []
