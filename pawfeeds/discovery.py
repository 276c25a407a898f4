"""
LAN discovery of provisioned PawFeeds devices.

Probes every other host of the caller's /24 network with bounded concurrency
and hands the hits to the pairing resolver. Scans never raise: unreachable
hosts are simply not hits and cancellation returns what was found so far.
"""

import asyncio
import ipaddress
import logging
import socket
from typing import Awaitable, Callable, List, Optional

from aiohttp import ClientSession

from .exceptions import DeviceConnectionError
from .models import PairedDevice, ProbeResult
from .pairing import pair
from .protocol import (
    DEFAULT_SCAN_CONCURRENCY,
    ENDPOINT_STATUS,
    FAST_PROBE_TIMEOUT,
    PROBE_TIMEOUT,
    FeederHTTPProtocol,
    is_success,
)

_LOGGER = logging.getLogger(__name__)


def local_ipv4_address() -> Optional[str]:
    """Best-effort IPv4 address of the interface that routes to the LAN.

    Returns None when no usable interface exists.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; connecting a UDP socket only selects a route
        sock.connect(("10.255.255.255", 1))
        address = sock.getsockname()[0]
    except OSError as exc:
        _LOGGER.debug("No usable local interface: %s", exc)
        return None
    finally:
        sock.close()
    if address.startswith(("127.", "0.")):
        return None
    return address


def subnet_hosts(local_address: Optional[str]) -> List[str]:
    """All /24 host addresses except ``local_address`` itself; [] if the address is invalid."""
    if not local_address:
        return []
    try:
        local = ipaddress.IPv4Address(local_address.strip())
    except ValueError:
        _LOGGER.warning("Not an IPv4 address: %r", local_address)
        return []
    network = ipaddress.IPv4Network(f"{local}/24", strict=False)
    return [str(host) for host in network.hosts() if host != local]


async def _run_bounded(
    addresses: List[str],
    worker: Callable[[str], Awaitable[None]],
    concurrency: int,
    cancel_event: Optional[asyncio.Event],
    deadline: Optional[float],
) -> bool:
    """Run ``worker`` for every address with at most ``concurrency`` in flight.

    Returns True if the sweep was cut short by ``cancel_event`` or ``deadline``.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def gated(address: str) -> None:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                return
            await worker(address)

    tasks = [asyncio.ensure_future(gated(address)) for address in addresses]
    if not tasks:
        return False

    waiters = set(tasks)
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    interrupted = False
    try:
        loop = asyncio.get_running_loop()
        end = loop.time() + deadline if deadline is not None else None
        pending = set(tasks)
        while pending:
            remaining = None if end is None else max(0.0, end - loop.time())
            done, _ = await asyncio.wait(
                waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            pending = {t for t in tasks if not t.done()}
            if cancel_waiter is not None and cancel_waiter in done:
                interrupted = bool(pending)
                break
            if not done:
                interrupted = True
                break
            waiters = pending | ({cancel_waiter} if cancel_waiter is not None else set())
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    return interrupted


async def scan_network(
    local_address: Optional[str] = None,
    timeout: float = PROBE_TIMEOUT,
    concurrency: int = DEFAULT_SCAN_CONCURRENCY,
    session: Optional[ClientSession] = None,
    cancel_event: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
) -> List[ProbeResult]:
    """
    Probe the local /24 network for PawFeeds devices.

    Args:
        local_address: This machine's IPv4 address; detected if omitted
        timeout: Per-request timeout in seconds
        concurrency: Maximum number of hosts probed at once
        session: Shared aiohttp session (one is opened for the scan if omitted)
        cancel_event: Setting it stops the scan promptly
        deadline: Overall time budget in seconds

    Returns:
        Hits sorted by address. Partial when cancelled, empty when there is
        no usable local network.
    """
    if local_address is None:
        local_address = local_ipv4_address()
    addresses = subnet_hosts(local_address)
    if not addresses:
        return []

    hits: List[ProbeResult] = []

    async def probe(address: str) -> None:
        protocol = FeederHTTPProtocol(address, session=session, timeout=timeout)
        try:
            result = await protocol.probe()
        except DeviceConnectionError as exc:
            _LOGGER.debug("[%s] No response: %s", address, exc)
            return
        if result is not None:
            _LOGGER.debug("[%s] Hit: hostname=%r role=%s", address, result.hostname, result.role.value)
            hits.append(result)

    if session is None:
        async with ClientSession() as own_session:
            session = own_session
            interrupted = await _run_bounded(addresses, probe, concurrency, cancel_event, deadline)
    else:
        interrupted = await _run_bounded(addresses, probe, concurrency, cancel_event, deadline)

    if interrupted:
        _LOGGER.info("Scan of %s/24 interrupted with %d hit(s)", local_address, len(hits))
    else:
        _LOGGER.info("Scan of %s/24 complete: %d hit(s)", local_address, len(hits))
    return sorted(hits, key=lambda r: ipaddress.IPv4Address(r.address))


async def scan_for_any_device(
    local_address: Optional[str] = None,
    timeout: float = FAST_PROBE_TIMEOUT,
    concurrency: int = DEFAULT_SCAN_CONCURRENCY,
    session: Optional[ClientSession] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[str]:
    """
    Fast sweep for any host answering 2xx on ``/status``.

    Returns:
        Responding addresses in numeric order
    """
    if local_address is None:
        local_address = local_ipv4_address()
    addresses = subnet_hosts(local_address)
    if not addresses:
        return []

    found: List[str] = []

    async def probe(address: str) -> None:
        protocol = FeederHTTPProtocol(address, session=session, timeout=timeout)
        try:
            status, _ = await protocol.get(ENDPOINT_STATUS)
        except DeviceConnectionError:
            return
        if is_success(status):
            found.append(address)

    if session is None:
        async with ClientSession() as own_session:
            session = own_session
            await _run_bounded(addresses, probe, concurrency, cancel_event, None)
    else:
        await _run_bounded(addresses, probe, concurrency, cancel_event, None)

    return sorted(found, key=ipaddress.IPv4Address)


async def discover_feeders(
    local_address: Optional[str] = None,
    timeout: float = PROBE_TIMEOUT,
    concurrency: int = DEFAULT_SCAN_CONCURRENCY,
    session: Optional[ClientSession] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[PairedDevice]:
    """
    Scan the LAN and pair what answered into feeder slots.

    Returns:
        Paired devices sorted by display name
    """
    results = await scan_network(
        local_address,
        timeout=timeout,
        concurrency=concurrency,
        session=session,
        cancel_event=cancel_event,
    )
    return pair(results)


class ScanSession:
    """
    Single-flight scanning for one view.

    Starting a scan cancels the one still running in the same session; the
    superseded caller receives its partial results. Independent sessions do
    not affect each other.

    Example:
        session = ScanSession(session=http)
        devices = await session.discover()
        ...
        session.cancel()  # view went away
    """

    def __init__(
        self,
        local_address: Optional[str] = None,
        timeout: float = PROBE_TIMEOUT,
        concurrency: int = DEFAULT_SCAN_CONCURRENCY,
        session: Optional[ClientSession] = None,
        fast_timeout: float = FAST_PROBE_TIMEOUT,
    ):
        self.local_address = local_address
        self.timeout = timeout
        self.fast_timeout = fast_timeout
        self.concurrency = concurrency
        self._session = session
        self._cancel_event: Optional[asyncio.Event] = None

    @property
    def is_scanning(self) -> bool:
        return self._cancel_event is not None

    def cancel(self) -> None:
        """Stop the running scan, if any."""
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def _single_flight(self, scanner, **kwargs):
        self.cancel()
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        try:
            return await scanner(
                self.local_address,
                concurrency=self.concurrency,
                session=self._session,
                cancel_event=cancel_event,
                **kwargs,
            )
        finally:
            if self._cancel_event is cancel_event:
                self._cancel_event = None

    async def scan(self) -> List[ProbeResult]:
        return await self._single_flight(scan_network, timeout=self.timeout)

    async def sweep(self) -> List[str]:
        """Fast best-effort sweep for any responding device."""
        return await self._single_flight(scan_for_any_device, timeout=self.fast_timeout)

    async def discover(self) -> List[PairedDevice]:
        return pair(await self.scan())
