"""
AP-mode provisioning.

While unprovisioned, a device hosts its own Wi-Fi network and answers on
``192.168.4.1``. The phone joins that network, lists the Wi-Fi networks the
device can see, and hands over home Wi-Fi credentials plus an identity.
"""

import logging
from typing import List, Optional

from aiohttp import ClientSession

from .exceptions import DeviceConnectionError
from .models import ProvisionRequest, ProvisionResult, WifiNetwork
from .protocol import (
    AP_ADDRESS,
    ENDPOINT_PROVISION,
    ENDPOINT_SCAN,
    ENDPOINT_STATUS,
    PROVISION_TIMEOUT,
    FeederHTTPProtocol,
    camera_hostname,
    is_success,
    parse_provision_result,
    parse_wifi_networks,
)

_LOGGER = logging.getLogger(__name__)


class ProvisioningClient:
    """Talks to a device in AP mode."""

    def __init__(
        self,
        session: Optional[ClientSession] = None,
        address: str = AP_ADDRESS,
        timeout: float = PROVISION_TIMEOUT,
    ):
        self.address = address
        self._protocol = FeederHTTPProtocol(address, session=session, timeout=timeout)

    async def scan_networks(self) -> List[WifiNetwork]:
        """
        List the Wi-Fi networks the device can see, strongest first.

        Raises:
            DeviceConnectionError: If the device is unreachable or answers non-2xx
            DeviceResponseError: If the answer cannot be parsed
        """
        status, body = await self._protocol.get(ENDPOINT_SCAN)
        if not is_success(status):
            raise DeviceConnectionError(self.address, f"Wi-Fi scan returned HTTP {status}", status=status)
        networks = parse_wifi_networks(body)
        _LOGGER.debug("[%s] Device sees %d network(s)", self.address, len(networks))
        return networks

    async def provision(self, request: ProvisionRequest) -> ProvisionResult:
        """
        Send Wi-Fi credentials and identity to the device.

        Returns:
            The device's answer; transport failures come back as ``success=False``
        """
        try:
            status, body = await self._protocol.post_json(ENDPOINT_PROVISION, request.to_dict())
        except DeviceConnectionError as exc:
            _LOGGER.warning("[%s] Provisioning failed: %s", self.address, exc)
            return ProvisionResult(success=False, message=str(exc))

        result = parse_provision_result(status, body)
        if result.success:
            _LOGGER.info(
                "[%s] Provisioned %s (device id %r)", self.address, request.hostname, result.device_id
            )
        else:
            _LOGGER.warning("[%s] Device refused provisioning: %s", self.address, result.message)
        return result

    async def provision_feeder(
        self, ssid: str, password: str, name: str, uid: str, feeder_id: int = 1
    ) -> ProvisionResult:
        """Provision the camera for one slot, deriving its hostname from ``name``."""
        return await self.provision(
            ProvisionRequest(
                ssid=ssid,
                password=password,
                hostname=camera_hostname(name, feeder_id),
                uid=uid,
                feeder_id=feeder_id,
            )
        )

    async def get_status(self) -> Optional[str]:
        """Raw ``/status`` body, or None if the device does not answer."""
        try:
            status, body = await self._protocol.get(ENDPOINT_STATUS)
        except DeviceConnectionError:
            return None
        return body if is_success(status) else None
