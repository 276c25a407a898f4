"""
Group raw scan hits into feeder slots.

A feeder-brain ``pawfeeds-std-<core>`` serves up to two cameras named
``pawfeeds-cam-<core>`` (slot 1) and ``pawfeeds-cam-<core>-2`` (slot 2).
Partial groups are kept so callers can show what is reachable.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from .models import DeviceRole, PairedDevice, ProbeResult
from .protocol import (
    CAMERA_HOSTNAME_PREFIX,
    FEEDER_HOSTNAME_PREFIX,
    SECOND_SLOT_SUFFIX,
    classify_role,
)

_LOGGER = logging.getLogger(__name__)


class HostnameParts(NamedTuple):
    role: DeviceRole
    core: str
    feeder_id: int


def parse_hostname(hostname: str, role: DeviceRole = DeviceRole.UNKNOWN) -> Optional[HostnameParts]:
    """Split a hostname into role, core name and slot id.

    ``role`` is the role the host declared; it wins over the prefix. Hosts
    outside the naming convention keep their whole hostname as core name
    when a role was declared, and are unclassifiable otherwise.
    """
    raw = (hostname or "").strip()
    name = raw.lower()
    if not name:
        return None

    if name.startswith(CAMERA_HOSTNAME_PREFIX):
        core = raw[len(CAMERA_HOSTNAME_PREFIX):]
    elif name.startswith(FEEDER_HOSTNAME_PREFIX):
        core = raw[len(FEEDER_HOSTNAME_PREFIX):]
    else:
        core = raw

    resolved = classify_role(role.value, name)
    if resolved == DeviceRole.UNKNOWN:
        return None

    feeder_id = 1
    if resolved == DeviceRole.CAMERA and core.endswith(SECOND_SLOT_SUFFIX):
        core = core[: -len(SECOND_SLOT_SUFFIX)]
        feeder_id = 2

    if not core:
        return None
    return HostnameParts(resolved, core, feeder_id)


def pair(results: List[ProbeResult]) -> List[PairedDevice]:
    """
    Pair cameras with their feeder-brain.

    Returns:
        One :class:`PairedDevice` per ``(core, slot)``, sorted by display name.
        Camera-only and feeder-only groups are included with the missing
        address left empty; a headless feeder-brain yields slot 1.
    """
    brains: Dict[str, Tuple[ProbeResult, HostnameParts]] = {}
    cameras: Dict[Tuple[str, int], ProbeResult] = {}

    # Deterministic winner when two hosts claim the same name
    for result in sorted(results, key=lambda r: (r.hostname.lower(), r.address)):
        parts = parse_hostname(result.hostname, result.role)
        if parts is None:
            _LOGGER.debug("[%s] Dropping unclassifiable host %r", result.address, result.hostname)
            continue
        if parts.role == DeviceRole.FEEDER:
            brains.setdefault(parts.core, (result, parts))
        else:
            cameras.setdefault((parts.core, parts.feeder_id), result)

    keys = set(cameras)
    for core in brains:
        if not any(cam_core == core for cam_core, _ in cameras):
            keys.add((core, 1))

    paired = []
    for core, feeder_id in keys:
        camera = cameras.get((core, feeder_id))
        brain = brains.get(core)
        brain_result = brain[0] if brain else None
        weight = brain_result.container_weight_grams if brain_result else 0.0
        paired.append(
            PairedDevice(
                feeder_id=feeder_id,
                core_name=core,
                camera_hostname=camera.hostname if camera else "",
                camera_address=camera.address if camera else "",
                feeder_hostname=brain_result.hostname if brain_result else "",
                feeder_address=brain_result.address if brain_result else "",
                container_weight_grams=weight,
            )
        )

    paired.sort(key=lambda d: (d.display_name, d.core_name, d.feeder_id))
    _LOGGER.debug("Paired %d slot(s) from %d probe result(s)", len(paired), len(results))
    return paired
