"""
Persistent list of known feeder slots.

The registry reads and writes the whole list at once. It does not merge:
callers do ``load()``, change the slots, then ``save()``. Two such sequences
must not interleave or one of them loses its update; serializing them is the
caller's job, and :meth:`FeederRegistry.transaction` is provided for that.
"""

import asyncio
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Mapping, Optional, Tuple, Union

from .exceptions import RegistryError
from .models import FeederSlot, PairedDevice, PetProfile

_LOGGER = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path.home() / ".pawfeeds" / "feeders.json"
DEFAULT_PROFILE_NAMES = {1: "Dog A", 2: "Dog B"}


def default_profile(slot_id: int) -> PetProfile:
    return PetProfile(name=DEFAULT_PROFILE_NAMES.get(slot_id, f"Pet {slot_id}"))


def new_slot(slot_id: int, **fields) -> FeederSlot:
    """A slot named ``Feeder <id>`` with one default profile."""
    fields.setdefault("name", f"Feeder {slot_id}")
    fields.setdefault("profiles", [default_profile(slot_id)])
    return FeederSlot(id=slot_id, **fields)


def default_slots() -> List[FeederSlot]:
    return [new_slot(1), new_slot(2)]


def repair_ids(slots: List[FeederSlot]) -> int:
    """Give slots without a positive id the next free sequential id.

    Returns:
        Number of slots that were renumbered
    """
    used = {slot.id for slot in slots if slot.id > 0}
    changed = 0
    for index, slot in enumerate(slots):
        if slot.id > 0:
            continue
        candidate = index + 1
        while candidate in used:
            candidate += 1
        slot.id = candidate
        used.add(candidate)
        changed += 1
    return changed


def merge_paired_devices(slots: List[FeederSlot], paired: List[PairedDevice]) -> List[FeederSlot]:
    """
    Fold scan results into the known slots, keyed by slot id.

    Known slots get fresh addresses, container weight and ``online=True``;
    unknown ids become new slots with a default profile. Slots the scan did
    not see are left untouched.
    """
    by_id = {slot.id: slot for slot in slots}
    for device in paired:
        slot = by_id.get(device.feeder_id)
        if slot is None:
            slot = new_slot(device.feeder_id)
            slots.append(slot)
            by_id[slot.id] = slot
            _LOGGER.info("Added %s from discovery", device.display_name)
        if device.camera_address:
            slot.camera_address = device.camera_address
        if device.feeder_address:
            slot.feeder_address = device.feeder_address
            slot.container_weight_grams = device.container_weight_grams
        slot.online = bool(device.feeder_address)
    slots.sort(key=lambda s: s.id)
    return slots


class FeederRegistry:
    """
    JSON-file store of feeder slots.

    Example:
        registry = FeederRegistry("~/.pawfeeds/feeders.json")
        async with registry.transaction() as slots:
            merge_paired_devices(slots, await discover_feeders())
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path).expanduser() if path is not None else DEFAULT_STORE_PATH
        self._lock = asyncio.Lock()

    def load(self) -> List[FeederSlot]:
        """
        Read all slots.

        A missing or corrupt store yields two default slots, which are
        persisted. A store that exists but cannot be read yields the defaults
        without touching the file. Legacy records without an id are numbered
        and the repaired list is persisted once. Never raises.
        """
        return self._load()[0]

    def _load(self) -> Tuple[List[FeederSlot], bool]:
        """Load slots and whether the store may be overwritten with them."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self._reset("no feeder store yet"), True
        except UnicodeDecodeError as exc:
            return self._reset(f"corrupt feeder store: {exc}"), True
        except OSError as exc:
            return self._reset(f"cannot read {self.path}: {exc}", persist=False), False

        try:
            data = json.loads(raw)
        except ValueError as exc:
            return self._reset(f"corrupt feeder store: {exc}"), True

        if isinstance(data, Mapping):
            data = data.get("feeders")
        if not isinstance(data, list):
            return self._reset("feeder store has no slot list"), True

        try:
            slots = [FeederSlot.from_dict(item) for item in data if isinstance(item, Mapping)]
        except (TypeError, ValueError, OverflowError) as exc:
            return self._reset(f"corrupt feeder record: {exc}"), True
        if not slots:
            return self._reset("feeder store is empty"), True

        repaired = repair_ids(slots)
        if repaired:
            _LOGGER.warning("Assigned ids to %d legacy feeder record(s)", repaired)
            self.save(slots)
        return slots, True

    def save(self, slots: List[FeederSlot]) -> bool:
        """
        Overwrite the store with ``slots``.

        The file is replaced atomically so readers never see a partial write.

        Returns:
            True on success; failures are logged
        """
        try:
            self._write([slot.to_dict() for slot in slots])
        except RegistryError as exc:
            _LOGGER.error("Saving feeders failed: %s", exc)
            return False
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[List[FeederSlot]]:
        """
        Serialized load-modify-save.

        Yields the loaded slots; they are saved when the block exits without
        an exception, unless the store exists but could not be read. Only
        other ``transaction()`` blocks in this process are excluded.
        """
        async with self._lock:
            slots, writable = self._load()
            yield slots
            if writable:
                self.save(slots)
            else:
                _LOGGER.warning("Not saving feeders over unreadable store %s", self.path)

    def _reset(self, reason: str, persist: bool = True) -> List[FeederSlot]:
        _LOGGER.warning("Using default feeders: %s", reason)
        slots = default_slots()
        if persist:
            self.save(slots)
        return slots

    def _write(self, payload: list) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".feeders-", suffix=".json", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise RegistryError(f"Cannot write {self.path}: {exc}") from exc
