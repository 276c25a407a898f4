"""
Recurring schedule trigger engine.

Every tick loads the registry, finds schedules whose time has been reached
today and that have not fired today, and feeds them over the LAN or through
the cloud relay. A schedule fires at most once per day: ``last_triggered_date``
is set whether or not the dispatch succeeded, so a failing feeder is not
retried until the next occurrence.
"""

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, List, Optional, Set, Tuple, Union

from .models import DispatchResult, FeederSlot, FeedingSchedule, PetProfile
from .portion import dispatch_portion
from .registry import FeederRegistry
from .transport import TRANSPORT_LOCAL, TRANSPORT_NONE, LocalTransport, RemoteTransport

_LOGGER = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = timedelta(seconds=30)

DispatchCallback = Callable[[FeederSlot, PetProfile, FeedingSchedule, DispatchResult], Any]

# (slot id, profile index, schedule index)
ScheduleKey = Tuple[int, int, int]
DueEntry = Tuple[ScheduleKey, FeederSlot, PetProfile, FeedingSchedule]


class ScheduleState(str, Enum):
    IDLE = "idle"
    DUE = "due"
    DISPATCHING = "dispatching"
    FIRED = "fired"
    FAILED = "failed"
    # Due, but nothing to dispense
    SKIPPED = "skipped"


@dataclass
class TriggerOutcome:
    slot_id: int
    profile_name: str
    schedule_name: str
    grams: int
    state: ScheduleState
    result: Optional[DispatchResult] = None


class ScheduleTriggerEngine:
    """
    Owns the background loop that fires feeding schedules.

    Example:
        engine = ScheduleTriggerEngine(registry, LocalTransport(session), RemoteTransport(relay))
        engine.start()      # app resumed
        ...
        await engine.stop()  # app going to sleep
    """

    def __init__(
        self,
        registry: FeederRegistry,
        local_transport: LocalTransport,
        remote_transport: Optional[RemoteTransport] = None,
        interval: Union[timedelta, float] = DEFAULT_TICK_INTERVAL,
        clock: Optional[Callable[[], datetime]] = None,
        on_dispatch: Optional[DispatchCallback] = None,
    ):
        """
        Args:
            registry: Source of slots, profiles and schedules
            local_transport: LAN transport, preferred when the slot has a feeder address
            remote_transport: Cloud relay transport, used when only a device id is known
            interval: Time between ticks
            clock: Returns local wall-clock time; ``datetime.now`` by default
            on_dispatch: Called after every completed dispatch attempt. After a LAN
                dispatch the slot's ``online`` flag already reflects the result;
                the flag is not persisted, so this is the only place it is seen
        """
        self._registry = registry
        self._local = local_transport
        self._remote = remote_transport
        self.interval = interval if isinstance(interval, timedelta) else timedelta(seconds=interval)
        self._clock = clock or datetime.now
        self._on_dispatch = on_dispatch
        self._tick_lock = asyncio.Lock()
        # Schedules fired on _fired_day, independent of what the registry persisted
        self._fired: Set[ScheduleKey] = set()
        self._fired_day: Optional[date] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Start ticking on the running event loop.

        Returns:
            False if the engine was already running
        """
        if self.is_running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    async def stop(self) -> None:
        """Stop ticking and wait for the loop to wind down."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        _LOGGER.info("Schedule engine started (every %ss)", self.interval.total_seconds())
        try:
            while True:
                try:
                    await self.tick()
                except Exception:
                    _LOGGER.exception("Schedule tick failed")
                await asyncio.sleep(self.interval.total_seconds())
        finally:
            _LOGGER.info("Schedule engine stopped")

    async def tick(self, now: Optional[datetime] = None) -> List[TriggerOutcome]:
        """
        Run one trigger pass.

        A tick requested while another is still running is skipped.

        Returns:
            One outcome per schedule that was due
        """
        if self._tick_lock.locked():
            _LOGGER.debug("Previous tick still running, skipping")
            return []

        async with self._tick_lock:
            now = now or self._clock()
            if self._fired_day != now.date():
                self._fired.clear()
                self._fired_day = now.date()

            if not self._due_entries(self._registry.load(), now):
                return []

            async with self._registry.transaction() as slots:
                due = self._due_entries(slots, now)
                return list(
                    await asyncio.gather(
                        *(self._fire(key, slot, profile, schedule, now.date()) for key, slot, profile, schedule in due)
                    )
                )

    def _due_entries(self, slots: List[FeederSlot], now: datetime) -> List[DueEntry]:
        return [
            ((slot.id, profile_index, schedule_index), slot, profile, schedule)
            for slot in slots
            for profile_index, profile in enumerate(slot.profiles)
            for schedule_index, schedule in enumerate(profile.schedules)
            if schedule.is_due(now) and (slot.id, profile_index, schedule_index) not in self._fired
        ]

    def _select_transport(self, slot: FeederSlot):
        if self._local.can_dispatch(slot):
            return self._local
        if self._remote is not None and self._remote.can_dispatch(slot):
            return self._remote
        return None

    async def _fire(
        self,
        key: ScheduleKey,
        slot: FeederSlot,
        profile: PetProfile,
        schedule: FeedingSchedule,
        today: date,
    ) -> TriggerOutcome:
        grams = dispatch_portion(profile, schedule)
        schedule.last_triggered_date = today
        self._fired.add(key)
        outcome = TriggerOutcome(slot.id, profile.name, schedule.name, grams, ScheduleState.DUE)

        if grams <= 0:
            _LOGGER.warning(
                "Schedule '%s' for '%s' on '%s' has no portion, not feeding",
                schedule.name, profile.name, slot.name,
            )
            outcome.state = ScheduleState.SKIPPED
            return outcome

        transport = self._select_transport(slot)
        if transport is None:
            _LOGGER.warning(
                "Schedule '%s' for '%s': '%s' has neither a LAN address nor a device id",
                schedule.name, profile.name, slot.name,
            )
            outcome.state = ScheduleState.FAILED
            outcome.result = DispatchResult(
                success=False, message="Feeder is not reachable.", transport=TRANSPORT_NONE
            )
            return outcome

        _LOGGER.info(
            "Triggering schedule '%s' for '%s' on '%s': %dg via %s",
            schedule.name, profile.name, slot.name, grams, transport.name,
        )
        outcome.state = ScheduleState.DISPATCHING
        try:
            result = await transport.dispatch(slot, grams)
        except Exception as exc:
            _LOGGER.exception("Transport %s raised for slot %d", transport.name, slot.id)
            result = DispatchResult(success=False, message=str(exc), transport=transport.name)

        if result.transport == TRANSPORT_LOCAL:
            slot.online = result.success
        outcome.result = result
        outcome.state = ScheduleState.FIRED if result.success else ScheduleState.FAILED
        await self._notify(slot, profile, schedule, result)
        return outcome

    async def _notify(
        self, slot: FeederSlot, profile: PetProfile, schedule: FeedingSchedule, result: DispatchResult
    ) -> None:
        if self._on_dispatch is None:
            return
        try:
            ret = self._on_dispatch(slot, profile, schedule, result)
            if inspect.isawaitable(ret):
                await ret
        except Exception:
            _LOGGER.exception("Dispatch callback failed for slot %d", slot.id)
