"""
Data model for feeder slots, pet profiles and feeding schedules.

Everything here is plain data. ``to_dict``/``from_dict`` produce and accept the
JSON shape the registry persists; ``from_dict`` also understands the
PascalCase keys and integer enum codes written by older app releases.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .helpers import coerce_bool, coerce_float, coerce_int, coerce_str, first_present

_LOGGER = logging.getLogger(__name__)

DEFAULT_SCHEDULE_NAME = "New Schedule"
DEFAULT_SCHEDULE_TIME = time(8, 0)


class Weekday:
    """Weekday constants for schedules"""
    SUNDAY = "sun"
    MONDAY = "mon"
    TUESDAY = "tue"
    WEDNESDAY = "wed"
    THURSDAY = "thu"
    FRIDAY = "fri"
    SATURDAY = "sat"

    ALL_DAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
    WEEKDAYS = ["mon", "tue", "wed", "thu", "fri"]
    WEEKEND = ["sat", "sun"]

    # Indexed by date.weekday() (Monday == 0)
    _BY_PYTHON_INDEX = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]

    @classmethod
    def for_date(cls, day: date) -> str:
        return cls._BY_PYTHON_INDEX[day.weekday()]

    @classmethod
    def normalize(cls, value: Any) -> Optional[str]:
        """Map a stored day to its three-letter code.

        Accepts codes ("mon"), full names ("Monday") and the integer form
        older releases persisted (0 = Sunday ... 6 = Saturday).
        """
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return cls.ALL_DAYS[value] if 0 <= value <= 6 else None
        if isinstance(value, str):
            key = value.strip().lower()[:3]
            if key in cls.ALL_DAYS:
                return key
            if key.isdigit():
                return cls.normalize(int(key))
        return None


class SexStatus(str, Enum):
    NEUTERED = "neutered"
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value: Any) -> "SexStatus":
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return [cls.NEUTERED, cls.MALE, cls.FEMALE][value] if 0 <= value <= 2 else cls.NEUTERED
        text = coerce_str(value).lower()
        if text.startswith(("neut", "spay")):
            return cls.NEUTERED
        if "female" in text:
            return cls.FEMALE
        if "male" in text:
            return cls.MALE
        return cls.NEUTERED


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    NORMAL = "normal"
    ACTIVE = "active"

    @classmethod
    def parse(cls, value: Any) -> "ActivityLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return [cls.SEDENTARY, cls.NORMAL, cls.ACTIVE][value] if 0 <= value <= 2 else cls.NORMAL
        text = coerce_str(value).lower()
        for member in cls:
            if text == member.value:
                return member
        return cls.NORMAL


class DeviceRole(str, Enum):
    CAMERA = "camera"
    FEEDER = "feeder"
    UNKNOWN = "unknown"


def parse_time_of_day(value: Any, default: time = DEFAULT_SCHEDULE_TIME) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` (older releases stored the latter)."""
    if isinstance(value, time):
        return value
    text = coerce_str(value)
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    _LOGGER.warning("Invalid schedule time %r, using %s", value, default.strftime("%H:%M"))
    return default


def _parse_date(value: Any) -> Optional[date]:
    text = coerce_str(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


@dataclass
class FeedingSchedule:
    """One recurring feeding occurrence.

    Args:
        name: Display name (e.g. "Breakfast")
        time_of_day: Wall-clock trigger time
        enabled: Whether the schedule takes part in triggering and portioning
        days_of_week: Weekday codes from :class:`Weekday`
        last_triggered_date: Last calendar date this schedule fired
        portion_grams: This occurrence's share of the profile's daily total
    """

    name: str = DEFAULT_SCHEDULE_NAME
    time_of_day: time = DEFAULT_SCHEDULE_TIME
    enabled: bool = True
    days_of_week: List[str] = field(default_factory=lambda: list(Weekday.ALL_DAYS))
    last_triggered_date: Optional[date] = None
    portion_grams: int = 0

    def runs_on(self, day: date) -> bool:
        return Weekday.for_date(day) in self.days_of_week

    def is_due(self, now: datetime) -> bool:
        """True when the trigger time has been reached today and it has not fired yet."""
        today = now.date()
        return (
            self.enabled
            and self.runs_on(today)
            and now.time() >= self.time_of_day
            and self.last_triggered_date != today
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "time": self.time_of_day.strftime("%H:%M"),
            "enabled": self.enabled,
            "days": list(self.days_of_week),
            "last_triggered_date": self.last_triggered_date.isoformat() if self.last_triggered_date else None,
            "portion_grams": self.portion_grams,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeedingSchedule":
        raw_days = first_present(data, ("days", "days_of_week", "Days"))
        if isinstance(raw_days, list):
            days = []
            for raw in raw_days:
                day = Weekday.normalize(raw)
                if day and day not in days:
                    days.append(day)
        else:
            days = list(Weekday.ALL_DAYS)

        enabled = coerce_bool(first_present(data, ("enabled", "IsEnabled", "isEnabled")))
        return cls(
            name=coerce_str(first_present(data, ("name", "Name")), DEFAULT_SCHEDULE_NAME) or DEFAULT_SCHEDULE_NAME,
            time_of_day=parse_time_of_day(first_present(data, ("time", "time_of_day", "Time"))),
            enabled=True if enabled is None else enabled,
            days_of_week=days,
            last_triggered_date=_parse_date(first_present(data, ("last_triggered_date", "LastTriggeredDate"))),
            portion_grams=max(0, coerce_int(first_present(data, ("portion_grams", "portionGrams")))),
        )


@dataclass
class PetProfile:
    """Feeding parameters for one animal assigned to a feeder slot."""

    name: str = "Default Profile"
    age_months: int = 12
    weight_kg: float = 10.0
    food_kcal_per_100g: float = 350.0
    sex_status: SexStatus = SexStatus.NEUTERED
    activity_level: ActivityLevel = ActivityLevel.NORMAL
    schedules: List[FeedingSchedule] = field(default_factory=list)
    computed_daily_portion_grams: int = 0
    # Manual per-meal override; 0 means "use the computed share"
    edited_portion_grams: int = 0

    @property
    def enabled_schedules(self) -> List[FeedingSchedule]:
        return [s for s in self.schedules if s.enabled]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "age_months": self.age_months,
            "weight_kg": self.weight_kg,
            "food_kcal_per_100g": self.food_kcal_per_100g,
            "sex_status": self.sex_status.value,
            "activity_level": self.activity_level.value,
            "schedules": [s.to_dict() for s in self.schedules],
            "computed_daily_portion_grams": self.computed_daily_portion_grams,
            "edited_portion_grams": self.edited_portion_grams,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PetProfile":
        raw_schedules = first_present(data, ("schedules", "Schedules"))
        schedules = [
            FeedingSchedule.from_dict(s)
            for s in (raw_schedules if isinstance(raw_schedules, list) else [])
            if isinstance(s, Mapping)
        ]
        return cls(
            name=coerce_str(first_present(data, ("name", "Name")), "Default Profile") or "Default Profile",
            age_months=coerce_int(first_present(data, ("age_months", "AgeMonths")), 12),
            weight_kg=coerce_float(first_present(data, ("weight_kg", "WeightKg")), 10.0),
            food_kcal_per_100g=coerce_float(
                first_present(data, ("food_kcal_per_100g", "FoodKcalPer100g")), 350.0
            ),
            sex_status=SexStatus.parse(first_present(data, ("sex_status", "SexStatus"))),
            activity_level=ActivityLevel.parse(first_present(data, ("activity_level", "ActivityLevel"))),
            schedules=schedules,
            computed_daily_portion_grams=max(
                0, coerce_int(first_present(data, ("computed_daily_portion_grams",)))
            ),
            edited_portion_grams=max(
                0, coerce_int(first_present(data, ("edited_portion_grams", "EditedCalculation")))
            ),
        )


@dataclass
class FeederSlot:
    """A logical feeding station (one of up to two per physical unit).

    ``online`` is refreshed from polling and never persisted.
    """

    id: int
    name: str = ""
    device_id: str = ""
    camera_address: str = ""
    feeder_address: str = ""
    online: bool = False
    container_weight_grams: float = 0.0
    profiles: List[PetProfile] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "device_id": self.device_id,
            "camera_address": self.camera_address,
            "feeder_address": self.feeder_address,
            "container_weight_grams": self.container_weight_grams,
            "profiles": [p.to_dict() for p in self.profiles],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeederSlot":
        raw_profiles = first_present(data, ("profiles", "Profiles"))
        profiles = [
            PetProfile.from_dict(p)
            for p in (raw_profiles if isinstance(raw_profiles, list) else [])
            if isinstance(p, Mapping)
        ]
        return cls(
            id=coerce_int(first_present(data, ("id", "Id"))),
            name=coerce_str(first_present(data, ("name", "Name"))),
            device_id=coerce_str(first_present(data, ("device_id", "DeviceId"))),
            camera_address=coerce_str(first_present(data, ("camera_address", "CameraIp"))),
            feeder_address=coerce_str(first_present(data, ("feeder_address", "FeederIp"))),
            container_weight_grams=coerce_float(
                first_present(data, ("container_weight_grams", "ContainerWeight"))
            ),
            profiles=profiles,
        )


@dataclass
class ProbeResult:
    """One responding host from a LAN scan."""

    address: str
    role: DeviceRole = DeviceRole.UNKNOWN
    hostname: str = ""
    container_weight_grams: float = 0.0
    connected: Optional[bool] = None


@dataclass(frozen=True)
class PairedDevice:
    """A camera and/or feeder-brain grouped into one feeder slot."""

    feeder_id: int
    core_name: str
    camera_hostname: str = ""
    camera_address: str = ""
    feeder_hostname: str = ""
    feeder_address: str = ""
    container_weight_grams: float = 0.0

    @property
    def display_name(self) -> str:
        return f"Feeder {self.feeder_id} ({self.core_name})"

    @property
    def is_complete(self) -> bool:
        return bool(self.camera_address and self.feeder_address)


@dataclass
class WifiNetwork:
    ssid: str
    rssi: int = 0
    secure: bool = True


@dataclass
class ProvisionRequest:
    """Payload for the AP-mode ``/provision`` endpoint.

    Older firmware ignores ``feeder_id``.
    """

    ssid: str
    password: str
    hostname: str
    uid: str
    feeder_id: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ssid": self.ssid,
            "password": self.password,
            "hostname": self.hostname,
            "uid": self.uid,
            "feederId": self.feeder_id,
        }


@dataclass
class ProvisionResult:
    success: bool
    message: str = ""
    device_id: str = ""
    # 0 when older firmware does not report it
    feeder_id: int = 0
    camera_address: str = ""
    feeder_address: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProvisionResult":
        return cls(
            success=bool(coerce_bool(first_present(data, ("success", "Success")))),
            message=coerce_str(first_present(data, ("message", "Message"))),
            device_id=coerce_str(first_present(data, ("deviceId", "device_id"))),
            feeder_id=coerce_int(first_present(data, ("feederId", "feeder_id"))),
            camera_address=coerce_str(first_present(data, ("cameraIp", "camera_ip"))),
            feeder_address=coerce_str(first_present(data, ("feederIp", "feeder_ip"))),
        )


@dataclass
class DispatchResult:
    success: bool
    message: str = ""
    transport: str = "none"
