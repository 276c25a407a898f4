"""
Tolerant value coercion shared by the device protocol, the models and the config.

Feeder firmware has changed field names and value types several times, so every
reader here accepts loosely-typed input and falls back to a default instead of
raising.
"""

import json
import logging
import math
from datetime import timedelta
from typing import Any, Iterable, Mapping, Optional

_LOGGER = logging.getLogger(__name__)


def first_present(data: Any, keys: Iterable[str]) -> Any:
    """Return the value of the first key present (and not None) in ``data``."""
    if not isinstance(data, Mapping):
        return None
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def coerce_str(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def coerce_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def coerce_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def coerce_bool(value: Any) -> Optional[bool]:
    """Interpret JSON booleans, ``"true"``/``"false"`` strings and 0/1 numbers.

    Returns None when the value carries no usable truth value.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
    return None


def decode_json(text: Optional[str]) -> Any:
    """Decode a JSON document, returning None for empty or malformed input."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        _LOGGER.debug("Ignoring malformed JSON payload: %.80r", text)
        return None


def parse_interval(value: Any, default: timedelta) -> timedelta:
    """Parse a polling interval.

    Accepts a ``timedelta``, a number of seconds (int, float or digit string)
    or an ``HH:MM:SS`` string. Anything else yields ``default``.
    """
    if isinstance(value, timedelta):
        return value

    try:
        return _parse_interval(value, default)
    except OverflowError:
        pass
    _LOGGER.warning("Invalid interval %r, using %s", value, default)
    return default


def _parse_interval(value: Any, default: timedelta) -> timedelta:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise OverflowError(value)
        return timedelta(seconds=int(value))

    if isinstance(value, str):
        candidate = value.strip()

        if not candidate:
            return default

        if candidate.isdigit():
            return timedelta(seconds=int(candidate))

        try:
            hours, minutes, seconds = candidate.split(":")
        except ValueError:
            pass
        else:
            try:
                return timedelta(
                    hours=int(hours),
                    minutes=int(minutes),
                    seconds=int(seconds),
                )
            except ValueError:
                pass

        try:
            return timedelta(seconds=int(float(candidate)))
        except ValueError:
            pass

    _LOGGER.warning("Invalid interval %r, using %s", value, default)
    return default
