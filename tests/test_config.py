"""Tests for configuration parsing and the value helpers behind it."""

from datetime import timedelta
from pathlib import Path

import pytest

from pawfeeds.config import PawfeedsConfig
from pawfeeds.discovery import ScanSession
from pawfeeds.helpers import coerce_bool, coerce_float, coerce_int, decode_json, first_present, parse_interval
from pawfeeds.scheduler import ScheduleTriggerEngine


def test_defaults():
    config = PawfeedsConfig()
    assert config.probe_timeout == 3.0
    assert config.fast_probe_timeout == 0.9
    assert config.scan_concurrency == 32
    assert config.tick_interval == timedelta(seconds=30)
    assert config.store_path.name == "feeders.json"


def test_from_mapping():
    config = PawfeedsConfig.from_mapping(
        {
            "probe_timeout": "1.5",
            "scan_concurrency": "8",
            "tick_interval": "00:01:00",
            "store_path": "/tmp/pawfeeds/feeders.json",
            "relay_url": "https://relay.example/sendCommand",
            "local_dispatch_timeout": -1,
            "provision_timeout": None,
            "unknown": "ignored",
        }
    )
    assert config.probe_timeout == 1.5
    assert config.scan_concurrency == 8
    assert config.tick_interval == timedelta(minutes=1)
    assert config.store_path == Path("/tmp/pawfeeds/feeders.json")
    assert config.relay_url == "https://relay.example/sendCommand"
    assert config.local_dispatch_timeout == 10.0
    assert config.provision_timeout == 20.0
    assert not hasattr(config, "unknown")


def test_factories(tmp_path):
    config = PawfeedsConfig(store_path=tmp_path / "feeders.json", fast_probe_timeout=0.5)

    assert config.registry().path == tmp_path / "feeders.json"
    scans = config.scan_session()
    assert isinstance(scans, ScanSession)
    assert scans.fast_timeout == 0.5
    assert config.feeder("192.168.1.11").reset_timeout == 5.0

    engine = config.engine()
    assert isinstance(engine, ScheduleTriggerEngine)
    assert engine.interval == timedelta(seconds=30)


@pytest.mark.parametrize(
    "value,expected",
    [
        (45, timedelta(seconds=45)),
        ("90", timedelta(seconds=90)),
        ("01:02:03", timedelta(hours=1, minutes=2, seconds=3)),
        ("2.5", timedelta(seconds=2)),
        (timedelta(minutes=5), timedelta(minutes=5)),
        ("soon", timedelta(seconds=30)),
        ("", timedelta(seconds=30)),
        ("1e999", timedelta(seconds=30)),
        (float("inf"), timedelta(seconds=30)),
    ],
)
def test_parse_interval(value, expected):
    assert parse_interval(value, timedelta(seconds=30)) == expected


def test_coercion_helpers():
    assert first_present({"a": None, "b": 0}, ("a", "b")) == 0
    assert first_present("not a mapping", ("a",)) is None
    assert coerce_int("12.7") == 12
    assert coerce_int(True, 3) == 3
    assert coerce_bool("Yes") is True
    assert coerce_bool("maybe") is None
    assert decode_json("{broken") is None
    assert decode_json('{"a": 1}') == {"a": 1}


@pytest.mark.parametrize("value", [1e999, "1e999", float("-inf"), "nan", "Infinity"])
def test_non_finite_numbers_fall_back_to_default(value):
    assert coerce_int(value, 7) == 7
    assert coerce_float(value, 1.5) == 1.5
