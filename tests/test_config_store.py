from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from daylight_dimmer.config_store import (
    ConfigStore,
    MalformedRecord,
    schedule_to_record,
    trigger_from_record,
    trigger_to_record,
)
from daylight_dimmer.models import (
    AppConfig,
    BrightnessPreset,
    DimmingSchedule,
    DisplayLevels,
    FixedTime,
    Sunrise,
    Sunset,
)


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "DaylightDimmer" / "config.json")


def sample_schedules():
    created = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
    return [
        DimmingSchedule(name="Dusk", trigger=Sunset(-15), preset_id="p-evening", created_at=created),
        DimmingSchedule(name="Bed", trigger=FixedTime(22, 30), preset_id="p-night", is_enabled=False, created_at=created),
        DimmingSchedule(name="Dawn", trigger=Sunrise(), preset_id="p-full", created_at=created),
    ]


def test_missing_file_writes_defaults(store):
    config = store.load()
    assert store.config_path.exists()
    assert config.schedules == []
    assert [preset.name for preset in config.presets] == ["Full", "Evening", "Night"]
    assert config.color_temperature.enabled is False


def test_round_trip_preserves_schedules(store):
    config = AppConfig(schedules=sample_schedules())
    config.location.auto_detect = False
    config.location.latitude = 51.5
    config.location.longitude = -0.12
    config.color_temperature.enabled = True
    config.color_temperature.night_kelvin = 3000
    config.display_levels["dell|U2720Q|1"] = DisplayLevels(brightness=0.4, warmth=0.3, contrast=0.6)
    store.save(config)

    loaded = store.load()
    assert loaded.schedules == config.schedules
    assert [s.is_enabled for s in loaded.schedules] == [True, False, True]
    assert loaded.location.latitude == 51.5
    assert loaded.location.auto_detect is False
    assert loaded.color_temperature.enabled is True
    assert loaded.color_temperature.night_kelvin == 3000
    assert loaded.display_levels == config.display_levels
    assert [p.id for p in loaded.presets] == [p.id for p in config.presets]


def test_preset_without_warmth_stays_unset(store):
    preset = BrightnessPreset(name="Dim", universal_brightness=0.4)
    store.save(AppConfig(presets=[preset]))

    loaded = store.load().presets[0]
    assert loaded.universal_brightness == 0.4
    assert loaded.universal_warmth is None
    assert loaded.display_warmth is None
    assert not loaded.specifies_warmth()


def test_schedule_record_holds_no_runtime_state():
    record = schedule_to_record(sample_schedules()[0])
    assert set(record) == {"id", "name", "trigger", "preset_id", "is_enabled", "created_at"}


@pytest.mark.parametrize(
    "trigger, record",
    [
        (FixedTime(22, 30), {"type": "fixed_time", "hour": 22, "minute": 30}),
        (Sunrise(0), {"type": "sunrise", "offset_minutes": 0}),
        (Sunset(-15), {"type": "sunset", "offset_minutes": -15}),
    ],
)
def test_trigger_records_are_tagged(trigger, record):
    assert trigger_to_record(trigger) == record
    assert trigger_from_record(record) == trigger


@pytest.mark.parametrize(
    "record",
    [
        {"type": "fixed_time", "hour": 25, "minute": 0},
        {"type": "fixed_time", "hour": "7", "minute": 0},
        {"type": "moonrise", "offset_minutes": 0},
        {"type": "sunset", "offset_minutes": True},
        "sunset",
    ],
)
def test_bad_trigger_records(record):
    with pytest.raises(MalformedRecord):
        trigger_from_record(record)


def test_malformed_schedules_are_dropped(store, caplog):
    good = [schedule_to_record(schedule) for schedule in sample_schedules()]
    bad_trigger = dict(good[0], trigger={"type": "noon"})
    no_preset = {key: value for key, value in good[1].items() if key != "preset_id"}
    payload = {"schedules": [good[0], bad_trigger, 42, no_preset, good[2]]}
    store.config_path.parent.mkdir(parents=True)
    store.config_path.write_text(json.dumps(payload), encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        loaded = store.load()

    assert [s.name for s in loaded.schedules] == ["Dusk", "Dawn"]
    assert caplog.text.count("Dropping malformed schedule") == 3


def test_corrupt_file_falls_back_to_defaults(store):
    store.config_path.parent.mkdir(parents=True)
    store.config_path.write_text("{not json", encoding="utf-8")

    config = store.load()
    assert config.schedules == []
    assert json.loads(store.config_path.read_text(encoding="utf-8"))["version"] == 1


def test_out_of_range_values_are_clamped(store):
    store.config_path.parent.mkdir(parents=True)
    store.config_path.write_text(
        json.dumps(
            {
                "location": {"latitude": 123.0, "longitude": 10.0},
                "color_temperature": {"day_kelvin": 9000, "night_kelvin": 1000, "transition_minutes": 999},
                "display_levels": {"a": {"brightness": 0.0, "warmth": 4, "contrast": -1}},
            }
        ),
        encoding="utf-8",
    )

    config = store.load()
    assert config.location.latitude is None
    assert config.color_temperature.day_kelvin == 6500
    assert config.color_temperature.night_kelvin == 1900
    assert config.color_temperature.transition_minutes == 240
    assert config.display_levels["a"] == DisplayLevels(brightness=0.1, warmth=1.0, contrast=0.0)


def test_large_solar_offsets_survive_reload(store):
    schedules = [
        DimmingSchedule(name="Late", trigger=Sunset(1500), preset_id="p-night"),
        DimmingSchedule(name="Early", trigger=Sunrise(-2000), preset_id="p-full"),
    ]
    store.save(AppConfig(schedules=schedules))

    loaded = store.load()
    assert [s.trigger for s in loaded.schedules] == [Sunset(1500), Sunrise(-2000)]
    assert [s.id for s in loaded.schedules] == [s.id for s in schedules]


def test_bad_scalars_do_not_block_loading(store):
    schedule = sample_schedules()[0]
    store.config_path.parent.mkdir(parents=True)
    store.config_path.write_text(
        json.dumps(
            {
                "version": "two",
                "tick_seconds": 1e400,
                "schedules_enabled": "false",
                "location": {"auto_detect": "no", "latitude": 40.0, "longitude": -74.0},
                "color_temperature": {"enabled": "yes"},
                "schedules": [schedule_to_record(schedule)],
            }
        ),
        encoding="utf-8",
    )

    config = store.load()
    assert config.version == 1
    assert config.tick_seconds == 30
    assert config.schedules_enabled is False
    assert config.location.auto_detect is False
    assert config.color_temperature.enabled is True
    assert config.schedules == [schedule]
