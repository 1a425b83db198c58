from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import (
    AppConfig,
    BrightnessPreset,
    ColorTemperatureSettings,
    DimmingSchedule,
    DisplayLevels,
    FixedTime,
    LocationSettings,
    ScheduleTrigger,
    Sunrise,
    Sunset,
    clamp_brightness,
    clamp_kelvin,
    clamp_unit,
    default_presets,
)


logger = logging.getLogger(__name__)

APP_FOLDER_NAME = "DaylightDimmer"
CONFIG_FILE_NAME = "config.json"


class MalformedRecord(ValueError):
    pass


def get_default_config_path() -> Path:
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / APP_FOLDER_NAME / CONFIG_FILE_NAME
    return Path.home() / ".config" / APP_FOLDER_NAME / CONFIG_FILE_NAME


# -- trigger and schedule records ------------------------------------------


def trigger_to_record(trigger: ScheduleTrigger) -> dict[str, Any]:
    if isinstance(trigger, FixedTime):
        return {"type": "fixed_time", "hour": int(trigger.hour), "minute": int(trigger.minute)}
    if isinstance(trigger, Sunrise):
        return {"type": "sunrise", "offset_minutes": int(trigger.offset_minutes)}
    if isinstance(trigger, Sunset):
        return {"type": "sunset", "offset_minutes": int(trigger.offset_minutes)}
    raise TypeError(f"unknown schedule trigger: {trigger!r}")


def trigger_from_record(record: Any) -> ScheduleTrigger:
    if not isinstance(record, dict):
        raise MalformedRecord(f"trigger is not an object: {record!r}")
    kind = str(record.get("type", "")).strip().lower()
    if kind == "fixed_time":
        hour = _strict_int(record.get("hour"))
        minute = _strict_int(record.get("minute"))
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise MalformedRecord(f"fixed time out of range: {hour}:{minute}")
        return FixedTime(hour=hour, minute=minute)
    if kind in ("sunrise", "sunset"):
        offset = _strict_int(record.get("offset_minutes", 0))
        return Sunrise(offset) if kind == "sunrise" else Sunset(offset)
    raise MalformedRecord(f"unknown trigger type: {kind!r}")


def schedule_to_record(schedule: DimmingSchedule) -> dict[str, Any]:
    return {
        "id": schedule.id,
        "name": schedule.name,
        "trigger": trigger_to_record(schedule.trigger),
        "preset_id": schedule.preset_id,
        "is_enabled": bool(schedule.is_enabled),
        "created_at": schedule.created_at.isoformat(),
    }


def schedule_from_record(record: Any) -> DimmingSchedule:
    if not isinstance(record, dict):
        raise MalformedRecord(f"schedule is not an object: {record!r}")
    schedule_id = _required_text(record, "id")
    preset_id = _required_text(record, "preset_id")
    is_enabled = record.get("is_enabled", True)
    if not isinstance(is_enabled, bool):
        raise MalformedRecord(f"is_enabled is not a boolean: {is_enabled!r}")
    return DimmingSchedule(
        id=schedule_id,
        name=str(record.get("name", "")),
        trigger=trigger_from_record(record.get("trigger")),
        preset_id=preset_id,
        is_enabled=is_enabled,
        created_at=_parse_timestamp(record.get("created_at")),
    )


def preset_to_record(preset: BrightnessPreset) -> dict[str, Any]:
    return {
        "id": preset.id,
        "name": preset.name,
        "display_brightness": dict(preset.display_brightness),
        "universal_brightness": preset.universal_brightness,
        "display_warmth": None if preset.display_warmth is None else dict(preset.display_warmth),
        "universal_warmth": preset.universal_warmth,
        "display_contrast": None if preset.display_contrast is None else dict(preset.display_contrast),
        "universal_contrast": preset.universal_contrast,
        "created_at": preset.created_at.isoformat(),
    }


def preset_from_record(record: Any) -> BrightnessPreset:
    if not isinstance(record, dict):
        raise MalformedRecord(f"preset is not an object: {record!r}")
    brightness_map = _value_map(record.get("display_brightness"), clamp_brightness) or {}
    universal_brightness = _optional_value(record.get("universal_brightness"), clamp_brightness)
    return BrightnessPreset(
        id=_required_text(record, "id"),
        name=str(record.get("name", "")),
        display_brightness=brightness_map,
        universal_brightness=universal_brightness,
        display_warmth=_value_map(record.get("display_warmth"), clamp_unit),
        universal_warmth=_optional_value(record.get("universal_warmth"), clamp_unit),
        display_contrast=_value_map(record.get("display_contrast"), clamp_unit),
        universal_contrast=_optional_value(record.get("universal_contrast"), clamp_unit),
        created_at=_parse_timestamp(record.get("created_at")),
    )


# -- store -----------------------------------------------------------------


class ConfigStore:
    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path = config_path or get_default_config_path()

    def load(self) -> AppConfig:
        if not self.config_path.exists():
            config = AppConfig()
            self.save(config)
            return config

        try:
            raw_data = json.loads(self.config_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Unreadable config at %s; starting from defaults", self.config_path)
            config = AppConfig()
            self.save(config)
            return config

        if not isinstance(raw_data, dict):
            logger.warning("Config at %s is not an object; starting from defaults", self.config_path)
            return AppConfig()
        return self._parse(raw_data)

    def save(self, config: AppConfig) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": config.version,
            "tick_seconds": int(config.tick_seconds),
            "timezone_name": config.timezone_name,
            "location": {
                "auto_detect": bool(config.location.auto_detect),
                "latitude": config.location.latitude,
                "longitude": config.location.longitude,
            },
            "color_temperature": {
                "enabled": bool(config.color_temperature.enabled),
                "day_kelvin": int(config.color_temperature.day_kelvin),
                "night_kelvin": int(config.color_temperature.night_kelvin),
                "transition_minutes": int(config.color_temperature.transition_minutes),
            },
            "schedules_enabled": bool(config.schedules_enabled),
            "schedules": [schedule_to_record(schedule) for schedule in config.schedules],
            "presets": [preset_to_record(preset) for preset in config.presets],
            "display_levels": {
                key: {
                    "brightness": clamp_brightness(levels.brightness),
                    "warmth": clamp_unit(levels.warmth),
                    "contrast": clamp_unit(levels.contrast),
                }
                for key, levels in config.display_levels.items()
            },
        }
        self.config_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _parse(self, data: dict[str, Any]) -> AppConfig:
        config = AppConfig()
        config.version = _loose_int(data.get("version"), 1)
        config.tick_seconds = max(1, _loose_int(data.get("tick_seconds"), 30))
        timezone_name = data.get("timezone_name")
        config.timezone_name = str(timezone_name) if timezone_name else None
        config.schedules_enabled = _loose_bool(data.get("schedules_enabled"), True)

        location_data = data.get("location", {})
        if isinstance(location_data, dict):
            location = LocationSettings()
            location.auto_detect = _loose_bool(location_data.get("auto_detect"), True)
            latitude = self._optional_float(location_data.get("latitude"))
            longitude = self._optional_float(location_data.get("longitude"))
            if (
                latitude is not None
                and longitude is not None
                and -90.0 <= latitude <= 90.0
                and -180.0 <= longitude <= 180.0
            ):
                location.latitude = latitude
                location.longitude = longitude
            config.location = location

        color_data = data.get("color_temperature", {})
        if isinstance(color_data, dict):
            color = ColorTemperatureSettings()
            color.enabled = _loose_bool(color_data.get("enabled"), False)
            color.day_kelvin = int(clamp_kelvin(_loose_int(color_data.get("day_kelvin"), 6500)))
            color.night_kelvin = int(clamp_kelvin(_loose_int(color_data.get("night_kelvin"), 2700)))
            color.transition_minutes = max(
                0, min(240, _loose_int(color_data.get("transition_minutes"), 40))
            )
            config.color_temperature = color

        config.schedules = self._parse_records(data.get("schedules"), schedule_from_record, "schedule")
        if isinstance(data.get("presets"), list):
            config.presets = self._parse_records(data.get("presets"), preset_from_record, "preset")
        else:
            config.presets = default_presets()

        levels_data = data.get("display_levels", {})
        if isinstance(levels_data, dict):
            for key, raw_levels in levels_data.items():
                if not isinstance(raw_levels, dict):
                    continue
                config.display_levels[str(key)] = DisplayLevels(
                    brightness=clamp_brightness(_loose_float(raw_levels.get("brightness"), 1.0)),
                    warmth=clamp_unit(_loose_float(raw_levels.get("warmth"), 0.0)),
                    contrast=clamp_unit(_loose_float(raw_levels.get("contrast"), 0.5)),
                )

        return config

    @staticmethod
    def _parse_records(raw_records: Any, parse, label: str) -> list:
        if not isinstance(raw_records, list):
            return []
        parsed = []
        for index, raw_record in enumerate(raw_records):
            try:
                parsed.append(parse(raw_record))
            except (MalformedRecord, TypeError, ValueError) as error:
                logger.warning("Dropping malformed %s record #%d: %s", label, index, error)
        return parsed

    @staticmethod
    def _optional_float(value: Any) -> float | None:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


def _strict_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedRecord(f"expected an integer, got {value!r}")
    return value


def _loose_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _loose_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    if isinstance(value, int):
        return value != 0
    return default


def _loose_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _required_text(record: dict[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedRecord(f"missing {key}")
    return value


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        return datetime.now().astimezone()
    if not isinstance(value, str):
        raise MalformedRecord(f"created_at is not a string: {value!r}")
    return datetime.fromisoformat(value)


def _optional_value(value: Any, clamp) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedRecord(f"expected a number, got {value!r}")
    return clamp(value)


def _value_map(value: Any, clamp) -> dict[str, float] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise MalformedRecord(f"expected an object, got {value!r}")
    parsed: dict[str, float] = {}
    for key, item in value.items():
        if item is None:
            raise MalformedRecord(f"missing value for display {key!r}")
        parsed[str(key)] = _optional_value(item, clamp)
    return parsed
