from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Union


MINIMUM_BRIGHTNESS = 0.10
NEUTRAL_CONTRAST = 0.5
NEUTRAL_KELVIN = 6500.0
WARMEST_KELVIN = 1900.0


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def clamp_brightness(value: float) -> float:
    return max(MINIMUM_BRIGHTNESS, min(1.0, float(value)))


def clamp_kelvin(value: float) -> float:
    return max(WARMEST_KELVIN, min(NEUTRAL_KELVIN, float(value)))


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class GeoCoordinate:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    @classmethod
    def validated(cls, latitude: float, longitude: float) -> GeoCoordinate:
        coordinate = cls(float(latitude), float(longitude))
        if not coordinate.is_valid():
            raise ValueError(
                f"coordinate out of range: latitude={latitude}, longitude={longitude}"
            )
        return coordinate


@dataclass(frozen=True)
class SolarEvents:
    sunrise: datetime | None = None
    sunset: datetime | None = None

    @property
    def has_both(self) -> bool:
        return self.sunrise is not None and self.sunset is not None

    @property
    def day_length(self) -> timedelta | None:
        if self.sunrise is None or self.sunset is None:
            return None
        return self.sunset - self.sunrise


# Color temperature states. Progress runs 0 -> 1 in the direction of travel:
# night -> day for sunrise, day -> night for sunset.


@dataclass(frozen=True)
class Night:
    pass


@dataclass(frozen=True)
class Day:
    pass


@dataclass(frozen=True)
class SunriseTransition:
    progress: float


@dataclass(frozen=True)
class SunsetTransition:
    progress: float


ColorTemperatureState = Union[Night, Day, SunriseTransition, SunsetTransition]


@dataclass(frozen=True)
class FixedTime:
    hour: int
    minute: int


@dataclass(frozen=True)
class Sunrise:
    offset_minutes: int = 0


@dataclass(frozen=True)
class Sunset:
    offset_minutes: int = 0


ScheduleTrigger = Union[FixedTime, Sunrise, Sunset]


def requires_location(trigger: ScheduleTrigger) -> bool:
    if isinstance(trigger, FixedTime):
        return False
    if isinstance(trigger, (Sunrise, Sunset)):
        return True
    raise TypeError(f"unknown schedule trigger: {trigger!r}")


def describe_trigger(trigger: ScheduleTrigger) -> str:
    if isinstance(trigger, FixedTime):
        return f"{trigger.hour:02d}:{trigger.minute:02d}"
    if isinstance(trigger, Sunrise):
        label = "sunrise"
    elif isinstance(trigger, Sunset):
        label = "sunset"
    else:
        raise TypeError(f"unknown schedule trigger: {trigger!r}")

    offset = trigger.offset_minutes
    if offset == 0:
        return label.capitalize()
    if offset > 0:
        return f"{offset} min after {label}"
    return f"{abs(offset)} min before {label}"


@dataclass
class DimmingSchedule:
    name: str
    trigger: ScheduleTrigger
    preset_id: str
    is_enabled: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())


@dataclass
class BrightnessPreset:
    """Named bundle of display values.

    ``None`` means "leave the current value alone". A universal value, when
    present, takes precedence over the per-display mapping of the same kind.
    """

    name: str
    id: str = field(default_factory=new_id)
    display_brightness: dict[str, float] = field(default_factory=dict)
    universal_brightness: float | None = None
    display_warmth: dict[str, float] | None = None
    universal_warmth: float | None = None
    display_contrast: dict[str, float] | None = None
    universal_contrast: float | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def specifies_warmth(self) -> bool:
        return self.universal_warmth is not None or bool(self.display_warmth)


def default_presets() -> list[BrightnessPreset]:
    return [
        BrightnessPreset(
            name="Full", universal_brightness=1.0, universal_warmth=0.0, universal_contrast=0.5
        ),
        BrightnessPreset(
            name="Evening", universal_brightness=0.7, universal_warmth=0.4, universal_contrast=0.5
        ),
        BrightnessPreset(
            name="Night", universal_brightness=0.3, universal_warmth=0.8, universal_contrast=0.5
        ),
    ]


@dataclass
class ColorTemperatureSettings:
    enabled: bool = False
    day_kelvin: int = 6500
    night_kelvin: int = 2700
    transition_minutes: int = 40

    @property
    def half_transition(self) -> timedelta:
        return timedelta(minutes=max(0, self.transition_minutes) / 2.0)


@dataclass
class LocationSettings:
    auto_detect: bool = True
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class DisplayLevels:
    brightness: float = 1.0
    warmth: float = 0.0
    contrast: float = NEUTRAL_CONTRAST


@dataclass
class AppConfig:
    version: int = 1
    tick_seconds: int = 30
    timezone_name: str | None = None
    location: LocationSettings = field(default_factory=LocationSettings)
    color_temperature: ColorTemperatureSettings = field(default_factory=ColorTemperatureSettings)
    schedules_enabled: bool = True
    schedules: list[DimmingSchedule] = field(default_factory=list)
    presets: list[BrightnessPreset] = field(default_factory=default_presets)
    display_levels: dict[str, DisplayLevels] = field(default_factory=dict)
