"""Automatic day/night color temperature.

The manager is ticked from outside (``update(now)``), derives a state from
today's sunrise and sunset, turns that into a Kelvin target and writes the
matching warmth to every connected display.

A manual warmth change, or a preset that carries warmth, takes the manager
out of the loop: ``is_active`` drops to False and stays there until the
setting is switched off and on again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

from .display_state import DisplayTable, warmth_for_kelvin
from .location import LocationProvider
from .models import (
    ColorTemperatureSettings,
    ColorTemperatureState,
    Day,
    Night,
    SunriseTransition,
    SunsetTransition,
)
from .solar import solar_events_for
from .timeutil import localize

if TYPE_CHECKING:
    from .transitions import DisplayFader


logger = logging.getLogger(__name__)


def determine_state(
    now: datetime,
    sunrise: datetime,
    sunset: datetime,
    half_transition: timedelta,
) -> ColorTemperatureState:
    sunrise_start = sunrise - half_transition
    sunrise_end = sunrise + half_transition
    sunset_start = sunset - half_transition
    sunset_end = sunset + half_transition

    if sunrise_start <= now <= sunrise_end:
        return SunriseTransition(progress=_progress(now, sunrise_start, sunrise_end))
    if sunset_start <= now <= sunset_end:
        return SunsetTransition(progress=_progress(now, sunset_start, sunset_end))
    if sunrise_end < now < sunset_start:
        return Day()
    return Night()


def _progress(now: datetime, start: datetime, end: datetime) -> float:
    total = (end - start).total_seconds()
    # A zero-length window is a single instant, reached means complete.
    if total <= 0:
        return 1.0
    elapsed = (now - start).total_seconds()
    return max(0.0, min(1.0, elapsed / total))


def target_kelvin(state: ColorTemperatureState, day_kelvin: float, night_kelvin: float) -> float:
    if isinstance(state, Day):
        return float(day_kelvin)
    if isinstance(state, Night):
        return float(night_kelvin)
    if isinstance(state, SunriseTransition):
        return night_kelvin + (day_kelvin - night_kelvin) * state.progress
    if isinstance(state, SunsetTransition):
        return day_kelvin + (night_kelvin - day_kelvin) * state.progress
    raise TypeError(f"unknown color temperature state: {state!r}")


class ColorTemperatureManager:
    def __init__(
        self,
        display_table: DisplayTable,
        location_provider: LocationProvider,
        settings: ColorTemperatureSettings,
        timezone: tzinfo,
        fader: DisplayFader | None = None,
    ) -> None:
        self.display_table = display_table
        self.fader = fader
        self.location_provider = location_provider
        self.settings = settings
        self.timezone = timezone

        self.is_active = False
        self.state: ColorTemperatureState = Night()
        self.current_kelvin = float(settings.night_kelvin)

        self._enabled = False
        self._manual_override = False
        self._saved_warmth: dict[str, float] | None = None
        self._fade_next_update = False

        display_table.add_manual_warmth_listener(self.notify_manual_warmth_change)
        if settings.enabled:
            self.set_enabled(True)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def manual_override(self) -> bool:
        return self._manual_override

    def set_enabled(self, enabled: bool) -> None:
        """Apply the automation setting; only a change of value has an effect."""
        enabled = bool(enabled)
        self.settings.enabled = enabled
        if enabled == self._enabled:
            return
        self._enabled = enabled

        if enabled:
            self._saved_warmth = self.display_table.warmth_snapshot()
            self._manual_override = False
            self.is_active = True
            self._fade_next_update = True
            logger.info("Automatic color temperature enabled")
            return

        self.is_active = False
        self._manual_override = False
        self._fade_next_update = False
        if self._saved_warmth is not None:
            # Give back what the user had before automation took over.
            if not self._fade_warmth(self._saved_warmth):
                self.display_table.apply_warmth_values(self._saved_warmth, automatic=True)
            self._saved_warmth = None
        logger.info("Automatic color temperature disabled")

    def update(self, now: datetime | None = None) -> ColorTemperatureState:
        if not self._enabled:
            return self.state

        current_time = localize(now, self.timezone)
        events = solar_events_for(self.location_provider.coordinate, current_time, self.timezone)
        if events is None:
            logger.debug("No location; holding color temperature state %s", self.state)
            return self.state
        if events.sunrise is None or events.sunset is None:
            logger.debug("No sunrise/sunset today; holding color temperature state %s", self.state)
            return self.state

        self.state = determine_state(
            current_time, events.sunrise, events.sunset, self.settings.half_transition
        )
        self.current_kelvin = target_kelvin(
            self.state, self.settings.day_kelvin, self.settings.night_kelvin
        )

        if not self.is_active:
            return self.state

        warmth = warmth_for_kelvin(self.current_kelvin)
        if self._fade_next_update:
            # Ease into the first target after switching on.
            self._fade_next_update = False
            if self._fade_warmth(dict.fromkeys(self.display_table.display_ids(), warmth)):
                return self.state
        self.display_table.set_all_warmth(warmth, automatic=True)
        return self.state

    def _fade_warmth(self, values: dict[str, float]) -> bool:
        return self.fader is not None and self.fader.fade_warmth(values)

    def notify_manual_warmth_change(self) -> None:
        if not self._enabled or self._manual_override:
            return
        self._manual_override = True
        self.is_active = False
        logger.info("Manual warmth change; automatic color temperature paused")

    def notify_preset_applied(self) -> None:
        self.notify_manual_warmth_change()

    def next_transition_description(self, now: datetime | None = None) -> str | None:
        """Short label for the next boundary, e.g. ``"Sunset 19:10 · 2700K"``."""
        location = self.location_provider.coordinate
        current_time = localize(now, self.timezone)
        events = solar_events_for(location, current_time, self.timezone)
        if events is None or events.sunrise is None or events.sunset is None:
            return None

        day_kelvin = self.settings.day_kelvin
        night_kelvin = self.settings.night_kelvin
        if current_time < events.sunrise:
            return f"Sunrise {events.sunrise:%H:%M} · {day_kelvin}K"
        if current_time < events.sunset:
            return f"Sunset {events.sunset:%H:%M} · {night_kelvin}K"

        tomorrow = solar_events_for(location, current_time + timedelta(days=1), self.timezone)
        if tomorrow is None or tomorrow.sunrise is None:
            return None
        return f"Sunrise {tomorrow.sunrise:%H:%M} · {day_kelvin}K"
