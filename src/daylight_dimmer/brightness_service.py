from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import screen_brightness_control as sbc

from .display_state import DisplayTable, build_gamma_table, channel_multipliers
from .models import DisplayLevels, clamp_brightness


logger = logging.getLogger(__name__)

KNOWN_METHODS = ("wmi", "vcp", "light", "xrandr", "ddcutil", "sysfs")


@dataclass
class MonitorHandle:
    key: str
    name: str
    display_index: int
    method_name: str | None


@dataclass
class GammaRamp:
    red: list[float]
    green: list[float]
    blue: list[float]


def render_gamma(levels: DisplayLevels, size: int = 256) -> GammaRamp:
    red, green, blue = channel_multipliers(levels.warmth)
    return GammaRamp(
        red=build_gamma_table(levels.brightness, red, levels.contrast, size),
        green=build_gamma_table(levels.brightness, green, levels.contrast, size),
        blue=build_gamma_table(levels.brightness, blue, levels.contrast, size),
    )


def brightness_percent(value: float) -> int:
    return int(round(clamp_brightness(value) * 100))


class BrightnessService:
    """Pushes display values to monitors through screen_brightness_control.

    Only brightness travels over the hardware path; warmth and contrast are
    rendered into gamma ramps (``last_gamma``) for a software backend.
    """

    def __init__(self) -> None:
        self.monitors: list[MonitorHandle] = []
        self.last_gamma: dict[str, GammaRamp] = {}
        self._pushed_percent: dict[str, int] = {}

    def refresh_monitors(self) -> list[MonitorHandle]:
        try:
            raw_monitors = sbc.list_monitors_info(allow_duplicates=False)
        except Exception:
            logger.warning("Monitor enumeration failed", exc_info=True)
            raw_monitors = []

        key_counts: dict[str, int] = {}
        self.monitors = [
            _monitor_from_info(info, position, key_counts)
            for position, info in enumerate(raw_monitors)
        ]
        connected = {monitor.key for monitor in self.monitors}
        self.last_gamma = {
            key: ramp for key, ramp in self.last_gamma.items() if key in connected
        }
        self._pushed_percent = {
            key: percent for key, percent in self._pushed_percent.items() if key in connected
        }
        return list(self.monitors)

    def sync_display_table(
        self, table: DisplayTable, saved_levels: dict[str, DisplayLevels] | None = None
    ) -> None:
        """Make the table's entries match the monitors that are connected now."""
        saved_levels = saved_levels or {}
        monitors = self.refresh_monitors()
        active_keys = {monitor.key for monitor in monitors}

        for display_id in table.display_ids():
            if display_id not in active_keys:
                table.disconnect(display_id)
                logger.info("Display disconnected: %s", display_id)

        for monitor in monitors:
            if monitor.key in table:
                continue
            levels = saved_levels.get(monitor.key)
            if levels is None:
                current = self.get_brightness(monitor)
                levels = DisplayLevels(brightness=1.0 if current is None else current)
            table.connect(monitor.key, levels.brightness, levels.warmth, levels.contrast)
            logger.info("Display connected: %s (%s)", monitor.name, monitor.key)

    def monitor_for(self, display_id: str) -> MonitorHandle | None:
        for monitor in self.monitors:
            if monitor.key == display_id:
                return monitor
        return None

    def get_brightness(self, monitor: MonitorHandle) -> float | None:
        for call_kwargs in _call_variants(monitor):
            try:
                value = sbc.get_brightness(**call_kwargs)
                if isinstance(value, list):
                    value = value[0]
                return clamp_brightness(float(value) / 100.0)
            except Exception:
                continue
        return None

    def push(self, display_id: str, levels: DisplayLevels) -> bool:
        monitor = self.monitor_for(display_id)
        if monitor is None:
            return False

        self.last_gamma[display_id] = render_gamma(levels)
        target = brightness_percent(levels.brightness)
        # Warmth and contrast steps only change the gamma ramp.
        if self._pushed_percent.get(display_id) == target:
            return True
        for call_kwargs in _call_variants(monitor):
            try:
                sbc.set_brightness(target, **call_kwargs)
                self._pushed_percent[display_id] = target
                return True
            except Exception:
                continue
        logger.warning("Could not set brightness %d%% on %s", target, monitor.name)
        return False


def _method_label(method: Any) -> str | None:
    if method is None:
        return None
    if isinstance(method, str):
        return method
    return getattr(method, "__name__", str(method))


def _monitor_from_info(info: dict[str, Any], position: int, key_counts: dict[str, int]) -> MonitorHandle:
    index = info.get("index")
    if not isinstance(index, int):
        index = position
    method_name = _method_label(info.get("method"))
    name = str(info.get("name") or "").strip() or f"Display {position + 1}"
    serial = info.get("serial") or info.get("edid") or index

    # Identical monitors on the same bus would collide; number the repeats.
    key = "|".join([(method_name or "unknown").lower(), name, str(serial)])
    seen = key_counts.get(key, 0)
    key_counts[key] = seen + 1
    if seen:
        key = f"{key}|{seen}"
    return MonitorHandle(key=key, name=name, display_index=index, method_name=method_name)


def _call_variants(monitor: MonitorHandle) -> list[dict[str, Any]]:
    """Keyword sets to try in order: with the detected method, then without."""
    variants = []
    method = _sbc_method(monitor.method_name)
    if method is not None:
        variants.append({"display": monitor.display_index, "method": method})
    variants.append({"display": monitor.display_index})
    return variants


def _sbc_method(method_name: str | None) -> str | None:
    if not method_name:
        return None
    lowered = method_name.lower()
    return next((known for known in KNOWN_METHODS if known in lowered), None)
