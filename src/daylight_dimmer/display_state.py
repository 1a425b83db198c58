from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterator

from .models import (
    NEUTRAL_CONTRAST,
    NEUTRAL_KELVIN,
    WARMEST_KELVIN,
    DisplayLevels,
    clamp_brightness,
    clamp_unit,
)


logger = logging.getLogger(__name__)

GREEN_FLOOR = 0.82
BLUE_FLOOR = 0.56
# Stands in for an infinite exponent at contrast 1.0 (threshold at 0.5).
MAX_CONTRAST_EXPONENT = 1_000.0

ChangeListener = Callable[[str, DisplayLevels], None]


def channel_multipliers(warmth: float) -> tuple[float, float, float]:
    w = clamp_unit(warmth)
    return (
        1.0,
        1.0 - (1.0 - GREEN_FLOOR) * w,
        1.0 - (1.0 - BLUE_FLOOR) * w,
    )


def contrast_exponent(contrast: float) -> float:
    c = clamp_unit(contrast)
    if c >= 1.0:
        return MAX_CONTRAST_EXPONENT
    return min(MAX_CONTRAST_EXPONENT, c / (1.0 - c))


def apply_contrast(t: float, contrast: float) -> float:
    """S-curve around 0.5: identity at contrast 0.5, steeper above, flatter below.

    Endpoints and the midpoint are fixed and ``f(x) + f(1 - x) == 1``.
    Contrast 0 collapses everything except the endpoints onto 0.5.
    """
    t = clamp_unit(t)
    if contrast == NEUTRAL_CONTRAST or t in (0.0, 1.0):
        return t
    exponent = contrast_exponent(contrast)
    if t < 0.5:
        return 0.5 * (2.0 * t) ** exponent
    return 1.0 - 0.5 * (2.0 * (1.0 - t)) ** exponent


def build_gamma_table(
    brightness: float, channel_multiplier: float, contrast: float, size: int = 256
) -> list[float]:
    scale = clamp_brightness(brightness) * channel_multiplier
    last = max(1, size - 1)
    return [apply_contrast(index / last, contrast) * scale for index in range(size)]


def kelvin_for_warmth(warmth: float) -> float:
    return NEUTRAL_KELVIN - clamp_unit(warmth) * (NEUTRAL_KELVIN - WARMEST_KELVIN)


def warmth_for_kelvin(kelvin: float) -> float:
    return clamp_unit((NEUTRAL_KELVIN - kelvin) / (NEUTRAL_KELVIN - WARMEST_KELVIN))


class DisplayTable:
    """Live brightness/warmth/contrast for every connected display.

    Entries are created and removed only by connect/disconnect; writes to an
    unknown display id are ignored since a display may vanish between a read
    and a write.
    """

    def __init__(self) -> None:
        self._displays: dict[str, DisplayLevels] = {}
        self._change_listeners: list[ChangeListener] = []
        self._manual_warmth_listeners: list[Callable[[], None]] = []
        self._batch_depth = 0
        self._pending: set[str] = set()

    # -- membership -------------------------------------------------------

    def connect(
        self,
        display_id: str,
        brightness: float = 1.0,
        warmth: float = 0.0,
        contrast: float = NEUTRAL_CONTRAST,
    ) -> None:
        self._displays[display_id] = DisplayLevels(
            brightness=clamp_brightness(brightness),
            warmth=clamp_unit(warmth),
            contrast=clamp_unit(contrast),
        )
        self._changed(display_id)

    def disconnect(self, display_id: str) -> None:
        self._displays.pop(display_id, None)
        self._pending.discard(display_id)

    def display_ids(self) -> list[str]:
        return list(self._displays)

    def get(self, display_id: str) -> DisplayLevels | None:
        levels = self._displays.get(display_id)
        if levels is None:
            return None
        return replace(levels)

    def __contains__(self, display_id: object) -> bool:
        return display_id in self._displays

    def __len__(self) -> int:
        return len(self._displays)

    # -- listeners --------------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def add_manual_warmth_listener(self, listener: Callable[[], None]) -> None:
        self._manual_warmth_listeners.append(listener)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Hold change notifications until the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                pending = [key for key in self._displays if key in self._pending]
                self._pending.clear()
                for display_id in pending:
                    self._notify(display_id)

    # -- single display setters -------------------------------------------

    def set_brightness(self, display_id: str, value: float) -> None:
        levels = self._displays.get(display_id)
        if levels is None:
            return
        clamped = clamp_brightness(value)
        if levels.brightness == clamped:
            return
        levels.brightness = clamped
        self._changed(display_id)

    def set_warmth(self, display_id: str, value: float, automatic: bool = False) -> None:
        levels = self._displays.get(display_id)
        if levels is None:
            return
        clamped = clamp_unit(value)
        # An unchanged value must not count as a manual override.
        if levels.warmth == clamped:
            return
        levels.warmth = clamped
        if not automatic:
            for listener in list(self._manual_warmth_listeners):
                listener()
        self._changed(display_id)

    def set_contrast(self, display_id: str, value: float) -> None:
        levels = self._displays.get(display_id)
        if levels is None:
            return
        clamped = clamp_unit(value)
        if levels.contrast == clamped:
            return
        levels.contrast = clamped
        self._changed(display_id)

    # -- bulk operations --------------------------------------------------

    def set_all_brightness(self, value: float) -> None:
        with self.batch():
            for display_id in self.display_ids():
                self.set_brightness(display_id, value)

    def set_all_warmth(self, value: float, automatic: bool = False) -> None:
        with self.batch():
            for display_id in self.display_ids():
                self.set_warmth(display_id, value, automatic=automatic)

    def set_all_contrast(self, value: float) -> None:
        with self.batch():
            for display_id in self.display_ids():
                self.set_contrast(display_id, value)

    def apply_brightness_values(self, values: dict[str, float]) -> None:
        with self.batch():
            for display_id, value in values.items():
                self.set_brightness(display_id, value)

    def apply_warmth_values(self, values: dict[str, float], automatic: bool = False) -> None:
        with self.batch():
            for display_id, value in values.items():
                self.set_warmth(display_id, value, automatic=automatic)

    def apply_contrast_values(self, values: dict[str, float]) -> None:
        with self.batch():
            for display_id, value in values.items():
                self.set_contrast(display_id, value)

    def brightness_snapshot(self) -> dict[str, float]:
        return {key: levels.brightness for key, levels in self._displays.items()}

    def warmth_snapshot(self) -> dict[str, float]:
        return {key: levels.warmth for key, levels in self._displays.items()}

    def contrast_snapshot(self) -> dict[str, float]:
        return {key: levels.contrast for key, levels in self._displays.items()}

    # -- internals --------------------------------------------------------

    def _changed(self, display_id: str) -> None:
        if self._batch_depth > 0:
            self._pending.add(display_id)
            return
        self._notify(display_id)

    def _notify(self, display_id: str) -> None:
        levels = self._displays.get(display_id)
        if levels is None:
            return
        for listener in list(self._change_listeners):
            try:
                listener(display_id, replace(levels))
            except Exception:
                logger.exception("Display change listener failed for %s", display_id)
