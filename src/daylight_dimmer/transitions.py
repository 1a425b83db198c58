"""Short animated ramps of display values.

A fade moves displays from their current values to a target in ``FADE_STEPS``
writes spaced ``FADE_STEP_MS`` apart, about 300 ms in all. The steps are driven
by a QTimer, so they only advance while the Qt event loop runs; ``finish()``
jumps straight to the end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PySide6.QtCore import QObject, QTimer

from .display_state import DisplayTable
from .models import DisplayLevels, clamp_brightness, clamp_unit


logger = logging.getLogger(__name__)

FADE_STEPS = 20
FADE_STEP_MS = 15
CHANNEL_CLAMPS = {
    "brightness": clamp_brightness,
    "warmth": clamp_unit,
    "contrast": clamp_unit,
}


@dataclass(frozen=True)
class Ramp:
    display_id: str
    channel: str
    start: float
    end: float

    def value_at(self, progress: float) -> float:
        if progress >= 1.0:
            return self.end
        return self.start + (self.end - self.start) * progress


class DisplayFader(QObject):
    """Fades display values on a timer; one fade at a time.

    Starting a fade replaces the running one, which stops at the values it had
    reached. A manual warmth change cancels the running fade. Fade writes are
    automatic, so they never count as a manual warmth change themselves.
    """

    def __init__(
        self,
        display_table: DisplayTable,
        parent: QObject | None = None,
        steps: int = FADE_STEPS,
        step_ms: int = FADE_STEP_MS,
    ) -> None:
        super().__init__(parent)
        self.display_table = display_table
        self.steps = max(1, int(steps))
        self.enabled = True

        self._ramps: list[Ramp] = []
        self._step = 0

        self.timer = QTimer(self)
        self.timer.setInterval(step_ms)
        self.timer.timeout.connect(self.advance)

        display_table.add_manual_warmth_listener(self.cancel)

    @property
    def is_running(self) -> bool:
        return bool(self._ramps)

    def fade_to(self, targets: dict[str, DisplayLevels]) -> bool:
        """Fade each display to its target levels.

        Returns False when the caller should write the values itself: the fader
        is disabled or none of the displays is connected.
        """
        self.cancel()
        if not self.enabled:
            return False

        found = False
        ramps: list[Ramp] = []
        for display_id, target in targets.items():
            current = self.display_table.get(display_id)
            if current is None:
                continue
            found = True
            for channel, clamp in CHANNEL_CLAMPS.items():
                ramps.extend(
                    self._ramp(display_id, channel, getattr(current, channel), clamp(getattr(target, channel)))
                )
        if not found:
            return False
        self._start(ramps)
        return True

    def fade_warmth(self, values: dict[str, float]) -> bool:
        self.cancel()
        if not self.enabled:
            return False

        found = False
        ramps: list[Ramp] = []
        for display_id, value in values.items():
            current = self.display_table.get(display_id)
            if current is None:
                continue
            found = True
            ramps.extend(self._ramp(display_id, "warmth", current.warmth, clamp_unit(value)))
        if not found:
            return False
        self._start(ramps)
        return True

    def advance(self) -> None:
        if not self._ramps:
            self.timer.stop()
            return
        self._step += 1
        self._write(min(1.0, self._step / self.steps))
        if self._step >= self.steps:
            self._stop()

    def finish(self) -> None:
        if not self._ramps:
            return
        self._write(1.0)
        self._stop()

    def cancel(self) -> None:
        if self._ramps:
            logger.debug("Fade cancelled at step %d of %d", self._step, self.steps)
        self._stop()

    # -- internals --------------------------------------------------------

    @staticmethod
    def _ramp(display_id: str, channel: str, start: float, end: float) -> list[Ramp]:
        # Channels already at their target are left alone while fading.
        if start == end:
            return []
        return [Ramp(display_id, channel, start, end)]

    def _start(self, ramps: list[Ramp]) -> None:
        if not ramps:
            return
        self._ramps = ramps
        self._step = 0
        logger.debug("Fading %d values over %d steps", len(ramps), self.steps)
        self.timer.start()

    def _write(self, progress: float) -> None:
        table = self.display_table
        with table.batch():
            for ramp in self._ramps:
                value = ramp.value_at(progress)
                if ramp.channel == "brightness":
                    table.set_brightness(ramp.display_id, value)
                elif ramp.channel == "warmth":
                    table.set_warmth(ramp.display_id, value, automatic=True)
                else:
                    table.set_contrast(ramp.display_id, value)

    def _stop(self) -> None:
        self.timer.stop()
        self._ramps = []
        self._step = 0
