from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta

from PySide6.QtCore import QCoreApplication, QObject, QTimer

from .brightness_service import BrightnessService
from .color_temperature import ColorTemperatureManager
from .config_store import ConfigStore
from .display_state import DisplayTable
from .location import LocationProvider
from .log import configure_logging
from .models import BrightnessPreset, DimmingSchedule, DisplayLevels
from .presets import PresetManager
from .sun_schedule import ScheduleManager
from .timeutil import localize, resolve_timezone
from .transitions import DisplayFader


logger = logging.getLogger(__name__)

MONITOR_REFRESH_MS = 300_000
LOCATION_RETRY_INTERVAL = timedelta(minutes=15)


class AutomationController(QObject):
    """Owns the display table and drives both automation engines from one timer."""

    def __init__(
        self,
        config_store: ConfigStore | None = None,
        output: BrightnessService | None = None,
        now: datetime | None = None,
    ) -> None:
        super().__init__()
        self.config_store = config_store or ConfigStore()
        self.config = self.config_store.load()
        self.timezone = resolve_timezone(self.config.timezone_name)
        self._dirty = False
        self._last_location_attempt: datetime | None = None

        self.display_table = DisplayTable()
        self.output = output or BrightnessService()
        # Listener first so reconnecting displays get their saved values pushed.
        self.display_table.add_change_listener(self._handle_display_changed)
        self.output.sync_display_table(self.display_table, self.config.display_levels)
        self.fader = DisplayFader(self.display_table, parent=self)

        self.location_provider = LocationProvider(self.config.location)
        self.preset_manager = PresetManager(self.config.presets, on_change=self._handle_presets_changed)
        self.color_temperature = ColorTemperatureManager(
            self.display_table,
            self.location_provider,
            self.config.color_temperature,
            self.timezone,
            fader=self.fader,
        )
        self.schedule_manager = ScheduleManager(
            self.location_provider,
            timezone=self.timezone,
            on_schedule_triggered=self.apply_preset,
            on_change=self._handle_schedules_changed,
            schedules=self.config.schedules,
            now=now,
        )

        self.tick_timer = QTimer(self)
        self.tick_timer.setInterval(max(1, self.config.tick_seconds) * 1_000)
        self.tick_timer.timeout.connect(self._handle_tick_timeout)

        self.monitor_timer = QTimer(self)
        self.monitor_timer.setInterval(MONITOR_REFRESH_MS)
        self.monitor_timer.timeout.connect(self.refresh_monitors)

    def start(self) -> None:
        self.tick()
        self.tick_timer.start()
        self.monitor_timer.start()

    def stop(self) -> None:
        self.tick_timer.stop()
        self.monitor_timer.stop()
        self.fader.finish()
        self._save_if_dirty()

    def _handle_tick_timeout(self) -> None:
        self.tick()

    def tick(self, now: datetime | None = None) -> None:
        current_time = localize(now, self.timezone)
        self._resolve_location_if_needed(current_time)

        self.color_temperature.update(current_time)
        if self.config.schedules_enabled:
            self.schedule_manager.check_schedules(current_time)

        self._save_if_dirty()

    def refresh_monitors(self) -> None:
        self.output.sync_display_table(self.display_table, self.config.display_levels)

    def apply_preset(self, preset_id: str) -> bool:
        return self.preset_manager.apply_preset(
            preset_id, self.display_table, self.color_temperature, fader=self.fader
        )

    # -- settings ---------------------------------------------------------

    def set_color_temperature_enabled(self, enabled: bool, now: datetime | None = None) -> None:
        self.color_temperature.set_enabled(enabled)
        self._dirty = True
        if enabled:
            self.color_temperature.update(localize(now, self.timezone))
        self._save_if_dirty()

    def set_schedules_enabled(self, enabled: bool, now: datetime | None = None) -> None:
        if enabled and not self.config.schedules_enabled:
            # Triggers that passed while schedules were off are not replayed.
            self.schedule_manager.last_check_time = localize(now, self.timezone)
        self.config.schedules_enabled = bool(enabled)
        self._dirty = True
        self._save_if_dirty()

    def set_manual_location(self, latitude: float, longitude: float) -> None:
        self.location_provider.set_manual_location(latitude, longitude)
        self._dirty = True
        self._save_if_dirty()

    # -- internals --------------------------------------------------------

    def _needs_location(self) -> bool:
        return (
            self.color_temperature.enabled
            or self.schedule_manager.has_location_dependent_schedules()
        )

    def _resolve_location_if_needed(self, now: datetime) -> None:
        if self.location_provider.has_location or not self._needs_location():
            return
        if not self.config.location.auto_detect:
            return
        if (
            self._last_location_attempt is not None
            and now - self._last_location_attempt < LOCATION_RETRY_INTERVAL
        ):
            return
        self._last_location_attempt = now
        if self.location_provider.refresh_from_ip() is not None:
            self._dirty = True

    def _handle_display_changed(self, display_id: str, levels: DisplayLevels) -> None:
        self.config.display_levels[display_id] = levels
        self._dirty = True
        self.output.push(display_id, levels)

    def _handle_schedules_changed(self, schedules: list[DimmingSchedule]) -> None:
        self.config.schedules = schedules
        self._dirty = True
        self._save_if_dirty()

    def _handle_presets_changed(self, presets: list[BrightnessPreset]) -> None:
        self.config.presets = presets
        self._dirty = True
        self._save_if_dirty()

    def _save_if_dirty(self) -> None:
        if not self._dirty:
            return
        try:
            self.config_store.save(self.config)
        except OSError:
            logger.exception("Could not save config to %s", self.config_store.config_path)
            return
        self._dirty = False


def run() -> None:
    app = QCoreApplication(sys.argv)
    app.setApplicationName("Daylight Dimmer")

    config_store = ConfigStore()
    configure_logging(config_store.config_path.parent)

    controller = AutomationController(config_store=config_store)
    app.aboutToQuit.connect(controller.stop)
    controller.start()
    logger.info("Daylight Dimmer running; config at %s", config_store.config_path)

    raise SystemExit(app.exec())
