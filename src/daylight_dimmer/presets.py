from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from .display_state import DisplayTable
from .models import BrightnessPreset, DisplayLevels, clamp_brightness, clamp_unit, default_presets

if TYPE_CHECKING:
    from .color_temperature import ColorTemperatureManager
    from .transitions import DisplayFader


logger = logging.getLogger(__name__)

MAX_PRESETS = 10


class PresetManager:
    def __init__(
        self,
        presets: list[BrightnessPreset] | None = None,
        on_change: Callable[[list[BrightnessPreset]], None] | None = None,
    ) -> None:
        self.presets: list[BrightnessPreset] = list(presets) if presets is not None else default_presets()
        self.on_change = on_change

    def get_preset(self, preset_id: str) -> BrightnessPreset | None:
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        return None

    def apply_preset(
        self,
        preset_id: str,
        display_table: DisplayTable,
        color_temperature: ColorTemperatureManager | None = None,
        fader: DisplayFader | None = None,
    ) -> bool:
        """Write a preset into the display table. False when the id is unknown.

        With a fader the displays ease to the preset values; without one, or
        when the fader declines, they are written at once in one batch.
        """
        preset = self.get_preset(preset_id)
        if preset is None:
            logger.warning("No such preset: %s", preset_id)
            return False

        if fader is None or not fader.fade_to(preset_targets(preset, display_table)):
            self._write_preset(preset, display_table)

        if color_temperature is not None and preset.specifies_warmth():
            color_temperature.notify_preset_applied()
        logger.info("Applied preset %r", preset.name)
        return True

    @staticmethod
    def _write_preset(preset: BrightnessPreset, display_table: DisplayTable) -> None:
        with display_table.batch():
            if preset.universal_brightness is not None:
                display_table.set_all_brightness(preset.universal_brightness)
            else:
                display_table.apply_brightness_values(preset.display_brightness)

            if preset.universal_warmth is not None:
                display_table.set_all_warmth(preset.universal_warmth)
            elif preset.display_warmth is not None:
                display_table.apply_warmth_values(preset.display_warmth)

            if preset.universal_contrast is not None:
                display_table.set_all_contrast(preset.universal_contrast)
            elif preset.display_contrast is not None:
                display_table.apply_contrast_values(preset.display_contrast)

    def save_current_as_preset(self, name: str, display_table: DisplayTable) -> BrightnessPreset | None:
        if len(self.presets) >= MAX_PRESETS:
            logger.warning("Preset limit of %d reached; %r not saved", MAX_PRESETS, name)
            return None
        preset = BrightnessPreset(
            name=name,
            display_brightness=display_table.brightness_snapshot(),
            display_warmth=display_table.warmth_snapshot(),
            display_contrast=display_table.contrast_snapshot(),
        )
        self.presets.append(preset)
        self._changed()
        return preset

    def update_preset_from_displays(self, preset_id: str, display_table: DisplayTable) -> bool:
        preset = self.get_preset(preset_id)
        if preset is None:
            return False
        preset.display_brightness = display_table.brightness_snapshot()
        preset.display_warmth = display_table.warmth_snapshot()
        preset.display_contrast = display_table.contrast_snapshot()
        preset.universal_brightness = None
        preset.universal_warmth = None
        preset.universal_contrast = None
        self._changed()
        return True

    def rename_preset(self, preset_id: str, name: str) -> bool:
        preset = self.get_preset(preset_id)
        if preset is None:
            return False
        preset.name = name
        self._changed()
        return True

    def delete_preset(self, preset_id: str) -> bool:
        remaining = [preset for preset in self.presets if preset.id != preset_id]
        if len(remaining) == len(self.presets):
            return False
        self.presets = remaining
        self._changed()
        return True

    def move_preset(self, source_index: int, destination_index: int) -> bool:
        count = len(self.presets)
        if not 0 <= source_index < count:
            return False
        destination_index = max(0, min(count - 1, destination_index))
        preset = self.presets.pop(source_index)
        self.presets.insert(destination_index, preset)
        self._changed()
        return True

    def restore_default_presets(self) -> None:
        self.presets = default_presets()
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(list(self.presets))


def preset_targets(preset: BrightnessPreset, display_table: DisplayTable) -> dict[str, DisplayLevels]:
    """Resolve the end values a preset gives each connected display."""
    targets: dict[str, DisplayLevels] = {}
    for display_id in display_table.display_ids():
        current = display_table.get(display_id)
        if current is None:
            continue
        targets[display_id] = DisplayLevels(
            brightness=clamp_brightness(
                _pick(preset.universal_brightness, preset.display_brightness, display_id, current.brightness)
            ),
            warmth=clamp_unit(_pick(preset.universal_warmth, preset.display_warmth, display_id, current.warmth)),
            contrast=clamp_unit(
                _pick(preset.universal_contrast, preset.display_contrast, display_id, current.contrast)
            ),
        )
    return targets


def _pick(universal: float | None, per_display: dict[str, float] | None, display_id: str, current: float) -> float:
    if universal is not None:
        return universal
    if per_display is not None and display_id in per_display:
        return per_display[display_id]
    return current
