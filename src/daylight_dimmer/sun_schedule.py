"""Time-of-day schedules that apply presets.

Each enabled schedule resolves to one trigger instant per calendar day: a
fixed clock time, or sunrise/sunset plus an offset. ``check_schedules(now)``
fires every schedule whose instant lies in ``(last_check_time, now]`` and has
not fired yet on ``now``'s day. Because the window starts at the previous
check, a trigger that passed while the process was asleep still fires once
on the next check.

Runtime bookkeeping (``last_check_time`` and the per-schedule fired day) is
kept beside the schedules, never on them, so it is never persisted.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable

from .location import LocationProvider
from .models import (
    DimmingSchedule,
    FixedTime,
    ScheduleTrigger,
    Sunrise,
    Sunset,
    describe_trigger,
    requires_location,
)
from .solar import solar_events_for
from .timeutil import localize, resolve_timezone


logger = logging.getLogger(__name__)

TriggerCallback = Callable[[str], None]
ChangeCallback = Callable[[list[DimmingSchedule]], None]


class ScheduleManager:
    def __init__(
        self,
        location_provider: LocationProvider,
        timezone: tzinfo | None = None,
        on_schedule_triggered: TriggerCallback | None = None,
        on_change: ChangeCallback | None = None,
        schedules: list[DimmingSchedule] | None = None,
        now: datetime | None = None,
    ) -> None:
        self.location_provider = location_provider
        self.timezone = timezone or resolve_timezone()
        self.on_schedule_triggered = on_schedule_triggered
        self.on_change = on_change
        self.schedules: list[DimmingSchedule] = list(schedules or [])

        # Seeded at construction: triggers earlier today are not replayed.
        self.last_check_time = localize(now, self.timezone)
        self._fired_days: dict[str, date] = {}

    # -- evaluation -------------------------------------------------------

    def check_schedules(self, now: datetime | None = None) -> list[str]:
        current_time = localize(now, self.timezone)
        today = current_time.date()
        previous_check = self.last_check_time
        if previous_check > current_time:
            # Clock went backwards; start a fresh window rather than replaying.
            previous_check = current_time

        fired: list[str] = []
        for schedule in self.schedules:
            if not schedule.is_enabled:
                continue
            if self._fired_days.get(schedule.id) == today:
                continue

            trigger_time = self.resolve_trigger_date(schedule.trigger, current_time)
            if trigger_time is None:
                continue
            if not previous_check < trigger_time <= current_time:
                continue

            self._fired_days[schedule.id] = today
            fired.append(schedule.preset_id)
            logger.info(
                "Schedule %r fired at %s (%s, due %s)",
                schedule.name,
                current_time.isoformat(timespec="seconds"),
                describe_trigger(schedule.trigger),
                trigger_time.isoformat(timespec="seconds"),
            )
            if self.on_schedule_triggered is not None:
                try:
                    self.on_schedule_triggered(schedule.preset_id)
                except Exception:
                    logger.exception("Schedule callback failed for %r", schedule.name)

        self._fired_days = {key: day for key, day in self._fired_days.items() if day == today}
        self.last_check_time = current_time
        return fired

    def resolve_trigger_date(self, trigger: ScheduleTrigger, on: datetime | date) -> datetime | None:
        if isinstance(on, datetime):
            target_date = localize(on, self.timezone).date()
        else:
            target_date = on

        if isinstance(trigger, FixedTime):
            return datetime.combine(
                target_date, time(hour=trigger.hour, minute=trigger.minute), self.timezone
            )

        if isinstance(trigger, (Sunrise, Sunset)):
            events = solar_events_for(self.location_provider.coordinate, target_date, self.timezone)
            if events is None:
                return None
            anchor = events.sunrise if isinstance(trigger, Sunrise) else events.sunset
            if anchor is None:
                return None
            return anchor + timedelta(minutes=trigger.offset_minutes)

        raise TypeError(f"unknown schedule trigger: {trigger!r}")

    def has_fired_today(self, schedule_id: str, now: datetime | None = None) -> bool:
        return self._fired_days.get(schedule_id) == localize(now, self.timezone).date()

    def has_location_dependent_schedules(self) -> bool:
        return any(
            schedule.is_enabled and requires_location(schedule.trigger)
            for schedule in self.schedules
        )

    # -- CRUD -------------------------------------------------------------

    def get_schedule(self, schedule_id: str) -> DimmingSchedule | None:
        for schedule in self.schedules:
            if schedule.id == schedule_id:
                return schedule
        return None

    def add_schedule(self, schedule: DimmingSchedule) -> None:
        self.schedules.append(schedule)
        self._changed()

    def update_schedule(self, schedule: DimmingSchedule) -> bool:
        index = self._index_of(schedule.id)
        if index is None:
            return False
        self.schedules[index] = schedule
        # An edited schedule is a new trigger definition and may fire again today.
        self._fired_days.pop(schedule.id, None)
        self._changed()
        return True

    def delete_schedule(self, schedule_id: str) -> bool:
        index = self._index_of(schedule_id)
        if index is None:
            return False
        del self.schedules[index]
        self._fired_days.pop(schedule_id, None)
        self._changed()
        return True

    def toggle_schedule(self, schedule_id: str) -> bool:
        schedule = self.get_schedule(schedule_id)
        if schedule is None:
            return False
        schedule.is_enabled = not schedule.is_enabled
        if not schedule.is_enabled:
            self._fired_days.pop(schedule_id, None)
        self._changed()
        return True

    def move_schedule(self, source_index: int, destination_index: int) -> bool:
        count = len(self.schedules)
        if not 0 <= source_index < count:
            return False
        destination_index = max(0, min(count - 1, destination_index))
        if source_index == destination_index:
            return True
        schedule = self.schedules.pop(source_index)
        self.schedules.insert(destination_index, schedule)
        self._changed()
        return True

    def _index_of(self, schedule_id: str) -> int | None:
        for index, schedule in enumerate(self.schedules):
            if schedule.id == schedule_id:
                return index
        return None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(list(self.schedules))
