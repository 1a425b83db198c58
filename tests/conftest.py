from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from PySide6.QtCore import QCoreApplication

from daylight_dimmer.display_state import DisplayTable
from daylight_dimmer.location import LocationProvider
from daylight_dimmer.models import LocationSettings


NEW_YORK = (40.7128, -74.0060)


@pytest.fixture(scope="session")
def qt_app():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def new_york_tz():
    return ZoneInfo("America/New_York")


@pytest.fixture
def located_provider():
    latitude, longitude = NEW_YORK
    return LocationProvider(
        LocationSettings(auto_detect=False, latitude=latitude, longitude=longitude)
    )


@pytest.fixture
def unlocated_provider():
    return LocationProvider(LocationSettings(auto_detect=False))


@pytest.fixture
def display_table():
    table = DisplayTable()
    table.connect("left", brightness=0.8, warmth=0.0, contrast=0.5)
    table.connect("right", brightness=0.6, warmth=0.2, contrast=0.5)
    return table


@pytest.fixture
def make_time(new_york_tz):
    def _make(hour=0, minute=0, second=0, year=2026, month=1, day=1):
        return datetime(year, month, day, hour, minute, second, tzinfo=new_york_tz)

    return _make
