"""Sunrise and sunset for a location and calendar day.

Sun times come from astral. Both events are ``None`` when the sun stays above
or below the horizon for the whole day.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from astral import Observer, sun

from .models import GeoCoordinate, SolarEvents


def local_day_of(moment: date | datetime, timezone: tzinfo) -> date:
    if isinstance(moment, datetime):
        return (moment.astimezone(timezone) if moment.tzinfo else moment).date()
    return moment


def sunrise_sunset(
    latitude: float,
    longitude: float,
    day: date | datetime,
    timezone: tzinfo,
) -> SolarEvents:
    """Return the sunrise and sunset instants for ``day`` at a location.

    ``day`` may be a date or a datetime; for a datetime the calendar day it
    falls on in ``timezone`` is used. The returned instants are aware
    datetimes in ``timezone``.
    """
    local_day = local_day_of(day, timezone)
    observer = Observer(latitude=latitude, longitude=longitude)

    # sun.sun() would also need civil dawn and dusk, which do not exist on
    # white nights even though the sun still rises and sets.
    try:
        sunrise = sun.sunrise(observer, date=local_day, tzinfo=timezone)
        sunset = sun.sunset(observer, date=local_day, tzinfo=timezone)
    except ValueError:
        return SolarEvents(sunrise=None, sunset=None)
    return SolarEvents(sunrise=sunrise, sunset=sunset)


def solar_events_for(
    location: GeoCoordinate | None,
    moment: date | datetime,
    timezone: tzinfo,
) -> SolarEvents | None:
    if location is None:
        return None
    return sunrise_sunset(location.latitude, location.longitude, moment, timezone)
