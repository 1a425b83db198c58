from __future__ import annotations

import logging
from dataclasses import dataclass

import geocoder

from .models import GeoCoordinate, LocationSettings


logger = logging.getLogger(__name__)


@dataclass
class LocationContext:
    coordinate: GeoCoordinate
    region: str


def detect_location_context_from_ip() -> LocationContext | None:
    """Ask geocoder for this machine's public-IP location. ``None`` on any failure."""
    try:
        result = geocoder.ip("me")
    except Exception:
        logger.warning("IP location lookup failed", exc_info=True)
        return None
    if not result:
        return None

    try:
        latitude, longitude = (float(part) for part in result.latlng)
    except (AttributeError, TypeError, ValueError):
        return None
    coordinate = GeoCoordinate(latitude, longitude)
    if not coordinate.is_valid():
        logger.warning("IP location lookup returned out-of-range %s", result.latlng)
        return None

    raw = _raw_answer(result)
    city = _lookup_field(result, raw, "city")
    state = _lookup_field(result, raw, "state", raw_key="region")
    country = _lookup_field(result, raw, "country")
    return LocationContext(
        coordinate=coordinate,
        region=", ".join(dict.fromkeys(part for part in (city, state, country) if part))
        or "Location unavailable",
    )


def _raw_answer(result) -> dict:
    payload = getattr(result, "json", None)
    raw = payload.get("raw") if isinstance(payload, dict) else None
    return raw if isinstance(raw, dict) else {}


def _lookup_field(result, raw: dict, name: str, raw_key: str | None = None) -> str | None:
    # geocoder providers disagree on where they put things; the raw answer is the fallback.
    for value in (getattr(result, name, None), raw.get(raw_key or name)):
        text = str(value or "").strip()
        if text:
            return text
    return None


class LocationProvider:
    """Last known coordinate, either detected from the public IP or entered by hand.

    ``coordinate`` is ``None`` until one of the two sources supplies a value;
    solar-dependent features check for that and stand down.
    """

    def __init__(self, settings: LocationSettings) -> None:
        self.settings = settings

    @property
    def coordinate(self) -> GeoCoordinate | None:
        if self.settings.latitude is None or self.settings.longitude is None:
            return None
        return GeoCoordinate(self.settings.latitude, self.settings.longitude)

    @property
    def has_location(self) -> bool:
        return self.coordinate is not None

    def set_manual_location(self, latitude: float, longitude: float) -> GeoCoordinate:
        coordinate = GeoCoordinate.validated(latitude, longitude)
        self.settings.latitude = coordinate.latitude
        self.settings.longitude = coordinate.longitude
        self.settings.auto_detect = False
        logger.info("Manual location set to %.4f, %.4f", coordinate.latitude, coordinate.longitude)
        return coordinate

    def clear_location(self) -> None:
        self.settings.latitude = None
        self.settings.longitude = None

    def refresh_from_ip(self) -> GeoCoordinate | None:
        """Update the coordinate from an IP lookup; returns it only when it moved."""
        if not self.settings.auto_detect:
            return None

        context = detect_location_context_from_ip()
        if context is None:
            logger.info("Location unavailable; keeping %s", self.coordinate)
            return None

        current = self.coordinate
        detected = context.coordinate
        if (
            current is not None
            and abs(current.latitude - detected.latitude) < 0.0001
            and abs(current.longitude - detected.longitude) < 0.0001
        ):
            return None

        self.settings.latitude = detected.latitude
        self.settings.longitude = detected.longitude
        logger.info("Location detected: %s (%.4f, %.4f)", context.region, detected.latitude, detected.longitude)
        return detected

