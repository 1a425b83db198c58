from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from daylight_dimmer.location import LocationProvider, detect_location_context_from_ip
from daylight_dimmer.models import GeoCoordinate, LocationSettings


def ip_result(latlng, city="Boston", state="Massachusetts", country="US", timezone="America/New_York"):
    return SimpleNamespace(
        latlng=latlng,
        city=city,
        state=state,
        country=country,
        timezone=timezone,
        json={"raw": {}},
    )


def test_detect_from_ip():
    with patch("daylight_dimmer.location.geocoder.ip", return_value=ip_result([42.36, -71.06])):
        context = detect_location_context_from_ip()

    assert context.coordinate == GeoCoordinate(42.36, -71.06)
    assert context.region == "Boston, Massachusetts, US"


def test_detect_falls_back_to_raw_payload():
    result = ip_result([48.85, 2.35], city=None, state=None, country=None, timezone=None)
    result.json = {"raw": {"city": "Paris", "region": "Ile-de-France", "country": "FR"}}
    with patch("daylight_dimmer.location.geocoder.ip", return_value=result):
        context = detect_location_context_from_ip()

    assert context.region == "Paris, Ile-de-France, FR"


@pytest.mark.parametrize("latlng", [None, [], [95.0, 10.0], ["north", "east"]])
def test_detect_rejects_unusable_answers(latlng):
    with patch("daylight_dimmer.location.geocoder.ip", return_value=ip_result(latlng)):
        assert detect_location_context_from_ip() is None


def test_detect_survives_network_errors(caplog):
    with patch("daylight_dimmer.location.geocoder.ip", side_effect=OSError("offline")):
        assert detect_location_context_from_ip() is None
    assert "IP location lookup failed" in caplog.text


class TestLocationProvider:
    def test_starts_without_location(self):
        provider = LocationProvider(LocationSettings())
        assert provider.coordinate is None
        assert not provider.has_location

    def test_manual_location(self):
        settings = LocationSettings()
        provider = LocationProvider(settings)

        assert provider.set_manual_location(51.5, -0.12) == GeoCoordinate(51.5, -0.12)
        assert settings.auto_detect is False
        assert provider.coordinate == GeoCoordinate(51.5, -0.12)

    @pytest.mark.parametrize("latitude, longitude", [(91.0, 0.0), (0.0, -181.0)])
    def test_manual_location_out_of_range(self, latitude, longitude):
        provider = LocationProvider(LocationSettings())
        with pytest.raises(ValueError):
            provider.set_manual_location(latitude, longitude)
        assert provider.coordinate is None

    def test_refresh_from_ip(self):
        provider = LocationProvider(LocationSettings())
        with patch("daylight_dimmer.location.geocoder.ip", return_value=ip_result([42.36, -71.06])):
            assert provider.refresh_from_ip() == GeoCoordinate(42.36, -71.06)
            # Same answer again is not a move.
            assert provider.refresh_from_ip() is None

    def test_failed_refresh_keeps_last_known(self):
        provider = LocationProvider(LocationSettings(latitude=42.36, longitude=-71.06))
        with patch("daylight_dimmer.location.geocoder.ip", side_effect=OSError("offline")):
            assert provider.refresh_from_ip() is None
        assert provider.coordinate == GeoCoordinate(42.36, -71.06)

    def test_manual_mode_skips_lookup(self):
        provider = LocationProvider(LocationSettings(auto_detect=False))
        with patch("daylight_dimmer.location.geocoder.ip") as lookup:
            assert provider.refresh_from_ip() is None
        lookup.assert_not_called()

    def test_clear_location(self, located_provider):
        located_provider.clear_location()
        assert not located_provider.has_location
