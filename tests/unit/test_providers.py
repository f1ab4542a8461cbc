"""
Unit tests for the geocoding and directions clients.

HTTP is replaced with an in-memory session; nothing touches the network.
"""

import asyncio

import pytest
import requests

from voyagesim.config import Settings
from voyagesim.resolution.providers import (
    MapboxDirections,
    MapboxGeocoder,
    OfflineDirections,
    OfflineGeocoder,
    ProviderError,
    build_providers,
)
from voyagesim.resolution.resilience import CircuitBreaker, CircuitOpenError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    """Answers GETs from a queue of responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


GEOCODE_OK = {"features": [{"center": [-0.1276, 51.5072], "place_name": "London", "relevance": 0.9}]}
DIRECTIONS_OK = {
    "code": "Ok",
    "routes": [{"geometry": {"type": "LineString", "coordinates": [[0.0, 0.0], [0.5, 0.1], [1.0, 0.0]]},
                "distance": 1200.0, "duration": 300.0}],
}


# ---------------------------------------------------------------------------
# §1 – Geocoding
# ---------------------------------------------------------------------------
class TestMapboxGeocoder:

    def _geocoder(self, session, **kwargs):
        return MapboxGeocoder("tok", "https://geo.example/places/", session=session, **kwargs)

    def test_first_feature_center(self):
        session = FakeSession(FakeResponse(GEOCODE_OK))
        coord = asyncio.run(self._geocoder(session).geocode("10 Downing Street"))
        assert coord == (-0.1276, 51.5072)

    def test_request_shape(self):
        session = FakeSession(FakeResponse(GEOCODE_OK))
        asyncio.run(self._geocoder(session, request_timeout_s=4.0).geocode("10 Downing Street"))

        url, params, timeout = session.requests[0]
        assert url == "https://geo.example/places/10%20Downing%20Street.json"
        assert params == {"limit": 1, "access_token": "tok"}
        assert timeout == 4.0

    def test_no_features(self):
        session = FakeSession(FakeResponse({"features": []}))
        assert asyncio.run(self._geocoder(session).geocode("nowhere")) is None

    def test_blank_text_skips_request(self):
        session = FakeSession()
        assert asyncio.run(self._geocoder(session).geocode("   ")) is None
        assert session.requests == []

    def test_http_error_propagates(self):
        session = FakeSession(FakeResponse({}, status_code=401))
        with pytest.raises(requests.HTTPError):
            asyncio.run(self._geocoder(session, max_attempts=3).geocode("London"))
        # Status errors are not retried
        assert len(session.requests) == 1

    def test_malformed_center_rejected(self):
        session = FakeSession(FakeResponse({"features": [{"center": [1.0]}]}))
        with pytest.raises(ValueError):
            asyncio.run(self._geocoder(session).geocode("London"))

    def test_retries_connection_errors(self):
        session = FakeSession(requests.ConnectionError("reset"), FakeResponse(GEOCODE_OK))
        coord = asyncio.run(self._geocoder(session, max_attempts=2).geocode("London"))
        assert coord == (-0.1276, 51.5072)
        assert len(session.requests) == 2

    def test_open_breaker_short_circuits(self):
        breaker = CircuitBreaker(name="geo", failure_threshold=1)
        breaker.record_failure(ConnectionError("down"))
        session = FakeSession()
        with pytest.raises(CircuitOpenError):
            asyncio.run(self._geocoder(session, breaker=breaker).geocode("London"))
        assert session.requests == []


# ---------------------------------------------------------------------------
# §2 – Directions
# ---------------------------------------------------------------------------
class TestMapboxDirections:

    def _directions(self, session):
        return MapboxDirections("tok", "https://dir.example/driving", session=session)

    def test_geometry_returned(self):
        session = FakeSession(FakeResponse(DIRECTIONS_OK))
        coords = asyncio.run(self._directions(session).directions((0.0, 0.0), (1.0, 0.0)))
        assert coords == [(0.0, 0.0), (0.5, 0.1), (1.0, 0.0)]

    def test_request_shape(self):
        session = FakeSession(FakeResponse(DIRECTIONS_OK))
        asyncio.run(self._directions(session).directions((0.0, 0.0), (1.0, 0.0)))

        url, params, _ = session.requests[0]
        assert url == "https://dir.example/driving/0.000000,0.000000;1.000000,0.000000"
        assert params["geometries"] == "geojson"
        assert params["overview"] == "full"

    def test_no_route(self):
        session = FakeSession(FakeResponse({"code": "NoRoute", "routes": []}))
        assert asyncio.run(self._directions(session).directions((0.0, 0.0), (1.0, 0.0))) is None

    def test_malformed_geometry(self):
        payload = {"code": "Ok", "routes": [{"geometry": {"coordinates": [[0.0, 0.0]]}}]}
        session = FakeSession(FakeResponse(payload))
        with pytest.raises(ProviderError):
            asyncio.run(self._directions(session).directions((0.0, 0.0), (1.0, 0.0)))


# ---------------------------------------------------------------------------
# §3 – Offline providers and factory
# ---------------------------------------------------------------------------
class TestOfflineProviders:

    def test_offline_geocoder_table(self):
        geocoder = OfflineGeocoder({"London": (-0.1, 51.5)})
        assert asyncio.run(geocoder.geocode("London")) == (-0.1, 51.5)
        assert asyncio.run(geocoder.geocode("Paris")) is None

    def test_offline_directions_never_route(self):
        assert asyncio.run(OfflineDirections().directions((0.0, 0.0), (1.0, 1.0))) is None

    def test_build_offline(self, settings):
        geocoder, directions = build_providers(settings)
        assert isinstance(geocoder, OfflineGeocoder)
        assert isinstance(directions, OfflineDirections)

    def test_build_online(self):
        online = Settings(mapbox_access_token="tok", offline_mode=False)
        geocoder, directions = build_providers(online)
        assert isinstance(geocoder, MapboxGeocoder)
        assert isinstance(directions, MapboxDirections)
        assert directions.breaker.name == "mapbox_directions"

    def test_request_timeout_shares_deadline(self):
        online = Settings(
            mapbox_access_token="tok",
            offline_mode=False,
            resolution_timeout_s=9.0,
            resolution_max_attempts=3,
        )
        geocoder, directions = build_providers(online)
        assert geocoder.request_timeout_s == pytest.approx(3.0)
        assert directions.request_timeout_s == pytest.approx(3.0)
