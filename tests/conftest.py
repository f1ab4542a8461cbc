"""
Shared pytest fixtures for VOYAGESIM tests.

Offline mode is forced before any voyagesim import so the settings
singleton never tries to reach Mapbox. Async code is driven with
``asyncio.run`` inside ordinary test functions; the fake providers create
their asyncio primitives lazily so they bind to the loop of the test that
uses them.
"""

import asyncio
import os
from datetime import datetime, timezone

import pytest

# ---------------------------------------------------------------------------
# Section 1: Environment setup (before ANY voyagesim imports)
# ---------------------------------------------------------------------------
os.environ.setdefault("VOYAGESIM_OFFLINE", "true")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from voyagesim.config import Settings  # noqa: E402
from voyagesim.metrics import PerformanceMetrics  # noqa: E402
from voyagesim.resolution.cache import ResolutionCache  # noqa: E402
from voyagesim.resolution.resolver import RouteResolver  # noqa: E402
from voyagesim.routes.route import RouteEndpoints  # noqa: E402
from voyagesim.voyage.progress import FixedClock  # noqa: E402


# ---------------------------------------------------------------------------
# Section 2: Fake collaborators
# ---------------------------------------------------------------------------


class FakeGeocoder:
    """Geocoder answering from a table, optionally held behind a gate."""

    def __init__(self, table=None, gated=False, fail=False):
        self.table = dict(table or {})
        self.gated = gated
        self.fail = fail
        self.calls = []
        self._gate = None

    def _gate_event(self):
        if self._gate is None:
            self._gate = asyncio.Event()
        return self._gate

    def release(self):
        self._gate_event().set()

    async def geocode(self, text):
        self.calls.append(text)
        if self.gated:
            await self._gate_event().wait()
        if self.fail:
            raise ConnectionError("geocoding service unavailable")
        return self.table.get(text)


class FakeDirections:
    """
    Directions provider returning a three-point road per request.

    The middle vertex is the midpoint of the pair unless ``routes`` has an
    explicit polyline for the (start, end) key.
    """

    def __init__(self, routes=None, gated=False, fail=False, not_found=False):
        self.routes = dict(routes or {})
        self.gated = gated
        self.fail = fail
        self.not_found = not_found
        self.calls = []
        self._gate = None

    def _gate_event(self):
        if self._gate is None:
            self._gate = asyncio.Event()
        return self._gate

    def release(self):
        self._gate_event().set()

    async def directions(self, start, end):
        self.calls.append((start, end))
        if self.gated:
            await self._gate_event().wait()
        if self.fail:
            raise ConnectionError("directions service unavailable")
        if self.not_found:
            return None
        if (start, end) in self.routes:
            return self.routes[(start, end)]
        mid = ((start[0] + end[0]) / 2, (start[1] + end[1]) / 2 + 0.01)
        return [start, mid, end]


class RecordingSurface:
    """Map surface that records every call in order."""

    def __init__(self):
        self.calls = []

    def apply_camera(self, command):
        self.calls.append(("camera", command))

    def apply_layers(self, layers, markers):
        self.calls.append(("layers", layers, markers))

    def apply_terrain(self, terrain):
        self.calls.append(("terrain", terrain))

    def kinds(self):
        return [call[0] for call in self.calls]

    def last(self, kind):
        for call in reversed(self.calls):
            if call[0] == kind:
                return call
        return None

    def clear(self):
        self.calls.clear()


# ---------------------------------------------------------------------------
# Section 3: Core fixtures
# ---------------------------------------------------------------------------

PICKUP = (120.10, 36.30)
ORIGIN = (120.32, 36.0649)
DESTINATION = (0.581, 51.4816)
DELIVERY = (-0.1276, 51.5072)


@pytest.fixture
def settings():
    """Isolated offline settings with a short resolution timeout."""
    return Settings(
        mapbox_access_token=None,
        offline_mode=True,
        resolution_timeout_s=1.0,
        resolution_max_attempts=1,
        leg_zoom_threshold=8.0,
        leg_proximity_km=50.0,
        leg_animation_s=15.0,
        playback_duration_s=60.0,
        progress_fallback_pct=50.0,
        corridor_margin_deg=3.0,
    )


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 1, 6, tzinfo=timezone.utc))


@pytest.fixture
def cache():
    return ResolutionCache(name="test")


@pytest.fixture
def metrics_collector():
    return PerformanceMetrics()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def directions():
    return FakeDirections()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def resolver(geocoder, directions, cache, settings, metrics_collector):
    return RouteResolver(geocoder, directions, cache=cache, settings=settings, metrics=metrics_collector)


@pytest.fixture
def endpoints():
    """Endpoints whose pickup and delivery addresses have geocoded."""
    return RouteEndpoints(
        pickup=PICKUP,
        origin=ORIGIN,
        destination=DESTINATION,
        delivery=DELIVERY,
        pickup_resolved=True,
        delivery_resolved=True,
    )


# ---------------------------------------------------------------------------
# Section 4: Tracking data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def voyage_data():
    """Tracking document for a Qingdao -> London Gateway sailing."""
    return {
        "id": 1,
        "transport_tracks": [{
            "pol_un_location_code": "CNQDG",
            "pod_un_location_code": "GBLGP",
            "start_datetime": "2025-01-01T00:00:00Z",
            "end_datetime": "2025-02-10T00:00:00Z",
            "vessel": {"vessel_name": "EVER TEST"},
            "portcalls": [{"un_location_code": "CNQDG"}, {"un_location_code": "GBLGP"}],
            "positions": [
                {"longitude": 122.0, "latitude": 33.0, "position_datetime": "2025-01-03T00:00:00Z", "tag": "historic"},
                {"longitude": 120.32, "latitude": 36.06, "position_datetime": "2025-01-01T00:00:00Z", "tag": "historic"},
                {"longitude": 116.0, "latitude": 22.0, "position_datetime": "2025-01-06T00:00:00Z", "tag": "historic"},
                {"longitude": 116.0, "latitude": 22.0, "position_datetime": "2025-01-07T00:00:00Z", "tag": "historic"},
                {"longitude": 106.0, "latitude": 13.0, "position_datetime": "2025-01-09T00:00:00Z", "tag": "latest"},
                {"longitude": 82.0, "latitude": 8.0, "position_datetime": "2025-01-16T00:00:00Z", "tag": "predicted"},
                {"longitude": 97.0, "latitude": 6.0, "position_datetime": "2025-01-12T00:00:00Z", "tag": "predicted"},
                {"longitude": 55.0, "latitude": 23.0, "position_datetime": "2025-01-24T00:00:00Z", "tag": "predicted"},
                {"longitude": 25.0, "latitude": 35.0, "position_datetime": "2025-02-01T00:00:00Z", "tag": "predicted"},
                {"longitude": 2.0, "latitude": 50.5, "position_datetime": "2025-02-09T00:00:00Z", "tag": "predicted"},
                {"longitude": None, "latitude": 10.0, "position_datetime": "2025-01-10T00:00:00Z", "tag": "historic"},
                {"longitude": 90.0, "latitude": 5.0, "position_datetime": "2025-01-10T00:00:00Z", "tag": "bogus"},
            ],
        }],
    }


@pytest.fixture
def address_text():
    """Address export with delivery first, then pickup."""
    return (
        "Delivery Address\n"
        "AddressLine1: \"10 Downing Street\",\n"
        "AddressLine2: null,\n"
        "AddressCity: \"London\",\n"
        "AddressPostCode: \"SW1A 2AA\",\n"
        "AddressCountryName: \"United Kingdom\"\n"
        "Pickup Address\n"
        "AddressLine1: \"88 Dock Road\",\n"
        "AddressCity: \"Qingdao\",\n"
        "AddressState: \"Shandong\",\n"
        "AddressCountryName: \"China\"\n"
    )
