"""
External lookup collaborators.

Geocoding turns a free-text address into a coordinate; directions turn a
coordinate pair into a road polyline. Both are consumed through small async
protocols so the resolver never depends on a particular service:

- ``MapboxGeocoder`` / ``MapboxDirections``: HTTP clients for the Mapbox
  APIs, run off the event loop with ``asyncio.to_thread`` and guarded by a
  circuit breaker plus tenacity retries on transport errors
- ``OfflineGeocoder`` / ``OfflineDirections``: no network; a geocoder can be
  seeded with a fixed lookup table, directions always report not-found so
  the resolver falls back to corridor synthesis
"""
import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote

import requests
from pydantic import BaseModel, Field

from voyagesim.config import Settings
from voyagesim.resolution.resilience import CircuitBreaker, with_retry_async
from voyagesim.routes.geometry import Coordinate

logger = logging.getLogger(__name__)

# Transport-level failures worth another attempt; HTTP status errors are not
RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout)


class ProviderError(Exception):
    """A provider answered with something unusable."""
    pass


class Geocoder(Protocol):
    async def geocode(self, text: str) -> Optional[Coordinate]:
        """Coordinate for ``text``, or None when nothing matches."""
        ...


class DirectionsProvider(Protocol):
    async def directions(self, start: Coordinate, end: Coordinate) -> Optional[List[Coordinate]]:
        """Road polyline from ``start`` to ``end``, or None when no route exists."""
        ...


# =============================================================================
# Response schemas
# =============================================================================

class GeocodingFeature(BaseModel):
    """One candidate match."""
    center: List[float] = Field(..., min_length=2, max_length=2)
    place_name: str = ""
    relevance: float = 0.0


class GeocodingResponse(BaseModel):
    features: List[GeocodingFeature] = Field(default_factory=list)


class LineStringGeometry(BaseModel):
    type: str = "LineString"
    coordinates: List[List[float]] = Field(default_factory=list)


class DirectionsRoute(BaseModel):
    geometry: LineStringGeometry
    distance: float = 0.0  # metres
    duration: float = 0.0  # seconds


class DirectionsResponse(BaseModel):
    code: str = "Ok"
    routes: List[DirectionsRoute] = Field(default_factory=list)


# =============================================================================
# Offline providers
# =============================================================================

class OfflineGeocoder:
    """Geocoder backed by a fixed table; unknown addresses are not found."""

    def __init__(self, table: Optional[Dict[str, Coordinate]] = None):
        self.table = dict(table or {})

    async def geocode(self, text: str) -> Optional[Coordinate]:
        coordinate = self.table.get(text)
        if coordinate is None:
            logger.debug(f"Offline geocoder has no entry for '{text}'")
        return coordinate


class OfflineDirections:
    """Directions provider that never finds a route."""

    async def directions(self, start: Coordinate, end: Coordinate) -> Optional[List[Coordinate]]:
        return None


# =============================================================================
# Mapbox clients
# =============================================================================

class _MapboxClient:
    """Shared HTTP plumbing for the Mapbox clients."""

    def __init__(
        self,
        access_token: str,
        base_url: str,
        name: str,
        session: Optional[requests.Session] = None,
        request_timeout_s: float = 10.0,
        max_attempts: int = 3,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.request_timeout_s = request_timeout_s
        self.breaker = breaker or CircuitBreaker(name=name)
        self._get_json = with_retry_async(
            max_attempts=max_attempts,
            exceptions=RETRYABLE_ERRORS,
        )(self._get_json_once)

    async def _get_json_once(self, url: str, params: dict) -> dict:
        return await asyncio.to_thread(self._get_blocking, url, params)

    def _get_blocking(self, url: str, params: dict) -> dict:
        response = self.session.get(
            url,
            params={**params, "access_token": self.access_token},
            timeout=self.request_timeout_s,
        )
        response.raise_for_status()
        return response.json()

    async def fetch(self, url: str, params: dict) -> dict:
        """GET ``url`` through the circuit breaker and retry policy."""
        return await self.breaker.call(self._get_json, url, params)


class MapboxGeocoder(_MapboxClient):
    """Forward geocoding via the Mapbox places endpoint."""

    def __init__(self, access_token: str, base_url: str, **kwargs):
        super().__init__(access_token, base_url, name="mapbox_geocoding", **kwargs)

    async def geocode(self, text: str) -> Optional[Coordinate]:
        query = text.strip()
        if not query:
            return None

        url = f"{self.base_url}/{quote(query)}.json"
        payload = await self.fetch(url, {"limit": 1})
        response = GeocodingResponse.model_validate(payload)
        if not response.features:
            logger.info(f"No geocoding match for '{query}'")
            return None

        lon, lat = response.features[0].center
        return (lon, lat)


class MapboxDirections(_MapboxClient):
    """Driving directions via the Mapbox directions endpoint."""

    def __init__(self, access_token: str, base_url: str, **kwargs):
        super().__init__(access_token, base_url, name="mapbox_directions", **kwargs)

    async def directions(self, start: Coordinate, end: Coordinate) -> Optional[List[Coordinate]]:
        url = f"{self.base_url}/{_format_pair(start)};{_format_pair(end)}"
        payload = await self.fetch(url, {"geometries": "geojson", "overview": "full"})
        response = DirectionsResponse.model_validate(payload)
        if response.code != "Ok" or not response.routes:
            logger.info(f"No directions from {start} to {end} (code={response.code})")
            return None

        coords = response.routes[0].geometry.coordinates
        if len(coords) < 2 or any(len(c) < 2 for c in coords):
            raise ProviderError(f"Malformed directions geometry with {len(coords)} points")
        return [(c[0], c[1]) for c in coords]


def _format_pair(coord: Sequence[float]) -> str:
    return f"{coord[0]:.6f},{coord[1]:.6f}"


def build_providers(settings: Settings):
    """
    Geocoder and directions provider for the configured mode.

    Returns:
        (geocoder, directions) tuple
    """
    if settings.offline_mode or not settings.mapbox_access_token:
        logger.info("Using offline resolution providers")
        return OfflineGeocoder(), OfflineDirections()

    # Each attempt gets a share of the overall deadline so transport timeouts
    # reach the retry policy before the resolver gives up
    common = dict(
        request_timeout_s=settings.resolution_timeout_s / settings.resolution_max_attempts,
        max_attempts=settings.resolution_max_attempts,
    )
    logger.info("Using Mapbox resolution providers")
    return (
        MapboxGeocoder(settings.mapbox_access_token, settings.geocoding_url, **common),
        MapboxDirections(settings.mapbox_access_token, settings.directions_url, **common),
    )
