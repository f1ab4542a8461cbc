"""Address and route resolution with a session cache."""

from .cache import AddressAlreadyResolvedError, CachedRoute, ResolutionCache, ResolvedAddress
from .handles import ResolutionHandle
from .providers import (
    DirectionsProvider,
    Geocoder,
    MapboxDirections,
    MapboxGeocoder,
    OfflineDirections,
    OfflineGeocoder,
    build_providers,
)
from .resilience import CircuitBreaker, CircuitOpenError
from .resolver import RouteResolver

__all__ = [
    "AddressAlreadyResolvedError",
    "CachedRoute",
    "ResolutionCache",
    "ResolvedAddress",
    "ResolutionHandle",
    "DirectionsProvider",
    "Geocoder",
    "MapboxDirections",
    "MapboxGeocoder",
    "OfflineDirections",
    "OfflineGeocoder",
    "build_providers",
    "CircuitBreaker",
    "CircuitOpenError",
    "RouteResolver",
]
