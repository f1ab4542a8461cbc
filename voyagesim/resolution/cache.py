"""
Session cache for address and route resolution.

Memoizes geocoding results per exact address text and directions results
per ordered coordinate pair, so toggling between legs never re-fetches.

Unlike a general-purpose cache there is no TTL and no eviction: responses
for a fixed address or coordinate pair do not change during a session, and
the cache is only emptied by ``clear()`` on a full session restart.

The cache is an explicit object handed to the resolver, so each test can
use a fresh one.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from voyagesim.routes.geometry import Coordinate
from voyagesim.routes.route import Route

logger = logging.getLogger(__name__)

RouteKey = Tuple[Coordinate, Coordinate]


class AddressAlreadyResolvedError(Exception):
    """Raised when a resolved address is resolved a second time."""
    pass


@dataclass
class ResolvedAddress:
    """
    Geocoding state of one free-text address.

    Created unresolved, resolved exactly once, immutable afterwards.
    """
    raw_text: str
    coordinate: Optional[Coordinate] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.coordinate is not None

    def mark_resolved(self, coordinate: Coordinate) -> None:
        """
        Record the geocoded coordinate.

        Raises:
            AddressAlreadyResolvedError: If the address already has a coordinate
        """
        if self.coordinate is not None:
            raise AddressAlreadyResolvedError(
                f"Address '{self.raw_text}' already resolved to {self.coordinate}"
            )
        self.coordinate = (float(coordinate[0]), float(coordinate[1]))
        self.resolved_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedRoute:
    """A directions result stored under its (from, to) key."""
    key: RouteKey
    route: Route
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def route_key(start: Coordinate, end: Coordinate) -> RouteKey:
    """Ordered cache key; (a, b) and (b, a) are different routes."""
    return ((float(start[0]), float(start[1])), (float(end[0]), float(end[1])))


class ResolutionCache:
    """
    Read-through, write-once-per-key cache for one session.

    Usage:
        cache = ResolutionCache()
        entry = cache.address_entry("1 Main St, London")
        entry.mark_resolved((-0.1, 51.5))
        cache.get_address("1 Main St, London")  # -> (-0.1, 51.5)
    """

    def __init__(self, name: str = "resolution"):
        self.name = name
        self._addresses: Dict[str, ResolvedAddress] = {}
        self._routes: Dict[RouteKey, CachedRoute] = {}

        self._address_hits = 0
        self._address_misses = 0
        self._route_hits = 0
        self._route_misses = 0

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def get_address(self, text: str) -> Optional[Coordinate]:
        """Resolved coordinate for ``text``, or None on a miss."""
        entry = self._addresses.get(text)
        if entry is None or not entry.is_resolved:
            self._address_misses += 1
            return None
        self._address_hits += 1
        return entry.coordinate

    def peek_address(self, text: str) -> Optional[ResolvedAddress]:
        """Entry for ``text`` without touching the hit/miss counters."""
        return self._addresses.get(text)

    def address_entry(self, text: str) -> ResolvedAddress:
        """Entry for ``text``, created unresolved when absent."""
        entry = self._addresses.get(text)
        if entry is None:
            entry = ResolvedAddress(raw_text=text)
            self._addresses[text] = entry
        return entry

    def store_address(self, text: str, coordinate: Coordinate) -> ResolvedAddress:
        """
        Record a geocoding result.

        If a racing lookup already resolved the key, the later result
        replaces the entry (last write wins); the earlier entry object is
        left untouched.
        """
        entry = self.address_entry(text)
        if entry.is_resolved:
            logger.debug(f"Cache '{self.name}': replacing resolved address '{text}'")
            entry = ResolvedAddress(raw_text=text)
            self._addresses[text] = entry
        entry.mark_resolved(coordinate)
        return entry

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def get_route(self, start: Coordinate, end: Coordinate) -> Optional[Route]:
        """Cached route for the ordered pair, or None on a miss."""
        cached = self._routes.get(route_key(start, end))
        if cached is None:
            self._route_misses += 1
            return None
        self._route_hits += 1
        return cached.route

    def peek_route(self, start: Coordinate, end: Coordinate) -> Optional[Route]:
        """Cached route without touching the hit/miss counters."""
        cached = self._routes.get(route_key(start, end))
        return cached.route if cached is not None else None

    def store_route(self, start: Coordinate, end: Coordinate, route: Route) -> CachedRoute:
        """Record a directions result; a later write for the same key wins."""
        key = route_key(start, end)
        if key in self._routes:
            logger.debug(f"Cache '{self.name}': replacing route {key}")
        cached = CachedRoute(key=key, route=route)
        self._routes[key] = cached
        return cached

    # ------------------------------------------------------------------

    def clear(self) -> int:
        """
        Drop every entry (full session restart).

        Returns:
            Number of entries cleared
        """
        count = len(self._addresses) + len(self._routes)
        self._addresses.clear()
        self._routes.clear()
        logger.info(f"Cache '{self.name}' cleared: {count} entries removed")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Cache sizes and hit/miss counts."""
        return {
            'name': self.name,
            'addresses': len(self._addresses),
            'routes': len(self._routes),
            'address_hits': self._address_hits,
            'address_misses': self._address_misses,
            'route_hits': self._route_hits,
            'route_misses': self._route_misses,
        }

    def __len__(self) -> int:
        return len(self._addresses) + len(self._routes)
