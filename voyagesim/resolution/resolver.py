"""
Address and route resolution.

Read-through layer over the session cache:

    resolve_address(text)       cache -> geocoder -> cache
    resolve_route(start, end)   cache -> directions -> cache
                                         \\-> corridor synthesis on failure

Every failure (timeout, HTTP error, open circuit, malformed payload, no
match) is absorbed here: it is logged, counted and answered with a fallback,
so a leg is always renderable. Concurrent misses for one key share a single
in-flight lookup; a waiter that gets cancelled leaves the shared lookup
running so its result is still cached.
"""
import asyncio
import logging
from typing import Dict, Optional, Union

from voyagesim.config import Settings, get_settings
from voyagesim.metrics import PerformanceMetrics, get_metrics
from voyagesim.resolution.cache import ResolutionCache, RouteKey, route_key
from voyagesim.resolution.handles import ResolutionHandle
from voyagesim.resolution.providers import DirectionsProvider, Geocoder
from voyagesim.routes.corridor import CorridorSynthesizer
from voyagesim.routes.geometry import Coordinate
from voyagesim.routes.route import Route, RouteKind, RouteSource

logger = logging.getLogger(__name__)

# A cached answer, or the in-flight lookup that will produce it
Pending = Union[None, Coordinate, Route, "asyncio.Future"]


class RouteResolver:
    """
    Resolves free-text addresses and last-mile routes for a session.

    Usage:
        resolver = RouteResolver(geocoder, directions, cache=ResolutionCache())
        pickup = await resolver.resolve_address("12 Dock Rd, Qingdao")
        route = await resolver.resolve_route(pickup, port)
    """

    def __init__(
        self,
        geocoder: Geocoder,
        directions: DirectionsProvider,
        cache: Optional[ResolutionCache] = None,
        settings: Optional[Settings] = None,
        synthesizer: Optional[CorridorSynthesizer] = None,
        metrics: Optional[PerformanceMetrics] = None,
    ):
        self.geocoder = geocoder
        self.directions = directions
        self.cache = cache if cache is not None else ResolutionCache()
        self.settings = settings or get_settings()
        self.synthesizer = synthesizer or CorridorSynthesizer(
            margin_deg=self.settings.corridor_margin_deg
        )
        self.metrics = metrics or get_metrics()

        self._address_inflight: Dict[str, "asyncio.Task[Optional[Coordinate]]"] = {}
        self._route_inflight: Dict[RouteKey, "asyncio.Task[Optional[Route]]"] = {}

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    async def resolve_address(self, text: str) -> Optional[Coordinate]:
        """
        Coordinate for an address, or None if it cannot be geocoded.

        Blank text resolves to None without a lookup.
        """
        return await self._settle(self._begin_address(text))

    def _begin_address(self, text: str) -> Pending:
        """Cached answer, or the shared in-flight lookup (started if needed)."""
        if not text or not text.strip():
            return None

        cached = self.cache.get_address(text)
        if cached is not None:
            self.metrics.increment("address_cache_hits")
            logger.debug(f"Address cache hit for '{text}'")
            return cached
        self.metrics.increment("address_cache_misses")

        task = self._address_inflight.get(text)
        if task is None:
            task = asyncio.ensure_future(self._fetch_address(text))
            self._address_inflight[text] = task
            task.add_done_callback(lambda _: self._address_inflight.pop(text, None))
        else:
            logger.debug(f"Joining in-flight geocoding for '{text}'")
        return task

    async def _fetch_address(self, text: str) -> Optional[Coordinate]:
        try:
            with self.metrics.timer("geocode"):
                coordinate = await asyncio.wait_for(
                    self.geocoder.geocode(text),
                    timeout=self.settings.resolution_timeout_s,
                )
        except asyncio.TimeoutError:
            self._record_failure(f"Geocoding timed out after {self.settings.resolution_timeout_s}s for '{text}'")
            return None
        except Exception as e:
            self._record_failure(f"Geocoding failed for '{text}': {e!r}")
            return None

        if coordinate is None:
            self._record_failure(f"No geocoding match for '{text}'")
            return None

        return self.cache.store_address(text, coordinate).coordinate

    def resolve_address_handle(self, text: str) -> ResolutionHandle[Optional[Coordinate]]:
        """
        ``resolve_address`` as a cancellable handle (needs a running loop).

        The lookup starts before this returns, so cancelling the handle
        straight away still leaves the result cached.
        """
        return ResolutionHandle.spawn(self._settle(self._begin_address(text)), label=f"address:{text}")

    def peek_address(self, text: str) -> Optional[Coordinate]:
        """Cached coordinate without a lookup."""
        entry = self.cache.peek_address(text)
        return entry.coordinate if entry is not None else None

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def resolve_route(
        self,
        start: Coordinate,
        end: Coordinate,
        kind: RouteKind = RouteKind.LAST_MILE,
    ) -> Route:
        """
        Drawable route from ``start`` to ``end``.

        Never fails: when directions are unavailable the route is synthesized
        through the corridor (or straight) and is not cached, so a later
        request can still obtain real directions.
        """
        return await self._settle_route(self._begin_route(start, end, kind), start, end, kind)

    def _begin_route(self, start: Coordinate, end: Coordinate, kind: RouteKind) -> Pending:
        """Cached route, or the shared in-flight lookup (started if needed)."""
        cached = self.cache.get_route(start, end)
        if cached is not None:
            self.metrics.increment("route_cache_hits")
            logger.debug(f"Route cache hit for {start} -> {end}")
            return cached
        self.metrics.increment("route_cache_misses")

        key = route_key(start, end)
        task = self._route_inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_route(start, end, kind))
            self._route_inflight[key] = task
            task.add_done_callback(lambda _: self._route_inflight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight directions for {start} -> {end}")
        return task

    async def _settle_route(
        self,
        pending: Pending,
        start: Coordinate,
        end: Coordinate,
        kind: RouteKind,
    ) -> Route:
        route = await self._settle(pending)
        if route is not None:
            return route

        self.metrics.increment("route_fallbacks")
        fallback = self.synthesizer.route(start, end, kind=kind)
        logger.warning(
            f"Using {fallback.source.value} fallback ({len(fallback.coordinates)} points) "
            f"for {start} -> {end}"
        )
        return fallback

    async def _fetch_route(self, start: Coordinate, end: Coordinate, kind: RouteKind) -> Optional[Route]:
        try:
            with self.metrics.timer("directions"):
                coords = await asyncio.wait_for(
                    self.directions.directions(start, end),
                    timeout=self.settings.resolution_timeout_s,
                )
        except asyncio.TimeoutError:
            self._record_failure(
                f"Directions timed out after {self.settings.resolution_timeout_s}s for {start} -> {end}"
            )
            return None
        except Exception as e:
            self._record_failure(f"Directions failed for {start} -> {end}: {e!r}")
            return None

        if not coords or len(coords) < 2:
            self._record_failure(f"No directions found for {start} -> {end}")
            return None

        route = Route.build(coords, kind, RouteSource.DIRECTIONS)
        self.cache.store_route(start, end, route)
        logger.info(f"Resolved {len(route.coordinates)}-point route for {start} -> {end}")
        return route

    def resolve_route_handle(
        self,
        start: Coordinate,
        end: Coordinate,
        kind: RouteKind = RouteKind.LAST_MILE,
    ) -> ResolutionHandle[Route]:
        """
        ``resolve_route`` as a cancellable handle (needs a running loop).

        Directions are requested before this returns; cancelling the handle
        only drops this waiter and the route is still cached on arrival.
        """
        return ResolutionHandle.spawn(
            self._settle_route(self._begin_route(start, end, kind), start, end, kind),
            label=f"route:{start}->{end}",
        )

    def peek_route(self, start: Coordinate, end: Coordinate) -> Optional[Route]:
        """Cached route without a lookup."""
        return self.cache.peek_route(start, end)

    # ------------------------------------------------------------------

    @staticmethod
    async def _settle(pending: Pending):
        if isinstance(pending, asyncio.Future):
            return await asyncio.shield(pending)
        return pending

    def _record_failure(self, message: str) -> None:
        self.metrics.increment("resolution_failures")
        logger.warning(message)

    @property
    def in_flight(self) -> int:
        return len(self._address_inflight) + len(self._route_inflight)

    async def wait_idle(self) -> None:
        """Wait for every in-flight lookup, including ones no caller awaits any more."""
        while self._address_inflight or self._route_inflight:
            tasks = list(self._address_inflight.values()) + list(self._route_inflight.values())
            await asyncio.wait(tasks)
            # Done callbacks that clear the in-flight maps run on the next loop pass
            await asyncio.sleep(0)

    def reset(self) -> None:
        """Forget cached results (full session restart)."""
        self.cache.clear()
