"""
Simulation session for one shipment.

Owns the vessel's normalized track and the four journey endpoints, builds
the main-leg routes, derives the vessel's progress and position, drives
the playback scrubber and hosts the navigation state machine.

Usage:
    voyage = parse_voyage_file(Path("voyage.json"))
    resolver = RouteResolver(*build_providers(settings))
    session = VoyageSession.from_voyage_file(voyage, resolver)
    await session.resolve()
    scene = session.navigation.scene()
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from voyagesim.config import Settings, get_settings
from voyagesim.data.addresses import ShipmentAddresses
from voyagesim.data.ports import port_coordinate
from voyagesim.navigation import styles
from voyagesim.navigation.scene import MapSurface, StyledRoute
from voyagesim.navigation.state_machine import NavigationStateMachine
from voyagesim.resolution.resolver import RouteResolver
from voyagesim.routes.geometry import Coordinate, great_circle_arc
from voyagesim.routes.interpolation import current_position, position_at_progress, position_at_time
from voyagesim.routes.route import Route, RouteEndpoints, RouteKind, RouteSource
from voyagesim.routes.track import VoyageTrack, dedupe_coordinates
from voyagesim.routes.voyage_file import VoyageFile
from voyagesim.voyage.playback import ProgressAnimator
from voyagesim.voyage.progress import Clock, LegSchedule, SystemClock

logger = logging.getLogger(__name__)


class TransportMode(Enum):
    """Main-carriage mode of the shipment."""
    SEA = "sea"
    AIR = "air"
    ROAD = "road"


_MAIN_STYLES = {
    TransportMode.SEA: ("predicted", styles.PREDICTED_ROUTE),
    TransportMode.AIR: ("air-route", styles.AIR_ROUTE),
    TransportMode.ROAD: ("road-route", styles.ROAD_ROUTE),
}

_ICONS = {
    TransportMode.SEA: styles.ICON_VESSEL,
    TransportMode.AIR: styles.ICON_AIRCRAFT,
    TransportMode.ROAD: styles.ICON_TRUCK,
}


def build_endpoints(
    track: VoyageTrack,
    origin_code: Optional[str] = None,
    destination_code: Optional[str] = None,
) -> RouteEndpoints:
    """
    Provisional journey endpoints before any address is geocoded.

    Pickup starts at the first reported position (or the current position),
    delivery at the last predicted one. Ports come from the port table and
    fall back to those same coordinates.

    Raises:
        ValueError: If neither the track nor the port codes give a location
    """
    historic = track.historic_coordinates
    predicted = track.predicted_coordinates

    pickup = historic[0] if historic else current_position(track)
    delivery = predicted[-1] if predicted else None

    origin = port_coordinate(origin_code, fallback=pickup)
    destination = port_coordinate(destination_code, fallback=delivery or (historic[-1] if historic else None))

    origin = origin or destination
    destination = destination or origin
    if origin is None or destination is None:
        raise ValueError("Voyage has no positions and no known ports")

    return RouteEndpoints(
        pickup=pickup or origin,
        origin=origin,
        destination=destination,
        delivery=delivery or destination,
    )


class VoyageSession:
    """
    One shipment being viewed.

    Routes and progress are recomputed from the track on demand; only the
    playback animator and navigation state carry mutable state.
    """

    def __init__(
        self,
        track: VoyageTrack,
        endpoints: RouteEndpoints,
        resolver: RouteResolver,
        vessel_name: str = "Unknown vessel",
        transport_mode: TransportMode = TransportMode.SEA,
        schedule: Optional[LegSchedule] = None,
        addresses: Optional[ShipmentAddresses] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        surface: Optional[MapSurface] = None,
    ):
        self.track = track
        self.endpoints = endpoints
        self.resolver = resolver
        self.vessel_name = vessel_name
        self.transport_mode = transport_mode
        self.schedule = schedule
        self.addresses = addresses or ShipmentAddresses()
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()

        self.historic_route = self._build_historic_route()
        self.main_route = self._build_main_route()

        self.navigation = NavigationStateMachine(
            endpoints,
            resolver,
            surface=surface,
            main_routes=self.styled_routes(),
            settings=self.settings,
        )
        self.playback = ProgressAnimator(
            duration_s=self.settings.playback_duration_s,
            progress=self.initial_playback_progress(),
            playing=False,
        )
        self.navigation.set_vessel_position(self.current_position(), _ICONS[transport_mode])

        logger.info(
            f"Session for '{vessel_name}' ({transport_mode.value}): "
            f"{len(track.historic)} historic, {len(track.predicted)} predicted samples"
        )

    @classmethod
    def from_voyage_file(
        cls,
        voyage: VoyageFile,
        resolver: RouteResolver,
        addresses: Optional[ShipmentAddresses] = None,
        transport_mode: TransportMode = TransportMode.SEA,
        **kwargs,
    ) -> "VoyageSession":
        track = voyage.track()
        endpoints = build_endpoints(track, voyage.origin_port_code, voyage.destination_port_code)
        schedule = LegSchedule(planned_start=voyage.start_datetime, planned_end=voyage.end_datetime)
        return cls(
            track,
            endpoints,
            resolver,
            vessel_name=voyage.vessel_name,
            transport_mode=transport_mode,
            schedule=schedule,
            addresses=addresses,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def _build_historic_route(self) -> Optional[Route]:
        coords = self.track.historic_coordinates
        if len(coords) < 2:
            return None
        return Route.build(coords, RouteKind.HISTORIC, RouteSource.TRACK)

    def _build_main_route(self) -> Optional[Route]:
        origin, destination = self.endpoints.origin, self.endpoints.destination

        if self.transport_mode == TransportMode.AIR:
            if origin == destination:
                return None
            return Route.build(great_circle_arc(origin, destination), RouteKind.AIR_ARC, RouteSource.GREAT_CIRCLE)

        latest = self.track.latest_historic
        start = latest.coordinate if latest is not None else origin
        if start == destination:
            return None
        return self.resolver.synthesizer.route(start, destination, self.track.predicted_coordinates)

    def styled_routes(self) -> List[StyledRoute]:
        routes = []
        if self.historic_route is not None:
            routes.append(StyledRoute("historic", self.historic_route, styles.HISTORIC_ROUTE))
        if self.main_route is not None:
            layer_id, style = _MAIN_STYLES[self.transport_mode]
            routes.append(StyledRoute(layer_id, self.main_route, style))
        return routes

    def journey_path(self) -> List[Coordinate]:
        """Full drawn path: historic route followed by the forward route."""
        coords: List[Coordinate] = []
        if self.historic_route is not None:
            coords.extend(self.historic_route.coordinates)
        if self.main_route is not None:
            coords.extend(self.main_route.coordinates)
        if not coords:
            coords = [self.endpoints.origin, self.endpoints.destination]
        return dedupe_coordinates(coords)

    # ------------------------------------------------------------------
    # Progress and position
    # ------------------------------------------------------------------

    def vessel_progress(self) -> float:
        """
        Progress of the main leg (0-100).

        Measured from telemetry when the vessel has reported positions,
        otherwise estimated from the schedule dates.
        """
        if self.track.historic:
            return self.track.progress_from_telemetry()
        if self.schedule is not None:
            return self.schedule.progress(self.clock, self.settings.progress_fallback_pct)
        return self.settings.progress_fallback_pct

    def current_position(self) -> Optional[Coordinate]:
        """Where the "now" marker goes; reported positions win over the model."""
        return current_position(self.track, self.journey_path(), self.vessel_progress())

    def initial_playback_progress(self) -> float:
        """Playback start: the latest reported sample on the time axis."""
        series = self.track.time_series
        if len(series) < 2:
            return self.vessel_progress()
        index = self.track.initial_playback_index()
        span = (series[-1].time - series[0].time).total_seconds()
        if span <= 0:
            return 100.0
        return (series[index].time - series[0].time).total_seconds() / span * 100.0

    def playback_position(self) -> Optional[Coordinate]:
        """
        Position at the playback cursor.

        With two or more timestamped samples the cursor spans their time
        range; otherwise it spans the journey path by distance.
        """
        series = self.track.time_series
        pct = self.playback.progress
        if len(series) >= 2:
            start, end = series[0].time, series[-1].time
            return position_at_time(series, start + (end - start) * (pct / 100.0))
        return position_at_progress(self.journey_path(), pct)

    def start_playback(self, speed: Optional[float] = None, restart: bool = False) -> None:
        if speed is not None:
            self.playback.set_speed(speed)
        if restart:
            self.playback.restart()
        else:
            self.playback.resume()

    def pause_playback(self) -> None:
        self.playback.pause()

    def scrub(self, pct: float) -> Optional[Coordinate]:
        self.playback.scrub(pct)
        position = self.playback_position()
        self.navigation.set_vessel_position(position, _ICONS[self.transport_mode])
        self.navigation.refresh()
        return position

    def advance(self, delta_s: float) -> Optional[Coordinate]:
        """
        Step playback and the last-mile truck animation.

        Returns:
            The vessel marker position
        """
        if self.playback.playing:
            self.playback.advance(delta_s)
            self.navigation.set_vessel_position(self.playback_position(), _ICONS[self.transport_mode])
        if self.navigation.truck is not None:
            self.navigation.advance(delta_s)
        elif self.playback.playing:
            self.navigation.refresh()
        marker = self.navigation.vessel_marker
        return marker.coordinate if marker is not None else None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, prefetch: bool = True) -> RouteEndpoints:
        """
        Geocode the pickup/delivery addresses and fetch last-mile routes.

        Addresses that cannot be geocoded keep their provisional coordinate.
        Road shipments also get road directions for the main leg.
        """
        pickup_query = self.addresses.pickup.geocoding_query() if self.addresses.pickup else ""
        delivery_query = self.addresses.delivery.geocoding_query() if self.addresses.delivery else ""

        pickup, delivery = await asyncio.gather(
            self.resolver.resolve_address(pickup_query),
            self.resolver.resolve_address(delivery_query),
        )

        endpoints = RouteEndpoints(
            pickup=pickup or self.endpoints.pickup,
            origin=self.endpoints.origin,
            destination=self.endpoints.destination,
            delivery=delivery or self.endpoints.delivery,
            pickup_resolved=pickup is not None or self.endpoints.pickup_resolved,
            delivery_resolved=delivery is not None or self.endpoints.delivery_resolved,
        )
        self.endpoints = endpoints
        self.navigation.update_endpoints(endpoints)

        if self.transport_mode == TransportMode.ROAD and endpoints.origin != endpoints.destination:
            self.main_route = await self.resolver.resolve_route(
                endpoints.origin, endpoints.destination, kind=RouteKind.PREDICTED
            )
            self.navigation.main_routes = self.styled_routes()

        if prefetch:
            handles = self.navigation.prefetch()
            await asyncio.gather(*(handle.wait() for handle in handles))

        self.navigation.refresh()
        logger.info(
            f"Resolved endpoints for '{self.vessel_name}' "
            f"(pickup={'geocoded' if endpoints.pickup_resolved else 'fallback'}, "
            f"delivery={'geocoded' if endpoints.delivery_resolved else 'fallback'})"
        )
        return endpoints

    def summary(self) -> dict:
        position = self.current_position()
        return {
            "vessel_name": self.vessel_name,
            "transport_mode": self.transport_mode.value,
            "progress_pct": round(self.vessel_progress(), 1),
            "current_position": list(position) if position else None,
            "mode": self.navigation.mode.value,
            "endpoints": {
                "pickup": list(self.endpoints.pickup),
                "origin": list(self.endpoints.origin),
                "destination": list(self.endpoints.destination),
                "delivery": list(self.endpoints.delivery),
            },
            "segment": self.navigation.segment.to_dict() if self.navigation.segment else None,
        }
