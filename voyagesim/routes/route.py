"""Drawable routes and the four-stage journey endpoints."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from voyagesim.routes.geometry import Coordinate, bounding_box, polyline_length_km


class RouteKind(Enum):
    """What a route represents on the map."""
    HISTORIC = "historic"
    PREDICTED = "predicted"
    LAST_MILE = "last_mile"
    AIR_ARC = "air_arc"


class RouteSource(Enum):
    """How a route's geometry was obtained."""
    TRACK = "track"
    DIRECTIONS = "directions"
    CORRIDOR = "corridor"
    STRAIGHT = "straight"
    GREAT_CIRCLE = "great_circle"


@dataclass(frozen=True)
class Route:
    """An ordered, drawable path of at least two coordinates."""
    coordinates: Tuple[Coordinate, ...]
    kind: RouteKind
    source: RouteSource = RouteSource.TRACK

    def __post_init__(self):
        if len(self.coordinates) < 2:
            raise ValueError(
                f"Route needs at least 2 coordinates, got {len(self.coordinates)}"
            )

    @classmethod
    def build(
        cls,
        coordinates: Sequence[Coordinate],
        kind: RouteKind,
        source: RouteSource = RouteSource.TRACK,
    ) -> "Route":
        return cls(tuple((float(c[0]), float(c[1])) for c in coordinates), kind, source)

    @property
    def start(self) -> Coordinate:
        return self.coordinates[0]

    @property
    def end(self) -> Coordinate:
        return self.coordinates[-1]

    @property
    def length_km(self) -> float:
        return polyline_length_km(self.coordinates)

    @property
    def bounds(self) -> Tuple[Coordinate, Coordinate]:
        return bounding_box(self.coordinates)

    @property
    def midpoint(self) -> Coordinate:
        """Middle vertex, used to centre camera moves."""
        return self.coordinates[len(self.coordinates) // 2]


@dataclass
class RouteEndpoints:
    """
    The four conceptual stops of a shipment.

    ``origin`` and ``destination`` are fixed port/airport locations.
    ``pickup`` and ``delivery`` start as fallback coordinates and are replaced
    once the free-text addresses geocode.
    """
    pickup: Coordinate
    origin: Coordinate
    destination: Coordinate
    delivery: Coordinate
    pickup_resolved: bool = False
    delivery_resolved: bool = False

    def all_coordinates(self) -> List[Coordinate]:
        return [self.pickup, self.origin, self.destination, self.delivery]


@dataclass
class LegRoutes:
    """Resolved last-mile routes, filled in as resolution completes."""
    pickup: Optional[Route] = None
    delivery: Optional[Route] = None
