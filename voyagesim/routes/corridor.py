"""
Corridor route synthesis.

When only the ends of a leg are known, a straight line between them would
cut across land. The synthesizer instead threads the leg through the
corridor waypoints lying between origin and destination along the
corridor's primary axis, then folds in any predicted samples by projecting
them onto that corridor.

Algorithm:
1. Keep waypoints whose primary-axis value lies between origin and
   destination, widened by a margin, honouring travel direction
2. Order them along the travel direction
3. Corridor = [origin, *waypoints, destination], sequentially deduplicated
4. Project predicted samples onto the corridor, tag every point with its
   distance along the corridor, stable-sort by that distance, deduplicate
5. Fewer than 2 corridor points -> straight [origin, destination]
"""

import logging
from typing import List, Optional, Sequence, Tuple

from voyagesim.data.corridors import DEFAULT_CORRIDOR, CorridorDefinition
from voyagesim.routes.geometry import (
    Coordinate,
    cumulative_lengths_km,
    nearest_point_on_line,
)
from voyagesim.routes.route import Route, RouteKind, RouteSource
from voyagesim.routes.track import dedupe_coordinates

logger = logging.getLogger(__name__)

# Merged points closer than this (degrees, per axis) collapse into one
MERGE_TOLERANCE_DEG = 1e-4


class CorridorSynthesizer:
    """
    Builds plausible forward paths through a fixed corridor.

    Usage:
        synth = CorridorSynthesizer()
        coords = synth.synthesize((120.0, 30.0), (-0.5, 51.5))
    """

    def __init__(
        self,
        corridor: CorridorDefinition = DEFAULT_CORRIDOR,
        margin_deg: float = 3.0,
    ):
        """
        Args:
            corridor: Waypoint set to snap onto
            margin_deg: Widening of the origin/destination window on the
                primary axis
        """
        self.corridor = corridor
        self.margin_deg = margin_deg

    def corridor_waypoints(self, origin: Coordinate, destination: Coordinate) -> List[Coordinate]:
        """Waypoints between origin and destination, ordered along travel direction."""
        axis = self.corridor.primary_axis
        start = origin[axis]
        end = destination[axis]
        descending = start >= end
        m = self.margin_deg

        if descending:
            selected = [wp for wp in self.corridor.waypoints if end - m <= wp[axis] <= start + m]
        else:
            selected = [wp for wp in self.corridor.waypoints if start - m <= wp[axis] <= end + m]

        return sorted(selected, key=lambda wp: wp[axis], reverse=descending)

    def corridor_line(self, origin: Coordinate, destination: Coordinate) -> List[Coordinate]:
        """[origin, *waypoints, destination] with sequential duplicates removed."""
        return dedupe_coordinates([origin, *self.corridor_waypoints(origin, destination), destination])

    def synthesize(
        self,
        origin: Coordinate,
        destination: Coordinate,
        predicted: Sequence[Coordinate] = (),
    ) -> List[Coordinate]:
        """
        Synthesize a forward path.

        Args:
            origin: Start of the leg (lon, lat)
            destination: End of the leg (lon, lat)
            predicted: Known predicted samples to merge in, any order

        Returns:
            At least two coordinates, starting exactly at ``origin`` and
            ending exactly at ``destination``.
        """
        corridor = self.corridor_line(origin, destination)
        if len(corridor) < 2:
            logger.debug(f"Corridor collapsed for {origin} -> {destination}, using straight line")
            return [origin, destination]

        if not predicted:
            return corridor

        cumulative = cumulative_lengths_km(corridor)
        total = float(cumulative[-1])

        located: List[Tuple[float, Coordinate]] = [
            (float(loc), coord) for loc, coord in zip(cumulative, corridor)
        ]
        # Samples projecting onto either end coincide with origin/destination
        for sample in predicted:
            projection = nearest_point_on_line(corridor, sample)
            if 0.0 < projection.location_km < total:
                located.append((projection.location_km, projection.coordinate))

        # Stable: corridor vertices precede projected samples on ties
        located.sort(key=lambda item: item[0])

        merged: List[Coordinate] = []
        for _, coord in located:
            if merged and _close(merged[-1], coord):
                continue
            merged.append(coord)

        if merged[-1] != destination:
            # Drop interior points that collapsed onto the destination
            while len(merged) > 1 and _close(merged[-1], destination):
                merged.pop()
            merged.append(destination)

        logger.debug(
            f"Synthesized {len(merged)}-point route from {len(corridor)} corridor points "
            f"and {len(predicted)} predicted samples"
        )
        return merged if len(merged) >= 2 else [origin, destination]

    def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        predicted: Sequence[Coordinate] = (),
        kind: RouteKind = RouteKind.PREDICTED,
    ) -> Route:
        """Like ``synthesize`` but wrapped as a Route tagged with its source."""
        coords = self.synthesize(origin, destination, predicted)
        source = RouteSource.STRAIGHT if len(coords) == 2 else RouteSource.CORRIDOR
        return Route.build(coords, kind, source)


def _close(a: Coordinate, b: Coordinate, tol: float = MERGE_TOLERANCE_DEG) -> bool:
    return abs(a[0] - b[0]) <= tol and abs(a[1] - b[1]) <= tol


def synthesize_route(
    origin: Coordinate,
    destination: Coordinate,
    predicted: Sequence[Coordinate] = (),
    corridor: Optional[CorridorDefinition] = None,
    margin_deg: float = 3.0,
) -> List[Coordinate]:
    """Functional shortcut for one-off synthesis."""
    return CorridorSynthesizer(corridor or DEFAULT_CORRIDOR, margin_deg).synthesize(
        origin, destination, predicted
    )
