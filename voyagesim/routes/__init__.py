"""Track normalization, route geometry, interpolation and corridor synthesis."""

from .track import PositionTag, TrackPoint, VoyageTrack, dedupe_sequential, normalize, sort_by_time
from .route import Route, RouteKind, RouteSource, RouteEndpoints, LegRoutes
from .interpolation import position_at_progress, position_at_time, current_position
from .corridor import CorridorSynthesizer, synthesize_route
from .voyage_file import VoyageFile, parse_voyage_file

__all__ = [
    "PositionTag",
    "TrackPoint",
    "VoyageTrack",
    "dedupe_sequential",
    "normalize",
    "sort_by_time",
    "Route",
    "RouteKind",
    "RouteSource",
    "RouteEndpoints",
    "LegRoutes",
    "position_at_progress",
    "position_at_time",
    "current_position",
    "CorridorSynthesizer",
    "synthesize_route",
    "VoyageFile",
    "parse_voyage_file",
]
