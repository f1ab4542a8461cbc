"""
Polyline geometry on (lon, lat) coordinates.

Distances are great-circle (haversine) kilometres. Positions inside a
segment are interpolated linearly in lon/lat, which is accurate enough for
the short segments of a drawn track and keeps results exact at vertices.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

Coordinate = Tuple[float, float]  # (lon, lat)

EARTH_RADIUS_KM = 6371.0088


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate great circle distance between two points.

    Args:
        a: First point as (lon, lat) in degrees
        b: Second point as (lon, lat) in degrees

    Returns:
        Distance in kilometres
    """
    lon1, lat1 = a
    lon2, lat2 = b
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    h = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def segment_lengths_km(coordinates: Sequence[Coordinate]) -> np.ndarray:
    """Vectorised haversine length of each consecutive segment."""
    if len(coordinates) < 2:
        return np.zeros(0)

    pts = np.radians(np.asarray(coordinates, dtype=float))
    lon = pts[:, 0]
    lat = pts[:, 1]
    dlat = np.diff(lat)
    dlon = np.diff(lon)
    h = np.sin(dlat / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(dlon / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def cumulative_lengths_km(coordinates: Sequence[Coordinate]) -> np.ndarray:
    """Distance along the polyline at each vertex, starting at 0."""
    if not coordinates:
        return np.zeros(0)
    return np.concatenate(([0.0], np.cumsum(segment_lengths_km(coordinates))))


def polyline_length_km(coordinates: Sequence[Coordinate]) -> float:
    """Total great-circle length of a polyline (0 for fewer than two points)."""
    return float(segment_lengths_km(coordinates).sum())


def lerp(a: Coordinate, b: Coordinate, fraction: float) -> Coordinate:
    """Linear interpolation between two coordinates."""
    if fraction <= 0.0:
        return a
    if fraction >= 1.0:
        return b
    return (a[0] + (b[0] - a[0]) * fraction, a[1] + (b[1] - a[1]) * fraction)


@dataclass(frozen=True)
class LineProjection:
    """Nearest point on a polyline to some query point."""
    coordinate: Coordinate
    location_km: float  # Distance along the polyline to the projected point
    distance_km: float  # Distance from the query point to the projected point
    segment_index: int


def nearest_point_on_line(line: Sequence[Coordinate], point: Coordinate) -> LineProjection:
    """
    Project a point onto a polyline.

    Each segment is projected in a local equirectangular plane (longitude
    scaled by cos(latitude)), the parameter clamped to the segment, and the
    candidate with the smallest great-circle distance wins. Ties keep the
    earlier segment.

    Args:
        line: Polyline with at least one coordinate
        point: Query coordinate

    Returns:
        LineProjection for the nearest point
    """
    if len(line) == 1:
        return LineProjection(line[0], 0.0, haversine_km(line[0], point), 0)

    cumulative = cumulative_lengths_km(line)
    best = None
    for i in range(len(line) - 1):
        a = line[i]
        b = line[i + 1]
        scale = math.cos(math.radians((a[1] + b[1] + 2 * point[1]) / 4))
        ax, ay = a[0] * scale, a[1]
        bx, by = b[0] * scale, b[1]
        px, py = point[0] * scale, point[1]
        dx, dy = bx - ax, by - ay
        denom = dx * dx + dy * dy
        t = 0.0 if denom == 0 else ((px - ax) * dx + (py - ay) * dy) / denom
        t = min(1.0, max(0.0, t))

        candidate = lerp(a, b, t)
        distance = haversine_km(candidate, point)
        if best is None or distance < best.distance_km:
            location = float(cumulative[i]) + haversine_km(a, candidate)
            best = LineProjection(candidate, location, distance, i)

    return best


def great_circle_arc(start: Coordinate, end: Coordinate, npoints: int = 128) -> List[Coordinate]:
    """
    Sample the great circle between two points.

    Used for air legs, where the drawn path should bow along the geodesic
    rather than follow a straight lon/lat line. Endpoints are returned exactly.

    Args:
        start: Departure (lon, lat)
        end: Arrival (lon, lat)
        npoints: Number of samples including both endpoints (minimum 2)

    Returns:
        List of (lon, lat) coordinates
    """
    npoints = max(2, npoints)
    lon1, lat1 = np.radians(start)
    lon2, lat2 = np.radians(end)

    d = haversine_km(start, end) / EARTH_RADIUS_KM
    if d == 0:
        return [start, end]

    f = np.linspace(0.0, 1.0, npoints)
    a = np.sin((1 - f) * d) / np.sin(d)
    b = np.sin(f * d) / np.sin(d)
    x = a * np.cos(lat1) * np.cos(lon1) + b * np.cos(lat2) * np.cos(lon2)
    y = a * np.cos(lat1) * np.sin(lon1) + b * np.cos(lat2) * np.sin(lon2)
    z = a * np.sin(lat1) + b * np.sin(lat2)

    lats = np.degrees(np.arctan2(z, np.sqrt(x ** 2 + y ** 2)))
    lons = np.degrees(np.arctan2(y, x))

    arc = [(float(lo), float(la)) for lo, la in zip(lons, lats)]
    arc[0] = start
    arc[-1] = end
    return arc


def bounding_box(coordinates: Sequence[Coordinate]) -> Tuple[Coordinate, Coordinate]:
    """Return ((min_lon, min_lat), (max_lon, max_lat)) for a non-empty sequence."""
    arr = np.asarray(coordinates, dtype=float)
    mins = arr.min(axis=0)
    maxs = arr.max(axis=0)
    return (float(mins[0]), float(mins[1])), (float(maxs[0]), float(maxs[1]))
