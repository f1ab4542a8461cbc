"""
Position interpolation along a track.

Two ways to place a point on a journey:
- by progress (0-100 % of the route's great-circle length), used by the
  playback scrubber and the last-mile truck animation
- by time, bracketing the two samples around an instant and interpolating
  linearly in time

Neither function raises on sparse data; an empty input yields None.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np

from voyagesim.routes.geometry import Coordinate, cumulative_lengths_km, lerp
from voyagesim.routes.track import TimeSeriesPoint, VoyageTrack

logger = logging.getLogger(__name__)


def clamp_progress(pct: float) -> float:
    """Clamp a progress value to [0, 100]; NaN counts as 0."""
    if pct != pct:  # NaN
        return 0.0
    return max(0.0, min(100.0, float(pct)))


def position_at_progress(route: Sequence[Coordinate], pct: float) -> Optional[Coordinate]:
    """
    Coordinate at ``pct`` percent of the route's length.

    Args:
        route: Polyline coordinates (lon, lat)
        pct: Progress percentage, clamped to [0, 100]

    Returns:
        The interpolated coordinate. 0 % is exactly the first point and
        100 % exactly the last. A single-point route returns that point, an
        empty route returns None.
    """
    if not route:
        return None
    if len(route) == 1:
        return route[0]

    pct = clamp_progress(pct)
    if pct == 0.0:
        return route[0]
    if pct == 100.0:
        return route[-1]

    cumulative = cumulative_lengths_km(route)
    total = float(cumulative[-1])
    if total <= 0.0:
        return route[0]

    target = pct / 100.0 * total
    # First vertex at or beyond the target closes the containing segment
    idx = int(np.searchsorted(cumulative, target, side="left"))
    idx = min(max(idx, 1), len(route) - 1)

    seg_start = float(cumulative[idx - 1])
    seg_len = float(cumulative[idx]) - seg_start
    if seg_len <= 0.0:
        return route[idx]
    return lerp(route[idx - 1], route[idx], (target - seg_start) / seg_len)


def _as_utc(t: datetime) -> datetime:
    return t.replace(tzinfo=timezone.utc) if t.tzinfo is None else t


def position_at_time(series: Sequence[TimeSeriesPoint], t: datetime) -> Optional[Coordinate]:
    """
    Coordinate at instant ``t``, interpolated linearly in time.

    Before the first sample the first coordinate is returned, after the last
    sample the last coordinate. Empty input returns None.
    """
    if not series:
        return None

    t = _as_utc(t)
    first = series[0]
    last = series[-1]
    if t <= _as_utc(first.time):
        return first.coordinate
    if t >= _as_utc(last.time):
        return last.coordinate

    for before, after in zip(series, series[1:]):
        t0 = _as_utc(before.time)
        t1 = _as_utc(after.time)
        if t0 <= t <= t1:
            span = (t1 - t0).total_seconds()
            if span <= 0:
                return after.coordinate
            return lerp(before.coordinate, after.coordinate, (t - t0).total_seconds() / span)

    return last.coordinate


def current_position(
    track: VoyageTrack,
    route: Optional[Sequence[Coordinate]] = None,
    pct: Optional[float] = None,
) -> Optional[Coordinate]:
    """
    Where to draw the "now" marker.

    A reported position is ground truth: when the track has any historic or
    latest sample, the most recent one is returned and ``route``/``pct`` are
    ignored. Otherwise the position is modelled from progress along ``route``,
    and failing that the first predicted sample is used.
    """
    latest = track.latest_historic
    if latest is not None:
        return latest.coordinate

    if route and pct is not None:
        return position_at_progress(route, pct)

    if track.predicted:
        return track.predicted[0].coordinate

    logger.debug("No position available for track")
    return None
