"""
Track normalization.

Raw position samples from the tracking feed arrive unordered within their
tag groups and often repeat a coordinate (the vessel reported twice from the
same spot). A repeated coordinate creates a zero-length polyline segment,
which breaks length and along-track computations, so every track is
time-ordered and sequentially deduplicated before use.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from voyagesim.routes.geometry import Coordinate, polyline_length_km

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PositionTag(Enum):
    """Provenance of a position sample."""
    HISTORIC = "historic"
    LATEST = "latest"
    PREDICTED = "predicted"


@dataclass(frozen=True)
class TrackPoint:
    """A single position sample."""
    coordinate: Coordinate
    timestamp: Optional[datetime]
    tag: PositionTag

    @property
    def is_actual(self) -> bool:
        """True for reported (historic/latest) positions."""
        return self.tag is not PositionTag.PREDICTED


@dataclass(frozen=True)
class TimeSeriesPoint:
    """A timestamped coordinate used for time-based playback."""
    time: datetime
    coordinate: Coordinate


def _sort_key(point: TrackPoint) -> datetime:
    ts = point.timestamp
    if ts is None:
        return _EPOCH
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def sort_by_time(points: Iterable[TrackPoint]) -> List[TrackPoint]:
    """
    Stable-sort points by timestamp ascending.

    Points without a timestamp sort as epoch-zero, i.e. before every dated
    point, and keep their relative order. Naive timestamps are read as UTC.
    """
    return sorted(points, key=_sort_key)


def dedupe_coordinates(coordinates: Iterable[Coordinate]) -> List[Coordinate]:
    """Drop any coordinate equal to the previously retained one."""
    result: List[Coordinate] = []
    for coord in coordinates:
        if not result or result[-1] != coord:
            result.append(coord)
    return result


def dedupe_sequential(points: Iterable[TrackPoint]) -> List[TrackPoint]:
    """
    Remove points whose coordinate equals the previous retained point's.

    Idempotent: applying it twice gives the same result as once.
    """
    result: List[TrackPoint] = []
    for point in points:
        if not result or result[-1].coordinate != point.coordinate:
            result.append(point)
    return result


def drop_same_instant(points: Iterable[TrackPoint]) -> List[TrackPoint]:
    """
    Keep only the first of several time-sorted samples reported at one instant.

    A vessel cannot be in two places at once, and time interpolation needs
    distinct sample times. Undated samples are left alone.
    """
    result: List[TrackPoint] = []
    for point in points:
        if (
            result
            and point.timestamp is not None
            and result[-1].timestamp is not None
            and _sort_key(result[-1]) == _sort_key(point)
        ):
            continue
        result.append(point)
    return result


def normalize(points: Iterable[TrackPoint]) -> List[TrackPoint]:
    """Sort by time then deduplicate; the standard treatment for one tag group."""
    return dedupe_sequential(drop_same_instant(sort_by_time(points)))


@dataclass(frozen=True)
class VoyageTrack:
    """
    Normalized track of one vessel.

    ``historic`` holds HISTORIC/LATEST samples, ``predicted`` holds PREDICTED
    samples. Within each sequence timestamps are non-decreasing and no two
    consecutive points share a coordinate.
    """
    historic: Tuple[TrackPoint, ...] = ()
    predicted: Tuple[TrackPoint, ...] = ()

    @classmethod
    def from_samples(cls, samples: Iterable[TrackPoint]) -> "VoyageTrack":
        """Split raw samples by tag and normalize each group."""
        samples = list(samples)
        historic = normalize(p for p in samples if p.is_actual)
        predicted = normalize(p for p in samples if not p.is_actual)
        dropped = len(samples) - len(historic) - len(predicted)
        if dropped:
            logger.debug(f"Dropped {dropped} duplicate track samples")
        return cls(historic=tuple(historic), predicted=tuple(predicted))

    @property
    def is_empty(self) -> bool:
        return not self.historic and not self.predicted

    @property
    def historic_coordinates(self) -> List[Coordinate]:
        return dedupe_coordinates(p.coordinate for p in self.historic)

    @property
    def predicted_coordinates(self) -> List[Coordinate]:
        return dedupe_coordinates(p.coordinate for p in self.predicted)

    @property
    def combined_coordinates(self) -> List[Coordinate]:
        """Historic followed by predicted, deduplicated across the join."""
        return [p.coordinate for p in merge_tracks(self.historic, self.predicted)]

    @property
    def latest_historic(self) -> Optional[TrackPoint]:
        """Most recent reported position, if any."""
        return self.historic[-1] if self.historic else None

    @property
    def time_series(self) -> List[TimeSeriesPoint]:
        """All timestamped samples (historic and predicted) in time order."""
        dated = [p for p in sort_by_time(self.historic + self.predicted) if p.timestamp is not None]
        return [TimeSeriesPoint(time=_sort_key(p), coordinate=p.coordinate) for p in dated]

    def progress_from_telemetry(self) -> float:
        """
        Share of the combined track already sailed, as a percentage.

        Returns 0 when the combined track has no length.
        """
        total = polyline_length_km(self.combined_coordinates)
        if total <= 0:
            return 0.0
        sailed = polyline_length_km(self.historic_coordinates)
        return max(0.0, min(100.0, sailed / total * 100.0))

    def initial_playback_index(self) -> int:
        """Index in ``time_series`` of the latest reported sample, else the last index."""
        series = self.time_series
        if not series:
            return 0
        latest = self.latest_historic
        if latest is not None and latest.timestamp is not None:
            target = _sort_key(latest)
            for i, point in enumerate(series):
                if point.time == target:
                    return i
        return len(series) - 1


def merge_tracks(*groups: Sequence[TrackPoint]) -> List[TrackPoint]:
    """Concatenate already-normalized groups and deduplicate across the joins."""
    merged: List[TrackPoint] = []
    for group in groups:
        merged.extend(group)
    return dedupe_sequential(merged)
