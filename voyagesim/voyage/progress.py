"""
Date-based progress estimation.

When a leg has no live position samples (typical for road and air legs) the
only information is its planned and actual dates. Progress is then the
elapsed share of wall-clock time between the effective start and end.

Schedule dates are calendar-only, so they are read as midnight UTC to keep
the estimate deterministic.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime, None]

# Arbitrary "assume mid-journey" value observed in the dashboard.
DEFAULT_FALLBACK_PCT = 50.0


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class FixedClock:
    """Clock frozen at a given instant, for tests and replays."""
    instant: datetime

    def now(self) -> datetime:
        return self.instant if self.instant.tzinfo else self.instant.replace(tzinfo=timezone.utc)


def parse_schedule_date(value: DateLike) -> Optional[datetime]:
    """
    Parse a schedule date to an aware UTC datetime.

    Supported:
      - ``dd/mm/yyyy`` (booking exports)
      - ISO date ``yyyy-mm-dd`` and ISO datetime strings
      - ``date`` and ``datetime`` objects

    Calendar-only values become midnight UTC; naive datetimes are read as
    UTC. Anything unparseable returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    text = str(value).strip()
    if not text:
        return None

    parts = text.split("/")
    if len(parts) == 3:
        try:
            day, month, year = (int(p) for p in parts)
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError:
            logger.debug(f"Unparseable schedule date {value!r}")
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable schedule date {value!r}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def estimate_progress(
    planned_start: DateLike,
    planned_end: DateLike,
    actual_start: DateLike = None,
    actual_end: DateLike = None,
    *,
    now: Optional[datetime] = None,
    clock: Optional[Clock] = None,
    fallback_pct: float = DEFAULT_FALLBACK_PCT,
) -> float:
    """
    Estimate leg progress (0-100) from schedule dates.

    Args:
        planned_start: Planned departure
        planned_end: Planned arrival
        actual_start: Actual departure, preferred over the planned one
        actual_end: Actual arrival, preferred over the planned one
        now: Evaluation instant (overrides ``clock``)
        clock: Clock used when ``now`` is not given (system clock by default)
        fallback_pct: Returned when dates are missing or inverted

    Returns:
        0 at or before the start, 100 at or after the end, the elapsed
        fraction in between; ``fallback_pct`` when the window is unusable.
    """
    start = parse_schedule_date(actual_start) or parse_schedule_date(planned_start)
    end = parse_schedule_date(actual_end) or parse_schedule_date(planned_end)

    if start is None or end is None or start >= end:
        logger.debug(f"Schedule window unusable ({start} -> {end}), using {fallback_pct}%")
        return fallback_pct

    if now is None:
        now = (clock or SystemClock()).now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if now <= start:
        return 0.0
    if now >= end:
        return 100.0

    fraction = (now - start).total_seconds() / (end - start).total_seconds()
    return max(0.0, min(100.0, fraction * 100.0))


@dataclass
class LegSchedule:
    """Planned and actual dates for one leg."""
    planned_start: DateLike = None
    planned_end: DateLike = None
    actual_start: DateLike = None
    actual_end: DateLike = None

    def progress(self, clock: Clock, fallback_pct: float = DEFAULT_FALLBACK_PCT) -> float:
        return estimate_progress(
            self.planned_start,
            self.planned_end,
            self.actual_start,
            self.actual_end,
            clock=clock,
            fallback_pct=fallback_pct,
        )
