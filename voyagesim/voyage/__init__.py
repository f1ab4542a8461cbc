"""Progress estimation, playback and leg summaries.

``VoyageSession`` lives in ``voyagesim.voyage.session`` and is imported from
there, since it depends on the navigation package.
"""

from .progress import Clock, FixedClock, LegSchedule, SystemClock, estimate_progress, parse_schedule_date
from .playback import ProgressAnimator
from .segment import SegmentSummary, summarize_segment

__all__ = [
    "Clock",
    "FixedClock",
    "LegSchedule",
    "SystemClock",
    "estimate_progress",
    "parse_schedule_date",
    "ProgressAnimator",
    "SegmentSummary",
    "summarize_segment",
]
