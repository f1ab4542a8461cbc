"""
Progress animation.

Animation is a pure stepping function: whatever scheduler is available
(timer, frame callback, test harness) calls ``advance(delta_s)`` and reads
back the new progress. Nothing here sleeps or reads the clock.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from voyagesim.routes.geometry import Coordinate
from voyagesim.routes.interpolation import clamp_progress, position_at_progress

logger = logging.getLogger(__name__)


@dataclass
class ProgressAnimator:
    """
    Drives a 0-100 progress value over a fixed duration.

    Under playback progress only moves forward; ``scrub`` may jump anywhere,
    including backwards. Once 100 is reached the animator is finished and
    further ``advance`` calls are no-ops.
    """
    duration_s: float
    speed: float = 1.0
    progress: float = 0.0
    playing: bool = True

    def __post_init__(self):
        if self.duration_s <= 0:
            raise ValueError(f"duration_s must be positive, got {self.duration_s}")
        self.progress = clamp_progress(self.progress)

    @property
    def finished(self) -> bool:
        return self.progress >= 100.0

    def advance(self, delta_s: float) -> float:
        """
        Step the animation forward.

        Args:
            delta_s: Elapsed time since the previous step (seconds). Negative
                values are treated as 0.

        Returns:
            The new progress percentage
        """
        if not self.playing or self.finished or delta_s <= 0:
            return self.progress
        step = delta_s * self.speed / self.duration_s * 100.0
        self.progress = clamp_progress(self.progress + step)
        return self.progress

    def scrub(self, pct: float) -> float:
        """Jump to a progress value (clamped)."""
        self.progress = clamp_progress(pct)
        return self.progress

    def set_speed(self, speed: float) -> None:
        if speed <= 0:
            logger.warning(f"Ignoring non-positive playback speed {speed}")
            return
        self.speed = speed

    def pause(self) -> None:
        self.playing = False

    def resume(self) -> None:
        self.playing = True

    def restart(self) -> None:
        self.progress = 0.0
        self.playing = True

    def position_on(self, route: Sequence[Coordinate]) -> Optional[Coordinate]:
        """Current position along ``route``."""
        return position_at_progress(route, self.progress)
