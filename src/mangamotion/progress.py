"""
Overall pipeline progress from per-stage fractions.
"""

import logging
import math

from .models import Stage

logger = logging.getLogger("mangamotion")

OCR_SPAN = 25
TIMELINE_CHECKPOINT = 50
MOTION_CHECKPOINT = 65
RENDER_BASE = 70
RENDER_SPAN = 30

_FIXED_CHECKPOINTS = {
    Stage.IDLE: 0,
    Stage.BUILDING_TIMELINE: TIMELINE_CHECKPOINT,
    Stage.READY_TO_RENDER: MOTION_CHECKPOINT,
    Stage.COMPLETED: 100,
}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def stage_percent(stage: Stage, fraction: float = 0.0) -> int:
    """Map a stage and its local fraction (0..1) to an overall percent (0..100)."""
    if fraction != fraction:  # NaN
        fraction = 0.0
    fraction = min(1.0, max(0.0, float(fraction)))

    if stage is Stage.RECOGNIZING:
        return _round_half_up(OCR_SPAN * fraction)
    if stage is Stage.PLANNING_MOTION:
        # 65 only once the planning pause is over
        return MOTION_CHECKPOINT if fraction >= 1.0 else TIMELINE_CHECKPOINT
    if stage is Stage.RENDERING:
        return RENDER_BASE + _round_half_up(RENDER_SPAN * fraction)
    return _FIXED_CHECKPOINTS[stage]


class ProgressTracker:
    """Keeps the displayed percent monotonic within a run.

    Reports are applied in the order received; anything lower than the
    current value is ignored.
    """

    def __init__(self) -> None:
        self._percent = 0

    @property
    def percent(self) -> int:
        return self._percent

    def reset(self, base: int = 0) -> int:
        """Start a new run (or render attempt) at ``base``."""
        self._percent = min(100, max(0, int(base)))
        return self._percent

    def advance(self, percent: int) -> int:
        """Apply a new report and return the percent to display."""
        percent = min(100, max(0, int(percent)))
        if percent < self._percent:
            logger.debug(f"Ignoring stale progress report {percent}% (at {self._percent}%)")
            return self._percent
        self._percent = percent
        return self._percent

    def report(self, stage: Stage, fraction: float = 0.0) -> int:
        """Shorthand for ``advance(stage_percent(stage, fraction))``."""
        return self.advance(stage_percent(stage, fraction))
