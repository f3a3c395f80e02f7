"""
Timed transitions between two sets of positions.

Nothing here schedules itself: the renderer passes the current time in and
asks for the positions to draw. Starting a new transition interrupts the
one in flight, so the latest target always wins.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from .models import as_positions

logger = structlog.get_logger()

DEFAULT_DURATION_MS = 1500.0


def ease_cubic_in_out(t: float) -> float:
    """Symmetric cubic easing on [0, 1]."""
    t = min(max(float(t), 0.0), 1.0) * 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2


def interpolate_positions(start, end, t: float) -> np.ndarray:
    """Linear blend between two position arrays of the same shape."""
    a = as_positions(start, "start")
    b = as_positions(end, "end")
    if a.shape != b.shape:
        raise ValueError(f"cannot interpolate {len(a)} positions to {len(b)}")
    t = min(max(float(t), 0.0), 1.0)
    return a + (b - a) * t


@dataclass(eq=False)
class Transition:
    """One animated move from start to target positions."""
    start: np.ndarray
    target: np.ndarray
    started_at: float          # milliseconds, caller's clock
    duration: float = DEFAULT_DURATION_MS
    eased: bool = True
    cancelled: bool = False
    sequence: int = 0

    def progress(self, now: float) -> float:
        """Raw progress in [0, 1]."""
        if self.duration <= 0:
            return 1.0
        return min(max((now - self.started_at) / self.duration, 0.0), 1.0)

    def eased_progress(self, now: float) -> float:
        p = self.progress(now)
        return ease_cubic_in_out(p) if self.eased else p

    def positions_at(self, now: float) -> np.ndarray:
        return interpolate_positions(self.start, self.target, self.eased_progress(now))

    def is_finished(self, now: float) -> bool:
        return self.cancelled or self.progress(now) >= 1.0

    def cancel(self) -> None:
        self.cancelled = True


class TransitionManager:
    """Owns the current transition and the last settled positions."""

    def __init__(self, positions=None, duration: float = DEFAULT_DURATION_MS):
        self.duration = duration
        self.positions = as_positions(positions if positions is not None else [])
        self.current: Optional[Transition] = None
        self._sequence = 0

    @property
    def is_transitioning(self) -> bool:
        return self.current is not None and not self.current.cancelled

    def begin(self, target, now: float, duration: Optional[float] = None) -> Transition:
        """
        Start moving towards target.

        An unfinished transition is interrupted first; the new one starts
        from wherever the old one had got to at `now`.
        """
        target = as_positions(target, "target")
        start = self.positions_at(now)
        if self.is_transitioning:
            logger.debug("Interrupting transition", sequence=self.current.sequence)
            self.current.cancel()
        if len(start) != len(target):
            # The point subset changed: there is nothing sensible to tween from
            start = target.copy()

        self.positions = start
        self._sequence += 1
        self.current = Transition(
            start=start,
            target=target,
            started_at=now,
            duration=self.duration if duration is None else duration,
            sequence=self._sequence,
        )
        return self.current

    def interrupt(self, now: Optional[float] = None) -> None:
        """Abort the running transition, freezing positions at `now` if given."""
        if not self.is_transitioning:
            return
        if now is not None:
            self.positions = self.current.positions_at(now)
        self.current.cancel()
        self.current = None

    def positions_at(self, now: float) -> np.ndarray:
        """Positions to draw at `now`; settles the transition when it ends."""
        if not self.is_transitioning:
            return self.positions.copy()
        positions = self.current.positions_at(now)
        if self.current.progress(now) >= 1.0:
            self.positions = self.current.target.copy()
            self.current = None
        return positions

    def set_positions(self, positions) -> None:
        """Jump to positions without animating."""
        if self.is_transitioning:
            self.current.cancel()
            self.current = None
        self.positions = as_positions(positions)
