"""Eased interpolation and the cooperative task objects the sequencer polls.

A task is advanced once per tick with the tick's ``dt``. It either makes
partial progress and waits for the next tick, or finishes; the sequencer then
invokes the task's continuation within the same tick.
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

import jax.numpy as jnp


def smoothstep(t: float) -> float:
    """Cubic ease-in/ease-out: 3t² - 2t³ with t clamped to [0, 1]."""
    t = min(max(t, 0.0), 1.0)
    return t * t * (3.0 - 2.0 * t)


def lerp(start, end, fraction: float):
    """Linear interpolation that lands exactly on ``end`` at fraction 1."""
    if fraction >= 1.0:
        return end
    return start + (end - start) * fraction


def move_duration(distance: float, speed: float, min_duration: float = 1e-4) -> float:
    """Time to cover ``distance`` at ``speed``, floored to ``min_duration``."""
    if speed <= 0.0:
        return min_duration
    return max(min_duration, float(distance) / speed)


class EaseTask:
    """Smoothstep-eased interpolation over a fixed duration.

    ``apply`` receives the eased fraction every tick; the final call always
    receives exactly 1.0.
    """

    def __init__(self, name: str, duration: float, apply: Callable[[float], None],
                 on_complete: Optional[Callable[[], None]] = None):
        self.name = name
        self.duration = duration
        self.progress = 0.0
        self.on_complete = on_complete
        self._apply = apply

    @property
    def done(self) -> bool:
        return self.progress >= 1.0

    def advance(self, dt: float) -> bool:
        """Make one tick of progress. Returns True once the move is complete."""
        if self.done:
            return True
        self.progress = min(1.0, self.progress + dt / self.duration)
        self._apply(smoothstep(self.progress))
        return self.done


@dataclass(frozen=True)
class Hold:
    """Fixed-duration wait inside a :class:`ScriptTask`."""
    seconds: float


Step = Union[Hold, Callable[[], None]]


class ScriptTask:
    """A fixed sub-sequence of actions separated by holds.

    Actions run as soon as they are reached; a hold consumes tick time until
    its duration has elapsed. Leading actions run in :meth:`start`.
    """

    def __init__(self, name: str, steps: Iterable[Step],
                 on_complete: Optional[Callable[[], None]] = None):
        self.name = name
        self.on_complete = on_complete
        self._steps = deque(steps)
        self._elapsed = 0.0

    @property
    def done(self) -> bool:
        return not self._steps

    def start(self) -> None:
        self.advance(0.0)

    def advance(self, dt: float) -> bool:
        consumed = False
        while self._steps:
            step = self._steps[0]
            if isinstance(step, Hold):
                if not consumed:
                    self._elapsed += dt
                    consumed = True
                if self._elapsed < step.seconds:
                    return False
                self._steps.popleft()
                self._elapsed = 0.0
            else:
                self._steps.popleft()
                step()
        return True


def lerp_position(start, end):
    """Build an ``apply`` callback body interpolating two (3,) positions."""
    start = jnp.asarray(start, dtype=jnp.float64)
    end = jnp.asarray(end, dtype=jnp.float64)
    return lambda fraction: lerp(start, end, fraction)
