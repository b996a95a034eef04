"""Diagnostics output: the sink protocol and per-joint graph series.

Rendering is external. The simulation pushes normalized levels, named
signals, graph series and the highlight time through a
:class:`DiagnosticsSink`; :class:`GraphSeries` holds the host-side numbers a
graph widget needs, already mapped into its coordinate frame.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence, Tuple

import numpy as np

from .recorder.frame import Frame


class DiagnosticsSink(Protocol):
    """Display-side receiver of diagnostic signals."""

    def show_joint_levels(self, levels: Sequence[float]) -> None: ...

    def show_signal(self, name: str, value: float) -> None: ...

    def show_series(self, series: "GraphSeries") -> None: ...

    def highlight_time(self, time: float) -> None: ...


def _inverse_lerp(low: float, high: float, values):
    values = np.asarray(values, dtype=np.float64)
    if high == low:
        return np.zeros_like(values)
    return np.clip((values - low) / (high - low), 0.0, 1.0)


@dataclass(frozen=True)
class GraphSeries:
    """Pseudo-torque and joint velocity of one joint over a recorded run.

    Attributes:
        joint_index: index into the tracked joints
        times: (m,) frame times
        torques: (m,) pseudo-torque samples
        velocities: (m,) joint velocity samples
    """
    joint_index: int
    times: np.ndarray
    torques: np.ndarray
    velocities: np.ndarray

    @classmethod
    def from_frames(cls, frames: Iterable[Frame], joint_index: int) -> "GraphSeries":
        frames = tuple(frames)
        times = np.array([f.time for f in frames], dtype=np.float64)
        torques = np.array([float(f.pseudo_torques[joint_index]) for f in frames],
                           dtype=np.float64)
        velocities = np.array([float(f.joint_velocities[joint_index]) for f in frames],
                              dtype=np.float64)
        return cls(joint_index, times, torques, velocities)

    @property
    def empty(self) -> bool:
        return self.times.size == 0

    @property
    def time_range(self) -> Tuple[float, float]:
        if self.empty:
            return 0.0, 0.0
        return float(self.times[0]), float(self.times[-1])

    @property
    def value_range(self) -> Tuple[float, float]:
        """Shared range of both curves, widened by 1 each way when flat."""
        if self.empty:
            return -1.0, 1.0
        values = np.concatenate([self.torques, self.velocities])
        low, high = float(values.min()), float(values.max())
        if np.isclose(low, high):
            low -= 1.0
            high += 1.0
        return low, high

    def _to_graph(self, times, values, width: float, height: float) -> np.ndarray:
        tx = _inverse_lerp(*self.time_range, times)
        ty = _inverse_lerp(*self.value_range, values)
        half_w, half_h = 0.5 * width, 0.5 * height
        return np.stack([-half_w + tx * width, -half_h + ty * height], axis=-1)

    def to_points(self, width: float, height: float) -> Tuple[np.ndarray, np.ndarray]:
        """(m, 2) torque and velocity polylines centered on the graph origin."""
        return (self._to_graph(self.times, self.torques, width, height),
                self._to_graph(self.times, self.velocities, width, height))

    def highlight_index(self, time: float) -> Optional[int]:
        """Index of the sample nearest to ``time`` clamped into the series."""
        if self.empty:
            return None
        start, end = self.time_range
        clamped = min(max(time, start), end)
        return int(np.argmin(np.abs(self.times - clamped)))

    def highlight_point(self, time: float, width: float, height: float) -> Optional[np.ndarray]:
        """(2,) graph position of the torque sample marked at ``time``."""
        index = self.highlight_index(time)
        if index is None:
            return None
        return self._to_graph(self.times[index], self.torques[index], width, height)
