"""Append-only, time-ordered sequence of frames with floor lookup."""

import bisect
from typing import Iterable, Iterator, List, Optional, Tuple

from .frame import Frame


class Timeline:
    """Frames ordered by strictly increasing time.

    Lookups use floor semantics: the latest frame at or before the query.
    A query earlier than the first frame returns None, as does any query on
    an empty timeline; callers that want the first frame clamp the query.
    """

    def __init__(self, frames: Iterable[Frame] = ()):
        self._frames: List[Frame] = []
        self._times: List[float] = []
        for frame in frames:
            self.append(frame)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]

    @property
    def has_data(self) -> bool:
        return bool(self._frames)

    @property
    def frames(self) -> Tuple[Frame, ...]:
        """Snapshot of the frames; later appends do not show up in it."""
        return tuple(self._frames)

    @property
    def times(self) -> Tuple[float, ...]:
        return tuple(self._times)

    @property
    def start_time(self) -> float:
        return self._times[0] if self._times else 0.0

    @property
    def max_time(self) -> float:
        return self._times[-1] if self._times else 0.0

    def append(self, frame: Frame) -> None:
        if self._times and frame.time <= self._times[-1]:
            raise ValueError(
                f"Frame time {frame.time} is not after the last recorded time {self._times[-1]}")
        self._frames.append(frame)
        self._times.append(frame.time)

    def frame_at_or_before(self, time: float) -> Optional[Frame]:
        """Binary search for the last frame whose time is <= ``time``."""
        index = bisect.bisect_right(self._times, time) - 1
        if index < 0:
            return None
        return self._frames[index]

    def clamp_time(self, time: float) -> float:
        """Clamp ``time`` into the recorded range."""
        if not self._times:
            return time
        return min(max(time, self._times[0]), self._times[-1])

    def clear(self) -> None:
        self._frames.clear()
        self._times.clear()

    def copy(self) -> "Timeline":
        """Deep copy: independent list and independent frame arrays."""
        return Timeline(frame.copy() for frame in self._frames)
