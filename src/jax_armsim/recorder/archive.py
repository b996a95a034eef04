"""Run archive: named, independent copies of finished timelines."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from .frame import Frame
from .timeline import Timeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SavedRun:
    """An archived run.

    Attributes:
        name: unique display name
        load_mass: load mass in kg when the run was saved
        frames: deep-copied frames, never shared with the live timeline
    """
    name: str
    load_mass: float
    frames: Tuple[Frame, ...]
    _timeline: Timeline = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_timeline", Timeline(self.frames))

    def timeline(self) -> Timeline:
        """The Timeline over this run's frames, built once at save time."""
        return self._timeline


class RunArchive:
    """Holds saved runs until :meth:`clear` is called."""

    def __init__(self):
        self._runs: List[SavedRun] = []

    def __len__(self) -> int:
        return len(self._runs)

    def __iter__(self) -> Iterator[SavedRun]:
        return iter(self._runs)

    @property
    def runs(self) -> Tuple[SavedRun, ...]:
        return tuple(self._runs)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(run.name for run in self._runs)

    def get(self, index: int) -> SavedRun:
        return self._runs[index]

    def save(self, frames: Iterable[Frame], load_mass: float = 0.0,
             name: Optional[str] = None) -> Optional[SavedRun]:
        """Deep-copy ``frames`` into a new run.

        Without a name, runs are called "Run N" with the load mass appended.
        A name already in use gets a numeric suffix.

        Returns:
            The saved run, or None when there was nothing to save.
        """
        copied = tuple(frame.copy() for frame in frames)
        if not copied:
            logger.warning("[RunArchive] Nothing recorded; run not saved")
            return None

        if name is None:
            name = f"Run {len(self._runs) + 1}"
            if load_mass > 0.0:
                name += f" - {load_mass:.1f}kg"
        name = self._unique(name)

        run = SavedRun(name=name, load_mass=float(load_mass), frames=copied)
        self._runs.append(run)
        logger.info(f"[RunArchive] Saved '{name}' ({len(copied)} frames)")
        return run

    def clear(self) -> None:
        logger.info(f"[RunArchive] Cleared {len(self._runs)} runs")
        self._runs.clear()

    def _unique(self, name: str) -> str:
        taken = set(self.names)
        if name not in taken:
            return name
        suffix = 2
        while f"{name} ({suffix})" in taken:
            suffix += 1
        return f"{name} ({suffix})"
