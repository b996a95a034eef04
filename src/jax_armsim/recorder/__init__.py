"""Recording: frames, the live timeline, its recorder and the run archive."""

from .archive import RunArchive, SavedRun
from .frame import Frame
from .recorder import TimelineRecorder
from .timeline import Timeline

__all__ = ["Frame", "Timeline", "TimelineRecorder", "RunArchive", "SavedRun"]
