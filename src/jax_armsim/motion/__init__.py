"""Scripted motion: eased tasks and the pick-and-place sequencer."""

from .easing import EaseTask, Hold, ScriptTask, lerp, move_duration, smoothstep
from .sequencer import MotionPhase, PickAndPlaceSequencer

__all__ = [
    "EaseTask",
    "Hold",
    "ScriptTask",
    "lerp",
    "move_duration",
    "smoothstep",
    "MotionPhase",
    "PickAndPlaceSequencer",
]
