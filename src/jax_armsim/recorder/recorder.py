"""Timeline recorder: samples the full simulation state once per tick.

Example:
    recorder = TimelineRecorder()

    # Once per tick while a run is active and not replaying
    recorder.record_frame(sim_time, rig, target, cube, phase)

    # Later, scrub
    frame = recorder.timeline.frame_at_or_before(2.5)
"""

import logging
from typing import Optional, Union

import jax.numpy as jnp
from jax import Array

from ..ik.target import IKTarget
from ..motion.sequencer import MotionPhase
from ..rig import Rig
from ..scene import HeldObject
from .frame import Frame
from .timeline import Timeline

logger = logging.getLogger(__name__)


class TimelineRecorder:
    """Single writer of the live timeline.

    The timeline is cleared at the start of every run. Readers get snapshot
    tuples from :attr:`Timeline.frames`, so no locking is needed between
    ticks.
    """

    def __init__(self, timeline: Optional[Timeline] = None):
        self._timeline = timeline if timeline is not None else Timeline()

    @property
    def timeline(self) -> Timeline:
        return self._timeline

    @property
    def has_data(self) -> bool:
        return self._timeline.has_data

    @property
    def max_time(self) -> float:
        return self._timeline.max_time

    def clear(self) -> None:
        if self._timeline.has_data:
            logger.debug(f"[TimelineRecorder] Cleared {len(self._timeline)} frames")
        self._timeline.clear()

    def record_frame(
        self,
        time: float,
        rig: Rig,
        target: IKTarget,
        held_object: HeldObject,
        phase: Union[MotionPhase, str],
        joint_velocities: Optional[Array] = None,
    ) -> Frame:
        """Append one frame. ``time`` must exceed the previous frame's time."""
        telemetry = rig.telemetry
        if joint_velocities is None:
            joint_velocities = telemetry.joint_velocities

        frame = Frame(
            time=float(time),
            phase=phase.value if isinstance(phase, MotionPhase) else str(phase),
            held=bool(held_object.attached),
            target_position=target.position,
            joint_rotations=rig.chain.joint_rotations,
            held_position=held_object.position,
            held_rotation=held_object.rotation,
            pseudo_torques=telemetry.torques,
            joint_velocities=jnp.asarray(joint_velocities, dtype=jnp.float64),
            ee_velocity=telemetry.ee_velocity,
            ee_acceleration=telemetry.ee_acceleration,
        )
        self._timeline.append(frame)

        if len(self._timeline) % 100 == 1:
            logger.debug(
                f"[TimelineRecorder] Frame {len(self._timeline)} at t={frame.time:.3f}s "
                f"phase={frame.phase} held={frame.held}")
        return frame
