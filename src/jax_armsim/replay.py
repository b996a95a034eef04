"""Scrubber: applies recorded frames to the live rig during replay.

Replay bypasses the solver and the sequencer. The scrubber owns the IK
target, writes the chain rotations directly, pins the held object to its
recorded pose and shows the recorded telemetry values.
"""

import logging

import jax.numpy as jnp

from .errors import FrameShapeError
from .ik.target import IKTarget, TargetOwner
from .recorder.frame import Frame
from .rig import Rig
from .scene import HeldObject

logger = logging.getLogger(__name__)


class Scrubber:
    """Writes frames onto the rig, target and held object."""

    def __init__(self, rig: Rig, target: IKTarget, held_object: HeldObject):
        self._rig = rig
        self._target = target
        self._held = held_object
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def enter(self) -> None:
        """Take over the held object and freeze telemetry estimation."""
        if self._active:
            return
        self._held.kinematic = True
        self._rig.telemetry.enter_replay()
        self._active = True
        logger.debug("[Scrubber] Entered replay")

    def exit(self) -> None:
        """Hand the held object back to physics and resume estimation."""
        if not self._active:
            return
        self._held.kinematic = False
        self._rig.telemetry.exit_replay()
        self._active = False
        logger.debug("[Scrubber] Exited replay")

    def validate(self, frame: Frame) -> None:
        """Raise FrameShapeError unless ``frame`` fits the current rig."""
        chain = self._rig.chain
        shape = tuple(jnp.shape(frame.joint_rotations))
        if shape != (chain.num_links, 3, 3):
            raise FrameShapeError(
                f"frame holds rotations of shape {shape}, chain expects "
                f"{(chain.num_links, 3, 3)}")
        self._rig.telemetry.check_snapshot(frame.pseudo_torques, frame.joint_velocities)

    def apply_frame(self, frame: Frame) -> None:
        """Show ``frame`` verbatim. Idempotent; never records or changes phase."""
        self.validate(frame)
        self._target.move_to(frame.target_position, TargetOwner.SCRUBBER)
        if not self._active:
            self.enter()

        chain = self._rig.chain
        chain.set_joint_rotations(frame.joint_rotations)

        self._held.set_pose(frame.held_position, frame.held_rotation)
        self._held.attached = frame.held
        self._held.kinematic = True

        telemetry = self._rig.telemetry
        telemetry.apply_snapshot(
            frame.pseudo_torques,
            frame.joint_velocities,
            frame.ee_velocity,
            frame.ee_acceleration,
        )
        telemetry.resync(chain.joint_rotations, chain.end_effector_position)
