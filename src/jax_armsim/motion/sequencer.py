"""Finite-state machine choreographing the pick-and-place task.

The task is a linear pipeline of phases. Each phase starts an eased IK
target move (or a scripted sub-sequence for grasping and releasing) whose
completion triggers the next phase:

    IDLE -> MOVING_TO_PRE_GRASP -> LOWERING_TO_GRASP -> GRASPING
         -> LIFTING_CUBE -> MOVING_TO_TARGET_PAD -> LOWERING_TO_RELEASE
         -> RELEASING -> RETURNING_HOME -> IDLE

REPLAY is entered only from outside and freezes sequencing until reset.
At most one arm task, one gripper task and one script task exist at a time;
starting a new one discards its predecessor.
"""

import enum
import logging
from typing import Callable, Optional

import jax.numpy as jnp
from jax import Array

from ..actuation import Actuator
from ..chain import JointChain
from ..config import MotionConfig
from ..ik.target import IKTarget, TargetOwner
from ..scene import Scene
from ..transforms import so3
from .easing import EaseTask, Hold, ScriptTask, lerp, lerp_position, move_duration

logger = logging.getLogger(__name__)

UP = jnp.array([0.0, 0.0, 1.0])


class MotionPhase(enum.Enum):
    IDLE = "Idle"
    MOVING_TO_PRE_GRASP = "MovingToPreGrasp"
    LOWERING_TO_GRASP = "LoweringToGrasp"
    GRASPING = "Grasping"
    LIFTING_CUBE = "LiftingCube"
    MOVING_TO_TARGET_PAD = "MovingToTargetPad"
    LOWERING_TO_RELEASE = "LoweringToRelease"
    RELEASING = "Releasing"
    RETURNING_HOME = "ReturningHome"
    REPLAY = "Replay"


PhaseCallback = Callable[[MotionPhase, MotionPhase], None]

_TASK_SLOTS = ("_gripper_task", "_script_task", "_arm_task")


class PickAndPlaceSequencer:
    """Drives the IK target and gripper through the pick-and-place task.

    The initial IK target position and chain rotations are captured at
    construction; returning home and reset restore them.
    """

    def __init__(
        self,
        chain: JointChain,
        target: IKTarget,
        scene: Scene,
        gripper: Optional[Actuator] = None,
        config: Optional[MotionConfig] = None,
        on_phase_change: Optional[PhaseCallback] = None,
    ):
        self._chain = chain
        self._target = target
        self._scene = scene
        self._gripper = gripper
        self._config = config or MotionConfig()
        self._on_phase_change = on_phase_change

        self._initial_target = target.position
        self._initial_rotations = chain.joint_rotations

        self._phase = MotionPhase.IDLE
        self._arm_task: Optional[EaseTask] = None
        self._gripper_task: Optional[EaseTask] = None
        self._script_task: Optional[ScriptTask] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> MotionPhase:
        return self._phase

    @property
    def is_replaying(self) -> bool:
        return self._phase is MotionPhase.REPLAY

    @property
    def initial_target_position(self) -> Array:
        return self._initial_target

    @property
    def initial_rotations(self) -> Array:
        return self._initial_rotations

    @property
    def arm_task(self) -> Optional[EaseTask]:
        return self._arm_task

    @property
    def gripper_task(self) -> Optional[EaseTask]:
        return self._gripper_task

    @property
    def script_task(self) -> Optional[ScriptTask]:
        return self._script_task

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def play(self) -> bool:
        """Start the task. Accepted only from IDLE."""
        if self._phase is not MotionPhase.IDLE:
            logger.warning(f"[PickAndPlaceSequencer] Play ignored in phase {self._phase.value}")
            return False
        self._set_phase(MotionPhase.MOVING_TO_PRE_GRASP)
        return True

    def reset(self) -> None:
        """Cancel everything and restore the captured initial state, from any phase."""
        self._cancel_tasks()
        self._target.claim(TargetOwner.SEQUENCER)
        self._target.move_to(self._initial_target, TargetOwner.SEQUENCER)
        self._chain.set_joint_rotations(self._initial_rotations)
        self._scene.cube.reset()
        self._change_phase(MotionPhase.IDLE)

    def enter_replay(self) -> None:
        """Freeze sequencing and hand the IK target to the scrubber."""
        if self._phase is MotionPhase.REPLAY:
            return
        self._cancel_tasks()
        self._target.claim(TargetOwner.SCRUBBER)
        self._change_phase(MotionPhase.REPLAY)

    def tick(self, dt: float) -> None:
        """Advance the in-flight tasks by one step of ``dt`` seconds."""
        if self._phase is MotionPhase.REPLAY:
            return

        # Tasks started by a continuation first advance on the next tick
        pending = [(slot, getattr(self, slot)) for slot in _TASK_SLOTS]
        for slot, task in pending:
            if task is None or getattr(self, slot) is not task:
                continue
            if task.advance(dt):
                setattr(self, slot, None)
                if task.on_complete is not None:
                    task.on_complete()

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def _change_phase(self, phase: MotionPhase) -> None:
        previous = self._phase
        self._phase = phase
        logger.debug(f"[PickAndPlaceSequencer] {previous.value} -> {phase.value}")
        if self._on_phase_change is not None:
            self._on_phase_change(previous, phase)

    def _set_phase(self, phase: MotionPhase) -> None:
        self._change_phase(phase)
        self._arm_task = None

        cfg = self._config
        offset = jnp.asarray(cfg.approach_offset, dtype=jnp.float64)
        safe = UP * cfg.safe_height_offset
        cube = self._scene.cube
        cube_position, _ = self._scene.pose(cube.name)
        pad_position, _ = self._scene.pose(self._scene.target_pad.name)

        if phase is MotionPhase.MOVING_TO_PRE_GRASP:
            self._start_gripper(open_gripper=True)
            self._move_target(cube_position + safe + offset, MotionPhase.LOWERING_TO_GRASP)

        elif phase is MotionPhase.LOWERING_TO_GRASP:
            self._move_target(cube_position + offset, MotionPhase.GRASPING)

        elif phase is MotionPhase.GRASPING:
            self._run_script(ScriptTask(
                "grasp",
                [
                    lambda: self._start_gripper(open_gripper=False),
                    Hold(cfg.grasp_close_hold),
                    self._attach_cube,
                    Hold(cfg.grasp_settle_hold),
                ],
                on_complete=lambda: self._set_phase(MotionPhase.LIFTING_CUBE),
            ))

        elif phase is MotionPhase.LIFTING_CUBE:
            self._move_target(self._target.position + safe, MotionPhase.MOVING_TO_TARGET_PAD)

        elif phase is MotionPhase.MOVING_TO_TARGET_PAD:
            self._move_target(pad_position + safe + offset, MotionPhase.LOWERING_TO_RELEASE)

        elif phase is MotionPhase.LOWERING_TO_RELEASE:
            self._move_target(pad_position + UP * cube.size + offset, MotionPhase.RELEASING)

        elif phase is MotionPhase.RELEASING:
            self._run_script(ScriptTask(
                "release",
                [
                    cube.detach,
                    Hold(cfg.release_settle_hold),
                    lambda: self._start_gripper(open_gripper=True),
                    Hold(cfg.release_open_hold),
                ],
                on_complete=lambda: self._set_phase(MotionPhase.RETURNING_HOME),
            ))

        elif phase is MotionPhase.RETURNING_HOME:
            lifted = self._target.position + safe
            self._arm_task = self._target_task(lifted, on_complete=self._return_home)

    def _return_home(self) -> None:
        """Second leg of RETURNING_HOME: target and chain back to their start values."""
        start_target = self._target.position
        start_rotations = self._chain.joint_rotations
        home = self._initial_target
        home_rotations = self._initial_rotations
        position_at = lerp_position(start_target, home)

        def apply(fraction: float) -> None:
            self._target.move_to(position_at(fraction), TargetOwner.SEQUENCER)
            if fraction >= 1.0:
                self._chain.set_joint_rotations(home_rotations)
            else:
                self._chain.set_joint_rotations(
                    so3.slerp(start_rotations, home_rotations, fraction))

        self._arm_task = EaseTask(
            "return_home",
            self._duration_to(home),
            apply,
            on_complete=lambda: self._change_phase(MotionPhase.IDLE),
        )

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def _duration_to(self, destination: Array) -> float:
        distance = float(jnp.linalg.norm(destination - self._target.position))
        return move_duration(distance, self._config.movement_speed, self._config.min_duration)

    def _target_task(self, destination: Array, on_complete: Callable[[], None]) -> EaseTask:
        position_at = lerp_position(self._target.position, destination)
        return EaseTask(
            "move_target",
            self._duration_to(destination),
            lambda fraction: self._target.move_to(position_at(fraction), TargetOwner.SEQUENCER),
            on_complete=on_complete,
        )

    def _move_target(self, destination: Array, next_phase: MotionPhase) -> None:
        self._arm_task = self._target_task(
            destination, on_complete=lambda: self._set_phase(next_phase))

    def _run_script(self, script: ScriptTask) -> None:
        self._script_task = script
        script.start()

    def _start_gripper(self, open_gripper: bool) -> None:
        gripper = self._gripper
        if gripper is None or gripper.joint_count < 2:
            logger.warning("[PickAndPlaceSequencer] Gripper needs two joints; skipping")
            return

        cfg = self._config
        targets = ((cfg.gripper_upper_limit, cfg.gripper_lower_limit) if open_gripper
                   else (0.0, 0.0))
        starts = (gripper.get_joint_drive_target(0), gripper.get_joint_drive_target(1))
        delta = max(abs(s - t) for s, t in zip(starts, targets))

        def apply(fraction: float) -> None:
            for i, (start, end) in enumerate(zip(starts, targets)):
                gripper.set_joint_drive_target(i, lerp(start, end, fraction))

        self._gripper_task = EaseTask(
            "open_gripper" if open_gripper else "close_gripper",
            move_duration(delta, cfg.gripper_speed, cfg.min_duration),
            apply,
        )

    def _attach_cube(self) -> None:
        self._scene.cube.attach(self._chain.end_effector_transform)

    def _cancel_tasks(self) -> None:
        for slot in _TASK_SLOTS:
            setattr(self, slot, None)
