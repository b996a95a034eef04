"""Pick-and-place simulation: the per-tick loop and the control surface.

Example:
    chain = JointChain(load_chain("arm.urdf"))
    scene = Scene(HeldObject("cube", [0.4, 0.0, 0.05]), SceneNode("pad", [0.0, 0.4, 0.0]))
    sim = PickAndPlaceSimulation(chain, scene)

    sim.play()
    while sim.is_recording:
        sim.tick(1.0 / 60.0)

    sim.save_run()
    sim.scrub_to(2.5)
"""

import logging
import math
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .actuation import ActuationMapper, Actuator, KinematicActuator
from .chain import JointChain
from .config import SimulationConfig
from .diagnostics import DiagnosticsSink, GraphSeries
from .errors import FrameShapeError
from .ik import CCDSolver, IKTarget
from .io import load_chain
from .motion import MotionPhase, PickAndPlaceSequencer
from .recorder import Frame, RunArchive, Timeline, TimelineRecorder
from .replay import Scrubber
from .rig import Rig
from .scene import Scene

logger = logging.getLogger(__name__)


class PickAndPlaceSimulation:
    """Owns every component and runs them in a fixed order once per tick.

    Live tick: sequencer, CCD solve, held-object follow, actuation, telemetry,
    diagnostics, then (while a run is active) one recorded frame. Replay
    tick: telemetry resync and actuation only.

    Args:
        chain: reference joint chain driven by the solver
        scene: the cube and the target pad
        config: simulation configuration
        actuator: arm drives, one joint per chain link
        gripper: finger drives (two joints)
        sink: optional diagnostics receiver
    """

    def __init__(
        self,
        chain: JointChain,
        scene: Scene,
        config: Optional[SimulationConfig] = None,
        actuator: Optional[Actuator] = None,
        gripper: Optional[Actuator] = None,
        sink: Optional[DiagnosticsSink] = None,
    ):
        self._config = config or SimulationConfig()
        self._scene = scene
        self._sink = sink

        self._rig = Rig(chain, self._config.telemetry)
        self._target = IKTarget(chain.end_effector_position)
        self._actuator = actuator if actuator is not None else KinematicActuator(
            chain.num_links, chain.model.link_names)
        self._gripper = gripper if gripper is not None else KinematicActuator(
            2, ("gripper_left", "gripper_right"))

        self._solver = CCDSolver(self._config.solver)
        self._mapper = ActuationMapper(self._config.actuation)
        self._sequencer = PickAndPlaceSequencer(
            chain, self._target, scene, self._gripper, self._config.motion,
            on_phase_change=self._on_phase_change,
        )
        self._recorder = TimelineRecorder()
        self._archive = RunArchive()
        self._scrubber = Scrubber(self._rig, self._target, scene.cube)

        self._sim_time = 0.0
        self._recording = False
        self._selected_joint = 0
        self._selected_run = 0

        self._mapper.apply(chain, self._actuator)
        logger.info(
            f"[PickAndPlaceSimulation] Ready: {chain.num_links} links, "
            f"{self._rig.telemetry.joint_count} tracked joints")

    @classmethod
    def from_urdf(
        cls,
        urdf_path: Union[str, Path],
        scene: Scene,
        config: Optional[SimulationConfig] = None,
        sink: Optional[DiagnosticsSink] = None,
    ) -> "PickAndPlaceSimulation":
        """Build a simulation whose reference chain is loaded from a URDF file."""
        return cls(JointChain(load_chain(urdf_path)), scene, config=config, sink=sink)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def rig(self) -> Rig:
        return self._rig

    @property
    def chain(self) -> JointChain:
        return self._rig.chain

    @property
    def target(self) -> IKTarget:
        return self._target

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def actuator(self) -> Actuator:
        return self._actuator

    @property
    def gripper(self) -> Actuator:
        return self._gripper

    @property
    def solver(self) -> CCDSolver:
        return self._solver

    @property
    def sequencer(self) -> PickAndPlaceSequencer:
        return self._sequencer

    @property
    def recorder(self) -> TimelineRecorder:
        return self._recorder

    @property
    def archive(self) -> RunArchive:
        return self._archive

    @property
    def phase(self) -> MotionPhase:
        return self._sequencer.phase

    @property
    def sim_time(self) -> float:
        return self._sim_time

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_replaying(self) -> bool:
        return self._sequencer.is_replaying

    @property
    def selected_joint(self) -> int:
        return self._selected_joint

    @property
    def selected_run(self) -> int:
        return self._selected_run

    @property
    def load_mass(self) -> float:
        return self._scene.cube.mass

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self, dt: float) -> None:
        """Advance the simulation by ``dt`` seconds."""
        chain = self._rig.chain

        if self._sequencer.is_replaying:
            self._rig.resync_telemetry()
            self._drive(dt)
            return

        self._sequencer.tick(dt)
        self._solver.solve(chain, self._target.position)
        self._scene.cube.follow(chain.end_effector_transform)
        self._drive(dt)

        cube = self._scene.cube
        self._rig.update_telemetry(
            dt,
            load_mass=cube.mass if cube.attached else None,
            joint_velocities=self._tracked_joint_velocities(),
        )
        self._push_levels()

        if self._recording and dt > 0.0:
            self._sim_time += dt
            self._recorder.record_frame(
                self._sim_time,
                self._rig,
                self._target,
                cube,
                self._sequencer.phase,
            )
            if self._sink is not None:
                self._sink.highlight_time(self._sim_time)

    def _drive(self, dt: float) -> None:
        self._mapper.apply(self._rig.chain, self._actuator)
        min_dt = self._config.telemetry.min_dt
        for actuator in (self._actuator, self._gripper):
            step = getattr(actuator, "step", None)
            if step is not None:
                step(dt, min_dt)

    def _tracked_joint_velocities(self) -> np.ndarray:
        indices = self._rig.telemetry.joint_indices
        if self._actuator.joint_count != self._rig.chain.num_links:
            return np.zeros(len(indices))
        return np.array([self._actuator.get_joint_velocity(i) for i in indices])

    # -------------------------------------------------------------------------
    # Control surface
    # -------------------------------------------------------------------------

    def play(self) -> bool:
        """Start a new run. From Replay, the rig is reset first."""
        if self._sequencer.is_replaying:
            self.reset()
        if self._sequencer.phase is not MotionPhase.IDLE:
            logger.warning(
                f"[PickAndPlaceSimulation] Play ignored: run in progress "
                f"({self._sequencer.phase.value})")
            return False

        self._recorder.clear()
        self._sim_time = 0.0
        self._selected_run = 0
        self._rig.reset_telemetry()
        self._recording = True
        self._sequencer.play()
        logger.info("[PickAndPlaceSimulation] Run started")
        return True

    def reset(self) -> None:
        """Return everything to the initial state, from any phase."""
        self._recording = False
        self._scrubber.exit()
        self._sequencer.reset()
        self._recorder.clear()
        self._sim_time = 0.0
        self._selected_run = 0
        self._rig.reset_telemetry()
        self._mapper.apply(self._rig.chain, self._actuator)
        for actuator in (self._actuator, self._gripper):
            settle = getattr(actuator, "reset", None)
            if settle is not None:
                settle()
        self._push_levels()
        logger.info("[PickAndPlaceSimulation] Reset")

    def scrub_to(self, time: float) -> Optional[Frame]:
        """Show the selected run's state at ``time``, clamped into its range.

        Returns:
            The applied frame, or None when nothing was applied.
        """
        timeline = self.selected_timeline()
        if not timeline.has_data:
            logger.warning("[PickAndPlaceSimulation] No recorded data to scrub")
            return None

        frame = timeline.frame_at_or_before(timeline.clamp_time(time))
        try:
            self._scrubber.validate(frame)
        except FrameShapeError as e:
            logger.error(f"[PickAndPlaceSimulation] Frame at t={frame.time:.3f}s rejected: {e}")
            return None

        if not self._sequencer.is_replaying:
            self._recording = False
            self._sequencer.enter_replay()
        self._scrubber.apply_frame(frame)

        self._push_levels()
        if self._sink is not None:
            self._sink.highlight_time(frame.time)
        return frame

    def select_joint(self, index: int) -> bool:
        """Choose which tracked joint the graph shows."""
        if not 0 <= index < self._rig.telemetry.joint_count:
            logger.warning(f"[PickAndPlaceSimulation] No tracked joint {index}")
            return False
        self._selected_joint = index
        self._push_series()
        return True

    def save_run(self, name: Optional[str] = None):
        """Archive a copy of the live timeline. Returns the SavedRun or None."""
        return self._archive.save(self._recorder.timeline.frames, self.load_mass, name)

    def clear_runs(self) -> None:
        self._archive.clear()
        if self._selected_run != 0:
            self._selected_run = 0
            self._push_series()

    def select_run(self, index: int) -> bool:
        """Choose the timeline to scrub: 0 is the live run, i is archived run i-1."""
        if not 0 <= index <= len(self._archive):
            logger.warning(f"[PickAndPlaceSimulation] No run at index {index}")
            return False
        self._selected_run = index
        self._push_series()
        return True

    def selected_timeline(self) -> Timeline:
        if self._selected_run == 0:
            return self._recorder.timeline
        return self._archive.get(self._selected_run - 1).timeline()

    def set_load_mass(self, value: Union[str, float]) -> float:
        """Set the cube mass from user input.

        Unparsable input is rejected and the current mass returned unchanged.
        """
        try:
            mass = float(value)
        except (TypeError, ValueError):
            logger.warning(f"[PickAndPlaceSimulation] Invalid load mass {value!r}")
            return self.load_mass
        if not math.isfinite(mass):
            logger.warning(f"[PickAndPlaceSimulation] Invalid load mass {value!r}")
            return self.load_mass

        mass = max(mass, self._config.min_load_mass)
        self._scene.cube.mass = mass
        logger.info(f"[PickAndPlaceSimulation] Load mass set to {mass:.2f}kg")
        return mass

    def joint_graph(self) -> GraphSeries:
        """Series of the selected joint over the selected run."""
        return GraphSeries.from_frames(self.selected_timeline().frames, self._selected_joint)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _on_phase_change(self, previous: MotionPhase, phase: MotionPhase) -> None:
        if (self._recording and phase is MotionPhase.IDLE
                and previous is MotionPhase.RETURNING_HOME):
            self._recording = False
            logger.info(
                f"[PickAndPlaceSimulation] Run finished: {len(self._recorder.timeline)} frames, "
                f"{self._sim_time:.2f}s")
            self._push_series()

    def _push_levels(self) -> None:
        if self._sink is None:
            return
        telemetry = self._rig.telemetry
        self._sink.show_joint_levels([float(v) for v in np.asarray(telemetry.torque_levels)])
        self._sink.show_signal("velocity", telemetry.velocity_level)
        self._sink.show_signal("acceleration", telemetry.acceleration_level)

    def _push_series(self) -> None:
        if self._sink is None:
            return
        self._sink.show_series(self.joint_graph())
