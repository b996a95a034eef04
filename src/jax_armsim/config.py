"""Configuration for the pick-and-place simulation.

This module contains every tunable of the solver, the motion sequencer, the
telemetry estimator and the actuation mapper, grouped in plain dataclasses.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


@dataclass
class SolverConfig:
    """Configuration for the CCD solver.

    Attributes:
        max_iterations: Upper bound on full passes per solver call.
        tolerance: Tip-to-target distance that ends solving early (meters).
    """

    max_iterations: int = 15
    tolerance: float = 0.01


@dataclass
class MotionConfig:
    """Configuration for the pick-and-place sequencer.

    Attributes:
        movement_speed: IK target speed for point-to-point moves (m/s).
        safe_height_offset: Clearance above cube and pad (meters).
        approach_offset: Horizontal offset added to grasp/release points.
        gripper_upper_limit: Open angle of the first gripper finger (degrees).
        gripper_lower_limit: Open angle of the second gripper finger (degrees).
        gripper_speed: Finger speed (degrees/s).
        grasp_close_hold: Wait after closing before attaching the cube (s).
        grasp_settle_hold: Wait after attaching before lifting (s).
        release_settle_hold: Wait after detaching before opening (s).
        release_open_hold: Wait after opening before returning home (s).
        min_duration: Floor applied to every eased move duration (s).
    """

    # Arm motion
    movement_speed: float = 1.0
    safe_height_offset: float = 0.2
    approach_offset: List[float] = field(default_factory=lambda: [0.1, 0.0, 0.0])

    # Gripper
    gripper_upper_limit: float = 30.0
    gripper_lower_limit: float = -30.0
    gripper_speed: float = 60.0

    # Scripted holds
    grasp_close_hold: float = 1.0
    grasp_settle_hold: float = 0.5
    release_settle_hold: float = 0.5
    release_open_hold: float = 1.0

    min_duration: float = 1e-4


@dataclass
class TelemetryConfig:
    """Configuration for the telemetry estimator.

    Attributes:
        reference_mass: Load mass with a scale factor of 1 (kg).
        influence_exponent: Sensitivity to the mass ratio (0.5-0.8 works well).
        max_load_factor: Upper bound on the load scale factor.
        smoothing_rate: Exponential smoothing rate (1/s).
        min_dt: Floor on the time step used in finite differences (s).
        max_pseudo_torque: Pseudo-torque mapped to a display level of 1.
        max_velocity: End-effector speed mapped to a display level of 1 (m/s).
        max_acceleration: End-effector acceleration mapped to 1 (m/s^2).
        include_grippers: Track links whose name contains exclude_pattern.
        exclude_pattern: Name fragment marking end-effector tooling links.
    """

    # Load scaling
    reference_mass: float = 10.0
    influence_exponent: float = 0.6
    max_load_factor: float = 3.5

    # Smoothing
    smoothing_rate: float = 5.0
    min_dt: float = 1e-4

    # Display normalization
    max_pseudo_torque: float = 100.0
    max_velocity: float = 2.0
    max_acceleration: float = 10.0

    include_grippers: bool = False
    exclude_pattern: str = "gripper"


@dataclass
class ActuationConfig:
    """Configuration for mapping solved rotations onto actuator drives.

    Attributes:
        clamp_to_limits: Clamp drive targets to the link limits.
    """

    clamp_to_limits: bool = False


@dataclass
class SimulationConfig:
    """Top-level configuration for :class:`PickAndPlaceSimulation`."""

    solver: SolverConfig = field(default_factory=SolverConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    actuation: ActuationConfig = field(default_factory=ActuationConfig)

    # Load mass accepted from the control surface is floored to this (kg)
    min_load_mass: float = 0.01

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the configuration to a dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        """Create a SimulationConfig from a (possibly partial) dictionary."""
        return cls(
            solver=SolverConfig(**data.get("solver", {})),
            motion=MotionConfig(**data.get("motion", {})),
            telemetry=TelemetryConfig(**data.get("telemetry", {})),
            actuation=ActuationConfig(**data.get("actuation", {})),
            min_load_mass=data.get("min_load_mass", 0.01),
        )


def load_config(path: Optional[Union[str, Path]] = None) -> SimulationConfig:
    """Load a SimulationConfig from a JSON file, or defaults when path is None."""
    if path is None:
        return SimulationConfig()
    with open(path, "r") as f:
        return SimulationConfig.from_dict(json.load(f))
