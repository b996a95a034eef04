"""The Rig: the reference chain plus its telemetry, owned in one place.

Diagnostics read through the Rig's views; only the solver, the sequencer
and the scrubber mutate the chain.
"""

from typing import Optional

from jax import Array

from .chain import JointChain
from .config import TelemetryConfig
from .telemetry import TelemetryEstimator


class Rig:
    """Aggregate of a :class:`JointChain` and its :class:`TelemetryEstimator`."""

    def __init__(self, chain: JointChain, telemetry_config: Optional[TelemetryConfig] = None):
        cfg = telemetry_config or TelemetryConfig()
        exclude = None if cfg.include_grippers else cfg.exclude_pattern
        self.chain = chain
        self.telemetry = TelemetryEstimator(chain.model.tracked_indices(exclude), cfg)
        self.telemetry.reset(chain.joint_rotations, chain.end_effector_position)

    @property
    def joint_names(self):
        """Names of the joints that carry telemetry, in telemetry order."""
        names = self.chain.model.link_names
        return tuple(names[i] for i in self.telemetry.joint_indices)

    @property
    def joint_rotations(self) -> Array:
        return self.chain.joint_rotations

    @property
    def end_effector_position(self) -> Array:
        return self.chain.end_effector_position

    def update_telemetry(self, dt: float, load_mass: Optional[float] = None,
                         joint_velocities: Optional[Array] = None) -> None:
        self.telemetry.update(
            self.chain.joint_rotations,
            self.chain.end_effector_position,
            dt,
            load_mass=load_mass,
            joint_velocities=joint_velocities,
        )

    def resync_telemetry(self) -> None:
        self.telemetry.resync(self.chain.joint_rotations, self.chain.end_effector_position)

    def reset_telemetry(self) -> None:
        self.telemetry.reset(self.chain.joint_rotations, self.chain.end_effector_position)
