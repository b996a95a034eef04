"""Derived telemetry: pseudo-torque per joint and end-effector motion.

Pseudo-torque is a finite-difference proxy for joint effort, the angular
speed of each tracked joint scaled by the carried load. It is not a dynamics
model. End-effector velocity and acceleration are first differences of
position and of the raw velocity. Every signal is exponentially smoothed.

While replaying, nothing is recomputed: the estimator only keeps its
previous-pose reference in sync with the scrubbed pose and shows values
copied verbatim from the active frame.
"""

import logging
from typing import NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
from jax import Array

from .config import TelemetryConfig
from .errors import FrameShapeError
from .transforms import so3

logger = logging.getLogger(__name__)


def load_factor(
    mass: float,
    reference_mass: float = 10.0,
    influence_exponent: float = 0.6,
    max_load_factor: float = 3.5,
) -> float:
    """Pseudo-torque scale for a carried load.

    Loads lighter than ``reference_mass`` scale by 1; heavier ones by
    ``(mass / reference_mass) ** influence_exponent``, capped at
    ``max_load_factor``.
    """
    if reference_mass <= 0.0:
        return 1.0
    ratio = max(mass / reference_mass, 1.0)
    return min(max(ratio ** influence_exponent, 1.0), max_load_factor)


class TelemetryStep(NamedTuple):
    torques: Array
    velocity: Array
    smoothed_velocity: Array
    smoothed_acceleration: Array


@jax.jit
def telemetry_step(
    prev_rotations: Array,
    rotations: Array,
    smoothed_torques: Array,
    prev_position: Array,
    position: Array,
    prev_velocity: Array,
    smoothed_velocity: Array,
    smoothed_acceleration: Array,
    dt,
    scale,
    smoothing_rate,
) -> TelemetryStep:
    """One estimator update. ``dt`` must already be floored.

    Smoothing is ``lerp(s, x, clamp01(dt * smoothing_rate))``.
    """
    alpha = jnp.clip(dt * smoothing_rate, 0.0, 1.0)

    # degrees per second
    angular_speed = jnp.degrees(so3.angle_between(prev_rotations, rotations)) / dt
    torques = smoothed_torques + (angular_speed * scale - smoothed_torques) * alpha

    velocity = (position - prev_position) / dt
    acceleration = (velocity - prev_velocity) / dt

    return TelemetryStep(
        torques=torques,
        velocity=velocity,
        smoothed_velocity=smoothed_velocity + (velocity - smoothed_velocity) * alpha,
        smoothed_acceleration=(smoothed_acceleration
                               + (acceleration - smoothed_acceleration) * alpha),
    )


class TelemetryEstimator:
    """Process-lifetime telemetry state for the tracked joints.

    Args:
        joint_indices: chain link indices to track (tooling links excluded)
        config: estimator configuration
    """

    def __init__(self, joint_indices: Sequence[int], config: Optional[TelemetryConfig] = None):
        self._config = config or TelemetryConfig()
        self._indices = tuple(int(i) for i in joint_indices)
        self._index_array = jnp.asarray(self._indices, dtype=jnp.int32)

        k = len(self._indices)
        self._prev_rotations = jnp.broadcast_to(jnp.eye(3), (k, 3, 3))
        self._prev_position = jnp.zeros(3)
        self._prev_velocity = jnp.zeros(3)
        self._torques = jnp.zeros(k)
        self._joint_velocities = jnp.zeros(k)
        self._velocity = jnp.zeros(3)
        self._acceleration = jnp.zeros(3)
        self._replaying = False

        logger.info(f"[TelemetryEstimator] {k} joints tracked")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    @property
    def joint_indices(self):
        return self._indices

    @property
    def joint_count(self) -> int:
        return len(self._indices)

    @property
    def is_replaying(self) -> bool:
        return self._replaying

    @property
    def torques(self) -> Array:
        """(k,) smoothed pseudo-torque per tracked joint."""
        return self._torques

    @property
    def joint_velocities(self) -> Array:
        """(k,) joint velocity shown alongside the torques (degrees/s)."""
        return self._joint_velocities

    @property
    def ee_velocity(self) -> Array:
        return self._velocity

    @property
    def ee_acceleration(self) -> Array:
        return self._acceleration

    @property
    def torque_levels(self) -> Array:
        """Torques normalized to [0, 1] for display."""
        return jnp.clip(self._torques / self._config.max_pseudo_torque, 0.0, 1.0)

    @property
    def velocity_level(self) -> float:
        return float(jnp.clip(
            jnp.linalg.norm(self._velocity) / self._config.max_velocity, 0.0, 1.0))

    @property
    def acceleration_level(self) -> float:
        return float(jnp.clip(
            jnp.linalg.norm(self._acceleration) / self._config.max_acceleration, 0.0, 1.0))

    # -------------------------------------------------------------------------
    # Live estimation
    # -------------------------------------------------------------------------

    def load_factor(self, mass: float) -> float:
        cfg = self._config
        return load_factor(mass, cfg.reference_mass, cfg.influence_exponent, cfg.max_load_factor)

    def reset(self, joint_rotations: Array, ee_position: Array) -> None:
        """Zero every signal and take the current pose as the reference."""
        k = self.joint_count
        self._torques = jnp.zeros(k)
        self._joint_velocities = jnp.zeros(k)
        self._velocity = jnp.zeros(3)
        self._acceleration = jnp.zeros(3)
        self.resync(joint_rotations, ee_position)

    def resync(self, joint_rotations: Array, ee_position: Array) -> None:
        """Take the given pose as the previous-pose reference without recomputing."""
        self._prev_rotations = jnp.asarray(joint_rotations)[self._index_array]
        self._prev_position = jnp.asarray(ee_position)
        self._prev_velocity = jnp.zeros(3)

    def update(
        self,
        joint_rotations: Array,
        ee_position: Array,
        dt: float,
        load_mass: Optional[float] = None,
        joint_velocities: Optional[Array] = None,
    ) -> None:
        """Advance all signals by one tick.

        Args:
            joint_rotations: (n, 3, 3) full chain rotations
            ee_position: (3,) end-effector world position
            dt: tick duration, floored to ``min_dt``
            load_mass: mass of the held load, or None when nothing is held
            joint_velocities: (k,) measured joint velocities to display
        """
        if self._replaying:
            self.resync(joint_rotations, ee_position)
            return

        cfg = self._config
        dt = max(float(dt), cfg.min_dt)
        scale = 1.0 if load_mass is None else self.load_factor(load_mass)

        rotations = jnp.asarray(joint_rotations)[self._index_array]
        ee_position = jnp.asarray(ee_position)

        step = telemetry_step(
            self._prev_rotations, rotations, self._torques,
            self._prev_position, ee_position, self._prev_velocity,
            self._velocity, self._acceleration,
            dt, scale, cfg.smoothing_rate,
        )

        self._torques = step.torques
        self._velocity = step.smoothed_velocity
        self._acceleration = step.smoothed_acceleration
        self._prev_velocity = step.velocity
        self._prev_rotations = rotations
        self._prev_position = ee_position
        if joint_velocities is not None:
            self._joint_velocities = jnp.asarray(joint_velocities, dtype=jnp.float64)

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def enter_replay(self) -> None:
        self._replaying = True

    def exit_replay(self) -> None:
        self._replaying = False

    def check_snapshot(self, torques: Array, joint_velocities: Array) -> None:
        """Raise FrameShapeError unless the snapshot matches the tracked joints."""
        for label, values in (("pseudo-torque", torques), ("joint velocity", joint_velocities)):
            if len(values) != self.joint_count:
                raise FrameShapeError(
                    f"{label} snapshot has {len(values)} values, "
                    f"estimator tracks {self.joint_count} joints")

    def apply_snapshot(
        self,
        torques: Array,
        joint_velocities: Array,
        ee_velocity: Array,
        ee_acceleration: Array,
    ) -> None:
        """Show recorded values verbatim."""
        self.check_snapshot(torques, joint_velocities)
        self._torques = torques
        self._joint_velocities = joint_velocities
        self._velocity = ee_velocity
        self._acceleration = ee_acceleration
