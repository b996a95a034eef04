"""Boundary between the reference chain and the physical actuators.

The physical simulation backend is external. It is reached through the
:class:`Actuator` protocol; :class:`KinematicActuator` is an in-memory
implementation whose joints follow their drive targets exactly.
"""

import logging
from typing import Optional, Protocol, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from .chain import JointChain
from .config import ActuationConfig
from .transforms import so3

logger = logging.getLogger(__name__)


class Actuator(Protocol):
    """Drive interface of an articulated body (angles in degrees)."""

    @property
    def joint_count(self) -> int: ...

    def set_joint_drive_target(self, joint_index: int, angle_degrees: float) -> None: ...

    def get_joint_drive_target(self, joint_index: int) -> float: ...

    def get_joint_velocity(self, joint_index: int) -> float: ...


class KinematicActuator:
    """Actuator whose joints reach their drive targets instantly.

    Joint velocity is the change of drive target over the last :meth:`step`,
    in degrees per second.
    """

    def __init__(self, joint_count: int, names: Optional[Sequence[str]] = None):
        self._names = tuple(names) if names is not None else tuple(
            f"joint{i}" for i in range(joint_count))
        if len(self._names) != joint_count:
            raise ValueError(f"expected {joint_count} joint names, got {len(self._names)}")
        self._targets = np.zeros(joint_count)
        self._previous = np.zeros(joint_count)
        self._velocities = np.zeros(joint_count)

    @property
    def joint_count(self) -> int:
        return len(self._targets)

    @property
    def names(self):
        return self._names

    @property
    def drive_targets(self) -> np.ndarray:
        return self._targets.copy()

    def set_joint_drive_target(self, joint_index: int, angle_degrees: float) -> None:
        self._targets[joint_index] = float(angle_degrees)

    def get_joint_drive_target(self, joint_index: int) -> float:
        return float(self._targets[joint_index])

    def get_joint_velocity(self, joint_index: int) -> float:
        return float(self._velocities[joint_index])

    def step(self, dt: float, min_dt: float = 1e-4) -> None:
        """Advance one tick: joints land on their targets."""
        self._velocities = (self._targets - self._previous) / max(dt, min_dt)
        self._previous = self._targets.copy()

    def reset(self) -> None:
        """Settle on the current targets: the next step reports zero velocity."""
        self._previous = self._targets.copy()
        self._velocities[:] = 0.0


def drive_targets(chain: JointChain, clamp_to_limits: bool = False) -> Array:
    """Signed drive angle of every link about its physical axis, in degrees.

    The joint rotation is split into axis and angle; the angle takes the sign
    of the axis' projection onto ``anchor @ local_axis``.
    """
    model = chain.model
    axis, angle = so3.to_axis_angle(chain.joint_rotations)
    physical = model.physical_axes()
    physical = physical / jnp.linalg.norm(physical, axis=-1, keepdims=True)

    targets = jnp.degrees(angle) * jnp.sign(jnp.sum(axis * physical, axis=-1))
    if clamp_to_limits:
        targets = jnp.clip(targets, model.lower_limits, model.upper_limits)
    return targets


class ActuationMapper:
    """Converts solved reference-chain rotations into actuator drive targets."""

    def __init__(self, config: Optional[ActuationConfig] = None):
        self._config = config or ActuationConfig()

    def apply(self, chain: JointChain, actuator: Optional[Actuator]) -> bool:
        """Write one drive target per link. Returns False when nothing was written."""
        if actuator is None:
            return False
        if actuator.joint_count != chain.num_links:
            logger.error(
                f"[ActuationMapper] Chain has {chain.num_links} links but actuator "
                f"has {actuator.joint_count} joints; skipping")
            return False

        targets = np.asarray(drive_targets(chain, self._config.clamp_to_limits))
        for i, target in enumerate(targets):
            actuator.set_joint_drive_target(i, float(target))
        return True
