"""Frame: the complete recorded state of one simulation tick."""

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct


@struct.dataclass
class Frame:
    """Immutable snapshot of the rig, IK target, held object and telemetry.

    Scalars are static PyTree metadata; every array field is a leaf, so
    ``jax.tree_util`` maps touch exactly the recorded numeric data.

    Attributes:
        time: simulation time of the tick (seconds)
        phase: name of the motion phase at capture
        held: whether the object was attached to the end-effector
        target_position: (3,) IK target
        joint_rotations: (n, 3, 3) chain joint rotations
        held_position: (3,) held-object world position
        held_rotation: (3, 3) held-object world orientation
        pseudo_torques: (k,) smoothed pseudo-torque per tracked joint
        joint_velocities: (k,) joint velocity per tracked joint
        ee_velocity: (3,) smoothed end-effector velocity
        ee_acceleration: (3,) smoothed end-effector acceleration
    """
    time: float = struct.field(pytree_node=False)
    phase: str = struct.field(pytree_node=False)
    held: bool = struct.field(pytree_node=False)
    target_position: Array
    joint_rotations: Array
    held_position: Array
    held_rotation: Array
    pseudo_torques: Array
    joint_velocities: Array
    ee_velocity: Array
    ee_acceleration: Array

    def copy(self) -> "Frame":
        """Deep copy with freshly allocated arrays."""
        return jax.tree_util.tree_map(jnp.array, self)
