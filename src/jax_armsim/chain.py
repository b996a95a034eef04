"""Forward kinematics and the mutable reference joint chain.

The pure functions in this module compute world poses for every link of a
:class:`ChainModel` from a stack of joint rotations. :class:`JointChain` wraps
them with the per-tick mutable state the solver, sequencer and scrubber write
to, recomputing forward kinematics after every mutation.
"""

from typing import Dict, List, Optional

import jax
import jax.numpy as jnp
from jax import Array

from .core import ChainModel, Link
from .transforms import se3, so3


def local_transforms(model: ChainModel, joint_rotations: Array) -> Array:
    """Parent-to-link transforms of shape (n, 4, 4).

    The local rotation of link i is ``rest_i @ joint_i``; its origin sits at
    ``offset_i`` in the parent frame.
    """
    local_R = so3.multiply(model.rest_rotations, joint_rotations)
    return se3.from_position_and_rotation(model.offsets, local_R)


@jax.jit
def forward_kinematics_world(model: ChainModel, joint_rotations: Array) -> Array:
    """Compute world poses for every link.

    Args:
        model: ChainModel describing the chain
        joint_rotations: (n, 3, 3) joint rotations, one per link

    Returns:
        Array of shape (n, 4, 4) with world poses for all links
    """
    num_links = model.num_links
    T_local = local_transforms(model, joint_rotations)

    world_transforms = jnp.zeros((num_links, 4, 4), dtype=T_local.dtype)
    world_transforms = world_transforms.at[0].set(model.base_transform @ T_local[0])

    def scan_body(carry, i):
        """Processes link `i` using its parent's world pose from `carry`."""
        T_world_to_parent = carry[model.parent_indices[i]]
        carry = carry.at[i].set(T_world_to_parent @ T_local[i])
        return carry, None

    # The root (0) is the base case; scan visits children in index order.
    final_transforms, _ = jax.lax.scan(
        scan_body, world_transforms, jnp.arange(1, num_links))

    return final_transforms


def forward_kinematics(model: ChainModel, joint_rotations: Array) -> Dict[str, Array]:
    """Compute forward kinematics and return a link-name to 4x4 pose mapping."""
    world_transforms = forward_kinematics_world(model, joint_rotations)
    return {name: world_transforms[i] for i, name in enumerate(model.link_names)}


def world_axes(model: ChainModel, world_transforms: Array) -> Array:
    """(n, 3) unit rotation axes in world space: world_R @ anchor @ axis."""
    axes = so3.apply(se3.get_rotation(world_transforms), model.physical_axes())
    return axes / jnp.linalg.norm(axes, axis=-1, keepdims=True)


def end_effector_position(model: ChainModel, joint_rotations: Array) -> Array:
    """World position of the tip link."""
    return se3.get_position(forward_kinematics_world(model, joint_rotations)[-1])


class JointChain:
    """Ordered root-to-tip sequence of links with mutable joint rotations.

    The world pose of every link is recomputed whenever a rotation changes,
    so readers always see poses consistent with the stored rotations.
    """

    def __init__(self, model: ChainModel, joint_rotations: Optional[Array] = None):
        if model.num_links < 2:
            raise ValueError(
                f"A joint chain needs at least 2 links, got {model.num_links}")
        self._model = model
        if joint_rotations is None:
            joint_rotations = jnp.broadcast_to(jnp.eye(3), (model.num_links, 3, 3))
        self._joint_rotations = self._validated(joint_rotations)
        self._world_transforms = forward_kinematics_world(model, self._joint_rotations)

    def _validated(self, joint_rotations) -> Array:
        joint_rotations = jnp.asarray(joint_rotations, dtype=jnp.float64)
        expected = (self._model.num_links, 3, 3)
        if joint_rotations.shape != expected:
            raise ValueError(
                f"joint_rotations must have shape {expected}, got {joint_rotations.shape}")
        return joint_rotations

    def _recompute(self) -> None:
        self._world_transforms = forward_kinematics_world(self._model, self._joint_rotations)

    @property
    def model(self) -> ChainModel:
        return self._model

    @property
    def num_links(self) -> int:
        return self._model.num_links

    @property
    def joint_rotations(self) -> Array:
        """(n, 3, 3) joint rotations. JAX arrays are immutable, so this is a snapshot."""
        return self._joint_rotations

    @property
    def world_transforms(self) -> Array:
        return self._world_transforms

    @property
    def link_positions(self) -> Array:
        return se3.get_position(self._world_transforms)

    @property
    def end_effector_transform(self) -> Array:
        return self._world_transforms[-1]

    @property
    def end_effector_position(self) -> Array:
        return se3.get_position(self._world_transforms[-1])

    def set_joint_rotations(self, joint_rotations: Array) -> None:
        self._joint_rotations = self._validated(joint_rotations)
        self._recompute()

    def set_joint_rotation(self, index: int, rotation: Array) -> None:
        rotation = jnp.asarray(rotation, dtype=jnp.float64)
        self._joint_rotations = self._joint_rotations.at[index].set(rotation)
        self._recompute()

    def link(self, index: int) -> Link:
        m = self._model
        return Link(
            index=index,
            name=m.link_names[index],
            rotation=self._joint_rotations[index],
            axis=m.axes[index],
            anchor_rotation=m.anchor_rotations[index],
            lower_limit=float(m.lower_limits[index]),
            upper_limit=float(m.upper_limits[index]),
            movable=bool(m.movable[index]),
        )

    @property
    def links(self) -> List[Link]:
        return [self.link(i) for i in range(self.num_links)]
