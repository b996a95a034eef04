"""ChainModel PyTree data structure for the reference joint chain.

This module defines the immutable description of the chain the CCD solver
drives: per-link offsets, rotation axes, anchor orientations and limits. The
mutable joint rotations live in :class:`jax_armsim.chain.JointChain`.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct

# Revolute links always turn about their own local X axis.
LOCAL_X_AXIS = (1.0, 0.0, 0.0)


@struct.dataclass
class ChainModel:
    """Immutable PyTree representation of a root-to-tip joint chain.

    Links are stored in a flat tree using integer parent indices. The last
    link is the end-effector reference point and is never rotated by the
    solver.

    Attributes:
        link_names: Tuple of link names, root first. Static for JIT.
        parent_indices: (n,) parent link index of each link. Root parents itself.
        offsets: (n, 3) link origin expressed in the parent link frame.
            The root offset is expressed in the base frame.
        rest_rotations: (n, 3, 3) fixed rotation from parent frame to the
            link's joint frame, applied before the joint rotation.
        axes: (n, 3) chain-local rotation axis of each link.
        anchor_rotations: (n, 3, 3) maps the link-local frame onto the
            physical joint's rotation frame.
        lower_limits: (n,) lower joint limit in degrees.
        upper_limits: (n,) upper joint limit in degrees.
        movable: (n,) False for fixed links the solver must leave alone.
        base_transform: (4, 4) world pose of the chain base.
    """
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    parent_indices: Array
    offsets: Array
    rest_rotations: Array
    axes: Array
    anchor_rotations: Array
    lower_limits: Array
    upper_limits: Array
    movable: Array
    base_transform: Array

    @property
    def num_links(self) -> int:
        return len(self.link_names)

    def link_index(self, name: str) -> int:
        try:
            return self.link_names.index(name)
        except ValueError:
            raise ValueError(f"Link '{name}' not found in chain model")

    def physical_axes(self) -> Array:
        """(n, 3) joint axes expressed in each link's frame (anchor @ axis)."""
        return jnp.einsum("nij,nj->ni", self.anchor_rotations, self.axes)

    def tracked_indices(self, exclude_pattern: Optional[str] = "gripper") -> Tuple[int, ...]:
        """Indices of links whose name does not contain ``exclude_pattern``."""
        if not exclude_pattern:
            return tuple(range(self.num_links))
        pattern = exclude_pattern.lower()
        return tuple(
            i for i, name in enumerate(self.link_names) if pattern not in name.lower()
        )


@dataclass(frozen=True)
class Link:
    """Read-only view of one link of a :class:`JointChain`."""
    index: int
    name: str
    rotation: Array
    axis: Array
    anchor_rotation: Array
    lower_limit: float
    upper_limit: float
    movable: bool


def serial_chain(
    link_names: Sequence[str],
    offsets,
    anchor_rotations=None,
    rest_rotations=None,
    axes=None,
    lower_limits=None,
    upper_limits=None,
    movable=None,
    base_transform=None,
) -> ChainModel:
    """Build a ChainModel for a serial (unbranched) chain.

    Omitted arguments default to identity anchors and rest rotations, the
    local X axis, unlimited joints, every link movable, and an identity base.

    Args:
        link_names: Link names, root first. At least two are required.
        offsets: (n, 3) link origins in their parent frames.

    Returns:
        ChainModel with parent_indices [0, 0, 1, ..., n-2].
    """
    n = len(link_names)
    if n < 2:
        raise ValueError(f"A joint chain needs at least 2 links, got {n}")

    offsets = jnp.asarray(offsets, dtype=jnp.float64)
    if offsets.shape != (n, 3):
        raise ValueError(f"offsets must have shape ({n}, 3), got {offsets.shape}")

    identity = jnp.broadcast_to(jnp.eye(3), (n, 3, 3))

    def _or_default(value, default, shape):
        if value is None:
            return jnp.asarray(default, dtype=jnp.float64)
        value = jnp.asarray(value, dtype=jnp.float64)
        if value.shape != shape:
            raise ValueError(f"expected shape {shape}, got {value.shape}")
        return value

    parent_indices = jnp.array([0] + list(range(n - 1)), dtype=jnp.int32)

    return ChainModel(
        link_names=tuple(link_names),
        parent_indices=parent_indices,
        offsets=offsets,
        rest_rotations=_or_default(rest_rotations, identity, (n, 3, 3)),
        axes=_or_default(axes, jnp.tile(jnp.array(LOCAL_X_AXIS), (n, 1)), (n, 3)),
        anchor_rotations=_or_default(anchor_rotations, identity, (n, 3, 3)),
        lower_limits=_or_default(lower_limits, jnp.full(n, -180.0), (n,)),
        upper_limits=_or_default(upper_limits, jnp.full(n, 180.0), (n,)),
        movable=(jnp.ones(n, dtype=bool) if movable is None
                 else jnp.asarray(movable, dtype=bool)),
        base_transform=_or_default(base_transform, jnp.eye(4), (4, 4)),
    )
