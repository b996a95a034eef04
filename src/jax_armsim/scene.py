"""Scene objects the sequencer reads and moves.

Holding is modelled with an explicit attachment flag plus the object's pose
relative to the end-effector, reapplied every tick, instead of re-parenting
in a scene graph.
"""

import logging
from typing import Optional, Tuple

import jax.numpy as jnp
from jax import Array

from .transforms import se3

logger = logging.getLogger(__name__)


class SceneNode:
    """A named static pose in the scene (e.g. the target pad)."""

    def __init__(self, name: str, position, rotation=None):
        self.name = name
        self.position = jnp.asarray(position, dtype=jnp.float64)
        self.rotation = (jnp.eye(3) if rotation is None
                         else jnp.asarray(rotation, dtype=jnp.float64))


class HeldObject:
    """The object picked up by the arm (the cube).

    Attributes:
        position: (3,) world position
        rotation: (3, 3) world orientation
        size: edge length, used as the stacking height on the pad
        mass: load mass in kg, read by the telemetry estimator
        kinematic: True while physics must not move the object
        attached: True while the object follows the end-effector
    """

    def __init__(self, name: str, position, rotation=None, size: float = 0.05,
                 mass: float = 1.0):
        self.name = name
        self.position = jnp.asarray(position, dtype=jnp.float64)
        self.rotation = (jnp.eye(3) if rotation is None
                         else jnp.asarray(rotation, dtype=jnp.float64))
        self.size = float(size)
        self.mass = float(mass)
        self.kinematic = False
        self.attached = False
        self._relative: Optional[Array] = None
        self._start_position = self.position
        self._start_rotation = self.rotation

    @property
    def transform(self) -> Array:
        return se3.from_position_and_rotation(self.position, self.rotation)

    def attach(self, ee_transform: Array) -> None:
        """Start following the end-effector, keeping the current relative pose."""
        self._relative = se3.inverse(ee_transform) @ self.transform
        self.kinematic = True
        self.attached = True
        logger.debug(f"[HeldObject] {self.name} attached")

    def follow(self, ee_transform: Array) -> None:
        if not self.attached or self._relative is None:
            return
        world = ee_transform @ self._relative
        self.position = se3.get_position(world)
        self.rotation = se3.get_rotation(world)

    def detach(self) -> None:
        """Stop following and hand the object back to physics."""
        self._relative = None
        self.attached = False
        self.kinematic = False
        logger.debug(f"[HeldObject] {self.name} released")

    def set_pose(self, position, rotation) -> None:
        self.position = jnp.asarray(position, dtype=jnp.float64)
        self.rotation = jnp.asarray(rotation, dtype=jnp.float64)

    def reset(self) -> None:
        """Return to the captured start pose with untouched dynamics."""
        self.detach()
        self.position = self._start_position
        self.rotation = self._start_rotation


class Scene:
    """The cube and the target pad, addressable by name."""

    def __init__(self, cube: HeldObject, target_pad: SceneNode):
        self.cube = cube
        self.target_pad = target_pad

    def pose(self, name: str) -> Tuple[Array, Array]:
        for node in (self.cube, self.target_pad):
            if node.name == name:
                return node.position, node.rotation
        raise ValueError(f"Scene node '{name}' not found")
