"""The IK target: a single world position with exactly one writer at a time."""

import enum
import logging

import jax.numpy as jnp
from jax import Array

logger = logging.getLogger(__name__)


class TargetOwner(enum.Enum):
    SEQUENCER = "sequencer"
    SCRUBBER = "scrubber"


class TargetOwnershipError(RuntimeError):
    """Raised when a component writes the IK target without owning it."""


class IKTarget:
    """Mutable world position the solver drives the chain toward.

    The sequencer owns the target during live motion and the scrubber owns
    it during replay. Ownership changes hands only through :meth:`claim`.
    """

    def __init__(self, position, owner: TargetOwner = TargetOwner.SEQUENCER):
        self._position = jnp.asarray(position, dtype=jnp.float64)
        self._owner = owner

    @property
    def position(self) -> Array:
        return self._position

    @property
    def owner(self) -> TargetOwner:
        return self._owner

    def claim(self, owner: TargetOwner) -> None:
        if owner is not self._owner:
            logger.debug(f"[IKTarget] Ownership {self._owner.value} -> {owner.value}")
        self._owner = owner

    def move_to(self, position, owner: TargetOwner) -> None:
        if owner is not self._owner:
            raise TargetOwnershipError(
                f"IK target is owned by {self._owner.value}, not {owner.value}")
        position = jnp.asarray(position, dtype=jnp.float64)
        if position.shape != (3,):
            raise ValueError(f"target position must have shape (3,), got {position.shape}")
        self._position = position
