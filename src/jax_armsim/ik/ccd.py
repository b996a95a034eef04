"""Cyclic Coordinate Descent inverse kinematics.

Each pass walks the chain from the link just before the tip back to the
root. For every link it projects the link-to-tip and link-to-target vectors
onto the plane orthogonal to the link's world rotation axis and turns the
link by the signed angle between the two projections. The pure kernel is
JIT-compiled with ``lax`` control flow; :func:`solve` applies it to a
mutable :class:`JointChain`.
"""

import logging
from typing import NamedTuple, Optional

import jax
import jax.numpy as jnp
from jax import Array

from ..chain import JointChain, forward_kinematics_world
from ..config import SolverConfig
from ..core import ChainModel
from ..transforms import se3, so3

logger = logging.getLogger(__name__)


class CCDResult(NamedTuple):
    """Outcome of a solver call.

    Attributes:
        rotations: (n, 3, 3) solved joint rotations
        iterations: number of full passes performed
        distance: tip-to-target distance after the last pass
    """
    rotations: Array
    iterations: Array
    distance: Array


def _tip_distance(model: ChainModel, rotations: Array, target: Array) -> Array:
    tip = se3.get_position(forward_kinematics_world(model, rotations)[-1])
    return jnp.linalg.norm(tip - target)


def ccd_pass(model: ChainModel, rotations: Array, target: Array) -> Array:
    """One CCD sweep over links n-2 .. 0. Returns the updated rotations."""
    num_links = model.num_links
    base_R = se3.get_rotation(model.base_transform)

    def update_link(k, rots):
        i = num_links - 2 - k

        # Descendants must reflect every update made earlier in this sweep
        world = forward_kinematics_world(model, rots)
        positions = se3.get_position(world)
        world_R = se3.get_rotation(world[i])

        axis = world_R @ model.anchor_rotations[i] @ model.axes[i]
        axis = axis / jnp.maximum(jnp.linalg.norm(axis), so3.DEGENERATE_EPS)

        to_end = so3.project_on_plane(positions[-1] - positions[i], axis)
        to_target = so3.project_on_plane(target - positions[i], axis)

        usable = ((jnp.linalg.norm(to_end) > so3.DEGENERATE_EPS)
                  & (jnp.linalg.norm(to_target) > so3.DEGENERATE_EPS)
                  & model.movable[i])
        theta = jnp.where(usable, so3.signed_angle(to_end, to_target, axis), 0.0)

        new_world_R = so3.from_axis_angle(axis, theta) @ world_R

        # world_R_i = parent_R @ rest_i @ joint_i, solve for joint_i
        parent_R = jnp.where(
            i == 0, base_R, se3.get_rotation(world[model.parent_indices[i]]))
        frame_R = parent_R @ model.rest_rotations[i]
        return rots.at[i].set(so3.inverse(frame_R) @ new_world_R)

    return jax.lax.fori_loop(0, num_links - 1, update_link, rotations)


@jax.jit
def solve_rotations(
    model: ChainModel,
    rotations: Array,
    target: Array,
    max_iterations=15,
    tolerance=0.01,
) -> CCDResult:
    """Run CCD passes until the tip is within ``tolerance`` or passes run out.

    Pure function of the chain description, current rotations, target,
    iteration cap and tolerance. Joint limits are not enforced here.

    Args:
        model: ChainModel describing the chain
        rotations: (n, 3, 3) starting joint rotations
        target: (3,) world-space target position
        max_iterations: upper bound on full passes
        tolerance: early-exit distance between tip and target

    Returns:
        CCDResult with the solved rotations
    """
    target = jnp.asarray(target, dtype=rotations.dtype)

    def cond(state):
        iteration, _, distance = state
        return (iteration < max_iterations) & (distance >= tolerance)

    def body(state):
        iteration, rots, _ = state
        rots = ccd_pass(model, rots, target)
        return iteration + 1, rots, _tip_distance(model, rots, target)

    init = (jnp.asarray(0, dtype=jnp.int32), rotations,
            _tip_distance(model, rotations, target))
    iterations, solved, distance = jax.lax.while_loop(cond, body, init)

    return CCDResult(rotations=solved, iterations=iterations, distance=distance)


def _solve_chain(chain, target, max_iterations, tolerance) -> Optional[CCDResult]:
    if target is None or chain is None or chain.num_links < 2:
        logger.debug("[CCD] Nothing to solve (missing target or chain too short)")
        return None

    result = solve_rotations(
        chain.model,
        chain.joint_rotations,
        jnp.asarray(target, dtype=jnp.float64),
        max_iterations,
        tolerance,
    )
    chain.set_joint_rotations(result.rotations)
    return result


def solve(
    chain: Optional[JointChain],
    target: Optional[Array],
    max_iterations: int = 15,
    tolerance: float = 0.01,
) -> None:
    """Drive ``chain`` toward ``target`` in place.

    Never fails: a missing target or a chain shorter than two links leaves
    the chain untouched.
    """
    _solve_chain(chain, target, max_iterations, tolerance)


class CCDSolver:
    """CCD solver bound to a :class:`SolverConfig`.

    Keeps the result of the most recent call for diagnostics; it carries no
    state into the next call.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self._config = config or SolverConfig()
        self.last_result: Optional[CCDResult] = None

    @property
    def config(self) -> SolverConfig:
        return self._config

    def solve(self, chain: Optional[JointChain], target: Optional[Array]) -> None:
        self.last_result = _solve_chain(
            chain, target, self._config.max_iterations, self._config.tolerance)
