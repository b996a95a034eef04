"""SO(3) and so(3) Lie group operations in JAX.

This module implements the rotation math the arm simulation is built on:
rotation matrices, axis-angle vectors and the few vector-geometry helpers the
CCD solver needs. All functions are pure, JIT-able, and operate on JAX arrays.
Angles are in radians; degree conversion happens at the actuator and
telemetry boundaries.
"""

import jax
import jax.numpy as jnp

Array = jax.Array

# Below this length a projected vector or rotation axis carries no direction.
DEGENERATE_EPS = 1e-9


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula to convert a 3D axis-angle vector (so(3))
    to a rotation matrix (SO(3)).

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    # Taylor expansion near zero keeps the formula finite
    small_angle = angle < 1e-8
    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    safe_angle = jnp.where(small_angle, 1.0, angle)
    axis = jnp.where(small_angle, log_r, log_r / safe_angle)

    K = skew_symmetric(axis)

    # Rodrigues formula: R = I + sin(θ) * K + (1 - cos(θ)) * K²
    I = jnp.eye(3, dtype=log_r.dtype)
    I = jnp.broadcast_to(I, log_r.shape[:-1] + (3, 3))

    return (I +
            sin_angle[..., None] * K +
            (1.0 - cos_angle)[..., None] * jnp.matmul(K, K))


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors with angle in [0, π]
    """
    trace = jnp.trace(R, axis1=-2, axis2=-1)

    cos_angle = jnp.clip((trace - 1.0) / 2.0, -1.0, 1.0)
    angle = jnp.arccos(cos_angle)

    small_angle = angle < 1e-8
    near_pi = jnp.abs(angle - jnp.pi) < 1e-6

    sin_angle = jnp.where(small_angle | near_pi, 1.0, jnp.sin(angle))

    # axis = [R21 - R12, R02 - R20, R10 - R01] / (2 sin θ)
    skew_part = jnp.stack([
        R[..., 2, 1] - R[..., 1, 2],
        R[..., 0, 2] - R[..., 2, 0],
        R[..., 1, 0] - R[..., 0, 1]
    ], axis=-1)

    axis_small = skew_part / 2.0
    axis_general = skew_part / (2.0 * sin_angle[..., None])

    # Near π the skew part vanishes; take the dominant column of (R + I) / 2
    B = (R + jnp.eye(3, dtype=R.dtype)) / 2.0
    diag_vals = jnp.diagonal(B, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.maximum(
        jnp.linalg.norm(axis_pi, axis=-1, keepdims=True), DEGENERATE_EPS)

    # small_angle already carries the angle in axis_small
    return jnp.where(
        small_angle[..., None],
        axis_small,
        angle[..., None] * jnp.where(near_pi[..., None], axis_pi, axis_general),
    )


def multiply(R1: Array, R2: Array) -> Array:
    """Compose two rotations: R1 @ R2 (apply R2 first)."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """Inverse of a rotation matrix, i.e. its transpose."""
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    return jnp.einsum('...ij,...nj->...ni', R, v)


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric (cross-product) matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def from_axis_angle(axis: Array, angle: Array) -> Array:
    """
    Rotation of ``angle`` radians about ``axis`` (need not be unit length).

    Args:
        axis: (..., 3) rotation axis
        angle: (...) rotation angle in radians, right-hand positive

    Returns:
        (..., 3, 3) rotation matrix
    """
    axis = jnp.asarray(axis)
    norm = jnp.linalg.norm(axis, axis=-1, keepdims=True)
    unit = axis / jnp.maximum(norm, DEGENERATE_EPS)
    return exp(unit * jnp.asarray(angle)[..., None])


def to_axis_angle(R: Array):
    """
    Split a rotation into a unit axis and an angle in [0, π].

    The identity rotation has no defined axis; the X axis is returned for it
    so callers always receive a unit vector.

    Returns:
        Tuple of (..., 3) unit axis and (...) angle in radians.
    """
    w = log(R)
    angle = jnp.linalg.norm(w, axis=-1)
    fallback = jnp.broadcast_to(jnp.array([1.0, 0.0, 0.0], dtype=w.dtype), w.shape)
    safe_angle = jnp.maximum(angle, DEGENERATE_EPS)[..., None]
    axis = jnp.where((angle > DEGENERATE_EPS)[..., None], w / safe_angle, fallback)
    return axis, angle


def angle_between(R1: Array, R2: Array) -> Array:
    """Magnitude of the relative rotation taking R1 to R2, in radians."""
    return jnp.linalg.norm(log(jnp.matmul(inverse(R1), R2)), axis=-1)


def slerp(R0: Array, R1: Array, t) -> Array:
    """
    Spherical interpolation along the shortest geodesic from R0 to R1.

    Args:
        R0: (..., 3, 3) start rotation
        R1: (..., 3, 3) end rotation
        t: interpolation fraction, 0 gives R0 and 1 gives R1

    Returns:
        (..., 3, 3) interpolated rotation
    """
    delta = log(jnp.matmul(inverse(R0), R1))
    return jnp.matmul(R0, exp(jnp.asarray(t)[..., None] * delta))


def rotation_between(u: Array, v: Array) -> Array:
    """
    Shortest-arc rotation taking direction ``u`` onto direction ``v``.

    Antiparallel inputs rotate by π about an axis perpendicular to ``u``.
    """
    u = u / jnp.linalg.norm(u, axis=-1, keepdims=True)
    v = v / jnp.linalg.norm(v, axis=-1, keepdims=True)

    cross = jnp.cross(u, v)
    sin_angle = jnp.linalg.norm(cross, axis=-1)
    cos_angle = jnp.sum(u * v, axis=-1)
    angle = jnp.arctan2(sin_angle, cos_angle)

    # Perpendicular fallback axis for the antiparallel case
    helper = jnp.where(
        (jnp.abs(u[..., 0]) < 0.9)[..., None],
        jnp.broadcast_to(jnp.array([1.0, 0.0, 0.0], dtype=u.dtype), u.shape),
        jnp.broadcast_to(jnp.array([0.0, 1.0, 0.0], dtype=u.dtype), u.shape),
    )
    perpendicular = jnp.cross(u, helper)
    axis = jnp.where((sin_angle > 1e-9)[..., None], cross, perpendicular)

    return from_axis_angle(axis, angle)


def project_on_plane(v: Array, normal: Array) -> Array:
    """Project ``v`` onto the plane orthogonal to the unit vector ``normal``."""
    return v - jnp.sum(v * normal, axis=-1, keepdims=True) * normal


def signed_angle(a: Array, b: Array, axis: Array) -> Array:
    """
    Signed angle from ``a`` to ``b`` measured about ``axis``, in radians.

    Positive means a right-hand rotation about ``axis`` carries ``a`` toward
    ``b``. The result lies in (-π, π].
    """
    cross = jnp.cross(a, b)
    return jnp.arctan2(jnp.sum(cross * axis, axis=-1), jnp.sum(a * b, axis=-1))
