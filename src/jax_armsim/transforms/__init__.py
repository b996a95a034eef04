"""
JAX rotation and rigid-transform math used by the arm simulation.

- SO(3) rotations and vector geometry (so3 module)
- SE(3) rigid body transforms (se3 module)

All functions are pure, stateless, and JIT-compilable.
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
