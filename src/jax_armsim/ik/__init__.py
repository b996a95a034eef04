"""Inverse kinematics: the CCD solver and the IK target it chases."""

from .ccd import CCDResult, CCDSolver, ccd_pass, solve, solve_rotations
from .target import IKTarget, TargetOwner, TargetOwnershipError

__all__ = [
    "CCDResult",
    "CCDSolver",
    "ccd_pass",
    "solve",
    "solve_rotations",
    "IKTarget",
    "TargetOwner",
    "TargetOwnershipError",
]
