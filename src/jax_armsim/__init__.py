"""
JAX ArmSim: CCD-driven pick-and-place with timeline recording and replay.

This library drives a reference joint chain with a JIT-compiled CCD solver,
choreographs a pick-and-place task as eased moves, estimates smoothed
pseudo-torque telemetry, and records every tick for deterministic replay.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .chain import JointChain, forward_kinematics, forward_kinematics_world
from .config import SimulationConfig, load_config
from .core import ChainModel, serial_chain
from .io import load_chain
from .scene import HeldObject, Scene, SceneNode
from .simulation import PickAndPlaceSimulation

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "ChainModel",
    "JointChain",
    "HeldObject",
    "PickAndPlaceSimulation",
    "Scene",
    "SceneNode",
    "SimulationConfig",
    "forward_kinematics",
    "forward_kinematics_world",
    "load_chain",
    "load_config",
    "serial_chain",
]
