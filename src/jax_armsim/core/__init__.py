"""Core data structures for the reference joint chain.

The chain description is an immutable, JAX-native PyTree; per-tick joint
state is held separately by :class:`jax_armsim.chain.JointChain`.
"""

from .robot_model import ChainModel, Link, serial_chain

__all__ = ["ChainModel", "Link", "serial_chain"]
