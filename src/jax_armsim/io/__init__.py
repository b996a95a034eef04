"""I/O utilities for loading the reference chain from robot description files.

This module provides functions for parsing standard robotics file formats
and converting them to JAX-native data structures.
"""

from .urdf_parser import load_chain

__all__ = ["load_chain"]
