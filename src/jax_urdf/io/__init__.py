"""I/O utilities for reading and writing URDF documents.

This module converts between URDF XML and the immutable description records
of ``jax_urdf.core.description``.
"""

from .urdf_parser import load_urdf, parse_urdf_string
from .urdf_writer import serialize_urdf, write_urdf

__all__ = ["load_urdf", "parse_urdf_string", "serialize_urdf", "write_urdf"]
