"""
JAX-based spatial transforms used by the URDF importer and exporter.

This module provides pure, JIT-compilable implementations of:
- SO(3) rotations, quaternions and URDF roll-pitch-yaw angles (so3, quaternion)
- SE(3) rigid body transforms (se3)
- Axis-convention conversion between ROS and a target scene (conventions)
"""

from . import so3
from . import se3
from . import quaternion
from . import conventions
from .conventions import AxisConvention

__all__ = [
    "so3",
    "se3",
    "quaternion",
    "conventions",
    "AxisConvention",
]
