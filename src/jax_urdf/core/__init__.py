"""Core data structures.

Immutable description records mirroring a URDF document, and the JAX-native
robot model built from them.
"""

from .description import (
    InertiaCalculationMode,
    JointType,
    LinkDescription,
    JointDescription,
    RobotDescription,
)
from .robot_model import RigidBody, RobotModel

__all__ = [
    "InertiaCalculationMode",
    "JointType",
    "LinkDescription",
    "JointDescription",
    "RobotDescription",
    "RigidBody",
    "RobotModel",
]
