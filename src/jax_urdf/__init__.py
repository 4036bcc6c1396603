"""
JAX URDF: URDF robot descriptions to and from JAX-native robot models.

This library parses URDF documents into immutable description records,
builds a validated kinematic tree, resolves inertial data into principal
moments in a target axis convention, merges rigidly attached bodies, and
exports the model back to URDF.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from .config import ImportSettings
from .errors import (
    ExportError,
    InvalidNameError,
    NumericWarning,
    OptimizationError,
    ParseError,
    StructuralError,
    UrdfError,
    WarningSink,
)
from .pipeline import ImportResult, attach_link, build_model, export_robot, export_urdf, import_urdf

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "ImportSettings",
    "ImportResult",
    "import_urdf",
    "build_model",
    "attach_link",
    "export_robot",
    "export_urdf",
    "UrdfError",
    "ParseError",
    "InvalidNameError",
    "StructuralError",
    "OptimizationError",
    "ExportError",
    "NumericWarning",
    "WarningSink",
]
