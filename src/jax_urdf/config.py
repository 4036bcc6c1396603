"""Import/export settings.

A single immutable ``ImportSettings`` value is threaded explicitly through the
parser, the inertial resolver, the fixed-joint optimizer and the exporter;
nothing in the package reads process-wide configuration. Settings can be
built in code, from a plain mapping, or from a YAML file.
"""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from jax_urdf.transforms.conventions import AxisConvention

console_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSettings:
    """Numeric floors, tolerances and the target axis convention.

    Attributes:
        convention: Axis convention of the in-memory model.
        min_mass: Masses below this are clamped up to it (kg).
        min_inertia: Principal moments below this are clamped up to it.
        round_digits: Decimal digits kept when exporting inertia components.
        optimize_fixed_joints: Whether ``import_urdf`` merges rigidly attached
            bodies into their parents.
        fixed_limit_tolerance: A revolute joint whose ``|upper - lower|`` is
            below this is treated as fixed.
        axis_epsilon: Joint axes shorter than this are replaced by the default.
        default_drag: Linear drag given to freshly imported bodies.
        default_angular_drag: Angular drag given to freshly imported bodies.
    """

    convention: AxisConvention = AxisConvention.RUF
    min_mass: float = 0.1
    min_inertia: float = 1e-6
    round_digits: int = 10
    optimize_fixed_joints: bool = True
    fixed_limit_tolerance: float = 1e-4
    axis_epsilon: float = 1e-9
    default_drag: float = 0.0
    default_angular_drag: float = 0.05

    def __post_init__(self):
        object.__setattr__(self, "convention", AxisConvention(self.convention))
        for name in ("min_mass", "min_inertia", "fixed_limit_tolerance", "axis_epsilon"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.round_digits < 0:
            raise ValueError(f"round_digits must be non-negative, got {self.round_digits}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImportSettings":
        """Build settings from a mapping, rejecting unknown keys."""
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(
                f"Unknown import settings: {', '.join(unknown)}; "
                f"expected a subset of {', '.join(sorted(known))}"
            )
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ImportSettings":
        """Load settings from a YAML file; an empty file yields the defaults."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping of settings at the top level")
        console_logger.debug("Loaded import settings from %s", path)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["convention"] = self.convention.value
        return data

    def replace(self, **changes) -> "ImportSettings":
        return dataclasses.replace(self, **changes)
