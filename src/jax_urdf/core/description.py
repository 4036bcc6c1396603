"""Immutable records mirroring the elements of a URDF document.

These are plain frozen dataclasses holding Python floats and tuples, built
once per parse by ``jax_urdf.io.urdf_parser`` and written back by
``jax_urdf.io.urdf_writer``. Every optional field defaults to the value the
parser assigns when the element or attribute is absent, so that the writer
can elide exactly those values and a parse/serialize round trip is lossless.
"""

import enum
import math
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Union

import numpy as np

Vector3 = Tuple[float, float, float]

DEFAULT_AXIS: Vector3 = (1.0, 0.0, 0.0)


class JointType(str, enum.Enum):
    FIXED = "fixed"
    CONTINUOUS = "continuous"
    REVOLUTE = "revolute"
    FLOATING = "floating"
    PRISMATIC = "prismatic"
    PLANAR = "planar"


class InertiaCalculationMode(str, enum.Enum):
    """Whether a physics engine should trust the stored inertia tensor.

    ``inherit_*`` modes defer to the parent body when merged, falling back to
    manual (stored tensor) or automatic (recomputed from geometry) otherwise.
    ``force_*`` modes always apply regardless of the parent.
    """

    INHERIT_FALLBACK_MANUAL = "inherit_fallback_manual"
    INHERIT_FALLBACK_AUTOMATIC = "inherit_fallback_automatic"
    FORCE_MANUAL = "force_manual"
    FORCE_AUTOMATIC = "force_automatic"

    @property
    def is_automatic(self) -> bool:
        return self in (
            InertiaCalculationMode.INHERIT_FALLBACK_AUTOMATIC,
            InertiaCalculationMode.FORCE_AUTOMATIC,
        )

    @property
    def is_forced(self) -> bool:
        return self in (
            InertiaCalculationMode.FORCE_MANUAL,
            InertiaCalculationMode.FORCE_AUTOMATIC,
        )


@dataclass(frozen=True)
class Origin:
    """Translation and URDF roll-pitch-yaw rotation of a frame."""

    xyz: Vector3 = (0.0, 0.0, 0.0)
    rpy: Vector3 = (0.0, 0.0, 0.0)

    def is_identity(self) -> bool:
        return not any(self.xyz) and not any(self.rpy)


@dataclass(frozen=True)
class Inertia:
    """The six independent components of a symmetric inertia tensor.

    ``calculation_mode`` is None when the document does not specify one; the
    effective mode is then ``InertiaCalculationMode.INHERIT_FALLBACK_MANUAL``.
    """

    ixx: float
    ixy: float
    ixz: float
    iyy: float
    iyz: float
    izz: float
    calculation_mode: Optional[InertiaCalculationMode] = None

    @property
    def effective_mode(self) -> InertiaCalculationMode:
        if self.calculation_mode is None:
            return InertiaCalculationMode.INHERIT_FALLBACK_MANUAL
        return self.calculation_mode

    def components(self) -> Tuple[float, ...]:
        return (self.ixx, self.ixy, self.ixz, self.iyy, self.iyz, self.izz)

    def matrix(self) -> np.ndarray:
        return np.array([
            [self.ixx, self.ixy, self.ixz],
            [self.ixy, self.iyy, self.iyz],
            [self.ixz, self.iyz, self.izz],
        ])

    @classmethod
    def from_matrix(cls, m, calculation_mode: Optional[InertiaCalculationMode] = None) -> "Inertia":
        m = np.asarray(m, dtype=float)
        return cls(
            ixx=float(m[0, 0]), ixy=float(m[0, 1]), ixz=float(m[0, 2]),
            iyy=float(m[1, 1]), iyz=float(m[1, 2]), izz=float(m[2, 2]),
            calculation_mode=calculation_mode,
        )


@dataclass(frozen=True)
class Inertial:
    mass: float
    inertia: Inertia
    origin: Optional[Origin] = None


@dataclass(frozen=True)
class Box:
    size: Vector3


@dataclass(frozen=True)
class Cylinder:
    radius: float
    length: float


@dataclass(frozen=True)
class Capsule:
    radius: float
    length: float


@dataclass(frozen=True)
class Sphere:
    radius: float


@dataclass(frozen=True)
class Mesh:
    filename: str
    scale: Optional[Vector3] = None
    convex: bool = True


Shape = Union[Box, Cylinder, Capsule, Sphere, Mesh]


@dataclass(frozen=True)
class Geometry:
    """Exactly one primitive or mesh shape."""

    shape: Shape


@dataclass(frozen=True)
class Color:
    rgba: Tuple[float, float, float, float]


@dataclass(frozen=True)
class Texture:
    filename: str


@dataclass(frozen=True)
class MaterialDescription:
    """A named material, either defined inline or referenced by name."""

    name: str
    color: Optional[Color] = None
    texture: Optional[Texture] = None


@dataclass(frozen=True)
class Visual:
    geometry: Geometry
    name: Optional[str] = None
    origin: Optional[Origin] = None
    materials: Tuple[MaterialDescription, ...] = ()


@dataclass(frozen=True)
class Collision:
    geometry: Geometry
    name: Optional[str] = None
    origin: Optional[Origin] = None


@dataclass(frozen=True)
class LinkDescription:
    name: str
    inertial: Optional[Inertial] = None
    visuals: Tuple[Visual, ...] = ()
    collisions: Tuple[Collision, ...] = ()


@dataclass(frozen=True)
class Calibration:
    rising: Optional[float] = None
    falling: Optional[float] = None


@dataclass(frozen=True)
class Dynamics:
    spring: float = 1000.0
    damping: float = 10.0
    friction: float = 0.0


@dataclass(frozen=True)
class Limit:
    """Joint limits; a joint without ``<limit>`` gets ``[0, 0, +inf, 0]``."""

    lower: float = 0.0
    upper: float = 0.0
    effort: float = math.inf
    velocity: float = 0.0


@dataclass(frozen=True)
class Mimic:
    joint: str
    multiplier: float = 1.0
    offset: float = 0.0


@dataclass(frozen=True)
class SafetyController:
    k_velocity: float
    soft_lower_limit: Optional[float] = None
    soft_upper_limit: Optional[float] = None
    k_position: Optional[float] = None


@dataclass(frozen=True)
class JointDescription:
    name: str
    type: JointType
    parent: str
    child: str
    origin: Optional[Origin] = None
    axis: Vector3 = DEFAULT_AXIS
    calibration: Optional[Calibration] = None
    dynamics: Optional[Dynamics] = None
    limit: Limit = field(default_factory=Limit)
    mimic: Optional[Mimic] = None
    safety_controller: Optional[SafetyController] = None

    @property
    def is_fixed(self) -> bool:
        return self.type == JointType.FIXED


@dataclass(frozen=True)
class RobotDescription:
    """A whole URDF document.

    Attributes:
        name: Robot name.
        links: Links in declaration order; names are unique.
        joints: Joints in declaration order.
        materials: Top-level material definitions.
        ignore_collision_pairs: ``(link1, link2)`` pairs from
            ``<disable_collision>`` elements.
        plugins: Serialized XML of every other top-level element (gazebo,
            transmission, vendor extensions), in document order.
    """

    name: str
    links: Tuple[LinkDescription, ...] = ()
    joints: Tuple[JointDescription, ...] = ()
    materials: Tuple[MaterialDescription, ...] = ()
    ignore_collision_pairs: Tuple[Tuple[str, str], ...] = ()
    plugins: Tuple[str, ...] = ()

    def link(self, name: str) -> LinkDescription:
        for link in self.links:
            if link.name == name:
                return link
        raise KeyError(name)

    def joint(self, name: str) -> JointDescription:
        for joint in self.joints:
            if joint.name == name:
                return joint
        raise KeyError(name)

    def replace(self, **changes) -> "RobotDescription":
        return replace(self, **changes)
