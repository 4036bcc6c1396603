"""URDF parser producing immutable description records.

This module reads a URDF document with lxml and converts it, element by
element, into the records of ``jax_urdf.core.description``. Parsing is
attribute-driven: a missing required attribute or element raises
``ParseError`` naming the element, the attribute and the enclosing link or
joint; absent optional values take the defaults declared on the records.

Numbers are read with a fixed ``.``-decimal grammar that never depends on the
host locale.
"""

import logging
import math
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from lxml import etree

from jax_urdf.config import ImportSettings
from jax_urdf.core.description import (
    DEFAULT_AXIS,
    Box,
    Calibration,
    Capsule,
    Collision,
    Color,
    Cylinder,
    Dynamics,
    Geometry,
    Inertia,
    InertiaCalculationMode,
    Inertial,
    JointDescription,
    JointType,
    Limit,
    LinkDescription,
    MaterialDescription,
    Mesh,
    Mimic,
    Origin,
    RobotDescription,
    SafetyController,
    Sphere,
    Texture,
    Visual,
)
from jax_urdf.errors import InvalidNameError, ParseError, WarningCode, WarningSink

console_logger = logging.getLogger(__name__)

# Attribute on <inertia> selecting how a physics engine derives the tensor.
INERTIA_MODE_ATTRIBUTE = "unity_automatic_inertia"
INERTIA_MODE_ATTRIBUTE_ALIASES = (INERTIA_MODE_ATTRIBUTE, "automatic_inertia")

# Top-level elements with a dedicated representation; all others are plugins.
_STRUCTURAL_TAGS = ("link", "joint", "material", "disable_collision")

_BOOLEANS = {"true": True, "1": True, "false": False, "0": False}


def load_urdf(
    urdf_path: Union[str, Path],
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
) -> RobotDescription:
    """Load a URDF file into a RobotDescription.

    Args:
        urdf_path: Path to the URDF file to load.
        settings: Import settings; only ``axis_epsilon`` is used here.
        sink: Receives recoverable warnings. A private sink is used if None.

    Returns:
        RobotDescription: The parsed document.

    Raises:
        ParseError: If the document is not well-formed or not a valid URDF.
    """
    try:
        with open(urdf_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ParseError(f"Cannot read URDF file '{urdf_path}': {e.strerror}") from e
    console_logger.debug("Parsing URDF file %s", urdf_path)
    return parse_urdf_string(data, settings=settings, sink=sink)


def parse_urdf_string(
    document: Union[str, bytes],
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
) -> RobotDescription:
    """Parse URDF XML text into a RobotDescription.

    Args:
        document: The XML document, as text or as encoded bytes.
        settings: Import settings; only ``axis_epsilon`` is used here.
        sink: Receives recoverable warnings. A private sink is used if None.

    Returns:
        RobotDescription: The parsed document.
    """
    settings = settings if settings is not None else ImportSettings()
    sink = sink if sink is not None else WarningSink()
    if isinstance(document, str):
        document = document.encode("utf-8")

    parser = etree.XMLParser(remove_blank_text=True)
    try:
        root = etree.fromstring(document, parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed XML: {e}") from e

    if root.tag != "robot":
        raise ParseError(f"Expected a <robot> root element, found <{root.tag}>", element=root.tag)
    return _parse_robot(root, settings, sink)


# ---------------------------------------------------------------------------
# Attribute helpers
# ---------------------------------------------------------------------------

def _parse_float(text: str, element: str, attribute: str, subject: Optional[str]) -> float:
    text = text.strip()
    # float() also accepts digit-group underscores and non-ASCII digits.
    if "_" in text or not text.isascii():
        raise ParseError(f"Malformed number '{text}'", element, attribute, subject)
    try:
        value = float(text)
    except ValueError:
        raise ParseError(f"Malformed number '{text}'", element, attribute, subject) from None
    if math.isnan(value):
        raise ParseError(f"Malformed number '{text}'", element, attribute, subject)
    return value


def _parse_floats(
    text: str, count: int, element: str, attribute: str, subject: Optional[str]
) -> Tuple[float, ...]:
    parts = text.split()
    if len(parts) != count:
        raise ParseError(
            f"Expected {count} numbers, found {len(parts)} in '{text}'", element, attribute, subject
        )
    return tuple(_parse_float(p, element, attribute, subject) for p in parts)


def _required(elem, attribute: str, subject: Optional[str]) -> str:
    value = elem.get(attribute)
    if value is None:
        raise ParseError("Missing required attribute", elem.tag, attribute, subject)
    return value


def _required_float(elem, attribute: str, subject: Optional[str]) -> float:
    return _parse_float(_required(elem, attribute, subject), elem.tag, attribute, subject)


def _optional_float(elem, attribute: str, default: Optional[float], subject: Optional[str]):
    value = elem.get(attribute)
    if value is None:
        return default
    return _parse_float(value, elem.tag, attribute, subject)


def _required_child(elem, tag: str, subject: Optional[str]):
    child = elem.find(tag)
    if child is None:
        raise ParseError(f"Missing required element <{tag}>", elem.tag, None, subject)
    return child


# ---------------------------------------------------------------------------
# Elements
# ---------------------------------------------------------------------------

def _parse_origin(elem, subject: Optional[str]) -> Optional[Origin]:
    if elem is None:
        return None
    xyz = elem.get("xyz")
    rpy = elem.get("rpy")
    return Origin(
        xyz=_parse_floats(xyz, 3, "origin", "xyz", subject) if xyz is not None else (0.0, 0.0, 0.0),
        rpy=_parse_floats(rpy, 3, "origin", "rpy", subject) if rpy is not None else (0.0, 0.0, 0.0),
    )


def _parse_inertia_mode(elem, subject: str, sink: WarningSink) -> Optional[InertiaCalculationMode]:
    for attribute in INERTIA_MODE_ATTRIBUTE_ALIASES:
        value = elem.get(attribute)
        if value is None:
            continue
        try:
            return InertiaCalculationMode(value)
        except ValueError:
            accepted = ", ".join(f"'{mode.value}'" for mode in InertiaCalculationMode)
            raise ParseError(
                f"Unknown inertia calculation mode '{value}', available values include: {accepted}",
                "inertia", attribute, subject,
            ) from None

    sink.warn(
        WarningCode.INERTIA_MODE_UNSPECIFIED,
        f"<inertia> does not specify '{INERTIA_MODE_ATTRIBUTE}'; it is recommended that this is set. "
        f"Use '{InertiaCalculationMode.INHERIT_FALLBACK_AUTOMATIC.value}' to derive inertia from geometry, "
        f"'{InertiaCalculationMode.INHERIT_FALLBACK_MANUAL.value}' if the inertia is well characterised, "
        f"or '{InertiaCalculationMode.FORCE_AUTOMATIC.value}' / "
        f"'{InertiaCalculationMode.FORCE_MANUAL.value}' to force a mode",
        subject,
    )
    return None


def _parse_inertial(elem, subject: str, sink: WarningSink) -> Optional[Inertial]:
    if elem is None:
        return None
    mass_elem = _required_child(elem, "mass", subject)
    inertia_elem = _required_child(elem, "inertia", subject)
    mode = _parse_inertia_mode(inertia_elem, subject, sink)
    components = {
        name: _required_float(inertia_elem, name, subject)
        for name in ("ixx", "ixy", "ixz", "iyy", "iyz", "izz")
    }
    return Inertial(
        mass=_required_float(mass_elem, "value", subject),
        inertia=Inertia(calculation_mode=mode, **components),
        origin=_parse_origin(elem.find("origin"), subject),
    )


def _parse_geometry(elem, subject: str) -> Geometry:
    shapes = [child for child in elem if isinstance(child.tag, str)]
    if len(shapes) != 1:
        raise ParseError(
            f"Expected exactly one shape, found {len(shapes)}", "geometry", None, subject
        )
    shape = shapes[0]
    tag = shape.tag

    if tag == "box":
        return Geometry(Box(size=_parse_floats(_required(shape, "size", subject), 3, tag, "size", subject)))
    if tag == "cylinder":
        return Geometry(Cylinder(
            radius=_required_float(shape, "radius", subject),
            length=_required_float(shape, "length", subject),
        ))
    if tag == "capsule":
        return Geometry(Capsule(
            radius=_required_float(shape, "radius", subject),
            length=_required_float(shape, "length", subject),
        ))
    if tag == "sphere":
        return Geometry(Sphere(radius=_required_float(shape, "radius", subject)))
    if tag == "mesh":
        scale = shape.get("scale")
        convex = shape.get("convex", "true").strip().lower()
        if convex not in _BOOLEANS:
            raise ParseError(f"Malformed boolean '{convex}'", tag, "convex", subject)
        return Geometry(Mesh(
            filename=_required(shape, "filename", subject),
            scale=_parse_floats(scale, 3, tag, "scale", subject) if scale is not None else None,
            convex=_BOOLEANS[convex],
        ))
    raise ParseError(f"Unknown geometry <{tag}>", "geometry", None, subject)


def _parse_material(elem, subject: Optional[str]) -> MaterialDescription:
    color_elem = elem.find("color")
    texture_elem = elem.find("texture")
    color = None
    if color_elem is not None:
        color = Color(rgba=_parse_floats(_required(color_elem, "rgba", subject), 4, "color", "rgba", subject))
    texture = None
    if texture_elem is not None:
        texture = Texture(filename=_required(texture_elem, "filename", subject))
    return MaterialDescription(name=_required(elem, "name", subject), color=color, texture=texture)


def _parse_visual(elem, subject: str) -> Visual:
    return Visual(
        name=elem.get("name"),
        origin=_parse_origin(elem.find("origin"), subject),
        geometry=_parse_geometry(_required_child(elem, "geometry", subject), subject),
        materials=tuple(_parse_material(m, subject) for m in elem.findall("material")),
    )


def _parse_collision(elem, subject: str) -> Collision:
    return Collision(
        name=elem.get("name"),
        origin=_parse_origin(elem.find("origin"), subject),
        geometry=_parse_geometry(_required_child(elem, "geometry", subject), subject),
    )


def _parse_link(elem, sink: WarningSink) -> LinkDescription:
    name = _required(elem, "name", None)
    return LinkDescription(
        name=name,
        inertial=_parse_inertial(elem.find("inertial"), name, sink),
        visuals=tuple(_parse_visual(v, name) for v in elem.findall("visual")),
        collisions=tuple(_parse_collision(c, name) for c in elem.findall("collision")),
    )


def _parse_axis(elem, name: str, settings: ImportSettings, sink: WarningSink):
    if elem is None:
        return DEFAULT_AXIS
    axis = np.array(_parse_floats(_required(elem, "xyz", name), 3, "axis", "xyz", name))
    norm = float(np.linalg.norm(axis))
    if norm < settings.axis_epsilon:
        sink.warn(
            WarningCode.AXIS_NEAR_ZERO,
            f"Joint axis {tuple(axis.tolist())} is near zero; using default axis {DEFAULT_AXIS}",
            name,
        )
        return DEFAULT_AXIS
    if abs(norm - 1.0) > 1e-9:
        normalized = tuple((axis / norm).tolist())
        sink.warn(
            WarningCode.AXIS_NOT_NORMALIZED,
            f"Joint axis {tuple(axis.tolist())} is not a unit vector; renormalized to {normalized}",
            name,
        )
        return normalized
    return tuple(axis.tolist())


def _parse_joint_type(value: str, name: str, sink: WarningSink) -> JointType:
    try:
        return JointType(value)
    except ValueError:
        sink.warn(
            WarningCode.UNKNOWN_JOINT_TYPE,
            f"Unknown joint type '{value}'; treating it as '{JointType.FIXED.value}'",
            name,
        )
        return JointType.FIXED


def _parse_joint(elem, settings: ImportSettings, sink: WarningSink) -> JointDescription:
    name = _required(elem, "name", None)
    joint_type = _parse_joint_type(_required(elem, "type", name), name, sink)

    calibration = None
    calibration_elem = elem.find("calibration")
    if calibration_elem is not None:
        calibration = Calibration(
            rising=_optional_float(calibration_elem, "rising", None, name),
            falling=_optional_float(calibration_elem, "falling", None, name),
        )

    dynamics = None
    dynamics_elem = elem.find("dynamics")
    if dynamics_elem is not None:
        defaults = Dynamics()
        dynamics = Dynamics(
            spring=_optional_float(dynamics_elem, "spring", defaults.spring, name),
            damping=_optional_float(dynamics_elem, "damping", defaults.damping, name),
            friction=_optional_float(dynamics_elem, "friction", defaults.friction, name),
        )

    limit = Limit()
    limit_elem = elem.find("limit")
    if limit_elem is not None:
        limit = Limit(
            lower=_optional_float(limit_elem, "lower", 0.0, name),
            upper=_optional_float(limit_elem, "upper", 0.0, name),
            effort=_required_float(limit_elem, "effort", name),
            velocity=_required_float(limit_elem, "velocity", name),
        )

    mimic = None
    mimic_elem = elem.find("mimic")
    if mimic_elem is not None:
        mimic = Mimic(
            joint=_required(mimic_elem, "joint", name),
            multiplier=_optional_float(mimic_elem, "multiplier", 1.0, name),
            offset=_optional_float(mimic_elem, "offset", 0.0, name),
        )

    safety = None
    safety_elem = elem.find("safety_controller")
    if safety_elem is not None:
        safety = SafetyController(
            k_velocity=_required_float(safety_elem, "k_velocity", name),
            soft_lower_limit=_optional_float(safety_elem, "soft_lower_limit", None, name),
            soft_upper_limit=_optional_float(safety_elem, "soft_upper_limit", None, name),
            k_position=_optional_float(safety_elem, "k_position", None, name),
        )

    return JointDescription(
        name=name,
        type=joint_type,
        parent=_required(_required_child(elem, "parent", name), "link", name),
        child=_required(_required_child(elem, "child", name), "link", name),
        origin=_parse_origin(elem.find("origin"), name),
        axis=_parse_axis(elem.find("axis"), name, settings, sink),
        calibration=calibration,
        dynamics=dynamics,
        limit=limit,
        mimic=mimic,
        safety_controller=safety,
    )


def _parse_robot(root, settings: ImportSettings, sink: WarningSink) -> RobotDescription:
    name = _required(root, "name", None)

    # Links are read, and checked for duplicates, before anything else.
    links: List[LinkDescription] = []
    seen = set()
    for elem in root.findall("link"):
        link = _parse_link(elem, sink)
        if link.name in seen:
            raise InvalidNameError(
                f"Duplicate link name '{link.name}': two links cannot have the same name, "
                "duplicate names are invalid",
                "link", "name", link.name,
            )
        seen.add(link.name)
        links.append(link)

    materials = tuple(_parse_material(m, None) for m in root.findall("material"))
    joints = tuple(_parse_joint(j, settings, sink) for j in root.findall("joint"))
    pairs = tuple(
        (_required(d, "link1", None), _required(d, "link2", None))
        for d in root.findall("disable_collision")
    )
    plugins = tuple(
        etree.tostring(child, encoding="unicode", with_tail=False)
        for child in root
        if isinstance(child.tag, str) and child.tag not in _STRUCTURAL_TAGS
    )

    console_logger.debug(
        "Parsed robot '%s': %d links, %d joints, %d plugins", name, len(links), len(joints), len(plugins)
    )
    return RobotDescription(
        name=name,
        links=tuple(links),
        joints=joints,
        materials=materials,
        ignore_collision_pairs=pairs,
        plugins=plugins,
    )
