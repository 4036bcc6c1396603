"""URDF writer: the structural inverse of ``urdf_parser``.

Every optional element present on a record is emitted. An attribute is elided
only when its value equals the default the parser would assign in its
absence, so ``parse(serialize(d)) == d`` for any description ``d``.
"""

import logging
import math
from pathlib import Path
from typing import Iterable, Optional, Union

from lxml import etree

from jax_urdf.core.description import (
    DEFAULT_AXIS,
    Box,
    Capsule,
    Collision,
    Cylinder,
    Dynamics,
    Geometry,
    Inertial,
    JointDescription,
    Limit,
    LinkDescription,
    MaterialDescription,
    Mesh,
    Origin,
    RobotDescription,
    Sphere,
    Visual,
)
from jax_urdf.io.urdf_parser import INERTIA_MODE_ATTRIBUTE

console_logger = logging.getLogger(__name__)


def format_float(value: float) -> str:
    """Locale-independent shortest round-trip formatting of a number."""
    value = float(value)
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def format_floats(values: Iterable[float]) -> str:
    return " ".join(format_float(v) for v in values)


def serialize_urdf(description: RobotDescription) -> bytes:
    """Serialize a RobotDescription to indented UTF-8 XML bytes."""
    root = etree.Element("robot", name=description.name)

    for material in description.materials:
        _write_material(root, material)
    for link in description.links:
        _write_link(root, link)
    for joint in description.joints:
        _write_joint(root, joint)
    for link1, link2 in description.ignore_collision_pairs:
        etree.SubElement(root, "disable_collision", link1=link1, link2=link2)

    parser = etree.XMLParser(remove_blank_text=True)
    for plugin in description.plugins:
        root.append(etree.fromstring(plugin, parser))

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")


def write_urdf(description: RobotDescription, path: Union[str, Path]) -> None:
    """Serialize a RobotDescription and write it to ``path``."""
    data = serialize_urdf(description)
    with open(path, "wb") as f:
        f.write(data)
    console_logger.info("Wrote URDF '%s' to %s", description.name, path)


def _write_origin(parent, origin: Optional[Origin]) -> None:
    if origin is None:
        return
    etree.SubElement(parent, "origin", xyz=format_floats(origin.xyz), rpy=format_floats(origin.rpy))


def _write_inertial(parent, inertial: Optional[Inertial]) -> None:
    if inertial is None:
        return
    elem = etree.SubElement(parent, "inertial")
    _write_origin(elem, inertial.origin)
    etree.SubElement(elem, "mass", value=format_float(inertial.mass))

    inertia = inertial.inertia
    inertia_elem = etree.SubElement(elem, "inertia")
    if inertia.calculation_mode is not None:
        inertia_elem.set(INERTIA_MODE_ATTRIBUTE, inertia.calculation_mode.value)
    for name in ("ixx", "ixy", "ixz", "iyy", "iyz", "izz"):
        inertia_elem.set(name, format_float(getattr(inertia, name)))


def _write_geometry(parent, geometry: Geometry) -> None:
    elem = etree.SubElement(parent, "geometry")
    shape = geometry.shape
    if isinstance(shape, Box):
        etree.SubElement(elem, "box", size=format_floats(shape.size))
    elif isinstance(shape, Cylinder):
        etree.SubElement(elem, "cylinder", radius=format_float(shape.radius), length=format_float(shape.length))
    elif isinstance(shape, Capsule):
        etree.SubElement(elem, "capsule", radius=format_float(shape.radius), length=format_float(shape.length))
    elif isinstance(shape, Sphere):
        etree.SubElement(elem, "sphere", radius=format_float(shape.radius))
    elif isinstance(shape, Mesh):
        mesh = etree.SubElement(elem, "mesh", filename=shape.filename)
        if shape.scale is not None:
            mesh.set("scale", format_floats(shape.scale))
        if not shape.convex:
            mesh.set("convex", "false")
    else:
        raise TypeError(f"Unsupported geometry shape: {type(shape).__name__}")


def _write_material(parent, material: MaterialDescription) -> None:
    elem = etree.SubElement(parent, "material", name=material.name)
    if material.color is not None:
        etree.SubElement(elem, "color", rgba=format_floats(material.color.rgba))
    if material.texture is not None:
        etree.SubElement(elem, "texture", filename=material.texture.filename)


def _write_visual(parent, visual: Visual) -> None:
    elem = etree.SubElement(parent, "visual")
    if visual.name is not None:
        elem.set("name", visual.name)
    _write_origin(elem, visual.origin)
    _write_geometry(elem, visual.geometry)
    for material in visual.materials:
        _write_material(elem, material)


def _write_collision(parent, collision: Collision) -> None:
    elem = etree.SubElement(parent, "collision")
    if collision.name is not None:
        elem.set("name", collision.name)
    _write_origin(elem, collision.origin)
    _write_geometry(elem, collision.geometry)


def _write_link(parent, link: LinkDescription) -> None:
    elem = etree.SubElement(parent, "link", name=link.name)
    _write_inertial(elem, link.inertial)
    for visual in link.visuals:
        _write_visual(elem, visual)
    for collision in link.collisions:
        _write_collision(elem, collision)


def _set_if_present(elem, attribute: str, value: Optional[float]) -> None:
    if value is not None:
        elem.set(attribute, format_float(value))


def _set_unless_default(elem, attribute: str, value: float, default: float) -> None:
    if value != default:
        elem.set(attribute, format_float(value))


def _write_joint(parent, joint: JointDescription) -> None:
    elem = etree.SubElement(parent, "joint", name=joint.name, type=joint.type.value)
    _write_origin(elem, joint.origin)
    etree.SubElement(elem, "parent", link=joint.parent)
    etree.SubElement(elem, "child", link=joint.child)

    if tuple(joint.axis) != DEFAULT_AXIS:
        etree.SubElement(elem, "axis", xyz=format_floats(joint.axis))

    if joint.calibration is not None:
        calibration = etree.SubElement(elem, "calibration")
        _set_if_present(calibration, "rising", joint.calibration.rising)
        _set_if_present(calibration, "falling", joint.calibration.falling)

    if joint.dynamics is not None:
        defaults = Dynamics()
        dynamics = etree.SubElement(elem, "dynamics")
        _set_unless_default(dynamics, "spring", joint.dynamics.spring, defaults.spring)
        _set_unless_default(dynamics, "damping", joint.dynamics.damping, defaults.damping)
        _set_unless_default(dynamics, "friction", joint.dynamics.friction, defaults.friction)

    if joint.limit != Limit():
        limit = etree.SubElement(elem, "limit")
        _set_unless_default(limit, "lower", joint.limit.lower, 0.0)
        _set_unless_default(limit, "upper", joint.limit.upper, 0.0)
        limit.set("effort", format_float(joint.limit.effort))
        limit.set("velocity", format_float(joint.limit.velocity))

    if joint.mimic is not None:
        mimic = etree.SubElement(elem, "mimic", joint=joint.mimic.joint)
        _set_unless_default(mimic, "multiplier", joint.mimic.multiplier, 1.0)
        _set_unless_default(mimic, "offset", joint.mimic.offset, 0.0)

    if joint.safety_controller is not None:
        safety = joint.safety_controller
        controller = etree.SubElement(elem, "safety_controller")
        _set_if_present(controller, "soft_lower_limit", safety.soft_lower_limit)
        _set_if_present(controller, "soft_upper_limit", safety.soft_upper_limit)
        _set_if_present(controller, "k_position", safety.k_position)
        controller.set("k_velocity", format_float(safety.k_velocity))
