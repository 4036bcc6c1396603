"""End-to-end import and export of robot models.

``import_urdf`` parses a document, builds and validates the kinematic tree,
resolves inertials into rigid bodies in the target convention and, unless
disabled, folds rigidly attached bodies into their parents. Fatal errors are
returned on the ``ImportResult`` instead of being raised, so callers must
handle them explicitly; warnings are collected on the same result.

``export_robot`` walks a model back into a ``RobotDescription``.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Hashable, List, Optional, Tuple, Union

import jax.numpy as jnp
import numpy as np

from jax_urdf.config import ImportSettings
from jax_urdf.core.description import (
    DEFAULT_AXIS,
    Inertial,
    JointDescription,
    JointType,
    LinkDescription,
    Mesh,
    Origin,
    RobotDescription,
)
from jax_urdf.core.robot_model import RobotModel
from jax_urdf.errors import ExportError, NumericWarning, UrdfError, WarningCode, WarningSink
from jax_urdf.inertial import export_inertial, resolve_inertial
from jax_urdf.io.urdf_parser import load_urdf, parse_urdf_string
from jax_urdf.io.urdf_writer import write_urdf
from jax_urdf.optimize import optimize_fixed_joints
from jax_urdf.transforms import conventions, se3
from jax_urdf.tree import build_tree

console_logger = logging.getLogger(__name__)

MeshResolver = Callable[[str], Hashable]


@dataclass(frozen=True)
class ImportResult:
    """Outcome of ``import_urdf``: either a model or a fatal error.

    Attributes:
        model: The imported model, None on failure.
        error: The fatal error, None on success.
        warnings: Every recoverable warning recorded before completion or
            failure, in order.
    """

    model: Optional[RobotModel] = None
    error: Optional[UrdfError] = None
    warnings: Tuple[NumericWarning, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> RobotModel:
        """Return the model, raising the recorded error on failure."""
        if self.error is not None:
            raise self.error
        return self.model


def _looks_like_xml(source: Union[str, bytes]) -> bool:
    if isinstance(source, bytes):
        return source.lstrip().startswith(b"<")
    return source.lstrip().startswith("<")


def import_urdf(
    source: Union[str, bytes, Path],
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
    mesh_resolver: Optional[MeshResolver] = None,
) -> ImportResult:
    """Import a URDF document into a RobotModel.

    Args:
        source: Path to a URDF file, or the XML document itself.
        settings: Import settings; defaults are used if None.
        sink: Warning accumulator; a fresh one is used if None.
        mesh_resolver: Maps mesh filenames to opaque handles.

    Returns:
        ImportResult: The model or the fatal error, plus all warnings.
    """
    settings = settings if settings is not None else ImportSettings()
    sink = sink if sink is not None else WarningSink()
    try:
        if isinstance(source, Path) or not _looks_like_xml(source):
            description = load_urdf(source, settings, sink)
        else:
            description = parse_urdf_string(source, settings, sink)
        model = build_model(description, settings, sink, mesh_resolver)
        if settings.optimize_fixed_joints:
            model = optimize_fixed_joints(model, settings, sink)
    except UrdfError as e:
        console_logger.error("Import failed: %s", e)
        return ImportResult(error=e, warnings=sink.warnings)

    console_logger.info(
        "Imported robot '%s' with %d links and %d bodies",
        model.name, model.num_links, len(model.independent_bodies()),
    )
    return ImportResult(model=model, warnings=sink.warnings)


def _joint_axis(joint: JointDescription, convention) -> jnp.ndarray:
    axis = jnp.asarray(joint.axis, dtype=float)
    zeros = jnp.zeros(3)
    if joint.type in (JointType.REVOLUTE, JointType.CONTINUOUS):
        return jnp.concatenate([zeros, conventions.axial_vector_to(axis, convention)])
    if joint.type == JointType.PRISMATIC:
        return jnp.concatenate([conventions.vector_to(axis, convention), zeros])
    return jnp.zeros(6)


def _origin_transform(origin: Optional[Origin]) -> jnp.ndarray:
    if origin is None:
        return jnp.eye(4)
    return se3.from_xyz_rpy(origin.xyz, origin.rpy)


def _resolve_meshes(description: RobotDescription, resolver: Optional[MeshResolver]):
    handles: Dict[str, Hashable] = {}
    for link in description.links:
        for element in link.visuals + link.collisions:
            shape = element.geometry.shape
            if isinstance(shape, Mesh) and shape.filename not in handles:
                handles[shape.filename] = resolver(shape.filename) if resolver is not None else shape.filename
    return tuple(handles.items())


def build_model(
    description: RobotDescription,
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
    mesh_resolver: Optional[MeshResolver] = None,
) -> RobotModel:
    """Build an unoptimized RobotModel from a description.

    Raises:
        StructuralError: If the links and joints do not form a single tree.
    """
    settings = settings if settings is not None else ImportSettings()
    sink = sink if sink is not None else WarningSink()
    convention = settings.convention
    tree = build_tree(description.links, description.joints)

    names = set(tree.link_names)
    for link1, link2 in description.ignore_collision_pairs:
        for name in (link1, link2):
            if name not in names:
                sink.warn(
                    WarningCode.UNKNOWN_COLLISION_LINK,
                    f"<disable_collision> references unknown link '{name}'",
                    name,
                )

    transforms = []
    axes = []
    for link in range(tree.num_links):
        j = tree.parent_joint[link]
        if j < 0:
            transforms.append(jnp.eye(4))
            axes.append(jnp.zeros(6))
            continue
        joint = description.joints[j]
        transforms.append(conventions.transform_to(_origin_transform(joint.origin), convention))
        axes.append(_joint_axis(joint, convention))

    bodies = tuple(
        resolve_inertial(link.inertial, settings, sink, link.name) if link.inertial is not None else None
        for link in description.links
    )

    return RobotModel(
        name=description.name,
        link_names=tree.link_names,
        joint_names=tree.joint_names,
        parent_indices=jnp.array(tree.parent_indices, dtype=jnp.int32),
        joint_transforms=jnp.stack(transforms),
        joint_axes=jnp.stack(axes),
        bodies=bodies,
        merged_into=(-1,) * tree.num_links,
        tree=tree,
        description=description,
        convention=convention,
        meshes=_resolve_meshes(description, mesh_resolver),
    )


def attach_link(
    model: RobotModel,
    name: str,
    parent: str,
    origin: Optional[Origin] = None,
    inertial: Optional[Inertial] = None,
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
) -> RobotModel:
    """Return a model with a new leaf link rigidly attached to ``parent``.

    The link gets no joint description; on export it is connected to its
    parent by a synthesized fixed joint.
    """
    settings = settings if settings is not None else ImportSettings(convention=model.convention)
    sink = sink if sink is not None else WarningSink()
    tree = model.tree.with_link(name, model.link_index(parent))
    body = resolve_inertial(inertial, settings, sink, name) if inertial is not None else None
    T = conventions.transform_to(_origin_transform(origin), model.convention)

    description = model.description.replace(links=model.description.links + (LinkDescription(name=name),))
    return model.replace(
        link_names=tree.link_names,
        parent_indices=jnp.array(tree.parent_indices, dtype=jnp.int32),
        joint_transforms=jnp.concatenate([model.joint_transforms, T[None]], axis=0),
        joint_axes=jnp.concatenate([model.joint_axes, jnp.zeros((1, 6))], axis=0),
        bodies=model.bodies + (body,),
        merged_into=model.merged_into + (-1,),
        tree=tree,
        description=description,
    )


def _export_origin(T, source: Optional[Origin], convention) -> Optional[Origin]:
    T_ros = np.asarray(conventions.transform_from(T, convention))
    if source is not None and np.allclose(T_ros, np.asarray(_origin_transform(source)), rtol=0.0, atol=1e-12):
        return source
    xyz, rpy = se3.to_xyz_rpy(jnp.asarray(T_ros))
    origin = Origin(
        xyz=tuple(float(v) + 0.0 for v in np.asarray(xyz)),
        rpy=tuple(float(v) + 0.0 for v in np.asarray(rpy)),
    )
    if source is None and origin.is_identity():
        return None
    return origin


def _export_axis(twist, joint: JointDescription, convention):
    twist = np.asarray(twist)
    if joint.type in (JointType.REVOLUTE, JointType.CONTINUOUS):
        axis = np.asarray(conventions.axial_vector_from(twist[3:], convention))
    elif joint.type == JointType.PRISMATIC:
        axis = np.asarray(conventions.vector_from(twist[:3], convention))
    else:
        return joint.axis
    if np.allclose(axis, joint.axis, rtol=0.0, atol=1e-12):
        return joint.axis
    return tuple(float(v) + 0.0 for v in axis)


def export_robot(model: RobotModel, settings: Optional[ImportSettings] = None) -> RobotDescription:
    """Rebuild a RobotDescription from a model.

    Links keep declaration order and carry the inertial of their current
    body: none for merged-away links, the combined one for receivers. Joint
    origins and axes are recomputed from the model's transforms. Every
    non-root link without a joint is connected to its parent by a synthetic
    fixed joint named ``{parent}_{child}_joint``.

    Raises:
        ExportError: If two links share a name.
    """
    settings = settings if settings is not None else ImportSettings(convention=model.convention)
    convention = model.convention
    if settings.convention != convention:
        settings = replace(settings, convention=convention)

    seen = set()
    for name in model.link_names:
        if name in seen:
            raise ExportError(f"Cannot export: link name '{name}' is used more than once")
        seen.add(name)

    tree = model.tree
    source_links = {link.name: link for link in model.description.links}

    links: List[LinkDescription] = []
    for i, name in enumerate(model.link_names):
        source = source_links.get(name, LinkDescription(name=name))
        body = model.bodies[i]
        inertial = None
        if body is not None:
            inertial = export_inertial(body, settings, source=source.inertial, link_name=name)
        links.append(replace(source, inertial=inertial))

    joints: List[JointDescription] = []
    for j, joint in enumerate(model.description.joints):
        child = tree.joint_children[j]
        joints.append(replace(
            joint,
            origin=_export_origin(model.joint_transforms[child], joint.origin, convention),
            axis=_export_axis(model.joint_axes[child], joint, convention),
        ))

    for link in tree.traversal_order:
        if link == tree.root or tree.parent_joint[link] >= 0:
            continue
        parent = model.link_names[tree.parent_indices[link]]
        child = model.link_names[link]
        joints.append(JointDescription(
            name=f"{parent}_{child}_joint",
            type=JointType.FIXED,
            parent=parent,
            child=child,
            origin=_export_origin(model.joint_transforms[link], None, convention),
            axis=DEFAULT_AXIS,
        ))

    return model.description.replace(links=tuple(links), joints=tuple(joints))


def export_urdf(
    model: RobotModel, path: Union[str, Path], settings: Optional[ImportSettings] = None
) -> RobotDescription:
    """Export a model and write it to ``path``; returns the written description."""
    description = export_robot(model, settings)
    write_urdf(description, path)
    return description
