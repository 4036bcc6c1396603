"""Fixed-joint optimization.

A link attached through a ``fixed`` joint (or through a revolute joint whose
limits collapse to a point) cannot move relative to its parent, so it does not
need to be a separate dynamical body. This module folds such bodies into their
nearest dynamic ancestor, combining mass, center of mass and inertia, and
returns a new model in which the child keeps its geometry but no RigidBody.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import jax
import jax.numpy as jnp

from jax_urdf.config import ImportSettings
from jax_urdf.core.description import JointDescription, JointType
from jax_urdf.core.robot_model import RigidBody, RobotModel
from jax_urdf.errors import OptimizationError, WarningCode, WarningSink
from jax_urdf.inertial import body_from_tensor
from jax_urdf.transforms import se3, so3

console_logger = logging.getLogger(__name__)

Array = jax.Array


@dataclass(frozen=True)
class MergedBody:
    """Aggregate of rigidly connected bodies, in the receiving link's frame.

    Attributes:
        mass: Total mass.
        center_of_mass: (3,) combined center of mass.
        inertia_tensor: (3, 3) combined inertia about ``center_of_mass``.
        drag: Mass-weighted drag.
        angular_drag: Mass-weighted angular drag.
    """

    mass: Array
    center_of_mass: Array
    inertia_tensor: Array
    drag: Array
    angular_drag: Array


def is_rigid_joint(
    joint: JointDescription, tolerance: float = 1e-4, sink: Optional[WarningSink] = None
) -> bool:
    """Whether ``joint`` allows no relative motion between its links."""
    if joint.type == JointType.FIXED:
        return True
    if joint.type == JointType.REVOLUTE and abs(joint.limit.lower - joint.limit.upper) < tolerance:
        if sink is not None:
            sink.warn(
                WarningCode.REVOLUTE_LIMITS_COLLAPSED,
                f"Revolute joint has lower limit {joint.limit.lower} and upper limit "
                f"{joint.limit.upper}; it is optimized as a fixed joint. "
                f"Consider making it '{JointType.FIXED.value}' or '{JointType.CONTINUOUS.value}'",
                joint.name,
            )
        return True
    return False


def parallel_axis(inertia: Array, mass: Array, offset: Array) -> Array:
    """Shift an inertia tensor about the center of mass to a point at ``-offset``.

    ``I + m (|r|^2 E - r r^T)`` with ``r`` the vector from the new reference
    point to the center of mass.
    """
    # -[r]x^2 == |r|^2 E - r r^T
    K = so3.skew_symmetric(jnp.asarray(offset, dtype=float))
    return inertia - mass * (K @ K)


def combine_bodies(parent: RigidBody, child: RigidBody, child_pose: Array) -> MergedBody:
    """
    Combine two rigidly attached bodies.

    Args:
        parent: Body of the receiving link, in its own frame.
        child: Body to fold in, in its own frame.
        child_pose: (4, 4) pose of the child link in the receiving link's frame.

    Returns:
        MergedBody in the receiving link's frame.
    """
    total = parent.mass + child.mass
    parent_com = parent.center_of_mass
    child_com = se3.apply(child_pose, child.center_of_mass)
    com = (parent.mass * parent_com + child.mass * child_com) / total

    R = se3.get_rotation(child_pose)
    child_inertia = R @ child.inertia_matrix() @ R.T
    inertia = (
        parallel_axis(parent.inertia_matrix(), parent.mass, parent_com - com)
        + parallel_axis(child_inertia, child.mass, child_com - com)
    )

    parent_ratio = parent.mass / total
    child_ratio = child.mass / total
    return MergedBody(
        mass=total,
        center_of_mass=com,
        inertia_tensor=0.5 * (inertia + inertia.T),
        drag=parent_ratio * parent.drag + child_ratio * child.drag,
        angular_drag=parent_ratio * parent.angular_drag + child_ratio * child.angular_drag,
    )


def relative_pose(model: RobotModel, ancestor: int, link: int) -> Array:
    """Pose of ``link`` in the frame of one of its ancestors."""
    T = jnp.eye(4)
    current = link
    while current != ancestor:
        T = se3.multiply(model.joint_transforms[current], T)
        current = model.tree.parent_indices[current]
    return T


def _check_calculation_modes(model: RobotModel, receiver: int, child: int,
                             bodies: List[Optional[RigidBody]]) -> None:
    child_mode = bodies[child].effective_mode
    if not child_mode.is_forced:
        return
    receiver_mode = bodies[receiver].effective_mode
    if receiver_mode.is_automatic != child_mode.is_automatic:
        raise OptimizationError(
            f"Cannot merge link '{model.link_names[child]}' into '{model.link_names[receiver]}': "
            f"the child forces inertia calculation mode '{child_mode.value}' but the parent uses "
            f"'{receiver_mode.value}'. Either set the child to an inherit mode or change the "
            "parent so that it matches the child"
        )


def optimize_fixed_joints(
    model: RobotModel,
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
) -> RobotModel:
    """Merge every rigidly attached body into its nearest dynamic ancestor.

    Links are processed parent-first, so each merge reads the already updated
    aggregate of its receiver. A link whose connection is rigid but which has
    no body, or no dynamic ancestor across rigid connections, is left as is.

    Args:
        model: Model to optimize.
        settings: Provides the collapsed-limit tolerance and inertia floor.
        sink: Receives warnings.

    Returns:
        RobotModel: A new model; ``merged_into`` records each merged link's
        receiver.

    Raises:
        OptimizationError: If a child forces an inertia calculation mode that
            conflicts with its receiver's.
    """
    settings = settings if settings is not None else ImportSettings()
    sink = sink if sink is not None else WarningSink()
    tree = model.tree
    joints = model.description.joints

    rigid = [False] * model.num_links
    for link in range(model.num_links):
        if link == tree.root:
            continue
        j = tree.parent_joint[link]
        # Links attached without a joint are exported with a fixed joint.
        rigid[link] = j < 0 or is_rigid_joint(joints[j], settings.fixed_limit_tolerance, sink)

    bodies = list(model.bodies)
    merged_into = list(model.merged_into)

    for link in tree.traversal_order:
        if not rigid[link] or bodies[link] is None:
            continue
        receiver = _find_receiver(tree, link, rigid, bodies, merged_into)
        if receiver is None:
            console_logger.debug(
                "No dynamic ancestor for rigidly attached link '%s'; left unmerged", model.link_names[link]
            )
            continue
        _check_calculation_modes(model, receiver, link, bodies)

        parent_body = bodies[receiver]
        merged = combine_bodies(parent_body, bodies[link], relative_pose(model, receiver, link))
        bodies[receiver] = body_from_tensor(
            merged.mass,
            merged.center_of_mass,
            merged.inertia_tensor,
            parent_body.inertial_axis_rotation,
            settings,
            sink,
            subject=model.link_names[receiver],
            drag=merged.drag,
            angular_drag=merged.angular_drag,
            calculation_mode=parent_body.calculation_mode,
        )
        bodies[link] = None
        merged_into[link] = receiver
        console_logger.info(
            "Merged link '%s' into '%s'", model.link_names[link], model.link_names[receiver]
        )

    return model.replace(bodies=tuple(bodies), merged_into=tuple(merged_into))


def _find_receiver(tree, link: int, rigid, bodies, merged_into) -> Optional[int]:
    current = link
    while rigid[current]:
        parent = tree.parent_indices[current]
        if merged_into[parent] >= 0:
            return merged_into[parent]
        if bodies[parent] is not None:
            return parent
        current = parent
    return None


def merged_groups(model: RobotModel) -> Tuple[Tuple[str, ...], ...]:
    """Names of the links folded into each independent body, receiver first."""
    groups = []
    for receiver in model.independent_bodies():
        members = [model.link_names[receiver]]
        members.extend(model.link_names[i] for i, r in enumerate(model.merged_into) if r == receiver)
        groups.append(tuple(members))
    return tuple(groups)
