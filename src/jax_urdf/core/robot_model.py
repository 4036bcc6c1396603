"""In-memory robot model in the target axis convention.

``RigidBody`` and ``RobotModel`` are flax struct dataclasses: immutable
PyTrees whose array fields can flow through JAX transformations, while names,
the kinematic tree and the source description are static metadata.
"""

from typing import Any, Optional, Tuple

from flax import struct
from jax import Array

from jax_urdf import linalg
from jax_urdf.core.description import InertiaCalculationMode, RobotDescription
from jax_urdf.transforms.conventions import AxisConvention
from jax_urdf.tree import KinematicTree


@struct.dataclass
class RigidBody:
    """Dynamics of one independent body, expressed in its link frame.

    Attributes:
        mass: Scalar mass.
        center_of_mass: (3,) center of mass in the link frame.
        inertia_tensor: (3,) principal moments of inertia.
        inertia_tensor_rotation: (4,) quaternion (w, x, y, z) rotating the
            link frame onto the principal axes.
        inertial_axis_rotation: (4,) quaternion of the ``<inertial><origin>``
            frame, kept so export can restore the authored frame.
        drag: Linear drag.
        angular_drag: Angular drag.
        calculation_mode: Authored inertia calculation mode, None if the
            document did not specify one.
    """
    mass: Array
    center_of_mass: Array
    inertia_tensor: Array
    inertia_tensor_rotation: Array
    inertial_axis_rotation: Array
    drag: Array
    angular_drag: Array
    calculation_mode: Optional[InertiaCalculationMode] = struct.field(pytree_node=False, default=None)

    @property
    def effective_mode(self) -> InertiaCalculationMode:
        if self.calculation_mode is None:
            return InertiaCalculationMode.INHERIT_FALLBACK_MANUAL
        return self.calculation_mode

    def inertia_matrix(self) -> Array:
        """Full (3, 3) inertia tensor about the center of mass, in the link frame."""
        return linalg.reconstruct(self.inertia_tensor, self.inertia_tensor_rotation)


@struct.dataclass
class RobotModel:
    """Immutable PyTree representation of an imported robot.

    Links are indexed by declaration order, the same ids as ``tree``.

    Attributes:
        name: Robot name.
        link_names: Tuple of all link names. Index corresponds to link ID.
        joint_names: Tuple of all joint names in declaration order.
        parent_indices: Array of shape (num_links,) where parent_indices[i]
                       is the parent link index of link i. Root link parents itself.
        joint_transforms: Array of shape (num_links, 4, 4) with the pose of
                         each link in its parent's frame (identity for the root).
        joint_axes: Array of shape (num_links, 6) containing 6D twist
                   vectors [vx,vy,vz,wx,wy,wz] of each link's parent joint.
        bodies: Per link, its RigidBody or None if the link carries no
                independent dynamics (no inertial, or merged away).
        merged_into: Per link, the id of the body it was merged into, -1 if none.
        tree: The validated kinematic tree.
        description: The description the model was built from.
        convention: Axis convention of all arrays in the model.
        meshes: ``(filename, handle)`` pairs from the mesh resolver.
    """
    name: str = struct.field(pytree_node=False)
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    parent_indices: Array
    joint_transforms: Array
    joint_axes: Array
    bodies: Tuple[Optional[RigidBody], ...]
    merged_into: Tuple[int, ...] = struct.field(pytree_node=False)
    tree: KinematicTree = struct.field(pytree_node=False)
    description: RobotDescription = struct.field(pytree_node=False)
    convention: AxisConvention = struct.field(pytree_node=False)
    meshes: Tuple[Tuple[str, Any], ...] = struct.field(pytree_node=False, default=())

    @property
    def num_links(self) -> int:
        return len(self.link_names)

    @property
    def root(self) -> int:
        return self.tree.root

    def link_index(self, name: str) -> int:
        return self.tree.link_index(name)

    def body(self, name: str) -> Optional[RigidBody]:
        return self.bodies[self.link_index(name)]

    def independent_bodies(self) -> Tuple[int, ...]:
        """Ids of links that still carry their own RigidBody."""
        return tuple(i for i, body in enumerate(self.bodies) if body is not None)

    def total_mass(self) -> Array:
        return sum(body.mass for body in self.bodies if body is not None)

    def mesh_handle(self, filename: str) -> Any:
        return dict(self.meshes)[filename]
