"""Conversion between URDF ``<inertial>`` records and in-memory rigid bodies.

Import: clamp the mass, convert the tensor into the target axis convention,
diagonalize it, clamp the principal moments, and express the center of mass
and the inertial frame like any other position and rotation.

Export is the algebraic inverse. The body's principal rotation is stored in
the link frame as ``A * Q`` (``A`` the authored inertial-frame rotation, ``Q``
the principal axes within it), so the tensor in the authored frame is
rebuilt with ``R' = A^-1 * R``.
"""

import logging
from typing import Optional

import jax.numpy as jnp
import numpy as np

from jax_urdf import linalg
from jax_urdf.config import ImportSettings
from jax_urdf.core.description import Inertia, Inertial, Origin
from jax_urdf.core.robot_model import RigidBody
from jax_urdf.errors import ExportError, WarningCode, WarningSink
from jax_urdf.transforms import conventions, quaternion, so3

console_logger = logging.getLogger(__name__)


def ensure_minimum_inertia(
    moments, min_inertia: float, sink: WarningSink, subject: Optional[str] = None
) -> jnp.ndarray:
    """Clamp principal moments below ``min_inertia`` to exactly ``min_inertia``."""
    moments = np.asarray(moments, dtype=float)
    below = moments < min_inertia
    if np.any(below):
        sink.warn(
            WarningCode.INERTIA_CLAMPED,
            f"Principal inertia {moments.tolist()} has component(s) below the minimum "
            f"{min_inertia}; clamped to the minimum",
            subject,
        )
        moments = np.where(below, min_inertia, moments)
    return jnp.asarray(moments)


def origin_rotation(origin: Optional[Origin]) -> jnp.ndarray:
    """Quaternion of an ``<origin rpy>`` in ROS coordinates."""
    rpy = origin.rpy if origin is not None else (0.0, 0.0, 0.0)
    return so3.to_quaternion(so3.from_rpy(jnp.asarray(rpy)))


def body_from_tensor(
    mass: float,
    center_of_mass,
    tensor,
    inertial_axis_rotation,
    settings: ImportSettings,
    sink: WarningSink,
    subject: Optional[str] = None,
    drag: Optional[float] = None,
    angular_drag: Optional[float] = None,
    calculation_mode=None,
) -> RigidBody:
    """Build a RigidBody from a full tensor given in the link frame.

    The tensor is diagonalized in the frame of ``inertial_axis_rotation`` so
    that the rotation survives export unchanged.
    """
    A = jnp.asarray(inertial_axis_rotation, dtype=float)
    R_a = so3.from_quaternion(A)
    local = R_a.T @ jnp.asarray(tensor, dtype=float) @ R_a
    moments, q = linalg.diagonalize(local)
    moments = ensure_minimum_inertia(moments, settings.min_inertia, sink, subject)

    return RigidBody(
        mass=jnp.asarray(mass, dtype=float),
        center_of_mass=jnp.asarray(center_of_mass, dtype=float),
        inertia_tensor=moments,
        inertia_tensor_rotation=quaternion.canonical(quaternion.normalize(quaternion.multiply(A, q))),
        inertial_axis_rotation=A,
        drag=jnp.asarray(settings.default_drag if drag is None else drag, dtype=float),
        angular_drag=jnp.asarray(
            settings.default_angular_drag if angular_drag is None else angular_drag, dtype=float
        ),
        calculation_mode=calculation_mode,
    )


def resolve_inertial(
    inertial: Inertial,
    settings: Optional[ImportSettings] = None,
    sink: Optional[WarningSink] = None,
    link_name: Optional[str] = None,
) -> RigidBody:
    """Resolve a URDF inertial into a RigidBody in the target convention.

    Args:
        inertial: The authored inertial record.
        settings: Floors and target convention.
        sink: Receives mass/inertia clamping warnings.
        link_name: Name of the owning link, used in warnings.

    Returns:
        RigidBody: Mass, center of mass and principal inertia of the link.
    """
    settings = settings if settings is not None else ImportSettings()
    sink = sink if sink is not None else WarningSink()
    convention = settings.convention

    mass = float(inertial.mass)
    if mass < settings.min_mass:
        sink.warn(
            WarningCode.MASS_CLAMPED,
            f"Mass {mass} is below the minimum {settings.min_mass}; clamped to the minimum",
            link_name,
        )
        mass = settings.min_mass

    origin = inertial.origin if inertial.origin is not None else Origin()
    A = conventions.quaternion_to(origin_rotation(origin), convention)
    M = conventions.matrix_to(inertial.inertia.matrix(), convention)

    # The authored tensor is expressed in the inertial frame; rotate it into
    # the link frame before handing it to the common builder.
    R_a = so3.from_quaternion(A)
    tensor = R_a @ M @ R_a.T

    return body_from_tensor(
        mass,
        conventions.vector_to(origin.xyz, convention),
        tensor,
        A,
        settings,
        sink,
        subject=link_name,
        calculation_mode=inertial.inertia.calculation_mode,
    )


def export_inertial(
    body: Optional[RigidBody],
    settings: Optional[ImportSettings] = None,
    source: Optional[Inertial] = None,
    link_name: Optional[str] = None,
) -> Inertial:
    """Rebuild a URDF inertial from a RigidBody.

    Components are rounded to ``settings.round_digits``. When ``source`` (the
    inertial the body was imported from) still matches the body, its authored
    values are reused verbatim so unchanged documents round-trip exactly.

    Raises:
        ExportError: If ``body`` is None.
    """
    if body is None:
        raise ExportError(
            f"Link '{link_name}' has no rigid body; inertial data cannot be exported"
            if link_name is not None
            else "Inertial data requested for a body that never received any"
        )
    settings = settings if settings is not None else ImportSettings()
    convention = settings.convention

    A = body.inertial_axis_rotation
    R_local = quaternion.multiply(quaternion.inverse(A), body.inertia_tensor_rotation)
    tensor = conventions.matrix_from(linalg.reconstruct(body.inertia_tensor, R_local), convention)
    tensor = np.round(np.asarray(tensor), settings.round_digits)

    xyz = np.asarray(conventions.vector_from(body.center_of_mass, convention))
    A_ros = conventions.quaternion_from(A, convention)
    rpy = np.asarray(so3.to_rpy(so3.from_quaternion(A_ros)))
    mass = float(body.mass)

    if source is not None:
        source_origin = source.origin if source.origin is not None else Origin()
        if np.allclose(xyz, source_origin.xyz, rtol=0.0, atol=1e-12):
            xyz = source_origin.xyz
        if quaternion.is_close(A_ros, origin_rotation(source_origin), atol=1e-12):
            rpy = source_origin.rpy
        # The Jacobi sweep stops once the residual coupling is negligible
        # against the moments, so compare at the scale of the tensor.
        source_tensor = source.inertia.matrix()
        atol = max(10.0 ** -settings.round_digits, 1e-6 * float(np.max(np.abs(source_tensor))))
        if np.allclose(tensor, source_tensor, rtol=1e-6, atol=atol):
            tensor = source_tensor

    origin = Origin(xyz=_as_vector(xyz), rpy=_as_vector(rpy))
    if origin.is_identity() and (source is None or source.origin is None):
        origin = None

    return Inertial(
        mass=mass,
        inertia=Inertia.from_matrix(tensor, calculation_mode=body.calculation_mode),
        origin=origin,
    )


def _as_vector(values):
    return tuple(float(v) + 0.0 for v in values)
