"""Axis-convention conversion between URDF (ROS) space and a target scene.

URDF documents are expressed in the ROS convention: x forward, y left, z up
(right-handed). Scene engines commonly use a y-up convention instead. Each
supported convention is described by a fixed signed permutation matrix ``P``
mapping ROS coordinates to target coordinates, so that:

- positions and directions map as ``P v``
- axial vectors (rotation axes) map as ``det(P) P v``
- rotation matrices map as ``P R P^T``; quaternions as ``(w, det(P) P xyz)``
- symmetric tensors such as inertia map as ``P M P^T``

``P`` is orthogonal, so every ``*_from`` inverse simply uses ``P^T``.
"""

import enum

import jax
import jax.numpy as jnp
import numpy as np

from . import se3

Array = jax.Array


class AxisConvention(str, enum.Enum):
    """Supported target axis conventions."""

    FLU = "flu"  # ROS: forward, left, up
    RUF = "ruf"  # right, up, forward (left-handed, y-up)
    RUB = "rub"  # right, up, backward (right-handed, y-up)


_PERMUTATIONS = {
    AxisConvention.FLU: np.eye(3),
    # (x, y, z) -> (-y, z, x)
    AxisConvention.RUF: np.array([
        [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0],
        [1.0, 0.0, 0.0],
    ]),
    # (x, y, z) -> (-y, z, -x)
    AxisConvention.RUB: np.array([
        [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0],
        [-1.0, 0.0, 0.0],
    ]),
}


def permutation(convention: AxisConvention) -> Array:
    """Signed permutation matrix mapping ROS coordinates to ``convention``."""
    return jnp.asarray(_PERMUTATIONS[AxisConvention(convention)])


def handedness(convention: AxisConvention) -> float:
    """+1.0 for right-handed conventions, -1.0 for left-handed ones."""
    return float(round(np.linalg.det(_PERMUTATIONS[AxisConvention(convention)])))


def vector_to(v: Array, convention: AxisConvention) -> Array:
    """Map (..., 3) positions or directions from ROS into ``convention``."""
    return jnp.einsum("ij,...j->...i", permutation(convention), jnp.asarray(v))


def vector_from(v: Array, convention: AxisConvention) -> Array:
    """Map (..., 3) positions or directions from ``convention`` back to ROS."""
    return jnp.einsum("ji,...j->...i", permutation(convention), jnp.asarray(v))


def axial_vector_to(v: Array, convention: AxisConvention) -> Array:
    """Map rotation axes; they flip sign when the handedness changes."""
    return handedness(convention) * vector_to(v, convention)


def axial_vector_from(v: Array, convention: AxisConvention) -> Array:
    return handedness(convention) * vector_from(v, convention)


def quaternion_to(q: Array, convention: AxisConvention) -> Array:
    """Map (..., 4) quaternions in (w, x, y, z) format into ``convention``."""
    q = jnp.asarray(q)
    xyz = axial_vector_to(q[..., 1:], convention)
    return jnp.concatenate([q[..., :1], xyz], axis=-1)


def quaternion_from(q: Array, convention: AxisConvention) -> Array:
    q = jnp.asarray(q)
    xyz = axial_vector_from(q[..., 1:], convention)
    return jnp.concatenate([q[..., :1], xyz], axis=-1)


def matrix_to(m: Array, convention: AxisConvention) -> Array:
    """Map (..., 3, 3) rotation or tensor matrices: ``P M P^T``.

    For an inertia tensor this amounts to permuting the six components and
    flipping the signs of the products of inertia that involve a negated axis.
    """
    P = permutation(convention)
    return jnp.einsum("ij,...jk,lk->...il", P, jnp.asarray(m), P)


def matrix_from(m: Array, convention: AxisConvention) -> Array:
    """Inverse of ``matrix_to``: ``P^T M P``."""
    P = permutation(convention)
    return jnp.einsum("ji,...jk,kl->...il", P, jnp.asarray(m), P)


def transform_to(T: Array, convention: AxisConvention) -> Array:
    """Map (..., 4, 4) homogeneous transforms blockwise into ``convention``."""
    return se3.from_position_and_rotation(
        vector_to(se3.get_position(T), convention),
        matrix_to(se3.get_rotation(T), convention),
    )


def transform_from(T: Array, convention: AxisConvention) -> Array:
    return se3.from_position_and_rotation(
        vector_from(se3.get_position(T), convention),
        matrix_from(se3.get_rotation(T), convention),
    )
