"""SE(3) rigid body transforms as homogeneous matrices in JAX.

Joint origins, inertial frames and the relative placement of merged bodies
are all (..., 4, 4) homogeneous matrices. Functions are pure and JIT-able.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p, dtype=float)
    R = jnp.asarray(R, dtype=float)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_xyz_rpy(xyz: Array, rpy: Array) -> Array:
    """Build the transform described by a URDF ``<origin xyz rpy>`` pair."""
    return from_position_and_rotation(jnp.asarray(xyz, dtype=float), so3.from_rpy(rpy))


def to_xyz_rpy(T: Array):
    """Split a transform into URDF ``(xyz, rpy)`` arrays."""
    return get_position(T), so3.to_rpy(get_rotation(T))


def multiply(T1: Array, T2: Array) -> Array:
    """Compose two transforms, ``T1 @ T2``."""
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Invert a transform using its block structure.

    ``T^-1 = [[R^T, -R^T @ t], [0, 1]]``

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R_inv = so3.inverse(get_rotation(T))
    t_inv = -so3.apply(R_inv, get_position(T))
    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Transform (..., 3) points: rotate, then translate.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) points to transform

    Returns:
        (..., 3) transformed points
    """
    return so3.apply(get_rotation(T), points) + get_position(T)


def get_position(T: Array) -> Array:
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    return T[..., :3, :3]
