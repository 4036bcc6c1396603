"""SO(3) rotation utilities in JAX.

Rotations are handled as (..., 3, 3) matrices, (..., 4) unit quaternions in
(w, x, y, z) format, or URDF roll-pitch-yaw triples. URDF rpy angles are
fixed-axis rotations applied roll about X, then pitch about Y, then yaw
about Z, i.e. ``R = Rz(yaw) @ Ry(pitch) @ Rx(roll)``.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def inverse(R: Array) -> Array:
    """Invert a rotation matrix (its transpose)."""
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Rotate vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) vector(s) to rotate

    Returns:
        (..., 3) rotated vector(s)
    """
    return jnp.einsum('...ij,...j->...i', R, v)


def skew_symmetric(v: Array) -> Array:
    """
    Cross-product matrix of a 3D vector, so that ``skew(a) @ b == a x b``.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def from_rpy(rpy: Array) -> Array:
    """
    Convert URDF roll-pitch-yaw angles to rotation matrices.

    Args:
        rpy: (..., 3) array of [roll, pitch, yaw] angles in radians

    Returns:
        (..., 3, 3) array of rotation matrices, ``Rz @ Ry @ Rx``
    """
    rpy = jnp.asarray(rpy, dtype=float)
    cr, cp, cy = jnp.moveaxis(jnp.cos(rpy), -1, 0)
    sr, sp, sy = jnp.moveaxis(jnp.sin(rpy), -1, 0)

    return jnp.stack([
        jnp.stack([cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr], axis=-1),
        jnp.stack([sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr], axis=-1),
        jnp.stack([-sp, cp * sr, cp * cr], axis=-1)
    ], axis=-2)


def to_rpy(R: Array) -> Array:
    """
    Convert rotation matrices to URDF roll-pitch-yaw angles.

    At gimbal lock (pitch of +-pi/2) roll and yaw are not independent; yaw is
    then reported as zero and the whole rotation about X goes into roll.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of [roll, pitch, yaw] angles in radians
    """
    cos_pitch = jnp.sqrt(R[..., 0, 0] ** 2 + R[..., 1, 0] ** 2)
    gimbal_lock = cos_pitch < 1e-9

    pitch = jnp.arctan2(-R[..., 2, 0], cos_pitch)
    roll = jnp.where(
        gimbal_lock,
        jnp.arctan2(-R[..., 1, 2], R[..., 1, 1]),
        jnp.arctan2(R[..., 2, 1], R[..., 2, 2]),
    )
    yaw = jnp.where(gimbal_lock, 0.0, jnp.arctan2(R[..., 1, 0], R[..., 0, 0]))

    return jnp.stack([roll, pitch, yaw], axis=-1)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = jnp.asarray(quaternions, dtype=float)
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)
    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to quaternions (w, x, y, z) with w >= 0.

    Each of the four classic extraction formulas is evaluated for the whole
    batch and the numerically safest one (largest pivot) is selected by mask,
    which keeps the function branch-free under ``jit``.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of unit quaternions in (w, x, y, z) format
    """
    matrix = jnp.asarray(matrix, dtype=float)
    m00, m01, m02 = matrix[..., 0, 0], matrix[..., 0, 1], matrix[..., 0, 2]
    m10, m11, m12 = matrix[..., 1, 0], matrix[..., 1, 1], matrix[..., 1, 2]
    m20, m21, m22 = matrix[..., 2, 0], matrix[..., 2, 1], matrix[..., 2, 2]
    trace = m00 + m11 + m22
    eps = jnp.finfo(matrix.dtype).eps

    candidates = [
        (trace + 1.0, jnp.stack([trace + 1.0, m21 - m12, m02 - m20, m10 - m01], axis=-1)),
        (1.0 + m00 - m11 - m22, jnp.stack([m21 - m12, m00 - m11 - m22 + 1.0, m01 + m10, m02 + m20], axis=-1)),
        (1.0 + m11 - m00 - m22, jnp.stack([m02 - m20, m01 + m10, m11 - m00 - m22 + 1.0, m12 + m21], axis=-1)),
        (1.0 + m22 - m00 - m11, jnp.stack([m10 - m01, m02 + m20, m12 + m21, m22 - m00 - m11 + 1.0], axis=-1)),
    ]
    scaled = [0.5 * q / jnp.sqrt(jnp.maximum(pivot, eps))[..., None] for pivot, q in candidates]

    mask0 = trace > 0
    mask1 = (~mask0) & (m00 > m11) & (m00 > m22)
    mask2 = (~mask0) & (~mask1) & (m11 > m22)
    mask3 = (~mask0) & (~mask1) & (~mask2)

    quaternion = jnp.zeros_like(scaled[0])
    for mask, q in zip((mask0, mask1, mask2, mask3), scaled):
        quaternion = quaternion + jnp.where(mask[..., None], q, 0.0)

    quaternion = jnp.where(quaternion[..., 0:1] < 0, -quaternion, quaternion)
    return quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)
