"""Quaternion algebra in JAX.

All quaternions use the (w, x, y, z) layout. Composition follows the Hamilton
convention, so ``multiply(q1, q2)`` rotates by ``q2`` first and then by ``q1``,
matching ``from_quaternion(q1) @ from_quaternion(q2)``.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def identity(dtype=float) -> Array:
    """The identity rotation."""
    return jnp.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)


def normalize(q: Array) -> Array:
    """Normalize quaternions to unit length."""
    return q / jnp.linalg.norm(q, axis=-1, keepdims=True)


def multiply(q1: Array, q2: Array) -> Array:
    """
    Hamilton product of two quaternions.

    Args:
        q1: (..., 4) left quaternion
        q2: (..., 4) right quaternion

    Returns:
        (..., 4) product ``q1 * q2``
    """
    w1, x1, y1, z1 = jnp.moveaxis(jnp.asarray(q1), -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(jnp.asarray(q2), -1, 0)

    return jnp.stack([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], axis=-1)


def conjugate(q: Array) -> Array:
    q = jnp.asarray(q)
    return q * jnp.array([1.0, -1.0, -1.0, -1.0], dtype=q.dtype)


def inverse(q: Array) -> Array:
    """Inverse of a (not necessarily unit) quaternion."""
    q = jnp.asarray(q)
    return conjugate(q) / jnp.sum(q * q, axis=-1, keepdims=True)


def canonical(q: Array) -> Array:
    """Pick the representative with a non-negative scalar part."""
    q = jnp.asarray(q)
    return jnp.where(q[..., 0:1] < 0, -q, q)


def is_close(q1: Array, q2: Array, atol: float = 1e-9) -> bool:
    """Whether two unit quaternions describe the same rotation.

    ``q`` and ``-q`` represent the same rotation, so the comparison is done on
    the absolute value of their dot product.
    """
    dot = jnp.abs(jnp.sum(normalize(jnp.asarray(q1)) * normalize(jnp.asarray(q2)), axis=-1))
    return bool(jnp.all(1.0 - dot <= atol))
