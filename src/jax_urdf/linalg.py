"""Symmetric 3x3 matrix algebra for inertia tensors.

Two eigen-solvers are provided:

- ``diagonalize`` is the production path: an iterative quaternion-Jacobi
  sweep, bounded to a fixed number of iterations and JIT-compiled. It never
  divides by a near-zero quantity, so it behaves well on ill-conditioned and
  nearly degenerate tensors.
- ``eigh_closed_form`` is the trigonometric closed form with eigenvectors from
  an orthogonal-complement construction. It is evaluated eagerly in NumPy and
  kept as an independent reference for validation.

Both return principal moments ``d`` and a rotation ``R`` such that
``R @ diag(d) @ R.T`` reconstructs the input matrix.
"""

from typing import NamedTuple, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from jax_urdf.transforms import quaternion, so3

Array = jax.Array

MAX_JACOBI_ITERATIONS = 24


class PrincipalInertia(NamedTuple):
    """Principal moments and the rotation whose columns are the principal axes.

    Attributes:
        principal_moments: (3,) eigenvalues of the inertia tensor.
        principal_axis_rotation: (4,) unit quaternion in (w, x, y, z) format.
    """

    principal_moments: Array
    principal_axis_rotation: Array


def trace(m: Array) -> Array:
    return jnp.trace(m, axis1=-2, axis2=-1)


def determinant(m: Array) -> Array:
    return jnp.linalg.det(m)


def transpose(m: Array) -> Array:
    return jnp.swapaxes(m, -1, -2)


def matmul(a: Array, b: Array) -> Array:
    return jnp.matmul(a, b)


def scalar_add(m: Array, s) -> Array:
    """Add ``s`` to every entry of ``m``."""
    return m + s


def scalar_subtract(m: Array, s) -> Array:
    """Subtract ``s`` from every entry of ``m``."""
    return m - s


def scalar_multiply(m: Array, s) -> Array:
    return m * s


def symmetric_matrix(components: Sequence[float]) -> Array:
    """
    Build a symmetric 3x3 matrix.

    Args:
        components: either 3 diagonal entries, the 6 URDF inertia components
            ``(ixx, ixy, ixz, iyy, iyz, izz)``, or 9 row-major entries (which
            are symmetrized).

    Returns:
        (3, 3) symmetric matrix
    """
    c = jnp.asarray(components, dtype=float).reshape(-1)
    if c.shape[0] == 3:
        return jnp.diag(c)
    if c.shape[0] == 6:
        xx, xy, xz, yy, yz, zz = c
        return jnp.array([[xx, xy, xz], [xy, yy, yz], [xz, yz, zz]])
    if c.shape[0] == 9:
        m = c.reshape(3, 3)
        return 0.5 * (m + m.T)
    raise ValueError(f"Expected 3, 6 or 9 components, got {c.shape[0]}")


def is_diagonal(m: Array, tolerance: float = 0.0) -> bool:
    m = jnp.asarray(m)
    off_diagonal = m - jnp.diag(jnp.diagonal(m))
    return bool(jnp.all(jnp.abs(off_diagonal) <= tolerance))


def reconstruct(moments: Array, rotation: Array) -> Array:
    """
    Rebuild a symmetric matrix from its eigen-decomposition.

    Args:
        moments: (..., 3) principal moments
        rotation: (..., 4) quaternion or (..., 3, 3) rotation matrix

    Returns:
        (..., 3, 3) matrix ``R @ diag(moments) @ R.T``
    """
    rotation = jnp.asarray(rotation, dtype=float)
    R = so3.from_quaternion(rotation) if rotation.shape[-1] == 4 else rotation
    return jnp.einsum("...ij,...j,...kj->...ik", R, jnp.asarray(moments, dtype=float), R)


# ---------------------------------------------------------------------------
# Closed form
# ---------------------------------------------------------------------------

def eigenvalues(m: Array) -> np.ndarray:
    """
    Eigenvalues of a symmetric 3x3 matrix by the trigonometric method.

    Args:
        m: (3, 3) symmetric matrix

    Returns:
        (3,) eigenvalues in ascending order
    """
    m = np.asarray(m, dtype=float)
    q = np.trace(m) / 3.0
    shifted = m - q * np.eye(3)
    p = np.sqrt(np.sum(shifted * shifted) / 6.0)
    if p == 0.0:
        return np.full(3, q)
    half_det = np.clip(np.linalg.det(shifted / p) / 2.0, -1.0, 1.0)
    theta = np.arccos(half_det) / 3.0
    values = q + 2.0 * p * np.cos(theta + 2.0 * np.pi * np.arange(3) / 3.0)
    return np.sort(values)


def _eigenvector_from_rows(m: np.ndarray, value: float) -> np.ndarray:
    # The eigenvector is orthogonal to every row of (M - value*I); take the
    # largest of the pairwise cross products for stability.
    rows = m - value * np.eye(3)
    crosses = np.array([
        np.cross(rows[0], rows[1]),
        np.cross(rows[0], rows[2]),
        np.cross(rows[1], rows[2]),
    ])
    norms = np.sum(crosses * crosses, axis=1)
    best = int(np.argmax(norms))
    return crosses[best] / np.sqrt(norms[best])


def _orthogonal_complement(w: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    if abs(w[0]) > abs(w[1]):
        u = np.array([-w[2], 0.0, w[0]]) / np.sqrt(w[0] * w[0] + w[2] * w[2])
    else:
        u = np.array([0.0, w[2], -w[1]]) / np.sqrt(w[1] * w[1] + w[2] * w[2])
    return u, np.cross(w, u)


def _eigenvector_in_complement(
    m: np.ndarray, known: np.ndarray, value: float, tolerance: float
) -> np.ndarray:
    # Restrict (M - value*I) to the plane orthogonal to ``known`` and solve the
    # resulting 2x2 problem for the null direction.
    u, v = _orthogonal_complement(known)
    mu, mv = m @ u, m @ v
    r00 = u @ mu - value
    r01 = u @ mv
    r11 = v @ mv - value
    abs00, abs01, abs11 = abs(r00), abs(r01), abs(r11)

    if abs00 >= abs11:
        if max(abs00, abs01) <= tolerance:
            # Repeated eigenvalue: any vector of the plane will do.
            return u
        if abs00 >= abs01:
            r01 /= r00
            r00 = 1.0 / np.sqrt(1.0 + r01 * r01)
            r01 *= r00
        else:
            r00 /= r01
            r01 = 1.0 / np.sqrt(1.0 + r00 * r00)
            r00 *= r01
        return r01 * u - r00 * v

    if max(abs11, abs01) <= tolerance:
        return u
    if abs11 >= abs01:
        r01 /= r11
        r11 = 1.0 / np.sqrt(1.0 + r01 * r01)
        r01 *= r11
    else:
        r11 /= r01
        r01 = 1.0 / np.sqrt(1.0 + r11 * r11)
        r11 *= r01
    return r11 * u - r01 * v


def eigh_closed_form(m: Array, tolerance: float = 1e-12) -> Tuple[np.ndarray, np.ndarray]:
    """
    Closed-form eigen-decomposition of a symmetric 3x3 matrix.

    The matrix is first scaled by its largest absolute entry so that
    ``tolerance`` is relative. Diagonal matrices are returned as-is with the
    identity (up to a column permutation) as eigenvectors.

    Args:
        m: (3, 3) symmetric matrix
        tolerance: threshold below which the reduced 2x2 problem is treated
            as degenerate (repeated eigenvalue)

    Returns:
        Tuple of (3,) ascending eigenvalues and a (3, 3) proper rotation whose
        columns are the matching eigenvectors.
    """
    m = np.asarray(m, dtype=float)
    scale = np.max(np.abs(m))
    if scale == 0.0:
        return np.zeros(3), np.eye(3)
    a = m / scale

    off_diagonal = a[0, 1] ** 2 + a[0, 2] ** 2 + a[1, 2] ** 2
    if off_diagonal == 0.0:
        values = np.diagonal(a).copy()
        order = np.argsort(values, kind="stable")
        vectors = np.eye(3)[:, order]
        if np.linalg.det(vectors) < 0:
            vectors[:, 0] = -vectors[:, 0]
        return values[order] * scale, vectors

    q = np.trace(a) / 3.0
    b = a - q * np.eye(3)
    p = np.sqrt((b[0, 0] ** 2 + b[1, 1] ** 2 + b[2, 2] ** 2 + 2.0 * off_diagonal) / 6.0)
    half_det = np.clip(np.linalg.det(b / p) / 2.0, -1.0, 1.0)
    angle = np.arccos(half_det) / 3.0
    beta2 = 2.0 * np.cos(angle)
    beta0 = 2.0 * np.cos(angle + 2.0 * np.pi / 3.0)
    beta1 = -(beta0 + beta2)
    values = q + p * np.array([beta0, beta1, beta2])

    # Start from the eigenvalue farthest from the other two.
    if half_det >= 0.0:
        e2 = _eigenvector_from_rows(a, values[2])
        e1 = _eigenvector_in_complement(a, e2, values[1], tolerance)
        e0 = np.cross(e1, e2)
    else:
        e0 = _eigenvector_from_rows(a, values[0])
        e1 = _eigenvector_in_complement(a, e0, values[1], tolerance)
        e2 = np.cross(e0, e1)

    return values * scale, np.stack([e0, e1, e2], axis=-1)


def principal_axes_closed_form(m: Array, tolerance: float = 1e-12) -> PrincipalInertia:
    values, vectors = eigh_closed_form(m, tolerance)
    return PrincipalInertia(
        principal_moments=jnp.asarray(values),
        principal_axis_rotation=so3.to_quaternion(jnp.asarray(vectors)),
    )


# ---------------------------------------------------------------------------
# Iterative quaternion-Jacobi
# ---------------------------------------------------------------------------

def _jacobi_step(m: Array, q: Array):
    R = so3.from_quaternion(q)
    d = R.T @ m @ R

    # Rotate about the axis whose plane holds the largest off-diagonal entry.
    d0, d1, d2 = jnp.abs(d[1, 2]), jnp.abs(d[0, 2]), jnp.abs(d[0, 1])
    axis = jnp.where((d0 > d1) & (d0 > d2), 0, jnp.where(d1 > d2, 1, 2))
    a1 = (axis + 1) % 3
    a2 = (a1 + 1) % 3

    off = d[a1, a2]
    gap = d[a1, a1] - d[a2, a2]
    converged = (off == 0.0) | (jnp.abs(gap) > 2e6 * jnp.abs(2.0 * off))

    # w = cot(2 phi)
    w = gap / jnp.where(off == 0.0, 1.0, 2.0 * off)
    abs_w = jnp.abs(w)
    sign = jnp.where(w >= 0.0, 1.0, -1.0)
    t = 1.0 / (abs_w + jnp.sqrt(w * w + 1.0))
    h = 1.0 / jnp.sqrt(t * t + 1.0)

    # Past |w| > 1000 the half-angle is tiny; use its first-order value.
    small = abs_w > 1000.0
    s = jnp.where(small, 1.0 / (4.0 * jnp.where(small, w, 1.0)), jnp.sqrt((1.0 - h) / 2.0) * sign)
    c = jnp.where(small, 1.0, jnp.sqrt((1.0 + h) / 2.0))

    r = jnp.zeros(4, dtype=q.dtype).at[0].set(c).at[axis + 1].set(s)
    next_q = quaternion.normalize(quaternion.multiply(q, r))
    return jnp.where(converged, q, next_q), converged


@jax.jit
def diagonalize(m: Array) -> Tuple[Array, Array]:
    """
    Diagonalize a symmetric 3x3 matrix by quaternion-Jacobi rotations.

    Each iteration zeroes the largest off-diagonal entry of ``R^T M R`` with a
    rotation about the remaining axis, using the half-angle of
    ``cot(2 phi) = (d_aa - d_bb) / (2 d_ab)``. The sweep stops after
    ``MAX_JACOBI_ITERATIONS`` or as soon as that entry is zero or negligible
    against the gap between the two diagonal entries it couples.

    Args:
        m: (3, 3) symmetric matrix

    Returns:
        Tuple of (3,) principal moments and the (4,) quaternion ``q`` such that
        ``R(q) @ diag(moments) @ R(q).T`` reconstructs ``m``.
    """
    m = jnp.asarray(m, dtype=float)

    def cond(carry):
        i, _, done = carry
        return (i < MAX_JACOBI_ITERATIONS) & (~done)

    def body(carry):
        i, q, _ = carry
        q, done = _jacobi_step(m, q)
        return i + 1, q, done

    init = (jnp.asarray(0), quaternion.identity(m.dtype), jnp.asarray(False))
    _, q, _ = jax.lax.while_loop(cond, body, init)

    q = quaternion.canonical(q)
    R = so3.from_quaternion(q)
    moments = jnp.diagonal(R.T @ m @ R)
    return moments, q


def principal_inertia(m: Array) -> PrincipalInertia:
    moments, q = diagonalize(m)
    return PrincipalInertia(principal_moments=moments, principal_axis_rotation=q)
