"""Tests for the transforms module."""

import hypothesis
import jax
import jax.numpy as jnp
import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_urdf.transforms import AxisConvention, conventions, quaternion, se3, so3

# Use hypothesis profile for CI
hypothesis.settings.register_profile("ci", max_examples=10, deadline=None)


def _random_quaternion(key):
    quat = jax.random.uniform(key, (4,), minval=-1.0, maxval=1.0)
    return quat / jnp.linalg.norm(quat)


# Basic tests
def test_quaternion_to_matrix_identity():
    """Test quaternion_to_matrix with identity quaternion."""
    identity_quat = jnp.array([1.0, 0.0, 0.0, 0.0])
    matrix = so3.from_quaternion(identity_quat)
    expected = jnp.eye(3)
    np.testing.assert_allclose(matrix, expected, rtol=1e-6, atol=1e-6)


def test_matrix_to_quaternion_identity():
    """Test matrix_to_quaternion with identity matrix."""
    identity_matrix = jnp.eye(3)
    quat = so3.to_quaternion(identity_matrix)
    expected = jnp.array([1.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(quat, expected, rtol=1e-6, atol=1e-6)


def test_matrix_to_quaternion_half_turn():
    """A half turn about X has a zero scalar part and must still be recovered."""
    R = jnp.diag(jnp.array([1.0, -1.0, -1.0]))
    quat = so3.to_quaternion(R)
    np.testing.assert_allclose(quat, [0.0, 1.0, 0.0, 0.0], rtol=1e-6, atol=1e-6)


def test_transform_compose():
    """Test composition of transforms."""
    # Translation by [1, 0, 0]
    t1 = se3.from_position_and_rotation(jnp.array([1.0, 0.0, 0.0]), jnp.eye(3))

    # Translation by [0, 1, 0] + 90° rotation around Z
    R_z90 = so3.from_quaternion(jnp.array([0.7071068, 0.0, 0.0, 0.7071068]))
    t2 = se3.from_position_and_rotation(jnp.array([0.0, 1.0, 0.0]), R_z90)

    result = se3.multiply(t1, t2)

    point = jnp.array([1.0, 0.0, 0.0])
    transformed = se3.apply(result, point)

    expected = jnp.array([1.0, 2.0, 0.0])
    np.testing.assert_allclose(transformed, expected, rtol=1e-6, atol=1e-6)


# JIT tests
def test_quaternion_to_matrix_jit():
    """Test quaternion_to_matrix with JIT."""
    jitted_func = jax.jit(so3.from_quaternion)
    quat = jnp.array([0.7071068, 0.0, 0.7071068, 0.0])  # 90° around Y
    matrix = jitted_func(quat)
    expected = jnp.array([[0.0, 0.0, 1.0], [0.0, 1.0, 0.0], [-1.0, 0.0, 0.0]])
    np.testing.assert_allclose(matrix, expected, rtol=1e-6, atol=1e-6)


def test_matrix_to_quaternion_jit():
    """Test matrix_to_quaternion with JIT."""
    jitted_func = jax.jit(so3.to_quaternion)
    matrix = jnp.array([[0.0, 0.0, 1.0], [0.0, 1.0, 0.0], [-1.0, 0.0, 0.0]])
    quat = jitted_func(matrix)
    expected = jnp.array([0.7071068, 0.0, 0.7071068, 0.0])  # 90° around Y
    np.testing.assert_allclose(quat, expected, rtol=1e-6, atol=1e-6)


# Batched tests
def test_transform_points_batched():
    """Test transform_points with batched inputs."""
    batch_size = 10
    positions = jnp.tile(jnp.array([1.0, 2.0, 3.0]), (batch_size, 1))
    rotations = jnp.tile(jnp.eye(3), (batch_size, 1, 1))

    transforms = se3.from_position_and_rotation(positions, rotations)

    points = jnp.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])

    transformed = jax.vmap(lambda T: se3.apply(T, points))(transforms)

    assert transformed.shape == (batch_size, 2, 3)

    for i in range(batch_size):
        expected = points + positions[i]
        np.testing.assert_allclose(transformed[i], expected, rtol=1e-6, atol=1e-6)


# Property-based tests with hypothesis - explicit key handling
@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_quaternion_roundtrip(seed):
    """Test quaternion -> matrix -> quaternion roundtrip with explicit key."""
    quat = _random_quaternion(jax.random.PRNGKey(seed))

    matrix = so3.from_quaternion(quat)
    quat2 = so3.to_quaternion(matrix)

    # q and -q represent the same rotation
    dot_product = jnp.abs(jnp.sum(quat * quat2))
    assert dot_product > 0.999
    assert quat2[0] >= 0.0


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_transform_inverse_property(seed):
    """Test that T * T^-1 = Identity with explicit key generation."""
    master_key = jax.random.PRNGKey(seed)
    key1, key2, key3 = jax.random.split(master_key, 3)

    batch_size = 5
    num_points = 10

    positions = jax.random.uniform(key1, (batch_size, 3), minval=-5.0, maxval=5.0)
    quats_raw = jax.random.uniform(key2, (batch_size, 4), minval=-1.0, maxval=1.0)
    quats = quats_raw / jnp.linalg.norm(quats_raw, axis=-1, keepdims=True)

    rotations = jax.vmap(so3.from_quaternion)(quats)
    transforms = se3.from_position_and_rotation(positions, rotations)
    inverse_transforms = jax.vmap(se3.inverse)(transforms)

    points = jax.random.uniform(key3, (num_points, 3), minval=-10.0, maxval=10.0)

    transformed = jax.vmap(lambda T: se3.apply(T, points))(transforms)
    back_to_original = jax.vmap(lambda T, pts: se3.apply(T, pts))(inverse_transforms, transformed)

    original_batched = jnp.broadcast_to(points[None], (batch_size, num_points, 3))
    np.testing.assert_allclose(back_to_original, original_batched, rtol=1e-5, atol=1e-5)


# SO(3) tests
def test_so3_inverse():
    """Test SO(3) inverse."""
    R = so3.from_rpy(jnp.array([0.1, 0.2, 0.3]))
    R_inv = so3.inverse(R)

    I = R @ R_inv
    np.testing.assert_allclose(I, jnp.eye(3), rtol=1e-6, atol=1e-6)


def test_so3_apply():
    """Test SO(3) apply function."""
    R = so3.from_rpy(jnp.array([0.0, 0.0, jnp.pi / 2]))

    v_rotated = so3.apply(R, jnp.array([1.0, 0.0, 0.0]))

    np.testing.assert_allclose(v_rotated, [0.0, 1.0, 0.0], rtol=1e-6, atol=1e-6)


def test_so3_skew_symmetric():
    """Test skew-symmetric matrix function."""
    v = jnp.array([1.0, 2.0, 3.0])
    K = so3.skew_symmetric(v)

    expected = jnp.array([[0.0, -3.0, 2.0], [3.0, 0.0, -1.0], [-2.0, 1.0, 0.0]])
    np.testing.assert_allclose(K, expected, rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(K, -K.T, rtol=1e-6, atol=1e-6)


def test_rpy_applies_roll_then_pitch_then_yaw():
    """URDF rpy is Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    roll, pitch, yaw = 0.3, -0.4, 1.1
    Rx = so3.from_rpy(jnp.array([roll, 0.0, 0.0]))
    Ry = so3.from_rpy(jnp.array([0.0, pitch, 0.0]))
    Rz = so3.from_rpy(jnp.array([0.0, 0.0, yaw]))

    R = so3.from_rpy(jnp.array([roll, pitch, yaw]))

    np.testing.assert_allclose(R, Rz @ Ry @ Rx, rtol=1e-6, atol=1e-6)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_rpy_roundtrip(seed):
    """Test rpy -> matrix -> rpy away from gimbal lock."""
    key = jax.random.PRNGKey(seed)
    rpy = jax.random.uniform(key, (3,), minval=-1.5, maxval=1.5)

    rpy2 = so3.to_rpy(so3.from_rpy(rpy))

    np.testing.assert_allclose(rpy2, rpy, rtol=1e-6, atol=1e-6)


def test_rpy_gimbal_lock():
    """At pitch = pi/2 the rotation is still reproduced, with yaw reported as zero."""
    rpy = jnp.array([0.4, jnp.pi / 2, 0.0])
    R = so3.from_rpy(rpy)

    rpy2 = so3.to_rpy(R)

    assert float(rpy2[2]) == 0.0
    np.testing.assert_allclose(so3.from_rpy(rpy2), R, rtol=1e-6, atol=1e-6)


# SE(3) tests
def test_se3_from_position_and_rotation():
    """Test SE(3) construction from position and rotation."""
    p = jnp.array([1.0, 2.0, 3.0])
    R = jnp.eye(3)

    T = se3.from_position_and_rotation(p, R)

    expected = jnp.array([[1.0, 0.0, 0.0, 1.0], [0.0, 1.0, 0.0, 2.0], [0.0, 0.0, 1.0, 3.0], [0.0, 0.0, 0.0, 1.0]])
    np.testing.assert_allclose(T, expected, rtol=1e-6, atol=1e-6)


def test_se3_xyz_rpy_roundtrip():
    """Test URDF origin -> transform -> origin."""
    xyz = jnp.array([0.1, -0.2, 0.3])
    rpy = jnp.array([0.1, 0.2, 0.3])

    xyz2, rpy2 = se3.to_xyz_rpy(se3.from_xyz_rpy(xyz, rpy))

    np.testing.assert_allclose(xyz2, xyz, rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(rpy2, rpy, rtol=1e-6, atol=1e-6)


def test_se3_inverse():
    """Test SE(3) inverse."""
    T = se3.from_xyz_rpy(jnp.array([0.1, 0.2, 0.3]), jnp.array([0.05, 0.1, 0.15]))
    T_inv = se3.inverse(T)

    I = se3.multiply(T, T_inv)
    np.testing.assert_allclose(I, jnp.eye(4), rtol=1e-6, atol=1e-6)


def test_se3_apply_multiple_points():
    """Test SE(3) apply function with multiple points."""
    T = se3.from_xyz_rpy(jnp.array([1.0, 2.0, 3.0]), jnp.zeros(3))

    points = jnp.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])

    transformed = se3.apply(T, points)
    expected = points + jnp.array([1.0, 2.0, 3.0])

    np.testing.assert_allclose(transformed, expected, rtol=1e-6, atol=1e-6)


def test_se3_get_position_rotation():
    """Test SE(3) position and rotation extraction."""
    p = jnp.array([1.0, 2.0, 3.0])
    R = so3.from_rpy(jnp.array([0.1, 0.2, 0.3]))

    T = se3.from_position_and_rotation(p, R)

    np.testing.assert_allclose(se3.get_position(T), p, rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(se3.get_rotation(T), R, rtol=1e-6, atol=1e-6)


# Quaternion tests
def test_quaternion_multiply_matches_matrices():
    """Hamilton product composes like the rotation matrices."""
    q1 = so3.to_quaternion(so3.from_rpy(jnp.array([0.2, 0.0, 0.5])))
    q2 = so3.to_quaternion(so3.from_rpy(jnp.array([0.0, -0.7, 0.1])))

    product = quaternion.multiply(q1, q2)

    np.testing.assert_allclose(
        so3.from_quaternion(product),
        so3.from_quaternion(q1) @ so3.from_quaternion(q2),
        rtol=1e-6,
        atol=1e-6,
    )


def test_quaternion_inverse():
    """q * q^-1 is the identity."""
    q = quaternion.normalize(jnp.array([0.3, -0.2, 0.9, 0.1]))

    result = quaternion.multiply(q, quaternion.inverse(q))

    np.testing.assert_allclose(result, quaternion.identity(), rtol=1e-6, atol=1e-6)


def test_quaternion_canonical_and_is_close():
    """q and -q are the same rotation; canonical picks w >= 0."""
    q = quaternion.normalize(jnp.array([-0.5, 0.5, 0.5, 0.5]))

    assert float(quaternion.canonical(q)[0]) > 0.0
    assert quaternion.is_close(q, -q)
    assert not quaternion.is_close(q, quaternion.identity())


# Convention tests
def test_flu_is_identity():
    """The ROS convention leaves everything unchanged."""
    v = jnp.array([1.0, 2.0, 3.0])
    np.testing.assert_allclose(conventions.vector_to(v, AxisConvention.FLU), v)
    np.testing.assert_allclose(conventions.axial_vector_to(v, AxisConvention.FLU), v)


def test_ruf_vector_mapping():
    """ROS (x, y, z) maps to (-y, z, x) in the left-handed y-up convention."""
    v = jnp.array([1.0, 2.0, 3.0])

    assert conventions.handedness(AxisConvention.RUF) == -1.0
    np.testing.assert_allclose(conventions.vector_to(v, AxisConvention.RUF), [-2.0, 3.0, 1.0])
    # Rotation axes pick up the handedness sign
    np.testing.assert_allclose(conventions.axial_vector_to(v, AxisConvention.RUF), [2.0, -3.0, -1.0])


def test_rub_vector_mapping():
    """ROS (x, y, z) maps to (-y, z, -x) in the right-handed y-up convention."""
    v = jnp.array([1.0, 2.0, 3.0])

    assert conventions.handedness(AxisConvention.RUB) == 1.0
    np.testing.assert_allclose(conventions.vector_to(v, AxisConvention.RUB), [-2.0, 3.0, -1.0])
    np.testing.assert_allclose(conventions.axial_vector_to(v, AxisConvention.RUB), [-2.0, 3.0, -1.0])


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_convention_rotation_consistency(seed):
    """Converting a quaternion agrees with converting its matrix, for every convention."""
    q = _random_quaternion(jax.random.PRNGKey(seed))
    R = so3.from_quaternion(q)

    for convention in AxisConvention:
        R_target = conventions.matrix_to(R, convention)
        q_target = conventions.quaternion_to(q, convention)
        np.testing.assert_allclose(so3.from_quaternion(q_target), R_target, rtol=1e-6, atol=1e-6)
        np.testing.assert_allclose(conventions.quaternion_from(q_target, convention), q, rtol=1e-6, atol=1e-6)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_convention_transform_applies_consistently(seed):
    """Transforming then converting a point equals converting both first."""
    key1, key2, key3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    T = se3.from_position_and_rotation(
        jax.random.uniform(key1, (3,), minval=-1.0, maxval=1.0),
        so3.from_quaternion(_random_quaternion(key2)),
    )
    point = jax.random.uniform(key3, (3,), minval=-1.0, maxval=1.0)

    for convention in AxisConvention:
        expected = conventions.vector_to(se3.apply(T, point), convention)
        actual = se3.apply(conventions.transform_to(T, convention), conventions.vector_to(point, convention))
        np.testing.assert_allclose(actual, expected, rtol=1e-6, atol=1e-6)
        np.testing.assert_allclose(
            conventions.transform_from(conventions.transform_to(T, convention), convention),
            T,
            rtol=1e-6,
            atol=1e-6,
        )
