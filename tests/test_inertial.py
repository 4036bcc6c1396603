"""Tests for inertial resolution and export."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_urdf.config import ImportSettings
from jax_urdf.core.description import Inertia, InertiaCalculationMode, Inertial, Origin
from jax_urdf.errors import ExportError, WarningCode, WarningSink
from jax_urdf.inertial import ensure_minimum_inertia, export_inertial, resolve_inertial
from jax_urdf.transforms import AxisConvention


def _inertial(components, mass=1.0, origin=None, mode=InertiaCalculationMode.INHERIT_FALLBACK_MANUAL):
    ixx, ixy, ixz, iyy, iyz, izz = components
    return Inertial(
        mass=mass,
        inertia=Inertia(ixx=ixx, ixy=ixy, ixz=ixz, iyy=iyy, iyz=iyz, izz=izz, calculation_mode=mode),
        origin=origin,
    )


def test_ensure_minimum_inertia_clamps_exactly():
    """Moments below the floor become exactly the floor."""
    sink = WarningSink()

    moments = ensure_minimum_inertia([0.0, 5e-7, 0.2], 1e-6, sink, "link")

    assert np.asarray(moments).tolist() == [1e-6, 1e-6, 0.2]
    assert len(sink) == 1
    assert sink.warnings[0].code == WarningCode.INERTIA_CLAMPED
    assert sink.warnings[0].subject == "link"


def test_ensure_minimum_inertia_no_warning_above_floor():
    """Moments at or above the floor are untouched."""
    sink = WarningSink()

    moments = ensure_minimum_inertia([1e-6, 0.1, 0.2], 1e-6, sink)

    assert np.asarray(moments).tolist() == [1e-6, 0.1, 0.2]
    assert len(sink) == 0


def test_zero_inertia_clamped_to_floor():
    """A zero tensor resolves to principal moments of exactly 1e-6."""
    sink = WarningSink()

    body = resolve_inertial(_inertial((0, 0, 0, 0, 0, 0)), ImportSettings(), sink, "slider")

    assert np.asarray(body.inertia_tensor).tolist() == [1e-6, 1e-6, 1e-6]
    assert [w.code for w in sink] == [WarningCode.INERTIA_CLAMPED]
    assert sink.warnings[0].subject == "slider"


def test_mass_clamped():
    """Masses below the minimum are raised to it with a warning."""
    sink = WarningSink()

    body = resolve_inertial(_inertial((1, 0, 0, 1, 0, 1), mass=0.05), ImportSettings(), sink, "light")

    assert float(body.mass) == 0.1
    assert sink.by_code(WarningCode.MASS_CLAMPED)[0].subject == "light"


def test_ruf_permutes_principal_moments():
    """diag(1, 2, 3) in ROS is diag(2, 3, 1) in the y-up left-handed convention."""
    body = resolve_inertial(_inertial((1, 0, 0, 2, 0, 3)), ImportSettings(convention=AxisConvention.RUF))

    np.testing.assert_allclose(body.inertia_tensor, [2.0, 3.0, 1.0], rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(body.inertia_tensor_rotation, [1.0, 0.0, 0.0, 0.0], atol=1e-12)


def test_ruf_product_of_inertia_sign():
    """The ROS x-y product flips sign because ROS y maps onto a negated axis."""
    body = resolve_inertial(
        _inertial((1.0, 0.1, 0.0, 2.0, 0.0, 3.0)), ImportSettings(convention=AxisConvention.RUF)
    )

    tensor = np.asarray(body.inertia_matrix())
    # Target x is -ROS y and target z is ROS x
    np.testing.assert_allclose(tensor[0, 0], 2.0, atol=1e-9)
    np.testing.assert_allclose(tensor[2, 2], 1.0, atol=1e-9)
    np.testing.assert_allclose(tensor[0, 2], -0.1, atol=1e-9)


def test_center_of_mass_converted():
    """The inertial origin becomes the center of mass in the target convention."""
    inertial = _inertial((1, 0, 0, 1, 0, 1), origin=Origin(xyz=(1.0, 2.0, 3.0)))

    body = resolve_inertial(inertial, ImportSettings(convention=AxisConvention.RUF))

    np.testing.assert_allclose(body.center_of_mass, [-2.0, 3.0, 1.0])


def test_resolve_keeps_calculation_mode_and_defaults():
    """The authored mode and the default drag values are carried onto the body."""
    inertial = _inertial((1, 0, 0, 1, 0, 1), mode=InertiaCalculationMode.FORCE_AUTOMATIC)

    body = resolve_inertial(inertial, ImportSettings(default_angular_drag=0.2))

    assert body.calculation_mode == InertiaCalculationMode.FORCE_AUTOMATIC
    assert float(body.drag) == 0.0
    assert float(body.angular_drag) == 0.2


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_resolve_reconstructs_rotated_tensor(seed):
    """Principal moments and rotation reproduce the authored tensor in the link frame."""
    key1, key2 = jax.random.split(jax.random.PRNGKey(seed))
    rpy = tuple(float(v) for v in jax.random.uniform(key1, (3,), minval=-1.0, maxval=1.0))
    moments = jax.random.uniform(key2, (3,), minval=0.01, maxval=1.0)
    inertial = _inertial(
        (float(moments[0]), 0.0, 0.0, float(moments[1]), 0.0, float(moments[2])),
        origin=Origin(rpy=rpy),
    )

    body = resolve_inertial(inertial, ImportSettings(convention=AxisConvention.FLU))

    np.testing.assert_allclose(jnp.sort(body.inertia_tensor), jnp.sort(moments), rtol=1e-6, atol=1e-6)
    exported = export_inertial(body, ImportSettings(convention=AxisConvention.FLU))
    np.testing.assert_allclose(exported.inertia.matrix(), inertial.inertia.matrix(), rtol=1e-4, atol=1e-4)
    np.testing.assert_allclose(exported.origin.rpy, rpy, rtol=1e-6, atol=1e-6)


@pytest.mark.parametrize("convention", list(AxisConvention))
def test_export_is_inverse_of_resolve(convention):
    """Exporting a freshly resolved body gives back the authored inertial."""
    source = _inertial(
        (0.03, 0.001, -0.002, 0.025, 0.0005, 0.004),
        mass=1.5,
        origin=Origin(xyz=(0.0, 0.0, 0.2), rpy=(0.1, 0.2, 0.3)),
        mode=InertiaCalculationMode.FORCE_MANUAL,
    )
    settings_ = ImportSettings(convention=convention)
    body = resolve_inertial(source, settings_)

    # Without the source, values are recomputed
    recomputed = export_inertial(body, settings_)
    np.testing.assert_allclose(recomputed.inertia.matrix(), source.inertia.matrix(), rtol=1e-6, atol=1e-7)
    np.testing.assert_allclose(recomputed.origin.xyz, source.origin.xyz, atol=1e-12)
    np.testing.assert_allclose(recomputed.origin.rpy, source.origin.rpy, atol=1e-9)
    assert recomputed.mass == 1.5
    assert recomputed.inertia.calculation_mode == InertiaCalculationMode.FORCE_MANUAL

    # With it, unchanged values are reused verbatim
    assert export_inertial(body, settings_, source=source) == source


def test_export_omits_identity_origin():
    """A body without an authored origin is exported without one."""
    source = _inertial((0.1, 0, 0, 0.1, 0, 0.1))
    body = resolve_inertial(source)

    assert export_inertial(body).origin is None
    assert export_inertial(body, source=source) == source


def test_export_without_body():
    """Exporting a missing body is an error naming the link."""
    with pytest.raises(ExportError, match="tool"):
        export_inertial(None, link_name="tool")
