"""Tests for import settings."""

from pathlib import Path

import pytest

from jax_urdf.config import ImportSettings
from jax_urdf.transforms import AxisConvention

FIXTURES = Path(__file__).parent / "fixtures"


def test_defaults():
    """Default floors and convention."""
    settings = ImportSettings()

    assert settings.convention == AxisConvention.RUF
    assert settings.min_mass == 0.1
    assert settings.min_inertia == 1e-6
    assert settings.optimize_fixed_joints is True


def test_convention_coerced_from_string():
    """Conventions may be given by value."""
    assert ImportSettings(convention="flu").convention == AxisConvention.FLU


@pytest.mark.parametrize(
    "changes",
    [{"min_mass": 0.0}, {"min_inertia": -1.0}, {"round_digits": -1}, {"convention": "zup"}],
)
def test_invalid_values(changes):
    """Non-positive floors and unknown conventions are rejected."""
    with pytest.raises(ValueError):
        ImportSettings(**changes)


def test_from_dict_rejects_unknown_keys():
    """Misspelled settings are reported instead of ignored."""
    with pytest.raises(ValueError, match="min_mas"):
        ImportSettings.from_dict({"min_mas": 0.2})


def test_from_yaml():
    """Settings load from a YAML mapping; missing keys keep their defaults."""
    settings = ImportSettings.from_yaml(FIXTURES / "settings.yaml")

    assert settings.convention == AxisConvention.FLU
    assert settings.min_mass == 0.05
    assert settings.min_inertia == 1e-7
    assert settings.optimize_fixed_joints is False
    assert settings.round_digits == 10


def test_from_empty_yaml(tmp_path):
    """An empty file gives the defaults."""
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert ImportSettings.from_yaml(path) == ImportSettings()


def test_from_yaml_requires_mapping(tmp_path):
    """The top level must be a mapping."""
    path = tmp_path / "list.yaml"
    path.write_text("- flu\n- ruf\n")

    with pytest.raises(ValueError, match="mapping"):
        ImportSettings.from_yaml(path)


def test_to_dict_roundtrip():
    """to_dict output is accepted by from_dict."""
    settings = ImportSettings(convention=AxisConvention.RUB, min_mass=0.2)

    data = settings.to_dict()

    assert data["convention"] == "rub"
    assert ImportSettings.from_dict(data) == settings
    assert settings.replace(min_mass=0.3).min_mass == 0.3
