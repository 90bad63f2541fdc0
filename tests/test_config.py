"""Tests for settings bounds and runtime environment handling."""

import pytest
from pydantic import ValidationError

from procmatch.config import Settings
from procmatch.schemas.models import ProcurementRequirement


def test_defaults():
    s = Settings(_env_file=None)
    assert s.procmatch_match_cap == 20
    assert s.procmatch_env == "development"
    assert s.reload_enabled is True


@pytest.mark.parametrize("env, reload", [("production", False), ("staging", False), (" Development ", True)])
def test_reload_follows_environment(env, reload):
    assert Settings(_env_file=None, procmatch_env=env).reload_enabled is reload


def test_environment_read_from_env_var(monkeypatch):
    monkeypatch.setenv("PROCMATCH_ENV", "production")
    monkeypatch.setenv("PORT", "9100")
    s = Settings(_env_file=None)
    assert s.reload_enabled is False
    assert s.port == 9100


@pytest.mark.parametrize(
    "field, value",
    [
        ("procmatch_match_cap", 0),
        ("procmatch_match_cap", -1),
        ("procmatch_scout_timeout", 0),
        ("procmatch_scout_max_results", 0),
        ("procmatch_extraction_repair_attempts", -1),
        ("procmatch_gateway_timeout", -5),
        ("procmatch_attachment_max_chars", 0),
    ],
)
def test_out_of_range_settings_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_requirement_collections_are_immutable(requirement):
    assert isinstance(requirement.specifications, tuple)
    assert isinstance(requirement.category_hints, tuple)
    with pytest.raises(AttributeError):
        requirement.category_hints.append("Other")
    restored = ProcurementRequirement.model_validate_json(requirement.to_json())
    assert restored == requirement
