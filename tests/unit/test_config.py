"""Tests for configuration loading and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from config import load_config, pool_options, sink_options, unify_options
from core.config_specs import DEFAULT_RELATION, RootConfigSpec

ROWS_PER_BATCH = 250
MAX_OPEN = 4
ENV_MAX_IDLE = 2

_ENV_NAMES = (
    "ARROWDUCK_DATABASE",
    "ARROWDUCK_RELATION",
    "ARROWDUCK_ROWS_PER_BATCH",
    "ARROWDUCK_COERCE_TYPES",
    "ARROWDUCK_INFER_TIME_UNITS",
    "ARROWDUCK_MAX_OPEN",
    "ARROWDUCK_MAX_IDLE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure defaults apply when no config file is found."""
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config == RootConfigSpec()
    assert config.relation == DEFAULT_RELATION


def test_loads_arrowduck_toml_from_parent(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure arrowduck.toml is found in a parent directory."""
    (tmp_path / "arrowduck.toml").write_text(
        """
relation = "events"

[decode]
rows_per_batch = 250

[pool]
max_open = 4
""".lstrip(),
        encoding="utf-8",
    )
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    config = load_config()
    assert config.relation == "events"
    assert config.decode.rows_per_batch == ROWS_PER_BATCH
    assert pool_options(config).max_open == MAX_OPEN


def test_loads_pyproject_tool_table(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure the [tool.arrowduck] table of pyproject.toml is used."""
    (tmp_path / "pyproject.toml").write_text(
        """
[project]
name = "demo"

[tool.arrowduck.unify]
coerce_types = true

[tool.arrowduck.sink]
append_mode = "strict"
""".lstrip(),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert unify_options(config).coerce_types is True
    assert sink_options(config).append_mode == "strict"


def test_explicit_pyproject_requires_tool_table(tmp_path: Path) -> None:
    """Ensure an explicit pyproject.toml without [tool.arrowduck] is an error."""
    path = tmp_path / "pyproject.toml"
    path.write_text('[project]\nname = "demo"\n', encoding="utf-8")
    with pytest.raises(ValueError, match=r"tool\.arrowduck"):
        load_config(path)


def test_explicit_missing_file_raises(tmp_path: Path) -> None:
    """Ensure a missing explicit config path raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.toml")


def test_unknown_keys_fail_validation(tmp_path: Path) -> None:
    """Ensure unknown keys are reported with the file location."""
    path = tmp_path / "arrowduck.toml"
    path.write_text("relatoin = 'typo'\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Config validation failed") as excinfo:
        load_config(path)
    assert str(path) in str(excinfo.value)


def test_non_positive_batch_size_fails_validation(tmp_path: Path) -> None:
    """Ensure rows_per_batch must be positive."""
    path = tmp_path / "arrowduck.toml"
    path.write_text("[decode]\nrows_per_batch = 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="rows_per_batch"):
        load_config(path)


@pytest.mark.parametrize("timeout", ["0", "-1.5"])
def test_non_positive_sink_timeout_fails_validation(tmp_path: Path, timeout: str) -> None:
    """Ensure sink.timeout_s must be positive when set."""
    path = tmp_path / "arrowduck.toml"
    path.write_text(f"[sink]\ntimeout_s = {timeout}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="timeout_s"):
        load_config(path)


def test_positive_sink_timeout_is_accepted(tmp_path: Path) -> None:
    """Ensure a positive sink timeout loads unchanged."""
    path = tmp_path / "arrowduck.toml"
    path.write_text("[sink]\ntimeout_s = 2.5\n", encoding="utf-8")
    assert load_config(path).sink.timeout_s == pytest.approx(2.5)


def test_invalid_relation_identifier_fails_validation(tmp_path: Path) -> None:
    """Ensure relation names must be plain identifiers."""
    path = tmp_path / "arrowduck.toml"
    path.write_text('relation = "drop table"\n', encoding="utf-8")
    with pytest.raises(ValueError, match="Config validation failed"):
        load_config(path)


def test_environment_overrides_file_values(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure ARROWDUCK_* variables take precedence over file values."""
    path = tmp_path / "arrowduck.toml"
    path.write_text('relation = "events"\n', encoding="utf-8")
    monkeypatch.setenv("ARROWDUCK_RELATION", "audit")
    monkeypatch.setenv("ARROWDUCK_ROWS_PER_BATCH", str(ROWS_PER_BATCH))
    monkeypatch.setenv("ARROWDUCK_INFER_TIME_UNITS", "yes")
    monkeypatch.setenv("ARROWDUCK_MAX_IDLE", str(ENV_MAX_IDLE))
    config = load_config(path)
    assert config.relation == "audit"
    assert config.decode.rows_per_batch == ROWS_PER_BATCH
    assert config.unify.infer_time_units is True
    assert config.pool.max_idle == ENV_MAX_IDLE


def test_malformed_environment_values_raise(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure malformed overrides are errors rather than silently ignored."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ARROWDUCK_MAX_OPEN", "many")
    with pytest.raises(ValueError, match="ARROWDUCK_MAX_OPEN"):
        load_config()
    monkeypatch.setenv("ARROWDUCK_MAX_OPEN", "0")
    with pytest.raises(ValueError, match="max_open"):
        load_config()
