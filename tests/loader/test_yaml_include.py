"""Tests for YAML include: directive and --include."""

import sys
from pathlib import Path

import pytest

from archline.core.config import State
from archline.core.yaml_settings import (
    YamlWithIncludesSettingsSource,
    cli_includes,
    merge_dicts,
)


@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["prog"]
    yield
    sys.argv = original


def test_minimal_config_loads(fixtures_dir, mock_argv):
    """Minimal config with no includes loads successfully."""
    source = YamlWithIncludesSettingsSource(
        State, yaml_file=str(fixtures_dir / "minimal.yaml")
    )
    data = source()

    assert data["config"]["project"]["dir"] == "/tmp/infra"
    assert data["config"]["deploy"]["max_attempts"] == 4


def test_package_defaults_always_loaded(fixtures_dir, mock_argv):
    """Package default.yaml is merged under the project file."""
    source = YamlWithIncludesSettingsSource(
        State, yaml_file=str(fixtures_dir / "minimal.yaml")
    )
    data = source()

    assert "fixer" in data["config"]["prompts"]
    assert "system" in data["config"]["prompts"]["fixer"]


def test_yaml_include_directive(fixtures_dir, mock_argv):
    """Including file wins over the file it includes."""
    source = YamlWithIncludesSettingsSource(
        State, yaml_file=str(fixtures_dir / "with_include.yaml")
    )
    data = source()

    deploy = data["config"]["deploy"]
    assert deploy["build_command"] == "make build"
    assert deploy["synth_command"] == "npx cdk synth --quiet"


def test_nested_includes(fixtures_dir, mock_argv):
    """File that includes another file with includes works."""
    source = YamlWithIncludesSettingsSource(
        State, yaml_file=str(fixtures_dir / "nested_include.yaml")
    )
    data = source()

    assert data["config"]["aws"]["region"] == "eu-west-1"
    assert data["config"]["deploy"]["build_command"] == "make build"


def test_cli_include_overrides_yaml(fixtures_dir, mock_argv):
    """--include files are merged after the base file."""
    sys.argv = [
        "prog",
        "--include", str(fixtures_dir / "override_attempts.yaml"),
    ]

    source = YamlWithIncludesSettingsSource(
        State, yaml_file=str(fixtures_dir / "minimal.yaml")
    )
    data = source()

    assert data["config"]["deploy"]["max_attempts"] == 9
    assert data["config"]["project"]["dir"] == "/tmp/infra"


def test_circular_include_detected(fixtures_dir, mock_argv):
    """Circular include raises ValueError during initialization."""
    with pytest.raises(ValueError, match="Circular include"):
        YamlWithIncludesSettingsSource(
            State, yaml_file=str(fixtures_dir / "circular_a.yaml")
        )


def test_missing_include_file_raises_error(tmp_path, mock_argv):
    """Missing include file raises FileNotFoundError."""
    config_file = tmp_path / "archline.yaml"
    config_file.write_text("include: nonexistent.yaml\n")

    with pytest.raises(FileNotFoundError):
        YamlWithIncludesSettingsSource(State, yaml_file=str(config_file))


def test_merge_dicts_preserves_non_overlapping():
    """Merging keeps keys the override does not mention."""
    base = {"config": {"aws": {"region": "us-east-1", "profile": "dev"}}}
    override = {"config": {"aws": {"region": "eu-west-1"}}}

    result = merge_dicts(base, override)

    assert result["config"]["aws"]["region"] == "eu-west-1"
    assert result["config"]["aws"]["profile"] == "dev"
    assert base["config"]["aws"]["region"] == "us-east-1"


def test_cli_includes_accepts_both_forms():
    """--include works as a separate argument or with =."""
    argv = ["prog", "--include", "a.yaml", "debug", "--include=b.yaml"]

    assert cli_includes(argv) == ["a.yaml", "b.yaml"]


def test_later_include_wins(tmp_path, mock_argv):
    """Of two included files, the one listed last wins."""
    (tmp_path / "one.yaml").write_text("config:\n  aws:\n    region: one\n")
    (tmp_path / "two.yaml").write_text("config:\n  aws:\n    region: two\n")
    main = tmp_path / "archline.yaml"
    main.write_text("include:\n  - one.yaml\n  - two.yaml\n")

    data = YamlWithIncludesSettingsSource(State, yaml_file=str(main))()

    assert data["config"]["aws"]["region"] == "two"
