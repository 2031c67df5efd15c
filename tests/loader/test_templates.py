"""Tests for template substitution in loaded configuration."""

import sys

import pytest
from pydantic_settings import SettingsConfigDict

from archline.core.config import State


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["prog"]
    yield
    sys.argv = original


def test_platformdirs_template_substituted(test_config):
    """{platformdirs.user_data_dir} in default.yaml is expanded."""
    path = str(test_config.registry.path)

    assert "{platformdirs" not in path
    assert path.endswith("fix-registry.json")


def test_runtime_templates_preserved(test_config):
    """Templates filled in at run time are left alone."""
    assert test_config.deploy.error_log_template == (
        "deployment-error-{attempt}.log"
    )
    assert "{log_root}" in test_config.logger.file.path
    assert "{run_name}" in test_config.logger.file.path


def test_config_reference_substituted(tmp_path, mock_argv):
    """{config.*} references resolve against loaded values."""
    config_file = tmp_path / "archline.yaml"
    config_file.write_text(
        "config:\n"
        f"  project:\n    dir: {tmp_path}\n"
        "  deploy:\n"
        "    history_file: \"{config.aws.region}-history.json\"\n"
    )

    class FileState(State):
        model_config = SettingsConfigDict(yaml_file=str(config_file))

    state = FileState()

    assert state.config.deploy.history_file == "us-east-1-history.json"
