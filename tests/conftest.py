"""Pytest configuration and fixtures for archline tests."""

import json
import sys
import tempfile
from pathlib import Path

import pytest

from archline.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only debug logging; nothing is sent to logfire.dev."""
    test_log_root = Path(tempfile.gettempdir()) / "archline-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(scope="session")
def test_config():
    """Config loaded from package defaults.

    sys.argv is swapped out so pytest's own options are not parsed
    as archline flags.
    """
    from archline.core.config import State

    old_argv = sys.argv
    sys.argv = ['archline']

    try:
        state = State()
        return state.config
    finally:
        sys.argv = old_argv


@pytest.fixture
def make_state(tmp_path):
    """Build a fresh State for a workflow run in tmp_path.

    Registry and audit files go under tmp_path so tests never touch
    the user's data directory.
    """
    from archline.core.config import State

    def _make(**overrides):
        old_argv = sys.argv
        sys.argv = ['archline']
        try:
            state = State()
        finally:
            sys.argv = old_argv
        state.config.project.dir = tmp_path / "project"
        state.config.registry.path = tmp_path / "registry.json"
        for section, values in overrides.items():
            target = getattr(state.config, section)
            for key, value in values.items():
                setattr(target, key, value)
        return state

    return _make


@pytest.fixture
def cdk_project(tmp_path):
    """Minimal CDK project layout on disk."""
    project = tmp_path / "project"
    (project / "lib").mkdir(parents=True)
    (project / "bin").mkdir()
    (project / "cdk.json").write_text(
        json.dumps({"app": "npx ts-node bin/app.ts"})
    )
    (project / "package.json").write_text(json.dumps({"name": "infra"}))
    (project / "lib" / "stack.ts").write_text(
        "export class InfraStack extends Stack {}\n"
    )
    (project / "bin" / "app.ts").write_text(
        "new InfraStack(app, 'InfraStack');\n"
    )
    return project
