"""Tests for Runner command execution."""

import tempfile
from pathlib import Path

from archline.core.runner import Runner


def test_capture_success():
    """Successful command reports exit code 0 and stdout."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture("echo 'Hello World'", cwd=Path(tmpdir))

        assert result.success is True
        assert result.exit_code == 0
        assert "Hello World" in result.stdout


def test_capture_failure_does_not_raise():
    """Failing command is returned, not raised."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture("echo oops >&2; exit 3", cwd=Path(tmpdir))

        assert result.success is False
        assert result.exit_code == 3
        assert "oops" in result.stderr


def test_capture_runs_in_cwd():
    """Commands run in the given directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        workdir = Path(tmpdir)
        (workdir / "marker.txt").write_text("x")

        result = Runner().capture("ls", cwd=workdir)

        assert "marker.txt" in result.stdout


def test_capture_env_overrides():
    """Environment overrides are visible to the command."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture(
            "echo $AWS_REGION",
            cwd=Path(tmpdir),
            env={"AWS_REGION": "ap-south-1"},
        )

        assert result.stdout.strip() == "ap-south-1"


def test_timeout_handling():
    """Timed out command reports exit code -1."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture("sleep 10", cwd=Path(tmpdir), timeout=1)

        assert result.success is False
        assert result.exit_code == -1


def test_missing_command_reports_exit_code():
    """Unknown commands come back as the shell's 127."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture(
            "definitely-not-a-real-command-xyz", cwd=Path(tmpdir)
        )

        assert result.exit_code == 127
        assert result.success is False


def test_capture_output_with_braces():
    """Lines such as synthesized JSON are echoed without error."""
    with tempfile.TemporaryDirectory() as tmpdir:
        result = Runner().capture(
            "echo '  \"Resources\": {'", cwd=Path(tmpdir)
        )

        assert result.success is True
        assert '"Resources": {' in result.stdout
