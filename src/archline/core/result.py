"""Result types for command execution."""

from pydantic import BaseModel

SNIPPET_LENGTH = 200


class ErrorRecord(BaseModel):
    """Output of a failed external command."""

    message: str
    stdout: str = ""
    stderr: str = ""

    @property
    def text(self) -> str:
        """Combined stdout and stderr, as scanned for relevant files."""
        return f"{self.stdout}\n{self.stderr}"

    @property
    def snippet(self) -> str:
        """Start of stderr, or the message when stderr is empty."""
        return self.stderr[:SNIPPET_LENGTH] or self.message


class CommandResult(BaseModel):
    """Result of a single external command."""

    command: str
    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_error(self) -> ErrorRecord:
        return ErrorRecord(
            message=(
                f"Command failed: {self.command} "
                f"(exit code {self.exit_code})"
            ),
            stdout=self.stdout,
            stderr=self.stderr,
        )


class DeployResult(BaseModel):
    """Result of the build → synth → deploy pipeline."""

    success: bool
    error: ErrorRecord | None = None
    output: str = ""
