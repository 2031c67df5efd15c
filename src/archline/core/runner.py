"""Shell command execution on top of invoke."""

from __future__ import annotations

from pathlib import Path

from invoke import Context
from invoke.exceptions import CommandTimedOut

from archline.core.log import logger
from archline.core.result import CommandResult

# Exit code reported for commands killed by a timeout
TIMEOUT_EXIT_CODE = -1


class Runner(Context):
    """invoke Context that captures output instead of raising.

    Deployment commands are expected to fail, so a non-zero exit is a
    result to inspect rather than an exception.
    """

    def capture(
        self,
        command: str,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run command through the shell and return what it printed.

        Args:
            command: Shell command line
            cwd: Directory to run in; the current one when None
            env: Variables added on top of os.environ
            timeout: Seconds before the command is killed

        Returns:
            CommandResult; exit_code is -1 after a timeout
        """
        logger.debug(f"Running: {command}", cwd=str(cwd) if cwd else None)

        options = {"hide": True, "warn": True, "in_stream": False}
        if timeout:
            options["timeout"] = timeout
        if env:
            options["env"] = env

        try:
            with self.cd(str(cwd or Path.cwd())):
                result = self.run(command, **options)
            exit_code = result.exited
        except CommandTimedOut as e:
            logger.warning(f"Command timed out after {timeout}s: {command}")
            result = e.result
            exit_code = TIMEOUT_EXIT_CODE

        for stream in (result.stdout, result.stderr):
            for line in stream.splitlines():
                logger.spew(line.rstrip())

        return CommandResult(
            command=command,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=exit_code,
        )
