#!/usr/bin/env python3
"""Archline CLI - deploy AWS CDK projects and repair them with an LLM."""

import asyncio

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from archline.command.debug import DebugCommand
from archline.command.deploy import DeployCommand
from archline.core.config import State
from archline.core.log import logger


class CliState(State):
    """Deploy AWS CDK projects, fixing failures with an LLM.

    `debug` runs build, synth and deploy, and on failure sends the
    error and the files it mentions to a model, writes back the
    corrected files and tries again. `deploy` bootstraps and deploys
    once without repairs.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.deploy.max_attempts 3)
    2. archline.yaml in the current directory, plus --include files
    3. .env file for secrets
    4. Environment variables
       (ARCHLINE_CONFIG__LLM__MODEL=anthropic:claude-3-7-sonnet-latest)
    """

    debug: CliSubCommand[DebugCommand]
    deploy: CliSubCommand[DeployCommand]

    def cli_cmd(self):
        """Run the chosen subcommand and exit with its status."""
        command = get_subcommand(self, is_required=False)
        if command is None:
            CliApp.run(CliState, cli_args=["--help"])
            raise SystemExit(2)

        # Closing the logger flushes and closes the log file
        with logger:
            status = asyncio.run(command.run_workflow(self))
        raise SystemExit(status)


def main():
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
