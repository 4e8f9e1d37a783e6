"""Sequential command execution for build steps.

Command lines come straight from the build manifest. Each line is split on
single spaces into a program and its arguments; there is no quoting or
escaping, so an argument containing a space cannot be expressed. Commands
are executed without a shell.

Example usage:
    >>> runner = CommandRunner()
    >>> ok = await runner.run(["cargo build", "cargo test"], Path("data/projects/app"), capture_log=True)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import IO

from drovah.errors import CommandFormatError, CommandNotFoundError, ConfigurationError
from drovah.logging import get_logger

logger = get_logger(__name__)

BUILD_LOG_NAME = "build.log"


def split_command(command: str) -> list[str]:
    """Split a manifest command line into program and arguments.

    Splitting happens on every single space, so consecutive spaces yield
    empty arguments.

    Raises:
        CommandFormatError: If the line has no program name.
    """
    parts = command.split(" ")
    if not parts[0]:
        raise CommandFormatError(f"Command has no program name: {command!r}")
    return parts


class CommandRunner:
    """Runs ordered lists of command lines in a working directory.

    Attributes:
        log_name: File name of the captured build log.
    """

    def __init__(self, log_name: str = BUILD_LOG_NAME) -> None:
        self.log_name = log_name
        self.logger = logger.bind(component="CommandRunner")

    def log_path(self, working_directory: Path) -> Path:
        """Location of the captured log inside ``working_directory``."""
        return working_directory / self.log_name

    async def run(
        self,
        commands: list[str],
        working_directory: Path,
        capture_log: bool = False,
    ) -> bool:
        """Run every command in order and report aggregate success.

        All commands run even after one fails. When ``capture_log`` is set,
        a fresh log file is created in the working directory and receives the
        combined stdout and stderr of every command; otherwise output is
        piped and discarded.

        Args:
            commands: Command lines to execute.
            working_directory: Directory each command runs in.
            capture_log: Capture output to the build log.

        Returns:
            True only if every command exited with status 0.

        Raises:
            ConfigurationError: If the working directory does not exist.
            CommandFormatError: If a command line has no program.
            CommandNotFoundError: If a program cannot be spawned.
        """
        if not working_directory.is_dir():
            raise ConfigurationError(f"Working directory not found: {working_directory}")

        argvs = [split_command(command) for command in commands]

        if capture_log:
            with open(self.log_path(working_directory), "wb") as log_file:
                codes = [
                    await self._run_one(command, argv, working_directory, log_file)
                    for command, argv in zip(commands, argvs)
                ]
        else:
            codes = [
                await self._run_one(command, argv, working_directory, None)
                for command, argv in zip(commands, argvs)
            ]

        failed = sum(1 for code in codes if code != 0)
        self.logger.info(
            "commands_finished",
            directory=str(working_directory),
            command_count=len(commands),
            failed_count=failed,
            captured=capture_log,
        )
        return failed == 0

    async def _run_one(
        self,
        command: str,
        argv: list[str],
        working_directory: Path,
        log_file: IO[bytes] | None,
    ) -> int:
        self.logger.debug("running_command", command=command, directory=str(working_directory))

        try:
            if log_file is not None:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=working_directory,
                    stdout=log_file,
                    stderr=asyncio.subprocess.STDOUT,
                )
                await proc.wait()
            else:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=working_directory,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
                await proc.communicate()
        except (FileNotFoundError, PermissionError) as e:
            self.logger.error(
                "command_not_found",
                command=command,
                program=argv[0],
                error=str(e),
            )
            raise CommandNotFoundError(argv[0], command) from e

        returncode = proc.returncode if proc.returncode is not None else -1
        if returncode != 0:
            self.logger.warning("command_failed", command=command, returncode=returncode)
        else:
            self.logger.debug("command_succeeded", command=command)
        return returncode
