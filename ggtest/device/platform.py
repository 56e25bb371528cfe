"""Local command execution and file operations for the device under test."""

import logging
import os
import shutil
import signal
import stat
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandInput:
    """A command line to run on the device."""

    line: str
    args: tuple[str, ...] = ()
    working_directory: Optional[Path] = None
    timeout: Optional[float] = None

    @property
    def argv(self) -> list[str]:
        return [self.line, *self.args]


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str = field(default="", repr=False)
    stderr: str = field(default="", repr=False)


class CommandExecutionError(Exception):
    """Raised when a command fails, times out or cannot be signalled."""

    def __init__(self, message: str, command: Optional[CommandInput] = None):
        self.command = command
        super().__init__(message)


class LocalCommands:
    """Runs commands on the local host."""

    def execute(self, command: CommandInput) -> CommandResult:
        """
        Run a command to completion.

        Raises:
            CommandExecutionError: If the command exits non-zero, times out
                or cannot be started.
        """
        logger.debug(f"Executing {command.argv}")
        try:
            proc = subprocess.run(
                command.argv,
                cwd=command.working_directory,
                capture_output=True,
                text=True,
                timeout=command.timeout,
            )
        except subprocess.TimeoutExpired:
            raise CommandExecutionError(
                f"{command.line} timed out after {command.timeout} seconds", command
            )
        except OSError as e:
            raise CommandExecutionError(f"{command.line} could not be started: {e}", command)

        if proc.returncode != 0:
            raise CommandExecutionError(
                f"{command.line} exited with {proc.returncode}: {proc.stderr.strip()}", command
            )
        return CommandResult(proc.returncode, proc.stdout, proc.stderr)

    def execute_in_background(self, command: CommandInput) -> int:
        """
        Start a command in its own process group and return its pid.

        The timeout of the command does not apply to background processes.
        """
        try:
            proc = subprocess.Popen(
                command.argv,
                cwd=command.working_directory,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandExecutionError(f"{command.line} could not be started: {e}", command)
        return proc.pid

    def kill_all(self, pid: int) -> None:
        """Kill a process and every process in its group."""
        try:
            os.killpg(os.getpgid(pid), signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Process {pid} already exited")
        except PermissionError as e:
            raise CommandExecutionError(f"Cannot kill process {pid}: {e}")

    def make_executable(self, path: Path) -> None:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class LocalFiles:
    """File operations on the local host."""

    def make_directories(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def copy_to(self, source: Path, destination: Path) -> None:
        """Copy a directory tree into ``destination``, merging with what is there."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, destination, dirs_exist_ok=True)

    def write_text(self, path: Path, content: str, mode: Optional[int] = None) -> None:
        """Write a file, creating its parent directory. ``mode`` is applied before writing."""
        path.parent.mkdir(parents=True, exist_ok=True)
        if mode is None:
            path.write_text(content, encoding="utf-8")
            return
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(path, mode)
