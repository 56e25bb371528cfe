"""Install, start and stop the Greengrass nucleus on the local device."""

import logging
import threading
from pathlib import Path

from ggtest.device.platform import CommandExecutionError, CommandInput, LocalCommands

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30

INSTALLER_JAR = "greengrass/lib/Greengrass.jar"
LOADER_PATH = "alts/current/distro/bin/loader"


class Greengrass:
    """Controls one nucleus installation under ``install_root``."""

    def __init__(
        self,
        commands: LocalCommands,
        env_stage: str,
        region: str,
        install_root: Path,
    ):
        self.commands = commands
        self.env_stage = env_stage
        self.region = region
        self.install_root = install_root
        self._pid = 0
        self._lock = threading.Lock()

    @property
    def pid(self) -> int:
        """Pid of the running loader, 0 when not started."""
        return self._pid

    def install(self) -> None:
        """Run the nucleus installer without starting the nucleus."""
        self.commands.execute(
            CommandInput(
                line="java",
                args=(
                    f"-Droot={self.install_root}",
                    "-Dlog.store=FILE",
                    "-jar",
                    str(self.install_root / INSTALLER_JAR),
                    "--aws-region",
                    self.region,
                    "--env-stage",
                    self.env_stage,
                    "--start",
                    "false",
                ),
                timeout=TIMEOUT_SECONDS,
            )
        )

    def start(self) -> None:
        loader = self.install_root / LOADER_PATH
        self.commands.make_executable(loader)
        pid = self.commands.execute_in_background(
            CommandInput(
                line=str(loader),
                working_directory=self.install_root,
                timeout=TIMEOUT_SECONDS,
            )
        )
        with self._lock:
            self._pid = pid
        logger.info(f"Starting greengrass on pid {pid}")

    def stop(self) -> None:
        """
        Kill the nucleus if it was started.

        Safe to call more than once and from several threads. A failure to
        kill is logged and the pid is kept so a later call can try again.
        """
        with self._lock:
            if self._pid == 0:
                return
            try:
                self.commands.kill_all(self._pid)
            except CommandExecutionError as e:
                logger.warning(f"Failed to kill process {self._pid}: {e}")
                return
            logger.info(f"Stopped greengrass on pid {self._pid}")
            self._pid = 0
