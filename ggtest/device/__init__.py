"""Local device control: commands, files and the Greengrass nucleus process."""

from ggtest.device.greengrass import Greengrass
from ggtest.device.platform import (
    CommandExecutionError,
    CommandInput,
    CommandResult,
    LocalCommands,
    LocalFiles,
)

__all__ = [
    "Greengrass",
    "CommandExecutionError",
    "CommandInput",
    "CommandResult",
    "LocalCommands",
    "LocalFiles",
]
