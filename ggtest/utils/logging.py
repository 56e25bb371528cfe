"""Structured logging for resource lifecycle actions.

Every create, delete and lookup made for a scenario is logged through a
ResourceLogger, which keeps the entries for the end-of-scenario summary.
All output is sanitized so key material never reaches the logs.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ggtest.utils.security import LogSanitizer

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


class ActionType(Enum):
    """What a log entry records."""

    CREATE = "CREATE"
    DELETE = "DELETE"
    LOOKUP = "LOOKUP"
    SKIP = "SKIP"
    RENDER = "RENDER"
    ERROR = "ERROR"


_VERBS = {
    ActionType.CREATE: "Created",
    ActionType.DELETE: "Deleted",
    ActionType.SKIP: "Skipped",
    ActionType.RENDER: "Rendered",
}


@dataclass
class LogEntry:
    """One recorded action of a scenario."""

    scenario_id: str
    level: LogLevel
    action: ActionType
    resource_type: str
    resource_id: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    error_info: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def format(self) -> str:
        """Render the entry as a single log line."""
        prefix = f"[{self.scenario_id}] " if self.scenario_id else ""
        line = f"{prefix}[{self.action.value}] {self.resource_type} {self.resource_id}: {self.message}"
        if self.details:
            line += " (" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + ")"
        if self.error_info:
            line += f" - Error: {self.error_info}"
        return line

    def to_dict(self) -> Dict[str, Any]:
        """Convert the entry to a JSON-serializable mapping."""
        data: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "scenario": self.scenario_id,
            "level": self.level.name,
            "action": self.action.value,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        if self.error_info:
            data["error"] = self.error_info
        return data


class ResourceLogger:
    """Logging for one scenario's resource actions."""

    def __init__(self, scenario_id: str = ""):
        self.scenario_id = scenario_id
        self._entries: List[LogEntry] = []

    def _record(
        self,
        level: LogLevel,
        action: ActionType,
        resource_type: str,
        resource_id: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_info: Optional[Dict[str, Any]] = None,
    ) -> LogEntry:
        entry = LogEntry(
            scenario_id=self.scenario_id,
            level=level,
            action=action,
            resource_type=resource_type,
            resource_id=LogSanitizer.sanitize(resource_id),
            message=LogSanitizer.sanitize(message),
            details=LogSanitizer.sanitize_dict(details or {}),
            error_info=LogSanitizer.sanitize_dict(error_info) if error_info else None,
        )
        self._entries.append(entry)
        logger.log(level.value, entry.format())
        return entry

    def log_action_complete(
        self,
        action: ActionType,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log successful completion of an action."""
        verb = _VERBS.get(action, action.value.capitalize())
        self._record(LogLevel.INFO, action, resource_type, resource_id, f"{verb} resource", details)

    def log_lookup(self, resource_type: str, resource_id: str, source: str) -> None:
        """Log which resolution tier supplied a resource."""
        self._record(
            LogLevel.INFO, ActionType.LOOKUP, resource_type, resource_id, f"Resolved from {source}"
        )

    def log_error(
        self,
        resource_type: str,
        resource_id: str,
        error: BaseException,
        action: Optional[ActionType] = None,
        warning: bool = False,
    ) -> None:
        """
        Log a failed action with the error and its AWS error code.

        Deletion failures during teardown are logged as warnings since the
        teardown continues; everything else is an error.
        """
        action = action or ActionType.ERROR
        error_info: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        response = getattr(error, "response", None)
        if isinstance(response, dict):
            error_info["aws_error_code"] = response.get("Error", {}).get("Code", "Unknown")

        self._record(
            LogLevel.WARNING if warning else LogLevel.ERROR,
            action,
            resource_type,
            resource_id,
            f"{action.value.capitalize()} failed",
            error_info=error_info,
        )

    def log_teardown_complete(self, total_deleted: int, total_errors: int) -> None:
        """Log the teardown summary of the scenario."""
        self._record(
            LogLevel.INFO if total_errors == 0 else LogLevel.WARNING,
            ActionType.DELETE,
            "scenario",
            self.scenario_id or "*",
            f"Teardown complete: {total_deleted} deleted, {total_errors} failed",
            {"deleted": total_deleted, "failed": total_errors},
        )

    def get_log_entries(self) -> List[LogEntry]:
        """Get a copy of the entries recorded so far."""
        return list(self._entries)
