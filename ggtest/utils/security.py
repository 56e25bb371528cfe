"""Input validation and log sanitization.

Test runs handle device private keys and certificates, so everything that
reaches a log line is passed through LogSanitizer first.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-[0-9]{1,2}$")

# Naming rules per resource type, as documented by IAM, IoT and S3.
NAME_PATTERNS = {
    "iam_role": re.compile(r"^[\w+=,.@-]{1,64}$"),
    "iam_policy": re.compile(r"^[\w+=,.@-]{1,128}$"),
    "iot_policy": re.compile(r"^[\w+=.@-]{1,128}$"),
    "iot_thing": re.compile(r"^[a-zA-Z0-9:_-]{1,128}$"),
    "iot_thing_group": re.compile(r"^[a-zA-Z0-9:_-]{1,128}$"),
    "iot_role_alias": re.compile(r"^[\w=,@-]{1,128}$"),
    "s3_bucket": re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$"),
}

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = ("password", "secret", "token", "private", "credential", "pem")


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class InputValidator:
    """Validates configuration inputs before they reach AWS APIs."""

    @staticmethod
    def validate_region(region: str) -> ValidationResult:
        """Check that ``region`` looks like an AWS region code (us-east-1)."""
        if not region:
            return ValidationResult(["Region cannot be empty"])
        if not REGION_PATTERN.match(region):
            return ValidationResult([f"'{region}' is not a valid region (e.g. us-east-1)"])
        return ValidationResult()

    @staticmethod
    def validate_resource_name(name: str, resource_type: str) -> ValidationResult:
        """
        Validate a resource name against the naming rules of its service.

        Types without a known rule only need a non-empty name.
        """
        if not name:
            return ValidationResult([f"{resource_type} name cannot be empty"])
        pattern = NAME_PATTERNS.get(resource_type)
        if pattern is not None and not pattern.match(name):
            return ValidationResult([f"'{name}' is not a valid {resource_type} name"])
        return ValidationResult()


class LogSanitizer:
    """Removes key material and credentials from log output."""

    PATTERNS = [
        (
            re.compile(
                r"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.*?-----END \1PRIVATE KEY-----",
                re.DOTALL,
            ),
            "[REDACTED_PRIVATE_KEY]",
        ),
        (re.compile(r"(?:AKIA|ASIA)[0-9A-Z]{16}"), "[REDACTED_ACCESS_KEY]"),
        (
            re.compile(r"(?i)\b(password|secret|token)\s*[=:]\s*\S+"),
            lambda m: f"{m.group(1)}={REDACTED}",
        ),
    ]

    @classmethod
    def sanitize(cls, message: str) -> str:
        for pattern, replacement in cls.PATTERNS:
            message = pattern.sub(replacement, message)
        return message

    @classmethod
    def sanitize_value(cls, value: Any) -> Any:
        """Sanitize strings nested anywhere inside ``value``."""
        if isinstance(value, str):
            return cls.sanitize(value)
        if isinstance(value, dict):
            return cls.sanitize_dict(value)
        if isinstance(value, (list, tuple)):
            return [cls.sanitize_value(item) for item in value]
        return value

    @classmethod
    def sanitize_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize a mapping, redacting values under sensitive keys entirely."""
        return {
            key: REDACTED
            if any(s in str(key).lower() for s in SENSITIVE_KEYS)
            else cls.sanitize_value(value)
            for key, value in data.items()
        }
