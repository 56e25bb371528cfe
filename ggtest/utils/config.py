"""Configuration management for Greengrass test resources.

Configuration is read from environment variables so the same test suite can
target different regions, stages and pre-existing resources.

Variables:
- AWS_REGION: Region all regional clients are built for
- GG_ENV_STAGE: Greengrass environment stage passed to the nucleus
- GG_TES_ROLE_NAME: Pre-existing IAM role for the token exchange service
- GG_IOT_POLICY_NAME: Pre-existing IoT policy for the device certificate
- GG_PROXY_URL: Outbound proxy written into the nucleus config
- GG_NUCLEUS_VERSION: Nucleus version written into the nucleus config
- GG_DATA_PLANE_PORT: Local data plane port written into the nucleus config
- GG_TEST_RESULTS_PATH: Root of the per-scenario working directories
- GG_ROOT_CA_PATH: Root CA bundle handed to the device
- GG_PERSIST_INSTALLED_SOFTWARE: Reuse an already registered device
- GG_CALL_TIMEOUT_SECONDS: Timeout for every remote call
- LOG_LEVEL: Log level for the ggtest package
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from ggtest.utils.security import InputValidator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

VALID_ENV_STAGES = {"prod", "gamma", "beta"}

TRUE_VALUES = ("true", "1", "yes")

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """An input is missing, malformed or names something that does not exist.

    Configuration errors are never retried.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_int(name: str, default: int) -> int:
    value = _env(name, str(default))
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid {name}: '{value}' is not a valid integer")


def _log_level_name(value: str) -> str:
    name = value.strip().upper()
    if name not in VALID_LOG_LEVELS:
        logger.warning(f"Invalid LOG_LEVEL '{name}', defaulting to INFO")
        return "INFO"
    return name


@dataclass
class HarnessConfig:
    """Configuration for a test run.

    Attributes:
        region: AWS region for regional clients.
        env_stage: Greengrass environment stage.
        tes_role_name: Explicit IAM role name. When set the role must exist.
        iot_policy_name: Explicit IoT policy name. When set the policy must exist.
        proxy_url: Outbound proxy URL written into the device config.
        nucleus_version: Nucleus version written into the device config.
        data_plane_port: Local data plane port for the device.
        test_results_path: Root directory for per-scenario working directories.
        root_ca_path: Root CA bundle for the device. Empty uses botocore's bundle.
        persist_installed_software: Skip registration for an already installed device.
        call_timeout_seconds: Connect and read timeout for every remote call.
        log_level: Log level for output.
    """

    region: str = "us-east-1"
    env_stage: str = "prod"
    tes_role_name: str = ""
    iot_policy_name: str = ""
    proxy_url: str = ""
    nucleus_version: str = "2.0.0"
    data_plane_port: int = 8443
    test_results_path: str = "testResults"
    root_ca_path: str = ""
    persist_installed_software: bool = False
    call_timeout_seconds: int = 60
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls, validate: bool = True) -> "HarnessConfig":
        """Build the configuration from environment variables.

        Raises:
            ConfigurationError: If an integer variable cannot be parsed, or
                ``validate`` is set and the configuration is invalid.
        """
        config = cls(
            region=_env("AWS_REGION", "us-east-1"),
            env_stage=_env("GG_ENV_STAGE", "prod").lower(),
            tes_role_name=_env("GG_TES_ROLE_NAME"),
            iot_policy_name=_env("GG_IOT_POLICY_NAME"),
            proxy_url=_env("GG_PROXY_URL"),
            nucleus_version=_env("GG_NUCLEUS_VERSION", "2.0.0"),
            data_plane_port=_env_int("GG_DATA_PLANE_PORT", 8443),
            test_results_path=_env("GG_TEST_RESULTS_PATH", "testResults"),
            root_ca_path=_env("GG_ROOT_CA_PATH"),
            persist_installed_software=_env("GG_PERSIST_INSTALLED_SOFTWARE").lower()
            in TRUE_VALUES,
            call_timeout_seconds=_env_int("GG_CALL_TIMEOUT_SECONDS", 60),
            log_level=_log_level_name(_env("LOG_LEVEL", "INFO")),
        )

        if validate:
            problems = config.validate()
            if problems:
                raise ConfigurationError(f"Invalid configuration: {problems}", errors=problems)
        return config

    def validate(self) -> List[str]:
        """Return every problem with this configuration, empty when valid."""
        problems = list(InputValidator.validate_region(self.region).errors)

        if self.env_stage not in VALID_ENV_STAGES:
            problems.append(
                f"GG_ENV_STAGE must be one of {sorted(VALID_ENV_STAGES)}, got '{self.env_stage}'"
            )
        if not 1 <= self.data_plane_port <= 65535:
            problems.append("GG_DATA_PLANE_PORT must be between 1 and 65535")
        if self.call_timeout_seconds < 1:
            problems.append("GG_CALL_TIMEOUT_SECONDS must be a positive integer")
        if self.tes_role_name:
            problems += InputValidator.validate_resource_name(self.tes_role_name, "iam_role").errors
        if self.iot_policy_name:
            problems += InputValidator.validate_resource_name(
                self.iot_policy_name, "iot_policy"
            ).errors
        if self.proxy_url and "://" not in self.proxy_url:
            problems.append(f"GG_PROXY_URL must include a scheme: {self.proxy_url}")
        return problems

    def get_numeric_log_level(self) -> int:
        if self.log_level not in VALID_LOG_LEVELS:
            return logging.INFO
        return logging.getLevelName(self.log_level)


def configure_logging(config: Optional[HarnessConfig] = None) -> logging.Logger:
    """Set up root logging and the ggtest package logger.

    The level comes from ``config`` or, without one, from LOG_LEVEL.
    """
    if config is None:
        config = HarnessConfig(log_level=_log_level_name(os.environ.get("LOG_LEVEL", "INFO")))
    level = config.get_numeric_log_level()

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        force=True,
    )
    # botocore logs request bodies at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))

    package_logger = logging.getLogger("ggtest")
    package_logger.setLevel(level)
    return package_logger
