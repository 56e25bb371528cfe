"""Per-scenario context passed to every workflow call."""

import getpass
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from botocore.httpsession import get_cert_path

from ggtest.resources.registry import ResourceRegistry
from ggtest.utils.config import ConfigurationError, HarnessConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioId:
    """Derives scenario-unique resource names."""

    id: str
    prefix: str = "gg"

    @classmethod
    def generate(cls, prefix: str = "gg") -> "ScenarioId":
        return cls(id=uuid.uuid4().hex[:10], prefix=prefix)

    def id_for(self, name: str) -> str:
        return f"{self.prefix}-{name}-{self.id}"

    def __str__(self) -> str:
        return f"{self.prefix}-{self.id}"


@dataclass(frozen=True)
class RegistrationContext:
    """Device-side inputs for registration."""

    root_ca: str
    connection_port: int = 8443


@dataclass
class ScenarioContext:
    """Everything one scenario's workflow needs.

    Each scenario owns its registry; nothing here is shared between
    scenarios except the lifecycles behind the registry.
    """

    scenario_id: ScenarioId
    registry: ResourceRegistry
    config: HarnessConfig
    test_directory: Path
    install_root: Path
    registration: RegistrationContext
    current_user: str = ""

    @property
    def core_thing_name(self) -> str:
        return self.scenario_id.id_for("ggc-thing")

    @property
    def thing_group_name(self) -> str:
        return self.scenario_id.id_for("ggc-group")

    @property
    def nucleus_version(self) -> str:
        return self.config.nucleus_version


def current_posix_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        logger.warning("Could not determine the current user")
        return ""


def load_root_ca(config: HarnessConfig) -> str:
    """
    Read the root CA bundle the device trusts.

    Uses GG_ROOT_CA_PATH when configured, otherwise the CA bundle botocore
    verifies AWS endpoints with, which includes the Amazon root CAs.

    Raises:
        ConfigurationError: If the configured bundle cannot be read.
    """
    path = Path(config.root_ca_path) if config.root_ca_path else Path(get_cert_path(True))
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read root CA bundle {path}: {e}")
