"""Lifecycle directory.

A static table from resource kind to the factory that builds its lifecycle.
The table is filled once at process start; lifecycles are built lazily on
first use and then shared by every scenario. Kinds registered with the same
factory share one lifecycle instance.
"""

import logging
import threading
from typing import Callable

from ggtest.models import ResourceKind
from ggtest.resources.base import Lifecycle
from ggtest.resources.iam_lifecycle import create_iam_lifecycle
from ggtest.resources.iot_lifecycle import create_iot_lifecycle
from ggtest.resources.s3_lifecycle import create_s3_lifecycle
from ggtest.utils.aws_client import AWSClientManager
from ggtest.utils.config import ConfigurationError

logger = logging.getLogger(__name__)

LifecycleFactory = Callable[[AWSClientManager], Lifecycle]


class LifecycleDirectory:
    """Maps resource kinds to process-wide lifecycle singletons."""

    def __init__(self, clients: AWSClientManager):
        self.clients = clients
        self._factories: dict[ResourceKind, LifecycleFactory] = {}
        self._instances: dict[LifecycleFactory, Lifecycle] = {}
        self._lock = threading.Lock()

    def register(self, kind: ResourceKind, factory: LifecycleFactory) -> None:
        """Register the factory that builds the lifecycle for ``kind``."""
        with self._lock:
            if kind in self._factories and self._factories[kind] is not factory:
                raise ValueError(f"A lifecycle is already registered for {kind.value}")
            self._factories[kind] = factory
        logger.debug(f"Registered lifecycle factory for {kind.value}")

    def registered_kinds(self) -> list[ResourceKind]:
        with self._lock:
            return list(self._factories)

    def resolve(self, kind: ResourceKind) -> Lifecycle:
        """
        Get the lifecycle for a kind, building it on first use.

        Construction happens under the directory lock, so parallel scenarios
        asking for the same kind for the first time get one instance.

        Raises:
            ConfigurationError: If no lifecycle is registered for the kind,
                or the factory cannot resolve its configuration.
        """
        with self._lock:
            factory = self._factories.get(kind)
            if factory is None:
                raise ConfigurationError(f"No lifecycle registered for {kind.value}")

            lifecycle = self._instances.get(factory)
            if lifecycle is None:
                logger.info(f"Building lifecycle for {kind.value}")
                lifecycle = factory(self.clients)
                self._instances[factory] = lifecycle
            return lifecycle


def default_directory(clients: AWSClientManager) -> LifecycleDirectory:
    """Build the directory with every supported resource kind."""
    directory = LifecycleDirectory(clients)
    directory.register(ResourceKind.IAM_ROLE, create_iam_lifecycle)
    directory.register(ResourceKind.IAM_POLICY, create_iam_lifecycle)
    directory.register(ResourceKind.IOT_THING, create_iot_lifecycle)
    directory.register(ResourceKind.IOT_POLICY, create_iot_lifecycle)
    directory.register(ResourceKind.IOT_THING_GROUP, create_iot_lifecycle)
    directory.register(ResourceKind.S3_BUCKET, create_s3_lifecycle)
    directory.register(ResourceKind.S3_OBJECT, create_s3_lifecycle)
    return directory
