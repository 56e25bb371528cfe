"""Per-scenario resource registry.

The registry records every resource created during a scenario, in creation
order, and deletes them all at the end of the scenario.

Teardown walks the ledger in reverse. A spec that references another
resource is only ever built after that resource was created, so reversing
creation order deletes dependents before their dependencies without a
separate dependency graph. A failed delete is logged and recorded, and the
remaining entries are still deleted.
"""

import logging
from typing import Iterator, Optional

from ggtest.models import (
    Resource,
    ResourceKind,
    Spec,
    TeardownResult,
    TrackedResource,
)
from ggtest.resources.base import Lifecycle
from ggtest.resources.directory import LifecycleDirectory
from ggtest.utils.aws_client import classify_error
from ggtest.utils.config import ConfigurationError
from ggtest.utils.logging import ActionType, ResourceLogger

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Tracks the resources created for one scenario.

    Steps of a scenario run sequentially, so the ledger is not locked. The
    lifecycles behind it are shared with other scenarios.
    """

    def __init__(self, directory: LifecycleDirectory, scenario_id: str = ""):
        self.directory = directory
        self.scenario_id = scenario_id
        self.resource_logger = ResourceLogger(scenario_id)
        self._ledger: list[TrackedResource] = []

    def __len__(self) -> int:
        return len(self._ledger)

    @property
    def tracked(self) -> tuple[TrackedResource, ...]:
        """Snapshot of the ledger in creation order."""
        return tuple(self._ledger)

    def lifecycle(self, kind: ResourceKind) -> Lifecycle:
        """Get the shared lifecycle for a kind."""
        return self.directory.resolve(kind)

    def create(self, spec: Spec) -> Resource:
        """
        Create a resource and track it for teardown.

        Every call creates a new remote resource; callers that want to reuse
        an earlier one look it up with ``tracking_specs`` first.

        Raises:
            ConfigurationError: If the spec's kind has no lifecycle.
            botocore.exceptions.ClientError: If the remote create fails.
                Nothing is tracked in that case.
        """
        kind = getattr(spec, "kind", None)
        if not isinstance(kind, ResourceKind):
            raise ConfigurationError(f"{type(spec).__name__} is not a creatable spec")

        lifecycle = self.lifecycle(kind)
        try:
            resource = lifecycle.create(spec)
        except Exception as e:
            self.resource_logger.log_error(kind.value, type(spec).__name__, e, ActionType.CREATE)
            logger.error(f"Creating {kind.value} failed ({classify_error(e).value}), not retrying")
            raise

        self._ledger.append(TrackedResource(spec=spec, resource=resource, kind=kind))
        self.resource_logger.log_action_complete(
            ActionType.CREATE, kind.value, resource.identifier
        )
        return resource

    def tracking_specs(self, kind: ResourceKind) -> Iterator[Spec]:
        """
        Yield every spec of ``kind`` created so far, in creation order.

        Each call iterates a snapshot of the ledger taken when the call is
        made, so calling again reflects later creates.
        """
        snapshot = tuple(self._ledger)
        return (tracked.spec for tracked in snapshot if tracked.kind == kind)

    def resource_for(self, spec: Spec) -> Optional[Resource]:
        """Get the resource created from the first tracked spec equal to ``spec``."""
        for tracked in self._ledger:
            if tracked.spec == spec:
                return tracked.resource
        return None

    def teardown(self) -> TeardownResult:
        """
        Delete every tracked resource in reverse creation order.

        Failures do not stop the teardown. The ledger is cleared afterwards;
        failed entries are reported in the result and not retried.

        Returns:
            TeardownResult with deleted labels and errors per label
        """
        result = TeardownResult()
        entries = list(reversed(self._ledger))
        if entries:
            logger.info(f"Tearing down {len(entries)} resources")

        for tracked in entries:
            label = tracked.label
            try:
                self.lifecycle(tracked.kind).delete(tracked.resource)
            except Exception as e:
                self.resource_logger.log_error(
                    tracked.kind.value,
                    tracked.resource.identifier,
                    e,
                    ActionType.DELETE,
                    warning=True,
                )
                result.record_error(label, f"{classify_error(e).value}: {e}")
                continue

            result.deleted.append(label)
            self.resource_logger.log_action_complete(
                ActionType.DELETE, tracked.kind.value, tracked.resource.identifier
            )

        self._ledger.clear()
        self.resource_logger.log_teardown_complete(len(result.deleted), len(result.errors))
        return result
