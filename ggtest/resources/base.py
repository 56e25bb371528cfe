"""Base class for resource lifecycles."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar

from botocore.exceptions import ClientError

from ggtest.models import Resource, ResourceKind, Spec
from ggtest.utils.aws_client import error_code

logger = logging.getLogger(__name__)


class Lifecycle(ABC):
    """Creates and deletes the resources of one or more kinds.

    One instance per kind is shared by every scenario in the process, so
    implementations must be safe to call from several threads. ``delete``
    treats the service's not-found error codes as success.
    """

    kinds: ClassVar[tuple[ResourceKind, ...]] = ()

    not_found_codes: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, client: Any):
        self.client = client

    @abstractmethod
    def create(self, spec: Spec) -> Resource:
        """Create the remote resource described by ``spec``."""

    @abstractmethod
    def delete(self, resource: Resource) -> None:
        """Delete ``resource``. Already-absent resources are not an error."""

    def is_not_found(self, error: ClientError) -> bool:
        """Check if a ClientError means the remote entity is already absent."""
        return error_code(error) in self.not_found_codes

    def _ignore_not_found(
        self, description: str, operation: Callable[..., Any], **kwargs: Any
    ) -> bool:
        """
        Call a delete-style operation, treating not-found as success.

        Returns:
            True if the operation ran, False if the entity was already absent
        """
        try:
            operation(**kwargs)
            return True
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"{description} already deleted")
                return False
            raise

    def _unsupported(self, value: Any) -> TypeError:
        return TypeError(f"{type(self).__name__} does not handle {type(value).__name__}")
