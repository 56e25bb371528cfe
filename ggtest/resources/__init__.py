"""Resource lifecycles, the lifecycle directory and the per-scenario registry."""

from ggtest.resources.base import Lifecycle
from ggtest.resources.directory import LifecycleDirectory, default_directory
from ggtest.resources.iam_lifecycle import IamLifecycle
from ggtest.resources.iot_lifecycle import IotLifecycle
from ggtest.resources.registry import ResourceRegistry
from ggtest.resources.s3_lifecycle import S3Lifecycle

__all__ = [
    "Lifecycle",
    "LifecycleDirectory",
    "default_directory",
    "IamLifecycle",
    "IotLifecycle",
    "S3Lifecycle",
    "ResourceRegistry",
]
