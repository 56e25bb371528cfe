"""AWS client management for Greengrass test resources.

Clients are created once per process and shared by every scenario. This
layer never retries: botocore's own retries are disabled and every call has
a bounded connect and read timeout, so a throttled or timed-out call is
surfaced to the caller as a failure. ``classify_error`` tells the caller
which kind of failure it is.
"""

import logging
import threading
from enum import Enum
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
    UnknownRegionError,
)

from ggtest.utils.config import ConfigurationError

logger = logging.getLogger(__name__)

# IAM is a global service signed against one region per partition
GLOBAL_REGIONS = {
    "aws": "us-east-1",
    "aws-cn": "cn-north-1",
    "aws-us-gov": "us-gov-west-1",
}

TRANSIENT_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalError",
    "InternalFailureException",
    "RequestTimeout",
}

NOT_FOUND_ERROR_CODES = {
    "NoSuchEntity",
    "ResourceNotFoundException",
    "NoSuchBucket",
    "NoSuchKey",
    "NotFound",
    "404",
}


class ErrorCategory(Enum):
    """Categories of failures surfaced by this layer."""

    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    REMOTE = "remote"


def error_code(error: BaseException) -> str:
    """Get the AWS error code of a ClientError, or an empty string."""
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", ""))
    return ""


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Classify a failure so the caller can decide between abort and retry.

    Nothing in this package acts on TRANSIENT by retrying; the category is
    reported so a test runner can decide on its own.

    Args:
        error: The exception raised by a lifecycle or the directory

    Returns:
        The ErrorCategory of the failure
    """
    if isinstance(error, ConfigurationError):
        return ErrorCategory.CONFIGURATION
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)):
        return ErrorCategory.TRANSIENT

    code = error_code(error)
    if code in TRANSIENT_ERROR_CODES:
        return ErrorCategory.TRANSIENT
    if code in NOT_FOUND_ERROR_CODES:
        return ErrorCategory.NOT_FOUND
    return ErrorCategory.REMOTE


class AWSClientManager:
    """Manages boto3 clients shared by all lifecycles in a test run."""

    def __init__(
        self,
        region: str = "us-east-1",
        timeout_seconds: int = 60,
        session: Optional[boto3.Session] = None,
    ):
        self.region = region
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._clients: dict[tuple[str, str], Any] = {}
        self._lock = threading.Lock()

    def _get_session(self) -> boto3.Session:
        """Get or create the boto3 session."""
        if self._session is None:
            self._session = boto3.Session(region_name=self.region)
        return self._session

    def client_config(self) -> Config:
        """Get the botocore config used for every client."""
        return Config(
            connect_timeout=self.timeout_seconds,
            read_timeout=self.timeout_seconds,
            retries={"max_attempts": 0},  # never retried at this layer
        )

    def get_client(self, service_name: str, region_name: Optional[str] = None) -> Any:
        """Get boto3 client for specified service and region."""
        region_name = region_name or self.region
        key = (service_name, region_name)
        with self._lock:
            if key not in self._clients:
                session = self._get_session()
                logger.debug(f"Creating {service_name} client for {region_name}")
                self._clients[key] = session.client(
                    service_name,
                    config=self.client_config(),
                    region_name=region_name,  # type: ignore[call-overload]
                )
            return self._clients[key]

    def global_region(self) -> str:
        """
        Resolve the global signing region of the configured region's partition.

        Returns:
            Region name that global services of the partition are signed for

        Raises:
            ConfigurationError: If the region is unknown or its partition has
                no global region.
        """
        try:
            partition = self._get_session().get_partition_for_region(self.region)
        except UnknownRegionError:
            raise ConfigurationError(f"Global region not found: {self.region}")

        global_region = GLOBAL_REGIONS.get(partition)
        if global_region is None:
            raise ConfigurationError(
                f"Global region not found: {self.region} (partition {partition})"
            )
        return global_region

    @property
    def iot(self) -> Any:
        """Get IoT client."""
        return self.get_client("iot")

    @property
    def s3(self) -> Any:
        """Get S3 client."""
        return self.get_client("s3")

    @property
    def iam(self) -> Any:
        """Get IAM client for the partition's global region."""
        return self.get_client("iam", region_name=self.global_region())
