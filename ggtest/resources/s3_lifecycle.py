"""S3 bucket and object lifecycle."""

import logging
from typing import Any

from botocore.exceptions import ClientError

from ggtest.models import (
    Resource,
    ResourceKind,
    S3Bucket,
    S3BucketSpec,
    S3Object,
    S3ObjectSpec,
    Spec,
)
from ggtest.resources.base import Lifecycle
from ggtest.utils.aws_client import AWSClientManager

logger = logging.getLogger(__name__)

# us-east-1 rejects an explicit LocationConstraint
DEFAULT_BUCKET_REGION = "us-east-1"


class S3Lifecycle(Lifecycle):
    """Manages S3 buckets and objects used as component artifact stores."""

    kinds = (ResourceKind.S3_BUCKET, ResourceKind.S3_OBJECT)

    not_found_codes = frozenset({"NoSuchBucket", "NoSuchKey", "NotFound", "404"})

    def __init__(self, client: Any, region: str = DEFAULT_BUCKET_REGION):
        super().__init__(client)
        self.region = region

    def create(self, spec: Spec) -> Resource:
        if isinstance(spec, S3BucketSpec):
            return self._create_bucket(spec)
        if isinstance(spec, S3ObjectSpec):
            return self._create_object(spec)
        raise self._unsupported(spec)

    def delete(self, resource: Resource) -> None:
        if isinstance(resource, S3Bucket):
            self._delete_bucket(resource.bucket_name)
        elif isinstance(resource, S3Object):
            logger.info(f"Deleting S3 object {resource.identifier}")
            self._ignore_not_found(
                f"S3 object {resource.identifier}",
                self.client.delete_object,
                Bucket=resource.bucket_name,
                Key=resource.key,
            )
        else:
            raise self._unsupported(resource)

    def bucket_exists(self, bucket_name: str) -> bool:
        """
        Check whether a bucket exists and is reachable.

        Args:
            bucket_name: S3 bucket name

        Returns:
            True if the bucket exists, False if it does not
        """
        try:
            self.client.head_bucket(Bucket=bucket_name)
            return True
        except ClientError as e:
            if self.is_not_found(e):
                return False
            raise

    def _create_bucket(self, spec: S3BucketSpec) -> S3Bucket:
        region = spec.region or self.region
        kwargs: dict[str, Any] = {"Bucket": spec.bucket_name}
        if region != DEFAULT_BUCKET_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

        logger.info(f"Creating S3 bucket {spec.bucket_name} in {region}")
        self.client.create_bucket(**kwargs)
        return S3Bucket(bucket_name=spec.bucket_name, region=region)

    def _create_object(self, spec: S3ObjectSpec) -> S3Object:
        logger.info(f"Uploading S3 object s3://{spec.bucket_name}/{spec.key}")
        response = self.client.put_object(
            Bucket=spec.bucket_name, Key=spec.key, Body=spec.content
        )
        return S3Object(
            bucket_name=spec.bucket_name,
            key=spec.key,
            etag=response.get("ETag", ""),
        )

    def _delete_bucket(self, bucket_name: str) -> None:
        """Empty a bucket, then delete it."""
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket_name):
                keys = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if keys:
                    logger.info(f"Deleting {len(keys)} objects from S3 bucket {bucket_name}")
                    self.client.delete_objects(
                        Bucket=bucket_name, Delete={"Objects": keys, "Quiet": True}
                    )
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"S3 bucket {bucket_name} already deleted")
                return
            raise

        logger.info(f"Deleting S3 bucket {bucket_name}")
        self._ignore_not_found(
            f"S3 bucket {bucket_name}", self.client.delete_bucket, Bucket=bucket_name
        )


def create_s3_lifecycle(clients: AWSClientManager) -> S3Lifecycle:
    """Build the S3 lifecycle for the configured region."""
    return S3Lifecycle(clients.s3, region=clients.region)
