"""Data models for Greengrass test resources.

Specs describe desired state and are immutable value objects: every field
takes part in equality and hashing, so a spec can be used as a lookup key
when a later step wants to reuse something created earlier in the scenario.
Resources carry what the remote API returned for a spec.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional


class ResourceKind(Enum):
    """Kinds of AWS resources managed for a test scenario."""

    IAM_ROLE = "iam_role"
    IAM_POLICY = "iam_policy"
    IOT_POLICY = "iot_policy"
    IOT_THING = "iot_thing"
    IOT_THING_GROUP = "iot_thing_group"
    S3_BUCKET = "s3_bucket"
    S3_OBJECT = "s3_object"


@dataclass(frozen=True)
class Spec:
    """Base class for all resource specs."""

    kind: ClassVar[ResourceKind]


@dataclass(frozen=True)
class Resource(ABC):
    """Base class for all created resources."""

    @property
    @abstractmethod
    def identifier(self) -> str:
        """Name or id of the resource, used in logs and ledger labels."""


# IAM


@dataclass(frozen=True)
class IamPolicySpec(Spec):
    """IAM managed policy."""

    kind: ClassVar[ResourceKind] = ResourceKind.IAM_POLICY

    policy_name: str
    policy_document: str
    description: str = ""


@dataclass(frozen=True)
class IamPolicy(Resource):
    policy_name: str
    policy_arn: str

    @property
    def identifier(self) -> str:
        return self.policy_name


@dataclass(frozen=True)
class IamRoleSpec(Spec):
    """IAM role with managed policies attached at creation."""

    kind: ClassVar[ResourceKind] = ResourceKind.IAM_ROLE

    role_name: str
    trust_document: str
    policy_arns: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class IamRole(Resource):
    role_name: str
    role_id: str
    role_arn: str
    policy_arns: tuple[str, ...] = ()

    @property
    def identifier(self) -> str:
        return self.role_name


# IoT


@dataclass(frozen=True)
class IotPolicySpec(Spec):
    """IoT policy. The document is a JSON string."""

    kind: ClassVar[ResourceKind] = ResourceKind.IOT_POLICY

    policy_name: str
    policy_document: str


@dataclass(frozen=True)
class IotPolicy(Resource):
    policy_name: str
    policy_arn: str
    policy_version_id: str = "1"

    @property
    def identifier(self) -> str:
        return self.policy_name


@dataclass(frozen=True)
class IotThingGroupSpec(Spec):
    kind: ClassVar[ResourceKind] = ResourceKind.IOT_THING_GROUP

    group_name: str


@dataclass(frozen=True)
class IotThingGroup(Resource):
    group_name: str
    group_arn: str
    group_id: str
    created: bool = True

    @property
    def identifier(self) -> str:
        return self.group_name


@dataclass(frozen=True)
class IotRoleAliasSpec(Spec):
    """Role alias for the token exchange service.

    Role aliases are created as part of a thing, so this spec has no kind
    of its own in the lifecycle directory.
    """

    name: str
    role_arn: str
    credential_duration_seconds: int = 3600


@dataclass(frozen=True)
class IotRoleAlias(Resource):
    role_alias: str
    role_alias_arn: str

    @property
    def identifier(self) -> str:
        return self.role_alias


@dataclass(frozen=True)
class IotKeyPair:
    public_key: str = field(repr=False)
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class IotCertificate(Resource):
    certificate_id: str
    certificate_arn: str
    certificate_pem: str = field(repr=False)
    key_pair: IotKeyPair = field(repr=False)

    @property
    def identifier(self) -> str:
        return self.certificate_id


@dataclass(frozen=True)
class IotThingSpec(Spec):
    """IoT thing with its groups, certificate, policy and role alias."""

    kind: ClassVar[ResourceKind] = ResourceKind.IOT_THING

    thing_name: str
    thing_groups: tuple[IotThingGroupSpec, ...] = ()
    create_certificate: bool = False
    policy: Optional[IotPolicySpec] = None
    role_alias: Optional[IotRoleAliasSpec] = None


@dataclass(frozen=True)
class IotThing(Resource):
    thing_name: str
    thing_arn: str
    thing_id: str
    thing_groups: tuple[IotThingGroup, ...] = ()
    certificate: Optional[IotCertificate] = None
    policy_name: Optional[str] = None
    role_alias: Optional[IotRoleAlias] = None

    @property
    def identifier(self) -> str:
        return self.thing_name


# S3


@dataclass(frozen=True)
class S3BucketSpec(Spec):
    kind: ClassVar[ResourceKind] = ResourceKind.S3_BUCKET

    bucket_name: str
    region: Optional[str] = None


@dataclass(frozen=True)
class S3Bucket(Resource):
    bucket_name: str
    region: str

    @property
    def identifier(self) -> str:
        return self.bucket_name


@dataclass(frozen=True)
class S3ObjectSpec(Spec):
    kind: ClassVar[ResourceKind] = ResourceKind.S3_OBJECT

    bucket_name: str
    key: str
    content: bytes = b""


@dataclass(frozen=True)
class S3Object(Resource):
    bucket_name: str
    key: str
    etag: str = ""

    @property
    def identifier(self) -> str:
        return f"s3://{self.bucket_name}/{self.key}"


# Tracking


@dataclass(frozen=True)
class TrackedResource:
    """One ledger entry: a spec, the resource created from it and its kind."""

    spec: Spec
    resource: Resource
    kind: ResourceKind

    @property
    def label(self) -> str:
        return f"{self.kind.value}:{self.resource.identifier}"


@dataclass
class TeardownResult:
    """Result of a scenario teardown."""

    deleted: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def total_attempted(self) -> int:
        """Get total number of delete calls made."""
        return len(self.deleted) + len(self.errors)

    def record_error(self, label: str, message: str) -> None:
        key = label
        suffix = 2
        while key in self.errors:
            key = f"{label} ({suffix})"
            suffix += 1
        self.errors[key] = message

    def raise_for_errors(self) -> None:
        """Raise TeardownError if any delete failed."""
        if self.errors:
            raise TeardownError(self)


class TeardownError(Exception):
    """Raised when one or more resources could not be deleted."""

    def __init__(self, result: TeardownResult):
        self.result = result
        failed = ", ".join(sorted(result.errors))
        super().__init__(f"Failed to delete {len(result.errors)} resources: {failed}")
