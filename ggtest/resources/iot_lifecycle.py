"""IoT thing, policy and thing group lifecycle.

A thing is created together with the parts a Greengrass core device needs:
thing groups, a certificate with its key pair, the policy attachment and
the token exchange role alias. Deleting the thing removes all of those
parts again, in reverse. The IoT policy itself is a separate tracked
resource since several things may share one.
"""

import logging
import threading
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ggtest.models import (
    IotCertificate,
    IotKeyPair,
    IotPolicy,
    IotPolicySpec,
    IotRoleAlias,
    IotRoleAliasSpec,
    IotThing,
    IotThingGroup,
    IotThingGroupSpec,
    IotThingSpec,
    Resource,
    ResourceKind,
    Spec,
)
from ggtest.resources.base import Lifecycle
from ggtest.utils.aws_client import AWSClientManager, error_code

logger = logging.getLogger(__name__)

DATA_ENDPOINT_TYPE = "iot:Data-ATS"
CREDENTIALS_ENDPOINT_TYPE = "iot:CredentialProvider"


class IotLifecycle(Lifecycle):
    """Manages IoT things, policies and thing groups."""

    kinds = (ResourceKind.IOT_THING, ResourceKind.IOT_POLICY, ResourceKind.IOT_THING_GROUP)

    not_found_codes = frozenset({"ResourceNotFoundException"})

    def __init__(self, client: Any):
        super().__init__(client)
        self._endpoints: dict[str, str] = {}
        self._endpoint_lock = threading.Lock()

    def create(self, spec: Spec) -> Resource:
        if isinstance(spec, IotThingSpec):
            return self._create_thing(spec)
        if isinstance(spec, IotPolicySpec):
            return self._create_policy(spec)
        if isinstance(spec, IotThingGroupSpec):
            return self._create_thing_group(spec)
        raise self._unsupported(spec)

    def delete(self, resource: Resource) -> None:
        if isinstance(resource, IotThing):
            self._delete_thing(resource)
        elif isinstance(resource, IotPolicy):
            self._delete_policy(resource.policy_name)
        elif isinstance(resource, IotThingGroup):
            if resource.created:
                self._delete_thing_group(resource.group_name)
            else:
                logger.info(f"Keeping IoT thing group {resource.group_name}, not created here")
        else:
            raise self._unsupported(resource)

    # Endpoints

    def data_endpoint(self) -> str:
        """Get the account's ATS data plane endpoint."""
        return self._endpoint(DATA_ENDPOINT_TYPE)

    def credentials_endpoint(self) -> str:
        """Get the account's credential provider endpoint."""
        return self._endpoint(CREDENTIALS_ENDPOINT_TYPE)

    def _endpoint(self, endpoint_type: str) -> str:
        with self._endpoint_lock:
            if endpoint_type not in self._endpoints:
                response = self.client.describe_endpoint(endpointType=endpoint_type)
                self._endpoints[endpoint_type] = response["endpointAddress"]
            return self._endpoints[endpoint_type]

    # Policies

    def get_policy(self, policy_name: str) -> Optional[IotPolicySpec]:
        """
        Get an existing policy by name.

        Args:
            policy_name: IoT policy name

        Returns:
            IotPolicySpec describing the policy, or None if it does not exist
        """
        try:
            response = self.client.get_policy(policyName=policy_name)
        except ClientError as e:
            if self.is_not_found(e):
                logger.debug(f"IoT policy {policy_name} not found")
                return None
            raise

        return IotPolicySpec(
            policy_name=response["policyName"],
            policy_document=response["policyDocument"],
        )

    def _create_policy(self, spec: IotPolicySpec) -> IotPolicy:
        logger.info(f"Creating IoT policy {spec.policy_name}")
        response = self.client.create_policy(
            policyName=spec.policy_name,
            policyDocument=spec.policy_document,
        )
        return IotPolicy(
            policy_name=response["policyName"],
            policy_arn=response["policyArn"],
            policy_version_id=response.get("policyVersionId", "1"),
        )

    def _delete_policy(self, policy_name: str) -> None:
        try:
            versions = self.client.list_policy_versions(policyName=policy_name)
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"IoT policy {policy_name} already deleted")
                return
            raise

        for version in versions.get("policyVersions", []):
            if version.get("isDefaultVersion"):
                continue
            self._ignore_not_found(
                f"Version {version['versionId']} of IoT policy {policy_name}",
                self.client.delete_policy_version,
                policyName=policy_name,
                policyVersionId=version["versionId"],
            )

        logger.info(f"Deleting IoT policy {policy_name}")
        self._ignore_not_found(
            f"IoT policy {policy_name}", self.client.delete_policy, policyName=policy_name
        )

    # Thing groups

    def _create_thing_group(self, spec: IotThingGroupSpec) -> IotThingGroup:
        try:
            logger.info(f"Creating IoT thing group {spec.group_name}")
            response = self.client.create_thing_group(thingGroupName=spec.group_name)
        except ClientError as e:
            if error_code(e) != "ResourceAlreadyExistsException":
                raise
            logger.info(f"IoT thing group {spec.group_name} already exists, reusing")
            response = self.client.describe_thing_group(thingGroupName=spec.group_name)
            return IotThingGroup(
                group_name=response["thingGroupName"],
                group_arn=response["thingGroupArn"],
                group_id=response["thingGroupId"],
                created=False,
            )

        return IotThingGroup(
            group_name=response["thingGroupName"],
            group_arn=response["thingGroupArn"],
            group_id=response["thingGroupId"],
        )

    def _delete_thing_group(self, group_name: str) -> None:
        logger.info(f"Deleting IoT thing group {group_name}")
        self._ignore_not_found(
            f"IoT thing group {group_name}",
            self.client.delete_thing_group,
            thingGroupName=group_name,
        )

    # Things

    def _create_thing(self, spec: IotThingSpec) -> IotThing:
        """
        Create a thing and its parts.

        If any step fails, the parts created so far are deleted again and the
        original error is raised.
        """
        logger.info(f"Creating IoT thing {spec.thing_name}")
        response = self.client.create_thing(thingName=spec.thing_name)
        thing = IotThing(
            thing_name=response["thingName"],
            thing_arn=response["thingArn"],
            thing_id=response["thingId"],
        )

        groups: list[IotThingGroup] = []
        certificate: Optional[IotCertificate] = None
        policy_name: Optional[str] = None
        role_alias: Optional[IotRoleAlias] = None
        try:
            for group_spec in spec.thing_groups:
                group = self._create_thing_group(group_spec)
                groups.append(group)
                self.client.add_thing_to_thing_group(
                    thingGroupName=group.group_name, thingName=spec.thing_name
                )

            if spec.create_certificate:
                certificate = self._create_certificate()
                self.client.attach_thing_principal(
                    thingName=spec.thing_name, principal=certificate.certificate_arn
                )
                if spec.policy is not None:
                    logger.info(
                        f"Attaching IoT policy {spec.policy.policy_name} to "
                        f"certificate {certificate.certificate_id}"
                    )
                    self.client.attach_policy(
                        policyName=spec.policy.policy_name,
                        target=certificate.certificate_arn,
                    )
                    policy_name = spec.policy.policy_name

            if spec.role_alias is not None:
                role_alias = self._create_role_alias(spec.role_alias)
        except Exception:
            logger.error(f"Failed to create IoT thing {spec.thing_name}, rolling back")
            partial = IotThing(
                thing_name=thing.thing_name,
                thing_arn=thing.thing_arn,
                thing_id=thing.thing_id,
                thing_groups=tuple(groups),
                certificate=certificate,
                policy_name=policy_name,
                role_alias=role_alias,
            )
            try:
                self._delete_thing(partial)
            except (ClientError, BotoCoreError) as rollback_error:
                logger.warning(f"Rollback of IoT thing {spec.thing_name} failed: {rollback_error}")
            raise

        return IotThing(
            thing_name=thing.thing_name,
            thing_arn=thing.thing_arn,
            thing_id=thing.thing_id,
            thing_groups=tuple(groups),
            certificate=certificate,
            policy_name=policy_name,
            role_alias=role_alias,
        )

    def _create_certificate(self) -> IotCertificate:
        response = self.client.create_keys_and_certificate(setAsActive=True)
        logger.info(f"Created IoT certificate {response['certificateId']}")
        return IotCertificate(
            certificate_id=response["certificateId"],
            certificate_arn=response["certificateArn"],
            certificate_pem=response["certificatePem"],
            key_pair=IotKeyPair(
                public_key=response["keyPair"]["PublicKey"],
                private_key=response["keyPair"]["PrivateKey"],
            ),
        )

    def _create_role_alias(self, spec: IotRoleAliasSpec) -> IotRoleAlias:
        logger.info(f"Creating IoT role alias {spec.name} for {spec.role_arn}")
        response = self.client.create_role_alias(
            roleAlias=spec.name,
            roleArn=spec.role_arn,
            credentialDurationSeconds=spec.credential_duration_seconds,
        )
        return IotRoleAlias(
            role_alias=response["roleAlias"],
            role_alias_arn=response["roleAliasArn"],
        )

    def _delete_thing(self, thing: IotThing) -> None:
        """
        Delete a thing and its parts.

        This handles the cleanup sequence:
        1. Delete the role alias
        2. Detach the policy and the thing from the certificate
        3. Deactivate and delete the certificate
        4. Remove the thing from its groups, deleting groups it created
        5. Delete the thing
        """
        name = thing.thing_name

        if thing.role_alias is not None:
            alias = thing.role_alias.role_alias
            logger.info(f"Deleting IoT role alias {alias}")
            self._ignore_not_found(
                f"IoT role alias {alias}", self.client.delete_role_alias, roleAlias=alias
            )

        if thing.certificate is not None:
            cert = thing.certificate
            if thing.policy_name is not None:
                self._ignore_not_found(
                    f"Attachment of IoT policy {thing.policy_name}",
                    self.client.detach_policy,
                    policyName=thing.policy_name,
                    target=cert.certificate_arn,
                )
            self._ignore_not_found(
                f"Attachment of certificate {cert.certificate_id} to {name}",
                self.client.detach_thing_principal,
                thingName=name,
                principal=cert.certificate_arn,
            )
            logger.info(f"Deleting IoT certificate {cert.certificate_id}")
            self._ignore_not_found(
                f"IoT certificate {cert.certificate_id}",
                self.client.update_certificate,
                certificateId=cert.certificate_id,
                newStatus="INACTIVE",
            )
            self._ignore_not_found(
                f"IoT certificate {cert.certificate_id}",
                self.client.delete_certificate,
                certificateId=cert.certificate_id,
                forceDelete=True,
            )

        for group in thing.thing_groups:
            self._ignore_not_found(
                f"Membership of {name} in {group.group_name}",
                self.client.remove_thing_from_thing_group,
                thingGroupName=group.group_name,
                thingName=name,
            )
            if group.created:
                self._delete_thing_group(group.group_name)

        logger.info(f"Deleting IoT thing {name}")
        self._ignore_not_found(f"IoT thing {name}", self.client.delete_thing, thingName=name)


def create_iot_lifecycle(clients: AWSClientManager) -> IotLifecycle:
    """Build the IoT lifecycle for the configured region."""
    return IotLifecycle(clients.iot)
