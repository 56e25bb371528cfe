"""IAM role and policy lifecycle.

Roles created here back the token exchange service of the device under
test. Deleting a role detaches its managed policies, deletes its inline
policies and removes it from any instance profile first, since IAM refuses
to delete a role that still has any of them.
"""

import logging
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ggtest.models import (
    IamPolicy,
    IamPolicySpec,
    IamRole,
    IamRoleSpec,
    Resource,
    ResourceKind,
    Spec,
)
from ggtest.resources.base import Lifecycle
from ggtest.utils.aws_client import AWSClientManager

logger = logging.getLogger(__name__)


class IamLifecycle(Lifecycle):
    """Manages IAM roles and managed policies."""

    kinds = (ResourceKind.IAM_ROLE, ResourceKind.IAM_POLICY)

    not_found_codes = frozenset({"NoSuchEntity"})

    def create(self, spec: Spec) -> Resource:
        if isinstance(spec, IamRoleSpec):
            return self._create_role(spec)
        if isinstance(spec, IamPolicySpec):
            return self._create_policy(spec)
        raise self._unsupported(spec)

    def delete(self, resource: Resource) -> None:
        if isinstance(resource, IamRole):
            self._delete_role(resource.role_name)
        elif isinstance(resource, IamPolicy):
            self._delete_policy(resource.policy_arn)
        else:
            raise self._unsupported(resource)

    def get_role(self, role_name: str) -> Optional[IamRole]:
        """
        Get an existing role by name.

        Args:
            role_name: IAM role name

        Returns:
            IamRole if the role exists, None if it does not
        """
        try:
            response = self.client.get_role(RoleName=role_name)
        except ClientError as e:
            if self.is_not_found(e):
                logger.debug(f"IAM role {role_name} not found")
                return None
            raise

        role = response["Role"]
        return IamRole(
            role_name=role["RoleName"],
            role_id=role["RoleId"],
            role_arn=role["Arn"],
        )

    def _create_policy(self, spec: IamPolicySpec) -> IamPolicy:
        kwargs: dict[str, Any] = {
            "PolicyName": spec.policy_name,
            "PolicyDocument": spec.policy_document,
        }
        if spec.description:
            kwargs["Description"] = spec.description

        logger.info(f"Creating IAM policy {spec.policy_name}")
        response = self.client.create_policy(**kwargs)
        return IamPolicy(
            policy_name=response["Policy"]["PolicyName"],
            policy_arn=response["Policy"]["Arn"],
        )

    def _create_role(self, spec: IamRoleSpec) -> IamRole:
        kwargs: dict[str, Any] = {
            "RoleName": spec.role_name,
            "AssumeRolePolicyDocument": spec.trust_document,
        }
        if spec.description:
            kwargs["Description"] = spec.description

        logger.info(f"Creating IAM role {spec.role_name}")
        role = self.client.create_role(**kwargs)["Role"]

        try:
            for policy_arn in spec.policy_arns:
                logger.info(f"Attaching policy {policy_arn} to role {spec.role_name}")
                self.client.attach_role_policy(RoleName=spec.role_name, PolicyArn=policy_arn)
        except Exception:
            logger.error(f"Failed to attach policies to role {spec.role_name}, rolling back")
            self._rollback_role(spec.role_name)
            raise

        return IamRole(
            role_name=role["RoleName"],
            role_id=role["RoleId"],
            role_arn=role["Arn"],
            policy_arns=spec.policy_arns,
        )

    def _rollback_role(self, role_name: str) -> None:
        try:
            self._delete_role(role_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Rollback of IAM role {role_name} failed: {e}")

    def _delete_role(self, role_name: str) -> None:
        """
        Delete a role with its attachments.

        This handles the cleanup sequence:
        1. Detach all managed policies
        2. Delete all inline policies
        3. Remove the role from all instance profiles
        4. Delete the role
        """
        try:
            attached = self.client.list_attached_role_policies(RoleName=role_name)
            inline = self.client.list_role_policies(RoleName=role_name)
            profiles = self.client.list_instance_profiles_for_role(RoleName=role_name)
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"IAM role {role_name} already deleted")
                return
            raise

        for policy in attached.get("AttachedPolicies", []):
            self._ignore_not_found(
                f"Attachment of {policy['PolicyArn']} to {role_name}",
                self.client.detach_role_policy,
                RoleName=role_name,
                PolicyArn=policy["PolicyArn"],
            )

        for policy_name in inline.get("PolicyNames", []):
            self._ignore_not_found(
                f"Inline policy {policy_name} of {role_name}",
                self.client.delete_role_policy,
                RoleName=role_name,
                PolicyName=policy_name,
            )

        for profile in profiles.get("InstanceProfiles", []):
            profile_name = profile["InstanceProfileName"]
            logger.info(f"Removing role {role_name} from instance profile {profile_name}")
            self._ignore_not_found(
                f"Instance profile {profile_name} membership of {role_name}",
                self.client.remove_role_from_instance_profile,
                InstanceProfileName=profile_name,
                RoleName=role_name,
            )

        logger.info(f"Deleting IAM role {role_name}")
        self._ignore_not_found(
            f"IAM role {role_name}", self.client.delete_role, RoleName=role_name
        )

    def _delete_policy(self, policy_arn: str) -> None:
        """Delete a managed policy after deleting its non-default versions."""
        try:
            versions = self.client.list_policy_versions(PolicyArn=policy_arn)
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"IAM policy {policy_arn} already deleted")
                return
            raise

        for version in versions.get("Versions", []):
            if version.get("IsDefaultVersion"):
                continue
            self._ignore_not_found(
                f"Version {version['VersionId']} of {policy_arn}",
                self.client.delete_policy_version,
                PolicyArn=policy_arn,
                VersionId=version["VersionId"],
            )

        logger.info(f"Deleting IAM policy {policy_arn}")
        self._ignore_not_found(
            f"IAM policy {policy_arn}", self.client.delete_policy, PolicyArn=policy_arn
        )


def create_iam_lifecycle(clients: AWSClientManager) -> IamLifecycle:
    """Build the IAM lifecycle with a client for the partition's global region."""
    return IamLifecycle(clients.iam)
