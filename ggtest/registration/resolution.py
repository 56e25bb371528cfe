"""Fallback resolution of the role and IoT policy used by a device.

Each resource is resolved in three tiers, each its own function:

1. Explicit: a name given in configuration. It must name an existing
   resource; a missing one is a ConfigurationError, never created.
2. Tracked: a resource of the scenario's derived name already created
   earlier in this scenario.
3. Default: create one from the packaged default config.
"""

import json
import logging
from typing import Any, Optional, cast

from ggtest.models import (
    IamPolicy,
    IamPolicySpec,
    IamRole,
    IamRoleSpec,
    IotPolicySpec,
    ResourceKind,
)
from ggtest.registration.configs import read_config_yaml
from ggtest.registration.context import ScenarioContext
from ggtest.resources.iam_lifecycle import IamLifecycle
from ggtest.resources.iot_lifecycle import IotLifecycle
from ggtest.utils.config import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ROLE_CONFIG = "basic_role.yaml"
DEFAULT_POLICY_CONFIG = "basic_policy.yaml"

ROLE_NAME = "ggc-role"
POLICY_NAME = "ggc-iot-policy"
ROLE_ALIAS_NAME = "ggc-role-alias"


def _document(value: Any) -> str:
    """Policy documents may be written inline as YAML or as a JSON string."""
    return value if isinstance(value, str) else json.dumps(value)


def _required(document: dict[str, Any], key: str, source: str) -> Any:
    if key not in document:
        raise ConfigurationError(f"'{key}' missing from {source}")
    return document[key]


# Role


def find_explicit_role(context: ScenarioContext) -> Optional[IamRole]:
    """
    Look up the role named in configuration.

    Returns:
        The existing role, or None if no role name is configured

    Raises:
        ConfigurationError: If the configured role does not exist.
    """
    role_name = context.config.tes_role_name
    if not role_name:
        return None

    iam = cast(IamLifecycle, context.registry.lifecycle(ResourceKind.IAM_ROLE))
    role = iam.get_role(role_name)
    if role is None:
        raise ConfigurationError(
            f"IAM role name {role_name}, passed as configuration, does not exist"
        )
    context.registry.resource_logger.log_lookup("iam_role", role_name, "configuration")
    return role


def find_tracked_role(context: ScenarioContext) -> Optional[IamRole]:
    """Find the scenario's role among roles already created in this scenario."""
    role_name = context.scenario_id.id_for(ROLE_NAME)
    for spec in context.registry.tracking_specs(ResourceKind.IAM_ROLE):
        if cast(IamRoleSpec, spec).role_name == role_name:
            role = context.registry.resource_for(spec)
            context.registry.resource_logger.log_lookup("iam_role", role_name, "scenario")
            return cast(IamRole, role)
    return None


def create_default_role(context: ScenarioContext) -> IamRole:
    """
    Create the default token exchange role and its access policy.

    The policy is created first so it can be attached to the role, which
    also makes teardown delete the role before the policy.
    """
    source = DEFAULT_ROLE_CONFIG
    document = read_config_yaml("iam", source)
    access = _required(document, "policy", source)
    scenario_id = context.scenario_id

    policy_spec = IamPolicySpec(
        policy_name=scenario_id.id_for(_required(access, "policyName", source)),
        policy_document=_document(_required(access, "policyDocument", source)),
        description=access.get("description", ""),
    )
    policy = cast(IamPolicy, context.registry.create(policy_spec))

    role_spec = IamRoleSpec(
        role_name=scenario_id.id_for(_required(document, "roleName", source)),
        trust_document=_document(_required(document, "trustDocument", source)),
        policy_arns=(policy.policy_arn,),
        description=document.get("description", ""),
    )
    return cast(IamRole, context.registry.create(role_spec))


def resolve_role(context: ScenarioContext, explicit: Optional[IamRole] = None) -> IamRole:
    """Resolve the token exchange role: explicit, then tracked, then default."""
    role = explicit or find_explicit_role(context)
    if role is not None:
        return role

    role = find_tracked_role(context)
    if role is not None:
        return role

    logger.info("No role configured or tracked, creating the default role")
    return create_default_role(context)


# IoT policy


def find_explicit_policy(context: ScenarioContext) -> Optional[IotPolicySpec]:
    """
    Look up the IoT policy named in configuration.

    Raises:
        ConfigurationError: If the configured policy does not exist.
    """
    policy_name = context.config.iot_policy_name
    if not policy_name:
        return None

    iot = cast(IotLifecycle, context.registry.lifecycle(ResourceKind.IOT_POLICY))
    policy = iot.get_policy(policy_name)
    if policy is None:
        raise ConfigurationError(
            f"IoT policy name {policy_name}, passed as configuration, does not exist"
        )
    context.registry.resource_logger.log_lookup("iot_policy", policy_name, "configuration")
    return policy


def find_tracked_policy(context: ScenarioContext) -> Optional[IotPolicySpec]:
    """Find the scenario's IoT policy among policies created in this scenario."""
    policy_name = context.scenario_id.id_for(POLICY_NAME)
    for spec in context.registry.tracking_specs(ResourceKind.IOT_POLICY):
        if cast(IotPolicySpec, spec).policy_name == policy_name:
            context.registry.resource_logger.log_lookup("iot_policy", policy_name, "scenario")
            return cast(IotPolicySpec, spec)
    return None


def create_policy_from(context: ScenarioContext, config_name: str) -> IotPolicySpec:
    """
    Create an IoT policy from a YAML config, named for this scenario.

    Args:
        context: Scenario context
        config_name: Packaged policy config name or a path to a YAML file

    Returns:
        The spec of the created policy
    """
    document = read_config_yaml("iot", config_name)
    spec = IotPolicySpec(
        policy_name=context.scenario_id.id_for(_required(document, "policyName", config_name)),
        policy_document=_document(_required(document, "policyDocument", config_name)),
    )
    context.registry.create(spec)
    return spec


def create_default_policy(context: ScenarioContext) -> IotPolicySpec:
    """Create the default IoT policy for a Greengrass core device."""
    return create_policy_from(context, DEFAULT_POLICY_CONFIG)


def resolve_policy(
    context: ScenarioContext, explicit: Optional[IotPolicySpec] = None
) -> IotPolicySpec:
    """Resolve the device's IoT policy: explicit, then tracked, then default."""
    policy = explicit or find_explicit_policy(context)
    if policy is not None:
        return policy

    policy = find_tracked_policy(context)
    if policy is not None:
        return policy

    logger.info("No IoT policy configured or tracked, creating the default policy")
    return create_default_policy(context)
