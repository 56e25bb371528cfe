"""Registration of the device under test as a Greengrass core device.

Registration resolves the IoT policy and token exchange role, creates the
core thing with its certificate and role alias, renders the nucleus config
and lays out the device's files in the install root.
"""

import logging
from pathlib import Path
from typing import Optional, cast

from ggtest.device.platform import LocalFiles
from ggtest.models import (
    IotRoleAlias,
    IotRoleAliasSpec,
    IotThing,
    IotThingGroupSpec,
    IotThingSpec,
    ResourceKind,
)
from ggtest.registration.context import ScenarioContext
from ggtest.registration.resolution import (
    ROLE_ALIAS_NAME,
    find_explicit_policy,
    find_explicit_role,
    resolve_policy,
    resolve_role,
)
from ggtest.registration.template import build_substitutions, load_template, render_config
from ggtest.resources.iot_lifecycle import IotLifecycle
from ggtest.utils.logging import ActionType

logger = logging.getLogger(__name__)

PRIVATE_KEY_FILE = "privKey.key"
CERTIFICATE_FILE = "thingCert.crt"
ROOT_CA_FILE = "rootCA.pem"
CONFIG_FILE = Path("config") / "config.yaml"


class DeviceRegistration:
    """Registers the device of one scenario."""

    def __init__(self, context: ScenarioContext, files: Optional[LocalFiles] = None):
        self.context = context
        self.files = files or LocalFiles()

    @property
    def _iot(self) -> IotLifecycle:
        return cast(IotLifecycle, self.context.registry.lifecycle(ResourceKind.IOT_THING))

    def register_as_thing(
        self, config_name: Optional[str] = None, create_identity: bool = True
    ) -> Optional[IotThing]:
        """
        Register the device as an IoT thing and write its configuration.

        Args:
            config_name: Nucleus template name or path; the default template if None
            create_identity: If False, no AWS resources are resolved or created
                and the identity placeholders are rendered as the sentinel

        Returns:
            The created thing, or None if no identity was created

        Raises:
            ConfigurationError: If an explicitly configured role or policy
                does not exist. Nothing is created in that case.
        """
        registry = self.context.registry
        if self.context.config.persist_installed_software:
            registry.resource_logger.log_action_complete(
                ActionType.SKIP,
                ResourceKind.IOT_THING.value,
                self.context.core_thing_name,
                {"reason": "installed software persisted"},
            )
            return None

        template = load_template(config_name)
        if not create_identity:
            self.setup_config(None, None, template)
            return None

        explicit_role = find_explicit_role(self.context)
        explicit_policy = find_explicit_policy(self.context)

        policy = resolve_policy(self.context, explicit_policy)
        role = resolve_role(self.context, explicit_role)

        spec = IotThingSpec(
            thing_name=self.context.core_thing_name,
            thing_groups=(IotThingGroupSpec(self.context.thing_group_name),),
            create_certificate=True,
            policy=policy,
            role_alias=IotRoleAliasSpec(
                name=self.context.scenario_id.id_for(ROLE_ALIAS_NAME),
                role_arn=role.role_arn,
            ),
        )
        thing = cast(IotThing, registry.create(spec))
        self.setup_config(thing, thing.role_alias, template)
        return thing

    def setup_config(
        self,
        thing: Optional[IotThing],
        role_alias: Optional[IotRoleAlias],
        template: str,
    ) -> Path:
        """
        Render the nucleus config and write the device's files.

        The config is rendered before anything is written, so a template
        that cannot be rendered leaves no files behind.

        Returns:
            Path of the written config file
        """
        context = self.context
        data_endpoint = cred_endpoint = None
        if thing is not None:
            data_endpoint = self._iot.data_endpoint()
            cred_endpoint = self._iot.credentials_endpoint()

        substitutions = build_substitutions(
            aws_region=context.config.region,
            nucleus_version=context.nucleus_version,
            env_stage=context.config.env_stage,
            posix_user=context.current_user,
            data_plane_port=context.registration.connection_port,
            thing_name=thing.thing_name if thing else None,
            iot_data_endpoint=data_endpoint,
            iot_cred_endpoint=cred_endpoint,
            role_alias=role_alias.role_alias if role_alias else None,
            proxy_url=context.config.proxy_url,
        )
        config = render_config(template, substitutions)

        test_directory = context.test_directory
        self.files.make_directories(test_directory / CONFIG_FILE.parent)
        if thing is not None and thing.certificate is not None:
            key_pair = thing.certificate.key_pair
            self.files.write_text(test_directory / PRIVATE_KEY_FILE, key_pair.private_key, 0o600)
            self.files.write_text(
                test_directory / CERTIFICATE_FILE, thing.certificate.certificate_pem
            )
        self.files.write_text(test_directory / ROOT_CA_FILE, context.registration.root_ca)
        config_path = test_directory / CONFIG_FILE
        self.files.write_text(config_path, config)
        context.registry.resource_logger.log_action_complete(
            ActionType.RENDER, "nucleus_config", str(config_path)
        )

        self.files.copy_to(test_directory, context.install_root)
        logger.info(f"Device files copied to {context.install_root}")
        return config_path
