"""Hooks run before and after every test scenario.

A test runner calls ``begin_scenario`` when a scenario starts and
``end_scenario`` when it finishes, pass or fail:

    context = begin_scenario(config, directory)
    try:
        DeviceRegistration(context).register_as_thing()
        ...
    finally:
        end_scenario(context, greengrass)
"""

import logging
from pathlib import Path
from typing import Optional

from ggtest.device.greengrass import Greengrass
from ggtest.models import TeardownResult
from ggtest.registration.context import (
    RegistrationContext,
    ScenarioContext,
    ScenarioId,
    current_posix_user,
    load_root_ca,
)
from ggtest.resources.directory import LifecycleDirectory
from ggtest.resources.registry import ResourceRegistry
from ggtest.utils.config import HarnessConfig

logger = logging.getLogger(__name__)

TEST_DIRECTORY_NAME = "device"
INSTALL_ROOT_NAME = "greengrass"


def begin_scenario(
    config: HarnessConfig,
    directory: LifecycleDirectory,
    scenario_id: Optional[ScenarioId] = None,
    root_ca: Optional[str] = None,
    current_user: Optional[str] = None,
) -> ScenarioContext:
    """
    Create the context of a new scenario.

    The scenario gets a fresh id and an empty registry. Its test directory
    and install root live side by side under the configured results path.

    Args:
        config: Harness configuration
        directory: Lifecycle directory shared by all scenarios
        scenario_id: Id to use instead of a generated one
        root_ca: Root CA bundle text; read per configuration if None
        current_user: POSIX user; the current process user if None

    Raises:
        ConfigurationError: If the root CA bundle cannot be read.
    """
    scenario_id = scenario_id or ScenarioId.generate()
    results = Path(config.test_results_path) / str(scenario_id)

    context = ScenarioContext(
        scenario_id=scenario_id,
        registry=ResourceRegistry(directory, str(scenario_id)),
        config=config,
        test_directory=results / TEST_DIRECTORY_NAME,
        install_root=results / INSTALL_ROOT_NAME,
        registration=RegistrationContext(
            root_ca=root_ca if root_ca is not None else load_root_ca(config),
            connection_port=config.data_plane_port,
        ),
        current_user=current_user if current_user is not None else current_posix_user(),
    )
    logger.info(f"Scenario {scenario_id} started in {results}")
    return context


def end_scenario(
    context: ScenarioContext, greengrass: Optional[Greengrass] = None
) -> TeardownResult:
    """
    Stop the device and delete every resource the scenario created.

    Teardown failures are logged and returned, never raised; call
    ``raise_for_errors`` on the result to fail on them.
    """
    if greengrass is not None:
        greengrass.stop()

    result = context.registry.teardown()
    if result.succeeded:
        logger.info(
            f"Scenario {context.scenario_id} finished, {len(result.deleted)} resources deleted"
        )
    else:
        logger.warning(
            f"Scenario {context.scenario_id} finished, {len(result.errors)} of "
            f"{result.total_attempted()} resources could not be deleted: {sorted(result.errors)}"
        )
    return result
