"""Device registration: scenario context, fallback resolution and config rendering."""

from ggtest.registration.context import (
    RegistrationContext,
    ScenarioContext,
    ScenarioId,
)
from ggtest.registration.template import TemplateRenderError, render_config
from ggtest.registration.workflow import DeviceRegistration

__all__ = [
    "RegistrationContext",
    "ScenarioContext",
    "ScenarioId",
    "TemplateRenderError",
    "render_config",
    "DeviceRegistration",
]
