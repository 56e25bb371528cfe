"""Rendering of the nucleus configuration template.

Templates are plain text with literal ``{token}`` placeholders. Rendering
replaces each token in a single pass, not with ``str.format``, so braces
elsewhere in a template are left alone.
"""

import logging
import re
from typing import Optional

from ggtest.registration.configs import read_config_text

logger = logging.getLogger(__name__)

PLACEHOLDERS = (
    "thing_name",
    "iot_data_endpoint",
    "iot_cred_endpoint",
    "role_alias",
    "proxy_url",
    "aws_region",
    "nucleus_version",
    "env_stage",
    "posix_user",
    "data_plane_port",
)

SENTINEL = "null"

DEFAULT_TEMPLATE = "basic_config.yaml"

_TOKEN = re.compile(r"\{([a-z][a-z_]*)\}")

_PLACEHOLDER_TOKENS = {"{" + name + "}" for name in PLACEHOLDERS}


class TemplateRenderError(Exception):
    """Raised when a template cannot be fully rendered."""

    def __init__(self, message: str, tokens: Optional[list[str]] = None):
        self.tokens = tokens or []
        super().__init__(message)


def load_template(name: Optional[str] = None) -> str:
    """Load a packaged nucleus template by name, or a template file by path."""
    return read_config_text("nucleus", name or DEFAULT_TEMPLATE)


def build_substitutions(
    aws_region: str,
    nucleus_version: str,
    env_stage: str,
    posix_user: str,
    data_plane_port: int,
    thing_name: Optional[str] = None,
    iot_data_endpoint: Optional[str] = None,
    iot_cred_endpoint: Optional[str] = None,
    role_alias: Optional[str] = None,
    proxy_url: Optional[str] = None,
) -> dict[str, str]:
    """
    Build the value for every placeholder.

    Values that come from the device identity are the sentinel when no
    identity was created. An unset proxy is rendered empty.
    """
    return {
        "thing_name": thing_name or SENTINEL,
        "iot_data_endpoint": iot_data_endpoint or SENTINEL,
        "iot_cred_endpoint": iot_cred_endpoint or SENTINEL,
        "role_alias": role_alias or SENTINEL,
        "proxy_url": proxy_url or "",
        "aws_region": aws_region,
        "nucleus_version": nucleus_version,
        "env_stage": env_stage,
        "posix_user": posix_user,
        "data_plane_port": str(data_plane_port),
    }


def render_config(template: str, substitutions: dict[str, str]) -> str:
    """
    Substitute every placeholder in a template.

    Raises:
        TemplateRenderError: If a placeholder has no value, or the template
            holds a token that is not a placeholder.
    """
    missing = [name for name in PLACEHOLDERS if substitutions.get(name) is None]
    if missing:
        raise TemplateRenderError(f"No value for placeholders: {missing}", missing)

    tokens = {"{" + name + "}" for name in _TOKEN.findall(template)}
    unknown = sorted(tokens - _PLACEHOLDER_TOKENS)
    if unknown:
        raise TemplateRenderError(f"Unresolved tokens in config template: {unknown}", unknown)

    # One pass, so substituted values are never scanned again
    rendered = _TOKEN.sub(lambda m: str(substitutions[m.group(1)]), template)

    logger.debug(f"Rendered config with {len(PLACEHOLDERS)} placeholders")
    return rendered
