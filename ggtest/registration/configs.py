"""Loading of packaged configuration documents."""

from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from ggtest.utils.config import ConfigurationError


def read_config_text(category: str, name: str) -> str:
    """
    Read a configuration document by name.

    ``name`` is either a path to an existing file or the name of a document
    packaged under ``ggtest/configs/<category>/``; a missing ``.yaml``
    suffix is added for packaged names.

    Raises:
        ConfigurationError: If no such document exists.
    """
    path = Path(name)
    if path.is_file():
        return path.read_text(encoding="utf-8")

    packaged_name = name if name.endswith((".yaml", ".yml")) else f"{name}.yaml"
    packaged = resources.files("ggtest") / "configs" / category / packaged_name
    if not packaged.is_file():
        raise ConfigurationError(f"No {category} config named '{name}'")
    return packaged.read_text(encoding="utf-8")


def read_config_yaml(category: str, name: str) -> dict[str, Any]:
    """Read a YAML configuration document into a mapping."""
    text = read_config_text(category, name)
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {category} config '{name}': {e}")
    if not isinstance(document, dict):
        raise ConfigurationError(f"{category} config '{name}' is not a mapping")
    return document
