"""
Configuration loader — reads publish.yml into domain models.

This is the primary entry point for loading publish configuration.
It reads YAML, validates against Pydantic schemas, and returns
typed domain objects.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from sitepublish.core.models.publish import PublishConfig, SitePaths

logger = logging.getLogger(__name__)

# Default config filename
PUBLISH_CONFIG_FILE = "publish.yml"


class ConfigError(Exception):
    """Raised when publish configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for publish.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to publish.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PUBLISH_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> PublishConfig:
    """Load and validate publish configuration.

    Args:
        path: Explicit path to publish.yml. If None, searches upward.

    Returns:
        Validated PublishConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {PUBLISH_CONFIG_FILE} found. "
            "Create one next to the site's config.toml, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading publish config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = PublishConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid publish configuration in {path}: {e}") from e

    logger.info(
        "Loaded publish config '%s' with %d patch rules",
        config.name or path.parent.name,
        len(config.patches),
    )
    return config


def resolve_paths(config: PublishConfig, config_path: Path) -> SitePaths:
    """Resolve the site paths relative to the directory holding publish.yml."""
    return SitePaths.resolve(config, config_path.parent)
