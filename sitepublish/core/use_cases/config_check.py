"""
Config check use case — validate publish.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.core.config.loader import ConfigError, find_config_file, load_config, resolve_paths
from sitepublish.core.errors import ConfigScopeError
from sitepublish.core.models.publish import PublishConfig, SitePaths
from sitepublish.core.services.config_scope import backup_path, read_base_url


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: PublishConfig | None = None
    paths: SitePaths | None = None
    config_path: Path | None = None
    base_url: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        dest = self.config.destinations if self.config else None
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "base_url": self.base_url,
            "draft_base_url": self.config.draft.base_url if self.config else None,
            "destinations": {
                "production": str(dest.production),
                "draft": str(dest.draft),
            } if dest else None,
            "patch_rules": len(self.config.patches) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate publish configuration and the site it points at.

    Args:
        config_path: Optional explicit path to publish.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No publish.yml found.")
        return result
    result.config_path = config_path

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config
    paths = resolve_paths(config, config_path)
    result.paths = paths

    # Generator config
    if not paths.config.is_file():
        result.errors.append(f"Generator config not found: {paths.config}")
    else:
        try:
            result.base_url = read_base_url(paths.config)
        except ConfigScopeError as e:
            result.errors.append(str(e))
        else:
            if result.base_url is None:
                result.errors.append(f"No top-level base_url in {paths.config.name}")

        if backup_path(paths.config).exists():
            result.errors.append(
                f"Leftover {backup_path(paths.config).name} from an interrupted run; "
                "run 'sitepublish config restore'."
            )

    if not paths.content.is_dir():
        result.warnings.append(f"Content directory does not exist: {paths.content}")

    # Draft
    if not config.draft.base_url:
        result.warnings.append("draft.base_url is not set; draft publishing will fail.")
    elif result.base_url and config.draft.base_url == result.base_url:
        result.errors.append("draft.base_url is the same as the production base_url.")

    if paths.draft_robots is None:
        result.warnings.append("draft.robots not set; using the built-in disallow-all policy.")
    elif not paths.draft_robots.is_file():
        result.errors.append(f"Draft robots file not found: {paths.draft_robots}")

    # Patches
    if not config.patches:
        result.warnings.append("No patch rules defined.")
    files = [r.file for r in config.patches]
    dupes = sorted({f for f in files if files.count(f) > 1})
    if dupes:
        result.warnings.append(f"Several patch rules target: {', '.join(dupes)}")

    result.valid = len(result.errors) == 0
    return result
