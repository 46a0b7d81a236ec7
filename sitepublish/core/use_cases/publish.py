"""
Publish use case — the full vertical slice behind ``sitepublish publish``.

Loads publish.yml, resolves the site paths, sets up the adapter
registry, runs the pipeline for the requested mode and appends the
outcome to the audit ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sitepublish.adapters.registry import AdapterRegistry, default_registry
from sitepublish.core.config.loader import ConfigError, find_config_file, load_config, resolve_paths
from sitepublish.core.engine.pipeline import PublishPipeline, PublishReport
from sitepublish.core.errors import EXIT_CONFIG
from sitepublish.core.models.publish import BuildMode, SitePaths
from sitepublish.core.persistence.audit import AuditEntry, AuditWriter, default_audit_path

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Result of a publish request."""

    report: PublishReport | None = None
    paths: SitePaths | None = None
    config_path: Path | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return EXIT_CONFIG
        assert self.report is not None
        return self.report.exit_code

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            return result

        result["config_path"] = str(self.config_path)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def publish(
    mode: BuildMode,
    config_path: Path | None = None,
    dry_run: bool = False,
    mock_remote: bool = False,
    registry: AdapterRegistry | None = None,
) -> PublishResult:
    """Publish the site in ``mode``.

    Args:
        mode: Production or draft.
        config_path: Optional explicit path to publish.yml.
        dry_run: Run the local stages, but only report what the remote
            stages would change.
        mock_remote: Replace rsync and ssh with mock adapters.
        registry: Optional pre-configured adapter registry.

    Returns:
        PublishResult with the pipeline report, or an error when the
        configuration could not be loaded.
    """
    result = PublishResult()

    try:
        if config_path is None:
            config_path = find_config_file()
        if config_path is None:
            result.error = "No publish.yml found."
            return result

        config = load_config(config_path)
        result.config_path = config_path
        result.paths = resolve_paths(config, config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if registry is None:
        registry = default_registry(mock_remote=mock_remote)

    pipeline = PublishPipeline(config, result.paths, mode, registry, dry_run=dry_run)
    logger.info("Publishing %s → %s (%s)", mode.value, pipeline.destination, pipeline.operation_id)
    report = pipeline.run()
    result.report = report

    AuditWriter(default_audit_path(result.paths.root)).write(AuditEntry.from_report(report))

    return result
