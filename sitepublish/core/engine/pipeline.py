"""
Publish pipeline — the ordered stages of one publish run.

Stage model
───────────
Every run walks an ordered list of named stages. Each stage:
  - Works on the output tree the previous stage left behind.
  - Yields log lines as it runs.
  - Reports its own duration, status, error and details.

    build → derive → patch → [mask] → mirror → [refresh]

``mask`` only exists in draft runs, ``refresh`` only in production
runs. The first failing stage stops the run; the stages after it are
recorded as ``skipped``. Nothing is retried.

Draft builds run inside a config scope that points the generator's
``base_url`` at the draft host. The scope is closed (and the config
restored) before ``derive`` starts.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generator

from sitepublish.adapters.registry import AdapterRegistry
from sitepublish.core.errors import (
    EXIT_OK,
    BuildError,
    ConfigRestoreError,
    PublishError,
)
from sitepublish.core.models.publish import BuildMode, PublishConfig, SitePaths
from sitepublish.core.observability.logging_config import stage_context
from sitepublish.core.services.asset_deriver import derive_assets
from sitepublish.core.services.cache_refresh import refresh_remote_cache
from sitepublish.core.services.config_scope import (
    check_no_leftover_backup,
    config_scope,
    override_base_url,
)
from sitepublish.core.services.draft_masker import mask_draft
from sitepublish.core.services.output_patcher import apply_patches
from sitepublish.core.services.remote_mirror import mirror_tree
from sitepublish.core.services.site_builder import build_site

logger = logging.getLogger(__name__)

LogStream = Generator[str, None, None]
"""A generator that yields log line strings, one at a time."""


# ── Data Models ─────────────────────────────────────────────────────


@dataclass
class StageInfo:
    """Declaration of a pipeline stage (before execution)."""

    name: str                           # Machine name: "build", "derive", etc.
    label: str                          # Human label: "Derive WebP assets"
    description: str = ""


@dataclass
class StageResult:
    """Result of executing one pipeline stage."""

    name: str
    label: str
    status: str = "pending"             # "pending" | "done" | "error" | "skipped"
    duration_ms: int = 0
    log_lines: list[str] = field(default_factory=list)
    error: str = ""
    detail: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "label": self.label,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "detail": self.detail,
        }


@dataclass
class PublishReport:
    """Result of a full publish run."""

    operation_id: str
    mode: BuildMode
    destination: str = ""
    stages: list[StageResult] = field(default_factory=list)
    ok: bool = False
    exit_code: int = EXIT_OK
    total_duration_ms: int = 0
    dry_run: bool = False

    @property
    def failed_stage(self) -> StageResult | None:
        return next((s for s in self.stages if s.status == "error"), None)

    @property
    def status(self) -> str:
        return "ok" if self.ok else "failed"

    def stage(self, name: str) -> StageResult | None:
        return next((s for s in self.stages if s.name == name), None)

    def to_dict(self) -> dict:
        failed = self.failed_stage
        return {
            "operation_id": self.operation_id,
            "mode": self.mode.value,
            "destination": self.destination,
            "status": self.status,
            "exit_code": self.exit_code,
            "dry_run": self.dry_run,
            "failed_stage": failed.name if failed else None,
            "total_duration_ms": self.total_duration_ms,
            "stages": [s.to_dict() for s in self.stages],
        }


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"pub-{now}-{short}"


# ── Pipeline ────────────────────────────────────────────────────────


class PublishPipeline:
    """One publish run for one build mode.

    The generator config path is passed in explicitly (via ``paths``)
    and only ever touched by the config scope around ``build``.
    """

    def __init__(
        self,
        config: PublishConfig,
        paths: SitePaths,
        mode: BuildMode,
        registry: AdapterRegistry,
        *,
        dry_run: bool = False,
        operation_id: str | None = None,
    ):
        self.config = config
        self.paths = paths
        self.mode = mode
        self.registry = registry
        self.dry_run = dry_run
        self.operation_id = operation_id or generate_operation_id()
        self.destination = config.destinations.for_mode(mode)

    # ── Stage declarations ──────────────────────────────────────────

    def pipeline_stages(self) -> list[StageInfo]:
        stages = [
            StageInfo("build", "Build site",
                      f"Run the generator in {self.mode.value} mode"),
            StageInfo("derive", "Derive WebP assets",
                      "Lossless WebP for PNG, lossy WebP for JPEG"),
            StageInfo("patch", "Patch output",
                      "Apply fixed corrections to generated files"),
        ]
        if self.mode is BuildMode.DRAFT:
            stages.append(StageInfo("mask", "Mask draft",
                                    "Draft robots.txt and noindex meta tags"))
        stages.append(StageInfo("mirror", "Mirror to destination",
                                f"rsync --delete to {self.destination}"))
        if self.mode is BuildMode.PRODUCTION:
            stages.append(StageInfo("refresh", "Refresh precompressed files",
                                    "Delete and regenerate remote .gz artifacts"))
        return stages

    def run_stage(self, stage: str, result: StageResult) -> LogStream:
        """Execute a single stage, yielding log lines.

        Raises:
            PublishError: The stage failed.
        """
        handler = getattr(self, f"_stage_{stage}", None)
        if handler is None:
            raise RuntimeError(f"Unknown stage: {stage}")
        yield from handler(result)

    # ── Stage implementations ───────────────────────────────────────

    def _action_id(self, stage: str) -> str:
        return f"{self.operation_id}:{stage}"

    def _stage_build(self, result: StageResult) -> LogStream:
        # An interrupted draft may have left the draft base_url in the config.
        check_no_leftover_backup(self.paths.config)
        if self.mode is BuildMode.DRAFT:
            if not self.config.draft.base_url:
                raise BuildError("draft.base_url must be set to publish a draft")
            yield f"Overriding base_url → {self.config.draft.base_url}"
            with config_scope(self.paths.config, override_base_url(self.config.draft.base_url)):
                outcome = build_site(
                    self.paths, self.config.generator, self.mode, self.registry,
                    action_id=self._action_id("build"),
                )
            yield f"Restored {self.paths.config.name}"
        else:
            outcome = build_site(
                self.paths, self.config.generator, self.mode, self.registry,
                action_id=self._action_id("build"),
            )
        yield from outcome.log_lines
        result.detail = {"output_dir": str(outcome.output_dir)}
        yield f"Built {self.mode.value} site into {outcome.output_dir}"

    def _stage_derive(self, result: StageResult) -> LogStream:
        stats = derive_assets(self.paths.output, self.config.images)
        result.detail = stats.to_dict()
        yield from (f"derived {name}" for name in stats.derived)
        yield f"{stats.total} WebP assets ({stats.lossless} lossless, {stats.lossy} lossy)"

    def _stage_patch(self, result: StageResult) -> LogStream:
        stats = apply_patches(self.paths.output, self.config.patches)
        result.detail = stats.to_dict()
        yield from (f"patched {name}" for name in stats.applied)
        yield from (f"not needed: {name}" for name in stats.skipped)
        yield f"{len(stats.applied)}/{len(self.config.patches)} patch rules applied"

    def _stage_mask(self, result: StageResult) -> LogStream:
        stats = mask_draft(self.paths.output, self.config.draft, self.paths.draft_robots)
        result.detail = stats.to_dict()
        yield f"robots.txt replaced ({stats.robots_source})"
        yield f"{stats.files_rewritten}/{stats.html_files} HTML files rewritten to noindex"

    def _stage_mirror(self, result: StageResult) -> LogStream:
        stats = mirror_tree(
            self.paths.output,
            self.destination,
            self.config.mirror,
            self.registry,
            site_root=self.paths.root,
            dry_run=self.dry_run,
            action_id=self._action_id("mirror"),
        )
        result.detail = stats.to_dict()
        yield from (f"sent {name}" for name in stats.transferred)
        yield from (f"deleted {name}" for name in stats.deleted)
        verb = "would transfer" if self.dry_run else "transferred"
        yield f"{verb} {len(stats.transferred)}, deleted {len(stats.deleted)} → {self.destination}"

    def _stage_refresh(self, result: StageResult) -> LogStream:
        stats = refresh_remote_cache(
            self.destination,
            self.config.cache_refresh,
            self.registry,
            site_root=str(self.paths.root),
            dry_run=self.dry_run,
            action_prefix=self._action_id("refresh"),
        )
        result.detail = stats.to_dict()
        prefix = "[dry-run] " if stats.skipped else ""
        yield from (f"{prefix}$ {cmd}" for cmd in stats.commands)

    # ── Runner ──────────────────────────────────────────────────────

    def run(self) -> PublishReport:
        """Run every stage in order, stopping at the first failure."""
        stages_info = self.pipeline_stages()
        report = PublishReport(
            operation_id=self.operation_id,
            mode=self.mode,
            destination=str(self.destination),
            dry_run=self.dry_run,
        )

        total_start = time.monotonic()
        all_ok = True

        for idx, si in enumerate(stages_info):
            sr = StageResult(name=si.name, label=si.label)
            stage_start = time.monotonic()

            with stage_context(si.name):
                try:
                    for line in self.run_stage(si.name, sr):
                        sr.log_lines.append(line)
                        logger.debug("%s", line)
                    sr.status = "done"
                except ConfigRestoreError as e:
                    logger.critical("Generator config NOT restored: %s", e)
                    sr.status = "error"
                    sr.error = str(e)
                    report.exit_code = e.exit_code
                    all_ok = False
                except PublishError as e:
                    logger.error("Stage %s failed: %s", si.name, e)
                    sr.status = "error"
                    sr.error = str(e)
                    report.exit_code = e.exit_code
                    all_ok = False
                except Exception as e:
                    logger.exception("Stage %s raised unexpectedly", si.name)
                    sr.status = "error"
                    sr.error = f"Unexpected error: {e}"
                    report.exit_code = 1
                    all_ok = False

            sr.duration_ms = int((time.monotonic() - stage_start) * 1000)
            report.stages.append(sr)

            if not all_ok:
                for rem in stages_info[idx + 1:]:
                    report.stages.append(
                        StageResult(name=rem.name, label=rem.label, status="skipped")
                    )
                break

        report.ok = all_ok
        report.total_duration_ms = int((time.monotonic() - total_start) * 1000)
        return report


def run_publish(
    config: PublishConfig,
    paths: SitePaths,
    mode: BuildMode,
    registry: AdapterRegistry,
    *,
    dry_run: bool = False,
) -> PublishReport:
    """Convenience wrapper: build a pipeline and run it."""
    return PublishPipeline(config, paths, mode, registry, dry_run=dry_run).run()
