"""
Rsync adapter — exact-mirror a local directory to a destination.

The destination may be ``host:path/`` (over ssh) or a plain local
path. Only the *contents* of the source directory are mirrored; top
level dot paths are excluded unless listed in ``include_hidden``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from sitepublish.adapters.base import ExecutionContext
from sitepublish.adapters.shell.command import ProcessAdapter
from sitepublish.core.models.action import Receipt

logger = logging.getLogger(__name__)


def build_rsync_argv(
    source: str,
    target: str,
    *,
    include_hidden: list[str] | None = None,
    io_timeout: int = 300,
    delete: bool = True,
    dry_run: bool = False,
    extra_args: list[str] | None = None,
) -> list[str]:
    """Assemble the rsync command line for one mirror run.

    Filter rules are first-match-wins, so the explicit includes must
    come before the catch-all dotfile exclude.
    """
    argv = ["rsync", "-az", "--itemize-changes", f"--timeout={io_timeout}"]
    if delete:
        argv.append("--delete")
    if dry_run:
        argv.append("--dry-run")
    for name in include_hidden or []:
        argv.append(f"--include=/{name}/***")
    argv.append("--exclude=/.*")
    argv.extend(extra_args or [])
    argv.append(source if source.endswith("/") else f"{source}/")
    argv.append(target)
    return argv


class RsyncAdapter(ProcessAdapter):
    """Mirror a directory with rsync.

    Action params:
        source (str): Local directory to mirror.
        target (str): ``host:path/`` or a local path.
        include_hidden (list[str]): Top-level dot paths to include.
        io_timeout (int): rsync ``--timeout`` in seconds (default: 300).
        timeout (int): Hard limit for the whole process (default: 3600).
        dry_run (bool): Pass --dry-run; report changes without making them.
        extra_args (list[str]): Appended before source/target.
    """

    @property
    def name(self) -> str:
        return "rsync"

    def is_available(self) -> bool:
        return shutil.which("rsync") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        source = params.get("source", "")
        if not source:
            return False, "Missing required param: 'source'"
        if not Path(source).is_dir():
            return False, f"Source directory does not exist: {source}"
        if not params.get("target"):
            return False, "Missing required param: 'target'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        argv = build_rsync_argv(
            str(params["source"]),
            str(params["target"]),
            include_hidden=params.get("include_hidden"),
            io_timeout=params.get("io_timeout", 300),
            delete=params.get("delete", True),
            dry_run=params.get("dry_run", False),
            extra_args=params.get("extra_args"),
        )

        target = str(params["target"])
        if ":" not in target and not params.get("dry_run", False):
            # Local target: rsync will not create missing parents
            try:
                Path(target).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Cannot create local target {target}: {e}",
                )

        return self.run_process(
            context,
            argv,
            timeout=params.get("timeout", 3600),
            cwd=context.working_dir,
        )
