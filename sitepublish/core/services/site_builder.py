"""
Site builder — run the static-site generator for one build mode.

The generator is an opaque external program (Zola by default). Its
command line is a template from publish.yml with ``{root}``,
``{config}`` and ``{output}`` placeholders; draft builds append the
configured draft arguments. The output directory is removed first so
every build starts from an empty tree.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.adapters.registry import AdapterRegistry
from sitepublish.core.errors import BuildError
from sitepublish.core.models.action import Action
from sitepublish.core.models.publish import BuildMode, GeneratorSettings, SitePaths

logger = logging.getLogger(__name__)


@dataclass
class BuildOutcome:
    output_dir: Path
    mode: BuildMode
    log_lines: list[str] = field(default_factory=list)
    duration_ms: int = 0


def generator_argv(settings: GeneratorSettings, paths: SitePaths, mode: BuildMode) -> list[str]:
    """Expand the generator command template for ``mode``."""
    values = {
        "root": str(paths.root),
        "config": str(paths.config),
        "output": str(paths.output),
        "content": str(paths.content),
    }
    try:
        argv = [part.format(**values) for part in settings.command]
    except (KeyError, IndexError, ValueError) as e:
        raise BuildError(f"Bad placeholder in generator command: {e}") from e
    if mode is BuildMode.DRAFT:
        argv.extend(settings.draft_args)
    return argv


def _discard_output(output_dir: Path) -> None:
    if output_dir.is_symlink() or output_dir.is_file():
        output_dir.unlink()
    elif output_dir.exists():
        shutil.rmtree(output_dir)


def build_site(
    paths: SitePaths,
    settings: GeneratorSettings,
    mode: BuildMode,
    registry: AdapterRegistry,
    action_id: str = "build",
) -> BuildOutcome:
    """Build the site and return the freshly populated output tree.

    Raises:
        BuildError: The generator failed, timed out or produced no
            output. Whatever it left behind is removed.
    """
    if not paths.content.is_dir():
        raise BuildError(f"Content directory not found: {paths.content}")
    if not paths.config.is_file():
        raise BuildError(f"Generator config not found: {paths.config}")

    try:
        _discard_output(paths.output)
    except OSError as e:
        raise BuildError(f"Cannot clear output directory {paths.output}: {e}") from e

    argv = generator_argv(settings, paths, mode)
    logger.info("Building %s site: %s", mode.value, " ".join(argv))

    receipt = registry.execute_action(
        Action(
            id=action_id,
            adapter="shell",
            stage="build",
            params={"argv": argv, "timeout": settings.timeout, "cwd": str(paths.root)},
        ),
        site_root=str(paths.root),
    )

    if not receipt.ok:
        _discard_output_quietly(paths.output)
        raise BuildError(f"Generator failed: {receipt.error or receipt.output}")

    if not paths.output.is_dir():
        raise BuildError(f"Generator succeeded but produced no output at {paths.output}")

    lines = [line for line in receipt.output.splitlines() if line.strip()]
    stderr = receipt.metadata.get("stderr", "")
    lines.extend(line for line in stderr.splitlines() if line.strip())

    return BuildOutcome(
        output_dir=paths.output,
        mode=mode,
        log_lines=lines,
        duration_ms=receipt.duration_ms,
    )


def _discard_output_quietly(output_dir: Path) -> None:
    """Remove a failed build's partial output; the BuildError is what matters."""
    try:
        _discard_output(output_dir)
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", output_dir, e)
