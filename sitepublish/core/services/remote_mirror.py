"""
Remote mirror — push the output tree to its mode's destination.

Exact-mirror semantics come from ``rsync --delete``: new and changed
files are sent, remote files with no local counterpart are removed.
Top-level dot paths are skipped except those listed in
``mirror.include_hidden`` (``.well-known`` by default).

The itemized change list rsync prints is parsed into counts, so a
second run over an unchanged tree visibly reports zero transfers and
zero deletions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.adapters.registry import AdapterRegistry
from sitepublish.core.errors import MirrorError
from sitepublish.core.models.action import Action
from sitepublish.core.models.publish import MirrorSettings, RemoteDestination

logger = logging.getLogger(__name__)


@dataclass
class MirrorStats:
    destination: str = ""
    transferred: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    created_dirs: list[str] = field(default_factory=list)
    attribute_changes: int = 0
    dry_run: bool = False

    @property
    def unchanged(self) -> bool:
        return not self.transferred and not self.deleted

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "transferred": len(self.transferred),
            "deleted": len(self.deleted),
            "created_dirs": len(self.created_dirs),
            "attribute_changes": self.attribute_changes,
            "dry_run": self.dry_run,
        }


def parse_itemized(output: str, stats: MirrorStats | None = None) -> MirrorStats:
    """Fold ``rsync --itemize-changes`` output into a MirrorStats.

    ``<f``/``>f`` are file transfers, ``*deleting`` removals, ``cd``
    newly created directories and lines starting with ``.`` are
    attribute-only updates.
    """
    stats = stats or MirrorStats()
    for raw in output.splitlines():
        line = raw.rstrip()
        if not line:
            continue
        if line.startswith("*deleting"):
            stats.deleted.append(line[len("*deleting"):].strip())
            continue
        code, _, name = line.partition(" ")
        if len(code) < 2:
            continue
        update, kind = code[0], code[1]
        name = name.strip()
        if update in "<>" and kind == "f":
            stats.transferred.append(name)
        elif update == "c" and kind == "d":
            stats.created_dirs.append(name)
        elif update == "c":
            stats.transferred.append(name)
        elif update == ".":
            stats.attribute_changes += 1
    return stats


def mirror_tree(
    output_dir: Path,
    destination: RemoteDestination,
    settings: MirrorSettings,
    registry: AdapterRegistry,
    *,
    site_root: Path | None = None,
    dry_run: bool = False,
    action_id: str = "mirror",
) -> MirrorStats:
    """Mirror ``output_dir`` to ``destination``.

    Top-level dot paths on the destination are never deleted. rsync
    protects excluded paths from ``--delete``, so the mirror is exact
    only for the non-hidden tree and the ``include_hidden`` entries.

    Raises:
        MirrorError: rsync failed or timed out.
    """
    if not output_dir.is_dir():
        raise MirrorError(f"Output directory not found: {output_dir}")

    logger.info("Mirroring %s → %s%s", output_dir, destination, " (dry run)" if dry_run else "")
    receipt = registry.execute_action(
        Action(
            id=action_id,
            adapter="rsync",
            stage="mirror",
            params={
                "source": str(output_dir),
                "target": destination.target,
                "include_hidden": list(settings.include_hidden),
                "io_timeout": settings.timeout,
                "timeout": settings.max_duration,
                "extra_args": list(settings.extra_args),
                "dry_run": dry_run,
            },
        ),
        site_root=str(site_root or output_dir.parent),
    )

    if receipt.failed:
        raise MirrorError(f"Mirror to {destination} failed: {receipt.error}")

    stats = parse_itemized(receipt.output, MirrorStats(destination=str(destination), dry_run=dry_run))
    logger.info(
        "Mirror %s: %d transferred, %d deleted",
        "planned" if dry_run else "complete",
        len(stats.transferred),
        len(stats.deleted),
    )
    return stats
