"""
Remote cache refresh — regenerate precompressed artifacts after a mirror.

Production only. Two remote commands, strictly in order:
  1. delete every ``*.gz`` under the destination;
  2. ``gzip -9 -k`` every file whose extension is whitelisted.

The set is rebuilt from scratch on every publish, so a compressed copy
can never outlive or disagree with the file it was made from.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field

from sitepublish.adapters.registry import AdapterRegistry
from sitepublish.core.errors import RemoteExecError
from sitepublish.core.models.action import Action
from sitepublish.core.models.publish import CacheRefreshSettings, RemoteDestination

logger = logging.getLogger(__name__)


@dataclass
class RefreshStats:
    destination: str = ""
    commands: list[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "commands": len(self.commands),
            "skipped": self.skipped,
        }


def clean_command(path: str, stale_suffix: str) -> str:
    """Remote command deleting every stale precompressed artifact."""
    return " ".join([
        "find", shlex.quote(path),
        "-type", "f",
        "-name", shlex.quote(f"*{stale_suffix}"),
        "-delete",
    ])


def compress_command(path: str, extensions: list[str], level: int) -> str:
    """Remote command writing ``<file>.gz`` beside every whitelisted file."""
    names: list[str] = []
    for ext in extensions:
        if names:
            names.append("-o")
        names.extend(["-name", shlex.quote(f"*.{ext}")])
    return " ".join([
        "find", shlex.quote(path),
        "-type", "f",
        r"\(", *names, r"\)",
        "-exec", "gzip", f"-{level}", "-f", "-k", "--", "{}", "+",
    ])


def refresh_commands(destination: RemoteDestination, settings: CacheRefreshSettings) -> list[str]:
    return [
        clean_command(destination.path, settings.stale_suffix),
        compress_command(destination.path, settings.extensions, settings.level),
    ]


def refresh_remote_cache(
    destination: RemoteDestination,
    settings: CacheRefreshSettings,
    registry: AdapterRegistry,
    *,
    site_root: str = ".",
    dry_run: bool = False,
    action_prefix: str = "refresh",
) -> RefreshStats:
    """Clear and regenerate the precompressed set at ``destination``.

    Raises:
        RemoteExecError: A remote command failed or timed out. The
            compress step never runs after a failed clean.
    """
    stats = RefreshStats(destination=str(destination))
    steps = zip(("clean", "compress"), refresh_commands(destination, settings))

    if dry_run:
        stats.skipped = True
        for step, command in steps:
            logger.info("[dry-run] would %s: %s", step, command)
            stats.commands.append(command)
        return stats

    for step, command in steps:
        logger.info("Remote %s on %s", step, destination)
        receipt = registry.execute_action(
            Action(
                id=f"{action_prefix}:{step}",
                adapter="ssh",
                stage="refresh",
                params={
                    "host": destination.host,
                    "command": command,
                    "timeout": settings.timeout,
                    "connect_timeout": settings.connect_timeout,
                },
            ),
            site_root=site_root,
        )
        if receipt.failed:
            raise RemoteExecError(f"Remote {step} on {destination} failed: {receipt.error}")
        stats.commands.append(command)

    return stats
