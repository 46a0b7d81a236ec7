"""
Output patcher — fixed textual corrections to generated files.

Each rule names one file (relative to the output root) and an exact
substring replacement. Rules exist to paper over defects of specific
generator versions, so a rule whose file or substring is absent is a
no-op, not an error. Only real I/O failures on an existing target are
fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.core.errors import PatchError
from sitepublish.core.models.publish import PatchRule

logger = logging.getLogger(__name__)


@dataclass
class PatchStats:
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    replacements: int = 0

    def to_dict(self) -> dict:
        return {
            "applied": len(self.applied),
            "skipped": len(self.skipped),
            "replacements": self.replacements,
        }


def apply_rule(output_dir: Path, rule: PatchRule) -> int:
    """Apply one rule. Returns the number of replacements made."""
    target = output_dir / rule.file
    if not target.is_file():
        logger.info("Patch target %s not present, skipping", rule.file)
        return 0

    try:
        data = target.read_bytes()
    except OSError as e:
        raise PatchError(f"Cannot read patch target {rule.file}: {e}") from e

    old = rule.old.encode("utf-8")
    count = data.count(old)
    if count == 0:
        logger.info("Patch for %s not needed (substring absent)", rule.file)
        return 0

    try:
        target.write_bytes(data.replace(old, rule.new.encode("utf-8")))
    except OSError as e:
        raise PatchError(f"Cannot write patched {rule.file}: {e}") from e

    logger.info("Patched %s (%d occurrence%s)", rule.file, count, "" if count == 1 else "s")
    return count


def apply_patches(output_dir: Path, rules: list[PatchRule]) -> PatchStats:
    """Apply ``rules`` in order to the output tree."""
    stats = PatchStats()
    for rule in rules:
        count = apply_rule(output_dir, rule)
        if count:
            stats.applied.append(rule.file)
            stats.replacements += count
        else:
            stats.skipped.append(rule.file)
    return stats
