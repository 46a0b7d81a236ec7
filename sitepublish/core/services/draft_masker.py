"""
Draft masker — make a draft build unindexable.

Two independent edits, then a check that both held:
  1. ``robots.txt`` at the output root is replaced by the draft policy.
  2. Every ``index,follow`` in every ``*.html`` file becomes ``noindex``.

Publishing an unmasked draft is the one failure with consequences
outside our hosts (search engines pick it up), so any I/O error or a
failed verification is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sitepublish.core.errors import MaskError
from sitepublish.core.models.publish import DEFAULT_DRAFT_ROBOTS, DraftSettings

logger = logging.getLogger(__name__)

ROBOTS_FILE = "robots.txt"


@dataclass
class MaskStats:
    html_files: int = 0
    files_rewritten: int = 0
    replacements: int = 0
    robots_source: str = ""
    rewritten: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "html_files": self.html_files,
            "files_rewritten": self.files_rewritten,
            "replacements": self.replacements,
            "robots_source": self.robots_source,
        }


def draft_robots_content(robots_path: Path | None) -> bytes:
    """The bytes the draft ``robots.txt`` must contain."""
    if robots_path is None:
        return DEFAULT_DRAFT_ROBOTS.encode("utf-8")
    try:
        return robots_path.read_bytes()
    except OSError as e:
        raise MaskError(f"Cannot read draft robots file {robots_path}: {e}") from e


def html_files(output_dir: Path) -> list[Path]:
    return sorted(p for p in output_dir.rglob("*") if p.suffix.lower() == ".html" and p.is_file())


def write_robots(output_dir: Path, content: bytes) -> None:
    try:
        (output_dir / ROBOTS_FILE).write_bytes(content)
    except OSError as e:
        raise MaskError(f"Cannot write {ROBOTS_FILE}: {e}") from e


def rewrite_directives(output_dir: Path, settings: DraftSettings, stats: MaskStats) -> None:
    old = settings.index_value.encode("utf-8")
    new = settings.noindex_value.encode("utf-8")

    for path in html_files(output_dir):
        stats.html_files += 1
        try:
            data = path.read_bytes()
            count = data.count(old)
            if count:
                path.write_bytes(data.replace(old, new))
        except OSError as e:
            raise MaskError(f"Cannot mask {path.relative_to(output_dir)}: {e}") from e
        if count:
            stats.files_rewritten += 1
            stats.replacements += count
            stats.rewritten.append(str(path.relative_to(output_dir)))


def verify_masked(output_dir: Path, settings: DraftSettings, robots: bytes) -> None:
    """Raise MaskError unless no HTML file still carries the indexing value."""
    old = settings.index_value.encode("utf-8")
    offenders = []
    for path in html_files(output_dir):
        try:
            if old in path.read_bytes():
                offenders.append(str(path.relative_to(output_dir)))
        except OSError as e:
            raise MaskError(f"Cannot verify {path.relative_to(output_dir)}: {e}") from e
    if offenders:
        raise MaskError(
            f"{len(offenders)} HTML file(s) still contain '{settings.index_value}': "
            + ", ".join(offenders[:5])
        )

    try:
        actual = (output_dir / ROBOTS_FILE).read_bytes()
    except OSError as e:
        raise MaskError(f"Cannot verify {ROBOTS_FILE}: {e}") from e
    if actual != robots:
        raise MaskError(f"{ROBOTS_FILE} does not match the draft policy")


def mask_draft(
    output_dir: Path,
    settings: DraftSettings | None = None,
    robots_path: Path | None = None,
) -> MaskStats:
    """Mask a draft output tree in place.

    Raises:
        MaskError: Any edit failed, or the tree is not fully masked afterwards.
    """
    settings = settings or DraftSettings()
    if not output_dir.is_dir():
        raise MaskError(f"Output directory not found: {output_dir}")

    robots = draft_robots_content(robots_path)
    stats = MaskStats(robots_source=str(robots_path) if robots_path else "built-in")

    write_robots(output_dir, robots)
    rewrite_directives(output_dir, settings, stats)
    verify_masked(output_dir, settings, robots)

    logger.info(
        "Masked draft: %d/%d HTML files rewritten, robots.txt from %s",
        stats.files_rewritten, stats.html_files, stats.robots_source,
    )
    return stats
