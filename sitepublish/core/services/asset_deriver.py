"""
Asset deriver — WebP siblings for every raster image in the output.

For ``foo.png`` a lossless ``foo.png.webp`` is written, for
``foo.jpg``/``foo.jpeg`` a lossy one. Originals are never touched and
existing siblings are overwritten, so re-running after an interrupted
run is safe.

Failure policy: fail-fast. The first image that cannot be transcoded
raises DeriveError naming the file; with ``workers > 1`` the pending
transcodes are cancelled and the running ones are waited for before
the error propagates.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from sitepublish.core.errors import DeriveError
from sitepublish.core.models.publish import ImageSettings

logger = logging.getLogger(__name__)

DERIVED_SUFFIX = ".webp"

LOSSLESS_SUFFIXES = frozenset({".png"})
LOSSY_SUFFIXES = frozenset({".jpg", ".jpeg"})


@dataclass
class DeriveStats:
    lossless: int = 0
    lossy: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    derived: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.lossless + self.lossy

    def to_dict(self) -> dict:
        return {
            "lossless": self.lossless,
            "lossy": self.lossy,
            "total": self.total,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
        }


def derived_path(source: Path) -> Path:
    """``public/img/a.png`` → ``public/img/a.png.webp``."""
    return source.with_name(source.name + DERIVED_SUFFIX)


def find_sources(output_dir: Path) -> list[Path]:
    """Every PNG/JPEG file below ``output_dir`` (case-insensitive)."""
    wanted = LOSSLESS_SUFFIXES | LOSSY_SUFFIXES
    return sorted(
        p for p in output_dir.rglob("*")
        if p.suffix.lower() in wanted and p.is_file()
    )


def _prepare(img: Image.Image) -> Image.Image:
    """Bring the image into a mode the WebP encoder accepts."""
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("P", "PA", "LA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def transcode(source: Path, *, lossless: bool, quality: int) -> Path:
    """Write the WebP sibling of ``source`` and return its path."""
    target = derived_path(source)
    tmp = target.with_name(f".{target.name}.tmp")
    try:
        with Image.open(source) as img:
            img.load()
            prepared = _prepare(img)
            if lossless:
                prepared.save(tmp, format="WEBP", lossless=True, quality=100, method=4)
            else:
                prepared.save(tmp, format="WEBP", quality=quality, method=4)
        os.replace(tmp, target)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError) as e:
        tmp.unlink(missing_ok=True)
        raise DeriveError(f"Cannot derive {target.name} from {source}: {e}") from e
    return target


def derive_assets(output_dir: Path, settings: ImageSettings | None = None) -> DeriveStats:
    """Derive WebP siblings for every image in ``output_dir``.

    Raises:
        DeriveError: On the first image that fails (fail-fast).
    """
    settings = settings or ImageSettings()
    sources = find_sources(output_dir)
    stats = DeriveStats()
    if not sources:
        logger.info("No PNG/JPEG images under %s", output_dir)
        return stats

    def _one(source: Path) -> tuple[Path, Path, bool]:
        lossless = source.suffix.lower() in LOSSLESS_SUFFIXES
        target = transcode(source, lossless=lossless, quality=settings.lossy_quality)
        return source, target, lossless

    def _record(source: Path, target: Path, lossless: bool) -> None:
        if lossless:
            stats.lossless += 1
        else:
            stats.lossy += 1
        stats.bytes_in += source.stat().st_size
        stats.bytes_out += target.stat().st_size
        stats.derived.append(str(target.relative_to(output_dir)))
        logger.debug("Derived %s", target.relative_to(output_dir))

    if settings.workers == 1:
        for source in sources:
            _record(*_one(source))
    else:
        with ThreadPoolExecutor(max_workers=settings.workers) as pool:
            futures = [pool.submit(_one, s) for s in sources]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for fut in pending:
                fut.cancel()
            failed = next((f for f in done if f.exception() is not None), None)
            if failed is not None:
                # Leaving the with-block joins the transcodes still running
                raise failed.exception()
            for fut in futures:
                _record(*fut.result())

    logger.info(
        "Derived %d WebP assets (%d lossless, %d lossy)",
        stats.total, stats.lossless, stats.lossy,
    )
    return stats
