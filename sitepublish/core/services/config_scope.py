"""
Config scope — a temporary, guaranteed-undone edit of the generator config.

Draft builds need the generator to see a different ``base_url``. The
edit is made in place (the generator only reads its own config file)
and undone when the ``with`` block exits, however it exits:

    with config_scope(paths.config, override_base_url(draft_url)):
        build_site(...)

While the scope is open a byte-exact copy of the original sits next to
the config as ``<name>.publish-backup``. If the process dies before the
restore runs, that sidecar is left behind; the next scope refuses to
open until ``sitepublish config restore`` puts it back.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import threading
import tomllib
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from sitepublish.core.errors import ConfigRestoreError, ConfigScopeError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".publish-backup"

Transform = Callable[[str], str]

_active: set[Path] = set()
_active_lock = threading.Lock()

_BASE_URL_RE = re.compile(r"""^(?P<key>\s*base_url\s*=\s*)(?P<q>["'])(?P<value>.*?)(?P=q)""")
_TABLE_RE = re.compile(r"^\s*\[")


def backup_path(config_path: Path) -> Path:
    """Where the sidecar copy of ``config_path`` lives while a scope is open."""
    return config_path.with_name(config_path.name + BACKUP_SUFFIX)


def check_no_leftover_backup(config_path: Path) -> None:
    """Refuse to go on while a sidecar from an interrupted run is present.

    Raises:
        ConfigScopeError: The sidecar exists; the config may still hold
            an overridden value.
    """
    backup = backup_path(config_path)
    if backup.exists():
        raise ConfigScopeError(
            f"Found {backup.name} from an interrupted run. "
            "Run 'sitepublish config restore' before publishing."
        )


def _atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via temp file + rename, keeping its mode."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def override_base_url(url: str) -> Transform:
    """Build a transform that rewrites the top-level ``base_url`` value.

    Only the value between the quotes changes; every other byte of the
    document is kept.
    """
    if "\n" in url or '"' in url or "'" in url:
        raise ConfigScopeError(f"Unusable base_url override: {url!r}")

    def _transform(text: str) -> str:
        lines = text.splitlines(keepends=True)
        for i, line in enumerate(lines):
            if _TABLE_RE.match(line):
                break  # only top-level keys
            m = _BASE_URL_RE.match(line)
            if m:
                lines[i] = f"{m.group('key')}{m.group('q')}{url}{m.group('q')}{line[m.end():]}"
                return "".join(lines)
        raise ConfigScopeError("No top-level base_url entry in the generator config")

    return _transform


def read_base_url(config_path: Path) -> str | None:
    """Parse the generator config and return its ``base_url``."""
    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigScopeError(f"Cannot read {config_path}: {e}") from e
    value = data.get("base_url")
    return value if isinstance(value, str) else None


def _restore(path: Path, original: bytes, backup: Path) -> None:
    try:
        _atomic_write(path, original)
        if path.read_bytes() != original:
            raise ConfigRestoreError(f"{path} does not match its original content after restore")
    except OSError as e:
        raise ConfigRestoreError(
            f"Could not restore {path}: {e}. The original is kept at {backup}"
        ) from e

    try:
        backup.unlink()
    except OSError as e:
        # The config itself is correct again; a stale sidecar only blocks the next run.
        logger.warning("Restored %s but could not remove %s: %s", path, backup, e)
    logger.debug("Restored %s", path)


@contextmanager
def config_scope(config_path: Path, transform: Transform) -> Iterator[Path]:
    """Apply ``transform`` to the config for the duration of the block.

    Yields the config path. On exit (normal or exceptional) the file is
    restored to its exact original bytes; failure to do so raises
    ConfigRestoreError.

    Raises:
        ConfigScopeError: The scope could not be opened. The config is
            untouched in that case.
        ConfigRestoreError: The original could not be put back.
    """
    path = Path(config_path).resolve()

    with _active_lock:
        if path in _active:
            raise ConfigScopeError(f"A config scope is already open for {path}")
        _active.add(path)

    try:
        check_no_leftover_backup(path)
        backup = backup_path(path)

        try:
            original = path.read_bytes()
        except OSError as e:
            raise ConfigScopeError(f"Cannot read {path}: {e}") from e

        try:
            modified = transform(original.decode("utf-8"))
        except ConfigScopeError:
            raise
        except Exception as e:
            raise ConfigScopeError(f"Config transform failed: {e}") from e

        try:
            backup.write_bytes(original)
        except OSError as e:
            raise ConfigScopeError(f"Cannot write backup {backup}: {e}") from e

        try:
            try:
                _atomic_write(path, modified.encode("utf-8"))
            except OSError as e:
                raise ConfigScopeError(f"Cannot write {path}: {e}") from e
            logger.info("Config override applied to %s", path.name)
            yield path
        finally:
            _restore(path, original, backup)
    finally:
        with _active_lock:
            _active.discard(path)


def restore_from_backup(config_path: Path) -> bool:
    """Put a leftover sidecar backup back in place.

    Returns:
        True if a backup was found and restored, False if there was none.

    Raises:
        ConfigRestoreError: The backup exists but could not be restored.
    """
    path = Path(config_path).resolve()
    backup = backup_path(path)
    if not backup.is_file():
        return False

    try:
        original = backup.read_bytes()
    except OSError as e:
        raise ConfigRestoreError(f"Cannot read {backup}: {e}") from e

    _restore(path, original, backup)
    logger.info("Restored %s from %s", path.name, backup.name)
    return True
