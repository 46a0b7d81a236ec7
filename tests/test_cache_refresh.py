"""
Tests for the remote precompressed-artifact refresh.
"""

import gzip
import shutil
from pathlib import Path

import pytest

from sitepublish.adapters.mock import MockAdapter
from sitepublish.adapters.registry import AdapterRegistry, default_registry
from sitepublish.core.errors import RemoteExecError
from sitepublish.core.models.publish import CacheRefreshSettings, RemoteDestination
from sitepublish.core.services.cache_refresh import (
    clean_command,
    compress_command,
    refresh_commands,
    refresh_remote_cache,
)

needs_tools = pytest.mark.skipif(
    shutil.which("find") is None or shutil.which("gzip") is None,
    reason="find/gzip not installed",
)


class TestCommands:
    def test_clean(self):
        assert clean_command("/var/www/site", ".gz") == "find /var/www/site -type f -name '*.gz' -delete"

    def test_compress(self):
        cmd = compress_command("/var/www/site", ["html", "css"], 9)
        assert cmd == (
            r"find /var/www/site -type f \( -name '*.html' -o -name '*.css' \) "
            "-exec gzip -9 -f -k -- {} +"
        )

    def test_path_is_quoted(self):
        assert "'/var/www/my site'" in clean_command("/var/www/my site", ".gz")

    def test_order(self):
        clean, compress = refresh_commands(RemoteDestination(host="nine", path="/srv"), CacheRefreshSettings())
        assert "-delete" in clean
        assert "gzip" in compress


def _mock_registry() -> tuple[AdapterRegistry, MockAdapter]:
    registry = AdapterRegistry()
    mock = MockAdapter(adapter_name="ssh")
    registry.register(mock)
    return registry, mock


class TestRefreshDispatch:
    def test_clean_then_compress(self):
        registry, mock = _mock_registry()
        dest = RemoteDestination(host="nine", path="/var/www/site")
        stats = refresh_remote_cache(dest, CacheRefreshSettings(), registry, action_prefix="op:refresh")

        assert [c.action.id for c in mock.call_log] == ["op:refresh:clean", "op:refresh:compress"]
        assert all(c.action.params["host"] == "nine" for c in mock.call_log)
        assert len(stats.commands) == 2

    def test_failed_clean_stops_compress(self):
        registry, mock = _mock_registry()
        mock.set_failure(":clean", "Permission denied")
        with pytest.raises(RemoteExecError, match="Permission denied"):
            refresh_remote_cache(
                RemoteDestination(host="nine", path="/srv"), CacheRefreshSettings(), registry,
            )
        assert mock.call_count == 1

    def test_failed_compress(self):
        registry, mock = _mock_registry()
        mock.set_failure(":compress", "gzip: No space left on device")
        with pytest.raises(RemoteExecError, match="compress"):
            refresh_remote_cache(
                RemoteDestination(host="nine", path="/srv"), CacheRefreshSettings(), registry,
            )
        assert mock.call_count == 2

    def test_dry_run_executes_nothing(self):
        registry, mock = _mock_registry()
        stats = refresh_remote_cache(
            RemoteDestination(host="nine", path="/srv"), CacheRefreshSettings(), registry, dry_run=True,
        )
        assert mock.call_count == 0
        assert stats.skipped
        assert len(stats.commands) == 2


@needs_tools
class TestRefreshLocal:
    @pytest.fixture
    def www(self, tmp_path: Path) -> Path:
        root = tmp_path / "www"
        (root / "blog").mkdir(parents=True)
        (root / "index.html").write_text("<html>home</html>")
        (root / "blog" / "index.html").write_text("<html>blog</html>")
        (root / "style.css").write_text("body {}")
        (root / "photo.jpg").write_bytes(b"\xff\xd8jpeg")
        (root / "removed.html.gz").write_bytes(gzip.compress(b"gone"))
        (root / "index.html.gz").write_bytes(gzip.compress(b"outdated"))
        return root

    def test_regenerates_set(self, www: Path):
        refresh_remote_cache(
            RemoteDestination(host=None, path=str(www)), CacheRefreshSettings(), default_registry(),
            site_root=str(www),
        )

        assert not (www / "removed.html.gz").exists()
        assert gzip.decompress((www / "index.html.gz").read_bytes()) == b"<html>home</html>"
        assert gzip.decompress((www / "blog" / "index.html.gz").read_bytes()) == b"<html>blog</html>"
        assert (www / "style.css.gz").is_file()
        assert not (www / "photo.jpg.gz").exists()
        # Originals are kept
        assert (www / "index.html").read_text() == "<html>home</html>"

    def test_every_gz_has_a_whitelisted_source(self, www: Path):
        refresh_remote_cache(
            RemoteDestination(host=None, path=str(www)), CacheRefreshSettings(), default_registry(),
            site_root=str(www),
        )
        for gz in www.rglob("*.gz"):
            source = gz.with_name(gz.name[: -len(".gz")])
            assert source.is_file()
            assert source.suffix.lstrip(".") in CacheRefreshSettings().extensions

    def test_missing_destination_fails(self, tmp_path: Path):
        with pytest.raises(RemoteExecError):
            refresh_remote_cache(
                RemoteDestination(host=None, path=str(tmp_path / "nope")),
                CacheRefreshSettings(),
                default_registry(),
                site_root=str(tmp_path),
            )
