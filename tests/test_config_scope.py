"""
Tests for the generator config scope: override, restore, stale backups.
"""

import threading
from pathlib import Path

import pytest

from sitepublish.core.errors import ConfigRestoreError, ConfigScopeError
from sitepublish.core.services import config_scope as scope_module
from sitepublish.core.services.config_scope import (
    backup_path,
    config_scope,
    override_base_url,
    read_base_url,
    restore_from_backup,
)

CONFIG = (
    '# comment stays\n'
    'base_url = "https://example.org"  # trailing\n'
    'title = "Example"\r\n'
    '\n'
    '[extra]\n'
    'base_url = "https://other.example"\n'
)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_bytes(CONFIG.encode("utf-8"))
    return path


class TestOverrideBaseUrl:
    def test_rewrites_only_top_level_value(self):
        result = override_base_url("https://draft.example.org")(CONFIG)
        assert 'base_url = "https://draft.example.org"  # trailing\n' in result
        assert 'base_url = "https://other.example"' in result
        assert result.replace("https://draft.example.org", "https://example.org", 1) == CONFIG

    def test_single_quotes(self):
        result = override_base_url("https://d.example")("base_url = 'https://example.org'\n")
        assert result == "base_url = 'https://d.example'\n"

    def test_missing_key(self):
        with pytest.raises(ConfigScopeError, match="No top-level base_url"):
            override_base_url("https://d.example")('[extra]\nbase_url = "x"\n')

    def test_rejects_quote_in_url(self):
        with pytest.raises(ConfigScopeError):
            override_base_url('https://d.example"; evil = "1')


class TestConfigScope:
    def test_override_visible_inside(self, config_file: Path):
        with config_scope(config_file, override_base_url("https://draft.example.org")):
            assert read_base_url(config_file) == "https://draft.example.org"
            assert backup_path(config_file).read_bytes() == CONFIG.encode("utf-8")

    def test_restores_exact_bytes(self, config_file: Path):
        with config_scope(config_file, override_base_url("https://draft.example.org")):
            pass
        assert config_file.read_bytes() == CONFIG.encode("utf-8")
        assert not backup_path(config_file).exists()

    def test_restores_on_exception(self, config_file: Path):
        with pytest.raises(RuntimeError, match="generator crashed"):
            with config_scope(config_file, override_base_url("https://draft.example.org")):
                raise RuntimeError("generator crashed")
        assert config_file.read_bytes() == CONFIG.encode("utf-8")
        assert not backup_path(config_file).exists()

    def test_stale_backup_refuses(self, config_file: Path):
        backup_path(config_file).write_text("older")
        with pytest.raises(ConfigScopeError, match="interrupted run"):
            with config_scope(config_file, override_base_url("https://draft.example.org")):
                pytest.fail("scope must not open")
        assert config_file.read_bytes() == CONFIG.encode("utf-8")
        assert backup_path(config_file).read_text() == "older"

    def test_nested_scope_refused(self, config_file: Path):
        with config_scope(config_file, override_base_url("https://a.example")):
            with pytest.raises(ConfigScopeError, match="already open"):
                with config_scope(config_file, override_base_url("https://b.example")):
                    pass
            assert read_base_url(config_file) == "https://a.example"
        assert config_file.read_bytes() == CONFIG.encode("utf-8")

    def test_single_writer_across_threads(self, config_file: Path):
        inside = threading.Event()
        release = threading.Event()
        errors = []

        def holder():
            with config_scope(config_file, override_base_url("https://a.example")):
                inside.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        inside.wait(5)
        try:
            with config_scope(config_file, override_base_url("https://b.example")):
                pass
        except ConfigScopeError as e:
            errors.append(e)
        finally:
            release.set()
            thread.join(5)

        assert len(errors) == 1
        assert config_file.read_bytes() == CONFIG.encode("utf-8")

    def test_transform_failure_leaves_config_untouched(self, config_file: Path):
        def broken(text: str) -> str:
            raise ValueError("bad transform")

        with pytest.raises(ConfigScopeError, match="bad transform"):
            with config_scope(config_file, broken):
                pass
        assert config_file.read_bytes() == CONFIG.encode("utf-8")
        assert not backup_path(config_file).exists()

    def test_missing_config(self, tmp_path: Path):
        with pytest.raises(ConfigScopeError, match="Cannot read"):
            with config_scope(tmp_path / "config.toml", override_base_url("https://a.example")):
                pass

    def test_restore_failure_raises(self, config_file: Path, monkeypatch):
        real_write = scope_module._atomic_write
        calls = []

        def flaky_write(path, data):
            calls.append(path)
            if len(calls) > 1:
                raise OSError("disk full")
            real_write(path, data)

        monkeypatch.setattr(scope_module, "_atomic_write", flaky_write)

        with pytest.raises(ConfigRestoreError, match="disk full"):
            with config_scope(config_file, override_base_url("https://draft.example.org")):
                pass
        # The sidecar keeps the original so it can be restored later
        assert backup_path(config_file).read_bytes() == CONFIG.encode("utf-8")


class TestRestoreFromBackup:
    def test_restores_leftover(self, config_file: Path):
        backup_path(config_file).write_bytes(CONFIG.encode("utf-8"))
        config_file.write_text('base_url = "https://draft.example.org"\n')

        assert restore_from_backup(config_file) is True
        assert config_file.read_bytes() == CONFIG.encode("utf-8")
        assert not backup_path(config_file).exists()

    def test_nothing_to_restore(self, config_file: Path):
        assert restore_from_backup(config_file) is False
        assert config_file.read_bytes() == CONFIG.encode("utf-8")

    def test_scope_opens_after_restore(self, config_file: Path):
        backup_path(config_file).write_bytes(CONFIG.encode("utf-8"))
        restore_from_backup(config_file)
        with config_scope(config_file, override_base_url("https://draft.example.org")):
            pass
