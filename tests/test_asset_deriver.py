"""
Tests for WebP derivation.
"""

from pathlib import Path

import pytest
from PIL import Image

from conftest import make_jpeg, make_png
from sitepublish.core.errors import DeriveError
from sitepublish.core.models.publish import ImageSettings
from sitepublish.core.services.asset_deriver import (
    derive_assets,
    derived_path,
    find_sources,
    transcode,
)


@pytest.fixture
def output(tmp_path: Path) -> Path:
    out = tmp_path / "public"
    make_png(out / "img" / "logo.png")
    make_png(out / "img" / "nested" / "diagram.PNG")
    make_jpeg(out / "photos" / "cat.jpg")
    make_jpeg(out / "photos" / "dog.jpeg")
    (out / "index.html").write_text("<html></html>")
    (out / "img" / "icon.gif").write_bytes(b"GIF89a")
    return out


class TestFindSources:
    def test_case_insensitive(self, output: Path):
        names = sorted(p.name for p in find_sources(output))
        assert names == ["cat.jpg", "diagram.PNG", "dog.jpeg", "logo.png"]

    def test_derived_path_keeps_extension(self):
        assert derived_path(Path("/o/img/a.png")) == Path("/o/img/a.png.webp")


class TestTranscode:
    def test_lossless_png(self, output: Path):
        target = transcode(output / "img" / "logo.png", lossless=True, quality=75)
        with Image.open(target) as img:
            assert img.format == "WEBP"
            assert img.convert("RGBA").getpixel((0, 0)) == (200, 30, 30, 255)

    def test_palette_png(self, tmp_path: Path):
        source = tmp_path / "p.png"
        Image.new("P", (8, 8)).save(source)
        target = transcode(source, lossless=True, quality=75)
        assert target.exists()

    def test_corrupt_source(self, tmp_path: Path):
        source = tmp_path / "broken.png"
        source.write_bytes(b"not a png")
        with pytest.raises(DeriveError, match="broken.png"):
            transcode(source, lossless=True, quality=75)
        assert not derived_path(source).exists()
        assert list(tmp_path.glob("*.tmp")) == []

    def test_oversized_source(self, tmp_path: Path, monkeypatch):
        source = tmp_path / "huge.png"
        Image.new("RGB", (64, 64)).save(source)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(DeriveError, match="huge.png"):
            transcode(source, lossless=True, quality=75)
        assert not derived_path(source).exists()
        assert list(tmp_path.glob("*.tmp")) == []


class TestDeriveAssets:
    def test_every_image_gets_a_sibling(self, output: Path):
        stats = derive_assets(output)
        assert stats.lossless == 2
        assert stats.lossy == 2
        for source in find_sources(output):
            assert derived_path(source).is_file()
        assert not (output / "img" / "icon.gif.webp").exists()
        assert not (output / "index.html.webp").exists()

    def test_originals_untouched(self, output: Path):
        before = (output / "photos" / "cat.jpg").read_bytes()
        derive_assets(output)
        assert (output / "photos" / "cat.jpg").read_bytes() == before

    def test_rerun_overwrites(self, output: Path):
        derive_assets(output)
        derived_path(output / "img" / "logo.png").write_bytes(b"stale")
        stats = derive_assets(output)
        assert stats.total == 4
        with Image.open(derived_path(output / "img" / "logo.png")) as img:
            assert img.format == "WEBP"

    def test_no_images(self, tmp_path: Path):
        (tmp_path / "index.html").write_text("x")
        assert derive_assets(tmp_path).total == 0

    def test_webp_siblings_are_not_sources(self, output: Path):
        derive_assets(output)
        assert derive_assets(output).total == 4

    def test_fail_fast(self, output: Path):
        (output / "img" / "bad.png").write_bytes(b"garbage")
        with pytest.raises(DeriveError, match="bad.png"):
            derive_assets(output)

    def test_parallel_workers(self, output: Path):
        stats = derive_assets(output, ImageSettings(workers=4))
        assert stats.total == 4
        assert sorted(stats.derived) == sorted(
            str(derived_path(s).relative_to(output)) for s in find_sources(output)
        )

    def test_parallel_fail_fast(self, output: Path):
        (output / "img" / "bad.png").write_bytes(b"garbage")
        with pytest.raises(DeriveError, match="bad.png"):
            derive_assets(output, ImageSettings(workers=3))
