"""
Tests for draft masking: robots.txt replacement and noindex rewriting.
"""

from pathlib import Path

import pytest

from sitepublish.core.errors import MaskError
from sitepublish.core.models.publish import DEFAULT_DRAFT_ROBOTS, DraftSettings
from sitepublish.core.services.draft_masker import mask_draft, verify_masked

INDEXED = '<meta name="robots" content="index,follow">\n'


@pytest.fixture
def output(tmp_path: Path) -> Path:
    out = tmp_path / "public"
    (out / "blog" / "post").mkdir(parents=True)
    (out / "index.html").write_text(INDEXED + "<p>home</p>\n")
    (out / "blog" / "post" / "index.html").write_text(INDEXED * 2)
    (out / "plain.html").write_text("<p>no meta</p>\n")
    (out / "notes.txt").write_text("index,follow stays in non-HTML files\n")
    (out / "robots.txt").write_text("User-agent: *\nAllow: /\n")
    return out


class TestMaskDraft:
    def test_default_robots(self, output: Path):
        stats = mask_draft(output)
        assert (output / "robots.txt").read_text() == DEFAULT_DRAFT_ROBOTS
        assert stats.robots_source == "built-in"

    def test_robots_from_file(self, output: Path, tmp_path: Path):
        robots = tmp_path / "draft-robots.txt"
        robots.write_bytes(b"User-agent: *\r\nDisallow: /\r\n")
        mask_draft(output, robots_path=robots)
        assert (output / "robots.txt").read_bytes() == robots.read_bytes()

    def test_rewrites_every_html_file(self, output: Path):
        stats = mask_draft(output)
        assert stats.html_files == 3
        assert stats.files_rewritten == 2
        assert stats.replacements == 3
        for page in output.rglob("*.html"):
            assert "index,follow" not in page.read_text()
        assert '<meta name="robots" content="noindex">' in (output / "index.html").read_text()

    def test_non_html_untouched(self, output: Path):
        mask_draft(output)
        assert "index,follow" in (output / "notes.txt").read_text()

    def test_creates_missing_robots(self, output: Path):
        (output / "robots.txt").unlink()
        mask_draft(output)
        assert (output / "robots.txt").read_text() == DEFAULT_DRAFT_ROBOTS

    def test_idempotent(self, output: Path):
        mask_draft(output)
        snapshot = {p: p.read_bytes() for p in output.rglob("*") if p.is_file()}
        stats = mask_draft(output)
        assert stats.replacements == 0
        assert {p: p.read_bytes() for p in output.rglob("*") if p.is_file()} == snapshot

    def test_custom_values(self, output: Path):
        settings = DraftSettings(index_value='content="index,follow"', noindex_value='content="noindex,nofollow"')
        mask_draft(output, settings)
        assert 'content="noindex,nofollow"' in (output / "index.html").read_text()

    def test_missing_robots_source(self, output: Path, tmp_path: Path):
        with pytest.raises(MaskError, match="draft robots"):
            mask_draft(output, robots_path=tmp_path / "nope.txt")

    def test_missing_output(self, tmp_path: Path):
        with pytest.raises(MaskError, match="not found"):
            mask_draft(tmp_path / "public")


class TestVerifyMasked:
    def test_detects_leftover(self, output: Path):
        (output / "robots.txt").write_text(DEFAULT_DRAFT_ROBOTS)
        with pytest.raises(MaskError, match="still contain"):
            verify_masked(output, DraftSettings(), DEFAULT_DRAFT_ROBOTS.encode())

    def test_detects_wrong_robots(self, output: Path):
        mask_draft(output)
        (output / "robots.txt").write_text("User-agent: *\nAllow: /\n")
        with pytest.raises(MaskError, match="robots.txt"):
            verify_masked(output, DraftSettings(), DEFAULT_DRAFT_ROBOTS.encode())
