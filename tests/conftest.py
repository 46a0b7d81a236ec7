"""
Shared test fixtures and configuration.
"""

import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml
from PIL import Image

FIXTURES_DIR = Path(__file__).parent / "fixtures"

PRODUCTION_URL = "https://example.org"
DRAFT_URL = "https://draft.example.org"

GENERATOR_CONFIG = textwrap.dedent(f"""\
    # Site configuration
    base_url = "{PRODUCTION_URL}"
    title = "Example"

    [markdown]
    highlight_code = true

    [extra]
    base_url = "https://not-this-one.example"
""")

TABLE_POST = "<table><tr><th><code>&amp;T</code></th><th><code>&amp;mut T</code></th></tr></table>\n"


@dataclass
class SiteTree:
    """A throwaway site repository with publish.yml."""

    root: Path
    publish_yml: Path
    generator_config: Path
    production: Path
    draft: Path

    @property
    def output(self) -> Path:
        return self.root / "public"

    def write_publish_config(self, **overrides) -> Path:
        data = publish_config_data(self)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key].update(value)
            else:
                data[key] = value
        self.publish_yml.write_text(yaml.safe_dump(data, sort_keys=False))
        return self.publish_yml


def publish_config_data(site: SiteTree) -> dict:
    return {
        "name": "example",
        "generator": {
            "command": [
                sys.executable, str(FIXTURES_DIR / "fake_generator.py"),
                "--root", "{root}",
                "--config", "{config}",
                "--output", "{output}",
            ],
            "timeout": 60,
        },
        "draft": {
            "base_url": DRAFT_URL,
            "robots": "draft-robots.txt",
        },
        "destinations": {
            "production": {"host": None, "path": str(site.production)},
            "draft": {"host": None, "path": str(site.draft)},
        },
        "patches": [
            {
                "file": "post/index.html",
                "old": "<th><code>&amp;mut T</code></th>",
                "new": "<th><code>&amp;mut&nbsp;T</code></th>",
                "description": "keep &mut T on one line in the table header",
            },
        ],
    }


def make_png(path: Path, size=(16, 16), color=(200, 30, 30, 255)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", size, color).save(path, format="PNG")
    return path


def make_jpeg(path: Path, size=(16, 16), color=(30, 30, 200)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="JPEG")
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def site(tmp_path: Path) -> SiteTree:
    """A complete site: generator config, content, static assets, publish.yml."""
    root = tmp_path / "site"
    (root / "content").mkdir(parents=True)
    (root / "content" / "post.md").write_text(TABLE_POST)
    (root / "content" / "draft-idea.md").write_text("not ready yet\n")

    static = root / "static"
    make_png(static / "img" / "logo.png")
    make_jpeg(static / "img" / "photo.JPG")
    (static / ".well-known").mkdir(parents=True)
    (static / ".well-known" / "security.txt").write_text("Contact: mailto:sec@example.org\n")
    (static / ".notes").write_text("private\n")

    config = root / "config.toml"
    config.write_text(GENERATOR_CONFIG)
    (root / "draft-robots.txt").write_text("User-agent: *\nDisallow: /\n")

    tree = SiteTree(
        root=root,
        publish_yml=root / "publish.yml",
        generator_config=config,
        production=tmp_path / "www" / "prod",
        draft=tmp_path / "www" / "draft",
    )
    tree.write_publish_config()
    return tree
