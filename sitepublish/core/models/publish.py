"""
Publish configuration models — loaded from publish.yml.

This is the canonical description of one site: where its sources and
generator config live, how the generator is invoked, where each build
mode is mirrored to, and which fixed corrections are applied to the
generated output.
"""

from __future__ import annotations

import posixpath
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_DRAFT_ROBOTS = "User-agent: *\nDisallow: /\n"

DEFAULT_GENERATOR_COMMAND = [
    "zola",
    "--root", "{root}",
    "--config", "{config}",
    "build",
    "--output-dir", "{output}",
    "--force",
]

DEFAULT_PATCHES = [
    {
        "file": "blog/temporary-shared-mutation/index.html",
        "old": "<th><code>&amp;mut T</code></th>",
        "new": "<th><code>&amp;mut&nbsp;T</code></th>",
        "description": "keep &mut T on one line in the table header",
    },
]


class BuildMode(str, Enum):
    """Which deployment a run targets. Set once per run."""

    PRODUCTION = "production"
    DRAFT = "draft"


class RemoteDestination(BaseModel):
    """A mirror target. ``host=None`` means a path on the local machine."""

    host: str | None = None
    path: str

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        if not v:
            raise ValueError("destination path must not be empty")
        return v.rstrip("/") or "/"

    @property
    def target(self) -> str:
        """The rsync-style target string (``host:path/`` or ``path/``)."""
        path = self.path if self.path.endswith("/") else f"{self.path}/"
        return f"{self.host}:{path}" if self.host else path

    def overlaps(self, other: RemoteDestination) -> bool:
        """True when both live on the same host and one path contains the other."""
        if self.host != other.host:
            return False
        a = posixpath.normpath(self.path)
        b = posixpath.normpath(other.path)
        if a == b:
            return True
        return a.startswith(b.rstrip("/") + "/") or b.startswith(a.rstrip("/") + "/")

    def __str__(self) -> str:
        return f"{self.host}:{self.path}" if self.host else self.path


class Destinations(BaseModel):
    """One destination per build mode; the two must never overlap."""

    production: RemoteDestination
    draft: RemoteDestination

    @model_validator(mode="after")
    def _disjoint(self) -> Destinations:
        if self.production.overlaps(self.draft):
            raise ValueError(
                f"production ({self.production}) and draft ({self.draft}) "
                "destinations overlap"
            )
        return self

    def for_mode(self, mode: BuildMode) -> RemoteDestination:
        return self.production if mode is BuildMode.PRODUCTION else self.draft


class PatchRule(BaseModel):
    """A fixed textual correction to one generated file.

    ``file`` is relative to the output root. ``old`` must not occur
    inside ``new``, otherwise a second application would change the
    file again.
    """

    file: str
    old: str
    new: str
    description: str = ""

    @field_validator("file")
    @classmethod
    def _relative_file(cls, v: str) -> str:
        if not v or Path(v).is_absolute() or ".." in Path(v).parts:
            raise ValueError(f"patch target must be a relative path inside the output: {v!r}")
        return v

    @model_validator(mode="after")
    def _idempotent(self) -> PatchRule:
        if not self.old:
            raise ValueError(f"patch rule for {self.file} has an empty 'old' string")
        if self.old in self.new:
            raise ValueError(
                f"patch rule for {self.file} is not idempotent: 'old' occurs inside 'new'"
            )
        return self


class SiteSettings(BaseModel):
    """Paths of the site repository, relative to publish.yml."""

    root: str = "."
    config: str = "config.toml"
    content: str = "content"
    output: str = "public"


class GeneratorSettings(BaseModel):
    command: list[str] = Field(default_factory=lambda: list(DEFAULT_GENERATOR_COMMAND))
    draft_args: list[str] = Field(default_factory=lambda: ["--drafts"])
    timeout: int = 600

    @field_validator("command")
    @classmethod
    def _non_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("generator command must not be empty")
        return v


class DraftSettings(BaseModel):
    """What changes when publishing a draft."""

    base_url: str | None = None
    robots: str | None = None          # path to the draft robots.txt (relative to publish.yml)
    index_value: str = "index,follow"
    noindex_value: str = "noindex"

    @model_validator(mode="after")
    def _distinct_values(self) -> DraftSettings:
        if not self.index_value:
            raise ValueError("draft.index_value must not be empty")
        if self.index_value in self.noindex_value:
            raise ValueError("draft.noindex_value must not contain draft.index_value")
        return self


class MirrorSettings(BaseModel):
    include_hidden: list[str] = Field(default_factory=lambda: [".well-known"])
    timeout: int = 300                 # rsync I/O idle timeout
    max_duration: int = 3600           # hard limit for the whole transfer
    extra_args: list[str] = Field(default_factory=list)

    @field_validator("include_hidden")
    @classmethod
    def _hidden_names(cls, v: list[str]) -> list[str]:
        cleaned = []
        for name in v:
            name = name.strip("/")
            if not name.startswith(".") or "/" in name:
                raise ValueError(f"include_hidden entries must be top-level dot paths: {name!r}")
            cleaned.append(name)
        return cleaned


class ImageSettings(BaseModel):
    lossy_quality: int = Field(default=75, ge=0, le=100)
    workers: int = Field(default=1, ge=1)


class CacheRefreshSettings(BaseModel):
    stale_suffix: str = ".gz"
    extensions: list[str] = Field(
        default_factory=lambda: ["html", "css", "xml", "ico", "svg", "json"],
    )
    level: int = Field(default=9, ge=1, le=9)
    timeout: int = 300
    connect_timeout: int = 15

    @field_validator("extensions")
    @classmethod
    def _strip_dots(cls, v: list[str]) -> list[str]:
        exts = [e.lstrip(".").lower() for e in v if e.strip(".")]
        if not exts:
            raise ValueError("cache_refresh.extensions must not be empty")
        return exts


class PublishConfig(BaseModel):
    """Root configuration — loaded from publish.yml."""

    version: int = 1
    name: str = ""

    site: SiteSettings = Field(default_factory=SiteSettings)
    generator: GeneratorSettings = Field(default_factory=GeneratorSettings)
    draft: DraftSettings = Field(default_factory=DraftSettings)
    destinations: Destinations
    mirror: MirrorSettings = Field(default_factory=MirrorSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    patches: list[PatchRule] = Field(
        default_factory=lambda: [PatchRule(**rule) for rule in DEFAULT_PATCHES]
    )
    cache_refresh: CacheRefreshSettings = Field(default_factory=CacheRefreshSettings)


class SitePaths(BaseModel):
    """Absolute paths resolved against the directory holding publish.yml."""

    base_dir: Path
    root: Path
    config: Path
    content: Path
    output: Path
    draft_robots: Path | None = None

    @classmethod
    def resolve(cls, config: PublishConfig, base_dir: Path) -> SitePaths:
        base_dir = base_dir.resolve()
        root = (base_dir / config.site.root).resolve()
        robots = config.draft.robots
        return cls(
            base_dir=base_dir,
            root=root,
            config=(root / config.site.config).resolve(),
            content=(root / config.site.content).resolve(),
            output=(root / config.site.output).resolve(),
            draft_robots=(base_dir / robots).resolve() if robots else None,
        )
