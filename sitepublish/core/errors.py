"""
Publish errors — one exception type per pipeline stage.

Each error knows which stage raised it and which process exit code
the CLI reports for it, so an operator can tell from ``$?`` alone
where a publish stopped.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_CONFIG = 3
EXIT_BUILD = 10
EXIT_DERIVE = 11
EXIT_PATCH = 12
EXIT_MASK = 13
EXIT_MIRROR = 14
EXIT_REMOTE = 15
EXIT_CONFIG_RESTORE = 16


class PublishError(Exception):
    """Base class for every stage failure."""

    stage = "publish"
    exit_code = 1


class ConfigScopeError(PublishError):
    """The generator config could not be overridden (nothing was changed)."""

    stage = "build"
    exit_code = EXIT_BUILD


class ConfigRestoreError(PublishError):
    """The generator config could not be restored. Never expected."""

    stage = "build"
    exit_code = EXIT_CONFIG_RESTORE


class BuildError(PublishError):
    stage = "build"
    exit_code = EXIT_BUILD


class DeriveError(PublishError):
    stage = "derive"
    exit_code = EXIT_DERIVE


class PatchError(PublishError):
    stage = "patch"
    exit_code = EXIT_PATCH


class MaskError(PublishError):
    stage = "mask"
    exit_code = EXIT_MASK


class MirrorError(PublishError):
    stage = "mirror"
    exit_code = EXIT_MIRROR


class RemoteExecError(PublishError):
    stage = "refresh"
    exit_code = EXIT_REMOTE
