"""
Domain models — Pydantic types for the publisher.

All models are re-exported here for convenient access:

    from sitepublish.core.models import PublishConfig, BuildMode, Action, Receipt
"""

from sitepublish.core.models.action import Action, Receipt
from sitepublish.core.models.publish import (
    BuildMode,
    CacheRefreshSettings,
    Destinations,
    DraftSettings,
    GeneratorSettings,
    ImageSettings,
    MirrorSettings,
    PatchRule,
    PublishConfig,
    RemoteDestination,
    SitePaths,
    SiteSettings,
)

__all__ = [
    # action.py
    "Action",
    # publish.py
    "BuildMode",
    "CacheRefreshSettings",
    "Destinations",
    "DraftSettings",
    "GeneratorSettings",
    "ImageSettings",
    "MirrorSettings",
    "PatchRule",
    "PublishConfig",
    "Receipt",
    "RemoteDestination",
    "SitePaths",
    "SiteSettings",
]
