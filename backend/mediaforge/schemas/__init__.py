"""Pydantic v2 schemas package."""

from mediaforge.schemas.assembly import (
    AssemblyRequest,
    AssemblyResult,
    MusicTrack,
    NarrationTrack,
)
from mediaforge.schemas.asset import Asset, AssetCatalog, AssetStatus, AssetType
from mediaforge.schemas.task import (
    MusicGenerateRequest,
    ProviderHealth,
    TaskRead,
    VideoGenerateRequest,
)

__all__ = [
    "AssemblyRequest",
    "AssemblyResult",
    "MusicTrack",
    "NarrationTrack",
    "Asset",
    "AssetCatalog",
    "AssetStatus",
    "AssetType",
    "MusicGenerateRequest",
    "ProviderHealth",
    "TaskRead",
    "VideoGenerateRequest",
]
