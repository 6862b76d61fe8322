from __future__ import annotations
"""Catalog document schemas.

Stored camelCase on disk (``lastUpdated``, ``estimatedCost`` ...) and
exposed snake_case in Python.
"""

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CATALOG_VERSION = "1.0.0"


class AssetType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    MUSIC = "music"
    NARRATION = "narration"
    THUMBNAIL = "thumbnail"


class AssetStatus(str, enum.Enum):
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"
    ARCHIVED = "archived"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class Asset(_CamelModel):
    """Immutable-once-created catalog record; only tags/metadata change."""

    id: str
    type: AssetType
    filename: str
    url: str  # storage locator, "/assets/catalog/<subdir>/<filename>"
    provider: str
    model: str
    prompt: str = ""
    status: AssetStatus = AssetStatus.READY
    error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    parent_id: str | None = None
    source_asset_ids: list[str] | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_cost: float = 0.0
    generation_time_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class AssetCatalog(_CamelModel):
    version: str = CATALOG_VERSION
    last_updated: datetime
    assets: list[Asset] = Field(default_factory=list)
