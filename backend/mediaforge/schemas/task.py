from __future__ import annotations
"""Pydantic v2 schemas for generation requests and task records."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class VideoGenerateRequest(BaseModel):
    """Transition video between a start and an end frame."""

    model: str = "veo3"
    prompt: str | None = None
    duration: int = 5
    start_image: str | None = Field(
        default=None, description="Image URL or data: URI for the first frame"
    )
    end_image: str | None = Field(
        default=None, description="Image URL or data: URI for the last frame"
    )


class MusicGenerateRequest(BaseModel):
    """Music track request; ``model`` selects the provider."""

    model: str = "suno"
    prompt: str
    version: str = "V4.5"
    lyrics: str | None = None
    style: str | None = None
    tags: list[str] = Field(default_factory=list)
    instrumental: bool = False
    output_format: Literal["mp3", "wav", "flac", "ogg", "m4a"] = "mp3"
    bpm: int | Literal["auto"] | None = None
    title: str | None = None
    vocal_gender: Literal["male", "female"] | None = None


class TaskRead(BaseModel):
    """Detached snapshot of a GenerationTask row."""

    id: str
    kind: str
    provider: str
    model: str
    prompt: str | None = None
    inputs: dict[str, Any] = Field(default_factory=dict)
    status: str
    progress: float | None = None
    error: str | None = None
    asset_id: str | None = None
    output_ref: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProviderHealth(BaseModel):
    configured: bool
    authenticated: bool
    error: str | None = None
