"""Declarative model registry.

One entry per generation model: which provider serves it, which adapter
family it belongs to, and its per-generation cost estimate.

Usage:
    from mediaforge.services.model_registry import MODEL_REGISTRY
    spec = MODEL_REGISTRY.get("video", "veo3")
    provider = MODEL_REGISTRY.build_provider(spec)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from mediaforge.models.generation_task import TaskKind

logger = logging.getLogger(__name__)

FAMILY_POLLING = "polling"
FAMILY_SYNC = "sync"


@dataclass(frozen=True)
class ModelSpec:
    key: str
    name: str
    kind: TaskKind
    provider: str
    family: str
    estimated_cost: float
    durations: tuple[int, ...] = ()
    extension: str = "mp4"
    # Provider encodes to the requested output_format
    honours_output_format: bool = False


class ModelRegistry:
    """In-memory registry keyed by (kind, model key)."""

    def __init__(self) -> None:
        self._models: dict[tuple[str, str], ModelSpec] = {}

    def register(self, spec: ModelSpec) -> None:
        self._models[(spec.kind.value, spec.key)] = spec

    def get(self, kind: TaskKind | str, key: str) -> ModelSpec:
        spec = self._models.get((TaskKind(kind).value, key))
        if spec is None:
            raise ValueError(f"Unknown {TaskKind(kind).value} model: {key}")
        return spec

    def list_models(self, kind: TaskKind | str | None = None) -> list[ModelSpec]:
        if kind is None:
            return list(self._models.values())
        return [s for s in self._models.values() if s.kind == TaskKind(kind)]

    def build_provider(self, spec: ModelSpec, *, http_client: httpx.AsyncClient | None = None) -> Any:
        """Instantiate the adapter that serves ``spec``."""
        from mediaforge.services.providers.fal_music import FalSonautoProvider
        from mediaforge.services.providers.fal_video import FalVideoProvider
        from mediaforge.services.providers.kie_music import KieSunoProvider
        from mediaforge.services.providers.kie_video import KieVeoProvider

        adapters = {
            (TaskKind.VIDEO, "kie"): KieVeoProvider,
            (TaskKind.VIDEO, "fal"): FalVideoProvider,
            (TaskKind.MUSIC, "kie"): KieSunoProvider,
            (TaskKind.MUSIC, "fal"): FalSonautoProvider,
        }
        return adapters[(spec.kind, spec.provider)](http_client=http_client)


MODEL_REGISTRY = ModelRegistry()

MODEL_REGISTRY.register(ModelSpec(
    key="veo3", name="Veo 3.1", kind=TaskKind.VIDEO, provider="kie",
    family=FAMILY_POLLING, estimated_cost=0.25, durations=(5, 8),
))
MODEL_REGISTRY.register(ModelSpec(
    key="kling-o1", name="Kling O1", kind=TaskKind.VIDEO, provider="fal",
    family=FAMILY_SYNC, estimated_cost=0.56, durations=(5, 10),
))
MODEL_REGISTRY.register(ModelSpec(
    key="wan-flf2v", name="Wan 2.1 FLF2V", kind=TaskKind.VIDEO, provider="fal",
    family=FAMILY_SYNC, estimated_cost=0.15, durations=(3,),
))
MODEL_REGISTRY.register(ModelSpec(
    key="suno", name="Suno", kind=TaskKind.MUSIC, provider="kie",
    family=FAMILY_POLLING, estimated_cost=0.06, extension="mp3",
))
MODEL_REGISTRY.register(ModelSpec(
    key="sonauto-v2", name="SonAuto v2", kind=TaskKind.MUSIC, provider="fal",
    family=FAMILY_SYNC, estimated_cost=0.075, extension="mp3", honours_output_format=True,
))
