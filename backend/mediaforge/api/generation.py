"""Video and music generation endpoints.

Requests are accepted immediately as ``pending`` tasks; the provider work
runs in the background and is observed via ``/api/tasks`` or ``/ws/tasks``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from mediaforge.models.generation_task import TaskKind
from mediaforge.schemas.task import MusicGenerateRequest, ProviderHealth, TaskRead, VideoGenerateRequest
from mediaforge.services.generation_service import get_generation_service
from mediaforge.services.model_registry import MODEL_REGISTRY

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/video/health")
async def provider_health() -> dict[str, ProviderHealth]:
    """Configured/authenticated status for every provider backend."""
    return await get_generation_service().check_health()


@router.get("/models")
async def list_models(kind: TaskKind | None = None) -> dict:
    models = MODEL_REGISTRY.list_models(kind)
    return {
        "models": [
            {
                "key": m.key,
                "name": m.name,
                "kind": m.kind.value,
                "provider": m.provider,
                "family": m.family,
                "estimated_cost": m.estimated_cost,
                "durations": list(m.durations),
            }
            for m in models
        ],
        "total": len(models),
    }


@router.post("/video/generate", response_model=TaskRead, status_code=202)
async def generate_video(request: VideoGenerateRequest):
    try:
        return await get_generation_service().submit_video(request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/music/generate", response_model=TaskRead, status_code=202)
async def generate_music(request: MusicGenerateRequest):
    try:
        return await get_generation_service().submit_music(request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
