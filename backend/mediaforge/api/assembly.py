"""Story assembly endpoint: 1-3 clips + music (+ narration) → one video."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from mediaforge.schemas.assembly import AssemblyRequest, AssemblyResult
from mediaforge.services.assembly_service import get_assembly_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/assemble", response_model=AssemblyResult)
async def assemble_story(request: AssemblyRequest):
    service = get_assembly_service()
    result = await service.assemble(request)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    try:
        asset = await service.save_story_to_catalog(result, request)
    except (OSError, ValueError) as exc:
        logger.error("Assembled story could not be registered: %s", exc)
        raise HTTPException(status_code=500, detail=f"Story assembled but not saved: {exc}")

    return result.model_copy(update={"output_path": asset.url.removeprefix("/assets/")})
