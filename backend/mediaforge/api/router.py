from __future__ import annotations
"""Master API router: mounts all sub-routers."""

from fastapi import APIRouter

from mediaforge.api.assembly import router as assembly_router
from mediaforge.api.assets import router as assets_router
from mediaforge.api.generation import router as generation_router
from mediaforge.api.tasks import router as tasks_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generation_router, tags=["Generation"])
api_router.include_router(tasks_router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(assets_router, prefix="/assets", tags=["Asset Catalog"])
api_router.include_router(assembly_router, prefix="/story", tags=["Story Assembly"])
