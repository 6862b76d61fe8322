"""Asset catalog endpoints: browse, annotate and delete generated media."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from mediaforge.schemas.asset import Asset, AssetType
from mediaforge.services.catalog import get_catalog

router = APIRouter()


class AssetUpdate(BaseModel):
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


@router.get("", response_model=list[Asset])
async def list_assets(
    type: AssetType | None = None,
    provider: str | None = None,
    status: str | None = None,
    tags: list[str] | None = Query(default=None),
    start: datetime | None = None,
    end: datetime | None = None,
):
    return await get_catalog().filter(
        type=type, provider=provider, status=status, tags=tags, start=start, end=end,
    )


@router.get("/{asset_id}", response_model=Asset)
async def get_asset(asset_id: str):
    asset = await get_catalog().get(asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


@router.patch("/{asset_id}", response_model=Asset)
async def update_asset(asset_id: str, body: AssetUpdate):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")
    asset = await get_catalog().update(asset_id, **changes)
    if asset is None:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


@router.delete("/{asset_id}")
async def delete_asset(asset_id: str):
    if not await get_catalog().delete(asset_id):
        raise HTTPException(status_code=404, detail="Asset not found")
    return {"deleted": asset_id}
