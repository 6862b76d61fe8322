from __future__ import annotations
"""Asset catalog: one JSON document indexing every generated asset.

Layout under ``ASSETS_DIR``::

    catalog/index.json
    catalog/{images,videos,music,narration,thumbnails,stories}/<filename>

The document is read whole and rewritten whole on each mutation. All
mutations of one store run under a single asyncio.Lock, so concurrent
add/delete calls cannot overwrite each other's changes; writes go to a
temp file that is then renamed over the index.
"""

import asyncio
import json
import logging
import os
import random
import re
import string
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mediaforge.config import get_settings
from mediaforge.schemas.asset import Asset, AssetCatalog, AssetType

logger = logging.getLogger(__name__)

CATALOG_SUBDIRS = ("images", "videos", "music", "narration", "thumbnails", "stories")

# Default storage subtree per asset type
TYPE_SUBDIRS: dict[str, str] = {
    AssetType.IMAGE.value: "images",
    AssetType.VIDEO.value: "videos",
    AssetType.MUSIC.value: "music",
    AssetType.NARRATION.value: "narration",
    AssetType.THUMBNAIL.value: "thumbnails",
}

# Only annotations may change after creation
UPDATABLE_FIELDS = frozenset({"tags", "metadata"})

URL_PREFIX = "/assets/"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _random_suffix(k: int = 6) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


def generate_asset_id(asset_type: AssetType | str) -> str:
    return f"asset_{AssetType(asset_type).value}_{int(time.time() * 1000)}_{_random_suffix()}"


def generate_filename(asset_type: AssetType | str, provider: str, model: str, extension: str) -> str:
    """``<type>-<epoch ms>-<provider>-<model>-<random>.<ext>``"""
    model_slug = re.sub(r"[^a-z0-9.]+", "-", model.lower()).strip("-") or "model"
    provider_slug = re.sub(r"[^a-z0-9]+", "-", provider.lower()).strip("-") or "provider"
    return (
        f"{AssetType(asset_type).value}-{int(time.time() * 1000)}-"
        f"{provider_slug}-{model_slug}-{_random_suffix()}.{extension.lstrip('.')}"
    )


class CatalogStore:
    """Single-writer access to the catalog document."""

    def __init__(self, assets_dir: str | os.PathLike[str]) -> None:
        self.assets_dir = Path(assets_dir)
        self.catalog_dir = self.assets_dir / "catalog"
        self.index_file = self.catalog_dir / "index.json"
        self._lock = asyncio.Lock()

    # ---------------------------------------------------------------- paths

    def subdir_path(self, subdir: str) -> Path:
        return self.catalog_dir / subdir

    def url_for(self, subdir: str, filename: str) -> str:
        return f"{URL_PREFIX}catalog/{subdir}/{filename}"

    def resolve_url(self, url: str) -> Path:
        """Map an ``/assets/...`` locator to its file under ``assets_dir``."""
        relative = url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url.lstrip("/")
        return self.assets_dir / relative

    # ----------------------------------------------------------- document IO

    async def init(self) -> None:
        await asyncio.to_thread(self._init_sync)

    def _init_sync(self) -> None:
        for subdir in CATALOG_SUBDIRS:
            self.subdir_path(subdir).mkdir(parents=True, exist_ok=True)
        if not self.index_file.exists():
            self._write_sync(AssetCatalog(last_updated=_now()))
            logger.info("Initialized empty catalog at %s", self.index_file)

    def _read_sync(self) -> AssetCatalog:
        if not self.index_file.exists():
            return AssetCatalog(last_updated=_now())
        with open(self.index_file, encoding="utf-8") as f:
            return AssetCatalog.model_validate(json.load(f))

    def _write_sync(self, catalog: AssetCatalog) -> None:
        catalog.last_updated = _now()
        self.catalog_dir.mkdir(parents=True, exist_ok=True)
        data = catalog.model_dump(mode="json", by_alias=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.catalog_dir, prefix=".index-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.index_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def load(self) -> AssetCatalog:
        return await asyncio.to_thread(self._read_sync)

    # ------------------------------------------------------------- queries

    async def get(self, asset_id: str) -> Asset | None:
        catalog = await self.load()
        return next((a for a in catalog.assets if a.id == asset_id), None)

    async def list(self) -> list[Asset]:
        return (await self.load()).assets

    async def filter(
        self,
        *,
        type: AssetType | str | None = None,
        provider: str | None = None,
        status: str | None = None,
        tags: list[str] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Asset]:
        type_value = AssetType(type).value if type else None
        start = _as_utc(start) if start else None
        end = _as_utc(end) if end else None

        def matches(asset: Asset) -> bool:
            if type_value and asset.type != type_value:
                return False
            if provider and asset.provider != provider:
                return False
            if status and asset.status != status:
                return False
            if tags and not all(t in asset.tags for t in tags):
                return False
            if start and _as_utc(asset.created_at) < start:
                return False
            if end and _as_utc(asset.created_at) > end:
                return False
            return True

        return [a for a in await self.list() if matches(a)]

    # ----------------------------------------------------------- mutations

    async def add(self, asset: Asset) -> Asset:
        async with self._lock:
            catalog = await self.load()
            if any(a.id == asset.id for a in catalog.assets):
                raise ValueError(f"Asset {asset.id} already exists")
            catalog.assets.append(asset)
            await asyncio.to_thread(self._write_sync, catalog)
        logger.info("Catalog: added %s (%s)", asset.id, asset.filename)
        return asset

    async def update(self, asset_id: str, **changes: Any) -> Asset | None:
        """Update annotation fields; ``metadata`` is merged, ``tags`` replaced."""
        forbidden = set(changes) - UPDATABLE_FIELDS
        if forbidden:
            raise ValueError(f"Asset fields are immutable: {sorted(forbidden)}")

        async with self._lock:
            catalog = await self.load()
            for i, asset in enumerate(catalog.assets):
                if asset.id != asset_id:
                    continue
                values: dict[str, Any] = {}
                if "tags" in changes:
                    values["tags"] = list(changes["tags"])
                if "metadata" in changes:
                    values["metadata"] = {**asset.metadata, **changes["metadata"]}
                catalog.assets[i] = asset.model_copy(update=values)
                await asyncio.to_thread(self._write_sync, catalog)
                return catalog.assets[i]
        return None

    async def delete(self, asset_id: str) -> bool:
        """Remove the backing file and the index entry together."""
        async with self._lock:
            catalog = await self.load()
            asset = next((a for a in catalog.assets if a.id == asset_id), None)
            if asset is None:
                return False

            file_path = self.resolve_url(asset.url)
            try:
                await asyncio.to_thread(file_path.unlink)
            except FileNotFoundError:
                logger.warning("Catalog: file for %s already missing: %s", asset_id, file_path)

            catalog.assets = [a for a in catalog.assets if a.id != asset_id]
            await asyncio.to_thread(self._write_sync, catalog)
        logger.info("Catalog: deleted %s", asset_id)
        return True


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_catalog: CatalogStore | None = None


def get_catalog() -> CatalogStore:
    """Return the process-wide catalog store (one writer per document)."""
    global _catalog
    if _catalog is None:
        _catalog = CatalogStore(get_settings().ASSETS_DIR)
    return _catalog


def reset_catalog() -> None:
    """Reset singleton (for testing)."""
    global _catalog
    _catalog = None
