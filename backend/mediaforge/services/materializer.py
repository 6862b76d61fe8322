from __future__ import annotations
"""AssetMaterializer: turns a provider result locator into a catalog asset.

1. Fetch (http/https URL, streamed) or decode (data: URI / bare base64)
2. Write under the type-keyed catalog subtree with a collision-resistant name
3. Register the Asset in the catalog

Step 3 only runs after the file is fully written and present on disk; if
registration fails the file is removed again.
"""

import asyncio
import base64
import binascii
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from mediaforge.config import get_settings
from mediaforge.schemas.asset import Asset, AssetStatus, AssetType
from mediaforge.services.catalog import (
    TYPE_SUBDIRS,
    CatalogStore,
    generate_asset_id,
    generate_filename,
)

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?);base64,(?P<data>.*)$", re.DOTALL)


class MaterializationError(Exception):
    """Fetch, decode or write of a provider result failed."""


def decode_payload(source: str) -> bytes:
    """Decode a ``data:<mime>;base64,...`` URI or bare base64 text."""
    match = _DATA_URI.match(source)
    encoded = match.group("data") if match else source
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MaterializationError(f"Could not decode embedded media: {exc}") from exc


class AssetMaterializer:
    def __init__(
        self,
        catalog: CatalogStore,
        *,
        http_client: httpx.AsyncClient | None = None,
        download_timeout: float | None = None,
    ) -> None:
        self.catalog = catalog
        self._http_client = http_client
        self._download_timeout = download_timeout or get_settings().DOWNLOAD_TIMEOUT

    async def materialize(
        self,
        source: str,
        *,
        asset_type: AssetType | str,
        provider: str,
        model: str,
        prompt: str = "",
        extension: str = "mp4",
        estimated_cost: float = 0.0,
        generation_time_ms: int = 0,
        metadata: dict[str, Any] | None = None,
        subdir: str | None = None,
    ) -> Asset:
        type_value = AssetType(asset_type).value
        target_dir = self.catalog.subdir_path(subdir or TYPE_SUBDIRS[type_value])
        filename = generate_filename(type_value, provider, model, extension)
        file_path = target_dir / filename

        try:
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
            if source.startswith(("http://", "https://")):
                await self._download(source, str(file_path))
            else:
                data = decode_payload(source)
                await asyncio.to_thread(file_path.write_bytes, data)
        except MaterializationError:
            self._discard(str(file_path))
            raise
        except (httpx.HTTPError, OSError) as exc:
            self._discard(str(file_path))
            raise MaterializationError(f"Failed to save {type_value}: {exc}") from exc

        if not file_path.is_file():
            raise MaterializationError(f"Saved {type_value} file missing: {file_path}")

        now = datetime.now(timezone.utc)
        asset = Asset(
            id=generate_asset_id(type_value),
            type=type_value,
            filename=filename,
            url=self.catalog.url_for(target_dir.name, filename),
            provider=provider,
            model=model,
            prompt=prompt,
            status=AssetStatus.READY,
            created_at=now,
            completed_at=now,
            estimated_cost=estimated_cost,
            generation_time_ms=generation_time_ms,
            metadata=dict(metadata or {}),
        )

        try:
            await self.catalog.add(asset)
        except Exception:
            self._discard(str(file_path))
            raise

        logger.info("Materialized %s %s -> %s", type_value, asset.id, asset.url)
        return asset

    async def _download(self, url: str, file_path: str) -> None:
        """Stream the remote file to disk."""
        logger.info("Downloading %s", url)
        client = self._http_client or httpx.AsyncClient(timeout=self._download_timeout)
        own_client = self._http_client is None
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                if response.status_code >= 400:
                    raise MaterializationError(
                        f"Failed to download media: HTTP {response.status_code}"
                    )
                with open(file_path, "wb") as f:
                    async for chunk in response.aiter_bytes(chunk_size=8192):
                        f.write(chunk)
        finally:
            if own_client:
                await client.aclose()

    @staticmethod
    def _discard(file_path: str) -> None:
        try:
            os.remove(file_path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove partial file %s", file_path, exc_info=True)
