from __future__ import annotations
"""Story assembly executor: resolve → plan → ffmpeg → probe → result.

Every failure becomes ``AssemblyResult(success=False, error=...)``; nothing
raises out of ``assemble``.
"""

import asyncio
import logging
import re
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path

from mediaforge.config import get_settings
from mediaforge.schemas.assembly import AssemblyRequest, AssemblyResult
from mediaforge.schemas.asset import Asset, AssetStatus, AssetType
from mediaforge.services.assembly_planner import (
    AssemblyError,
    AssemblyPlan,
    AssemblyValidationError,
    build_plan,
    resolve_inputs,
)
from mediaforge.services.catalog import CatalogStore
from mediaforge.services.ffmpeg_service import FFmpegError, MediaProbe, probe_media, run_ffmpeg

logger = logging.getLogger(__name__)

OUTPUT_SUBDIR = "video-scenes"
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def make_catalog_id(now: datetime, epoch_ms: int) -> str:
    """``sto-YYYYMMDD-<epoch ms in base36>``"""
    return f"sto-{now:%Y%m%d}-{to_base36(epoch_ms)}"


def safe_output_name(name: str | None) -> str:
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", name or "").strip("-")
    return slug or "story"


class AssemblyService:
    def __init__(
        self,
        catalog: CatalogStore,
        *,
        ffmpeg_bin: str | None = None,
        ffprobe_bin: str | None = None,
        fps: int | None = None,
        timeout: int | None = None,
    ) -> None:
        settings = get_settings()
        self.catalog = catalog
        self.ffmpeg_bin = ffmpeg_bin or settings.FFMPEG_BIN
        self.ffprobe_bin = ffprobe_bin or settings.FFPROBE_BIN
        self.fps = fps or settings.ASSEMBLY_FPS
        self.timeout = timeout or settings.ASSEMBLY_TIMEOUT

    @property
    def assets_dir(self) -> Path:
        return self.catalog.assets_dir

    def _probe(self, path: str) -> MediaProbe:
        return probe_media(path, ffprobe_bin=self.ffprobe_bin)

    async def run(self, plan: AssemblyPlan) -> float:
        """Execute ``plan`` and return the probed duration of its output."""
        try:
            await asyncio.to_thread(run_ffmpeg, plan.to_command(self.ffmpeg_bin), timeout=self.timeout)
        except FFmpegError as exc:
            raise AssemblyError(str(exc)) from exc

        if not Path(plan.output_path).is_file():
            raise AssemblyError(f"FFmpeg produced no output at {plan.output_path}")

        try:
            probe = await asyncio.to_thread(self._probe, plan.output_path)
        except FFmpegError as exc:
            raise AssemblyError(f"Could not probe output: {exc}") from exc
        return probe.duration

    async def assemble(self, request: AssemblyRequest) -> AssemblyResult:
        try:
            resolved = await asyncio.to_thread(resolve_inputs, request, self.assets_dir, self._probe)

            epoch_ms = int(time.time() * 1000)
            filename = f"{safe_output_name(request.output_name)}-{epoch_ms}.mp4"
            out_dir = self.assets_dir / OUTPUT_SUBDIR
            await asyncio.to_thread(out_dir.mkdir, parents=True, exist_ok=True)

            plan = build_plan(request, resolved, str(out_dir / filename), fps=self.fps)
            logger.info(
                "Assembling %d clips: concat=%.2fs hold=%.2fs zoom=%s target=%s",
                len(resolved.videos), plan.concat_duration, plan.hold_duration,
                request.enable_zoom, request.target_duration,
            )
            duration = await self.run(plan)
        except (AssemblyValidationError, AssemblyError, FFmpegError) as exc:
            logger.error("Story assembly failed: %s", exc)
            return AssemblyResult(success=False, error=str(exc))
        except Exception as exc:
            logger.exception("Story assembly failed unexpectedly")
            return AssemblyResult(success=False, error=f"Assembly failed: {exc}")

        catalog_id = make_catalog_id(datetime.now(timezone.utc), epoch_ms)
        logger.info("Story assembled: %s (%.2fs) id=%s", filename, duration, catalog_id)
        return AssemblyResult(
            success=True,
            output_path=f"{OUTPUT_SUBDIR}/{filename}",
            duration=duration,
            catalog_id=catalog_id,
        )

    async def save_story_to_catalog(self, result: AssemblyResult, request: AssemblyRequest) -> Asset:
        """Move an assembled video into ``catalog/stories`` and register it."""
        if not result.success:
            raise ValueError("Cannot register a failed assembly")

        source = self.assets_dir / result.output_path
        stories_dir = self.catalog.subdir_path("stories")
        target = stories_dir / source.name
        await asyncio.to_thread(stories_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.move, str(source), str(target))

        now = datetime.now(timezone.utc)
        asset = Asset(
            id=result.catalog_id,
            type=AssetType.VIDEO,
            filename=target.name,
            url=self.catalog.url_for("stories", target.name),
            provider="ffmpeg",
            model="assembled",
            prompt=f"Story assembled from {len(request.videos)} clip(s)",
            status=AssetStatus.READY,
            created_at=now,
            completed_at=now,
            source_asset_ids=list(request.videos),
            tags=["story"],
            metadata={
                "duration": result.duration,
                "videos": list(request.videos),
                "music": request.music.model_dump(by_alias=True, exclude_none=True),
                "narration": (
                    request.narration.model_dump(by_alias=True, exclude_none=True)
                    if request.narration_enabled else None
                ),
                "targetDuration": request.target_duration,
                "enableZoom": request.enable_zoom,
                "enableFadeOut": request.enable_fade_out,
            },
        )
        try:
            await self.catalog.add(asset)
        except Exception:
            await asyncio.to_thread(shutil.move, str(target), str(source))
            raise
        logger.info("Story %s registered at %s", asset.id, asset.url)
        return asset


_assembly_service: AssemblyService | None = None


def get_assembly_service() -> AssemblyService:
    global _assembly_service
    if _assembly_service is None:
        from mediaforge.services.catalog import get_catalog

        _assembly_service = AssemblyService(get_catalog())
    return _assembly_service


def reset_assembly_service() -> None:
    global _assembly_service
    _assembly_service = None
