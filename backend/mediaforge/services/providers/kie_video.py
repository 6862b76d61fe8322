from __future__ import annotations
"""KIE.AI Veo 3.1 video provider (first + last frame transitions).

    POST /api/v1/veo/generate                 → data.taskId
    GET  /api/v1/veo/record-info?taskId=...   → data.successFlag / status / progress
"""

import logging
from typing import Any

from mediaforge.config import get_settings
from mediaforge.schemas.task import VideoGenerateRequest
from mediaforge.services.polling import Failed, InProgress, PollingPolicy, PollResult, Succeeded
from mediaforge.services.providers.base import ProviderAPIError, extract_first
from mediaforge.services.providers.kie import KieProvider

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "Smooth cinematic transition with natural motion"

# Candidate result locations, in priority order
VIDEO_URL_PATHS = (
    ("response", "videoUrl"),
    ("response", "resultVideoUrl"),
    ("response", "resultUrls", 0),
)

_FAILED_FLAGS = {2, 3}
_FAILED_STATUSES = {"CREATE_TASK_FAILED", "GENERATE_FAILED"}


def parse_veo_status(data: dict[str, Any]) -> PollResult:
    """Normalize a record-info ``data`` payload."""
    flag = data.get("successFlag")
    status = data.get("status")

    if flag == 1 or status == "SUCCESS":
        url = extract_first(data, VIDEO_URL_PATHS)
        if not url:
            return Failed("No video URL in response")
        return Succeeded(url)

    if flag in _FAILED_FLAGS or status in _FAILED_STATUSES:
        return Failed(data.get("errorMessage") or "Video generation failed")

    return InProgress(data.get("progress"))


class KieVeoProvider(KieProvider):
    label = "KIE.AI Video"

    @property
    def policy(self) -> PollingPolicy:
        settings = get_settings()
        return PollingPolicy(
            interval=settings.KIE_VIDEO_POLL_INTERVAL,
            max_wait=settings.KIE_VIDEO_POLL_TIMEOUT,
        )

    async def submit(self, request: VideoGenerateRequest) -> str:
        images = [img for img in (request.start_image, request.end_image) if img]
        prompt = request.prompt or f"{DEFAULT_PROMPT}, duration {request.duration} seconds"

        body: dict[str, Any] = {
            "prompt": prompt,
            "model": "veo3",
            "aspectRatio": "16:9",
        }
        if images:
            body["generationType"] = (
                "FIRST_AND_LAST_FRAMES_2_VIDEO" if len(images) > 1 else "REFERENCE_2_VIDEO"
            )
            body["imageUrls"] = images
        else:
            body["generationType"] = "TEXT_2_VIDEO"

        data = await self.request("POST", "/api/v1/veo/generate", json=body)
        task_id = data.get("taskId")
        if not task_id:
            raise ProviderAPIError("Failed to submit task: no taskId returned", provider=self.name)

        logger.info("Veo task submitted: %s (%s)", task_id, body["generationType"])
        return task_id

    async def poll(self, external_id: str) -> PollResult:
        data = await self.request("GET", "/api/v1/veo/record-info", params={"taskId": external_id})
        return parse_veo_status(data)
