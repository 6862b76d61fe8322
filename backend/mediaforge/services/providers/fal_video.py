from __future__ import annotations
"""FAL.AI video models: Kling O1 (image-to-video) and Wan 2.1 FLF2V."""

import logging
from typing import Any

from mediaforge.schemas.task import VideoGenerateRequest
from mediaforge.services.providers.base import (
    ProviderAPIError,
    ProviderOutput,
    ProviderValidationError,
    extract_first,
)
from mediaforge.services.providers.fal import FalProvider

logger = logging.getLogger(__name__)

FAL_VIDEO_ENDPOINTS = {
    "kling-o1": "fal-ai/kling-video/o1/image-to-video",
    "wan-flf2v": "fal-ai/wan-flf2v",
}

VIDEO_URL_PATHS = (
    ("video", "url"),
    ("data", "video", "url"),
    ("url",),
)


class FalVideoProvider(FalProvider):
    label = "FAL.AI Video"

    async def generate(self, request: VideoGenerateRequest) -> ProviderOutput:
        endpoint = FAL_VIDEO_ENDPOINTS.get(request.model)
        if endpoint is None:
            raise ProviderValidationError(f"Unknown FAL model: {request.model}", provider=self.name)
        if not request.start_image:
            raise ProviderValidationError("A start image is required", provider=self.name)

        prompt = request.prompt or "Smooth cinematic transition with natural motion"
        payload: dict[str, Any] = {
            "prompt": prompt,
            "start_image_url": request.start_image,
        }
        if request.model == "kling-o1":
            payload["duration"] = "10" if request.duration == 10 else "5"
        else:
            if not request.end_image:
                raise ProviderValidationError("wan-flf2v needs an end image", provider=self.name)
            payload["end_image_url"] = request.end_image

        result = await self.run(endpoint, payload)

        url = extract_first(result, VIDEO_URL_PATHS)
        if not url:
            logger.error("[%s] no video URL; keys=%s", self.label, list(result))
            raise ProviderAPIError("No video URL in response", provider=self.name)
        return ProviderOutput(url, {"seed": result.get("seed")})
