from __future__ import annotations
"""FAL.AI SonAuto v2 text-to-music."""

import logging
from typing import Any

from mediaforge.schemas.task import MusicGenerateRequest
from mediaforge.services.providers.base import ProviderAPIError, ProviderOutput, extract_first
from mediaforge.services.providers.fal import FalProvider

logger = logging.getLogger(__name__)

SONAUTO_ENDPOINT = "sonauto/v2/text-to-music"
SONAUTO_TRACK_DURATION = 30.0  # SonAuto does not report a length

AUDIO_URL_PATHS = (
    ("audio", 0, "url"),
    ("data", "audio", 0, "url"),
)


def build_sonauto_input(request: MusicGenerateRequest) -> dict[str, Any]:
    """SonAuto rejects prompt + tags + lyrics_prompt together.

    With lyrics: prompt + lyrics_prompt. Without: prompt + tags.
    """
    payload: dict[str, Any] = {
        "prompt": request.prompt,
        "output_format": request.output_format,
    }
    if request.lyrics and not request.instrumental:
        payload["lyrics_prompt"] = request.lyrics
    elif request.tags:
        payload["tags"] = list(request.tags)
    elif request.style:
        payload["tags"] = [s.strip() for s in request.style.split(",") if s.strip()]

    if request.bpm is not None and request.bpm != "auto":
        payload["bpm"] = request.bpm
    return payload


class FalSonautoProvider(FalProvider):
    label = "FAL.AI Music"

    async def generate(self, request: MusicGenerateRequest) -> ProviderOutput:
        result = await self.run(SONAUTO_ENDPOINT, build_sonauto_input(request))

        url = extract_first(result, AUDIO_URL_PATHS)
        if not url:
            logger.error("[%s] no audio URL; keys=%s", self.label, list(result))
            raise ProviderAPIError("No audio URL in response", provider=self.name)

        data = result.get("data") or result
        return ProviderOutput(url, {
            "duration": SONAUTO_TRACK_DURATION,
            "lyrics": data.get("lyrics") or request.lyrics,
            "style": request.style or ", ".join(data.get("tags") or []),
        })
