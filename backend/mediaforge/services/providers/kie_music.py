from __future__ import annotations
"""KIE.AI Suno music provider.

    POST /api/v1/generate                        → data.taskId
    GET  /api/v1/generate/record-info?taskId=... → data.status / data.response.sunoData
"""

import logging
from typing import Any

from mediaforge.config import get_settings
from mediaforge.schemas.task import MusicGenerateRequest
from mediaforge.services.polling import Failed, InProgress, PollingPolicy, PollResult, Succeeded
from mediaforge.services.providers.base import ProviderAPIError, extract_first
from mediaforge.services.providers.kie import KieProvider

logger = logging.getLogger(__name__)

# V3.5 is no longer offered by the API; it falls back to V4.
SUNO_MODEL_VERSIONS = {
    "V3.5": "V4",
    "V4": "V4",
    "V4.5": "V4_5",
    "V5": "V5",
}

DEFAULT_TRACK_DURATION = 30.0

AUDIO_URL_PATHS = (
    ("response", "sunoData", 0, "audioUrl"),
    ("response", "sunoData", 0, "streamAudioUrl"),
    ("response", "audioUrl"),
)
DURATION_PATHS = (
    ("response", "sunoData", 0, "duration"),
    ("response", "duration"),
)
ERROR_PATHS = (
    ("errorMessage",),
    ("response", "errorMessage"),
)

_FAILED_STATUSES = {"FAILED", "CREATE_TASK_FAILED", "GENERATE_FAILED", "SENSITIVE_WORD_ERROR"}


def parse_suno_status(data: dict[str, Any]) -> PollResult:
    status = data.get("status")

    if status == "SUCCESS":
        url = extract_first(data, AUDIO_URL_PATHS)
        if not url:
            return Failed("No audio URL in response")
        duration = extract_first(data, DURATION_PATHS) or DEFAULT_TRACK_DURATION
        return Succeeded(url, {"duration": float(duration)})

    if status in _FAILED_STATUSES:
        return Failed(extract_first(data, ERROR_PATHS) or "Music generation failed")

    # PENDING, TEXT_SUCCESS, FIRST_SUCCESS ... Suno reports no percentage
    return InProgress(None)


class KieSunoProvider(KieProvider):
    label = "KIE.AI Music"

    @property
    def policy(self) -> PollingPolicy:
        settings = get_settings()
        return PollingPolicy(
            interval=settings.KIE_MUSIC_POLL_INTERVAL,
            max_wait=settings.KIE_MUSIC_POLL_TIMEOUT,
        )

    async def submit(self, request: MusicGenerateRequest) -> str:
        body: dict[str, Any] = {
            "model": SUNO_MODEL_VERSIONS.get(request.version, "V4_5"),
            "instrumental": request.instrumental,
            "customMode": True,
            # In custom mode with vocals the prompt carries the lyrics
            "prompt": request.lyrics or request.prompt,
            # Required by the API; completion is observed by polling instead
            "callBackUrl": "https://example.com/callback",
        }
        if request.title:
            body["title"] = request.title
        if request.style:
            body["style"] = request.style
        if request.vocal_gender and not request.instrumental:
            body["vocalGender"] = "m" if request.vocal_gender == "male" else "f"

        data = await self.request("POST", "/api/v1/generate", json=body)
        task_id = data.get("taskId")
        if not task_id:
            raise ProviderAPIError("Failed to submit task: no taskId returned", provider=self.name)

        logger.info("Suno task submitted: %s (model=%s)", task_id, body["model"])
        return task_id

    async def poll(self, external_id: str) -> PollResult:
        data = await self.request("GET", "/api/v1/generate/record-info", params={"taskId": external_id})
        return parse_suno_status(data)
