from __future__ import annotations
"""FAL.AI synchronous transport.

``POST {FAL_BASE_URL}/{endpoint}`` blocks until the model finishes and
returns the result document, so these providers never go through the
polling controller.
"""

import logging
from typing import Any

import httpx

from mediaforge.config import get_settings
from mediaforge.services.providers.base import (
    ProviderAPIError,
    ProviderConfigError,
    SyncProvider,
    raise_for_status,
)

logger = logging.getLogger(__name__)


class FalProvider(SyncProvider):
    name = "fal"
    label = "FAL.AI"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(http_client=http_client)
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.fal_api_key
        self._base_url = (base_url or settings.FAL_BASE_URL).rstrip("/")
        self._timeout = settings.FAL_TIMEOUT

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def run(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            raise ProviderConfigError("FAL_API_KEY not configured", provider=self.name)

        headers = {
            "Authorization": f"Key {self._api_key}",
            "Content-Type": "application/json",
        }
        logger.info("[%s] running %s", self.label, endpoint)
        logger.debug("[%s] input %s", self.label, payload)

        client, owned = self._client(self._timeout)
        try:
            response = await client.post(f"{self._base_url}/{endpoint}", json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderAPIError(f"TIMEOUT: {self.label} request timed out", provider=self.name) from exc
        except httpx.HTTPError as exc:
            raise ProviderAPIError(f"{self.label} request failed: {exc}", provider=self.name) from exc
        finally:
            if owned:
                await client.aclose()

        raise_for_status(self.name, response)
        try:
            result = response.json()
        except ValueError as exc:
            raise ProviderAPIError(f"{self.label} returned invalid JSON", provider=self.name) from exc

        logger.debug("[%s] raw response %s", self.label, result)
        return result
