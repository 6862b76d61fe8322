from __future__ import annotations
"""KIE.AI transport shared by the Veo and Suno adapters.

Every KIE response is wrapped in ``{"code": 200, "msg": "...", "data": ...}``;
a non-200 ``code`` is classified exactly like an HTTP status.
"""

import logging
from typing import Any

import httpx

from mediaforge.config import get_settings
from mediaforge.schemas.task import ProviderHealth
from mediaforge.services.providers.base import (
    PollingProvider,
    ProviderAPIError,
    ProviderConfigError,
    ProviderError,
    classify_error,
    raise_for_status,
)

logger = logging.getLogger(__name__)


class KieProvider(PollingProvider):
    name = "kie"
    label = "KIE.AI"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(http_client=http_client)
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.kie_api_key
        self._base_url = (base_url or settings.KIE_BASE_URL).rstrip("/")
        self._timeout = settings.HTTP_TIMEOUT

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Authenticated call; returns the envelope's ``data`` member."""
        if not self._api_key:
            raise ProviderConfigError("KIE_API_KEY not configured", provider=self.name)

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("[%s] %s %s body=%s", self.label, method, endpoint, json)

        client, owned = self._client(self._timeout)
        try:
            response = await client.request(
                method, f"{self._base_url}{endpoint}", json=json, params=params, headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise ProviderAPIError(f"TIMEOUT: {self.label} request timed out", provider=self.name) from exc
        except httpx.HTTPError as exc:
            raise ProviderAPIError(f"{self.label} request failed: {exc}", provider=self.name) from exc
        finally:
            if owned:
                await client.aclose()

        raise_for_status(self.name, response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderAPIError(f"{self.label} returned invalid JSON", provider=self.name) from exc

        logger.debug("[%s] response %s", self.label, payload)

        code = payload.get("code")
        if code != 200:
            raise classify_error(self.name, int(code or 500), payload.get("msg"))
        return payload.get("data") or {}

    async def check_health(self) -> ProviderHealth:
        if not self.is_configured():
            return ProviderHealth(configured=False, authenticated=False, error="KIE_API_KEY not configured")
        try:
            # Credit lookup is the cheapest authenticated call
            await self.request("GET", "/api/v1/chat/credit")
        except ProviderError as exc:
            return ProviderHealth(configured=True, authenticated=False, error=str(exc))
        return ProviderHealth(configured=True, authenticated=True)
