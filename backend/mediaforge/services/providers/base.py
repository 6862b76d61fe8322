from __future__ import annotations
"""Shared provider contract, error taxonomy and response helpers."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from mediaforge.schemas.task import ProviderHealth

if TYPE_CHECKING:
    from mediaforge.services.polling import PollingPolicy, PollResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ProviderError(Exception):
    """Base for every provider failure. ``code`` is a stable short tag."""

    code = "API_ERROR"

    def __init__(self, message: str, *, provider: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderConfigError(ProviderError):
    code = "CONFIG_ERROR"


class AuthError(ProviderError):
    code = "AUTH_ERROR"


class CreditsError(ProviderError):
    code = "CREDITS_ERROR"


class RateLimitError(ProviderError):
    """Terminal for this attempt; retrying later is the caller's call."""

    code = "RATE_LIMIT"


class ProviderValidationError(ProviderError):
    code = "VALIDATION_ERROR"


class ProviderAPIError(ProviderError):
    code = "API_ERROR"


class ProviderTaskFailed(ProviderError):
    """The provider accepted the task and later reported it failed."""

    code = "TASK_FAILED"


_STATUS_ERRORS: dict[int, tuple[type[ProviderError], str]] = {
    400: (ProviderValidationError, "Request rejected"),
    401: (AuthError, "Authentication failed"),
    402: (CreditsError, "Insufficient credits"),
    403: (AuthError, "Not authorized"),
    422: (ProviderValidationError, "Request rejected"),
    429: (RateLimitError, "Rate limit exceeded"),
}


def classify_error(provider: str, status: int, detail: str | None = None) -> ProviderError:
    """Map an HTTP status (or provider envelope code) to a typed error."""
    error_cls, default = _STATUS_ERRORS.get(status, (ProviderAPIError, f"{provider} returned {status}"))
    message = f"{error_cls.code}: {detail or default}"
    return error_cls(message, provider=provider, status=status)


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or None
    if isinstance(payload, dict):
        for key in ("msg", "message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def raise_for_status(provider: str, response: httpx.Response) -> None:
    if response.is_success:
        return
    raise classify_error(provider, response.status_code, _error_detail(response))


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

KeyPath = tuple[str | int, ...]


def dig(data: Any, path: KeyPath) -> Any:
    """Follow ``path`` through nested dicts/lists; None when any hop is missing."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


def extract_first(data: Any, candidates: Sequence[KeyPath]) -> Any:
    """Return the value at the first candidate path that is present and non-empty.

    Each adapter declares its candidate list explicitly, in priority order.
    """
    for path in candidates:
        value = dig(data, path)
        if value not in (None, "", [], {}):
            return value
    return None


# ---------------------------------------------------------------------------
# Adapter contracts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderOutput:
    """Canonical terminal result of a synchronous provider call."""

    locator: str
    metadata: dict[str, Any] = field(default_factory=dict)


class _ProviderBase(ABC):
    name: str = "unknown"
    label: str = "Provider"

    def __init__(self, *, http_client: httpx.AsyncClient | None = None) -> None:
        self._http_client = http_client

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    async def check_health(self) -> ProviderHealth:
        if not self.is_configured():
            return ProviderHealth(configured=False, authenticated=False, error=f"{self.label} API key not configured")
        return ProviderHealth(configured=True, authenticated=True)

    def _client(self, timeout: float) -> tuple[httpx.AsyncClient, bool]:
        """Return (client, owned). Owned clients must be closed by the caller."""
        if self._http_client is not None:
            return self._http_client, False
        return httpx.AsyncClient(timeout=timeout), True


class PollingProvider(_ProviderBase):
    """Family A: submit returns an external task id, poll normalizes status."""

    @property
    @abstractmethod
    def policy(self) -> PollingPolicy:
        ...

    @abstractmethod
    async def submit(self, request: Any) -> str:
        """Create the provider task and return its external id."""

    @abstractmethod
    async def poll(self, external_id: str) -> PollResult:
        """Fetch the task status and normalize it."""


class SyncProvider(_ProviderBase):
    """Family B: one call returns the artifact locator or fails."""

    @abstractmethod
    async def generate(self, request: Any) -> ProviderOutput:
        ...
