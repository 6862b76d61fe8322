"""Video/music provider adapters.

Two families:
  Polling providers (KIE):  POST create task → poll status → result locator
  Synchronous providers (FAL): one request/response returning the locator

Adapters only talk to the provider; downloading and cataloguing the
result is the materializer's job.
"""

from mediaforge.services.providers.base import (
    AuthError,
    CreditsError,
    PollingProvider,
    ProviderAPIError,
    ProviderConfigError,
    ProviderError,
    ProviderOutput,
    ProviderTaskFailed,
    ProviderValidationError,
    RateLimitError,
    SyncProvider,
)

__all__ = [
    "AuthError",
    "CreditsError",
    "PollingProvider",
    "ProviderAPIError",
    "ProviderConfigError",
    "ProviderError",
    "ProviderOutput",
    "ProviderTaskFailed",
    "ProviderValidationError",
    "RateLimitError",
    "SyncProvider",
]
