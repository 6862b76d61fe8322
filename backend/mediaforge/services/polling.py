from __future__ import annotations
"""Provider-agnostic bounded-wait polling loop.

Adapters normalize their status payloads into one of three results:

    Succeeded(locator)   → loop returns
    Failed(message)      → loop raises ProviderTaskFailed
    InProgress(percent)  → percent forwarded as-is, sleep, poll again

Percentages are passed through exactly as the provider reports them,
including when they go backwards.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union

from mediaforge.services.providers.base import ProviderTaskFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Succeeded:
    locator: str  # remote URL or data: URI of the produced media
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class InProgress:
    progress: float | None = None


PollResult = Union[Succeeded, Failed, InProgress]


@dataclass(frozen=True)
class PollingPolicy:
    """Interval and total wait budget, both in seconds."""

    interval: float
    max_wait: float


class PollTimeoutError(TimeoutError):
    def __init__(self, max_wait: float, attempts: int) -> None:
        super().__init__(f"Timeout waiting for provider after {max_wait:g}s ({attempts} polls)")
        self.max_wait = max_wait
        self.attempts = attempts


class PollCancelledError(Exception):
    """The caller set the cancellation event while the loop was running."""


ProgressCallback = Callable[[float | None], Union[Awaitable[None], None]]


class PollingController:
    """Drive ``poll`` until a terminal result or the wait budget runs out.

    The loop suspends only in ``sleep``; the clock and sleep are injectable
    so tests can run the loop on virtual time.
    """

    def __init__(
        self,
        policy: PollingPolicy,
        *,
        on_progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "task",
    ) -> None:
        self.policy = policy
        self._on_progress = on_progress
        self._clock = clock
        self._sleep = sleep
        self._label = label
        self.attempts = 0

    async def run(
        self,
        poll: Callable[[], Awaitable[PollResult]],
        *,
        cancel: asyncio.Event | None = None,
    ) -> Succeeded:
        start = self._clock()
        self.attempts = 0

        while True:
            self._check_cancelled(cancel)

            result = await poll()
            self.attempts += 1

            if isinstance(result, Succeeded):
                logger.info("%s succeeded after %d poll(s)", self._label, self.attempts)
                return result

            if isinstance(result, Failed):
                logger.info("%s failed after %d poll(s): %s", self._label, self.attempts, result.message)
                raise ProviderTaskFailed(result.message)

            logger.debug("%s poll #%d: progress=%s", self._label, self.attempts, result.progress)
            await self._report(result.progress)

            await self._sleep(self.policy.interval)

            elapsed = self._clock() - start
            if elapsed >= self.policy.max_wait:
                logger.warning(
                    "%s timed out after %.1fs (%d polls)", self._label, elapsed, self.attempts,
                )
                raise PollTimeoutError(self.policy.max_wait, self.attempts)

    async def _report(self, progress: float | None) -> None:
        if self._on_progress is None:
            return
        outcome = self._on_progress(progress)
        if inspect.isawaitable(outcome):
            await outcome

    def _check_cancelled(self, cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            logger.info("%s polling cancelled after %d poll(s)", self._label, self.attempts)
            raise PollCancelledError(f"{self._label} cancelled")
