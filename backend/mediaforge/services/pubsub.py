"""Redis Pub/Sub side channel for live task progress.

The generation service publishes task events; the WebSocket endpoint
subscribes and relays them to connected clients. Publishing is
fire-and-forget: nothing waits for delivery, and an unreachable Redis only
produces a warning in the log.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as aioredis

from mediaforge.config import get_settings

logger = logging.getLogger(__name__)

TASK_CHANNEL = "mediaforge:tasks"

EVENT_PROGRESS = "task_progress"
EVENT_COMPLETED = "task_completed"
EVENT_FAILED = "task_failed"


# ──────── Shared async client ────────

_async_client: aioredis.Redis | None = None


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
    return _async_client


# ──────── Publisher ────────

class ProgressReporter:
    """Best-effort task event publisher.

    ``emit_*`` never raise and never block the caller: the publish runs as
    a background task on the current loop.
    """

    def __init__(self, client: aioredis.Redis | None = None, channel: str = TASK_CHANNEL) -> None:
        self._client = client
        self.channel = channel
        self._pending: set[asyncio.Task[None]] = set()

    def emit_progress(self, task_id: str, kind: str, progress: float | None) -> None:
        self._emit({"type": EVENT_PROGRESS, "task_id": task_id, "kind": kind, "progress": progress})

    def emit_completed(self, task_id: str, kind: str, *, asset_id: str | None, output_ref: str | None) -> None:
        self._emit({
            "type": EVENT_COMPLETED,
            "task_id": task_id,
            "kind": kind,
            "asset_id": asset_id,
            "output_ref": output_ref,
        })

    def emit_failed(self, task_id: str, kind: str, error: str) -> None:
        self._emit({"type": EVENT_FAILED, "task_id": task_id, "kind": kind, "error": error})

    def _emit(self, message: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; dropping %s for %s", message["type"], message["task_id"])
            return
        task = loop.create_task(self._publish(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, message: dict[str, Any]) -> None:
        try:
            client = self._client or _get_async_client()
            await client.publish(self.channel, json.dumps(message))
        except Exception:
            # Best-effort: progress delivery never affects the task
            logger.warning(
                "Failed to publish %s for task %s", message["type"], message["task_id"], exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for in-flight publishes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_reporter: ProgressReporter | None = None


def get_progress_reporter() -> ProgressReporter:
    global _reporter
    if _reporter is None:
        _reporter = ProgressReporter()
    return _reporter


# ──────── Subscriber (used by the WebSocket endpoint) ────────

async def subscribe_tasks() -> aioredis.client.PubSub:
    """Create a PubSub subscribed to the task channel.

    Caller should close the pubsub when done, but NOT the shared client.
    """
    pubsub = _get_async_client().pubsub()
    await pubsub.subscribe(TASK_CHANNEL)
    return pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue
