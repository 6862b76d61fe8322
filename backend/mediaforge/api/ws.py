"""WebSocket endpoint for real-time task progress.

Relays events from the Redis task channel to connected clients.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/tasks")
async def ws_tasks(ws: WebSocket):
    """Relay task_progress / task_completed / task_failed events.

    Clients may send "ping" to receive {"type": "pong"}.
    """
    await ws.accept()
    logger.info("WS connected: tasks")

    pubsub = None
    listener_task = None
    try:
        from mediaforge.services.pubsub import subscribe_tasks

        pubsub = await subscribe_tasks()
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: tasks")
    except Exception as exc:
        logger.warning("WS error: %s", exc)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.close()


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket) -> None:
    """Background task: read from Redis Pub/Sub and forward to the client."""
    from mediaforge.services.pubsub import listen_pubsub

    try:
        async for message in listen_pubsub(pubsub):
            await ws.send_json(message)
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay stopped: %s", exc)
