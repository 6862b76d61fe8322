from __future__ import annotations
"""TaskStore: persisted lifecycle records for generation requests.

Status changes are validated against ``VALID_TRANSITIONS`` so a task can
never move backwards (processing → pending) or leave a terminal state.
"""

import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediaforge.models.generation_task import (
    GenerationTask,
    TaskKind,
    TaskStatus,
    can_transition,
)
from mediaforge.schemas.task import TaskRead

logger = logging.getLogger(__name__)

# Columns callers may change through update(); id/kind/created_at are fixed.
_UPDATABLE_FIELDS = frozenset({
    "status", "progress", "error", "asset_id", "output_ref", "completed_at",
})


class TaskNotFoundError(LookupError):
    """Raised by callers that require a task to exist."""


class TaskTransitionError(ValueError):
    """Raised when an update would move a task's status backwards."""

    def __init__(self, task_id: str, current: str, target: str) -> None:
        super().__init__(f"Task {task_id}: invalid status transition {current} -> {target}")
        self.task_id = task_id
        self.current = current
        self.target = target


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_task_id(kind: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{kind}_{int(time.time() * 1000)}_{suffix}"


class TaskStore:
    """CRUD over ``generation_tasks`` with monotonic status enforcement."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        kind: TaskKind | str,
        *,
        provider: str,
        model: str,
        prompt: str | None = None,
        inputs: dict[str, Any] | None = None,
    ) -> TaskRead:
        kind_value = TaskKind(kind).value
        task = GenerationTask(
            id=generate_task_id(kind_value),
            kind=kind_value,
            provider=provider,
            model=model,
            prompt=prompt,
            inputs=dict(inputs or {}),
            status=TaskStatus.PENDING.value,
            created_at=utcnow(),
        )
        async with self._session_factory() as session:
            session.add(task)
            await session.commit()
            record = TaskRead.model_validate(task)

        logger.info("Created %s task %s (provider=%s, model=%s)", kind_value, record.id, provider, model)
        return record

    async def get(self, task_id: str) -> TaskRead | None:
        async with self._session_factory() as session:
            task = await session.get(GenerationTask, task_id)
            return TaskRead.model_validate(task) if task else None

    async def require(self, task_id: str) -> TaskRead:
        record = await self.get(task_id)
        if record is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return record

    async def list(self, kind: TaskKind | str | None = None) -> list[TaskRead]:
        """All tasks, oldest first."""
        query = select(GenerationTask).order_by(GenerationTask.created_at, GenerationTask.id)
        if kind is not None:
            query = query.where(GenerationTask.kind == TaskKind(kind).value)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [TaskRead.model_validate(t) for t in result.scalars().all()]

    async def update(self, task_id: str, **changes: Any) -> TaskRead | None:
        """Merge ``changes`` into the task and persist it.

        Returns None for an unknown id; never creates a task implicitly.
        Raises TaskTransitionError for a status regression.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {sorted(unknown)}")

        if "status" in changes:
            changes["status"] = TaskStatus(changes["status"]).value

        async with self._session_factory() as session:
            # Row lock where the backend supports it; SQLite serializes writers anyway.
            task = await session.get(GenerationTask, task_id, with_for_update=True)
            if task is None:
                logger.warning("Update for unknown task %s ignored", task_id)
                return None

            target = changes.get("status")
            if target is not None and not can_transition(TaskStatus(task.status), TaskStatus(target)):
                raise TaskTransitionError(task_id, task.status, target)

            for field, value in changes.items():
                setattr(task, field, value)
            await session.commit()
            record = TaskRead.model_validate(task)

        if "status" in changes:
            logger.info("Task %s -> %s", task_id, record.status)
        return record

    async def fail_interrupted(self, message: str = "Interrupted by service restart") -> int:
        """Mark tasks left pending/processing by a restart as failed.

        Polling loops do not survive a restart, so these tasks would
        otherwise stay non-terminal forever.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationTask)
                .where(GenerationTask.status.in_(
                    [TaskStatus.PENDING.value, TaskStatus.PROCESSING.value]
                ))
                .values(status=TaskStatus.FAILED.value, error=message, completed_at=utcnow())
            )
            await session.commit()
        count = result.rowcount or 0
        if count:
            logger.warning("Startup recovery: marked %d interrupted task(s) as failed", count)
        return count


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_task_store: TaskStore | None = None


def get_task_store() -> TaskStore:
    """Return the TaskStore bound to the application database."""
    global _task_store
    if _task_store is None:
        from mediaforge.database import async_session_factory
        _task_store = TaskStore(async_session_factory)
    return _task_store


def reset_task_store() -> None:
    """Reset singleton (for testing)."""
    global _task_store
    _task_store = None
