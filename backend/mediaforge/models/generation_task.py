from __future__ import annotations
"""GenerationTask ORM model: one tracked request for provider-generated media."""

import enum
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mediaforge.database import Base


class TaskKind(str, enum.Enum):
    VIDEO = "video"
    MUSIC = "music"


class TaskStatus(str, enum.Enum):
    """Task lifecycle statuses: forward-only."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# Explicit valid transitions: status -> set of reachable statuses
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING, TaskStatus.FAILED},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),  # terminal state
    TaskStatus.FAILED: set(),  # terminal state
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Same-status writes (progress updates) are always allowed."""
    return current == target or target in VALID_TRANSITIONS[current]


class GenerationTask(Base):
    """Persisted lifecycle record of one generation request."""

    __tablename__ = "generation_tasks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Input references (image locators, lyrics, style ...) as submitted
    inputs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.PENDING.value, index=True
    )
    # Provider-reported percentage, stored as received
    progress: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Catalog asset produced on success
    asset_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    output_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
