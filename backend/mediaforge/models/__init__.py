"""ORM model package: registers all models with Base.metadata."""

from mediaforge.models.generation_task import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    GenerationTask,
    TaskKind,
    TaskStatus,
    can_transition,
)

__all__ = [
    "GenerationTask",
    "TaskKind",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "can_transition",
]
