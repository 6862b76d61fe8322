"""Generation task lookup and cancellation."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from mediaforge.models.generation_task import TaskKind
from mediaforge.schemas.task import TaskRead
from mediaforge.services.generation_service import get_generation_service
from mediaforge.services.task_store import get_task_store

router = APIRouter()


@router.get("", response_model=list[TaskRead])
async def list_tasks(kind: TaskKind | None = None):
    return await get_task_store().list(kind)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: str):
    task = await get_task_store().get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.post("/{task_id}/cancel")
async def cancel_task(task_id: str):
    """Stop a task that is still polling its provider."""
    task = await get_task_store().get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if not get_generation_service().cancel(task_id):
        raise HTTPException(status_code=409, detail=f"Task is not polling (status: {task.status})")
    return {"task_id": task_id, "cancelling": True}
