import asyncio

import pytest

from mediaforge.models.generation_task import TaskStatus, can_transition
from mediaforge.services.task_store import TaskNotFoundError, TaskTransitionError


def test_create_starts_pending(task_store):
    task = asyncio.run(task_store.create("video", provider="kie", model="veo3", prompt="sunrise"))

    assert task.id.startswith("video_")
    assert task.status == "pending"
    assert task.progress is None
    assert task.completed_at is None


def test_update_persists_forward_transitions(task_store):
    async def scenario():
        task = await task_store.create("music", provider="fal", model="sonauto-v2")
        await task_store.update(task.id, status=TaskStatus.PROCESSING)
        await task_store.update(task.id, progress=40.0)
        await task_store.update(task.id, status="completed", asset_id="asset_music_1", output_ref="/assets/x.mp3")
        return await task_store.get(task.id)

    task = asyncio.run(scenario())

    assert task.status == "completed"
    assert task.progress == 40.0
    assert task.asset_id == "asset_music_1"


@pytest.mark.parametrize(
    "path",
    [
        ["processing", "pending"],
        ["processing", "completed", "processing"],
        ["failed", "completed"],
        ["completed"],
    ],
)
def test_status_never_regresses(task_store, path):
    async def scenario():
        task = await task_store.create("video", provider="kie", model="veo3")
        for status in path[:-1]:
            await task_store.update(task.id, status=status)
        with pytest.raises(TaskTransitionError):
            await task_store.update(task.id, status=path[-1])
        return await task_store.get(task.id)

    task = asyncio.run(scenario())

    assert task.status == (path[-2] if len(path) > 1 else "pending")


def test_transition_table():
    assert can_transition(TaskStatus.PENDING, TaskStatus.FAILED)
    assert can_transition(TaskStatus.PROCESSING, TaskStatus.PROCESSING)
    assert not can_transition(TaskStatus.COMPLETED, TaskStatus.FAILED)
    assert not can_transition(TaskStatus.PENDING, TaskStatus.COMPLETED)


def test_update_unknown_task_returns_none(task_store):
    assert asyncio.run(task_store.update("video_missing", progress=10)) is None


def test_update_rejects_immutable_fields(task_store):
    async def scenario():
        task = await task_store.create("video", provider="kie", model="veo3")
        await task_store.update(task.id, model="kling-o1")

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_require_raises_for_unknown_task(task_store):
    with pytest.raises(TaskNotFoundError):
        asyncio.run(task_store.require("music_nope"))


def test_list_filters_by_kind(task_store):
    async def scenario():
        await task_store.create("video", provider="kie", model="veo3")
        await task_store.create("music", provider="kie", model="suno")
        await task_store.create("video", provider="fal", model="kling-o1")
        return await task_store.list("video"), await task_store.list()

    videos, everything = asyncio.run(scenario())

    assert [t.model for t in videos] == ["veo3", "kling-o1"]
    assert len(everything) == 3


def test_fail_interrupted_only_touches_open_tasks(task_store):
    async def scenario():
        pending = await task_store.create("video", provider="kie", model="veo3")
        running = await task_store.create("music", provider="kie", model="suno")
        done = await task_store.create("music", provider="fal", model="sonauto-v2")
        await task_store.update(running.id, status="processing")
        await task_store.update(done.id, status="processing")
        await task_store.update(done.id, status="completed")
        count = await task_store.fail_interrupted("restarted")
        return count, [await task_store.get(t.id) for t in (pending, running, done)]

    count, (pending, running, done) = asyncio.run(scenario())

    assert count == 2
    assert pending.status == running.status == "failed"
    assert running.error == "restarted"
    assert done.status == "completed"
