from __future__ import annotations
"""Generation service: drives one task from acceptance to a terminal state.

    create task (pending)
      → processing
      → polling provider: submit → PollingController(poll, progress)
        sync provider:    one generate() call
      → AssetMaterializer (download/decode, write, register)
      → completed | failed

Every failure ends as a ``failed`` task carrying the error message; the
coroutine itself never raises for a provider, polling or materialization
failure.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from mediaforge.models.generation_task import TaskKind, TaskStatus
from mediaforge.schemas.task import MusicGenerateRequest, ProviderHealth, TaskRead, VideoGenerateRequest
from mediaforge.services.materializer import AssetMaterializer
from mediaforge.services.model_registry import FAMILY_POLLING, MODEL_REGISTRY, ModelRegistry, ModelSpec
from mediaforge.services.polling import PollingController, PollCancelledError
from mediaforge.services.providers.base import PollingProvider, ProviderOutput, SyncProvider
from mediaforge.services.pubsub import ProgressReporter
from mediaforge.services.task_store import TaskStore, TaskTransitionError, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSubmission:
    """Correlates a task with the provider's id for the duration of one run."""

    task_id: str
    provider: str
    external_id: str


def describe_ref(ref: str | None) -> str | None:
    """Keep task inputs small: embedded payloads are recorded by size only."""
    if ref and ref.startswith("data:"):
        header = ref.split(",", 1)[0]
        return f"{header},<{len(ref)} chars>"
    return ref


class GenerationService:
    def __init__(
        self,
        task_store: TaskStore,
        materializer: AssetMaterializer,
        reporter: ProgressReporter,
        *,
        registry: ModelRegistry = MODEL_REGISTRY,
        providers: dict[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.task_store = task_store
        self.materializer = materializer
        self.reporter = reporter
        self.registry = registry
        self._providers: dict[str, Any] = dict(providers or {})
        self._http_client = http_client
        self._active: dict[str, ProviderSubmission | None] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------ providers

    def provider_for(self, spec: ModelSpec) -> PollingProvider | SyncProvider:
        provider = self._providers.get(spec.key)
        if provider is None:
            provider = self.registry.build_provider(spec, http_client=self._http_client)
            self._providers[spec.key] = provider
        return provider

    async def check_health(self) -> dict[str, ProviderHealth]:
        """One health entry per provider backend (``kie``, ``fal``)."""
        report: dict[str, ProviderHealth] = {}
        for spec in self.registry.list_models():
            if spec.provider not in report:
                report[spec.provider] = await self.provider_for(spec).check_health()
        return report

    # ------------------------------------------------------------- requests

    async def submit_video(self, request: VideoGenerateRequest, *, background: bool = True) -> TaskRead:
        spec = self.registry.get(TaskKind.VIDEO, request.model)
        inputs = {
            "duration": request.duration,
            "start_image": describe_ref(request.start_image),
            "end_image": describe_ref(request.end_image),
        }
        return await self._accept(spec, request, request.prompt, inputs, background)

    async def submit_music(self, request: MusicGenerateRequest, *, background: bool = True) -> TaskRead:
        spec = self.registry.get(TaskKind.MUSIC, request.model)
        inputs = request.model_dump(exclude={"model", "prompt"}, exclude_none=True)
        return await self._accept(spec, request, request.prompt, inputs, background)

    async def _accept(
        self,
        spec: ModelSpec,
        request: Any,
        prompt: str | None,
        inputs: dict[str, Any],
        background: bool,
    ) -> TaskRead:
        task = await self.task_store.create(
            spec.kind, provider=spec.provider, model=spec.key, prompt=prompt, inputs=inputs,
        )
        if background:
            job = asyncio.create_task(self.run_task(task.id, spec, request))
            self._background.add(job)
            job.add_done_callback(self._background.discard)
            return task
        return await self.run_task(task.id, spec, request) or task

    def cancel(self, task_id: str) -> bool:
        """Ask a running polling loop to stop at its next iteration."""
        event = self._cancel_events.get(task_id)
        if event is None:
            return False
        event.set()
        return True

    def cancel_all(self) -> int:
        """Stop every running polling loop; returns how many were signalled."""
        for event in self._cancel_events.values():
            event.set()
        return len(self._cancel_events)

    # ------------------------------------------------------------ lifecycle

    async def run_task(self, task_id: str, spec: ModelSpec, request: Any) -> TaskRead | None:
        if task_id in self._active:
            logger.warning("Task %s already has an active submission; ignoring", task_id)
            return await self.task_store.get(task_id)

        self._active[task_id] = None
        cancel = asyncio.Event()
        if spec.family == FAMILY_POLLING:
            self._cancel_events[task_id] = cancel
        kind = spec.kind.value
        started = time.monotonic()

        try:
            await self._set_status(task_id, TaskStatus.PROCESSING)
            provider = self.provider_for(spec)

            if spec.family == FAMILY_POLLING:
                output = await self._run_polling(task_id, kind, provider, request, cancel)
            else:
                output = await self._run_sync(task_id, kind, provider, request)

            asset = await self.materializer.materialize(
                output.locator,
                asset_type=kind,
                provider=spec.provider,
                model=spec.key,
                prompt=getattr(request, "prompt", None) or "",
                extension=self._extension(spec, request),
                estimated_cost=spec.estimated_cost,
                generation_time_ms=int((time.monotonic() - started) * 1000),
                metadata=self._asset_metadata(task_id, spec, request, output),
            )

            record = await self.task_store.update(
                task_id,
                status=TaskStatus.COMPLETED,
                asset_id=asset.id,
                output_ref=asset.url,
                completed_at=utcnow(),
            )
            self.reporter.emit_completed(task_id, kind, asset_id=asset.id, output_ref=asset.url)
            logger.info("Task %s completed in %.1fs: %s", task_id, time.monotonic() - started, asset.url)
            return record

        except PollCancelledError:
            return await self._fail(task_id, kind, "Cancelled by request")
        except Exception as exc:
            logger.error("Task %s failed: %s", task_id, exc)
            return await self._fail(task_id, kind, str(exc) or exc.__class__.__name__)
        finally:
            self._active.pop(task_id, None)
            self._cancel_events.pop(task_id, None)

    async def _run_polling(
        self,
        task_id: str,
        kind: str,
        provider: PollingProvider,
        request: Any,
        cancel: asyncio.Event,
    ) -> ProviderOutput:
        external_id = await provider.submit(request)
        submission = ProviderSubmission(task_id, provider.name, external_id)
        self._active[task_id] = submission

        async def on_progress(progress: float | None) -> None:
            if progress is None:
                return
            await self.task_store.update(task_id, progress=progress)
            self.reporter.emit_progress(task_id, kind, progress)

        controller = PollingController(
            provider.policy,
            on_progress=on_progress,
            label=f"{provider.label} task {external_id}",
        )
        result = await controller.run(lambda: provider.poll(submission.external_id), cancel=cancel)
        return ProviderOutput(result.locator, {**result.metadata, "externalTaskId": external_id})

    async def _run_sync(self, task_id: str, kind: str, provider: SyncProvider, request: Any) -> ProviderOutput:
        self.reporter.emit_progress(task_id, kind, 10)
        output = await provider.generate(request)
        self.reporter.emit_progress(task_id, kind, 80)
        return output

    async def _set_status(self, task_id: str, status: TaskStatus) -> None:
        record = await self.task_store.update(task_id, status=status)
        if record is None:
            raise LookupError(f"Task {task_id} not found")

    async def _fail(self, task_id: str, kind: str, message: str) -> TaskRead | None:
        try:
            record = await self.task_store.update(
                task_id, status=TaskStatus.FAILED, error=message, completed_at=utcnow(),
            )
        except TaskTransitionError:
            logger.warning("Task %s already terminal; failure not recorded: %s", task_id, message)
            return await self.task_store.get(task_id)
        self.reporter.emit_failed(task_id, kind, message)
        return record

    # -------------------------------------------------------------- helpers

    @staticmethod
    def _extension(spec: ModelSpec, request: Any) -> str:
        if spec.honours_output_format:
            return getattr(request, "output_format", None) or spec.extension
        return spec.extension

    @staticmethod
    def _asset_metadata(task_id: str, spec: ModelSpec, request: Any, output: ProviderOutput) -> dict[str, Any]:
        metadata: dict[str, Any] = {"taskId": task_id}
        if spec.kind == TaskKind.VIDEO:
            metadata.update({"duration": request.duration, "fps": 24, "animationPrompt": request.prompt})
        else:
            metadata.update({
                "name": request.title or f"{spec.name} Track",
                "duration": output.metadata.get("duration"),
                "lyrics": request.lyrics,
                "style": request.style,
                "format": GenerationService._extension(spec, request),
            })
        for key, value in output.metadata.items():
            metadata.setdefault(key, value)
        return {k: v for k, v in metadata.items() if v is not None}

    async def drain(self) -> None:
        """Wait for background runs to finish (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_generation_service: GenerationService | None = None


def get_generation_service() -> GenerationService:
    global _generation_service
    if _generation_service is None:
        from mediaforge.services.catalog import get_catalog
        from mediaforge.services.pubsub import get_progress_reporter
        from mediaforge.services.task_store import get_task_store

        _generation_service = GenerationService(
            get_task_store(),
            AssetMaterializer(get_catalog()),
            get_progress_reporter(),
        )
    return _generation_service


def reset_generation_service() -> None:
    """Reset singleton (for testing)."""
    global _generation_service
    _generation_service = None
