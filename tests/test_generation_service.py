import asyncio
import base64

import httpx
import pytest

from mediaforge.schemas.task import MusicGenerateRequest, VideoGenerateRequest
from mediaforge.services.generation_service import GenerationService, describe_ref
from mediaforge.services.materializer import AssetMaterializer
from mediaforge.services.polling import Failed, InProgress, PollingPolicy, Succeeded
from mediaforge.services.providers.base import PollingProvider, ProviderOutput, RateLimitError, SyncProvider
from mediaforge.services.providers.kie_video import KieVeoProvider


class ScriptedPollingProvider(PollingProvider):
    name = "kie"
    label = "Scripted"

    def __init__(self, results, interval=0.0, max_wait=5.0):
        super().__init__()
        self.results = list(results)
        self._policy = PollingPolicy(interval=interval, max_wait=max_wait)
        self.submitted = []
        self.polled = []

    @property
    def policy(self):
        return self._policy

    def is_configured(self):
        return True

    async def submit(self, request):
        self.submitted.append(request)
        return "ext-1"

    async def poll(self, external_id):
        self.polled.append(external_id)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class StaticSyncProvider(SyncProvider):
    name = "fal"
    label = "Static"

    def __init__(self, output=None, error=None):
        super().__init__()
        self.output = output
        self.error = error

    def is_configured(self):
        return True

    async def generate(self, request):
        if self.error:
            raise self.error
        return self.output


def download_client(content=b"media-bytes"):
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=content)))


def unreachable_client():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_service(task_store, catalog, reporter, providers, client=None):
    materializer = AssetMaterializer(catalog, http_client=client or download_client())
    return GenerationService(task_store, materializer, reporter, providers=providers)


VIDEO = VideoGenerateRequest(prompt="slow pan", start_image="https://i/1.png", end_image="https://i/2.png")


def test_polling_task_completes_and_registers_asset(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(30), InProgress(60), Succeeded("https://cdn/v.mp4")])
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    task = asyncio.run(service.submit_video(VIDEO, background=False))
    assets = asyncio.run(catalog.list())

    assert task.status == "completed"
    assert task.progress == 60
    assert task.completed_at is not None
    assert len(assets) == 1
    assert task.asset_id == assets[0].id
    assert task.output_ref == assets[0].url
    assert assets[0].estimated_cost == 0.25
    assert assets[0].metadata["externalTaskId"] == "ext-1"
    assert catalog.resolve_url(assets[0].url).read_bytes() == b"media-bytes"
    assert reporter.events == [
        ("progress", task.id, 30),
        ("progress", task.id, 60),
        ("completed", task.id, task.asset_id),
    ]


def test_unreachable_result_fails_task_without_asset(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([Succeeded("https://unreachable.invalid/v.mp4")])
    service = make_service(task_store, catalog, reporter, {"veo3": provider}, client=unreachable_client())

    task = asyncio.run(service.submit_video(VIDEO, background=False))

    assert task.status == "failed"
    assert "Failed to save video" in task.error
    assert task.asset_id is None
    assert asyncio.run(catalog.list()) == []
    assert reporter.events[-1][0] == "failed"


def test_provider_failure_message_reaches_task(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(10), Failed("Content policy violation")])
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    task = asyncio.run(service.submit_video(VIDEO, background=False))

    assert task.status == "failed"
    assert task.error == "Content policy violation"
    assert reporter.events[-1] == ("failed", task.id, "Content policy violation")


def test_polling_timeout_fails_task(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(None)], interval=0.01, max_wait=0.05)
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    task = asyncio.run(service.submit_video(VIDEO, background=False))

    assert task.status == "failed"
    assert task.error.startswith("Timeout waiting for provider")


def test_sync_music_task(task_store, catalog, reporter):
    locator = "data:audio/mpeg;base64," + base64.b64encode(b"ID3").decode()
    provider = StaticSyncProvider(ProviderOutput(locator, {"duration": 30.0, "style": "jazz"}))
    service = make_service(task_store, catalog, reporter, {"sonauto-v2": provider})
    request = MusicGenerateRequest(model="sonauto-v2", prompt="late night", title="Blue", output_format="mp3")

    task = asyncio.run(service.submit_music(request, background=False))
    asset = asyncio.run(catalog.get(task.asset_id))

    assert task.status == "completed"
    assert task.provider == "fal"
    assert asset.type == "music"
    assert asset.filename.endswith(".mp3")
    assert asset.estimated_cost == 0.075
    assert asset.metadata["name"] == "Blue"
    assert asset.metadata["duration"] == 30.0
    assert [e[0] for e in reporter.events] == ["progress", "progress", "completed"]


def test_rate_limit_is_terminal(task_store, catalog, reporter):
    provider = StaticSyncProvider(error=RateLimitError("RATE_LIMIT: slow down", provider="fal", status=429))
    service = make_service(task_store, catalog, reporter, {"kling-o1": provider})

    task = asyncio.run(service.submit_video(VideoGenerateRequest(model="kling-o1", start_image="https://i/1.png"),
                                            background=False))

    assert task.status == "failed"
    assert task.error == "RATE_LIMIT: slow down"


def test_missing_credentials_fail_fast(task_store, catalog, reporter):
    def handler(request):
        raise AssertionError("no request expected")

    provider = KieVeoProvider(api_key="", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    task = asyncio.run(service.submit_video(VIDEO, background=False))

    assert task.status == "failed"
    assert task.error == "KIE_API_KEY not configured"


def test_unknown_model_creates_no_task(task_store, catalog, reporter):
    service = make_service(task_store, catalog, reporter, {})

    with pytest.raises(ValueError, match="Unknown video model"):
        asyncio.run(service.submit_video(VideoGenerateRequest(model="sora")))

    assert asyncio.run(task_store.list()) == []


def test_background_submission_returns_pending(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(50), Succeeded("https://cdn/v.mp4")])
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    async def scenario():
        accepted = await service.submit_video(VIDEO)
        await service.drain()
        return accepted, await task_store.get(accepted.id)

    accepted, final = asyncio.run(scenario())

    assert accepted.status == "pending"
    assert final.status == "completed"


def test_cancel_stops_polling_task(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(5)], interval=0.01, max_wait=30)
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    async def scenario():
        accepted = await service.submit_video(VIDEO)
        while not provider.polled:
            await asyncio.sleep(0.01)
        cancelled = service.cancel(accepted.id)
        await service.drain()
        return cancelled, await task_store.get(accepted.id)

    cancelled, final = asyncio.run(scenario())

    assert cancelled is True
    assert final.status == "failed"
    assert final.error == "Cancelled by request"
    assert service.cancel(final.id) is False


def test_task_inputs_do_not_store_embedded_payloads():
    data_uri = "data:image/png;base64," + "A" * 1000

    assert describe_ref(data_uri) == "data:image/png;base64,<1022 chars>"
    assert describe_ref("https://i/1.png") == "https://i/1.png"
    assert describe_ref(None) is None


def test_health_is_reported_per_backend(task_store, catalog, reporter):
    service = make_service(task_store, catalog, reporter, {
        "veo3": ScriptedPollingProvider([]),
        "suno": ScriptedPollingProvider([]),
        "kling-o1": StaticSyncProvider(),
        "wan-flf2v": StaticSyncProvider(),
        "sonauto-v2": StaticSyncProvider(),
    })

    health = asyncio.run(service.check_health())

    assert set(health) == {"kie", "fal"}
    assert all(h.configured for h in health.values())


def test_suno_output_is_stored_as_mp3_whatever_format_was_requested(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([Succeeded("https://cdn/track.mp3", {"duration": 120.0})])
    service = make_service(task_store, catalog, reporter, {"suno": provider})
    request = MusicGenerateRequest(model="suno", prompt="x", output_format="wav")

    task = asyncio.run(service.submit_music(request, background=False))
    asset = asyncio.run(catalog.get(task.asset_id))

    assert task.status == "completed"
    assert asset.filename.endswith(".mp3")
    assert asset.metadata["format"] == "mp3"


def test_sonauto_honours_requested_format(task_store, catalog, reporter):
    locator = "data:audio/wav;base64," + base64.b64encode(b"RIFF").decode()
    provider = StaticSyncProvider(ProviderOutput(locator, {"duration": 30.0}))
    service = make_service(task_store, catalog, reporter, {"sonauto-v2": provider})
    request = MusicGenerateRequest(model="sonauto-v2", prompt="x", output_format="wav")

    task = asyncio.run(service.submit_music(request, background=False))
    asset = asyncio.run(catalog.get(task.asset_id))

    assert asset.filename.endswith(".wav")
    assert asset.metadata["format"] == "wav"


def test_cancel_all_releases_running_polls(task_store, catalog, reporter):
    provider = ScriptedPollingProvider([InProgress(5)], interval=0.01, max_wait=180)
    service = make_service(task_store, catalog, reporter, {"veo3": provider})

    async def scenario():
        first = await service.submit_video(VIDEO)
        second = await service.submit_video(VIDEO)
        while len(provider.polled) < 2:
            await asyncio.sleep(0.01)
        signalled = service.cancel_all()
        await asyncio.wait_for(service.drain(), timeout=5)
        return signalled, [await task_store.get(t.id) for t in (first, second)]

    signalled, tasks = asyncio.run(scenario())

    assert signalled == 2
    assert [t.error for t in tasks] == ["Cancelled by request", "Cancelled by request"]
