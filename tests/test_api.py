import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mediaforge.api.router import api_router
from mediaforge.api.ws import router as ws_router
from mediaforge.schemas.asset import Asset
from mediaforge.schemas.task import ProviderHealth
from mediaforge.services import assembly_service, generation_service, task_store as task_store_module
from mediaforge.services import catalog as catalog_module
from mediaforge.services.assembly_service import AssemblyService
from mediaforge.services.generation_service import GenerationService
from mediaforge.services.materializer import AssetMaterializer


class IdleProvider:
    """Accepts work but never finishes it; enough for request-level checks."""

    name = "kie"

    def is_configured(self):
        return False

    async def check_health(self):
        return ProviderHealth(configured=False, authenticated=False, error="KIE_API_KEY not configured")


@pytest.fixture
def client(task_store, catalog, reporter, monkeypatch):
    providers = {key: IdleProvider() for key in ("veo3", "kling-o1", "wan-flf2v", "suno", "sonauto-v2")}
    service = GenerationService(task_store, AssetMaterializer(catalog), reporter, providers=providers)
    monkeypatch.setattr(task_store_module, "_task_store", task_store)
    monkeypatch.setattr(catalog_module, "_catalog", catalog)
    monkeypatch.setattr(generation_service, "_generation_service", service)
    monkeypatch.setattr(assembly_service, "_assembly_service", AssemblyService(catalog))

    app = FastAPI()
    app.include_router(api_router)
    app.include_router(ws_router)
    return TestClient(app)


def test_routes_registered(client):
    paths = {route.path for route in client.app.routes}

    assert "/api/video/health" in paths
    assert "/api/video/generate" in paths
    assert "/api/music/generate" in paths
    assert "/api/tasks" in paths
    assert "/api/tasks/{task_id}" in paths
    assert "/api/story/assemble" in paths
    assert "/api/assets/{asset_id}" in paths
    assert "/ws/tasks" in paths


def test_health(client):
    response = client.get("/api/video/health")

    assert response.status_code == 200
    assert response.json()["kie"]["configured"] is False
    assert set(response.json()) == {"kie", "fal"}


def test_unknown_model_is_bad_request(client):
    response = client.post("/api/video/generate", json={"model": "sora", "prompt": "x"})

    assert response.status_code == 400
    assert "Unknown video model" in response.json()["detail"]


def test_music_request_is_validated(client):
    response = client.post("/api/music/generate", json={"model": "suno", "prompt": "x", "output_format": "exe"})

    assert response.status_code == 422


def test_unknown_task_is_404(client):
    assert client.get("/api/tasks/video_missing").status_code == 404
    assert client.post("/api/tasks/video_missing/cancel").status_code == 404


def test_listed_tasks(client, task_store):
    import asyncio

    created = asyncio.run(task_store.create("music", provider="kie", model="suno", prompt="lofi"))

    listed = client.get("/api/tasks", params={"kind": "music"}).json()
    fetched = client.get(f"/api/tasks/{created.id}").json()

    assert [t["id"] for t in listed] == [created.id]
    assert fetched["status"] == "pending"
    assert fetched["prompt"] == "lofi"


def test_assembly_validation_error_is_bad_request(client):
    response = client.post("/api/story/assemble", json={
        "videos": ["/assets/catalog/videos/none.mp4"],
        "music": {"file": "/assets/catalog/music/none.mp3"},
    })

    assert response.status_code == 400
    assert "Video not found" in response.json()["detail"]


def test_asset_catalog_endpoints(client, catalog):
    import asyncio
    from datetime import datetime, timezone

    (catalog.subdir_path("music") / "track.mp3").write_bytes(b"x")
    asyncio.run(catalog.add(Asset(
        id="asset_music_1",
        type="music",
        filename="track.mp3",
        url=catalog.url_for("music", "track.mp3"),
        provider="kie",
        model="suno",
        created_at=datetime.now(timezone.utc),
        metadata={"duration": 30.0},
    )))

    listed = client.get("/api/assets", params={"type": "music"}).json()
    assert [a["id"] for a in listed] == ["asset_music_1"]
    assert listed[0]["estimatedCost"] == 0.0

    patched = client.patch("/api/assets/asset_music_1", json={"tags": ["bed"], "metadata": {"bpm": 90}}).json()
    assert patched["tags"] == ["bed"]
    assert patched["metadata"] == {"duration": 30.0, "bpm": 90}

    assert client.delete("/api/assets/asset_music_1").status_code == 200
    assert client.get("/api/assets/asset_music_1").status_code == 404
    assert not (catalog.subdir_path("music") / "track.mp3").exists()


def test_asset_listing_accepts_dates_without_timezone(client, catalog):
    import asyncio
    from datetime import datetime, timezone

    (catalog.subdir_path("videos") / "clip.mp4").write_bytes(b"x")
    asyncio.run(catalog.add(Asset(
        id="asset_video_1",
        type="video",
        filename="clip.mp4",
        url=catalog.url_for("videos", "clip.mp4"),
        provider="fal",
        model="kling-o1",
        created_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )))

    response = client.get("/api/assets", params={"start": "2026-01-01T00:00:00"})
    assert response.status_code == 200
    assert [a["id"] for a in response.json()] == ["asset_video_1"]

    response = client.get("/api/assets", params={"end": "2026-01-01T00:00:00"})
    assert response.status_code == 200
    assert response.json() == []
