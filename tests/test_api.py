"""Tests for the HTTP API using FastAPI's TestClient."""

import asyncio
import io
import zipfile
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from snapbooth.api import _restyle_until_disconnect, create_app
from snapbooth.errors import FetchFailureReason, RestyleCancelled
from snapbooth.services import MediaService, RestyleGateway
from snapbooth.services.restyle import ModelLoading

from conftest import make_jpeg


@pytest.fixture
def api(service) -> TestClient:
    return TestClient(create_app(service))


def jpeg_file(name="photo.jpg", size=(320, 240)):
    return (name, make_jpeg(size), "image/jpeg")


class TestHealth:
    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestPhotos:
    def test_upload(self, api):
        response = api.post(
            "/api/photos/upload",
            files={"photo": jpeg_file()},
            data={"eventId": "evt-1", "sessionId": "s-1"},
        )
        assert response.status_code == 200
        photo = response.json()["photo"]
        assert photo["mode"] == "single"
        assert photo["eventId"] == "evt-1"
        assert photo["sessionId"] == "s-1"
        assert photo["thumbUrl"]

    def test_upload_unknown_event(self, api):
        response = api.post("/api/photos/upload", files={"photo": jpeg_file()}, data={"eventId": "ghost"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_upload_not_an_image(self, api):
        response = api.post(
            "/api/photos/upload",
            files={"photo": ("photo.jpg", b"hello", "image/jpeg")},
            data={"eventId": "evt-1"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["retryable"] is False

    def test_strip(self, api):
        response = api.post(
            "/api/photos/strip",
            files=[("photos", jpeg_file(f"{i}.jpg")) for i in range(3)],
            data={"eventId": "evt-1"},
        )
        assert response.status_code == 200
        assert response.json()["photo"]["mode"] == "strip"

    def test_gif_encoder_failure(self, api, monkeypatch):
        from snapbooth.editor import sequence

        def missing(*args, **kwargs):
            raise FileNotFoundError("ffmpeg")

        monkeypatch.setattr(sequence.subprocess, "run", missing)
        response = api.post(
            "/api/photos/gif",
            files=[("frames", jpeg_file(f"{i}.jpg")) for i in range(2)],
            data={"eventId": "evt-1", "type": "boomerang"},
        )
        assert response.status_code == 500
        assert response.json()["code"] == "ENCODING_FAILED"

    def test_list_event_photos(self, api, service):
        service.encode_single(make_jpeg(), "evt-1")
        response = api.get("/api/photos/event/evt-1")
        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_wipe(self, api, service):
        service.encode_single(make_jpeg(), "evt-1")
        response = api.delete("/api/photos/event/evt-1")
        assert response.json() == {"success": True, "deleted": 1}


class TestZipExport:
    def test_no_photos_is_404_json(self, api):
        response = api.get("/api/photos/event/evt-1/zip")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["code"] == "NOTHING_TO_EXPORT"

    def test_unknown_event(self, api):
        response = api.get("/api/photos/event/ghost/zip")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_streams_zip(self, api, service, fetcher):
        first = service.encode_single(make_jpeg(), "evt-1")
        second = service.encode_strip([make_jpeg()], "evt-1")
        fetcher.answers[first.url] = b"first"
        fetcher.answers[second.url] = b"second"

        response = api.get("/api/photos/event/evt-1/zip")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert 'filename="Sam__Alex_Wedding_photos.zip"' in response.headers["content-disposition"]
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert sorted(archive.read(n) for n in archive.namelist()) == [b"first", b"second"]

    def test_html_error_pages_are_skipped_not_fatal(self, api, service, fetcher):
        good = service.encode_single(make_jpeg(), "evt-1")
        bad = service.encode_single(make_jpeg(), "evt-1")
        fetcher.answers[good.url] = b"good"
        fetcher.answers[bad.url] = FetchFailureReason.CONTENT_TYPE

        response = api.get("/api/photos/event/evt-1/zip")
        assert response.status_code == 200
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert [archive.read(n) for n in archive.namelist()] == [b"good"]


class TestAi:
    def test_styles(self, api):
        body = api.get("/api/ai/styles").json()
        assert {s["key"] for s in body["styles"]} == {
            "anime", "vintage", "watercolor", "cyberpunk", "oilpainting", "comic"
        }
        assert "bw" in body["filters"]

    def test_generate(self, api):
        response = api.post(
            "/api/ai/generate",
            files={"photo": jpeg_file()},
            data={"eventId": "evt-1", "style": "anime", "photoId": "p-1"},
        )
        assert response.status_code == 200
        photo = response.json()["photo"]
        assert photo["mode"] == "ai"
        assert photo["metadata"]["style"] == "anime"

    def test_generate_unknown_style(self, api):
        response = api.post(
            "/api/ai/generate",
            files={"photo": jpeg_file()},
            data={"eventId": "evt-1", "style": "pixelart"},
        )
        assert response.status_code == 400

    def test_model_loading_is_503_retryable(self, api, client):
        client.script = [ModelLoading(3.0)]
        response = api.post(
            "/api/ai/generate",
            files={"photo": jpeg_file()},
            data={"eventId": "evt-1", "style": "comic"},
        )
        assert response.status_code == 503
        assert response.json() == {
            "error": "AI model is loading. Please try again in a moment.",
            "code": "MODEL_LOADING",
            "retryable": True,
        }

    def test_surprise(self, api):
        response = api.post("/api/ai/surprise", files={"photo": jpeg_file()}, data={"eventId": "evt-1"})
        assert response.status_code == 200
        assert response.json()["photo"]["mode"] == "ai"

    def test_filter(self, api):
        response = api.post(
            "/api/ai/filter",
            files={"photo": jpeg_file()},
            data={"eventId": "evt-1", "filter": "vivid"},
        )
        assert response.status_code == 200
        assert response.json()["photo"]["metadata"] == {"filter": "vivid"}


class BlockingSleeper:
    """Waits until the restyle is cancelled, never on the clock."""

    def __init__(self) -> None:
        self.waits = []

    def wait(self, seconds, cancel=None) -> bool:
        self.waits.append(seconds)
        return cancel.wait(5)


def departed_client(service):
    async def is_disconnected():
        return True

    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(service=service)),
        is_disconnected=is_disconnected,
    )


class TestRestyleDisconnect:
    def test_client_leaving_cancels_restyle(self, events, artifact_store, storage, live, client):
        client.script = [ModelLoading(30.0)]
        service = MediaService(
            events=events,
            artifacts=artifact_store,
            storage=storage,
            live=live,
            gateway=RestyleGateway(client=client, sleeper=BlockingSleeper(), max_attempts=5),
        )

        with pytest.raises(RestyleCancelled):
            asyncio.run(
                _restyle_until_disconnect(
                    departed_client(service), make_jpeg(), "anime", "evt-1", None, None
                )
            )
        assert len(client.inputs) <= 1
        assert artifact_store.list_for_event("evt-1") == []
        assert storage.keys() == []
