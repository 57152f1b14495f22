"""Tests for the story server endpoints, run through FastAPI's TestClient."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from clients.media import ImageBlob
from story_server.app import create_app
from story_server.storage import StoryStorage

PNG_A = ImageBlob(b"\x89PNG scene one")
PNG_B = ImageBlob(b"\x89PNG scene two")


@pytest.fixture
def storage(tmp_path):
    return StoryStorage(tmp_path / "data")


@pytest.fixture
def client(storage):
    return TestClient(create_app(storage))


def _save(client, prompt="A tiny dragon"):
    return client.post("/api/stories", json={
        "prompt": prompt,
        "scenes": [
            {"imageData": PNG_A.to_data_url(), "caption": "first"},
            {"imageData": PNG_B.to_base64(), "caption": "second"},
        ],
    })


class TestStories:
    def test_save_returns_201_with_keys(self, client, storage):
        response = _save(client)
        assert response.status_code == 201
        body = response.json()
        story_id = body["story"]["id"]
        assert body["success"] is True
        assert [s["image_key"] for s in body["scenes"]] == [
            f"{story_id}/scene-1.png",
            f"{story_id}/scene-2.png",
        ]
        assert (storage.data_dir / story_id / "scene-2.png").read_bytes() == PNG_B.data

    @pytest.mark.parametrize("payload", [
        {"prompt": "", "scenes": [{"imageData": "AAEC", "caption": "c"}]},
        {"prompt": "idea", "scenes": []},
        {"prompt": "idea"},
        {"scenes": "nope"},
    ])
    def test_invalid_body(self, client, payload):
        response = client.post("/api/stories", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_bad_image_data(self, client):
        response = client.post("/api/stories", json={
            "prompt": "idea",
            "scenes": [{"imageData": "data:image/png;base64,!!!", "caption": "c"}],
        })
        assert response.status_code == 400

    def test_list_newest_first(self, client):
        first = _save(client, "first").json()["story"]["id"]
        second = _save(client, "second").json()["story"]["id"]
        stories = client.get("/api/stories").json()["stories"]
        assert [s["id"] for s in stories] == [second, first]

    def test_get_story_with_image_urls(self, client):
        story_id = _save(client).json()["story"]["id"]
        body = client.get("/api/stories", params={"id": story_id}).json()
        assert body["story"]["prompt"] == "A tiny dragon"
        assert [s["scene_number"] for s in body["scenes"]] == [1, 2]
        assert body["scenes"][0]["caption"] == "first"
        assert body["scenes"][1]["image_url"] == f"/api/images/{story_id}/scene-2.png"

    def test_missing_image_file_gives_null_url(self, client, storage):
        story_id = _save(client).json()["story"]["id"]
        (storage.data_dir / story_id / "scene-1.png").unlink()
        scenes = client.get("/api/stories", params={"id": story_id}).json()["scenes"]
        assert scenes[0]["image_url"] is None

    def test_unknown_story(self, client):
        response = client.get("/api/stories", params={"id": "missing"})
        assert response.status_code == 404
        assert response.json() == {"error": "Story not found"}

    def test_cors_headers(self, client):
        response = client.get("/api/stories", headers={"Origin": "http://localhost:5173"})
        assert response.headers["access-control-allow-origin"] == "*"


class TestImages:
    def test_serves_stored_image(self, client):
        story_id = _save(client).json()["story"]["id"]
        response = client.get(f"/api/images/{story_id}/scene-1.png")
        assert response.status_code == 200
        assert response.content == PNG_A.data
        assert response.headers["content-type"] == "image/png"
        assert "immutable" in response.headers["cache-control"]

    def test_missing_image(self, client):
        assert client.get("/api/images/nope/scene-1.png").status_code == 404

    def test_database_file_not_served(self, client):
        assert client.get("/api/images/stories.db").status_code == 404


class TestVideoProxy:
    def _client(self, storage, handler):
        return TestClient(create_app(storage, transport=httpx.MockTransport(handler)))

    def test_requires_key(self, client):
        response = client.post("/api/video", json={"action": "start"})
        assert response.status_code == 400
        assert response.json()["error"] == "Runway API key is required"

    def test_unknown_action(self, client):
        response = client.post("/api/video", json={"action": "delete", "runwayKey": "rw"})
        assert response.status_code == 400
        assert response.json()["error"] == 'Invalid action. Use "start" or "status".'

    def test_status_requires_task_id(self, client):
        response = client.post("/api/video", json={"action": "status", "runwayKey": "rw"})
        assert response.status_code == 400
        assert response.json()["error"] == "Task ID is required"

    def test_start_fetches_remote_image(self, storage):
        seen = []

        def handler(request):
            if request.url.host == "images.example.com":
                return httpx.Response(200, content=b"\x00\x01\x02", headers={"content-type": "image/png"})
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "task-42"})

        response = self._client(storage, handler).post("/api/video", json={
            "action": "start",
            "runwayKey": "rw",
            "imageUrl": "https://images.example.com/scene.png",
            "promptText": "slow zoom",
        })

        assert response.status_code == 200
        assert response.json() == {"id": "task-42"}
        assert seen[0]["promptImage"] == "data:image/png;base64,AAEC"
        assert seen[0]["promptText"] == "slow zoom"

    def test_status(self, storage):
        def handler(request):
            return httpx.Response(200, json={"status": "SUCCEEDED", "output": ["https://v/1.mp4"]})

        response = self._client(storage, handler).post("/api/video", json={
            "action": "status", "runwayKey": "rw", "taskId": "task-42",
        })
        body = response.json()
        assert body["status"] == "SUCCEEDED"
        assert body["output"] == ["https://v/1.mp4"]

    def test_upstream_error_status_passed_through(self, storage):
        def handler(request):
            return httpx.Response(401, json={"error": "Invalid API key"})

        response = self._client(storage, handler).post("/api/video", json={
            "action": "status", "runwayKey": "bad", "taskId": "task-42",
        })
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}
