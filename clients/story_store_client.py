"""HTTP client for the story server's /api/stories endpoints."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Sequence

import httpx

from .errors import GenerationError
from .media import ImageBlob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorySummary:
    id: str
    prompt: str
    created_at: str


@dataclass(frozen=True)
class StoredScene:
    image: ImageBlob
    caption: str


@dataclass
class StoredStory:
    id: str
    prompt: str
    scenes: list[StoredScene] = field(default_factory=list)


class StoryStoreClient:
    """Saves, lists and loads stories on a story server."""

    DEFAULT_URL = "http://127.0.0.1:8000"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or os.getenv("STORY_STORE_URL", self.DEFAULT_URL)).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def save(self, prompt: str, scenes: Sequence[tuple[ImageBlob, str]]) -> str:
        """Persist a story and return its id."""
        payload = {
            "prompt": prompt,
            "scenes": [
                {"imageData": image.to_data_url(), "caption": caption}
                for image, caption in scenes
            ],
        }
        async with self._client() as client:
            response = await self._request(client, "POST", "/api/stories", json=payload)
        try:
            story_id = response["story"]["id"]
        except (KeyError, TypeError) as e:
            raise GenerationError("Invalid response format from story store") from e
        logger.info(f"Saved story {story_id} ({len(scenes)} scenes)")
        return story_id

    async def list(self) -> list[StorySummary]:
        async with self._client() as client:
            response = await self._request(client, "GET", "/api/stories")
        try:
            return [
                StorySummary(id=s["id"], prompt=s["prompt"], created_at=s["created_at"])
                for s in response.get("stories", [])
            ]
        except (KeyError, TypeError) as e:
            raise GenerationError("Invalid response format from story store") from e

    async def load(self, story_id: str) -> StoredStory:
        """Fetch a story and download every scene image it references.

        Raises:
            GenerationError: The story is missing, the body is malformed, or
                any scene image cannot be downloaded.
        """
        async with self._client() as client:
            response = await self._request(client, "GET", "/api/stories", params={"id": story_id})
            try:
                story = response["story"]
                loaded = StoredStory(id=story["id"], prompt=story["prompt"])
                scenes = list(response.get("scenes", []))
            except (KeyError, TypeError) as e:
                raise GenerationError("Invalid response format from story store") from e
            if not all(isinstance(scene, dict) for scene in scenes):
                raise GenerationError("Invalid response format from story store")

            for scene in scenes:
                loaded.scenes.append(StoredScene(
                    image=await self._download(client, scene),
                    caption=scene.get("caption") or "",
                ))

        logger.info(f"Loaded story {story_id} ({len(loaded.scenes)} scenes)")
        return loaded

    async def _download(self, client: httpx.AsyncClient, scene: dict) -> ImageBlob:
        image_url = scene.get("image_url")
        if not image_url:
            raise GenerationError(f"Scene {scene.get('scene_number')} has no stored image")
        try:
            image_response = await client.get(image_url)
        except httpx.HTTPError as e:
            raise GenerationError(f"Failed to load scene image: {e}") from e
        if image_response.is_error:
            raise GenerationError(
                f"Failed to load scene image: {image_response.status_code}",
                image_response.status_code,
            )
        mime_type = image_response.headers.get("content-type", "image/png").split(";")[0]
        return ImageBlob(image_response.content, mime_type)

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GenerationError(f"Story store request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            error = body.get("error") if isinstance(body, dict) else None
            raise GenerationError(error or f"Story store error: {response.status_code}", response.status_code)
        if not isinstance(body, dict):
            raise GenerationError("Invalid response format from story store")
        return body
