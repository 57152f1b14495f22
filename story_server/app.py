"""
Story Server - persistence backend for saved stories

Stores stories in sqlite with scene images on disk, serves the images back,
and proxies image-to-video calls so browsers never talk to Runway directly.

Usage:
    python -m story_server.app
    Then POST stories to http://localhost:8000/api/stories
"""

import logging
from typing import Any, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from clients.errors import GenerationError
from clients.media import ImageBlob
from clients.video_client import RunwayVideoClient

from .config import DATA_DIR, HOST, IMAGE_CACHE_CONTROL, PORT
from .storage import StoryStorage

logger = logging.getLogger(__name__)


class SceneIn(BaseModel):
    imageData: str
    caption: str = ""


class StoryIn(BaseModel):
    prompt: str
    scenes: list[SceneIn]


class VideoRequest(BaseModel):
    action: Optional[str] = None
    runwayKey: Optional[str] = None
    imageUrl: Optional[str] = None
    promptText: str = ""
    model: Optional[str] = None
    duration: Optional[int] = None
    taskId: Optional[str] = None


def create_app(
    storage: Optional[StoryStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the app. *transport* is handed to every outbound httpx client."""
    app = FastAPI(title="Story Server")
    app.state.storage = storage or StoryStorage(DATA_DIR)
    app.state.transport = transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    # ──────────────────────────────────────────────
    # Stories
    # ──────────────────────────────────────────────

    @app.post("/api/stories", status_code=201)
    async def save_story(body: StoryIn):
        if not body.prompt.strip() or not body.scenes:
            raise HTTPException(status_code=400, detail="Invalid request body")

        scenes = []
        for scene in body.scenes:
            try:
                image = ImageBlob.from_data_url(scene.imageData)
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid image data")
            scenes.append((image.data, scene.caption))

        saved = app.state.storage.save_story(body.prompt, scenes)
        return {"success": True, **saved}

    @app.get("/api/stories")
    async def get_stories(id: Optional[str] = Query(default=None)):
        storage: StoryStorage = app.state.storage
        if not id:
            return {"stories": storage.list_stories()}

        found = storage.get_story(id)
        if found is None:
            raise HTTPException(status_code=404, detail="Story not found")

        story, scenes = found
        for scene in scenes:
            key = scene["image_key"]
            scene["image_url"] = f"/api/images/{key}" if storage.has_image(key) else None
        return {"story": story, "scenes": scenes}

    @app.get("/api/images/{key:path}")
    async def get_image(key: str):
        data = app.state.storage.read_image(key)
        if data is None:
            raise HTTPException(status_code=404, detail="Image not found")
        return Response(
            content=data,
            media_type="image/png",
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    # ──────────────────────────────────────────────
    # Video proxy
    # ──────────────────────────────────────────────

    @app.post("/api/video")
    async def video(body: VideoRequest):
        if not body.runwayKey:
            raise HTTPException(status_code=400, detail="Runway API key is required")

        client = RunwayVideoClient(api_key=body.runwayKey, transport=app.state.transport)
        try:
            if body.action == "start":
                if not body.imageUrl:
                    raise HTTPException(status_code=400, detail="Image URL is required")
                image = await _load_image(body.imageUrl, app.state.transport)
                task_id = await client.start(image, body.promptText, body.model, body.duration)
                return {"id": task_id}

            if body.action == "status":
                if not body.taskId:
                    raise HTTPException(status_code=400, detail="Task ID is required")
                status = await client.poll(body.taskId)
                return {"id": body.taskId, **status.to_dict()}

        except GenerationError as e:
            logger.error(f"Video proxy error: {e.message}")
            raise HTTPException(status_code=e.status_code or 502, detail=e.message)

        raise HTTPException(status_code=400, detail='Invalid action. Use "start" or "status".')

    return app


async def _load_image(image_url: str, transport: Any = None) -> ImageBlob:
    """Accept a data URL as-is; download anything else."""
    if image_url.startswith("data:"):
        try:
            return ImageBlob.from_data_url(image_url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Failed to fetch image: {e}")

    try:
        async with httpx.AsyncClient(timeout=60.0, transport=transport) as client:
            response = await client.get(image_url)
    except httpx.HTTPError as e:
        raise HTTPException(status_code=400, detail=f"Failed to fetch image: {e}")

    if response.is_error:
        raise HTTPException(status_code=400, detail=f"Failed to fetch image: {response.status_code}")

    mime_type = response.headers.get("content-type", "image/png").split(";")[0]
    return ImageBlob(response.content, mime_type)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info(f"Story server data directory: {DATA_DIR.resolve()}")
    uvicorn.run(create_app(), host=HOST, port=PORT)


if __name__ == "__main__":
    main()
