"""Video generation client using the Runway image-to-video API."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from .errors import GenerationError
from .media import ImageBlob

logger = logging.getLogger(__name__)


class VideoStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Runway task states -> our four states
_STATUS_MAP = {
    "PENDING": VideoStatus.PENDING,
    "THROTTLED": VideoStatus.PENDING,
    "RUNNING": VideoStatus.RUNNING,
    "SUCCEEDED": VideoStatus.SUCCEEDED,
    "FAILED": VideoStatus.FAILED,
    "CANCELLED": VideoStatus.FAILED,
}


@dataclass(frozen=True)
class VideoTaskStatus:
    """One poll result for a video task."""
    status: VideoStatus
    output_url: Optional[str] = None
    progress: float = 0.0
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status in (VideoStatus.SUCCEEDED, VideoStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value.upper(),
            "output": [self.output_url] if self.output_url else [],
            "progress": self.progress,
            "failure": self.error,
        }


class RunwayVideoClient:
    """Starts image-to-video tasks and reports their status."""

    IMAGE_TO_VIDEO_URL = "https://api.dev.runwayml.com/v1/image_to_video"
    TASKS_URL = "https://api.dev.runwayml.com/v1/tasks"
    API_VERSION = "2024-11-06"

    DEFAULT_MODEL = "gen4_turbo"
    DEFAULT_DURATION = 5
    RATIO = "1024:1024"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or os.getenv("RUNWAY_API_KEY")
        if not self.api_key:
            raise ValueError("Runway API key is required. Please add it in Settings.")
        self.model = model or os.getenv("RUNWAY_MODEL", self.DEFAULT_MODEL)
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Runway-Version": self.API_VERSION,
        }

    async def start(
        self,
        image: ImageBlob,
        prompt_text: str = "",
        model: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> str:
        """Submit *image* for animation and return the task id."""
        payload = {
            "model": model or self.model,
            "promptImage": image.to_data_url(),
            "promptText": prompt_text,
            "duration": duration or self.DEFAULT_DURATION,
            "ratio": self.RATIO,
        }

        try:
            async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
                response = await client.post(
                    self.IMAGE_TO_VIDEO_URL,
                    headers={**self._headers(), "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise GenerationError(f"Runway API request failed: {e}") from e

        if response.is_error:
            raise GenerationError(
                _error_message(response, f"Runway API error: {response.status_code}"),
                response.status_code,
            )

        task_id = _json(response).get("id")
        if not task_id:
            raise GenerationError("Runway API returned no task id")

        logger.info(f"Video task started: {task_id}")
        return task_id

    async def poll(self, task_id: str) -> VideoTaskStatus:
        """Fetch the current status of *task_id*."""
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.get(f"{self.TASKS_URL}/{task_id}", headers=self._headers())
        except httpx.HTTPError as e:
            raise GenerationError(f"Failed to check task status: {e}") from e

        if response.is_error:
            raise GenerationError(
                _error_message(response, f"Failed to check task status: {response.status_code}"),
                response.status_code,
            )

        return parse_task(_json(response))


def parse_task(task: dict) -> VideoTaskStatus:
    """Map a Runway task document to a ``VideoTaskStatus``."""
    raw_status = str(task.get("status", "")).upper()
    status = _STATUS_MAP.get(raw_status, VideoStatus.PENDING)
    output = task.get("output") or []
    return VideoTaskStatus(
        status=status,
        output_url=output[0] if output else None,
        progress=float(task.get("progress") or 0.0),
        error=task.get("failure") or task.get("error"),
    )


def _json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError as e:
        raise GenerationError("Invalid response format from Runway API") from e
    if not isinstance(body, dict):
        raise GenerationError("Invalid response format from Runway API")
    return body


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    error = body.get("error") if isinstance(body, dict) else None
    return str(error) if error else fallback
