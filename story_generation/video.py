"""
Video coordinator: animates finished scene images one at a time.

Each scene image is submitted as an image-to-video task and polled at a
fixed interval until it succeeds, fails or runs out of attempts.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from card_stack import Scene
from clients.errors import GenerationError
from clients.media import ImageBlob
from clients.video_client import VideoStatus, VideoTaskStatus

from .config import VIDEO_POLL_INTERVAL, VIDEO_POLL_MAX_ATTEMPTS, VIDEO_PROMPT_MAX_CHARS
from .errors import VideoTimeoutError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[VideoStatus, float], None]
SceneProgressCallback = Callable[..., None]
Sleep = Callable[[float], Awaitable[None]]


class VideoGenerator(Protocol):
    async def start(self, image: ImageBlob, prompt_text: str = "") -> str:
        ...

    async def poll(self, task_id: str) -> VideoTaskStatus:
        ...


def video_prompt(caption: str) -> str:
    """Shorten a caption to a motion prompt the video API accepts."""
    if len(caption) > VIDEO_PROMPT_MAX_CHARS:
        return caption[:VIDEO_PROMPT_MAX_CHARS] + "..."
    return caption


async def wait_for_video_task(
    generator: VideoGenerator,
    task_id: str,
    on_progress: Optional[ProgressCallback] = None,
    max_attempts: int = VIDEO_POLL_MAX_ATTEMPTS,
    interval: float = VIDEO_POLL_INTERVAL,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Poll *task_id* until it finishes and return the video URL.

    Raises:
        GenerationError: The task failed, or succeeded without an output.
        VideoTimeoutError: Still unfinished after *max_attempts* polls.
    """
    for attempt in range(1, max_attempts + 1):
        status = await generator.poll(task_id)
        if on_progress:
            on_progress(status.status, status.progress)

        if status.status is VideoStatus.SUCCEEDED:
            if status.output_url:
                logger.info(f"Video task {task_id} finished after {attempt} checks")
                return status.output_url
            raise GenerationError("Video generation succeeded but no output URL found")

        if status.status is VideoStatus.FAILED:
            raise GenerationError(status.error or "Video generation failed")

        await sleep(interval)

    logger.error(f"Video task {task_id} timed out after {max_attempts} checks")
    raise VideoTimeoutError(task_id, max_attempts)


async def generate_scene_video(
    generator: VideoGenerator,
    image: ImageBlob,
    caption: str,
    on_progress: Optional[ProgressCallback] = None,
    **poll_options,
) -> str:
    task_id = await generator.start(image, video_prompt(caption))
    return await wait_for_video_task(generator, task_id, on_progress, **poll_options)


async def generate_all_scene_videos(
    generator: VideoGenerator,
    scenes: Sequence[Scene],
    on_scene_progress: Optional[SceneProgressCallback] = None,
    **poll_options,
) -> dict[int, str]:
    """Animate every ready scene in order.

    *on_scene_progress* is called as ``(index, stage, progress=0.0, error=None)``
    where stage is ``"starting"``, a task status value, ``"completed"`` or
    ``"failed"``. The first failure is re-raised after it is reported.

    Returns:
        Mapping of scene index to video URL; scenes without an image are skipped.
    """
    def report(index, stage, progress=0.0, error=None):
        if on_scene_progress:
            on_scene_progress(index, stage, progress, error)

    videos: dict[int, str] = {}
    for scene in scenes:
        if not scene.is_ready or scene.image is None:
            continue

        report(scene.index, "starting")
        try:
            videos[scene.index] = await generate_scene_video(
                generator,
                scene.image,
                scene.caption or "",
                lambda status, progress, i=scene.index: report(i, status.value, progress),
                **poll_options,
            )
        except GenerationError as e:
            report(scene.index, "failed", 0.0, e.message)
            raise
        report(scene.index, "completed", 1.0)

    return videos
