"""
StoryStudio: the host controller that drives a story session end to end.

Mirrors the app's two stages. In INPUT the user types a prompt (or picks a
sample); in OUTPUT the card stack fills with scenes and can be swiped,
saved or animated. Every async failure is caught here, recorded in
``error`` and reported through the return value.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from card_stack import CardStack
from clients.errors import GenerationError
from clients.image_client import OpenAIImageClient
from clients.story_store_client import StoryStoreClient, StorySummary
from clients.video_client import RunwayVideoClient

from .coordinator import DispatchPolicy, ImageGenerator, SceneGenerationCoordinator
from .errors import ValidationError
from .prompt_builder import SAMPLE_STORIES, SampleStory, find_sample
from .session import SessionContext
from .video import SceneProgressCallback, VideoGenerator, generate_all_scene_videos

logger = logging.getLogger(__name__)


class Stage(Enum):
    INPUT = "input"
    OUTPUT = "output"


def _default_image_client(session: SessionContext) -> ImageGenerator:
    return OpenAIImageClient(api_key=session.openai_key)


def _default_video_client(session: SessionContext) -> VideoGenerator:
    return RunwayVideoClient(api_key=session.runway_key)


def _default_store(session: SessionContext) -> StoryStoreClient:
    return StoryStoreClient(session.store_url)


class StoryStudio:
    """One user's story session: prompt in, swipeable scene cards out."""

    def __init__(
        self,
        session: SessionContext,
        stack: Optional[CardStack] = None,
        policy: DispatchPolicy = DispatchPolicy.PARALLEL,
        image_client_factory: Callable[[SessionContext], ImageGenerator] = _default_image_client,
        video_client_factory: Callable[[SessionContext], VideoGenerator] = _default_video_client,
        store_factory: Callable[[SessionContext], StoryStoreClient] = _default_store,
    ):
        self.session = session
        self.stack = stack or CardStack()
        self.policy = policy
        self._image_client_factory = image_client_factory
        self._video_client_factory = video_client_factory
        self._store_factory = store_factory

        self.stage = Stage.INPUT
        self.generating = False
        self.generating_videos = False
        self.error: Optional[str] = None
        self.draft_prompt = ""
        self.prompt = ""
        self.story_id: Optional[str] = None
        self.videos: dict[int, str] = {}
        self._run_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, prompt: Optional[str] = None) -> bool:
        """Generate a story from *prompt* (or the current draft).

        Returns True when every scene is ready. On a failed scene the stack
        is discarded, ``error`` holds the message and the studio is back in
        INPUT. A run cut short by ``create_new`` or ``load_story`` returns
        False and leaves the studio as they set it.

        Raises:
            ValidationError: Missing prompt or key, an unreadable reference
                photo, or a run already active. Nothing is changed in that case.
        """
        prompt = (prompt if prompt is not None else self.draft_prompt).strip()
        if self.generating:
            raise ValidationError("A story is already being generated")
        if not prompt:
            raise ValidationError("Please enter a story prompt")
        if not self.session.openai_key:
            raise ValidationError("Please add your OpenAI API key in Settings")

        generator = self._image_client_factory(self.session)
        coordinator = SceneGenerationCoordinator(self.stack, generator, self.policy)
        plan = coordinator.plan(prompt, self.session.reference_images)

        self.error = None
        self.stage = Stage.OUTPUT
        self.generating = True
        self.prompt = plan.prompt
        self.story_id = None
        self.videos = {}

        task = asyncio.create_task(coordinator.execute(plan))
        self._run_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if self._run_task is task:
                raise
            logger.info("Story generation was superseded")
            return False
        except GenerationError as e:
            if self._run_task is not task or not coordinator.owns_stack():
                logger.warning(f"Ignoring failure from a discarded story: {e.message}")
                return False
            logger.error(f"Story generation failed: {e.message}")
            self.stack.clear()
            self.error = e.message
            self.stage = Stage.INPUT
            return False
        finally:
            if self._run_task is task:
                self._run_task = None
                self.generating = False

    def _cancel_run(self) -> None:
        task, self._run_task = self._run_task, None
        if task is not None and not task.done():
            task.cancel()
            logger.info("Cancelled the running story generation")
        self.generating = False

    def create_new(self) -> None:
        """Discard the current story and return to the prompt input."""
        self._cancel_run()
        self.stack.clear()
        self.stage = Stage.INPUT
        self.error = None
        self.draft_prompt = ""
        self.prompt = ""
        self.story_id = None
        self.videos = {}
        logger.info("Started a new story")

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def sample_stories(self) -> list[SampleStory]:
        return list(SAMPLE_STORIES)

    def use_sample(self, label: str) -> str:
        sample = find_sample(label)
        if sample is None:
            raise ValidationError(f"Unknown sample story: {label}")
        self.draft_prompt = sample.prompt
        return sample.prompt

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save_story(self) -> Optional[str]:
        """Save the finished story; returns its id, or None on failure."""
        if not self.stack.is_complete():
            raise ValidationError("Wait for every scene to finish before saving")

        scenes = [(scene.image, scene.caption or "") for scene in self.stack.scenes]
        try:
            self.story_id = await self._store_factory(self.session).save(self.prompt, scenes)
        except GenerationError as e:
            logger.error(f"Failed to save story: {e.message}")
            self.error = e.message
            return None
        return self.story_id

    async def list_stories(self) -> list[StorySummary]:
        try:
            return await self._store_factory(self.session).list()
        except GenerationError as e:
            logger.error(f"Failed to list stories: {e.message}")
            self.error = e.message
            return []

    async def load_story(self, story_id: str) -> bool:
        """Replay a saved story into the stack exactly as live results would arrive."""
        try:
            story = await self._store_factory(self.session).load(story_id)
        except GenerationError as e:
            logger.error(f"Failed to load story {story_id}: {e.message}")
            self.error = e.message
            return False

        if not story.scenes:
            self.error = "This story has no scenes"
            return False

        self._cancel_run()
        self.stack.initialize(len(story.scenes))
        for i, scene in enumerate(story.scenes):
            self.stack.set_scene_ready(i, scene.image, scene.caption)

        self.error = None
        self.stage = Stage.OUTPUT
        self.prompt = story.prompt
        self.story_id = story.id
        self.videos = {}
        return True

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    async def generate_videos(self, on_progress: Optional[SceneProgressCallback] = None) -> dict[int, str]:
        """Animate every ready scene; returns index -> video URL ({} on failure)."""
        if not self.session.runway_key:
            raise ValidationError("Runway API key is required. Please add it in Settings.")
        if not self.stack.ready_scenes():
            raise ValidationError("Generate a story before creating videos")
        if self.generating_videos:
            raise ValidationError("Videos are already being generated")

        generator = self._video_client_factory(self.session)
        self.generating_videos = True
        self.error = None
        try:
            self.videos = await generate_all_scene_videos(generator, self.stack.scenes, on_progress)
        except GenerationError as e:
            logger.error(f"Video generation failed: {e.message}")
            self.error = e.message
            return {}
        finally:
            self.generating_videos = False
        return self.videos
