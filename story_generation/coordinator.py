"""
Scene generation coordinator.

Fans one image request per scene out to an image generator and applies
each result to its own card as it arrives. The first failure aborts the
session: outstanding requests are cancelled and the error propagates to
the caller, which owns tearing the stack down.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence

from card_stack import CardStack
from clients.errors import GenerationError
from clients.media import ImageBlob, combine_images

from .config import MAX_REFERENCE_IMAGES
from .errors import ValidationError
from .prompt_builder import generate_scene_captions, generate_scene_prompts

logger = logging.getLogger(__name__)


class ImageGenerator(Protocol):
    async def generate(self, prompt: str, reference_image: Optional[ImageBlob] = None) -> ImageBlob:
        ...


class DispatchPolicy(Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class StoryPlan:
    """Everything needed to dispatch one story, computed before the stack is reset."""
    prompt: str
    scene_prompts: list[str]
    captions: list[str]
    reference: Optional[ImageBlob]
    reference_count: int


class SceneGenerationCoordinator:
    """Populates a CardStack from one user prompt."""

    def __init__(
        self,
        stack: CardStack,
        generator: ImageGenerator,
        policy: DispatchPolicy = DispatchPolicy.PARALLEL,
    ):
        self.stack = stack
        self.generator = generator
        self.policy = policy
        self.generation: Optional[int] = None

    def plan(self, user_prompt: str, reference_images: Sequence[ImageBlob] = ()) -> StoryPlan:
        """Validate the input and build every scene prompt without touching the stack.

        Raises:
            ValidationError: Empty prompt, too many reference photos, or a
                photo that cannot be decoded.
        """
        user_prompt = user_prompt.strip()
        if not user_prompt:
            raise ValidationError("Please enter a story prompt")
        if len(reference_images) > MAX_REFERENCE_IMAGES:
            raise ValidationError(f"At most {MAX_REFERENCE_IMAGES} reference photos are supported")

        try:
            reference = combine_images(list(reference_images))
        except ValueError as e:
            raise ValidationError(f"A reference photo could not be read: {e}") from e

        return StoryPlan(
            prompt=user_prompt,
            scene_prompts=generate_scene_prompts(user_prompt, len(reference_images)),
            captions=generate_scene_captions(user_prompt),
            reference=reference,
            reference_count=len(reference_images),
        )

    async def run(self, user_prompt: str, reference_images: Sequence[ImageBlob] = ()) -> bool:
        """Generate every scene for *user_prompt*.

        Returns True once all scenes are ready, or False if the stack was
        reset by someone else while requests were in flight (their results
        are dropped).

        Raises:
            ValidationError: See ``plan``.
            GenerationError: The first scene request that failed.
        """
        return await self.execute(self.plan(user_prompt, reference_images))

    async def execute(self, plan: StoryPlan) -> bool:
        """Reset the stack for *plan* and dispatch its scene requests."""
        prompts = plan.scene_prompts
        generation = self.stack.initialize(len(prompts), prompts)
        self.generation = generation
        logger.info(
            f"Generating {len(prompts)} scenes ({self.policy.value}, "
            f"{plan.reference_count} reference photos)"
        )

        if self.policy is DispatchPolicy.SEQUENTIAL:
            return await self._run_sequential(generation, prompts, plan.captions, plan.reference)
        return await self._run_parallel(generation, prompts, plan.captions, plan.reference)

    def owns_stack(self) -> bool:
        """True while the stack still holds the scenes this coordinator started."""
        return self.generation is not None and self._is_current(self.generation)

    # ------------------------------------------------------------------
    # Dispatch policies
    # ------------------------------------------------------------------

    async def _run_parallel(
        self,
        generation: int,
        prompts: list[str],
        captions: list[str],
        reference: Optional[ImageBlob],
    ) -> bool:
        tasks = [
            asyncio.create_task(self._generate_one(generation, i, prompts[i], reference))
            for i in range(len(prompts))
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                index, image = await next_done
                self._apply(generation, index, image, captions[index])
        except GenerationError as e:
            logger.error(f"Aborting story generation: {e.message}")
            raise
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            # Also collects exceptions of tasks that failed after the first one
            await asyncio.gather(*tasks, return_exceptions=True)
            if pending:
                logger.debug(f"Cancelled {len(pending)} outstanding scene requests")

        return self._is_current(generation)

    async def _run_sequential(
        self,
        generation: int,
        prompts: list[str],
        captions: list[str],
        reference: Optional[ImageBlob],
    ) -> bool:
        for i, prompt in enumerate(prompts):
            if not self._is_current(generation):
                return False
            self.stack.set_current_scene(i)
            try:
                index, image = await self._generate_one(generation, i, prompt, reference)
            except GenerationError as e:
                logger.error(f"Aborting story generation: {e.message}")
                raise
            self._apply(generation, index, image, captions[index])

        return self._is_current(generation)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _generate_one(
        self,
        generation: int,
        index: int,
        prompt: str,
        reference: Optional[ImageBlob],
    ) -> tuple[int, ImageBlob]:
        logger.debug(f"Requesting scene {index + 1}")
        try:
            image = await self.generator.generate(prompt, reference)
        except GenerationError as e:
            if self._is_current(generation):
                self.stack.set_scene_failed(index, e.message)
            raise
        return index, image

    def _is_current(self, generation: int) -> bool:
        return self.stack.generation == generation

    def _apply(self, generation: int, index: int, image: ImageBlob, caption: str) -> None:
        if not self._is_current(generation):
            logger.warning(f"Dropping scene {index + 1} result from a discarded story")
            return
        self.stack.set_scene_ready(index, image, caption)
        logger.info(f"Scene {index + 1}/{self.stack.scene_count} ready")
