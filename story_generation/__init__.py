"""
story_generation: turns a story prompt into a stack of illustrated scenes.

Usage
-----
::

    import asyncio
    from story_generation import SessionContext, StoryStudio

    studio = StoryStudio(SessionContext.load())
    studio.use_sample("Tiny dragon")
    if asyncio.run(studio.generate()):
        for scene in studio.stack.scenes:
            print(scene.caption)
"""

from .coordinator import DispatchPolicy, SceneGenerationCoordinator, StoryPlan
from .errors import GenerationError, ValidationError, VideoTimeoutError
from .prompt_builder import (
    SAMPLE_STORIES,
    SampleStory,
    generate_scene_captions,
    generate_scene_prompts,
)
from .session import SessionContext
from .studio import Stage, StoryStudio
from .video import generate_all_scene_videos, generate_scene_video, wait_for_video_task

__all__ = [
    # Host
    "StoryStudio",
    "Stage",
    "SessionContext",
    # Coordinators
    "SceneGenerationCoordinator",
    "DispatchPolicy",
    "StoryPlan",
    "wait_for_video_task",
    "generate_scene_video",
    "generate_all_scene_videos",
    # Prompts
    "generate_scene_prompts",
    "generate_scene_captions",
    "SAMPLE_STORIES",
    "SampleStory",
    # Errors
    "GenerationError",
    "ValidationError",
    "VideoTimeoutError",
]
