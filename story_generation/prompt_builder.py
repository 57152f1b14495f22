"""
Prompt builder for five-beat picture stories.

Turns one user prompt into a scene prompt and a narrative caption per beat.
Pure templating: no network, no state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ART_STYLE = (
    "In the style of a Disney Pixar animated movie, colorful and whimsical 3D "
    "cartoon style with expressive characters and vibrant lighting."
)

REFERENCE_INSTRUCTION_SINGLE = (
    "Use the person in the reference photo as the main character. Transform them "
    "into the Disney Pixar cartoon style while maintaining their likeness, features, "
    "and characteristics."
)
REFERENCE_INSTRUCTION_DUAL = (
    "Use both people shown in the reference photo as the main characters. Transform "
    "them into the Disney Pixar cartoon style while maintaining their likenesses, "
    "features, and characteristics. Both characters should appear together in each scene."
)

# (beat name, direction) per scene, in story order
STORY_BEATS: list[tuple[str, str]] = [
    ("The beginning", "Show the opening scene that introduces the setting and characters."),
    ("Rising action", "Show a development or challenge emerging."),
    ("Climax", "Show the peak moment of tension or action."),
    ("Falling action", "Show the aftermath and consequences of the climax."),
    ("Resolution", "Show how the story concludes with a satisfying ending."),
]

_CAPTIONS: list[str] = [
    "Once upon a time, a new adventure began: {prompt}. Little did they know what excitement awaited them...",
    "But then, something unexpected happened! A challenge appeared that would test their courage and determination.",
    "The moment of truth arrived. With hearts pounding, they faced their greatest challenge head-on!",
    "Against all odds, they pushed through! The tide began to turn in their favor...",
    "And so, the adventure came to a wonderful end. They had grown, learned, and made memories that would last forever. The end.",
]


@dataclass(frozen=True)
class SampleStory:
    label: str
    prompt: str


SAMPLE_STORIES: list[SampleStory] = [
    SampleStory("Robot painter", "A robot learning to paint in Paris"),
    SampleStory("Lost astronaut", "An astronaut stranded on a beautiful alien planet"),
    SampleStory("Tiny dragon", "A tiny dragon befriends a lonely child"),
    SampleStory("Time traveler", "A time traveler accidentally changes history"),
    SampleStory("Underwater city", "Discovering a hidden city beneath the ocean"),
]


def reference_instruction(reference_count: int) -> str:
    """Likeness instruction for *reference_count* uploaded photos ('' for none)."""
    if reference_count <= 0:
        return ""
    if reference_count == 1:
        return REFERENCE_INSTRUCTION_SINGLE
    return REFERENCE_INSTRUCTION_DUAL


def generate_scene_prompts(user_prompt: str, reference_count: int = 0) -> list[str]:
    """Build one image prompt per story beat.

    Args:
        user_prompt: The story idea typed by the user.
        reference_count: Number of reference photos supplied; one photo asks
            for a single likeness, two or more for both people together.

    Returns:
        One prompt per entry in ``STORY_BEATS``.
    """
    prefix = reference_instruction(reference_count)
    prefix = f"{prefix} " if prefix else ""
    total = len(STORY_BEATS)
    return [
        f"{ART_STYLE} {prefix}Scene {i} of {total} - {beat}: {user_prompt}. {direction}"
        for i, (beat, direction) in enumerate(STORY_BEATS, start=1)
    ]


def generate_scene_captions(user_prompt: str) -> list[str]:
    return [caption.format(prompt=user_prompt) for caption in _CAPTIONS]


def find_sample(label: str) -> Optional[SampleStory]:
    for sample in SAMPLE_STORIES:
        if sample.label.lower() == label.strip().lower():
            return sample
    return None
