"""Data model for the card stack: scenes, poses, visuals and gesture state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SceneState(Enum):
    """Lifecycle of a single scene card."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Scene:
    """One narrative beat of a story.

    ``image`` is opaque to the engine; hosts pass whatever handle their
    renderer understands (the generation clients hand over ``ImageBlob``).
    """
    index: int
    prompt: str = ""
    caption: Optional[str] = None
    image: Any = None
    state: SceneState = SceneState.LOADING
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state is SceneState.READY


@dataclass(frozen=True)
class CardPose:
    """Transform of a card relative to the stack anchor."""
    translate_x: float = 0.0
    translate_y: float = 0.0
    rotation_deg: float = 0.0

    def offset_by(self, dy: float) -> "CardPose":
        return CardPose(self.translate_x, self.translate_y + dy, self.rotation_deg)


@dataclass(frozen=True)
class StackVisual:
    """Derived placement of one scene card for a given focus index."""
    z_index: int
    translate_x: float
    translate_y: float
    rotation_deg: float
    is_focused: bool
    distance: int = 0

    @property
    def pose(self) -> CardPose:
        return CardPose(self.translate_x, self.translate_y, self.rotation_deg)


@dataclass
class GestureState:
    """Live drag on the focused card."""
    card_index: int
    start_pointer_x: float
    current_offset_x: float = 0.0
    active: bool = True
    last_timestamp_ms: Optional[float] = None
    velocity_x: float = 0.0


class EventKind(Enum):
    """What changed in the stack, so renderers repaint only that."""

    RESET = "reset"
    CONTENT = "content"
    LAYOUT = "layout"
    DRAG = "drag"


@dataclass(frozen=True)
class StackEvent:
    kind: EventKind
    indices: tuple[int, ...] = field(default_factory=tuple)
    focus_index: int = 0
