"""
Card stack orchestrator.

Owns the ordered scene cards of one story session, the focus index, the
live pose of every card and the transitions moving them. Gesture input,
asynchronous scene population and programmatic navigation all funnel
through here so that no two transitions ever race on the same card.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from .config import (
    ENTRANCE_DURATION,
    ENTRANCE_OFFSET_Y,
    MOVE_DURATION,
    SNAP_BACK_DURATION,
    SPRING_DAMPING,
    SPRING_STIFFNESS,
)
from .errors import IndexOutOfRange
from .gesture_tracker import GestureDirection, GestureResult, GestureTracker, drag_rotation
from .layout_engine import layout, layout_stack
from .models import CardPose, EventKind, Scene, SceneState, StackEvent, StackVisual
from .transitions import Transition, TransitionTable

logger = logging.getLogger(__name__)

Listener = Callable[[StackEvent], None]


class CardStack:
    """The swipeable stack of scene cards for a single story session.

    All mutation is expected on one event-loop thread; the only ordering
    hazard is overlapping transitions, which the transition table resolves
    by cancelling before starting.
    """

    def __init__(self, tracker: Optional[GestureTracker] = None):
        self.scenes: list[Scene] = []
        self.focus_index = 0
        self.current_scene = 0
        self.generation = 0
        self.tracker = tracker or GestureTracker()
        self.transitions = TransitionTable()
        self._poses: dict[int, CardPose] = {}
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for stack events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind, indices: Sequence[int] = ()) -> None:
        event = StackEvent(kind=kind, indices=tuple(indices), focus_index=self.focus_index)
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def scene_count(self) -> int:
        return len(self.scenes)

    def initialize(self, scene_count: int, prompts: Optional[Sequence[str]] = None) -> int:
        """Replace the stack with *scene_count* loading scenes focused on index 0.

        Any drag in progress is abandoned and every transition tied to the
        old cards is cancelled. Returns the new generation number, which
        async producers use to recognise results meant for a discarded stack.
        """
        if scene_count <= 0:
            raise ValueError(f"scene_count must be positive, got {scene_count}")
        if prompts is not None and len(prompts) != scene_count:
            raise ValueError(f"Expected {scene_count} prompts, got {len(prompts)}")

        self.tracker.abandon()
        self.transitions.cancel_all()

        self.scenes = [
            Scene(index=i, prompt=prompts[i] if prompts else "")
            for i in range(scene_count)
        ]
        self.focus_index = 0
        self.current_scene = 0
        self.generation += 1

        self._poses = {}
        for visual_index, visual in enumerate(layout_stack(0, scene_count)):
            rest = visual.pose
            entrance = rest.offset_by(ENTRANCE_OFFSET_Y)
            self._poses[visual_index] = entrance
            self.transitions.start(Transition(
                card_index=visual_index,
                start=entrance,
                target=rest,
                duration=ENTRANCE_DURATION,
                kind="entrance",
            ))

        logger.info(f"Initialized stack with {scene_count} scenes (generation {self.generation})")
        self._emit(EventKind.RESET, range(scene_count))
        return self.generation

    def clear(self) -> None:
        """Discard every card, e.g. when the user starts a new story."""
        self.tracker.abandon()
        self.transitions.cancel_all()
        self.scenes = []
        self._poses = {}
        self.focus_index = 0
        self.current_scene = 0
        self.generation += 1
        self._emit(EventKind.RESET)

    # ------------------------------------------------------------------
    # Scene content
    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.scenes):
            raise IndexOutOfRange(index, len(self.scenes))

    def scene(self, index: int) -> Scene:
        self._check_index(index)
        return self.scenes[index]

    def set_scene_ready(self, index: int, image: Any, caption: Optional[str]) -> Scene:
        """Fill scene *index* with its image and caption.

        Safe in any order relative to other indices: only this scene's
        content changes, and its position is untouched.
        """
        self._check_index(index)
        scene = self.scenes[index]
        scene.image = image
        scene.caption = caption
        scene.state = SceneState.READY
        scene.error = None
        logger.debug(f"Scene {index + 1} ready")
        self._emit(EventKind.CONTENT, (index,))
        return scene

    def set_scene_failed(self, index: int, reason: str) -> Scene:
        self._check_index(index)
        scene = self.scenes[index]
        scene.state = SceneState.FAILED
        scene.error = reason
        logger.warning(f"Scene {index + 1} failed: {reason}")
        self._emit(EventKind.CONTENT, (index,))
        return scene

    def set_current_scene(self, index: int) -> None:
        """Move the generation progress indicator (sequential dispatch)."""
        self._check_index(index)
        self.current_scene = index

    def ready_scenes(self) -> list[Scene]:
        return [s for s in self.scenes if s.is_ready]

    def is_complete(self) -> bool:
        return bool(self.scenes) and all(s.is_ready for s in self.scenes)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def move_focus(self, new_index: int) -> bool:
        """Bring *new_index* to the front and send every card to its new slot.

        No-op (returns False) for the current focus or an out-of-range index.
        All targets are computed before a single layout event is emitted.
        """
        count = len(self.scenes)
        if new_index == self.focus_index or not 0 <= new_index < count:
            return False

        self.tracker.abandon()
        self.transitions.cancel_all()

        old_index = self.focus_index
        self.focus_index = new_index

        for visual_index, visual in enumerate(layout_stack(new_index, count)):
            self.transitions.start(Transition(
                card_index=visual_index,
                start=self._poses.get(visual_index, CardPose()),
                target=visual.pose,
                duration=MOVE_DURATION,
                stiffness=SPRING_STIFFNESS,
                damping=SPRING_DAMPING,
            ))

        logger.debug(f"Focus {old_index} -> {new_index}")
        self._emit(EventKind.LAYOUT, range(count))
        return True

    def target_index(self, direction: GestureDirection) -> int:
        """Index a commit in *direction* lands on; wraps around at both ends."""
        count = len(self.scenes)
        if count == 0:
            return 0
        return (self.focus_index + direction.step) % count

    def handle_gesture_commit(self, direction: GestureDirection) -> bool:
        return self.move_focus(self.target_index(direction))

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def begin_drag(
        self,
        card_index: int,
        pointer_x: float,
        timestamp_ms: Optional[float] = None,
    ) -> bool:
        """Pointer/touch down on *card_index*. Only the focused card drags."""
        if not 0 <= card_index < len(self.scenes):
            return False
        if not self.tracker.press(card_index, self.focus_index, pointer_x, timestamp_ms):
            return False
        # The drag now owns this card's transform
        self.transitions.cancel(card_index)
        return True

    def drag_to(
        self,
        pointer_x: float,
        pointer_y: Optional[float] = None,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[CardPose]:
        """Pointer/touch move. Returns the focused card's new pose while dragging."""
        offset = self.tracker.move(pointer_x, pointer_y, timestamp_ms)
        if offset is None:
            return None
        pose = CardPose(translate_x=offset, translate_y=0.0, rotation_deg=drag_rotation(offset))
        self._poses[self.focus_index] = pose
        self._emit(EventKind.DRAG, (self.focus_index,))
        return pose

    def end_drag(self) -> Optional[GestureResult]:
        """Pointer/touch up: commit to a neighbour or snap back to rest."""
        result = self.tracker.release()
        if result is None:
            return None

        if result.committed and self.handle_gesture_commit(result.direction):
            return result

        self._snap_back(result.card_index)
        return result

    def _snap_back(self, card_index: int) -> None:
        if not 0 <= card_index < len(self.scenes):
            return
        rest = layout(card_index, self.focus_index, len(self.scenes)).pose
        self.transitions.start(Transition(
            card_index=card_index,
            start=self._poses.get(card_index, rest),
            target=rest,
            duration=SNAP_BACK_DURATION,
            stiffness=SPRING_STIFFNESS,
            damping=SPRING_DAMPING,
            kind="snap_back",
        ))
        self._emit(EventKind.LAYOUT, (card_index,))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def advance(self, dt: float) -> dict[int, CardPose]:
        """Step running transitions by *dt* seconds and record the new poses."""
        poses = self.transitions.advance(dt)
        self._poses.update(poses)
        return poses

    def settle(self) -> None:
        """Jump every running transition to its end pose."""
        for card_index in range(len(self.scenes)):
            transition = self.transitions.active(card_index)
            if transition is not None:
                self._poses[card_index] = transition.target
        self.transitions.cancel_all()

    def pose(self, index: int) -> CardPose:
        self._check_index(index)
        return self._poses.get(index, CardPose())

    def poses(self) -> list[CardPose]:
        return [self._poses.get(i, CardPose()) for i in range(len(self.scenes))]

    def visual(self, index: int) -> StackVisual:
        self._check_index(index)
        return layout(index, self.focus_index, len(self.scenes))

    def visuals(self) -> list[StackVisual]:
        if not self.scenes:
            return []
        return layout_stack(self.focus_index, len(self.scenes))
