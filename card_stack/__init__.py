"""
card_stack: swipeable scene-card stack engine.

Usage
-----
::

    from card_stack import CardStack

    stack = CardStack()
    stack.initialize(5)

    # async results may arrive in any order
    stack.set_scene_ready(2, image, "The moment of truth arrived...")

    # pointer events on the focused card
    stack.begin_drag(0, pointer_x=200, timestamp_ms=0)
    stack.drag_to(100, timestamp_ms=120)
    stack.end_drag()          # committed: focus moves to 1

    # once per animation frame
    stack.advance(1 / 60)
    for visual, pose in zip(stack.visuals(), stack.poses()):
        ...
"""

from .errors import IndexOutOfRange
from .gesture_tracker import (
    GestureDirection,
    GesturePhase,
    GestureResult,
    GestureTracker,
    decide,
    drag_rotation,
)
from .layout_engine import layout, layout_stack, stack_distance
from .models import (
    CardPose,
    EventKind,
    GestureState,
    Scene,
    SceneState,
    StackEvent,
    StackVisual,
)
from .stack import CardStack
from .transitions import Transition, TransitionTable, ease_out, spring_progress

__all__ = [
    # Orchestrator
    "CardStack",
    # Layout
    "layout",
    "layout_stack",
    "stack_distance",
    # Gestures
    "GestureTracker",
    "GestureDirection",
    "GesturePhase",
    "GestureResult",
    "decide",
    "drag_rotation",
    # Transitions
    "Transition",
    "TransitionTable",
    "ease_out",
    "spring_progress",
    # Model
    "Scene",
    "SceneState",
    "CardPose",
    "StackVisual",
    "GestureState",
    "StackEvent",
    "EventKind",
    # Errors
    "IndexOutOfRange",
]
