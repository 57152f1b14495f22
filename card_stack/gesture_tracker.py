"""
Drag gesture state machine.

Turns pointer/touch down, move and up events into a one-dimensional drag
offset and, on release, a commit-or-cancel decision::

    IDLE --press(focused card)--> DRAGGING --release--> COMMITTED | CANCELLED --> IDLE

Only the focused card can start a drag; vertical movement is ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import DRAG_ROTATION_FACTOR, SWIPE_THRESHOLD, VELOCITY_THRESHOLD
from .models import GestureState

logger = logging.getLogger(__name__)


class GesturePhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class GestureDirection(Enum):
    """Focus step requested by a committed drag."""

    ADVANCE = 1   # dragged left: next card
    RETREAT = -1  # dragged right: previous card

    @property
    def step(self) -> int:
        return self.value


@dataclass(frozen=True)
class GestureResult:
    """Outcome of one completed drag session."""
    phase: GesturePhase
    card_index: int
    offset_x: float
    velocity_x: float = 0.0
    direction: Optional[GestureDirection] = None

    @property
    def committed(self) -> bool:
        return self.phase is GesturePhase.COMMITTED


def drag_rotation(offset_x: float) -> float:
    """Tilt (degrees) for a card dragged *offset_x* units from rest."""
    return offset_x * DRAG_ROTATION_FACTOR


def decide(
    offset_x: float,
    velocity_x: float = 0.0,
    swipe_threshold: float = SWIPE_THRESHOLD,
    velocity_threshold: float = VELOCITY_THRESHOLD,
) -> Optional[GestureDirection]:
    """Return the commit direction for a release, or None to snap back."""
    if offset_x == 0:
        return None
    if abs(offset_x) > swipe_threshold or abs(velocity_x) > velocity_threshold:
        return GestureDirection.ADVANCE if offset_x < 0 else GestureDirection.RETREAT
    return None


class GestureTracker:
    """Tracks at most one drag at a time on the focused card."""

    def __init__(
        self,
        swipe_threshold: float = SWIPE_THRESHOLD,
        velocity_threshold: float = VELOCITY_THRESHOLD,
    ):
        self.swipe_threshold = swipe_threshold
        self.velocity_threshold = velocity_threshold
        self.phase = GesturePhase.IDLE
        self.state: Optional[GestureState] = None
        self.last_result: Optional[GestureResult] = None

    @property
    def is_dragging(self) -> bool:
        return self.phase is GesturePhase.DRAGGING

    @property
    def offset_x(self) -> float:
        return self.state.current_offset_x if self.state else 0.0

    @property
    def rotation_deg(self) -> float:
        return drag_rotation(self.offset_x)

    def press(
        self,
        card_index: int,
        focus_index: int,
        pointer_x: float,
        timestamp_ms: Optional[float] = None,
    ) -> bool:
        """Start a drag. Ignored unless *card_index* is the focused card."""
        if card_index != focus_index:
            logger.debug(f"Ignoring press on card {card_index} (focus is {focus_index})")
            return False
        if self.is_dragging:
            return False

        self.state = GestureState(
            card_index=card_index,
            start_pointer_x=pointer_x,
            last_timestamp_ms=timestamp_ms,
        )
        self.phase = GesturePhase.DRAGGING
        return True

    def move(
        self,
        pointer_x: float,
        pointer_y: Optional[float] = None,
        timestamp_ms: Optional[float] = None,
    ) -> Optional[float]:
        """Update the drag offset. Returns the new offset, or None when idle.

        *pointer_y* is accepted so hosts can forward raw events untouched;
        the drag is horizontal only.
        """
        if not self.is_dragging or self.state is None:
            return None

        state = self.state
        offset = pointer_x - state.start_pointer_x

        if (
            timestamp_ms is not None
            and state.last_timestamp_ms is not None
            and timestamp_ms > state.last_timestamp_ms
        ):
            state.velocity_x = (offset - state.current_offset_x) / (
                timestamp_ms - state.last_timestamp_ms
            )
        if timestamp_ms is not None:
            state.last_timestamp_ms = timestamp_ms

        state.current_offset_x = offset
        return offset

    def release(self) -> Optional[GestureResult]:
        """Finish the drag and decide commit vs. cancel."""
        if not self.is_dragging or self.state is None:
            return None

        state = self.state
        direction = decide(
            state.current_offset_x,
            state.velocity_x,
            self.swipe_threshold,
            self.velocity_threshold,
        )
        phase = GesturePhase.COMMITTED if direction else GesturePhase.CANCELLED
        result = GestureResult(
            phase=phase,
            card_index=state.card_index,
            offset_x=state.current_offset_x,
            velocity_x=state.velocity_x,
            direction=direction,
        )
        logger.debug(
            f"Drag on card {state.card_index} {phase.value} "
            f"(offset={state.current_offset_x:.1f}, velocity={state.velocity_x:.2f})"
        )

        state.active = False
        self.last_result = result
        self.state = None
        self.phase = GesturePhase.IDLE
        return result

    def abandon(self) -> bool:
        """Drop an in-progress drag without committing it."""
        if not self.is_dragging:
            return False
        if self.state is not None:
            self.state.active = False
            logger.debug(f"Abandoned drag on card {self.state.card_index}")
        self.state = None
        self.phase = GesturePhase.IDLE
        return True
