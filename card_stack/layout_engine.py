"""
Stack layout engine.

Computes each card's depth offset (position, rotation, z-order) from its
index, the focus index and the card count. Pure functions only: the same
inputs always produce the same ``StackVisual``.
"""

from __future__ import annotations

from .config import CARD_OFFSET_X, CARD_OFFSET_Y, CARD_ROTATION, FOCUSED_Z_BOOST
from .errors import IndexOutOfRange
from .models import StackVisual


def stack_distance(scene_index: int, focus_index: int) -> int:
    """Number of logical positions *scene_index* sits behind the focused card."""
    return abs(scene_index - focus_index)


def layout(scene_index: int, focus_index: int, total_count: int) -> StackVisual:
    """
    Place one card in the stack.

    Args:
        scene_index: Zero-based index of the card being placed.
        focus_index: Index of the currently focused (front-most) card.
        total_count: Number of cards in the stack.

    Returns:
        The card's ``StackVisual``. The focused card has zero offset and
        rotation and a z-index above every other card; the rest fan out,
        alternating left/right with their distance from the focus.
    """
    if total_count <= 0:
        raise ValueError(f"total_count must be positive, got {total_count}")
    if not 0 <= scene_index < total_count:
        raise IndexOutOfRange(scene_index, total_count)
    if not 0 <= focus_index < total_count:
        raise IndexOutOfRange(focus_index, total_count)

    distance = stack_distance(scene_index, focus_index)

    if distance == 0:
        return StackVisual(
            z_index=total_count + FOCUSED_Z_BOOST,
            translate_x=0.0,
            translate_y=0.0,
            rotation_deg=0.0,
            is_focused=True,
            distance=0,
        )

    # Even distances lean left, odd distances lean right
    direction = -1 if distance % 2 == 0 else 1

    return StackVisual(
        z_index=total_count - distance,
        translate_x=distance * CARD_OFFSET_X * direction,
        translate_y=distance * CARD_OFFSET_Y,
        rotation_deg=distance * CARD_ROTATION * direction,
        is_focused=False,
        distance=distance,
    )


def layout_stack(focus_index: int, total_count: int) -> list[StackVisual]:
    """Return the ``StackVisual`` of every card, ordered by scene index."""
    return [layout(i, focus_index, total_count) for i in range(total_count)]
