"""
Configuration constants for the card stack engine.

Gesture thresholds, stack offsets and transition timings used across
all card_stack submodules.
"""

# ---------------------------------------------------------------------------
# Gesture thresholds
# ---------------------------------------------------------------------------
SWIPE_THRESHOLD: float = 80.0
"""A drag must travel further than this (in either direction) to commit."""

VELOCITY_THRESHOLD: float = 3.0
"""Release speed (units per millisecond) that commits a short flick."""

DRAG_ROTATION_FACTOR: float = 0.15
"""Degrees of tilt applied per unit of horizontal drag offset."""

# ---------------------------------------------------------------------------
# Stack positioning (per unit of distance from the focused card)
# ---------------------------------------------------------------------------
CARD_OFFSET_Y: float = 14.0
CARD_OFFSET_X: float = 8.0
CARD_ROTATION: float = 2.0

FOCUSED_Z_BOOST: int = 10
"""Added to the card count so the focused card sits above every other card."""

# ---------------------------------------------------------------------------
# Transitions (seconds)
# ---------------------------------------------------------------------------
MOVE_DURATION: float = 0.5
SNAP_BACK_DURATION: float = 0.5
ENTRANCE_DURATION: float = 0.35

ENTRANCE_OFFSET_Y: float = 20.0
"""New cards rise into place from this far below their resting pose."""

SPRING_STIFFNESS: float = 300.0
"""Spring easing for focus moves and snap-backs (unit mass)."""
SPRING_DAMPING: float = 25.0
