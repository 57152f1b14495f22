"""
Per-card transition ownership.

Each card owns at most one running transition. Starting a new transition on
a card first cancels the one it already owns: last writer wins, nothing is
queued. Hosts drive time forward with ``advance(dt)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .models import CardPose


def ease_out(t: float) -> float:
    """Cubic ease-out on ``[0, 1]``."""
    t = min(max(t, 0.0), 1.0)
    return 1 - (1 - t) ** 3


def spring_progress(t: float, stiffness: float, damping: float, mass: float = 1.0) -> float:
    """Position of a unit-mass spring released from rest at 0 toward 1.

    *t* is in seconds. Underdamped springs overshoot 1 before settling.
    """
    if t <= 0:
        return 0.0
    omega = math.sqrt(stiffness / mass)
    zeta = damping / (2 * math.sqrt(stiffness * mass))

    if zeta < 1:
        omega_d = omega * math.sqrt(1 - zeta * zeta)
        decay = math.exp(-zeta * omega * t)
        displacement = decay * (
            math.cos(omega_d * t) + (zeta * omega / omega_d) * math.sin(omega_d * t)
        )
    elif zeta == 1:
        displacement = math.exp(-omega * t) * (1 + omega * t)
    else:
        root = math.sqrt(zeta * zeta - 1)
        r1 = -omega * (zeta - root)
        r2 = -omega * (zeta + root)
        displacement = (r2 * math.exp(r1 * t) - r1 * math.exp(r2 * t)) / (r2 - r1)

    return 1 - displacement


def interpolate(start: CardPose, target: CardPose, progress: float) -> CardPose:
    return CardPose(
        translate_x=start.translate_x + (target.translate_x - start.translate_x) * progress,
        translate_y=start.translate_y + (target.translate_y - start.translate_y) * progress,
        rotation_deg=start.rotation_deg + (target.rotation_deg - start.rotation_deg) * progress,
    )


@dataclass
class Transition:
    """A pose animation on one card."""
    card_index: int
    start: CardPose
    target: CardPose
    duration: float
    kind: str = "move"
    elapsed: float = 0.0
    cancelled: bool = False
    # Spring easing when both are set, cubic ease-out otherwise
    stiffness: Optional[float] = None
    damping: Optional[float] = None

    @property
    def finished(self) -> bool:
        return self.elapsed >= self.duration

    @property
    def running(self) -> bool:
        return not self.cancelled and not self.finished

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def is_spring(self) -> bool:
        return self.stiffness is not None and self.damping is not None

    def progress(self) -> float:
        if self.is_spring:
            return spring_progress(self.elapsed, self.stiffness, self.damping)
        return ease_out(self.elapsed / self.duration)

    def pose(self) -> CardPose:
        # The final frame always lands exactly on target
        if self.duration <= 0 or self.finished:
            return self.target
        return interpolate(self.start, self.target, self.progress())

    def step(self, dt: float) -> CardPose:
        """Advance by *dt* seconds and return the pose at the new time."""
        if not self.cancelled:
            self.elapsed = min(self.elapsed + dt, max(self.duration, 0.0))
        return self.pose()


class TransitionTable:
    """Association table from card index to its single active transition."""

    def __init__(self):
        self._active: dict[int, Transition] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, card_index: int) -> bool:
        return card_index in self._active

    def active(self, card_index: int) -> Optional[Transition]:
        return self._active.get(card_index)

    def start(self, transition: Transition) -> Transition:
        """Register *transition*, cancelling whatever its card was running."""
        self.cancel(transition.card_index)
        self._active[transition.card_index] = transition
        return transition

    def cancel(self, card_index: int) -> bool:
        transition = self._active.pop(card_index, None)
        if transition is None:
            return False
        transition.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._active)
        for transition in self._active.values():
            transition.cancel()
        self._active.clear()
        return count

    def advance(self, dt: float) -> dict[int, CardPose]:
        """Step every transition; finished ones are dropped after this frame."""
        poses: dict[int, CardPose] = {}
        for card_index, transition in list(self._active.items()):
            poses[card_index] = transition.step(dt)
            if transition.finished:
                del self._active[card_index]
        return poses
