"""Errors raised by the card stack engine."""


class IndexOutOfRange(IndexError):
    """A scene index outside ``[0, scene_count)`` was passed to the stack.

    This is a wiring bug, not a user-facing condition: correct callers only
    ever address the indices they were handed by ``initialize``.
    """

    def __init__(self, index: int, scene_count: int):
        self.index = index
        self.scene_count = scene_count
        super().__init__(f"Scene index {index} outside [0, {scene_count})")
