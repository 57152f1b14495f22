"""Errors surfaced by the story generation layer."""

from clients.errors import GenerationError


class ValidationError(Exception):
    """Input rejected before any generation starts (missing prompt or key)."""


class VideoTimeoutError(GenerationError):
    """A video task did not finish within the polling attempt cap."""

    def __init__(self, task_id: str, attempts: int):
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(f"Video generation timed out after {attempts} status checks")


__all__ = ["GenerationError", "ValidationError", "VideoTimeoutError"]
