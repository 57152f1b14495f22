"""Errors raised by the external API clients."""

from typing import Optional


class GenerationError(Exception):
    """An image or video generation request failed.

    Raised for non-success responses, malformed payloads and connection
    failures alike; ``message`` is suitable for showing to the user.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
