"""Persistence backend for saved stories and the video API proxy."""

from .app import create_app
from .storage import StoryStorage

__all__ = ["create_app", "StoryStorage"]
