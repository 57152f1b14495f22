"""Async HTTP clients for the image, video and story-store services."""

from .errors import GenerationError
from .image_client import OpenAIImageClient
from .media import ImageBlob, combine_images
from .story_store_client import StoredScene, StoredStory, StoryStoreClient, StorySummary
from .video_client import RunwayVideoClient, VideoStatus, VideoTaskStatus, parse_task

__all__ = [
    "GenerationError",
    "ImageBlob",
    "combine_images",
    "OpenAIImageClient",
    "RunwayVideoClient",
    "VideoStatus",
    "VideoTaskStatus",
    "parse_task",
    "StoryStoreClient",
    "StorySummary",
    "StoredStory",
    "StoredScene",
]
