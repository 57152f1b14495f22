"""Configuration for the story server."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(os.getenv("STORY_DATA_DIR", "data"))
DB_FILENAME = "stories.db"

HOST = os.getenv("STORY_SERVER_HOST", "0.0.0.0")
PORT = int(os.getenv("STORY_SERVER_PORT", "8000"))

IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"
