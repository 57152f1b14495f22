"""Configuration constants and environment variable loading for story generation."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ==================== STORY ====================
SCENE_COUNT = 5
MAX_REFERENCE_IMAGES = 2

# ==================== API KEYS ====================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
RUNWAY_API_KEY = os.getenv("RUNWAY_API_KEY")

# ==================== VIDEO GENERATION ====================
VIDEO_POLL_MAX_ATTEMPTS = int(os.getenv("VIDEO_POLL_MAX_ATTEMPTS", "120"))
VIDEO_POLL_INTERVAL = float(os.getenv("VIDEO_POLL_INTERVAL", "3"))  # 120 x 3s = 6 minutes
VIDEO_PROMPT_MAX_CHARS = 200

# ==================== PERSISTENCE ====================
STORY_STORE_URL = os.getenv("STORY_STORE_URL", "http://127.0.0.1:8000")
SETTINGS_PATH = Path(
    os.getenv("STORYSTACK_SETTINGS_PATH", str(Path.home() / ".storystack" / "settings.json"))
)
