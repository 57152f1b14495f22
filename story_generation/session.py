"""
Session context: API keys, reference photos and the story store URL.

Replaces ambient browser storage with an explicit object. ``load()`` reads
a JSON settings file, ``persist()`` writes it back, and every setter
persists immediately.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from clients.media import ImageBlob

from . import config
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    openai_key: str = ""
    runway_key: str = ""
    store_url: str = ""
    reference_images: list[ImageBlob] = field(default_factory=list)
    path: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "SessionContext":
        """Read settings from *path*, falling back to environment values."""
        path = Path(path) if path else config.SETTINGS_PATH
        data: dict = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable settings file {path}: {e}")
                data = {}

        images = []
        for value in data.get("reference_images", []):
            try:
                images.append(ImageBlob.from_data_url(value))
            except ValueError as e:
                logger.warning(f"Skipping stored reference image: {e}")

        return cls(
            openai_key=data.get("openai_key") or config.OPENAI_API_KEY or "",
            runway_key=data.get("runway_key") or config.RUNWAY_API_KEY or "",
            store_url=data.get("store_url") or config.STORY_STORE_URL,
            reference_images=images[:config.MAX_REFERENCE_IMAGES],
            path=path,
        )

    def persist(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "openai_key": self.openai_key,
            "runway_key": self.runway_key,
            "store_url": self.store_url,
            "reference_images": [img.to_data_url() for img in self.reference_images],
        }
        self.path.write_text(json.dumps(data, indent=2))
        logger.debug(f"Saved settings to {self.path}")

    # ------------------------------------------------------------------
    # Setters (persist on every change)
    # ------------------------------------------------------------------

    def set_openai_key(self, key: str) -> None:
        self.openai_key = key.strip()
        self.persist()

    def set_runway_key(self, key: str) -> None:
        self.runway_key = key.strip()
        self.persist()

    def set_store_url(self, url: str) -> None:
        self.store_url = url.strip()
        self.persist()

    def add_reference_image(self, image: ImageBlob) -> None:
        if len(self.reference_images) >= config.MAX_REFERENCE_IMAGES:
            raise ValidationError(f"At most {config.MAX_REFERENCE_IMAGES} reference photos are supported")
        self.reference_images.append(image)
        self.persist()

    def remove_reference_image(self, index: int) -> None:
        if not 0 <= index < len(self.reference_images):
            return
        del self.reference_images[index]
        self.persist()

    def clear_reference_images(self) -> None:
        self.reference_images = []
        self.persist()
