"""
Story persistence: sqlite rows for stories and scenes, image files on disk.

Scene images live at ``<data dir>/<story id>/scene-<n>.png`` and the
scene row keeps that relative key.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import DB_FILENAME

logger = logging.getLogger(__name__)


class StoryStorage:
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.data_dir / DB_FILENAME
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        return con

    def init_db(self) -> None:
        """Create the stories and scenes tables. Safe to call multiple times."""
        con = self._connect()
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS stories(
                id TEXT PRIMARY KEY,
                prompt TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS scenes(
                id TEXT PRIMARY KEY,
                story_id TEXT NOT NULL,
                scene_number INTEGER NOT NULL,
                caption TEXT,
                image_key TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(story_id) REFERENCES stories(id)
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_scenes_story ON scenes(story_id)")
        con.commit()
        con.close()

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------

    def save_story(self, prompt: str, scenes: Sequence[Tuple[bytes, str]]) -> Dict[str, Any]:
        """Write every scene image and insert the story with its scene rows."""
        story_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()

        scene_rows = []
        for number, (image_bytes, caption) in enumerate(scenes, start=1):
            image_key = f"{story_id}/scene-{number}.png"
            path = self.data_dir / image_key
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(image_bytes)
            scene_rows.append({
                "id": str(uuid.uuid4()),
                "scene_number": number,
                "caption": caption,
                "image_key": image_key,
            })

        con = self._connect()
        try:
            con.execute(
                "INSERT INTO stories(id, prompt, created_at) VALUES (?, ?, ?)",
                (story_id, prompt, created_at),
            )
            con.executemany(
                "INSERT INTO scenes(id, story_id, scene_number, caption, image_key, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (row["id"], story_id, row["scene_number"], row["caption"], row["image_key"], created_at)
                    for row in scene_rows
                ],
            )
            con.commit()
        finally:
            con.close()

        logger.info(f"Stored story {story_id} with {len(scene_rows)} scenes")
        return {
            "story": {"id": story_id, "prompt": prompt, "created_at": created_at},
            "scenes": scene_rows,
        }

    def list_stories(self) -> List[Dict[str, Any]]:
        con = self._connect()
        try:
            rows = con.execute(
                "SELECT id, prompt, created_at FROM stories ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        finally:
            con.close()
        return [dict(r) for r in rows]

    def get_story(self, story_id: str) -> Optional[Tuple[Dict[str, Any], List[Dict[str, Any]]]]:
        """Return ``(story, scenes)`` ordered by scene number, or None."""
        con = self._connect()
        try:
            story = con.execute(
                "SELECT id, prompt, created_at FROM stories WHERE id = ?", (story_id,)
            ).fetchone()
            if story is None:
                return None
            scenes = con.execute(
                "SELECT * FROM scenes WHERE story_id = ? ORDER BY scene_number", (story_id,)
            ).fetchall()
        finally:
            con.close()
        return dict(story), [dict(s) for s in scenes]

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _image_path(self, key: str) -> Optional[Path]:
        root = self.data_dir.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            return None
        return path

    def has_image(self, key: str) -> bool:
        path = self._image_path(key)
        return path is not None and path.is_file()

    def read_image(self, key: str) -> Optional[bytes]:
        path = self._image_path(key)
        if path is None or not path.is_file() or path.name == DB_FILENAME:
            return None
        return path.read_bytes()
