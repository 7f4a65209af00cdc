"""Small durable JSON document for state that is not a scheduled job.

Currently holds the last featured image banner rotation applied, so a restart
does not re-upload the same banner.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from unicycle.services.booru import FeaturedImage
from unicycle.util.file_utils import write_atomic
from unicycle.util.logger import get_logger

logger = get_logger("general_storage")


class GeneralStorage:
    """JSON-backed key store, rewritten in full on every save."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.current_featured_image: FeaturedImage | None = None

    def load(self) -> "GeneralStorage":
        if not self.path.exists():
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            logger.error("[GENERAL STORAGE] Could not parse %s, starting empty: %s", self.path, exc)
            return self
        featured = data.get("current_featured_image")
        self.current_featured_image = FeaturedImage.from_dict(featured) if featured else None
        return self

    async def save(self) -> None:
        payload = {
            "current_featured_image": self.current_featured_image.to_dict() if self.current_featured_image else None,
        }
        await asyncio.to_thread(write_atomic, self.path, json.dumps(payload, indent=2))
