"""Image feed access for banner rotation.

Fetches the booru's featured image metadata and raw image bytes with
``requests``. The blocking calls run through ``asyncio.to_thread`` so they do
not stall the event loop. Failures are translated into
:class:`ExternalServiceTimeoutError` or :class:`ExternalServiceError` carrying
the HTTP status, so callers can word a different hint for each case.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict

import requests

from unicycle.scheduler.errors import ExternalServiceError, ExternalServiceTimeoutError
from unicycle.util.logger import get_logger

logger = get_logger("booru")

_MAX_IMAGE_BYTES = 20 * 1024 * 1024


@dataclass(slots=True)
class FeaturedImage:
    """The subset of a booru image record banner rotation cares about."""
    id: int
    thumbnails_generated: bool = False
    spoilered: bool = False
    representations: Dict[str, str] = field(default_factory=dict)

    @property
    def thumbnail_url(self) -> str | None:
        return self.representations.get("thumb")

    @property
    def is_ready(self) -> bool:
        return self.thumbnails_generated and bool(self.representations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "thumbnails_generated": self.thumbnails_generated,
            "spoilered": self.spoilered,
            "representations": dict(self.representations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeaturedImage":
        return cls(
            id=int(data["id"]),
            thumbnails_generated=bool(data.get("thumbnails_generated", False)),
            spoilered=bool(data.get("spoilered", False)),
            representations=dict(data.get("representations") or {}),
        )


def _get(url: str, *, timeout: float, user_agent: str, params: Dict[str, Any] | None = None) -> requests.Response:
    try:
        response = requests.get(url, params=params, headers={"User-Agent": user_agent}, timeout=timeout)
        response.raise_for_status()
    except requests.Timeout as exc:
        raise ExternalServiceTimeoutError("http", f"GET {url} timed out") from exc
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        raise ExternalServiceError("http", f"GET {url} returned {status}", status=status) from exc
    except requests.RequestException as exc:
        raise ExternalServiceError("http", f"GET {url} failed: {exc}") from exc
    return response


def download_image_bytes(url: str, *, timeout: float, user_agent: str) -> bytes:
    """Download an image and return its raw bytes. Blocks, so call it in a thread."""
    logger.debug("[DOWNLOAD] Downloading image from %s", url)
    response = _get(url, timeout=timeout, user_agent=user_agent)
    content = response.content
    if len(content) > _MAX_IMAGE_BYTES:
        raise ExternalServiceError("http", f"image at {url} exceeds {_MAX_IMAGE_BYTES} bytes")
    return content


class BooruClient:
    """Minimal client for a Philomena-style booru JSON API."""

    def __init__(self, base_url: str, *, filter_id: int | None = None, timeout: float = 10.0, user_agent: str = "unicycle") -> None:
        self.base_url = base_url.rstrip("/")
        self.filter_id = filter_id
        self.timeout = timeout
        self.user_agent = user_agent

    def image_page_url(self, image_id: int) -> str:
        return f"{self.base_url}/images/{image_id}"

    def _fetch_featured(self) -> FeaturedImage:
        params = {"filter_id": self.filter_id} if self.filter_id is not None else None
        response = _get(
            f"{self.base_url}/api/v1/json/images/featured",
            params=params,
            timeout=self.timeout,
            user_agent=self.user_agent,
        )
        try:
            payload = response.json()
            return FeaturedImage.from_dict(payload["image"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ExternalServiceError("booru", f"unexpected featured image payload: {exc}") from exc

    async def get_featured_image(self) -> FeaturedImage:
        return await asyncio.to_thread(self._fetch_featured)

    async def download(self, url: str) -> bytes:
        return await asyncio.to_thread(download_image_bytes, url, timeout=self.timeout, user_agent=self.user_agent)
