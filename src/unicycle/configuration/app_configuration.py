from __future__ import annotations
from enum import Enum
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from unicycle.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("config") / "app_config.yml"


class BannerMode(Enum):
    """How the BannerRotation job picks the guild banner."""

    NONE = "none"
    CUSTOM_ROTATION = "custom_rotation"
    BOORU_FEATURED = "booru_featured"

    def __str__(self) -> str:
        return self.value


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties for the scheduler, moderation logging, banner rotation and
    storage paths. Missing sections fall back to defaults so a fresh checkout
    can start with an empty file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Guild
    # --------------------------
    @property
    def default_guild_id(self) -> int:
        """ID of the primary guild that scheduled jobs act on."""
        return int(self._data.get("default_guild_id") or 0)

    @property
    def mod_channel_id(self) -> int:
        """ID of the text channel that receives moderation logs."""
        return int(self._data.get("mod_channel_id") or 0)

    # --------------------------
    # Scheduler
    # --------------------------
    @property
    def scheduler_interval(self) -> float:
        """Delay in seconds between scheduler ticks. Default is 10 seconds."""
        return float(self._section("scheduler").get("interval_seconds", 10.0))

    # --------------------------
    # Moderation logging
    # --------------------------
    @property
    def batch_send_logs(self) -> bool:
        """Whether moderation logs are queued and flushed together."""
        return bool(self._section("mod_logging").get("batch_send_logs", False))

    @property
    def batch_send_rate(self) -> float:
        """Seconds between batch flushes of queued moderation logs."""
        return float(self._section("mod_logging").get("batch_send_rate_seconds", 10.0))

    # --------------------------
    # Banner rotation
    # --------------------------
    @property
    def banner_mode(self) -> BannerMode:
        """Configured banner mode; unknown values are treated as disabled."""
        value = self._section("banner").get("mode", BannerMode.NONE.value)
        try:
            return BannerMode(str(value).lower())
        except ValueError:
            logger.warning("[APP CONFIGURATION] Unknown banner mode %r, falling back to none.", value)
            return BannerMode.NONE

    @property
    def banner_images(self) -> List[str]:
        """Image URLs used by the custom rotation banner mode."""
        images = self._section("banner").get("images") or []
        if not isinstance(images, list):
            return []
        return [str(url) for url in images if url]

    @property
    def banner_interval(self) -> int:
        """Minutes between banner rotations, used in operator-facing messages."""
        return int(self._section("banner").get("interval_minutes", 60))

    # --------------------------
    # Booru
    # --------------------------
    @property
    def booru_base_url(self) -> str:
        return str(self._section("booru").get("base_url", "https://manebooru.art")).rstrip("/")

    @property
    def booru_filter_id(self) -> int | None:
        value = self._section("booru").get("filter_id")
        return int(value) if value is not None else None

    @property
    def booru_timeout(self) -> float:
        return float(self._section("booru").get("timeout_seconds", 10.0))

    @property
    def http_user_agent(self) -> str:
        return str(self._section("booru").get("user_agent", "unicycle (Linux x86_64) requests"))

    # --------------------------
    # Storage
    # --------------------------
    @property
    def schedule_path(self) -> Path:
        """JSON file holding the persisted scheduled jobs."""
        return Path(self._section("storage").get("schedule_path", "data/schedule.json"))

    @property
    def general_storage_path(self) -> Path:
        """JSON file holding small bits of state such as the featured image cache."""
        return Path(self._section("storage").get("general_storage_path", "data/general_storage.json"))

    @property
    def moderation_log_path(self) -> Path:
        """Append-only text file receiving every moderation log entry."""
        return Path(self._section("storage").get("moderation_log_path", "data/moderation.log"))

