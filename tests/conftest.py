"""
Pytest configuration and fixtures for unicycle tests.
"""

import datetime
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from unicycle.configuration.app_configuration import AppConfig  # noqa: E402
from unicycle.mod_logging.mod_log import BatchQueue, ModerationFileLog, ModLogDispatcher  # noqa: E402

T0 = datetime.datetime(2024, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)
MOD_CHANNEL_ID = 555


@pytest.fixture()
def config_factory(tmp_path: Path):
    """Build an AppConfig from a dict written to a temporary YAML file."""
    def _make(payload: dict | None = None) -> AppConfig:
        data = {"default_guild_id": 1, "mod_channel_id": MOD_CHANNEL_ID}
        data.update(payload or {})
        path = tmp_path / "app_config.yml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return AppConfig(path)
    return _make


@pytest.fixture()
def mod_channel() -> MagicMock:
    channel = MagicMock()
    channel.send = AsyncMock()
    return channel


@pytest.fixture()
def guild(mod_channel: MagicMock) -> MagicMock:
    guild = MagicMock()
    guild.id = 1
    guild.get_channel.side_effect = lambda channel_id: mod_channel if channel_id == MOD_CHANNEL_ID else None
    return guild


@pytest.fixture()
def mod_log(config_factory, tmp_path: Path) -> ModLogDispatcher:
    config = config_factory()
    return ModLogDispatcher(config, ModerationFileLog(tmp_path / "moderation.log"), BatchQueue())


@pytest.fixture()
def directory() -> MagicMock:
    """Stand-in for GuildDirectory with async mutations."""
    directory = MagicMock()
    directory.resolve_member = AsyncMock()
    directory.fetch_user = AsyncMock(return_value=SimpleNamespace(name="pinkie", id=42))
    directory.is_banned = AsyncMock(return_value=True)
    directory.remove_ban = AsyncMock()
    directory.grant_role = AsyncMock()
    directory.revoke_role = AsyncMock()
    directory.send_channel_message = AsyncMock()
    directory.send_direct_message = AsyncMock()
    directory.set_guild_banner = AsyncMock()
    return directory
