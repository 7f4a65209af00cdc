from pathlib import Path

import pytest
import yaml

from unicycle.configuration.app_configuration import AppConfig, BannerMode


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "default_guild_id": 123456789,
        "mod_channel_id": 987654321,
        "scheduler": {"interval_seconds": 3},
        "mod_logging": {"batch_send_logs": True, "batch_send_rate_seconds": 30},
        "banner": {
            "mode": "custom_rotation",
            "images": ["https://img.example/a.png", "", "https://img.example/b.png"],
            "interval_minutes": 15,
        },
        "booru": {"base_url": "https://derpibooru.org/", "filter_id": 56027, "timeout_seconds": 4},
        "storage": {"schedule_path": "state/jobs.json"},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.get("default_guild_id") == 123456789
    assert config.default_guild_id == 123456789
    assert config.mod_channel_id == 987654321
    assert config.scheduler_interval == pytest.approx(3.0)
    assert config.batch_send_logs is True
    assert config.batch_send_rate == pytest.approx(30.0)
    assert config.banner_mode is BannerMode.CUSTOM_ROTATION
    assert config.banner_images == ["https://img.example/a.png", "https://img.example/b.png"]
    assert config.banner_interval == 15
    assert config.booru_base_url == "https://derpibooru.org"
    assert config.booru_filter_id == 56027
    assert config.booru_timeout == pytest.approx(4.0)
    assert config.schedule_path == Path("state/jobs.json")


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    missing_path = tmp_path / "does_not_exist.yml"

    config = AppConfig(missing_path)

    assert config.data == {}
    assert config.default_guild_id == 0
    assert config.scheduler_interval == pytest.approx(10.0)
    assert config.batch_send_logs is False
    assert config.banner_mode is BannerMode.NONE
    assert config.banner_images == []
    assert config.booru_base_url == "https://manebooru.art"
    assert config.booru_filter_id is None
    assert config.schedule_path == Path("data/schedule.json")
    assert config.moderation_log_path == Path("data/moderation.log")


def test_app_config_unknown_banner_mode_falls_back_to_none(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"banner": {"mode": "slideshow", "images": "not-a-list"}}), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.banner_mode is BannerMode.NONE
    assert config.banner_images == []


def test_app_config_non_mapping_document_is_empty(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}
    assert config.mod_channel_id == 0


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"mod_logging": {"batch_send_logs": False}}), encoding="utf-8")
    config = AppConfig(config_path)
    assert config.batch_send_logs is False

    config_path.write_text(yaml.safe_dump({"mod_logging": {"batch_send_logs": True}}), encoding="utf-8")
    reloaded = config.reload()

    assert reloaded == {"mod_logging": {"batch_send_logs": True}}
    assert config.batch_send_logs is True
