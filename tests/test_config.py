"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from optimized_versions.core.config import Settings, load_settings


def test_default_settings():
    """Test that default settings load correctly."""
    settings = Settings()

    assert settings.server.port == 8096
    assert settings.server.api_key is None
    assert settings.encoder.executable == "ffmpeg"
    assert settings.encoder.video_codec == "libx264"
    assert settings.encoder.container == "mp4"
    assert settings.jobs.max_concurrent_jobs == 2
    assert settings.jobs.cache_enabled is True
    assert settings.storage.media_roots == ["/media"]


def test_default_paths():
    settings = Settings(storage={"data_dir": "/srv/ov"})

    assert settings.storage.output_root == Path("/srv/ov") / "OptimizedVersions"
    assert settings.database_url.startswith("sqlite+aiosqlite:///")
    assert settings.database_url.endswith("optimized_versions.db")


def test_explicit_output_dir_and_database():
    settings = Settings(
        storage={"output_dir": "/mnt/optimized"},
        database={"url": "sqlite+aiosqlite:///:memory:"},
    )

    assert settings.storage.output_root == Path("/mnt/optimized")
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"


def test_settings_from_env(monkeypatch):
    """Test loading settings from environment variables."""
    monkeypatch.setenv("OV_JOBS__MAX_CONCURRENT_JOBS", "4")
    monkeypatch.setenv("OV_SERVER__API_KEY", "secret")
    monkeypatch.setenv("OV_ENCODER__HARDWARE_ACCELERATION", "vaapi")

    settings = Settings()

    assert settings.jobs.max_concurrent_jobs == 4
    assert settings.server.api_key == "secret"
    assert settings.encoder.hardware_acceleration == "vaapi"


def test_concurrency_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(jobs={"max_concurrent_jobs": 0})


def test_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "server:\n"
        "  port: 9000\n"
        "storage:\n"
        "  media_roots:\n"
        "    - /data/movies\n"
        "    - /data/shows\n"
        "encoder:\n"
        "  video_bitrate: 4000k\n"
    )

    settings = load_settings(config_file)

    assert settings.server.port == 9000
    assert settings.storage.media_roots == ["/data/movies", "/data/shows"]
    assert settings.encoder.video_bitrate == "4000k"


def test_empty_yaml_gives_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    assert Settings.from_yaml(config_file).server.port == 8096
