"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 8096
    debug: bool = False
    api_key: Optional[str] = None  # If set, required on mutating routes


class StorageConfig(BaseModel):
    """Filesystem locations."""

    data_dir: str = "./data"
    output_dir: Optional[str] = None  # Defaults to <data_dir>/OptimizedVersions
    media_roots: list[str] = Field(default_factory=lambda: ["/media"])
    catalog_file: Optional[str] = None  # YAML mapping of item id -> source path

    @property
    def output_root(self) -> Path:
        """Managed output root for transcoded files."""
        if self.output_dir:
            return Path(self.output_dir)
        return Path(self.data_dir) / "OptimizedVersions"


class DatabaseConfig(BaseModel):
    """Database settings."""

    url: Optional[str] = None  # Defaults to SQLite under data_dir
    echo: bool = False  # Enable SQL query logging for debugging


class EncoderConfig(BaseModel):
    """ffmpeg invocation profile."""

    executable: str = "ffmpeg"
    probe_executable: str = "ffprobe"
    profile_name: str = "default"
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "medium"
    video_size: str = "1920x1080"
    video_bitrate: str = "2500k"
    audio_bitrate: str = "160k"
    container: str = "mp4"
    hardware_acceleration: str = "none"  # none, cuda, qsv, vaapi
    extra_args: list[str] = Field(default_factory=list)


class JobsConfig(BaseModel):
    """Job execution settings."""

    max_concurrent_jobs: int = Field(default=2, ge=1)
    progress_update_interval: float = 2.0  # seconds between telemetry writes
    cache_enabled: bool = True
    cache_size: int = Field(default=1024, ge=1)  # jobs kept in the read cache
    kill_timeout_seconds: float = 5.0  # wait for a killed process to exit
    stderr_tail_lines: int = 20


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: Optional[str] = None
    max_size: int = 10  # MB
    backup_count: int = 5


class Settings(BaseSettings):
    """Main settings container."""

    model_config = SettingsConfigDict(
        env_prefix="OV_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def database_url(self) -> str:
        """Database URL, defaulting to SQLite in the data directory."""
        if self.database.url:
            return self.database.url

        db_path = Path(self.storage.data_dir).resolve() / "optimized_versions.db"
        return f"sqlite+aiosqlite:///{db_path}"

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls(**data) if data else cls()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from file or defaults."""
    if config_path and config_path.exists():
        return Settings.from_yaml(config_path)

    default_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
        Path.home() / ".optimized-versions" / "config.yaml",
    ]

    for path in default_paths:
        if path.exists():
            return Settings.from_yaml(path)

    return Settings()
