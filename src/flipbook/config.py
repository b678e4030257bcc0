"""Configuration management via .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_MIRROR_QUOTA = 5 * 1024 * 1024


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "flipbook")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "flipbook")
    db_path: Path = field(init=False)
    mirror_dir: Path = field(init=False)
    export_path: Path = field(init=False)

    # Storage tiers
    db_version: int = 1
    idle_timeout: float = 5.0  # seconds before the pooled connection is released
    mirror_quota_bytes: int = DEFAULT_MIRROR_QUOTA

    log_level: str = "INFO"
    log_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.db_path = self.data_dir / "flipbook.db"
        self.mirror_dir = self.data_dir / "mirror"
        self.export_path = self.data_dir / "export.json"
        self.log_path = self.data_dir / "flipbook.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "flipbook" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    kwargs = {}
    data_dir = os.getenv("FLIPBOOK_DATA_DIR")
    if data_dir:
        kwargs["data_dir"] = Path(data_dir).expanduser()

    defaults = AppConfig(**kwargs)
    return AppConfig(
        **kwargs,
        idle_timeout=_env_number(
            "FLIPBOOK_IDLE_TIMEOUT", defaults.idle_timeout, float
        ),
        mirror_quota_bytes=_env_number(
            "FLIPBOOK_MIRROR_QUOTA", defaults.mirror_quota_bytes, int
        ),
        log_level=os.getenv("FLIPBOOK_LOG_LEVEL", defaults.log_level).upper(),
    )
