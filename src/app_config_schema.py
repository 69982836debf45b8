"""Dataclass schema objects used by runtime configuration loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_DATA_DIR = "data"
DEFAULT_EXPORT_DIR = "."


class AppConfigurationError(Exception):
    """Raised when application configuration fails."""


@dataclass(frozen=True)
class StorageSettings:
    data_dir: str = DEFAULT_DATA_DIR
    export_dir: str = DEFAULT_EXPORT_DIR


@dataclass(frozen=True)
class CountdownSettings:
    tick_interval_seconds: float = 0.1


@dataclass(frozen=True)
class SoundSettings:
    enabled: bool = True
    output_device: Optional[int] = None
    sample_rate_hz: int = 44100
    track_seconds: float = 8.0
    fade_in_seconds: float = 1.5
    fade_out_seconds: float = 1.0
    tracks: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    storage: StorageSettings
    countdown: CountdownSettings
    sound: SoundSettings
    logging: LoggingSettings
    source_file: str
