"""Typed parser for config.toml sections into immutable app settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from app_config_schema import (
    DEFAULT_DATA_DIR,
    DEFAULT_EXPORT_DIR,
    AppConfig,
    AppConfigurationError,
    CountdownSettings,
    LoggingSettings,
    SoundSettings,
    StorageSettings,
)

_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def parse_app_config(
    raw: Mapping[str, Any],
    *,
    base_dir: Path,
    source_file: str,
) -> AppConfig:
    """Parse raw TOML mappings into strongly typed application settings."""
    storage = _parse_storage_settings(_section(raw, "storage"), base_dir=base_dir)
    countdown = _parse_countdown_settings(_section(raw, "timer"))
    sound = _parse_sound_settings(_section(raw, "sound"), base_dir=base_dir)
    logging_settings = _parse_logging_settings(_section(raw, "logging"))

    return AppConfig(
        storage=storage,
        countdown=countdown,
        sound=sound,
        logging=logging_settings,
        source_file=source_file,
    )


def _parse_storage_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> StorageSettings:
    data_dir = _as_str(section.get("data_dir", DEFAULT_DATA_DIR), "storage.data_dir")
    export_dir = _as_str(
        section.get("export_dir", DEFAULT_EXPORT_DIR),
        "storage.export_dir",
    )
    return StorageSettings(
        data_dir=_resolve_path(base_dir, data_dir or DEFAULT_DATA_DIR),
        export_dir=_resolve_path(base_dir, export_dir or DEFAULT_EXPORT_DIR),
    )


def _parse_countdown_settings(section: Mapping[str, Any]) -> CountdownSettings:
    tick_interval = _as_float(
        section.get("tick_interval_seconds", 0.1),
        "timer.tick_interval_seconds",
    )
    if tick_interval <= 0:
        raise AppConfigurationError("timer.tick_interval_seconds must be positive.")
    return CountdownSettings(tick_interval_seconds=tick_interval)


def _parse_sound_settings(
    section: Mapping[str, Any],
    *,
    base_dir: Path,
) -> SoundSettings:
    tracks_raw = _section(section, "tracks", prefix="sound.")
    tracks: dict[str, str] = {}
    for name, value in tracks_raw.items():
        path = _as_str(value, f"sound.tracks.{name}")
        tracks[str(name)] = _resolve_path(base_dir, path)

    return SoundSettings(
        enabled=_as_bool(section.get("enabled", True), "sound.enabled"),
        output_device=(
            _as_int(section.get("output_device"), "sound.output_device")
            if "output_device" in section
            else None
        ),
        sample_rate_hz=_as_int(
            section.get("sample_rate_hz", 44100),
            "sound.sample_rate_hz",
        ),
        track_seconds=_as_float(
            section.get("track_seconds", 8.0),
            "sound.track_seconds",
        ),
        fade_in_seconds=_as_float(
            section.get("fade_in_seconds", 1.5),
            "sound.fade_in_seconds",
        ),
        fade_out_seconds=_as_float(
            section.get("fade_out_seconds", 1.0),
            "sound.fade_out_seconds",
        ),
        tracks=tracks,
    )


def _parse_logging_settings(section: Mapping[str, Any]) -> LoggingSettings:
    level = _as_str(section.get("level", "INFO"), "logging.level").upper()
    if level not in _ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(_ALLOWED_LOG_LEVELS))
        raise AppConfigurationError(f"logging.level must be one of: {allowed}.")
    return LoggingSettings(level=level)


def _section(root: Mapping[str, Any], name: str, *, prefix: str = "") -> Mapping[str, Any]:
    raw = root.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise AppConfigurationError(f"[{prefix}{name}] must be a table.")
    return raw


def _as_str(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    raise AppConfigurationError(f"{field} must be a string.")


def _as_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise AppConfigurationError(f"{field} must be a boolean.")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be an integer.") from error
    raise AppConfigurationError(f"{field} must be an integer.")


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise AppConfigurationError(f"{field} must be a float.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as error:
            raise AppConfigurationError(f"{field} must be a float.") from error
    raise AppConfigurationError(f"{field} must be a float.")


def _resolve_path(base_dir: Path, raw: str) -> str:
    if not raw:
        return ""
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)
