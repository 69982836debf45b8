"""Configuration model for ambient tracks, fades, and output selection."""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import SoundConfigurationError
from .synth import DEFAULT_SAMPLE_RATE_HZ

TRACK_RAIN = "rain"
TRACK_FOREST = "forest"
TRACK_LOFI = "lofi"
TRACK_CAFE = "cafe"
DEFAULT_TRACK_NAMES: tuple[str, ...] = (TRACK_RAIN, TRACK_FOREST, TRACK_LOFI, TRACK_CAFE)


@dataclass(frozen=True)
class SoundConfig:
    """Resolved sound settings; `tracks` maps track name to an optional WAV path."""
    enabled: bool = True
    output_device_index: Optional[int] = None
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ
    track_seconds: float = 8.0
    fade_in_seconds: float = 1.5
    fade_out_seconds: float = 1.0
    tracks: Mapping[str, str] = field(
        default_factory=lambda: {name: "" for name in DEFAULT_TRACK_NAMES}
    )

    @classmethod
    def from_settings(cls, settings) -> "SoundConfig":
        if settings.sample_rate_hz <= 0:
            raise SoundConfigurationError("sound.sample_rate_hz must be positive")
        if settings.track_seconds <= 0:
            raise SoundConfigurationError("sound.track_seconds must be positive")
        if settings.fade_in_seconds < 0 or settings.fade_out_seconds < 0:
            raise SoundConfigurationError("sound fade durations cannot be negative")

        tracks = {name: "" for name in DEFAULT_TRACK_NAMES}
        for name, path in (getattr(settings, "tracks", None) or {}).items():
            key = str(name).strip().lower()
            if not key:
                raise SoundConfigurationError("sound.tracks names cannot be empty")
            tracks[key] = (path or "").strip()

        return cls(
            enabled=settings.enabled,
            output_device_index=settings.output_device,
            sample_rate_hz=settings.sample_rate_hz,
            track_seconds=settings.track_seconds,
            fade_in_seconds=settings.fade_in_seconds,
            fade_out_seconds=settings.fade_out_seconds,
            tracks=tracks,
        )
