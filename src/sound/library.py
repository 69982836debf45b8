"""Loads ambient track buffers from WAV files or synthesizes noise beds."""

from __future__ import annotations

import logging
import wave
from pathlib import Path
from typing import Optional

import numpy as np

from .config import TRACK_CAFE, TRACK_FOREST, TRACK_LOFI, TRACK_RAIN, SoundConfig
from .errors import SoundConfigurationError
from .synth import NOISE_BROWN, NOISE_PINK, NOISE_RAIN, ambient_noise, make_loopable, resample

_SYNTH_FALLBACKS = {
    TRACK_RAIN: NOISE_RAIN,
    TRACK_FOREST: NOISE_PINK,
    TRACK_LOFI: NOISE_BROWN,
    TRACK_CAFE: NOISE_PINK,
}


def load_wav(path: str | Path, *, target_rate_hz: int) -> np.ndarray:
    """Read a PCM WAV file as mono float32 in [-1, 1] at `target_rate_hz`."""
    try:
        with wave.open(str(path), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            source_rate_hz = wf.getframerate()
            frames = wf.readframes(wf.getnframes())
    except (OSError, wave.Error, EOFError) as error:
        raise SoundConfigurationError(f"Failed to read WAV file {path}: {error}") from error

    if sample_width == 1:
        audio = (np.frombuffer(frames, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif sample_width == 2:
        audio = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
    elif sample_width == 4:
        audio = np.frombuffer(frames, dtype=np.int32).astype(np.float32) / 2147483648.0
    else:
        raise SoundConfigurationError(
            f"Unsupported WAV sample width {sample_width} bytes in {path}"
        )

    if channels > 1:
        audio = audio.reshape(-1, channels).mean(axis=1)
    if audio.size == 0:
        raise SoundConfigurationError(f"WAV file {path} contains no audio")
    return resample(audio, source_rate_hz, target_rate_hz)


def build_track_sources(
    config: SoundConfig,
    *,
    seed: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> dict[str, np.ndarray]:
    """Resolve every configured track to a loopable mono buffer."""
    log = logger or logging.getLogger("sound")
    sources: dict[str, np.ndarray] = {}
    for index, (name, path) in enumerate(config.tracks.items()):
        if path:
            sources[name] = make_loopable(
                load_wav(path, target_rate_hz=config.sample_rate_hz),
                config.sample_rate_hz,
            )
            log.info("Loaded ambient track %s from %s", name, path)
            continue
        kind = _SYNTH_FALLBACKS.get(name, NOISE_PINK)
        sources[name] = ambient_noise(
            kind,
            seconds=config.track_seconds,
            sample_rate_hz=config.sample_rate_hz,
            seed=None if seed is None else seed + index,
        )
        log.debug("Synthesized %s noise for ambient track %s", kind, name)
    return sources
