"""Procedural audio: the notification bell and loopable ambient noise beds."""

from __future__ import annotations

from typing import Optional

import numpy as np

DEFAULT_SAMPLE_RATE_HZ = 44100

NOTIFICATION_PARTIALS_HZ: tuple[float, ...] = (800.0, 1000.0, 1200.0)
NOTIFICATION_PARTIAL_GAINS: tuple[float, ...] = (0.4, 0.3, 0.2)
NOTIFICATION_DURATION_SECONDS = 0.8
NOTIFICATION_DECAY_FLOOR = 0.01

NOISE_WHITE = "white"
NOISE_PINK = "pink"
NOISE_BROWN = "brown"
NOISE_RAIN = "rain"
NOISE_KINDS: frozenset[str] = frozenset({NOISE_WHITE, NOISE_PINK, NOISE_BROWN, NOISE_RAIN})

_NOISE_PEAK = 0.5
_LOOP_CROSSFADE_SECONDS = 0.05


def clamp_unit(value: float) -> float:
    """Clamp a volume to [0, 1]; NaN becomes 0."""
    number = float(value)
    if number != number:
        return 0.0
    return max(0.0, min(1.0, number))


def notification_tone(
    volume: float,
    *,
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
    duration_seconds: float = NOTIFICATION_DURATION_SECONDS,
) -> np.ndarray:
    """Synthesize a bell-like burst of decaying sine partials.

    Each partial starts at `volume * gain` and decays exponentially towards
    0.01 over `duration_seconds`. Returns mono float32 samples.
    """
    level = clamp_unit(volume)
    frames = max(1, int(round(duration_seconds * sample_rate_hz)))
    t = np.arange(frames, dtype=np.float64) / float(sample_rate_hz)
    wave = np.zeros(frames, dtype=np.float64)

    for frequency, gain in zip(NOTIFICATION_PARTIALS_HZ, NOTIFICATION_PARTIAL_GAINS):
        peak = level * gain
        if peak <= 0:
            continue
        envelope = _exponential_ramp(peak, NOTIFICATION_DECAY_FLOOR, t, duration_seconds)
        wave += envelope * np.sin(2.0 * np.pi * frequency * t)

    return wave.astype(np.float32)


def _exponential_ramp(
    start: float,
    end: float,
    t: np.ndarray,
    duration_seconds: float,
) -> np.ndarray:
    if start <= end:
        # Too quiet to decay towards the floor; fade linearly to silence.
        return np.linspace(start, 0.0, t.size)
    return start * np.power(end / start, t / duration_seconds)


def ambient_noise(
    kind: str,
    *,
    seconds: float,
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
    seed: Optional[int] = None,
) -> np.ndarray:
    """Generate a loopable noise bed of the given colour."""
    if kind not in NOISE_KINDS:
        raise ValueError(f"Unknown noise kind: {kind!r}")
    frames = max(1, int(round(seconds * sample_rate_hz)))
    rng = np.random.default_rng(seed)
    white = rng.standard_normal(frames)

    if kind == NOISE_WHITE:
        samples = white
    elif kind == NOISE_PINK:
        samples = _shape_spectrum(white, exponent=0.5)
    elif kind == NOISE_BROWN:
        samples = _shape_spectrum(white, exponent=1.0)
    else:
        samples = _rain(white, rng, sample_rate_hz)

    return make_loopable(_normalize(samples), sample_rate_hz)


def _shape_spectrum(white: np.ndarray, *, exponent: float) -> np.ndarray:
    spectrum = np.fft.rfft(white)
    freqs = np.arange(spectrum.size, dtype=np.float64)
    freqs[0] = 1.0
    spectrum /= np.power(freqs, exponent)
    spectrum[0] = 0.0
    return np.fft.irfft(spectrum, n=white.size)


def _rain(white: np.ndarray, rng: np.random.Generator, sample_rate_hz: int) -> np.ndarray:
    # Softened hiss with sparse louder droplets.
    kernel = np.ones(4) / 4.0
    hiss = np.convolve(white, kernel, mode="same")
    drops = np.zeros_like(white)
    drop_count = max(1, white.size // max(1, sample_rate_hz // 40))
    positions = rng.integers(0, white.size, size=drop_count)
    drops[positions] = rng.uniform(2.0, 5.0, size=drop_count)
    decay_frames = max(1, int(sample_rate_hz * 0.01))
    decay = np.exp(-np.arange(decay_frames) / max(1.0, sample_rate_hz * 0.002))
    drops = np.convolve(drops, decay, mode="same") * rng.standard_normal(white.size)
    return hiss + 0.3 * drops


def _normalize(samples: np.ndarray) -> np.ndarray:
    peak = float(np.max(np.abs(samples))) if samples.size else 0.0
    if peak <= 0:
        return samples.astype(np.float32)
    return (samples * (_NOISE_PEAK / peak)).astype(np.float32)


def make_loopable(samples: np.ndarray, sample_rate_hz: int) -> np.ndarray:
    """Crossfade the tail into the head so looping playback has no click."""
    fade = min(int(sample_rate_hz * _LOOP_CROSSFADE_SECONDS), samples.size // 4)
    if fade <= 0:
        return samples.astype(np.float32)
    ramp = np.linspace(0.0, 1.0, fade, dtype=np.float64)
    body = samples[: samples.size - fade].astype(np.float64)
    tail = samples[samples.size - fade :].astype(np.float64)
    body[:fade] = body[:fade] * ramp + tail * (1.0 - ramp)
    return body.astype(np.float32)


def resample(samples: np.ndarray, source_rate_hz: int, target_rate_hz: int) -> np.ndarray:
    """Linear-interpolation resampling of a mono buffer."""
    if source_rate_hz == target_rate_hz or samples.size == 0:
        return samples.astype(np.float32)
    duration = samples.size / float(source_rate_hz)
    target_frames = max(1, int(round(duration * target_rate_hz)))
    source_t = np.arange(samples.size) / float(source_rate_hz)
    target_t = np.arange(target_frames) / float(target_rate_hz)
    return np.interp(target_t, source_t, samples).astype(np.float32)
