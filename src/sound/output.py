"""Sounddevice-backed playback for looping ambient tracks and one-shot tones."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from .errors import AudioPlaybackBlocked


class SoundDeviceTrack:
    """Loops a mono buffer through its own output stream, scaled by `volume`."""

    def __init__(
        self,
        name: str,
        samples: np.ndarray,
        sample_rate_hz: int,
        *,
        output_device_index: Optional[int] = None,
        blocksize: int = 2048,
        logger: Optional[logging.Logger] = None,
    ):
        if samples.ndim != 1:
            raise ValueError("Expected mono PCM array for ambient track")
        if len(samples) == 0:
            raise ValueError(f"Ambient track {name!r} has an empty buffer")

        self.name = name
        self.volume = 0.0
        self._samples = samples.astype(np.float32)
        self._sample_rate_hz = sample_rate_hz
        self._output_device_index = output_device_index
        self._blocksize = blocksize
        self._logger = logger or logging.getLogger("sound.output")
        self._lock = threading.Lock()
        self._stream: Optional[sd.OutputStream] = None
        self._position = 0

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._stream is not None

    def play(self) -> None:
        with self._lock:
            if self._stream is not None:
                return
            try:
                stream = sd.OutputStream(
                    channels=1,
                    samplerate=self._sample_rate_hz,
                    blocksize=self._blocksize,
                    dtype="float32",
                    callback=self._callback,
                    device=self._output_device_index,
                )
                stream.start()
            except sd.PortAudioError as error:
                raise AudioPlaybackBlocked(
                    f"Could not start ambient track {self.name!r}: {error}"
                ) from error
            self._stream = stream

    def pause(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as error:
            self._logger.warning("Failed to stop ambient track %s: %s", self.name, error)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            self._logger.warning("Sounddevice status: %s", status)
        total = len(self._samples)
        indices = (self._position + np.arange(frames)) % total
        outdata[:, 0] = self._samples[indices] * float(self.volume)
        self._position = (self._position + frames) % total


class SoundDeviceAudioOutput:
    """Creates ambient tracks and plays one-shot tones on a sounddevice output."""

    def __init__(
        self,
        output_device_index: Optional[int] = None,
        blocksize: int = 2048,
        logger: Optional[logging.Logger] = None,
    ):
        self._output_device_index = output_device_index
        self._blocksize = blocksize
        self._logger = logger or logging.getLogger("sound.output")
        self._lock = threading.Lock()
        self._active_tones: set[sd.OutputStream] = set()

    def create_track(
        self,
        name: str,
        samples: np.ndarray,
        sample_rate_hz: int,
    ) -> SoundDeviceTrack:
        return SoundDeviceTrack(
            name,
            samples,
            sample_rate_hz,
            output_device_index=self._output_device_index,
            blocksize=self._blocksize,
            logger=self._logger,
        )

    def play_tone(self, samples: np.ndarray, sample_rate_hz: int) -> None:
        """Start playing `samples` once without blocking the caller."""
        if samples.ndim != 1:
            raise ValueError("Expected mono PCM array for playback")
        if len(samples) == 0:
            return

        wav = samples.astype(np.float32)
        pos = 0

        def callback(outdata, frames, time_info, status):
            nonlocal pos
            if status:
                self._logger.warning("Sounddevice status: %s", status)

            end = pos + frames
            chunk = wav[pos:end]

            if len(chunk) < frames:
                outdata[: len(chunk), 0] = chunk
                outdata[len(chunk) :, 0] = 0
                raise sd.CallbackStop()

            outdata[:, 0] = chunk
            pos = end

        stream: Optional[sd.OutputStream] = None

        def finished() -> None:
            with self._lock:
                self._active_tones.discard(stream)

        try:
            stream = sd.OutputStream(
                channels=1,
                samplerate=sample_rate_hz,
                blocksize=self._blocksize,
                dtype="float32",
                callback=callback,
                finished_callback=finished,
                device=self._output_device_index,
            )
            with self._lock:
                self._active_tones.add(stream)
            stream.start()
        except sd.PortAudioError as error:
            if stream is not None:
                with self._lock:
                    self._active_tones.discard(stream)
            raise AudioPlaybackBlocked(f"Notification playback failed: {error}") from error


class _SilentTrack:
    def __init__(self, name: str):
        self.name = name
        self.volume = 0.0
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self) -> None:
        self._playing = True

    def pause(self) -> None:
        self._playing = False


class NullAudioOutput:
    """Output used when sound is disabled; tracks keep state but stay silent."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("sound.output")

    def create_track(self, name: str, samples: np.ndarray, sample_rate_hz: int) -> _SilentTrack:
        return _SilentTrack(name)

    def play_tone(self, samples: np.ndarray, sample_rate_hz: int) -> None:
        self._logger.debug("Sound disabled; skipping tone of %d samples", len(samples))
