"""Ambient track mixer with scheduled fades and the completion notification."""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np

from contracts.collaborators import (
    AudioOutputLike,
    KeyValueStoreLike,
    ScheduledHandle,
    SchedulerLike,
    TrackPlayerLike,
)
from storage import PersistenceReadError, PersistenceWriteError, read_document, write_document

from .errors import AudioPlaybackBlocked
from .synth import DEFAULT_SAMPLE_RATE_HZ, clamp_unit, notification_tone

STORAGE_KEY_AMBIENT_VOLUMES = "ambientVolumes"
STORAGE_KEY_SOUND_PREFERENCES = "soundPreferences"

DEFAULT_TRACK_VOLUME = 0.5
DEFAULT_NOTIFICATION_VOLUME = 0.5
FADE_IN_STEPS = 30
FADE_OUT_STEPS = 20

_FADE_IN = "in"
_FADE_OUT = "out"


@dataclass(frozen=True)
class TrackState:
    name: str
    enabled: bool
    volume: float
    is_playing: bool
    blocked: bool


class _Fade:
    def __init__(self, direction: str, steps: int, start: float):
        self.direction = direction
        self.steps = steps
        self.start = start
        self.step = 0
        self.handle: Optional[ScheduledHandle] = None


class _Track:
    def __init__(self, name: str, player: TrackPlayerLike, volume: float):
        self.name = name
        self.player = player
        self.volume = volume
        self.enabled = False
        self.blocked = False
        self.fade: Optional[_Fade] = None


class AmbientSoundEngine:
    """Mixes looping ambient tracks and plays the session-complete bell.

    Each track keeps an intended-enabled flag separate from whether it is
    audible: with auto-play-with-timer on, enabled tracks only sound while
    the countdown runs. Volume changes and mode changes go through fades
    driven by the injected scheduler; starting a fade cancels the one in
    flight for that track.
    """

    def __init__(
        self,
        *,
        output: AudioOutputLike,
        scheduler: SchedulerLike,
        tracks: Mapping[str, np.ndarray],
        store: KeyValueStoreLike,
        sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
        fade_in_seconds: float = 1.5,
        fade_out_seconds: float = 1.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._output = output
        self._scheduler = scheduler
        self._store = store
        self._sample_rate_hz = sample_rate_hz
        self._fade_in_seconds = max(0.0, float(fade_in_seconds))
        self._fade_out_seconds = max(0.0, float(fade_out_seconds))
        self._logger = logger or logging.getLogger("sound")
        self._lock = threading.RLock()

        volumes = self._load_volumes()
        self._tracks: dict[str, _Track] = {}
        for name, samples in tracks.items():
            player = output.create_track(name, samples, sample_rate_hz)
            player.volume = 0.0
            self._tracks[name] = _Track(name, player, volumes.get(name, DEFAULT_TRACK_VOLUME))

        notification_volume, auto_play = self._load_preferences()
        self._notification_volume = notification_volume
        self._auto_play_with_timer = auto_play
        self._timer_running = False

    @property
    def track_names(self) -> tuple[str, ...]:
        return tuple(self._tracks)

    @property
    def notification_volume(self) -> float:
        with self._lock:
            return self._notification_volume

    @property
    def auto_play_with_timer(self) -> bool:
        with self._lock:
            return self._auto_play_with_timer

    def state(self, name: str) -> Optional[TrackState]:
        with self._lock:
            track = self._tracks.get(name)
            if track is None:
                return None
            return self._state_locked(track)

    def states(self) -> tuple[TrackState, ...]:
        with self._lock:
            return tuple(self._state_locked(track) for track in self._tracks.values())

    def toggle(self, name: str) -> bool:
        """Flip a track's intended state; returns False for unknown tracks."""
        with self._lock:
            track = self._tracks.get(name)
            if track is None:
                self._logger.info("Ignoring toggle for unknown track %s", name)
                return False
            track.enabled = not track.enabled
            self._logger.info(
                "Ambient track %s %s", name, "enabled" if track.enabled else "disabled"
            )
            self._sync_locked(track)
            return True

    def set_volume(self, name: str, volume: float) -> bool:
        with self._lock:
            track = self._tracks.get(name)
            if track is None:
                return False
            track.volume = clamp_unit(volume)
            fade = track.fade
            # An in-flight fade-in reads track.volume on every step.
            if fade is None and track.player.is_playing:
                track.player.volume = track.volume
            self._persist_volumes_locked()
            return True

    def mute_all(self) -> int:
        """Disable every enabled track; returns how many were turned off."""
        with self._lock:
            muted = 0
            for track in self._tracks.values():
                if track.enabled:
                    track.enabled = False
                    muted += 1
                    self._sync_locked(track)
            return muted

    def set_timer_running(self, running: bool) -> None:
        with self._lock:
            if self._timer_running == running:
                return
            self._timer_running = running
            if self._auto_play_with_timer:
                self._sync_all_locked()

    def set_auto_play_with_timer(self, enabled: bool) -> None:
        with self._lock:
            self._auto_play_with_timer = bool(enabled)
            self._persist_preferences_locked()
            self._sync_all_locked()

    def set_notification_volume(self, volume: float) -> float:
        with self._lock:
            self._notification_volume = clamp_unit(volume)
            self._persist_preferences_locked()
            return self._notification_volume

    def play_notification(self) -> bool:
        """Play the completion bell; returns False when nothing was played."""
        volume = self.notification_volume
        if volume <= 0:
            return False
        samples = notification_tone(volume, sample_rate_hz=self._sample_rate_hz)
        try:
            self._output.play_tone(samples, self._sample_rate_hz)
        except AudioPlaybackBlocked as error:
            self._logger.warning("Notification sound blocked: %s", error)
            return False
        return True

    def resume(self) -> int:
        """Retry tracks whose playback was blocked; returns how many retried."""
        with self._lock:
            blocked = [track for track in self._tracks.values() if track.blocked]
            for track in blocked:
                track.blocked = False
                self._sync_locked(track)
            return len(blocked)

    def shutdown(self) -> None:
        with self._lock:
            for track in self._tracks.values():
                self._cancel_fade_locked(track)
                if track.player.is_playing:
                    track.player.pause()

    def _state_locked(self, track: _Track) -> TrackState:
        return TrackState(
            name=track.name,
            enabled=track.enabled,
            volume=track.volume,
            is_playing=track.player.is_playing,
            blocked=track.blocked,
        )

    def _sync_all_locked(self) -> None:
        for track in self._tracks.values():
            self._sync_locked(track)

    def _sync_locked(self, track: _Track) -> None:
        should_play = track.enabled and (
            not self._auto_play_with_timer or self._timer_running
        )
        fade = track.fade
        if should_play:
            if fade is not None and fade.direction == _FADE_IN:
                return
            if fade is None and track.player.is_playing:
                track.player.volume = track.volume
                return
            self._fade_in_locked(track)
            return

        if fade is not None and fade.direction == _FADE_OUT:
            return
        if not track.player.is_playing:
            self._cancel_fade_locked(track)
            return
        self._fade_out_locked(track)

    def _fade_in_locked(self, track: _Track) -> None:
        self._cancel_fade_locked(track)
        track.player.volume = 0.0
        try:
            track.player.play()
        except AudioPlaybackBlocked as error:
            track.blocked = True
            self._logger.warning("Playback of %s blocked: %s", track.name, error)
            return
        track.blocked = False

        if self._fade_in_seconds <= 0:
            track.player.volume = track.volume
            return
        self._start_fade_locked(track, _Fade(_FADE_IN, FADE_IN_STEPS, 0.0), self._fade_in_seconds)

    def _fade_out_locked(self, track: _Track) -> None:
        self._cancel_fade_locked(track)
        if self._fade_out_seconds <= 0:
            track.player.volume = 0.0
            track.player.pause()
            return
        fade = _Fade(_FADE_OUT, FADE_OUT_STEPS, float(track.player.volume))
        self._start_fade_locked(track, fade, self._fade_out_seconds)

    def _start_fade_locked(self, track: _Track, fade: _Fade, seconds: float) -> None:
        track.fade = fade
        fade.handle = self._scheduler.call_every(
            seconds / fade.steps,
            functools.partial(self._fade_step, track.name, fade),
        )

    def _cancel_fade_locked(self, track: _Track) -> None:
        fade = track.fade
        track.fade = None
        if fade is not None and fade.handle is not None:
            fade.handle.cancel()

    def _fade_step(self, name: str, fade: _Fade) -> None:
        with self._lock:
            track = self._tracks[name]
            if track.fade is not fade:
                if fade.handle is not None:
                    fade.handle.cancel()
                return

            fade.step += 1
            fraction = min(1.0, fade.step / fade.steps)
            if fade.direction == _FADE_IN:
                track.player.volume = track.volume * fraction
            else:
                track.player.volume = fade.start * (1.0 - fraction)

            if fade.step < fade.steps:
                return
            self._cancel_fade_locked(track)
            if fade.direction == _FADE_OUT:
                track.player.pause()

    def _load_volumes(self) -> dict[str, float]:
        raw = self._load(STORAGE_KEY_AMBIENT_VOLUMES)
        if not isinstance(raw, dict):
            return {}
        volumes: dict[str, float] = {}
        for name, value in raw.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            volumes[str(name)] = clamp_unit(value / 100.0)
        return volumes

    def _load_preferences(self) -> tuple[float, bool]:
        raw = self._load(STORAGE_KEY_SOUND_PREFERENCES)
        volume = DEFAULT_NOTIFICATION_VOLUME
        auto_play = False
        if isinstance(raw, dict):
            stored = raw.get("notificationVolume")
            if isinstance(stored, (int, float)) and not isinstance(stored, bool):
                volume = clamp_unit(stored / 100.0)
            if isinstance(raw.get("autoPlayWithTimer"), bool):
                auto_play = raw["autoPlayWithTimer"]
        return volume, auto_play

    def _persist_volumes_locked(self) -> None:
        document = {name: _percent(track.volume) for name, track in self._tracks.items()}
        self._persist(STORAGE_KEY_AMBIENT_VOLUMES, document)

    def _persist_preferences_locked(self) -> None:
        self._persist(
            STORAGE_KEY_SOUND_PREFERENCES,
            {
                "notificationVolume": _percent(self._notification_volume),
                "autoPlayWithTimer": self._auto_play_with_timer,
            },
        )

    def _load(self, key: str) -> Any:
        try:
            return read_document(self._store, key)
        except PersistenceReadError as error:
            self._logger.warning("Falling back to default %s: %s", key, error)
            return None

    def _persist(self, key: str, document: dict[str, Any]) -> None:
        try:
            write_document(self._store, key, document)
        except PersistenceWriteError as error:
            self._logger.error("Failed to persist %s: %s", key, error)


def _percent(volume: float) -> int:
    return int(clamp_unit(volume) * 100 + 0.5)
