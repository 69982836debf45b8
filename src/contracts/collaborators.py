"""Protocols describing the collaborators the session engine depends on."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

import numpy as np


class KeyValueStoreLike(Protocol):
    """String-keyed document store; one serialized document per key."""
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class ScheduledHandle(Protocol):
    """Handle for a repeating callback; `cancel()` is idempotent."""
    def cancel(self) -> None:
        ...


class SchedulerLike(Protocol):
    """Runs a callback repeatedly until its handle is cancelled."""
    def call_every(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        ...


class TrackPlayerLike(Protocol):
    """Looping playback of one ambient track."""
    volume: float

    @property
    def is_playing(self) -> bool:
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...


class AudioOutputLike(Protocol):
    """Audio device abstraction used by the ambient sound engine."""
    def create_track(
        self,
        name: str,
        samples: np.ndarray,
        sample_rate_hz: int,
    ) -> TrackPlayerLike:
        ...

    def play_tone(self, samples: np.ndarray, sample_rate_hz: int) -> None:
        ...
