class AudioError(Exception):
    """Base exception for ambient and notification audio."""


class AudioPlaybackBlocked(AudioError):
    """Raised when the output device refuses to start playback."""


class SoundConfigurationError(AudioError):
    """Raised when sound configuration is invalid."""
