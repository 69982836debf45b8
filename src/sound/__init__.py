from .ambient import AmbientSoundEngine, TrackState
from .config import DEFAULT_TRACK_NAMES, SoundConfig
from .errors import AudioError, AudioPlaybackBlocked, SoundConfigurationError
from .library import build_track_sources, load_wav
from .output import NullAudioOutput, SoundDeviceAudioOutput

__all__ = [
    "AmbientSoundEngine",
    "AudioError",
    "AudioPlaybackBlocked",
    "DEFAULT_TRACK_NAMES",
    "NullAudioOutput",
    "SoundConfig",
    "SoundConfigurationError",
    "SoundDeviceAudioOutput",
    "TrackState",
    "build_track_sources",
    "load_wav",
]
