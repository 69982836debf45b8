import json
import unittest

import numpy as np

from sound import AmbientSoundEngine, AudioPlaybackBlocked
from storage import MemoryKeyValueStore


class _RecordingTrack:
    def __init__(self, name: str):
        self.name = name
        self.volume = 0.0
        self.play_calls = 0
        self.fail_remaining = 0
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self) -> None:
        self.play_calls += 1
        if self.fail_remaining:
            self.fail_remaining -= 1
            raise AudioPlaybackBlocked("output refused to start")
        self._playing = True

    def pause(self) -> None:
        self._playing = False


class _RecordingOutput:
    def __init__(self):
        self.tracks: dict[str, _RecordingTrack] = {}
        self.tones: list[np.ndarray] = []
        self.block_tones = False

    def create_track(self, name, samples, sample_rate_hz):
        track = _RecordingTrack(name)
        self.tracks[name] = track
        return track

    def play_tone(self, samples, sample_rate_hz) -> None:
        if self.block_tones:
            raise AudioPlaybackBlocked("device busy")
        self.tones.append(samples)


class _ManualHandle:
    def __init__(self, callback, interval_seconds: float):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _ManualScheduler:
    def __init__(self):
        self.handles: list[_ManualHandle] = []

    def call_every(self, interval_seconds, callback):
        handle = _ManualHandle(callback, interval_seconds)
        self.handles.append(handle)
        return handle

    def active(self) -> list[_ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            for handle in list(self.handles):
                if not handle.cancelled:
                    handle.callback()


class AmbientSoundEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()
        self.output = _RecordingOutput()
        self.scheduler = _ManualScheduler()
        self.engine = self._build_engine()
        self.rain = self.output.tracks["rain"]

    def _build_engine(self) -> AmbientSoundEngine:
        silence = np.zeros(16, dtype=np.float32)
        return AmbientSoundEngine(
            output=self.output,
            scheduler=self.scheduler,
            tracks={"rain": silence, "forest": silence},
            store=self.store,
            sample_rate_hz=8000,
        )

    def test_toggle_fades_in_over_thirty_steps(self) -> None:
        self.assertTrue(self.engine.toggle("rain"))

        self.assertTrue(self.rain.is_playing)
        self.assertEqual(0.0, self.rain.volume)
        self.assertEqual(1, len(self.scheduler.active()))
        self.assertAlmostEqual(0.05, self.scheduler.active()[0].interval_seconds)

        self.scheduler.fire(15)
        self.assertAlmostEqual(0.25, self.rain.volume)

        self.scheduler.fire(15)
        self.assertAlmostEqual(0.5, self.rain.volume)
        self.assertEqual([], self.scheduler.active())

    def test_toggle_off_fades_out_then_pauses(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(30)

        self.engine.toggle("rain")
        self.assertAlmostEqual(0.05, self.scheduler.active()[0].interval_seconds)
        self.scheduler.fire(10)
        self.assertAlmostEqual(0.25, self.rain.volume)
        self.assertTrue(self.rain.is_playing)

        self.scheduler.fire(10)
        self.assertEqual(0.0, self.rain.volume)
        self.assertFalse(self.rain.is_playing)
        self.assertEqual([], self.scheduler.active())

    def test_new_fade_cancels_in_flight_fade(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(10)
        fade_in = self.scheduler.active()[0]

        self.engine.toggle("rain")

        self.assertTrue(fade_in.cancelled)
        self.assertEqual(1, len(self.scheduler.active()))
        self.scheduler.fire(20)
        self.assertFalse(self.rain.is_playing)

    def test_set_volume_retargets_running_fade_in(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(15)

        self.engine.set_volume("rain", 1.0)
        self.scheduler.fire(15)

        self.assertAlmostEqual(1.0, self.rain.volume)

    def test_set_volume_applies_live_and_persists_percent(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(30)

        self.assertTrue(self.engine.set_volume("rain", 0.8))

        self.assertAlmostEqual(0.8, self.rain.volume)
        self.assertEqual(
            {"rain": 80, "forest": 50},
            json.loads(self.store.get("ambientVolumes")),
        )

    def test_set_volume_clamps_and_rejects_unknown_track(self) -> None:
        self.engine.set_volume("forest", 1.7)

        self.assertEqual(1.0, self.engine.state("forest").volume)
        self.assertFalse(self.engine.set_volume("ocean", 0.3))
        self.assertFalse(self.engine.toggle("ocean"))

    def test_volumes_load_from_store(self) -> None:
        self.store.set("ambientVolumes", json.dumps({"rain": 20, "forest": "loud"}))

        engine = self._build_engine()

        self.assertAlmostEqual(0.2, engine.state("rain").volume)
        self.assertAlmostEqual(0.5, engine.state("forest").volume)

    def test_mute_all_disables_enabled_tracks(self) -> None:
        self.engine.toggle("rain")
        self.engine.toggle("forest")

        self.assertEqual(2, self.engine.mute_all())
        self.scheduler.fire(20)

        self.assertFalse(any(state.enabled for state in self.engine.states()))
        self.assertFalse(any(state.is_playing for state in self.engine.states()))
        self.assertEqual(0, self.engine.mute_all())

    def test_auto_play_follows_timer_running_state(self) -> None:
        self.engine.set_auto_play_with_timer(True)
        self.engine.toggle("rain")

        self.assertEqual(0, self.rain.play_calls)
        self.assertTrue(self.engine.state("rain").enabled)

        self.engine.set_timer_running(True)
        self.scheduler.fire(30)
        self.assertTrue(self.rain.is_playing)
        self.assertAlmostEqual(0.5, self.rain.volume)

        self.engine.set_timer_running(False)
        self.scheduler.fire(20)
        self.assertFalse(self.rain.is_playing)
        self.assertTrue(self.engine.state("rain").enabled)

    def test_timer_state_ignored_without_auto_play(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(30)

        self.engine.set_timer_running(False)
        self.engine.set_timer_running(True)
        self.engine.set_timer_running(False)

        self.assertTrue(self.rain.is_playing)
        self.assertEqual([], self.scheduler.active())

    def test_blocked_playback_is_retried_on_resume(self) -> None:
        self.rain.fail_remaining = 1

        with self.assertLogs("sound", level="WARNING"):
            self.engine.toggle("rain")

        state = self.engine.state("rain")
        self.assertTrue(state.enabled)
        self.assertTrue(state.blocked)
        self.assertFalse(state.is_playing)

        self.assertEqual(1, self.engine.resume())
        self.assertTrue(self.rain.is_playing)
        self.assertFalse(self.engine.state("rain").blocked)
        self.assertEqual(0, self.engine.resume())

    def test_play_notification_scales_with_notification_volume(self) -> None:
        self.assertTrue(self.engine.play_notification())

        peak = float(np.max(np.abs(self.output.tones[0])))
        self.assertGreater(peak, 0.1)
        self.assertLessEqual(peak, 0.45 + 1e-6)

    def test_muted_notification_plays_nothing(self) -> None:
        self.engine.set_notification_volume(0)

        self.assertFalse(self.engine.play_notification())
        self.assertEqual([], self.output.tones)

    def test_blocked_notification_is_swallowed(self) -> None:
        self.output.block_tones = True

        with self.assertLogs("sound", level="WARNING"):
            self.assertFalse(self.engine.play_notification())

    def test_preferences_persist_across_instances(self) -> None:
        self.engine.set_notification_volume(0.3)
        self.engine.set_auto_play_with_timer(True)

        self.assertEqual(
            {"notificationVolume": 30, "autoPlayWithTimer": True},
            json.loads(self.store.get("soundPreferences")),
        )
        engine = self._build_engine()
        self.assertAlmostEqual(0.3, engine.notification_volume)
        self.assertTrue(engine.auto_play_with_timer)

    def test_shutdown_pauses_tracks_and_cancels_fades(self) -> None:
        self.engine.toggle("rain")
        self.scheduler.fire(5)

        self.engine.shutdown()

        self.assertFalse(self.rain.is_playing)
        self.assertEqual([], self.scheduler.active())


if __name__ == "__main__":
    unittest.main()
