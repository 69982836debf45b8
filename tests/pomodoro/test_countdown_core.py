import unittest

from pomodoro.countdown import CountdownTimer, display_seconds


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

    def fire(self) -> None:
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.callback()


class _FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountdownTimerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = _ManualScheduler()
        self.clock = _FakeClock()
        self.completions = []
        self.timer = CountdownTimer(
            duration_ms=10_000,
            scheduler=self.scheduler,
            on_complete=self.completions.append,
            tick_interval_seconds=0.1,
            monotonic_fn=self.clock,
        )

    def _elapse(self, seconds: float) -> None:
        self.clock.advance(seconds)
        self.scheduler.fire()

    def test_start_registers_repeating_tick(self) -> None:
        result = self.timer.start()

        self.assertTrue(result.accepted)
        self.assertTrue(result.snapshot.is_running)
        self.assertEqual(1, len(self.scheduler.active()))
        self.assertEqual(0.1, self.scheduler.active()[0].interval_seconds)

    def test_tick_subtracts_measured_elapsed_time(self) -> None:
        self.timer.start()

        # One late tick still reconciles the full elapsed wall time.
        self._elapse(2.5)

        snapshot = self.timer.snapshot()
        self.assertAlmostEqual(7_500.0, snapshot.remaining_ms)
        self.assertEqual(8, snapshot.display_seconds)

    def test_completion_fires_once_and_cancels_tick(self) -> None:
        self.timer.start()

        self._elapse(6.0)
        self._elapse(6.0)
        self._elapse(1.0)

        self.assertEqual(1, len(self.completions))
        self.assertTrue(self.completions[0].completed)
        self.assertEqual(0.0, self.completions[0].remaining_ms)
        self.assertFalse(self.timer.is_running)
        self.assertEqual([], self.scheduler.active())

    def test_pause_stops_time_from_counting(self) -> None:
        self.timer.start()
        self._elapse(3.0)

        result = self.timer.pause()
        self.clock.advance(60.0)

        self.assertTrue(result.accepted)
        self.assertEqual([], self.scheduler.active())
        self.assertAlmostEqual(7_000.0, self.timer.snapshot().remaining_ms)

        self.timer.start()
        self._elapse(1.0)
        self.assertAlmostEqual(6_000.0, self.timer.snapshot().remaining_ms)

    def test_start_rejected_when_running(self) -> None:
        self.timer.start()
        result = self.timer.start()

        self.assertFalse(result.accepted)
        self.assertEqual("already_running", result.reason)
        self.assertEqual(1, len(self.scheduler.active()))

    def test_start_rejected_after_expiry(self) -> None:
        self.timer.start()
        self._elapse(10.0)

        result = self.timer.start()

        self.assertFalse(result.accepted)
        self.assertEqual("expired", result.reason)

    def test_pause_rejected_when_not_running(self) -> None:
        result = self.timer.pause()
        self.assertFalse(result.accepted)
        self.assertEqual("not_running", result.reason)

    def test_reset_stops_and_restores_duration(self) -> None:
        self.timer.start()
        self._elapse(4.0)

        result = self.timer.reset(20_000)

        self.assertFalse(result.snapshot.is_running)
        self.assertFalse(result.snapshot.completed)
        self.assertEqual(20_000, result.snapshot.duration_ms)
        self.assertEqual(20_000.0, result.snapshot.remaining_ms)
        self.assertEqual([], self.scheduler.active())

    def test_stale_tick_from_previous_run_is_ignored(self) -> None:
        self.timer.start()
        stale = self.scheduler.handles[0]
        self.timer.pause()
        self.timer.start()

        self.clock.advance(1.0)
        stale.callback()

        self.assertAlmostEqual(10_000.0, self.timer.snapshot().remaining_ms)

    def test_negative_duration_clamps_to_zero(self) -> None:
        timer = CountdownTimer(duration_ms=-5, scheduler=self.scheduler)
        self.assertEqual(0, timer.snapshot().duration_ms)
        self.assertFalse(timer.start().accepted)


class DisplaySecondsTests(unittest.TestCase):
    def test_half_seconds_round_up(self) -> None:
        self.assertEqual(2, display_seconds(1_500))
        self.assertEqual(1, display_seconds(1_499))
        self.assertEqual(0, display_seconds(0))
        self.assertEqual(0, display_seconds(-200))


if __name__ == "__main__":
    unittest.main()
