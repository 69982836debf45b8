import argparse
import logging
import signal
import sys
import threading
from typing import Callable, Optional

from app_config import AppConfigurationError, load_app_config
from ledger import HistoryLedger, TaskLedger
from pomodoro import SessionMachine, SessionSettingsStore
from runtime import RuntimeBootstrap, RuntimeEngine, RuntimeHooks, ThreadScheduler
from sound import (
    AmbientSoundEngine,
    NullAudioOutput,
    SoundConfig,
    SoundConfigurationError,
    SoundDeviceAudioOutput,
    build_track_sources,
)
from storage import FileKeyValueStore


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("pomodoro_app")


def setup_signal_handlers(request_stop: Callable[[], None]) -> None:
    """Set up graceful shutdown on SIGTERM and SIGINT."""

    def signal_handler(signum: int, frame) -> None:
        signal_name = signal.Signals(signum).name
        print(f"\n👋 {signal_name} received, stopping...\n")
        request_stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def start_stdin_reader(
    submit: Callable[[str], None],
    on_eof: Callable[[], None],
) -> None:
    """Forward stdin lines to the runtime from a daemon thread."""

    def read_lines() -> None:
        for line in sys.stdin:
            submit(line)
        on_eof()

    threading.Thread(target=read_lines, name="stdin-reader", daemon=True).start()


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Terminal pomodoro timer with ambient sound.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.toml (defaults to $APP_CONFIG_FILE or ./config.toml).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Run the pomodoro terminal runtime."""
    args = _parse_args(argv)
    logger = setup_logging(level=logging.INFO)

    try:
        app_config = load_app_config(args.config)
    except AppConfigurationError as error:
        logger.error("App configuration error: %s", error)
        return 1
    logging.getLogger().setLevel(app_config.logging.level)
    if app_config.source_file:
        logger.info("Loaded runtime config: %s", app_config.source_file)
    else:
        logger.info("No config file found; using defaults")

    store = FileKeyValueStore(
        app_config.storage.data_dir,
        logger=logging.getLogger("storage"),
    )
    logger.info("Storing data in %s", store.data_dir)
    scheduler = ThreadScheduler(logger=logging.getLogger("runtime.scheduler"))

    try:
        sound_config = SoundConfig.from_settings(app_config.sound)
        track_sources = build_track_sources(sound_config, logger=logging.getLogger("sound"))
    except SoundConfigurationError as error:
        logger.error("Sound configuration error: %s", error)
        return 1

    if sound_config.enabled:
        audio_output = SoundDeviceAudioOutput(
            output_device_index=sound_config.output_device_index,
            logger=logging.getLogger("sound.output"),
        )
    else:
        audio_output = NullAudioOutput(logger=logging.getLogger("sound.output"))
        logger.info("Sound disabled")

    sound = AmbientSoundEngine(
        output=audio_output,
        scheduler=scheduler,
        tracks=track_sources,
        store=store,
        sample_rate_hz=sound_config.sample_rate_hz,
        fade_in_seconds=sound_config.fade_in_seconds,
        fade_out_seconds=sound_config.fade_out_seconds,
        logger=logging.getLogger("sound"),
    )

    history = HistoryLedger(store, logger=logging.getLogger("ledger.history"))
    tasks = TaskLedger(store, logger=logging.getLogger("ledger.tasks"))
    machine = SessionMachine(
        settings=SessionSettingsStore(store, logger=logging.getLogger("pomodoro.settings")),
        history=history,
        tasks=tasks,
        scheduler=scheduler,
        tick_interval_seconds=app_config.countdown.tick_interval_seconds,
        logger=logging.getLogger("pomodoro"),
    )

    engine = RuntimeEngine(
        RuntimeBootstrap(
            logger=logging.getLogger("runtime"),
            app_config=app_config,
            machine=machine,
            tasks=tasks,
            history=history,
            sound=sound,
            hooks=RuntimeHooks(
                setup_signal_handlers=setup_signal_handlers,
                start_input_reader=start_stdin_reader,
                output=print,
            ),
        )
    )
    return engine.run()


if __name__ == "__main__":
    sys.exit(main())
