import logging
import signal
import sys
from queue import Queue
from typing import Optional

from app_config import AppConfigurationError, load_app_config_or_defaults
from pomodoro import TimerService
from runtime import (
    BroadcastCompletionNotifier,
    QueueEventPublisher,
    ServiceRuntime,
    ThreadingAlarms,
)
from server import BusServer, BusServerConfig, ServerConfigurationError
from storage import JsonFileStore


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("pomodoro_service")


def setup_signal_handlers(publisher: QueueEventPublisher) -> None:
    """Set up graceful shutdown on SIGTERM and SIGINT."""

    def signal_handler(signum: int, frame) -> None:
        publisher.stop(signal.Signals(signum).name)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)


def main() -> int:
    """Run the authoritative timer service."""
    try:
        app_config = load_app_config_or_defaults()
    except AppConfigurationError as error:
        setup_logging()
        logging.getLogger("pomodoro_service").error("App configuration error: %s", error)
        return 1

    logger = setup_logging(level=app_config.logging.level)
    if app_config.source_file:
        logger.info("Loaded runtime config: %s", app_config.source_file)

    try:
        bus_config = BusServerConfig.from_settings(app_config.bus)
    except ServerConfigurationError as error:
        logger.error("Bus configuration error: %s", error)
        return 1

    event_queue: Queue = Queue()
    publisher = QueueEventPublisher(event_queue)
    alarms = ThreadingAlarms(publisher.alarm_fired, logger=logging.getLogger("alarms"))
    store = JsonFileStore(app_config.store.path, logger=logging.getLogger("storage"))
    logger.info("Persisting timer state to %s", store.path)

    bus: Optional[BusServer] = None
    if bus_config.enabled:
        bus = BusServer(
            config=bus_config,
            on_command=publisher.command_received,
            logger=logging.getLogger("bus_server"),
        )
        try:
            logger.info("Starting bus server...")
            bus.start(timeout_seconds=5.0)
        except RuntimeError as error:
            logger.error("Bus server startup failed: %s", error)
            return 1
        store.add_listener(bus.relay_store_change)
    else:
        logger.warning("Bus disabled; viewers can only follow the store file.")

    service = TimerService(
        store=store,
        alarms=alarms,
        bus=bus,
        notifier=BroadcastCompletionNotifier(bus, logger=logging.getLogger("pomodoro.notifier")),
        sync_interval_seconds=app_config.timer.sync_interval_seconds,
        logger=logging.getLogger("pomodoro"),
    )
    runtime = ServiceRuntime(
        service,
        event_queue,
        logger=logging.getLogger("pomodoro.runtime"),
    )
    setup_signal_handlers(publisher)

    try:
        return runtime.run()
    finally:
        alarms.close()
        if bus is not None:
            bus.stop()
        logger.info("Timer service stopped")


if __name__ == "__main__":
    sys.exit(main())
