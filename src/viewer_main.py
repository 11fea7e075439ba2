import logging
import sys
import threading
from typing import Optional, TextIO

from app_config import AppConfigurationError, load_app_config_or_defaults
from pomodoro.constants import PRESET_SECONDS
from server import BusServerConfig, ServerConfigurationError
from storage import JsonFileStore
from viewer import DisplayReconciler, DisplayState, ServiceClient
from viewer.messages import completion_text, status_line

HELP_TEXT = (
    "Commands: start | pause | reset | set <seconds> | 25 | 15 | 5 | 1s | "
    "jump <1-8> | ack | help | quit"
)

PRESET_ALIASES = {
    "25": PRESET_SECONDS[0],
    "15": PRESET_SECONDS[1],
    "5": PRESET_SECONDS[2],
    "1s": PRESET_SECONDS[3],
}


class TerminalDisplay:
    """Writes the countdown as a single status line on a text stream."""

    def __init__(self, stream: TextIO = sys.stdout):
        self._stream = stream
        self._lock = threading.Lock()

    def render(self, time_left: int, state: DisplayState) -> None:
        line = status_line(
            time_left,
            session_type=state.session_type,
            cycle_position=state.cycle_position,
            is_running=state.is_running,
        )
        with self._lock:
            self._stream.write(f"\r{line}   ")
            self._stream.flush()

    def show_completion(self, completed_session_type: str, next_session_type: str) -> None:
        text = completion_text(completed_session_type, next_session_type)
        with self._lock:
            self._stream.write(f"\n*** {text} Type 'ack' to start it. ***\n")
            self._stream.flush()


def dispatch_line(reconciler: DisplayReconciler, line: str) -> Optional[bool]:
    """Apply one typed command; returns False to quit, None when unrecognized."""
    parts = line.strip().lower().split()
    if not parts:
        return True
    command, args = parts[0], parts[1:]

    if command in ("quit", "exit", "q"):
        return False
    if command == "help":
        print(HELP_TEXT)
        return True
    if command == "start":
        reconciler.start()
        return True
    if command == "pause":
        reconciler.pause()
        return True
    if command == "reset":
        reconciler.reset()
        return True
    if command == "ack":
        reconciler.acknowledge_completion()
        return True
    if command in PRESET_ALIASES and not args:
        reconciler.apply_preset(PRESET_ALIASES[command])
        return True
    if command == "set" and len(args) == 1 and args[0].isdigit():
        reconciler.set_time(int(args[0]))
        return True
    if command == "jump" and len(args) == 1 and args[0].isdigit():
        reconciler.jump_to_position(int(args[0]))
        return True
    return None


def main() -> int:
    """Run an interactive terminal viewer against the timer service."""
    try:
        app_config = load_app_config_or_defaults()
        bus_config = BusServerConfig.from_settings(app_config.bus)
    except (AppConfigurationError, ServerConfigurationError) as error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=app_config.logging.level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger("viewer")

    client = ServiceClient(
        bus_config.url,
        open_timeout_seconds=app_config.viewer.connect_timeout_seconds,
        logger=logging.getLogger("viewer.client"),
    )
    reconciler = DisplayReconciler(
        TerminalDisplay(),
        store=JsonFileStore(app_config.store.path, logger=logging.getLogger("storage")),
        sender=client,
        drift_threshold_ms=app_config.viewer.drift_threshold_ms,
        refresh_interval_seconds=app_config.viewer.refresh_interval_seconds,
        logger=logger,
    )
    client.set_message_handler(reconciler.handle_message)

    print(HELP_TEXT)
    try:
        reconciler.initialize()
        for line in sys.stdin:
            outcome = dispatch_line(reconciler, line)
            if outcome is False:
                break
            if outcome is None:
                print(f"Unknown command: {line.strip()!r}. {HELP_TEXT}")
    except KeyboardInterrupt:
        pass
    finally:
        reconciler.close()
        client.close()
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
