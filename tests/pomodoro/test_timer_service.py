import logging
import unittest
from typing import Any, Optional

from contracts.ui_protocol import ALARM_SYNC, ALARM_TIMER, STORE_KEY
from pomodoro import (
    GetState,
    JumpToPosition,
    SessionCompleted,
    SetTime,
    StartTimer,
    StateSync,
    StoreError,
    TimerService,
    parse_command,
)
from storage import MemoryStore

T0 = 1_700_000_000_000


class ManualClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingAlarms:
    def __init__(self):
        self.scheduled: dict[str, int] = {}
        self.periodic: dict[str, int] = {}
        self.cancelled: list[str] = []

    def schedule_at(self, name: str, when_ms: int) -> None:
        self.scheduled[name] = when_ms

    def schedule_every(self, name: str, period_ms: int) -> None:
        self.periodic[name] = period_ms

    def cancel(self, name: str) -> None:
        self.cancelled.append(name)
        self.scheduled.pop(name, None)


class RecordingBus:
    def __init__(self):
        self.messages: list[Any] = []

    def broadcast(self, message) -> None:
        self.messages.append(message)

    def syncs(self) -> list[StateSync]:
        return [m for m in self.messages if isinstance(m, StateSync)]


class RecordingNotifier:
    def __init__(self):
        self.events: list[SessionCompleted] = []

    def open(self, event: SessionCompleted) -> None:
        self.events.append(event)


class FailingNotifier:
    def open(self, event: SessionCompleted) -> None:
        raise RuntimeError("no display")


class FlakyStore(MemoryStore):
    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.set_attempts = 0

    def set(self, key: str, value: dict[str, Any]) -> None:
        self.set_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise StoreError("disk full")
        super().set(key, value)


def _build(
    *,
    clock: Optional[ManualClock] = None,
    store: Optional[MemoryStore] = None,
    notifier=None,
):
    clock = clock or ManualClock()
    store = store if store is not None else MemoryStore()
    alarms = RecordingAlarms()
    bus = RecordingBus()
    notifier = notifier if notifier is not None else RecordingNotifier()
    service = TimerService(
        store=store,
        alarms=alarms,
        bus=bus,
        notifier=notifier,
        clock=clock,
        logger=logging.getLogger("test.pomodoro"),
    )
    return service, clock, store, alarms, bus, notifier


class TimerServiceCommandTests(unittest.TestCase):
    def test_start_fixes_deadline_and_schedules_completion_alarm(self) -> None:
        service, clock, store, alarms, bus, _ = _build()

        result = service.start()

        self.assertTrue(result.accepted)
        self.assertEqual("started", result.reason)
        self.assertTrue(result.state.is_running)
        self.assertEqual(T0 + 1_500_000, result.state.end_time)
        self.assertEqual(T0 + 1_500_000, alarms.scheduled[ALARM_TIMER])

        record = store.get(STORE_KEY)
        self.assertTrue(record["isRunning"])
        self.assertEqual(T0 + 1_500_000, record["endTime"])
        self.assertEqual(T0, record["lastSaveTime"])
        self.assertEqual(T0 + 1_500_000, bus.syncs()[-1].end_time)

    def test_start_rejected_while_running(self) -> None:
        service, *_ = _build()
        service.start()

        result = service.start()

        self.assertFalse(result.accepted)
        self.assertEqual("already_running", result.reason)

    def test_pause_resume_keeps_remaining_exact(self) -> None:
        service, clock, store, alarms, _, _ = _build()
        service.set_time(100)
        service.start()

        clock.advance(30_000)
        paused = service.pause()

        self.assertTrue(paused.accepted)
        self.assertFalse(paused.state.is_running)
        self.assertIsNone(paused.state.end_time)
        self.assertEqual(70, paused.state.time_left)
        self.assertNotIn(ALARM_TIMER, alarms.scheduled)
        self.assertEqual(T0 + 30_000, store.get(STORE_KEY)["pausedAt"])

        clock.advance(5_000)
        self.assertEqual(70, service.remaining())
        resumed = service.start()

        self.assertTrue(resumed.accepted)
        self.assertEqual(clock.now + 70_000, resumed.state.end_time)
        self.assertIsNone(resumed.state.paused_at)
        self.assertEqual(5.0, resumed.state.paused_duration)

        clock.advance(10_000)
        self.assertEqual(60, service.remaining())

    def test_remaining_rounds_partial_seconds_up(self) -> None:
        service, clock, *_ = _build()
        service.set_time(10)
        service.start()

        clock.advance(200)
        self.assertEqual(10, service.remaining())
        clock.advance(800)
        self.assertEqual(9, service.remaining())
        clock.advance(60_000)
        self.assertEqual(0, service.remaining())

    def test_pause_rejected_when_not_running(self) -> None:
        service, *_ = _build()
        result = service.pause()
        self.assertFalse(result.accepted)
        self.assertEqual("not_running", result.reason)

    def test_reset_restores_default_work_session(self) -> None:
        service, clock, store, alarms, _, _ = _build()
        service.jump_to_position(4)
        service.start()

        result = service.reset()

        self.assertTrue(result.accepted)
        self.assertFalse(result.state.is_running)
        self.assertEqual(1500, result.state.time_left)
        self.assertEqual("work", result.state.session_type)
        self.assertEqual(1, result.state.cycle_position)
        self.assertIn(ALARM_TIMER, alarms.cancelled)
        self.assertEqual(1, store.get(STORE_KEY)["cyclePosition"])

    def test_set_time_rejected_while_running_or_not_positive(self) -> None:
        service, *_ = _build()

        self.assertEqual("invalid_seconds", service.set_time(0).reason)
        self.assertEqual("invalid_seconds", service.set_time(-5).reason)
        self.assertEqual("invalid_seconds", service.set_time(True).reason)

        service.start()
        result = service.set_time(60)
        self.assertFalse(result.accepted)
        self.assertEqual("already_running", result.reason)
        self.assertEqual(1500, result.state.time_left)

    def test_set_time_updates_idle_duration(self) -> None:
        service, _, store, _, _, _ = _build()

        result = service.set_time(42)

        self.assertTrue(result.accepted)
        self.assertEqual(42, result.state.time_left)
        self.assertEqual(42, store.get(STORE_KEY)["timeLeft"])

    def test_set_time_and_reset_stops_running_timer(self) -> None:
        service, *_ = _build()
        service.jump_to_position(3)
        service.start()

        result = service.set_time_and_reset(90)

        self.assertTrue(result.accepted)
        self.assertFalse(result.state.is_running)
        self.assertEqual(90, result.state.time_left)
        self.assertEqual(1, result.state.cycle_position)
        self.assertEqual("work", result.state.session_type)

    def test_jump_to_position_creates_idle_session(self) -> None:
        service, _, store, alarms, _, _ = _build()
        service.start()

        result = service.jump_to_position(8)

        self.assertTrue(result.accepted)
        self.assertFalse(result.state.is_running)
        self.assertEqual("longBreak", result.state.session_type)
        self.assertEqual(900, result.state.time_left)
        self.assertNotIn(ALARM_TIMER, alarms.scheduled)
        self.assertEqual("longBreak", store.get(STORE_KEY)["sessionType"])

    def test_jump_to_position_rejects_out_of_range(self) -> None:
        service, *_ = _build()
        for position in (0, 9, -1, True):
            result = service.jump_to_position(position)
            self.assertFalse(result.accepted)
            self.assertEqual("invalid_position", result.reason)
        self.assertEqual(1, service.state.cycle_position)

    def test_get_state_rebroadcasts_without_changing_state(self) -> None:
        service, _, _, _, bus, _ = _build()
        before = len(bus.syncs())

        result = service.get_state()

        self.assertTrue(result.accepted)
        self.assertEqual(before + 1, len(bus.syncs()))
        self.assertEqual(1500, bus.syncs()[-1].time_left)

    def test_handle_command_dispatches_parsed_payloads(self) -> None:
        service, *_ = _build()

        service.handle_command(parse_command({"type": "SET_TIME", "timeLeft": 60}))
        self.assertEqual(60, service.state.time_left)

        service.handle_command(JumpToPosition(position=2))
        self.assertEqual("shortBreak", service.state.session_type)

        self.assertEqual("get_state", service.handle_command(GetState()).action)
        self.assertTrue(service.handle_command(StartTimer()).state.is_running)
        self.assertEqual("already_running", service.handle_command(SetTime(time_left=5)).reason)

    def test_bus_failure_does_not_break_commands(self) -> None:
        class BrokenBus:
            def broadcast(self, message) -> None:
                raise ConnectionError("no listeners")

        service = TimerService(
            store=MemoryStore(),
            alarms=RecordingAlarms(),
            bus=BrokenBus(),
            clock=ManualClock(),
        )

        self.assertTrue(service.start().accepted)


class TimerServiceCompletionTests(unittest.TestCase):
    def test_completion_advances_cycle_and_notifies(self) -> None:
        service, clock, store, alarms, _, notifier = _build()
        service.start()

        clock.advance(1_500_000)
        result = service.on_completion_alarm()

        self.assertTrue(result.accepted)
        self.assertEqual("completed", result.reason)
        self.assertFalse(result.state.is_running)
        self.assertEqual("shortBreak", result.state.session_type)
        self.assertEqual(2, result.state.cycle_position)
        self.assertEqual(300, result.state.time_left)
        self.assertIsNone(result.state.end_time)
        self.assertEqual(
            [SessionCompleted("work", "shortBreak", 2)],
            notifier.events,
        )
        record = store.get(STORE_KEY)
        self.assertEqual(2, record["cyclePosition"])
        self.assertFalse(record["isRunning"])

    def test_position_seven_completion_leads_to_long_break(self) -> None:
        service, clock, *_ = _build()
        service.jump_to_position(7)
        service.start()

        clock.advance(1_500_000)
        result = service.handle_alarm(ALARM_TIMER)

        self.assertEqual(8, result.state.cycle_position)
        self.assertEqual("longBreak", result.state.session_type)
        self.assertEqual(900, result.state.time_left)

    def test_long_break_completion_wraps_to_first_position(self) -> None:
        service, clock, *_ = _build()
        service.jump_to_position(8)
        service.start()

        clock.advance(900_000)
        result = service.on_completion_alarm()

        self.assertEqual(1, result.state.cycle_position)
        self.assertEqual("work", result.state.session_type)
        self.assertEqual(1500, result.state.time_left)

    def test_duplicate_completion_alarm_is_ignored(self) -> None:
        service, clock, _, _, _, notifier = _build()
        service.start()
        clock.advance(1_500_000)
        service.on_completion_alarm()

        result = service.on_completion_alarm()

        self.assertFalse(result.accepted)
        self.assertEqual("not_running", result.reason)
        self.assertEqual(2, result.state.cycle_position)
        self.assertEqual(1, len(notifier.events))

    def test_stale_alarm_after_pause_is_ignored(self) -> None:
        service, clock, *_ = _build()
        service.start()
        clock.advance(10_000)
        service.pause()

        clock.advance(1_500_000)
        result = service.on_completion_alarm()

        self.assertFalse(result.accepted)
        self.assertEqual(1, result.state.cycle_position)

    def test_early_alarm_rearms_for_deadline(self) -> None:
        service, clock, _, alarms, _, notifier = _build()
        service.start()
        alarms.scheduled.clear()

        clock.advance(1_000_000)
        result = service.on_completion_alarm()

        self.assertFalse(result.accepted)
        self.assertEqual("not_due", result.reason)
        self.assertEqual(T0 + 1_500_000, alarms.scheduled[ALARM_TIMER])
        self.assertEqual([], notifier.events)

    def test_notifier_failure_still_advances_cycle(self) -> None:
        service, clock, *_ = _build(notifier=FailingNotifier())
        service.start()
        clock.advance(1_500_000)

        with self.assertLogs("test.pomodoro", level="ERROR"):
            result = service.on_completion_alarm()

        self.assertTrue(result.accepted)
        self.assertEqual(2, result.state.cycle_position)

    def test_sync_tick_broadcasts_current_remaining(self) -> None:
        service, clock, _, _, bus, _ = _build()
        service.start()
        clock.advance(61_500)

        sync = service.handle_alarm(ALARM_SYNC)

        self.assertIsNone(sync)
        latest = bus.syncs()[-1]
        self.assertEqual(1439, latest.time_left)
        self.assertTrue(latest.is_running)
        self.assertEqual(T0 + 1_500_000, latest.end_time)

    def test_unknown_alarm_is_ignored(self) -> None:
        service, *_ = _build()
        self.assertIsNone(service.handle_alarm("somethingElse"))


class TimerServiceRestoreTests(unittest.TestCase):
    def _persist_running_session(self, store: MemoryStore) -> int:
        first, *_ = _build(store=store)
        first.start()
        return first.state.end_time

    def test_initialize_without_record_persists_defaults_and_arms_sync(self) -> None:
        service, _, store, alarms, _, _ = _build()

        result = service.initialize()

        self.assertFalse(result.accepted)
        self.assertEqual("nothing_persisted", result.reason)
        self.assertEqual(30_000, alarms.periodic[ALARM_SYNC])
        self.assertEqual(1500, store.get(STORE_KEY)["timeLeft"])

    def test_restore_before_deadline_reschedules_alarm(self) -> None:
        store = MemoryStore()
        end_time = self._persist_running_session(store)

        service, _, _, alarms, _, _ = _build(
            clock=ManualClock(end_time - 5_000),
            store=store,
        )
        result = service.initialize()

        self.assertTrue(result.accepted)
        self.assertEqual("restored", result.reason)
        self.assertTrue(result.state.is_running)
        self.assertEqual(5, result.state.time_left)
        self.assertEqual(end_time, alarms.scheduled[ALARM_TIMER])
        self.assertEqual(5, service.remaining())

    def test_restore_after_deadline_completes_session(self) -> None:
        store = MemoryStore()
        end_time = self._persist_running_session(store)

        service, _, _, _, _, notifier = _build(
            clock=ManualClock(end_time + 5_000),
            store=store,
        )
        result = service.initialize()

        self.assertEqual("completed", result.action)
        self.assertEqual(2, result.state.cycle_position)
        self.assertEqual("shortBreak", result.state.session_type)
        self.assertEqual(300, store.get(STORE_KEY)["timeLeft"])
        self.assertEqual(1, len(notifier.events))

    def test_restore_paused_record_keeps_remaining(self) -> None:
        store = MemoryStore()
        first, clock, *_ = _build(store=store)
        first.start()
        clock.advance(20_000)
        first.pause()

        service, *_ = _build(clock=ManualClock(clock.now + 3_600_000), store=store)
        result = service.restore()

        self.assertFalse(result.state.is_running)
        self.assertEqual(1480, result.state.time_left)
        self.assertEqual(1480, service.remaining())

    def test_legacy_running_record_reconstructs_deadline(self) -> None:
        store = MemoryStore()
        store.set(STORE_KEY, {"timeLeft": 600, "isRunning": True, "lastSaveTime": T0})

        service, _, _, alarms, _, _ = _build(clock=ManualClock(T0 + 100_000), store=store)
        service.restore()

        self.assertEqual(500, service.remaining())
        self.assertEqual(T0 + 600_000, alarms.scheduled[ALARM_TIMER])

    def test_legacy_record_without_save_time_restores_stopped(self) -> None:
        store = MemoryStore()
        store.set(STORE_KEY, {"timeLeft": 600, "isRunning": True})

        service, *_ = _build(store=store)
        result = service.restore()

        self.assertFalse(result.state.is_running)
        self.assertEqual(600, result.state.time_left)

    def test_invalid_record_falls_back_to_defaults(self) -> None:
        store = MemoryStore()
        store.set(STORE_KEY, {"timeLeft": "soon", "isRunning": False})

        service, *_ = _build(store=store)
        with self.assertLogs("test.pomodoro", level="WARNING"):
            result = service.restore()

        self.assertFalse(result.accepted)
        self.assertEqual(1500, result.state.time_left)


class TimerServiceStoreFailureTests(unittest.TestCase):
    def test_write_is_retried_once(self) -> None:
        store = FlakyStore(failures=1)
        service, *_ = _build(store=store)

        service.set_time(77)

        self.assertEqual(2, store.set_attempts)
        self.assertEqual(77, store.get(STORE_KEY)["timeLeft"])

    def test_persistent_write_failure_is_logged_and_state_kept(self) -> None:
        store = FlakyStore(failures=10)
        service, *_ = _build(store=store)

        with self.assertLogs("test.pomodoro", level="ERROR"):
            result = service.set_time(77)

        self.assertTrue(result.accepted)
        self.assertEqual(77, service.state.time_left)
        self.assertIsNone(store.get(STORE_KEY))


if __name__ == "__main__":
    unittest.main()
