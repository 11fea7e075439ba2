import datetime as dt
import json
import unittest

from server.events import MessageDecodeError, StickyEventStore, decode_message, encode_event


class ServerEventsTests(unittest.TestCase):
    def test_encode_event_serializes_timestamp_and_payload(self) -> None:
        now = dt.datetime(2026, 2, 21, 10, 0, tzinfo=dt.timezone.utc)
        raw = encode_event({"type": "STATE_SYNC", "timeLeft": 12}, now_fn=lambda: now)
        payload = json.loads(raw)

        self.assertEqual("STATE_SYNC", payload["type"])
        self.assertEqual(now.isoformat(), payload["timestamp"])
        self.assertEqual(12, payload["timeLeft"])

    def test_encode_event_requires_type(self) -> None:
        with self.assertRaises(ValueError):
            encode_event({"timeLeft": 12})

    def test_decode_message_rejects_untagged_frames(self) -> None:
        for raw in ("not json", "[1]", '{"timeLeft": 1}', '{"type": 5}'):
            with self.subTest(raw=raw):
                with self.assertRaises(MessageDecodeError):
                    decode_message(raw)

    def test_decode_message_accepts_bytes(self) -> None:
        self.assertEqual({"type": "GET_STATE"}, decode_message(b'{"type": "GET_STATE"}'))

    def test_sticky_store_ignores_non_sticky_events(self) -> None:
        store = StickyEventStore()
        store.remember("STATE_SYNC", '{"type":"STATE_SYNC"}')
        self.assertEqual([], store.snapshot())

    def test_sticky_store_overwrites_latest_event_by_type(self) -> None:
        store = StickyEventStore()
        store.remember("STORAGE_CHANGED", '{"type":"STORAGE_CHANGED","n":1}')
        store.remember("STORAGE_CHANGED", '{"type":"STORAGE_CHANGED","n":2}')

        snapshot = store.snapshot()

        self.assertEqual(1, len(snapshot))
        self.assertEqual(2, json.loads(snapshot[0])["n"])

    def test_sticky_store_replays_completion_after_state_and_can_forget_it(self) -> None:
        store = StickyEventStore()
        store.remember("SESSION_COMPLETED", '{"type":"SESSION_COMPLETED"}')
        store.remember("STORAGE_CHANGED", '{"type":"STORAGE_CHANGED"}')

        self.assertEqual(
            ["STORAGE_CHANGED", "SESSION_COMPLETED"],
            [json.loads(item)["type"] for item in store.snapshot()],
        )

        store.forget("SESSION_COMPLETED")
        store.forget("SESSION_COMPLETED")

        self.assertEqual(
            ["STORAGE_CHANGED"],
            [json.loads(item)["type"] for item in store.snapshot()],
        )


if __name__ == "__main__":
    unittest.main()
