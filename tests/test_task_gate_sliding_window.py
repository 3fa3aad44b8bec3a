from __future__ import annotations

from datetime import datetime, timedelta, timezone

from helpdesk.core.guardrails.rate_limit import MessageStoreCounter, SlidingWindowCounter, TaskGate


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def test_sixth_action_in_window_is_denied_until_window_elapses() -> None:
    clock = FakeClock(datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc))
    gate = TaskGate(clock=clock)

    for _ in range(5):
        assert gate.allow("tk1", timedelta(hours=1), 5) is True
        gate.record("tk1")
        clock.now += timedelta(minutes=1)

    assert gate.allow("tk1", timedelta(hours=1), 5) is False
    assert gate.allow("tk2", timedelta(hours=1), 5) is True

    clock.now += timedelta(hours=1)
    assert gate.allow("tk1", timedelta(hours=1), 5) is True


def test_counter_prunes_expired_entries() -> None:
    clock = FakeClock(datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc))
    counter = SlidingWindowCounter(retention=timedelta(minutes=10), clock=clock)
    counter.record("tk1", clock.now)

    clock.now += timedelta(minutes=11)

    assert counter.count_since("tk1", clock.now - timedelta(hours=1)) == 0
    assert "tk1" not in counter._events


def test_message_store_counter_counts_sent_ai_replies_only(store) -> None:
    now = datetime.now(timezone.utc)
    for _ in range(5):
        store.create_message(
            "t1",
            "tk1",
            {"direction": "OUTBOUND", "content_text": "hi", "message_type": "AI_SUGGESTION", "metadata": {"aiGenerated": True}},
        )
    store.create_message("t1", "tk1", {"direction": "OUTBOUND", "content_text": "human", "message_type": "TEXT"})
    store.create_message(
        "t1",
        "tk1",
        {
            "direction": "OUTBOUND",
            "content_text": "waiting for review",
            "message_type": "AI_SUGGESTION",
            "metadata": {"aiGenerated": True, "suggestion": True},
        },
    )
    store.create_message(
        "t1",
        "tk1",
        {
            "direction": "OUTBOUND",
            "content_text": "old",
            "message_type": "TEXT",
            "metadata": {"aiGenerated": True},
            "created_at": now - timedelta(hours=2),
        },
    )

    gate = TaskGate(MessageStoreCounter(store, "t1"))

    assert gate.recent_count("tk1") == 5
    assert gate.allow("tk1", timedelta(hours=1), 5) is False
    assert gate.allow("tk1", timedelta(hours=1), 6) is True
