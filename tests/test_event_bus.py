from __future__ import annotations

import pytest

from teacheraid.core.event_bus import EventBus


@pytest.mark.asyncio
async def test_subscriber_receives_replay_and_new_events():
    bus = EventBus()
    bus.publish("message_appended", "translation", {"message_id": "a"})
    bus.publish("message_resolved", "translation", {"message_id": "a"})

    queue = bus.subscribe(replay_last=1)
    bus.publish("playback_started", "audio", {"message_id": "a"})

    first = await queue.get()
    second = await queue.get()
    assert first["type"] == "message_resolved"
    assert second["type"] == "playback_started"
    assert second["source"] == "audio"

    bus.unsubscribe(queue)
    bus.publish("playback_finished", "audio", {"message_id": "a"})
    assert queue.empty()


def test_full_subscriber_queue_does_not_block_publisher():
    bus = EventBus()
    queue = bus.subscribe(replay_last=0, maxsize=1)
    bus.publish("a", "test", {})
    bus.publish("b", "test", {})
    assert queue.qsize() == 1
    assert [e["type"] for e in bus.history()] == ["a", "b"]
    assert [e["type"] for e in bus.history("b")] == ["b"]
