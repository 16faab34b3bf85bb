import asyncio
from collections import deque
from datetime import datetime, timezone


class EventBus:
    """In-process fan-out of state changes so a front end can re-render without polling."""

    def __init__(self, history_size: int = 200):
        self._subscribers: list[asyncio.Queue] = []
        self._history: deque[dict] = deque(maxlen=history_size)

    def publish(self, event_type: str, source: str, data: dict) -> None:
        # Never yields; callers publish right after a store mutation.
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "source": source,
            "data": data,
        }
        self._history.append(event)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                continue

    def subscribe(self, replay_last: int = 10, maxsize: int = 0) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        if replay_last > 0:
            for event in list(self._history)[-replay_last:]:
                queue.put_nowait(event)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def history(self, event_type: str | None = None) -> list[dict]:
        if event_type is None:
            return list(self._history)
        return [event for event in self._history if event["type"] == event_type]
