"""
In-process change notification bus.

Repositories publish a ChangeEvent after each committed write; readers
subscribe per tenant and table and drain events in batches. Delivery is
best effort: a slow subscriber loses its oldest events, never blocks a
writer.

Every published event gets a sequence number and stays in a bounded
history, so a reader that passes back the last cursor it saw also gets
what was published between its polls. The bus lives in one process:
writes made by the worker or by another API process are not seen here,
and sequence numbers restart with the process.
"""

import asyncio
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 256
DEFAULT_HISTORY_SIZE = 1024


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: str
    operation: str  # "insert" | "update" | "delete"
    row_id: str
    user_id: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    seq: int = 0

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "operation": self.operation,
            "row_id": self.row_id,
            "occurred_at": self.occurred_at.isoformat(),
            "seq": self.seq,
        }


class Subscription:
    """Queue of events for one tenant, optionally limited to some tables."""

    def __init__(self, bus: "ChangeBus", user_id: str, tables: frozenset[str] | None, size: int):
        self._bus = bus
        self.user_id = user_id
        self.tables = tables
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=size)
        self.dropped = 0

    def matches(self, event: ChangeEvent) -> bool:
        if event.user_id != self.user_id:
            return False
        return self.tables is None or event.table in self.tables

    def offer(self, event: ChangeEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def next_batch(self, timeout: float) -> list[ChangeEvent]:
        """Wait up to `timeout` seconds for an event, then drain what is queued."""
        try:
            first = await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except TimeoutError:
            return []

        batch = [first]
        while not self.queue.empty():
            batch.append(self.queue.get_nowait())
        return batch

    def close(self) -> None:
        self._bus._unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class ChangeBus:
    def __init__(
        self, queue_size: int = DEFAULT_QUEUE_SIZE, history_size: int = DEFAULT_HISTORY_SIZE
    ):
        self.queue_size = queue_size
        self._subscriptions: list[Subscription] = []
        self._history: deque[ChangeEvent] = deque(maxlen=history_size)
        self._seq = 0

    @property
    def cursor(self) -> int:
        """Sequence number of the most recent event."""
        return self._seq

    def subscribe(self, user_id: str, tables: Iterable[str] | None = None) -> Subscription:
        subscription = Subscription(
            self, user_id, frozenset(tables) if tables is not None else None, self.queue_size
        )
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def since(
        self, user_id: str, cursor: int, tables: Iterable[str] | None = None
    ) -> list[ChangeEvent]:
        """Retained events after `cursor`; anything older than the history is gone."""
        wanted = frozenset(tables) if tables is not None else None
        return [
            event
            for event in self._history
            if event.seq > cursor
            and event.user_id == user_id
            and (wanted is None or event.table in wanted)
        ]

    def publish(self, event: ChangeEvent) -> int:
        """Fan an event out to matching subscribers; returns how many received it."""
        self._seq += 1
        event = replace(event, seq=self._seq)
        self._history.append(event)

        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.offer(event)
                delivered += 1

        logger.debug(
            "Change published",
            table=event.table,
            operation=event.operation,
            user_id=event.user_id,
            subscribers=delivered,
        )
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


change_bus = ChangeBus()


def publish_change(table: str, operation: str, row_id, user_id: str) -> None:
    change_bus.publish(
        ChangeEvent(table=table, operation=operation, row_id=str(row_id), user_id=str(user_id))
    )
