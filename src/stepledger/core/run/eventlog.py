from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from stepledger.core.events.base import Event
from stepledger.core.events.bus import ALL_EVENTS, EventBus, EventHandler, Subscription
from stepledger.storage.jsonl import JsonlEventStore


@dataclass(frozen=True, slots=True)
class EventLogWriter:
    """
    EventBus component: persists every engine event to a JSONL file.

    The log is an audit trail only; resumption never reads it.
    """

    store: JsonlEventStore

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        return [(ALL_EVENTS, self._on_event)]

    def attach(self, bus: EventBus) -> list[Subscription]:
        return [bus.subscribe(event_type=et, handler=h) for et, h in self.subscriptions()]

    def _on_event(self, e: Event) -> None:
        self.store.append(e)
