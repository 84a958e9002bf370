from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, TypeAlias

import structlog

from stepledger.core.events.base import Event

log = structlog.get_logger()

EventHandler: TypeAlias = Callable[[Event], None]

ALL_EVENTS = "*"


@dataclass(frozen=True)
class Subscription:
    event_type: str
    handler: EventHandler


class EventBus:
    """
    Synchronous in-process bus for engine events.

    Handlers for the exact event_type run first, then ALL_EVENTS handlers,
    each group in subscription order. A handler that raises aborts the
    publishing engine call; audit sinks must not be allowed to hide errors.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, *, event_type: str, handler: EventHandler) -> Subscription:
        if not event_type:
            raise ValueError("event_type must be non-empty")
        self._handlers[event_type].append(handler)
        return Subscription(event_type=event_type, handler=handler)

    def unsubscribe(self, sub: Subscription) -> None:
        handlers = self._handlers.get(sub.event_type, [])
        if sub.handler in handlers:
            handlers.remove(sub.handler)

    def publish(self, event: Event) -> None:
        targets = (*self._handlers.get(event.event_type, ()), *self._handlers.get(ALL_EVENTS, ()))
        log.debug("bus.publish", event_type=event.event_type, sequence=event.sequence, handlers=len(targets))
        for handler in targets:
            handler(event)

    def handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))
