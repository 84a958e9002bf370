from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True, kw_only=True)
class Event:
    """
    Base for every engine event.

    - event_type: dotted routing key, declared per subclass
    - sequence: per-engine monotonic counter (ordering inside one process)
    """

    event_type: ClassVar[str] = "event"

    event_id: UUID
    timestamp_utc: datetime
    sequence: int

    @classmethod
    def create(cls, *, sequence: int, **fields: Any) -> "Event":
        return cls(
            event_id=uuid4(),
            timestamp_utc=datetime.now(timezone.utc),
            sequence=sequence,
            **fields,
        )
