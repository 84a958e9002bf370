from __future__ import annotations

from enum import Enum
from typing import Optional

from stepledger.core.engine.errors import AlreadyCompletedError
from stepledger.core.engine.state import Complete, LastStep


class BeginOutcome(str, Enum):
    RESET = "reset"
    RESUMED = "resumed"


def decide_begin(
    *,
    prefix: str,
    stored_epoch: Optional[int],
    live_epoch: int,
    last: LastStep,
    epoch_exclusive: bool,
) -> BeginOutcome:
    """
    Decide what begin_run does with persisted progress.

    | stored epoch        | last step | exclusive | outcome               |
    |---------------------|-----------|-----------|-----------------------|
    | unset or < live     | any       | any       | RESET                 |
    | >= live             | Complete  | True      | AlreadyCompletedError |
    | >= live             | Complete  | False     | RESET                 |
    | >= live             | Pending   | any       | RESUMED               |

    A stored epoch ahead of the live one cannot happen in a sane
    environment; it is treated as the same epoch so progress is kept.
    """
    if stored_epoch is None or stored_epoch < live_epoch:
        return BeginOutcome.RESET

    if isinstance(last, Complete):
        if epoch_exclusive:
            raise AlreadyCompletedError(prefix, live_epoch)
        return BeginOutcome.RESET

    return BeginOutcome.RESUMED
