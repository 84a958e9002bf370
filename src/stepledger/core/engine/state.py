from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TypeAlias

from stepledger.core.engine.errors import ConfigurationError
from stepledger.core.engine.keys import RunKeys

# Exclusive upper bound for step numbers. Also the persisted form of Complete.
STEP_LIMIT = 2**63 - 1


@dataclass(frozen=True, slots=True)
class Pending:
    """
    Run in progress; every step <= `step` has been confirmed.
    """

    step: int = 0


@dataclass(frozen=True, slots=True)
class Complete:
    """
    Run finished via end_run; no step may execute until the next reset.
    """


LastStep: TypeAlias = Pending | Complete


def parse_int(raw: str, *, key: str) -> Optional[int]:
    """
    Decode an integer property. Empty string means unset.
    """
    s = raw.strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        raise ConfigurationError(f"property {key!r} is not an integer: {raw!r}") from None


def parse_last_step(raw: str, *, key: str) -> LastStep:
    value = parse_int(raw, key=key)
    if value is None:
        return Pending(0)
    if value >= STEP_LIMIT:
        return Complete()
    if value < 0:
        raise ConfigurationError(f"property {key!r} holds a negative step: {value}")
    return Pending(value)


def format_last_step(value: LastStep) -> str:
    if isinstance(value, Complete):
        return str(STEP_LIMIT)
    return str(value.step)


def is_done(last: LastStep, step: int) -> bool:
    if isinstance(last, Complete):
        return True
    return step <= last.step


def is_valid_step(step: object) -> bool:
    # bool is an int subclass; True is not a step number
    return isinstance(step, int) and not isinstance(step, bool) and 1 <= step < STEP_LIMIT


@dataclass(slots=True)
class EngineState:
    """
    In-process state of one StepEngine.

    - keys: set by begin_run, None until then
    - epoch: live epoch observed at begin_run
    - sequence: monotonic counter stamped on published events
    """

    keys: Optional[RunKeys] = None
    epoch: Optional[int] = None
    sequence: int = 0

    @property
    def is_initialized(self) -> bool:
        return self.keys is not None

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence
