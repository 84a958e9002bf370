from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal

from stepledger.core.events.base import Event


@dataclass(frozen=True, slots=True, kw_only=True)
class RunBegun(Event):
    """
    begin_run finished. `outcome` says whether progress was reset.
    """

    event_type: ClassVar[str] = "run.begun"

    prefix: str
    epoch: int
    outcome: Literal["reset", "resumed"]


@dataclass(frozen=True, slots=True, kw_only=True)
class RunEnded(Event):
    event_type: ClassVar[str] = "run.ended"

    prefix: str


@dataclass(frozen=True, slots=True, kw_only=True)
class StepSkipped(Event):
    """
    Step was already confirmed by an earlier invocation.
    """

    event_type: ClassVar[str] = "step.skipped"

    prefix: str
    step: int


@dataclass(frozen=True, slots=True, kw_only=True)
class StepStarted(Event):
    event_type: ClassVar[str] = "step.started"

    prefix: str
    step: int
    action: str
    args: tuple[str, ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class StepCompleted(Event):
    event_type: ClassVar[str] = "step.completed"

    prefix: str
    step: int


@dataclass(frozen=True, slots=True, kw_only=True)
class StepFailed(Event):
    """
    Action returned a falsy result.
    """

    event_type: ClassVar[str] = "step.failed"

    prefix: str
    step: int


@dataclass(frozen=True, slots=True, kw_only=True)
class StepErrored(Event):
    """
    Action raised instead of returning.
    """

    event_type: ClassVar[str] = "step.errored"

    prefix: str
    step: int
    error_type: str
    error_message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class BreakpointHit(Event):
    event_type: ClassVar[str] = "step.breakpoint"

    prefix: str
    step: int
    breakpoint: int
