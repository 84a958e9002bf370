from __future__ import annotations

from contextlib import AbstractContextManager, ExitStack, contextmanager
from enum import Enum
from typing import Iterator, Optional, TypeVar

import structlog

from stepledger.actions.registry import Action, action_name
from stepledger.core.engine.epoch import EpochSource
from stepledger.core.engine.errors import (
    AlreadyCompletedError,
    BreakpointHaltError,
    ConfigurationError,
    InvalidStepNumberError,
    NestedStepError,
    StepFailedError,
    UninitializedError,
)
from stepledger.core.engine.keys import RunKeys
from stepledger.core.engine.lifecycle import BeginOutcome, decide_begin
from stepledger.core.engine.state import (
    STEP_LIMIT,
    Complete,
    EngineState,
    LastStep,
    Pending,
    format_last_step,
    is_done,
    is_valid_step,
    parse_int,
    parse_last_step,
)
from stepledger.core.events.base import Event
from stepledger.core.events.bus import EventBus
from stepledger.core.events.steps import (
    BreakpointHit,
    RunBegun,
    RunEnded,
    StepCompleted,
    StepErrored,
    StepFailed,
    StepSkipped,
    StepStarted,
)
from stepledger.core.logging.setup import bind_context
from stepledger.storage.base import PropertyStore

log = structlog.get_logger()

MAX_ACTION_ARGS = 4

_R = TypeVar("_R", bound=AbstractContextManager)


class StepOutcome(str, Enum):
    """
    Successful result of run_step. Both members are truthy.
    """

    SKIPPED = "skipped"
    EXECUTED = "executed"


class StepEngine:
    """
    Runs numbered, irreversible steps exactly once each, in increasing order,
    across any number of process invocations.

    Progress lives in the PropertyStore under the run prefix:
      - <prefix>_epoch       epoch in which progress was last reset
      - <prefix>_last_step   highest confirmed step, or Complete
      - <prefix>_in_flight   step currently executing (nesting guard)
      - <prefix>_breakpoint  operator-set halt point (read only here)

    Single-threaded and non-reentrant: an action must never call run_step.
    """

    def __init__(
        self,
        *,
        store: PropertyStore,
        epoch_source: EpochSource,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._epoch_source = epoch_source
        self._bus = bus
        self._state = EngineState()
        self._resources = ExitStack()
        self._owned: list[object] = []

    @property
    def store(self) -> PropertyStore:
        return self._store

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def keys(self) -> RunKeys:
        if self._state.keys is None:
            raise UninitializedError("begin_run must be called before steps can run")
        return self._state.keys

    @property
    def owned(self) -> tuple[object, ...]:
        return tuple(self._owned)

    def own(self, resource: _R) -> _R:
        """
        Tie a resource (e.g. an event-log sink) to this engine; close() exits it.
        """
        self._resources.enter_context(resource)
        self._owned.append(resource)
        return resource

    def close(self) -> None:
        self._resources.close()
        self._owned.clear()

    def __enter__(self) -> "StepEngine":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ---------------- Run lifecycle ----------------

    def begin_run(self, prefix: str, epoch_exclusive: bool) -> BeginOutcome:
        # a failed begin_run must not leave an earlier run active
        self._state.keys = None
        self._state.epoch = None
        keys = RunKeys.for_prefix(prefix)

        stored_epoch = parse_int(self._store.get(keys.epoch), key=keys.epoch)
        live_epoch = self._epoch_source()
        last = self._read_last_step(keys)

        bind_context(prefix=prefix, epoch=live_epoch)

        try:
            outcome = decide_begin(
                prefix=prefix,
                stored_epoch=stored_epoch,
                live_epoch=live_epoch,
                last=last,
                epoch_exclusive=epoch_exclusive,
            )
        except AlreadyCompletedError:
            log.error("run.already_completed", prefix=prefix, epoch=live_epoch)
            raise

        if outcome is BeginOutcome.RESET:
            self._store.set(keys.epoch, str(live_epoch))
            self._write_last_step(keys, Pending(0))

        self._state.keys = keys
        self._state.epoch = live_epoch

        log.info(
            "run.begun",
            prefix=prefix,
            epoch=live_epoch,
            stored_epoch=stored_epoch,
            outcome=outcome.value,
            last_step=format_last_step(last) if outcome is BeginOutcome.RESUMED else "0",
        )
        self._publish(RunBegun, prefix=prefix, epoch=live_epoch, outcome=outcome.value)
        return outcome

    def end_run(self, prefix: Optional[str] = None) -> None:
        """
        Mark the run complete.

        `prefix` must match the one given to begin_run; this is not checked.
        When omitted, the active run's prefix is used.
        """
        keys = self.keys if prefix is None else RunKeys.for_prefix(prefix)
        self._write_last_step(keys, Complete())

        log.info("run.ended", prefix=keys.prefix)
        self._publish(RunEnded, prefix=keys.prefix)

    @contextmanager
    def session(self, prefix: str, epoch_exclusive: bool) -> Iterator["StepEngine"]:
        """
        begin_run on enter, end_run on clean exit only.

        An exception leaves progress as-is so the next invocation resumes.
        """
        self.begin_run(prefix, epoch_exclusive)
        yield self
        self.end_run(prefix)

    # ---------------- Steps ----------------

    def run_step(self, step: int, action: Action, *args: str) -> StepOutcome:
        keys = self.keys

        if not is_valid_step(step):
            log.error("step.invalid_number", prefix=keys.prefix, step=step)
            raise InvalidStepNumberError(
                f"step number must satisfy 1 <= step < {STEP_LIMIT}, got {step!r}",
                step=step,
            )

        running = parse_int(self._store.get(keys.in_flight), key=keys.in_flight)
        if running is not None:
            log.error("step.nested", prefix=keys.prefix, step=step, running=running)
            raise NestedStepError(
                f"cannot run step {step} while step {running} is in flight",
                step=running,
                requested=step,
            )

        self._check_args(step, args)

        with self._in_flight(keys, step):
            last = self._read_last_step(keys)
            if is_done(last, step):
                log.debug("step.skipped", prefix=keys.prefix, step=step)
                self._publish(StepSkipped, prefix=keys.prefix, step=step)
                return StepOutcome.SKIPPED

            bp = parse_int(self._store.get(keys.breakpoint), key=keys.breakpoint)
            if bp is not None and bp <= step:
                log.warning("step.breakpoint", prefix=keys.prefix, step=step, breakpoint=bp)
                self._publish(BreakpointHit, prefix=keys.prefix, step=step, breakpoint=bp)
                raise BreakpointHaltError(f"breakpoint {bp} reached before step {step}", step=step)

            name = action_name(action)
            log.info("step.started", prefix=keys.prefix, step=step, action=name, args=list(args))
            self._publish(StepStarted, prefix=keys.prefix, step=step, action=name, args=tuple(args))

            try:
                result = action(*args)
            except Exception as exc:
                log.exception("step.errored", prefix=keys.prefix, step=step, action=name)
                self._publish(
                    StepErrored,
                    prefix=keys.prefix,
                    step=step,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                raise

            if not result:
                log.error("step.failed", prefix=keys.prefix, step=step, action=name)
                self._publish(StepFailed, prefix=keys.prefix, step=step)
                raise StepFailedError(f"step {step} ({name}) failed", step=step)

            self._write_last_step(keys, Pending(step))

        log.info("step.completed", prefix=keys.prefix, step=step)
        self._publish(StepCompleted, prefix=keys.prefix, step=step)
        return StepOutcome.EXECUTED

    # ---------------- Internals ----------------

    @contextmanager
    def _in_flight(self, keys: RunKeys, step: int) -> Iterator[None]:
        self._store.set(keys.in_flight, str(step))
        try:
            yield
        finally:
            self._store.set(keys.in_flight, "")

    def _check_args(self, step: int, args: tuple[str, ...]) -> None:
        if len(args) > MAX_ACTION_ARGS:
            raise ConfigurationError(
                f"step {step}: actions take at most {MAX_ACTION_ARGS} arguments, got {len(args)}"
            )
        for a in args:
            if not isinstance(a, str):
                raise ConfigurationError(f"step {step}: action arguments must be str, got {type(a).__name__}")

    def _read_last_step(self, keys: RunKeys) -> LastStep:
        return parse_last_step(self._store.get(keys.last_step), key=keys.last_step)

    def _write_last_step(self, keys: RunKeys, value: LastStep) -> None:
        self._store.set(keys.last_step, format_last_step(value))

    def _publish(self, event_cls: type[Event], **fields: object) -> None:
        if self._bus is None:
            return
        self._bus.publish(event_cls.create(sequence=self._state.next_sequence(), **fields))
