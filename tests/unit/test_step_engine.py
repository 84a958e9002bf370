from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from stepledger.core.engine.engine import StepEngine, StepOutcome
from stepledger.core.engine.epoch import fixed_epoch
from stepledger.core.engine.errors import (
    BreakpointHaltError,
    ConfigurationError,
    InvalidStepNumberError,
    NestedStepError,
    StepFailedError,
    UninitializedError,
)
from stepledger.core.engine.state import STEP_LIMIT
from stepledger.storage.memory import InMemoryPropertyStore


class Recorder:
    """
    Action stub: records every call and returns a fixed result.
    """

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, *args: str) -> bool:
        self.calls.append(args)
        return self.result


def _engine(store: InMemoryPropertyStore, epoch: int = 1) -> StepEngine:
    return StepEngine(store=store, epoch_source=fixed_epoch(epoch))


def _started(store: InMemoryPropertyStore, prefix: str = "food", epoch: int = 1) -> StepEngine:
    engine = _engine(store, epoch)
    engine.begin_run(prefix, True)
    return engine


def test_executes_and_records_last_step() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    eat = Recorder()

    assert engine.run_step(10, eat, "pizza") is StepOutcome.EXECUTED
    assert eat.calls == [("pizza",)]
    assert store.get("food_last_step") == "10"
    assert store.get("food_in_flight") == ""


def test_rerun_skips_completed_steps() -> None:
    store = InMemoryPropertyStore()
    first = _started(store)
    a, b = Recorder(), Recorder()
    first.run_step(10, a)
    first.run_step(20, b)

    # new process, same epoch
    second = _started(store)
    assert second.run_step(10, a) is StepOutcome.SKIPPED
    assert second.run_step(20, b) is StepOutcome.SKIPPED
    assert len(a.calls) == 1
    assert len(b.calls) == 1


def test_step_at_or_below_last_step_is_never_invoked() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    engine.run_step(20, Recorder())

    lower = Recorder()
    assert engine.run_step(5, lower) is StepOutcome.SKIPPED
    assert engine.run_step(20, lower) is StepOutcome.SKIPPED
    assert lower.calls == []
    assert store.get("food_last_step") == "20"


def test_outcomes_are_truthy() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    assert engine.run_step(1, Recorder())
    assert engine.run_step(1, Recorder())


def test_failed_action_aborts_and_keeps_last_step() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    engine.run_step(10, Recorder())

    with pytest.raises(StepFailedError) as excinfo:
        engine.run_step(20, Recorder(result=False))

    assert excinfo.value.step == 20
    assert store.get("food_last_step") == "10"
    assert store.get("food_in_flight") == ""


def test_failed_step_is_retried_by_next_invocation() -> None:
    store = InMemoryPropertyStore()
    a = Recorder()
    flaky = Recorder(result=False)

    first = _started(store)
    first.run_step(10, a)
    with pytest.raises(StepFailedError):
        first.run_step(20, flaky)

    flaky.result = True
    second = _started(store)
    second.run_step(10, a)
    assert second.run_step(20, flaky) is StepOutcome.EXECUTED

    assert len(a.calls) == 1
    assert len(flaky.calls) == 2
    assert store.get("food_last_step") == "20"


def test_none_result_counts_as_failure() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)

    with pytest.raises(StepFailedError):
        engine.run_step(1, lambda: None)


def test_action_exception_propagates_and_clears_in_flight() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)

    def boom() -> bool:
        raise OSError("disk gone")

    with pytest.raises(OSError, match="disk gone"):
        engine.run_step(3, boom)

    assert store.get("food_in_flight") == ""
    assert store.get("food_last_step") == "0"


def test_in_flight_marker_is_set_while_action_runs() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    seen: list[str] = []

    def peek() -> bool:
        seen.append(store.get("food_in_flight"))
        return True

    engine.run_step(7, peek)
    assert seen == ["7"]
    assert store.get("food_in_flight") == ""


def test_nested_step_is_rejected() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    inner = Recorder()

    def outer() -> bool:
        engine.run_step(2, inner)
        return True

    with pytest.raises(NestedStepError) as excinfo:
        engine.run_step(1, outer)

    assert excinfo.value.step == 1
    assert excinfo.value.requested == 2
    assert inner.calls == []
    assert store.get("food_in_flight") == ""
    assert store.get("food_last_step") == "0"


def test_stale_in_flight_marker_blocks_steps() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    store.set("food_in_flight", "40")
    action = Recorder()

    with pytest.raises(NestedStepError, match="step 40 is in flight"):
        engine.run_step(50, action)

    assert action.calls == []
    # the blocking marker belongs to someone else and is left alone
    assert store.get("food_in_flight") == "40"


def test_breakpoint_halts_before_step() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    store.set("food_breakpoint", "20")
    before, at = Recorder(), Recorder()

    assert engine.run_step(19, before) is StepOutcome.EXECUTED
    with pytest.raises(BreakpointHaltError) as excinfo:
        engine.run_step(20, at)

    assert excinfo.value.step == 20
    assert at.calls == []
    assert store.get("food_last_step") == "19"
    assert store.get("food_in_flight") == ""


def test_breakpoint_below_step_also_halts() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    store.set("food_breakpoint", "5")

    with pytest.raises(BreakpointHaltError):
        engine.run_step(30, Recorder())


def test_breakpoint_does_not_affect_skipped_steps() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    engine.run_step(10, Recorder())
    store.set("food_breakpoint", "10")

    assert engine.run_step(10, Recorder()) is StepOutcome.SKIPPED


@pytest.mark.parametrize("step", [0, -1, STEP_LIMIT, STEP_LIMIT + 1, True, 1.5, "3"])
def test_invalid_step_numbers(step: object) -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    action = Recorder()

    with pytest.raises(InvalidStepNumberError):
        engine.run_step(step, action)  # type: ignore[arg-type]

    assert action.calls == []
    assert store.get("food_in_flight") == ""


def test_run_step_requires_begin_run() -> None:
    engine = _engine(InMemoryPropertyStore())

    with pytest.raises(UninitializedError):
        engine.run_step(1, Recorder())


def test_too_many_arguments() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)

    with pytest.raises(ConfigurationError, match="at most 4"):
        engine.run_step(1, Recorder(), "a", "b", "c", "d", "e")

    assert store.get("food_in_flight") == ""


def test_four_arguments_are_passed_through() -> None:
    engine = _started(InMemoryPropertyStore())
    action = Recorder()

    engine.run_step(1, action, "a", "b", "c", "d")
    assert action.calls == [("a", "b", "c", "d")]


def test_non_string_argument() -> None:
    engine = _started(InMemoryPropertyStore())

    with pytest.raises(ConfigurationError, match="must be str"):
        engine.run_step(1, Recorder(), 3)  # type: ignore[arg-type]


def test_steps_after_end_run_are_skipped() -> None:
    store = InMemoryPropertyStore()
    engine = _started(store)
    engine.run_step(10, Recorder())
    engine.end_run("food")

    late = Recorder()
    assert engine.run_step(STEP_LIMIT - 1, late) is StepOutcome.SKIPPED
    assert late.calls == []


def test_malformed_last_step_is_a_configuration_error() -> None:
    store = InMemoryPropertyStore({"food_epoch": "1", "food_last_step": "lots"})

    with pytest.raises(ConfigurationError, match="food_last_step"):
        _engine(store).begin_run("food", True)


def test_structured_logs_for_executed_step() -> None:
    engine = _started(InMemoryPropertyStore())

    with capture_logs() as logs:
        engine.run_step(10, Recorder(), "pizza")

    events = [e["event"] for e in logs]
    assert events == ["step.started", "step.completed"]
    assert logs[0]["args"] == ["pizza"]
    assert logs[1]["step"] == 10


def test_structured_log_for_failed_step() -> None:
    engine = _started(InMemoryPropertyStore())

    with capture_logs() as logs:
        with pytest.raises(StepFailedError):
            engine.run_step(10, Recorder(result=False))

    failed = [e for e in logs if e["event"] == "step.failed"]
    assert failed and failed[0]["log_level"] == "error"
