from __future__ import annotations

import functools

import pytest

from stepledger.actions.registry import ActionRegistry, UnknownActionError, action_name
from stepledger.core.engine.engine import StepEngine, StepOutcome
from stepledger.core.engine.epoch import fixed_epoch
from stepledger.storage.memory import InMemoryPropertyStore


def test_register_decorator_and_resolve() -> None:
    actions = ActionRegistry()
    eaten: list[str] = []

    @actions.register()
    def eat(food: str) -> bool:
        eaten.append(food)
        return True

    @actions.register("drink")
    def _drink(what: str, size: str) -> bool:
        return True

    assert actions.names() == ("eat", "drink")
    assert "eat" in actions
    assert len(actions) == 2
    assert actions.resolve("eat")("pizza") is True
    assert eaten == ["pizza"]


def test_duplicate_names_are_rejected() -> None:
    actions = ActionRegistry([("eat", lambda: True)])

    with pytest.raises(ValueError, match="duplicate"):
        actions.add("eat", lambda: True)


def test_non_callable_is_rejected() -> None:
    with pytest.raises(TypeError):
        ActionRegistry().add("eat", "not a function")  # type: ignore[arg-type]


def test_unknown_action() -> None:
    with pytest.raises(UnknownActionError):
        ActionRegistry().resolve("fly")


def test_action_name_for_partials() -> None:
    def chew(times: str) -> bool:
        return True

    assert action_name(functools.partial(chew, "3")).endswith("chew")


def test_registry_drives_engine_by_name() -> None:
    calls: list[tuple[str, ...]] = []
    actions = ActionRegistry()

    @actions.register("buy")
    def buy(item: str, qty: str) -> bool:
        calls.append((item, qty))
        return True

    plan = [(10, "buy", ("milk", "2")), (20, "buy", ("bread", "1"))]

    engine = StepEngine(store=InMemoryPropertyStore(), epoch_source=fixed_epoch(1))
    engine.begin_run("shopping", True)
    outcomes = [engine.run_step(step, actions.resolve(name), *args) for step, name, args in plan]

    assert outcomes == [StepOutcome.EXECUTED, StepOutcome.EXECUTED]
    assert calls == [("milk", "2"), ("bread", "1")]
