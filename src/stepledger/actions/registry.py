from __future__ import annotations

from typing import Callable, Iterable, Optional, TypeAlias

import structlog

log = structlog.get_logger()

# An action takes 0..4 string positional arguments and reports success.
Action: TypeAlias = Callable[..., bool]


class UnknownActionError(KeyError):
    pass


def action_name(action: Action) -> str:
    name = getattr(action, "__qualname__", None) or getattr(action, "__name__", None)
    if name:
        return name
    # functools.partial and other callables without a name
    func = getattr(action, "func", None)
    if func is not None:
        return action_name(func)
    return type(action).__name__


class ActionRegistry:
    """
    Explicit name -> callable table.

    For scripts whose step list comes from data (config files, operator
    input) rather than code. Names are resolved here, before run_step is
    called; the engine itself only ever receives callables.

        actions = ActionRegistry()

        @actions.register("eat")
        def eat(food: str) -> bool:
            ...

        engine.run_step(10, actions.resolve("eat"), "pizza")
    """

    def __init__(self, actions: Optional[Iterable[tuple[str, Action]]] = None) -> None:
        self._actions: dict[str, Action] = {}
        for name, fn in actions or ():
            self.add(name, fn)

    def add(self, name: str, action: Action) -> Action:
        if not name:
            raise ValueError("action name must be non-empty")
        if not callable(action):
            raise TypeError(f"action {name!r} is not callable")
        if name in self._actions:
            raise ValueError(f"duplicate action name: {name!r}")
        self._actions[name] = action
        log.debug("actions.registered", name=name, target=action_name(action))
        return action

    def register(self, name: Optional[str] = None) -> Callable[[Action], Action]:
        """
        Decorator form of add(). Defaults to the function's own name.
        """

        def _decorator(fn: Action) -> Action:
            return self.add(name or fn.__name__, fn)

        return _decorator

    def resolve(self, name: str) -> Action:
        try:
            return self._actions[name]
        except KeyError:
            raise UnknownActionError(f"unknown action: {name!r}") from None

    def names(self) -> tuple[str, ...]:
        return tuple(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)
