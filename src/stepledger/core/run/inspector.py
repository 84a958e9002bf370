from __future__ import annotations

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from stepledger.core.engine.errors import InvalidStepNumberError
from stepledger.core.engine.keys import RunKeys
from stepledger.core.engine.state import STEP_LIMIT, Complete, is_valid_step, parse_int, parse_last_step
from stepledger.storage.base import PropertyStore

log = structlog.get_logger()


class RunStatus(BaseModel):
    """
    Operator view of one run prefix, decoded from the property store.
    """

    prefix: str
    epoch: Optional[int] = Field(default=None, description="Epoch of the last reset; None if never run")
    last_step: Optional[int] = Field(default=0, description="Highest confirmed step; None once the run is complete")
    complete: bool = False
    in_flight: Optional[int] = Field(default=None, description="Step currently executing, if any")
    breakpoint: Optional[int] = Field(default=None, description="Operator halt point, if set")


class RunInspector:
    """
    Out-of-band operator controls.

    Never used by the engine itself. Breakpoints and in-flight recovery are
    manual debugging tools, applied between script invocations.
    """

    def __init__(self, store: PropertyStore) -> None:
        self._store = store

    def status(self, prefix: str) -> RunStatus:
        keys = RunKeys.for_prefix(prefix)
        last = parse_last_step(self._store.get(keys.last_step), key=keys.last_step)
        complete = isinstance(last, Complete)
        return RunStatus(
            prefix=prefix,
            epoch=parse_int(self._store.get(keys.epoch), key=keys.epoch),
            last_step=None if complete else last.step,
            complete=complete,
            in_flight=parse_int(self._store.get(keys.in_flight), key=keys.in_flight),
            breakpoint=parse_int(self._store.get(keys.breakpoint), key=keys.breakpoint),
        )

    def set_breakpoint(self, prefix: str, step: int) -> RunStatus:
        keys = RunKeys.for_prefix(prefix)
        if not is_valid_step(step):
            raise InvalidStepNumberError(
                f"breakpoint must satisfy 1 <= step < {STEP_LIMIT}, got {step!r}",
                step=step,
            )
        self._store.set(keys.breakpoint, str(step))
        log.info("operator.breakpoint_set", prefix=prefix, step=step)
        return self.status(prefix)

    def clear_breakpoint(self, prefix: str) -> RunStatus:
        keys = RunKeys.for_prefix(prefix)
        self._store.set(keys.breakpoint, "")
        log.info("operator.breakpoint_cleared", prefix=prefix)
        return self.status(prefix)

    def clear_in_flight(self, prefix: str) -> RunStatus:
        """
        Drop a stale in-flight marker left by a process that was killed
        mid-step (the guard release never ran). Whether that step's action
        took effect must be checked by the operator before rerunning.
        """
        keys = RunKeys.for_prefix(prefix)
        stale = self._store.get(keys.in_flight)
        self._store.set(keys.in_flight, "")
        log.warning("operator.in_flight_cleared", prefix=prefix, stale=stale or None)
        return self.status(prefix)
