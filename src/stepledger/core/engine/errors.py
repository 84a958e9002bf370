from __future__ import annotations


class StepEngineError(RuntimeError):
    """
    Base class for every fatal engine condition.

    None of these are caught inside the engine. The calling script is
    expected to let them terminate the process; persisted state makes the
    next invocation resume at the right step.
    """


class ConfigurationError(StepEngineError):
    pass


class AlreadyCompletedError(StepEngineError):
    def __init__(self, prefix: str, epoch: int) -> None:
        super().__init__(f"run {prefix!r} already completed in epoch {epoch}")
        self.prefix = prefix
        self.epoch = epoch


class UninitializedError(StepEngineError):
    pass


class _StepError(StepEngineError):
    def __init__(self, message: str, *, step: int) -> None:
        super().__init__(message)
        self.step = step


class InvalidStepNumberError(_StepError):
    pass


class NestedStepError(_StepError):
    """
    `step` is the step that was already executing.
    """

    def __init__(self, message: str, *, step: int, requested: int) -> None:
        super().__init__(message, step=step)
        self.requested = requested


class BreakpointHaltError(_StepError):
    pass


class StepFailedError(_StepError):
    pass
