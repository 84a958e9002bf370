from __future__ import annotations

from dataclasses import dataclass

from stepledger.core.engine.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class RunKeys:
    """
    Property names owned by one run prefix.

    Raw keys never leave the engine / operator layer; actions only see
    their own string arguments.
    """

    prefix: str
    epoch: str
    last_step: str
    breakpoint: str
    in_flight: str

    @classmethod
    def for_prefix(cls, prefix: str) -> "RunKeys":
        if not prefix:
            raise ConfigurationError("run prefix must be non-empty")
        return cls(
            prefix=prefix,
            epoch=f"{prefix}_epoch",
            last_step=f"{prefix}_last_step",
            breakpoint=f"{prefix}_breakpoint",
            in_flight=f"{prefix}_in_flight",
        )
