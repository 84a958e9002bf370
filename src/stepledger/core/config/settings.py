from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Process-level configuration.

    Single source of truth for:
    - environment selection
    - logging behavior
    - where step progress is persisted
    - where the live epoch comes from
    """

    model_config = SettingsConfigDict(
        env_prefix="STEPLEDGER_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"

    # JSON lines when True, key=value console lines otherwise
    log_json: bool = True

    # ---- Persistence -------------------------------------------------

    store_path: Path = Field(
        default=Path("stepledger.json"),
        description="JSON file holding the run properties",
    )

    event_log_path: Optional[Path] = Field(
        default=None,
        description="Optional JSONL file receiving every engine event",
    )

    # ---- Epoch -------------------------------------------------------

    # Fixed live epoch; when unset the epoch is read from `epoch_property`
    epoch: Optional[int] = Field(
        default=None,
        ge=0,
        description="Fixed live epoch override",
    )

    epoch_property: str = Field(
        default="epoch",
        min_length=1,
        description="Property holding the live epoch counter",
    )


settings = AppSettings()
