from __future__ import annotations

from typing import Optional

import structlog

from stepledger.core.config.settings import AppSettings, settings as default_settings
from stepledger.core.engine.engine import StepEngine
from stepledger.core.engine.epoch import EpochSource, PropertyEpoch, fixed_epoch
from stepledger.core.events.bus import EventBus
from stepledger.core.run.eventlog import EventLogWriter
from stepledger.storage.base import PropertyStore
from stepledger.storage.jsonfile import JsonFilePropertyStore
from stepledger.storage.jsonl import JsonlEventStore

log = structlog.get_logger()


def build_store(cfg: AppSettings) -> JsonFilePropertyStore:
    return JsonFilePropertyStore(path=cfg.store_path)


def build_epoch_source(cfg: AppSettings, store: PropertyStore) -> EpochSource:
    if cfg.epoch is not None:
        return fixed_epoch(cfg.epoch)
    return PropertyEpoch(store=store, key=cfg.epoch_property)


def build_engine(
    cfg: Optional[AppSettings] = None,
    *,
    store: Optional[PropertyStore] = None,
    bus: Optional[EventBus] = None,
) -> StepEngine:
    """
    Wire a StepEngine from settings.

    - store: defaults to the JSON property file at cfg.store_path
    - epoch: cfg.epoch if set, else read from cfg.epoch_property
    - cfg.event_log_path: attaches a JSONL EventLogWriter (creates a bus
      if none was given); the engine owns and closes it

    Use the result as a context manager (or call close()) so owned sinks
    are released:

        with build_engine() as engine:
            engine.begin_run("food", True)
    """
    cfg = cfg or default_settings
    store = store if store is not None else build_store(cfg)

    event_log: Optional[JsonlEventStore] = None
    if cfg.event_log_path is not None:
        bus = bus or EventBus()
        event_log = JsonlEventStore(path=cfg.event_log_path)
        EventLogWriter(store=event_log).attach(bus)

    engine = StepEngine(store=store, epoch_source=build_epoch_source(cfg, store), bus=bus)
    if event_log is not None:
        engine.own(event_log)

    log.debug(
        "engine.built",
        store=type(store).__name__,
        fixed_epoch=cfg.epoch,
        epoch_property=None if cfg.epoch is not None else cfg.epoch_property,
        event_log=str(cfg.event_log_path) if cfg.event_log_path else None,
    )
    return engine
