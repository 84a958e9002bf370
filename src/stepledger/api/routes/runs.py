from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from stepledger.core.config.settings import settings
from stepledger.core.engine.errors import ConfigurationError, InvalidStepNumberError
from stepledger.core.run.factory import build_store
from stepledger.core.run.inspector import RunInspector, RunStatus
from stepledger.storage.base import PropertyStore

router = APIRouter(tags=["runs"])


# =========================
# Dependencies
# =========================

def get_store() -> PropertyStore:
    """
    Property store shared with the scripts. Overridden in tests.
    """
    return build_store(settings)


def get_inspector(store: PropertyStore = Depends(get_store)) -> RunInspector:
    return RunInspector(store)


# =========================
# Schemas
# =========================

class SetBreakpointRequest(BaseModel):
    step: int = Field(..., description="Halt immediately before this step on the next run")


# =========================
# Routes
# =========================

@router.get("/runs/{prefix}", response_model=RunStatus)
def get_run(prefix: str, inspector: RunInspector = Depends(get_inspector)) -> RunStatus:
    try:
        return inspector.status(prefix)
    except ConfigurationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/runs/{prefix}/breakpoint", response_model=RunStatus)
def set_breakpoint(
    prefix: str,
    payload: SetBreakpointRequest,
    inspector: RunInspector = Depends(get_inspector),
) -> RunStatus:
    try:
        return inspector.set_breakpoint(prefix, payload.step)
    except InvalidStepNumberError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/runs/{prefix}/breakpoint", response_model=RunStatus)
def clear_breakpoint(prefix: str, inspector: RunInspector = Depends(get_inspector)) -> RunStatus:
    try:
        return inspector.clear_breakpoint(prefix)
    except ConfigurationError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/runs/{prefix}/in-flight", response_model=RunStatus)
def clear_in_flight(prefix: str, inspector: RunInspector = Depends(get_inspector)) -> RunStatus:
    try:
        return inspector.clear_in_flight(prefix)
    except ConfigurationError as e:
        raise HTTPException(status_code=409, detail=str(e))
