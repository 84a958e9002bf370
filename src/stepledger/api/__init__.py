from __future__ import annotations

from fastapi import APIRouter

from stepledger.api.routes.health import router as health_router
from stepledger.api.routes.runs import router as runs_router

router = APIRouter()

router.include_router(health_router)
router.include_router(runs_router)
