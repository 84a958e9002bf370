from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from stepledger.core.config.settings import settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    environment: str


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        environment=settings.env,
    )
