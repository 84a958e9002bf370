from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from stepledger.api import router as api_router
from stepledger.core.config.settings import settings
from stepledger.core.logging.setup import configure_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    log.info(
        "app.startup",
        environment=settings.env,
        store_path=str(settings.store_path),
    )
    yield
    log.info("app.shutdown")


def create_app() -> FastAPI:
    """
    Application factory for the operator API.

    Serves run status and breakpoint controls over the same property
    file the scripts write to.
    """
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="stepledger operator API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api")

    return app


# ASGI entrypoint
app = create_app()
