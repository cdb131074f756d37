from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from hrdirectory.api.v1.router import api_router
from hrdirectory.core.config import settings
from hrdirectory.services.directory_cache import DirectoryCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    cache = DirectoryCache.from_settings(settings)
    cache.load()
    application.state.directory_cache = cache

    if cache.credentials is None:
        logger.warning("Directory credentials missing — lookups will only be served from the snapshot")
    elif settings.CACHE_WARM_ON_STARTUP:
        await cache.refresh_all()

    yield
    await cache.close()
    application.state.directory_cache = None


app = FastAPI(
    title="HR Directory API",
    description="Employee enrichment from the HR directory",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "HR Directory API"}
