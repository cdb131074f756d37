from __future__ import annotations

from fastapi import APIRouter, Depends

from hrdirectory.core.config import settings
from hrdirectory.core.dependencies import get_directory_cache
from hrdirectory.services.directory_cache import DirectoryCache

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(cache: DirectoryCache = Depends(get_directory_cache)):  # noqa: B008
    services: dict[str, str] = {}

    try:
        if cache.credentials is not None:
            ok = await cache.check_connection()
            services["directory"] = "ok" if ok else "error"
        else:
            services["directory"] = "not_configured"
    except Exception:
        services["directory"] = "error"

    all_ok = all(v in ("ok", "not_configured") for v in services.values())

    return {
        "status": "healthy" if all_ok else "degraded",
        "version": settings.APP_VERSION,
        "services": services,
        "cache": cache.stats().model_dump(mode="json"),
    }


@router.get("/ready")
async def readiness_probe():
    return {"ready": True}
