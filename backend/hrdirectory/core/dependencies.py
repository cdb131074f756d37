from __future__ import annotations

from fastapi import HTTPException, Request, status

from hrdirectory.services.directory_cache import DirectoryCache


def get_directory_cache(request: Request) -> DirectoryCache:
    cache = getattr(request.app.state, "directory_cache", None)
    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Directory cache not initialized",
        )
    return cache
