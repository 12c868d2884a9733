from __future__ import annotations

import os
from pathlib import Path

from fastapi import APIRouter

from chbridge.api.deps import SettingsDep
from chbridge.api.v1.schemas import HealthResponse

router = APIRouter()


def _upload_dir_writable(upload_dir: str) -> bool:
    path = Path(upload_dir)
    # A missing directory is created on first upload; its nearest parent decides.
    while not path.exists() and path != path.parent:
        path = path.parent
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)


@router.get("/health", response_model=HealthResponse, tags=["health"], summary="Health check")
async def health(settings: SettingsDep) -> HealthResponse:
    """Report the service version and whether uploads can be stored.

    ClickHouse is not contacted; connection parameters arrive per request.
    """

    writable = _upload_dir_writable(settings.upload_dir)
    return HealthResponse(
        status="ok" if writable else "degraded",
        version=settings.version,
        git_commit=settings.git_commit,
        upload_dir_writable=writable,
    )
