"""Aggregate router mounted under ``/api``."""

from fastapi import APIRouter

from chbridge.api.v1.clickhouse import router as clickhouse_router
from chbridge.api.v1.files import router as files_router
from chbridge.api.v1.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(clickhouse_router)
api_router.include_router(files_router)

__all__ = ["api_router"]
