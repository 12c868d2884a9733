"""FastAPI dependencies shared by the v1 routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from chbridge.core.config import Settings, get_settings
from chbridge.services.clickhouse import ClickHouseService
from chbridge.services.files import FileStore

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_clickhouse_service(settings: SettingsDep) -> ClickHouseService:
    return ClickHouseService(settings)


def get_file_store(settings: SettingsDep) -> FileStore:
    return FileStore.from_settings(settings)


ClickHouseDep = Annotated[ClickHouseService, Depends(get_clickhouse_service)]
FileStoreDep = Annotated[FileStore, Depends(get_file_store)]

__all__ = [
    "SettingsDep",
    "ClickHouseDep",
    "FileStoreDep",
    "get_clickhouse_service",
    "get_file_store",
]
