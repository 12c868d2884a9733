"""File endpoints: upload, inspect, import into ClickHouse, export, cleanup."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import FileResponse

from chbridge.api.deps import ClickHouseDep, FileStoreDep, SettingsDep
from chbridge.api.v1.schemas import (
    ApiResponse,
    ClickHouseConfig,
    FileExportRequest,
    FileImportRequest,
    ImportRequest,
)
from chbridge.core.errors import RequestValidationFailed, StoredFileNotFound
from chbridge.services.files import DEFAULT_PREVIEW_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/file", tags=["file"])

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def _parse_limit(raw: str | None) -> int:
    try:
        value = int(raw) if raw is not None else DEFAULT_PREVIEW_LIMIT
    except ValueError:
        return DEFAULT_PREVIEW_LIMIT
    return value if value >= 0 else DEFAULT_PREVIEW_LIMIT


@router.post(
    "/upload",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Upload a delimited file",
)
def upload_file(store: FileStoreDep, file: UploadFile | None = File(None)) -> ApiResponse:
    if file is None:
        raise RequestValidationFailed("Failed to get file from request")
    try:
        path = store.save_upload(file.filename or "upload", file.file)
    finally:
        file.file.close()
    return ApiResponse.ok(data={"filePath": str(path)})


@router.get(
    "/columns",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Header row of a stored file",
)
def file_columns(
    store: FileStoreDep,
    file_path: str | None = Query(None, alias="filePath"),
    delimiter: str = ",",
) -> ApiResponse:
    return ApiResponse.ok(data=store.get_header(file_path, delimiter))


@router.get(
    "/preview",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="First data rows of a stored file",
)
def file_preview(
    store: FileStoreDep,
    file_path: str | None = Query(None, alias="filePath"),
    delimiter: str = ",",
    limit: str | None = None,
) -> ApiResponse:
    rows = store.preview(file_path, delimiter, _parse_limit(limit))
    return ApiResponse.ok(data=rows)


@router.post(
    "/import",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Import a stored file into a table",
)
def import_file(
    req: FileImportRequest,
    store: FileStoreDep,
    service: ClickHouseDep,
    settings: SettingsDep,
) -> ApiResponse:
    """Read every data row, coerce per column and insert them as one batch.

    When the body carries no ``config`` the configured ClickHouse defaults
    are used.
    """
    logger.info("Starting file import: %s to table %s", req.file_path, req.table)
    rows = store.data_rows(req.file_path, req.delimiter)
    logger.info("Read %d rows from file", len(rows))

    config = req.config or ClickHouseConfig(
        host=settings.clickhouse_host,
        port=settings.clickhouse_port,
        database=settings.clickhouse_database,
        user=settings.clickhouse_user,
    )
    import_req = ImportRequest(
        config=config, table=req.table, columns=req.columns, data=rows
    )
    with service.connection(config) as client:
        count = service.import_data(client, import_req, strict=req.strict)
    return ApiResponse.ok(data={"rows_imported": len(rows), "rows_in_table": count})


@router.post(
    "/export",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Export a table into a stored file",
)
def export_file(
    req: FileExportRequest, store: FileStoreDep, service: ClickHouseDep
) -> ApiResponse:
    with service.connection(req.config) as client:
        result = service.export_data(client, req)
    stem = _UNSAFE_NAME.sub("_", req.table or "query") or "query"
    target = store.unique_path(f"export_{stem}.csv")
    rows = ([result.columns] if req.include_header else []) + result.rows
    path = store.write_delimited(target, rows, req.delimiter)
    logger.info("Exported %d rows to %s", len(result.rows), path)
    return ApiResponse.ok(
        data={"filePath": str(target), "rows_exported": len(result.rows)}
    )


@router.get("/download", summary="Download a stored file")
def download_file(
    store: FileStoreDep, file_path: str | None = Query(None, alias="filePath")
) -> FileResponse:
    path = store.resolve(file_path)
    if not path.is_file():
        raise StoredFileNotFound(f"file not found: {file_path}")
    return FileResponse(path, filename=path.name, media_type="text/csv")


@router.post(
    "/cleanup",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Delete a stored file",
)
def cleanup_file(
    store: FileStoreDep, file_path: str | None = Query(None, alias="filePath")
) -> ApiResponse:
    store.cleanup(file_path)
    return ApiResponse.ok(message="File cleaned up successfully")
