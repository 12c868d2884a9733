"""ClickHouse endpoints: connect, list tables/columns, export and import rows.

Every handler opens its own connection for the duration of the request.
Errors raised by the gateway propagate to the application's exception
handlers, which render them as the standard envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Body

from chbridge.api.deps import ClickHouseDep
from chbridge.api.v1.schemas import (
    ApiResponse,
    ClickHouseConfig,
    ExportRequest,
    ImportRequest,
)
from chbridge.core.errors import RequestValidationFailed

router = APIRouter(prefix="/clickhouse", tags=["clickhouse"])


@router.post(
    "/connect",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Test a connection",
)
def connect(service: ClickHouseDep, config: ClickHouseConfig = Body(...)) -> ApiResponse:
    with service.connection(config):
        pass
    return ApiResponse.ok(message="Successfully connected to ClickHouse")


@router.api_route(
    "/tables",
    methods=["GET", "POST"],
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="List tables of the configured database",
)
def list_tables(service: ClickHouseDep, config: ClickHouseConfig = Body(...)) -> ApiResponse:
    with service.connection(config) as client:
        tables = service.get_tables(client, config.database)
    return ApiResponse.ok(data=tables)


@router.api_route(
    "/columns/{table}",
    methods=["GET", "POST"],
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="List columns of a table",
)
def list_columns(
    table: str, service: ClickHouseDep, config: ClickHouseConfig = Body(...)
) -> ApiResponse:
    if not table.strip():
        raise RequestValidationFailed("Table name is required")
    with service.connection(config) as client:
        columns = service.get_columns(client, config.database, table)
    return ApiResponse.ok(data=[c.model_dump() for c in columns])


@router.post(
    "/export",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Export table rows",
)
def export_data(req: ExportRequest, service: ClickHouseDep) -> ApiResponse:
    """Return every row of the selection; the result set is fully buffered."""

    with service.connection(req.config) as client:
        result = service.export_data(client, req)
    return ApiResponse.ok(data=result.rows)


@router.post(
    "/import",
    response_model=ApiResponse,
    response_model_exclude_none=True,
    summary="Import rows into a table",
)
def import_data(req: ImportRequest, service: ClickHouseDep) -> ApiResponse:
    with service.connection(req.config) as client:
        count = service.import_data(client, req)
    return ApiResponse.ok(
        message="Data imported successfully", data={"rows_in_table": count}
    )
