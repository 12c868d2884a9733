"""Pydantic models describing the public API surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class ClickHouseConfig(BaseModel):
    """Connection parameters supplied by the client on every request."""

    host: str = "localhost"
    port: int = Field(default=0, description="0 selects the native protocol port.")
    database: str = "default"
    user: str | None = None
    jwt_token: str | None = Field(
        default=None,
        alias="jwtToken",
        description="Accepted for compatibility; not used for authentication.",
    )

    model_config = {"populate_by_name": True}


class Column(BaseModel):
    """A column of a ClickHouse table or of an imported file."""

    name: str
    type: str = "String"
    nullable: bool = False


class ExportRequest(BaseModel):
    """Body for exporting rows out of a table."""

    config: ClickHouseConfig = Field(default_factory=ClickHouseConfig)
    table: str = ""
    columns: list[str] = Field(default_factory=list)
    query: str | None = Field(
        default=None, description="Raw SELECT overriding table/columns."
    )

    @field_validator("query")
    @classmethod
    def _blank_query_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class ImportRequest(BaseModel):
    """Body for inserting in-memory rows into a table."""

    config: ClickHouseConfig = Field(default_factory=ClickHouseConfig)
    table: str
    columns: list[Column]
    data: list[list[Any]] = Field(default_factory=list)


class FileImportRequest(BaseModel):
    """Body for importing a previously uploaded delimited file."""

    file_path: str = Field(alias="filePath")
    table: str
    columns: list[Column]
    delimiter: str = ","
    config: ClickHouseConfig | None = None
    strict: bool = Field(
        default=False,
        description="Reject fields that do not parse as their column type.",
    )

    model_config = {"populate_by_name": True}


class FileExportRequest(ExportRequest):
    """Body for exporting a table into a delimited file on the server."""

    delimiter: str = ","
    include_header: bool = Field(default=True, alias="includeHeader")

    model_config = {"populate_by_name": True}


class ApiResponse(BaseModel):
    """Uniform envelope returned by every endpoint."""

    success: bool
    message: str | None = None
    data: Any | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any | None = None, message: str | None = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse":
        return cls(success=False, error=error or "unknown error")


class HealthResponse(BaseModel):
    """Simple service liveness payload."""

    status: str
    version: str
    git_commit: str | None = None
    upload_dir_writable: bool = True


__all__ = [
    "ClickHouseConfig",
    "Column",
    "ExportRequest",
    "ImportRequest",
    "FileImportRequest",
    "FileExportRequest",
    "ApiResponse",
    "HealthResponse",
]
