"""ClickHouse gateway: connection, introspection, export and batched import.

Each request opens its own client through :meth:`ClickHouseService.connection`
and disconnects when the request is done. Nothing is pooled or cached.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Sequence

from clickhouse_driver import Client
from clickhouse_driver import errors as ch_errors

from chbridge.api.v1.schemas import (
    ClickHouseConfig,
    Column,
    ExportRequest,
    ImportRequest,
)
from chbridge.core.config import Settings
from chbridge.core.errors import (
    ClickHouseConnectionError,
    ImportRowError,
    QueryError,
    RequestValidationFailed,
)
from chbridge.data.coercion import coerce_rows

logger = logging.getLogger(__name__)

NATIVE_PORT = 9000
LOOPBACK_NAMES = {"localhost", "::1"}
LOOPBACK_V4 = "127.0.0.1"
NULLABLE_MARKER = "1"

# Errors raised by the driver for network and server failures
DRIVER_ERRORS = (ch_errors.Error, OSError, EOFError)

ClientFactory = Callable[..., Any]


def quote_identifier(name: str) -> str:
    """Backtick-quote a (possibly ``db.table`` qualified) identifier."""
    name = name.strip()
    if not name:
        raise RequestValidationFailed("identifier must not be empty")
    if name == "*":
        return name
    parts = name.split(".")
    return ".".join("`" + p.replace("\\", "\\\\").replace("`", "\\`") + "`" for p in parts)


def column_type_sql(column: Column) -> str:
    col_type = column.type.strip() or "String"
    if column.nullable and not col_type.startswith("Nullable("):
        return f"Nullable({col_type})"
    return col_type


@dataclass
class ExportResult:
    columns: List[str]
    rows: List[List[Any]] = field(default_factory=list)


class ClickHouseService:
    """Thin wrapper over ``clickhouse_driver.Client`` for request handlers."""

    def __init__(self, settings: Settings, client_factory: ClientFactory = Client) -> None:
        self.settings = settings
        self._client_factory = client_factory

    @staticmethod
    def resolve_address(config: ClickHouseConfig) -> tuple[str, int]:
        host = (config.host or "").strip() or LOOPBACK_V4
        if host in LOOPBACK_NAMES:
            host = LOOPBACK_V4
        port = config.port or NATIVE_PORT
        return host, port

    def connect(self, config: ClickHouseConfig) -> Any:
        """Open a client and verify it answers a liveness check."""
        host, port = self.resolve_address(config)
        user = config.user or self.settings.clickhouse_user
        if config.jwt_token:
            logger.debug("jwtToken supplied but not used for authentication")
        logger.info("Connecting to ClickHouse at %s:%d (database=%s)", host, port, config.database)
        try:
            client = self._client_factory(
                host=host,
                port=port,
                database=config.database or "default",
                user=user,
                password=self.settings.clickhouse_password,
                settings={"max_execution_time": self.settings.max_execution_time},
            )
        except DRIVER_ERRORS as e:
            raise ClickHouseConnectionError(f"failed to connect to ClickHouse: {e}") from e
        try:
            client.execute("SELECT 1")
        except DRIVER_ERRORS as e:
            _disconnect(client)
            raise ClickHouseConnectionError(f"failed to ping ClickHouse: {e}") from e
        return client

    @contextmanager
    def connection(self, config: ClickHouseConfig) -> Iterator[Any]:
        client = self.connect(config)
        try:
            yield client
        finally:
            _disconnect(client)

    # ---------------- Introspection -----------------
    def get_tables(self, client: Any, database: str) -> List[str]:
        query = "SELECT name FROM system.tables WHERE database = %(database)s"
        logger.debug("Executing query: %s [database=%s]", query, database)
        try:
            rows = client.execute(query, {"database": database})
        except DRIVER_ERRORS as e:
            raise QueryError(f"failed to query tables: {e}") from e
        tables = [r[0] for r in rows]
        logger.info("Total tables found in %s: %d", database, len(tables))
        return tables

    def get_columns(self, client: Any, database: str, table: str) -> List[Column]:
        query = (
            "SELECT name, type, toString(startsWith(type, 'Nullable(')) AS is_nullable "
            "FROM system.columns "
            "WHERE database = %(database)s AND table = %(table)s "
            "ORDER BY position"
        )
        try:
            rows = client.execute(query, {"database": database, "table": table})
        except DRIVER_ERRORS as e:
            raise QueryError(f"failed to query columns: {e}") from e
        return [
            Column(name=name, type=col_type, nullable=str(marker) == NULLABLE_MARKER)
            for name, col_type, marker in rows
        ]

    # ---------------- Export -----------------
    def build_select(self, req: ExportRequest) -> str:
        if req.query:
            return req.query
        if not req.table.strip():
            raise RequestValidationFailed("Table name is required")
        cols = ", ".join(quote_identifier(c) for c in req.columns) if req.columns else "*"
        return f"SELECT {cols} FROM {quote_identifier(req.table)}"

    def export_data(self, client: Any, req: ExportRequest) -> ExportResult:
        """Run the export query and buffer the whole result set."""
        query = self.build_select(req)
        logger.info("Exporting data: %s", query)
        try:
            rows, col_types = client.execute(query, with_column_types=True)
        except DRIVER_ERRORS as e:
            raise QueryError(f"failed to execute query: {e}") from e
        result = ExportResult(
            columns=[name for name, _type in col_types],
            rows=[list(r) for r in rows],
        )
        logger.info("Total rows exported: %d", len(result.rows))
        return result

    # ---------------- Import -----------------
    def create_table(self, client: Any, table: str, columns: Sequence[Column]) -> None:
        if not columns:
            raise RequestValidationFailed("at least one column is required")
        defs = ",\n    ".join(
            f"{quote_identifier(c.name)} {column_type_sql(c)}" for c in columns
        )
        query = (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n    {defs}\n) "
            "ENGINE = MergeTree() ORDER BY tuple()"
        )
        logger.debug("Executing query: %s", query)
        try:
            client.execute(query)
        except DRIVER_ERRORS as e:
            raise QueryError(f"failed to create table: {e}") from e

    def build_insert(self, table: str, columns: Sequence[Column]) -> str:
        names = ", ".join(quote_identifier(c.name) for c in columns)
        return f"INSERT INTO {quote_identifier(table)} ({names}) VALUES"

    def import_data(self, client: Any, req: ImportRequest, *, strict: bool = False) -> int:
        """Create the table if needed, send all rows as one batch, return the row count."""
        if not req.table.strip():
            raise RequestValidationFailed("Table name is required")
        logger.info(
            "Starting import into %s: %d columns, %d rows",
            req.table,
            len(req.columns),
            len(req.data),
        )
        try:
            self.create_table(client, req.table, req.columns)
        except QueryError as e:
            raise QueryError(f"failed to prepare table: {e}") from e

        query = self.build_insert(req.table, req.columns)
        width = len(req.columns)
        for i, row in enumerate(req.data):
            if len(row) != width:
                raise ImportRowError(i, f"expected {width} values, got {len(row)}")
        batch = coerce_rows(req.data, req.columns, strict=strict)

        if batch:
            logger.info("Sending batch of %d rows: %s", len(batch), query)
            try:
                client.execute(query, batch, types_check=True)
            except (*DRIVER_ERRORS, TypeError, ValueError) as e:
                raise QueryError(f"failed to send batch: {e}") from e
        else:
            logger.info("No rows to import into %s", req.table)

        count_query = f"SELECT count() FROM {quote_identifier(req.table)}"
        try:
            rows = client.execute(count_query)
        except DRIVER_ERRORS as e:
            raise QueryError(f"failed to verify import: {e}") from e
        count = int(rows[0][0]) if rows else 0
        logger.info("Import finished. Total rows in table %s: %d", req.table, count)
        return count


def _disconnect(client: Any) -> None:
    try:
        client.disconnect()
    except DRIVER_ERRORS:
        logger.warning("error while closing ClickHouse connection", exc_info=True)


__all__ = [
    "ClickHouseService",
    "ExportResult",
    "quote_identifier",
    "column_type_sql",
    "NATIVE_PORT",
]
