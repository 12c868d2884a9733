"""Pytest configuration and shared fixtures.

``FakeClickHouse`` stands in for a ClickHouse server: it hands out clients
with the ``clickhouse_driver.Client`` call surface used by the gateway and
keeps tables in memory so several requests can observe the same state.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pytest
from clickhouse_driver import errors as ch_errors
from fastapi.testclient import TestClient

from chbridge.api.deps import get_clickhouse_service
from chbridge.core.config import Settings, get_settings
from chbridge.main import create_app
from chbridge.services.clickhouse import ClickHouseService

_CREATE = re.compile(
    r"CREATE TABLE IF NOT EXISTS (?P<table>\S+) \(\n(?P<defs>.*)\n\) ENGINE", re.S
)
_INSERT = re.compile(r"INSERT INTO (?P<table>\S+) \((?P<cols>.*)\) VALUES")
_SELECT = re.compile(r"SELECT (?P<cols>.+) FROM (?P<table>\S+)$")
_COUNT = re.compile(r"SELECT count\(\) FROM (?P<table>\S+)$")


def unquote(identifier: str) -> str:
    return ".".join(p.strip("`") for p in identifier.split("."))


class FakeClient:
    def __init__(self, server: "FakeClickHouse", **kwargs: Any) -> None:
        self.server = server
        self.kwargs = kwargs
        self.disconnected = False

    def execute(self, query: str, params: Any = None, with_column_types: bool = False, **_kw):
        return self.server.handle(query, params, with_column_types)

    def disconnect(self) -> None:
        self.disconnected = True


class FakeClickHouse:
    def __init__(self) -> None:
        self.tables: dict[str, list[tuple[str, str]]] = {}
        self.rows: dict[str, list[list[Any]]] = {}
        self.queries: list[str] = []
        self.clients: list[FakeClient] = []
        self.down = False
        self.fail_on: str | None = None

    # factory with the keyword signature of clickhouse_driver.Client
    def connect(self, **kwargs: Any) -> FakeClient:
        client = FakeClient(self, **kwargs)
        self.clients.append(client)
        return client

    def add_table(self, name: str, columns: list[tuple[str, str]], rows=None) -> None:
        self.tables[name] = list(columns)
        self.rows[name] = [list(r) for r in rows or []]

    def handle(self, query: str, params: Any, with_column_types: bool):
        self.queries.append(query)
        if self.down:
            raise ch_errors.NetworkError("Code: 210. Connection refused (127.0.0.1:9000)")
        if self.fail_on and self.fail_on in query:
            raise ch_errors.ServerException("DB::Exception: simulated failure", 60)
        if query == "SELECT 1":
            return [(1,)]
        if "FROM system.tables" in query:
            return [(name,) for name in self.tables]
        if "FROM system.columns" in query:
            cols = self.tables.get(params["table"], [])
            return [
                (name, typ, "1" if typ.startswith("Nullable(") else "0")
                for name, typ in cols
            ]
        m = _CREATE.match(query)
        if m:
            table = unquote(m.group("table"))
            if table not in self.tables:
                cols = []
                for line in m.group("defs").split(",\n"):
                    name, typ = line.strip().split(" ", 1)
                    cols.append((unquote(name), typ))
                self.add_table(table, cols)
            return []
        m = _INSERT.match(query)
        if m:
            table = unquote(m.group("table"))
            if table not in self.tables:
                raise ch_errors.ServerException(f"Table {table} doesn't exist", 60)
            self.rows[table].extend(list(r) for r in params)
            return len(params)
        m = _COUNT.match(query)
        if m:
            return [(len(self.rows.get(unquote(m.group("table")), [])),)]
        m = _SELECT.match(query)
        if m:
            table = unquote(m.group("table"))
            if table not in self.tables:
                raise ch_errors.ServerException(f"Table {table} doesn't exist", 60)
            all_cols = self.tables[table]
            if m.group("cols").strip() == "*":
                idx = list(range(len(all_cols)))
            else:
                names = [c[0] for c in all_cols]
                idx = [names.index(unquote(c.strip())) for c in m.group("cols").split(",")]
            rows = [tuple(r[i] for i in idx) for r in self.rows[table]]
            if with_column_types:
                return rows, [all_cols[i] for i in idx]
            return rows
        raise ch_errors.ServerException(f"Syntax error: {query}", 62)


@pytest.fixture
def fake_clickhouse() -> FakeClickHouse:
    return FakeClickHouse()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        upload_dir=str(tmp_path / "uploads"),
        max_upload_size=1024,
    )


@pytest.fixture
def service(settings: Settings, fake_clickhouse: FakeClickHouse) -> ClickHouseService:
    return ClickHouseService(settings, client_factory=fake_clickhouse.connect)


@pytest.fixture
def client(settings: Settings, service: ClickHouseService) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clickhouse_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def conn_config() -> dict:
    return {
        "host": "localhost",
        "port": 9000,
        "database": "default",
        "user": "default",
        "jwtToken": "",
    }


def write_csv(path: Path, lines: list[str]) -> Path:
    """Write raw CSV lines to ``path`` and return it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
