"""Per-column type coercion for rows read from delimited text.

Every field is turned into a :class:`CellValue` tagged with the kind of
Python value it carries. Fields that do not parse as their declared column
type keep the raw string (``fell_back`` is set) unless strict mode is on, in
which case :class:`~chbridge.core.errors.CoercionError` is raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List, Sequence

from chbridge.api.v1.schemas import Column
from chbridge.core.errors import CoercionError

DATE_FORMAT = "%Y-%m-%d"

INTEGER_TYPES = {
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
}
FLOAT_TYPES = {"Float32", "Float64"}
DATE_TYPES = {"Date", "DateTime"}

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
# 2**63 has 19 digits
_INT_MAX_DIGITS = 19
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NULLABLE = re.compile(r"Nullable\((.+)\)")


class CellKind(str, Enum):
    INT64 = "Int64"
    FLOAT64 = "Float64"
    DATE = "Date"
    STRING = "String"


@dataclass(frozen=True)
class CellValue:
    kind: CellKind
    value: Any
    fell_back: bool = False


def base_type(column_type: str) -> str:
    """Strip a ``Nullable(...)`` wrapper from a ClickHouse type name."""
    m = _NULLABLE.fullmatch(column_type.strip())
    return m.group(1).strip() if m else column_type.strip()


def _parse_int(raw: str) -> int | None:
    if not _INT_PATTERN.fullmatch(raw):
        return None
    digits = raw.lstrip("+-").lstrip("0")
    if len(digits) > _INT_MAX_DIGITS:
        return None
    num = int(digits or "0")
    if raw.startswith("-"):
        num = -num
    if num < _INT64_MIN or num > _INT64_MAX:
        return None
    return num


def _parse_float(raw: str) -> float | None:
    # float() tolerates surrounding whitespace and digit separators; reject both
    if raw != raw.strip() or "_" in raw or not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _parse_date(raw: str) -> datetime | None:
    # strptime also accepts single-digit months and days
    if not _DATE_PATTERN.fullmatch(raw):
        return None
    try:
        return datetime.strptime(raw, DATE_FORMAT)
    except ValueError:
        return None


def coerce_field(raw: str, column: Column | None) -> CellValue:
    """Coerce a single text field according to its column declaration."""

    if column is None:
        return CellValue(CellKind.STRING, raw)
    col_type = base_type(column.type)
    nullable = column.nullable or col_type != column.type.strip()
    if nullable and raw == "":
        return CellValue(CellKind.STRING, None)

    if col_type in INTEGER_TYPES:
        num = _parse_int(raw)
        if num is not None:
            return CellValue(CellKind.INT64, num)
        return CellValue(CellKind.STRING, raw, fell_back=True)
    if col_type in FLOAT_TYPES:
        num_f = _parse_float(raw)
        if num_f is not None:
            return CellValue(CellKind.FLOAT64, num_f)
        return CellValue(CellKind.STRING, raw, fell_back=True)
    if col_type in DATE_TYPES:
        parsed = _parse_date(raw)
        if parsed is not None:
            value: date = parsed if col_type == "DateTime" else parsed.date()
            return CellValue(CellKind.DATE, value)
        return CellValue(CellKind.STRING, raw, fell_back=True)
    return CellValue(CellKind.STRING, raw)


def coerce_row(
    row: Sequence[Any],
    columns: Sequence[Column],
    *,
    strict: bool = False,
    row_index: int = 0,
) -> List[Any]:
    """Coerce the string cells of one row; non-string cells pass through.

    Parameters
    ----------
    row: field values, usually strings straight from the file.
    columns: declared columns, matched to fields by position.
    strict: raise instead of silently keeping unparseable strings.
    row_index: zero-based data row number used in error messages.
    """
    out: List[Any] = []
    for i, raw in enumerate(row):
        if not isinstance(raw, str):
            out.append(raw)
            continue
        column = columns[i] if i < len(columns) else None
        cell = coerce_field(raw, column)
        if cell.fell_back and strict and column is not None:
            raise CoercionError(row_index, column.name, column.type, raw)
        out.append(cell.value)
    return out


def coerce_rows(
    rows: Iterable[Sequence[Any]], columns: Sequence[Column], *, strict: bool = False
) -> List[List[Any]]:
    return [
        coerce_row(row, columns, strict=strict, row_index=i)
        for i, row in enumerate(rows)
    ]


__all__ = [
    "CellKind",
    "CellValue",
    "base_type",
    "coerce_field",
    "coerce_row",
    "coerce_rows",
    "INTEGER_TYPES",
    "FLOAT_TYPES",
    "DATE_TYPES",
]
