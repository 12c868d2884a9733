from datetime import date, datetime

import pytest

from chbridge.api.v1.schemas import Column
from chbridge.core.errors import CoercionError
from chbridge.data.coercion import (
    CellKind,
    base_type,
    coerce_field,
    coerce_row,
    coerce_rows,
)

COLUMNS = [
    Column(name="id", type="Int32"),
    Column(name="name", type="String"),
    Column(name="day", type="Date"),
]


def test_scenario_rows_all_survive_with_fallbacks():
    rows = [
        ["1", "Alice", "2024-01-01"],
        ["2", "Bob", "bad-date"],
        ["x", "Carol", "2024-01-03"],
    ]
    out = coerce_rows(rows, COLUMNS)
    assert out[0] == [1, "Alice", date(2024, 1, 1)]
    assert out[1] == [2, "Bob", "bad-date"]
    assert out[2] == ["x", "Carol", date(2024, 1, 3)]
    assert len(out) == 3


@pytest.mark.parametrize(
    "col_type", ["Int32", "Int64", "UInt32", "UInt64", "Int8", "UInt16"]
)
def test_integer_family(col_type):
    cell = coerce_field("-42", Column(name="n", type=col_type))
    assert cell.kind is CellKind.INT64
    assert cell.value == -42


@pytest.mark.parametrize("raw", ["1.5", " 7", "1_000", "", "12abc", "9223372036854775808"])
def test_integer_fallback_keeps_raw_string(raw):
    cell = coerce_field(raw, Column(name="n", type="Int64"))
    assert cell.kind is CellKind.STRING
    assert cell.value == raw
    assert cell.fell_back


def test_huge_integer_keeps_raw_string():
    raw = "1" * 5000
    cell = coerce_field(raw, Column(name="n", type="Int64"))
    assert cell.kind is CellKind.STRING
    assert cell.value == raw
    assert cell.fell_back


def test_leading_zeros_do_not_count_towards_range():
    assert coerce_field("0" * 30 + "42", Column(name="n", type="Int64")).value == 42
    lowest = coerce_field("-0009223372036854775808", Column(name="n", type="Int64"))
    assert lowest.value == -(2**63)


def test_float_family():
    assert coerce_field("3.25", Column(name="f", type="Float64")).value == 3.25
    assert coerce_field("1e3", Column(name="f", type="Float32")).value == 1000.0
    bad = coerce_field("three", Column(name="f", type="Float64"))
    assert bad.value == "three" and bad.fell_back


def test_date_and_datetime():
    d = coerce_field("2024-02-29", Column(name="d", type="Date"))
    assert d.kind is CellKind.DATE
    assert d.value == date(2024, 2, 29) and not isinstance(d.value, datetime)

    dt = coerce_field("2024-02-29", Column(name="d", type="DateTime"))
    assert dt.value == datetime(2024, 2, 29)

    # only the date pattern is understood
    raw = coerce_field("2024-02-29 10:00:00", Column(name="d", type="DateTime"))
    assert raw.value == "2024-02-29 10:00:00"


@pytest.mark.parametrize("raw", ["2024-1-5", "2024-01-5", "24-01-05", "2024-02-30"])
def test_date_requires_zero_padded_pattern(raw):
    cell = coerce_field(raw, Column(name="d", type="Date"))
    assert cell.kind is CellKind.STRING
    assert cell.value == raw
    assert cell.fell_back


def test_unknown_type_and_missing_column_pass_through():
    assert coerce_field("123", Column(name="s", type="String")).value == "123"
    assert coerce_field("123", Column(name="u", type="UUID")).value == "123"
    assert coerce_field("123", None).value == "123"
    assert coerce_row(["1", "a", "2024-01-01", "extra"], COLUMNS)[3] == "extra"


def test_nullable_types():
    assert base_type("Nullable(Int32)") == "Int32"
    assert coerce_field("5", Column(name="n", type="Nullable(Int32)")).value == 5
    assert coerce_field("", Column(name="n", type="Int32", nullable=True)).value is None
    # non-nullable keeps the empty string
    assert coerce_field("", Column(name="n", type="Int32")).value == ""


def test_non_string_cells_pass_through():
    assert coerce_row([7, None, "2024-01-01"], COLUMNS) == [7, None, date(2024, 1, 1)]


def test_strict_mode_reports_row_and_column():
    with pytest.raises(CoercionError) as exc:
        coerce_rows([["1", "a", "2024-01-01"], ["x", "b", "2024-01-02"]], COLUMNS, strict=True)
    assert exc.value.row == 1
    assert exc.value.column == "id"
    assert "'x'" in str(exc.value)
