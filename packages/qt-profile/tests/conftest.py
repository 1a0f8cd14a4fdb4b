"""Pytest configuration and fixtures for qt-profile tests."""

import json
from typing import Any, Optional

import pytest

QUERY_ID = "01be7f13-0206-4552-000d-f46b00202422"


def make_row(
    operator_id: int,
    operator_type: str,
    parents: Any = None,
    stats: Optional[dict] = None,
    time: Optional[dict] = None,
    attrs: Optional[dict] = None,
    encode: bool = False,
) -> dict[str, Any]:
    """Build one GET_QUERY_OPERATOR_STATS row.

    With ``encode=True`` nested blobs are JSON strings, the way the Snowflake
    connector returns VARIANT columns.
    """
    def blob(value):
        if value is None or not encode:
            return value
        return json.dumps(value)

    return {
        "operator_id": operator_id,
        "operator_type": operator_type,
        "parent_operators": blob(parents),
        "operator_statistics": blob(stats),
        "execution_time_breakdown": blob(time),
        "operator_attributes": blob(attrs),
    }


# =============================================================================
# ROW FIXTURES
# =============================================================================

@pytest.fixture
def query_id() -> str:
    return QUERY_ID


@pytest.fixture
def select_rows() -> list[dict[str, Any]]:
    """A SELECT: Result <- Sort <- Aggregate <- Join <- (TableScan, Filter <- TableScan)."""
    return [
        make_row(
            0, "Result", None,
            stats={"input_rows": 42, "io": {"bytes_written_to_result": 2_000_000}},
            time={"overall_percentage": 1.0, "processing": 1.0},
            attrs={"expressions": ["A.ID", "SUM(B.AMOUNT)", "A.NAME"]},
        ),
        make_row(
            1, "Sort", [0],
            stats={"input_rows": 42, "output_rows": 42},
            time={"overall_percentage": 2.0},
            attrs={"sort_keys": ["A.ID ASC", "A.NAME ASC"]},
        ),
        make_row(
            2, "Aggregate", [1],
            stats={"input_rows": 5000, "output_rows": 42},
            time={"overall_percentage": 12.5, "processing": 10.0, "synchronization": 2.5},
            attrs={"functions": ["SUM(B.AMOUNT)"], "grouping_keys": ["A.ID", "A.NAME"]},
        ),
        make_row(
            3, "Join", [2],
            stats={"input_rows": 4000, "output_rows": 5000},
            time={"overall_percentage": 20.0, "processing": 15.0, "network_communication": 5.0},
            attrs={"join_type": "INNER", "equality_join_condition": "(A.ID = B.A_ID)"},
        ),
        make_row(
            4, "TableScan", [3],
            stats={
                "output_rows": 1000,
                "io": {"bytes_scanned": 50_000_000, "percentage_scanned_from_cache": 100.0},
                "pruning": {"partitions_scanned": 20, "partitions_total": 100},
            },
            time={"overall_percentage": 30.0, "processing": 5.0, "remote_disk_io": 25.0},
            attrs={"table_name": "DB.PUBLIC.A", "columns": ["ID", "NAME"]},
        ),
        make_row(
            5, "Filter", [3],
            stats={"input_rows": 10000, "output_rows": 3000},
            time={"overall_percentage": 4.5},
            attrs={"filter_condition": "B.AMOUNT > 10"},
        ),
        make_row(
            6, "TableScan", [5],
            stats={
                "output_rows": 10000,
                "io": {"bytes_scanned": 150_000_000, "percentage_scanned_from_cache": 80.0},
                "pruning": {"partitions_scanned": 60, "partitions_total": 100},
            },
            time={"overall_percentage": 30.0, "processing": 20.0, "local_disk_io": 10.0},
            attrs={"table_name": "DB.PUBLIC.B", "columns": ["A_ID", "AMOUNT", "CREATED_AT"]},
        ),
    ]


@pytest.fixture
def encoded_rows(select_rows) -> list[dict[str, Any]]:
    """Same plan with JSON-string blobs and upper-case keys, as Snowflake returns it."""
    rows = []
    for row in select_rows:
        encoded = {
            key.upper(): (json.dumps(value) if isinstance(value, (dict, list)) else value)
            for key, value in row.items()
        }
        rows.append(encoded)
    return rows


@pytest.fixture
def ctas_rows() -> list[dict[str, Any]]:
    """CREATE TABLE AS SELECT that spills and writes."""
    return [
        make_row(0, "Result", None, stats={"input_rows": 1}),
        make_row(
            1, "CreateTableAsSelect", [0],
            stats={
                "input_rows": 100000,
                "io": {"bytes_written": 3_500_000_000},
                "dml": {"number_of_rows_inserted": 100000.0},
            },
            time={"overall_percentage": 10.0, "other": 10.0},
            attrs={"table_name": "DB.PUBLIC.T", "input_expressions": ["A.ID", "UPPER(A.NAME)"]},
        ),
        make_row(
            2, "Aggregate", [1],
            stats={
                "input_rows": 1000000,
                "output_rows": 100000,
                "spilling": {"bytes_spilled_local_storage": 250_000_000},
            },
            time={"overall_percentage": 40.0, "local_disk_io": 25.0, "processing": 15.0},
        ),
        make_row(
            3, "TableScan", [2],
            stats={
                "output_rows": 1000000,
                "io": {"bytes_scanned": 2_000_000_000, "percentage_scanned_from_cache": 10.0},
                "pruning": {"partitions_scanned": 900, "partitions_total": 1000},
            },
            time={"overall_percentage": 50.0, "remote_disk_io": 50.0},
        ),
    ]
