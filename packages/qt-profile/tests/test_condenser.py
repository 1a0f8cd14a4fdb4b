"""Tests for per-operator condensation."""

import json

import pytest

from qt_profile.condenser import condense_all, condense_operator
from qt_profile.graph import assemble_operators

from conftest import QUERY_ID, make_row


def condense_row(row):
    return condense_operator(assemble_operators(QUERY_ID, [row])[0]).to_dict()


class TestExecutionTime:
    def test_no_breakdown_means_no_percentage(self):
        out = condense_row(make_row(0, "Result", None, stats={"input_rows": 5}))
        assert "overall_percentage" not in out
        assert "primary_time" not in out

    def test_zero_percentage_omitted(self):
        out = condense_row(make_row(0, "Result", None, time={"overall_percentage": 0}))
        assert "overall_percentage" not in out

    def test_small_share_has_no_primary_category(self):
        out = condense_row(make_row(0, "Filter", [1], time={"overall_percentage": 5, "processing": 5}))
        assert out["overall_percentage"] == 5
        assert "primary_time" not in out

    def test_primary_category_above_five_percent(self):
        out = condense_row(make_row(
            0, "TableScan", [1],
            time={"overall_percentage": 30.0, "processing": 5.0, "remote_disk_io": 25.0},
        ))
        assert out["overall_percentage"] == 30.0
        assert out["primary_time"] == "remote_disk_io:25.0%"

    def test_primary_category_tie(self):
        out = condense_row(make_row(
            0, "Sort", [1],
            time={"overall_percentage": 20, "network_communication": 10, "processing": 10},
        ))
        assert out["primary_time"] == "processing:10%"


class TestStatistics:
    def test_zero_rows_omitted(self):
        out = condense_row(make_row(0, "Filter", [1], stats={"input_rows": 0, "output_rows": 7}))
        assert "input_rows" not in out
        assert out["output_rows"] == 7

    def test_io_and_pruning(self):
        out = condense_row(make_row(
            0, "TableScan", [1],
            stats={
                "io": {"bytes_scanned": 1.5e9, "percentage_scanned_from_cache": 95.0, "bytes_written": 0},
                "pruning": {"partitions_scanned": 20, "partitions_total": 100},
            },
        ))
        assert out["bytes_scanned"] == "1.50 GB"
        assert out["cache_hit_rate"] == 95.0
        assert "bytes_written" not in out
        assert out["pruning_efficiency"] == 80.0

    def test_pruning_rounded_to_one_decimal(self):
        out = condense_row(make_row(
            0, "TableScan", [1],
            stats={"pruning": {"partitions_scanned": 1, "partitions_total": 3}},
        ))
        assert out["pruning_efficiency"] == 66.7

    def test_spilling_and_dml(self):
        out = condense_row(make_row(
            0, "Insert", [1],
            stats={
                "spilling": {"bytes_spilled_local_storage": 2e9, "bytes_spilled_remote_storage": 5e8},
                "dml": {"number_of_rows_inserted": 10, "number_of_rows_updated": 5},
            },
            attrs={"table_name": "DB.S.T"},
        ))
        assert out["spilling"] == "2.50 GB"
        assert out["dml_rows_affected"] == 15
        assert out["target_table"] == "DB.S.T"

    def test_external_function(self):
        out = condense_row(make_row(
            0, "ExternalFunction", [1],
            stats={"external_function": {"total_invocations": 12, "average_latency_per_call": 31.5}},
        ))
        assert out["external_function_calls"] == 12
        assert out["external_function_latency_ms"] == 31.5


class TestFieldLevelResilience:
    def test_bad_statistics_json_keeps_other_fields(self):
        row = make_row(0, "TableScan", [1], time={"overall_percentage": 3}, attrs={"table_name": "T"})
        row["operator_statistics"] = "{not valid json"
        out = condense_row(row)
        assert out["overall_percentage"] == 3
        assert out["table_name"] == "T"
        assert "input_rows" not in out

    def test_bad_attributes_json(self):
        row = make_row(0, "Filter", [1], stats={"output_rows": 1})
        row["operator_attributes"] = "[[["
        out = condense_row(row)
        assert out["output_rows"] == 1
        assert "filter_condition" not in out

    def test_unknown_type(self):
        out = condense_row(make_row(0, "MysteryOp", [1], attrs={"table_name": "T"}))
        assert out["operator_type"] == "MysteryOp"
        assert "table_name" not in out


class TestSerialization:
    def test_parent_operators_shape(self):
        assert condense_row(make_row(0, "Result", None))["parent_operators"] is None
        assert condense_row(make_row(1, "Filter", "[0]"))["parent_operators"] == [0]

    def test_to_json_is_compact_and_self_contained(self, select_rows):
        ops = assemble_operators(QUERY_ID, select_rows)
        line = condense_operator(ops[4]).to_json()
        assert "\n" not in line and ", " not in line
        data = json.loads(line)
        assert data["table_name"] == "DB.PUBLIC.A"
        assert data["column_count"] == 2


class TestCondenseAll:
    def test_count_matches_input(self, select_rows):
        ops = assemble_operators(QUERY_ID, select_rows)
        records, condensed = condense_all(ops)
        assert len(records) == len(condensed) == len(select_rows)

    @pytest.mark.parametrize("workers", [1, 4])
    def test_threaded_matches_sequential(self, select_rows, workers):
        ops = assemble_operators(QUERY_ID, select_rows)
        _, sequential = condense_all(ops, max_workers=1)
        _, threaded = condense_all(ops, max_workers=workers)
        assert [c.to_dict() for c in threaded] == [c.to_dict() for c in sequential]
        assert [c.operator_id for c in threaded] == [0, 1, 2, 3, 4, 5, 6]
