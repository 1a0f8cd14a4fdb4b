"""Tests for payload assembly and the never-raising entry points."""

import json

import pytest

from qt_profile.errors import InternalError, NotFoundError, ValidationError
from qt_profile.response import (
    PARSE_INSTRUCTIONS,
    OutputFormat,
    analyze_query,
    build_error_payload,
    dumps,
    fetch_and_analyze,
)

from conftest import QUERY_ID, make_row


class FakeSource:
    """Row source that records every fetch."""

    def __init__(self, rows=None, error=None):
        self.rows = rows
        self.error = error
        self.calls = []

    def fetch_operator_rows(self, query_id):
        self.calls.append(query_id)
        if self.error is not None:
            raise self.error
        return self.rows


def strip_timestamp(payload):
    return {k: v for k, v in payload.items() if k != "timestamp"}


class TestOutputFormat:
    @pytest.mark.parametrize("value, expected", [
        ("pretty", OutputFormat.PRETTY),
        ("expanded", OutputFormat.PRETTY),
        ("minified", OutputFormat.MINIFIED),
        ("COMPACT", OutputFormat.MINIFIED),
        ("yaml", OutputFormat.PRETTY),
        (None, OutputFormat.PRETTY),
    ])
    def test_parse(self, value, expected):
        assert OutputFormat.parse(value) is expected

    def test_dumps_modes(self):
        assert dumps({"a": [1, 2]}, "minified") == '{"a":[1,2]}'
        assert "\n" in dumps({"a": [1, 2]}, "pretty")


class TestAnalyzeQuery:
    def test_success_payload(self, select_rows):
        payload = json.loads(analyze_query(QUERY_ID, select_rows))
        assert payload["status"] == "success"
        assert payload["query_id"] == QUERY_ID
        assert payload["parse_instructions"] == PARSE_INSTRUCTIONS
        assert payload["summary_metrics"]["operator_count"] == 7
        assert payload["summary_metrics"]["final_output_rows"] == 42
        assert payload["performance_classification"]["overall"] == "CRITICAL"

    def test_operators_are_independent_json_strings(self, select_rows):
        payload = json.loads(analyze_query(QUERY_ID, select_rows))
        assert len(payload["operators"]) == len(select_rows)
        for line in payload["operators"]:
            assert isinstance(line, str)
            assert "operator_id" in json.loads(line)

    def test_pretty_and_minified_carry_same_data(self, select_rows):
        pretty = analyze_query(QUERY_ID, select_rows, "pretty")
        minified = analyze_query(QUERY_ID, select_rows, "minified")
        assert "\n" in pretty and "\n" not in minified
        assert strip_timestamp(json.loads(pretty)) == strip_timestamp(json.loads(minified))

    def test_encoded_rows_match_native_rows(self, select_rows, encoded_rows):
        native = strip_timestamp(json.loads(analyze_query(QUERY_ID, select_rows)))
        encoded = strip_timestamp(json.loads(analyze_query(QUERY_ID, encoded_rows)))
        assert native == encoded

    def test_row_order_does_not_change_summary(self, select_rows):
        forward = json.loads(analyze_query(QUERY_ID, select_rows))
        backward = json.loads(analyze_query(QUERY_ID, list(reversed(select_rows))))
        assert forward["summary_metrics"]["query_type"] == backward["summary_metrics"]["query_type"]
        assert forward["summary_metrics"]["total_bytes_scanned"] == backward["summary_metrics"]["total_bytes_scanned"]
        assert forward["performance_classification"] == backward["performance_classification"]

    def test_invalid_query_id(self, select_rows):
        payload = json.loads(analyze_query("not-a-uuid", select_rows))
        assert payload["status"] == "error"
        assert "Invalid Query ID format" in payload["error"]
        assert "query_id" not in payload

    def test_no_rows(self):
        payload = json.loads(analyze_query(QUERY_ID, []))
        assert payload["status"] == "error"
        assert "No operator statistics found" in payload["error"]
        assert payload["query_id"] == QUERY_ID

    def test_structural_failure_has_details(self):
        payload = json.loads(analyze_query(QUERY_ID, [make_row("zero", "Result")]))
        assert payload["status"] == "error"
        assert payload["query_id"] == QUERY_ID
        assert "\n" not in payload["details"]
        assert "InternalError" in payload["details"]

    def test_minified_error(self):
        out = analyze_query(QUERY_ID, [], output_format="compact")
        assert "\n" not in out
        assert json.loads(out)["status"] == "error"


class TestBuildErrorPayload:
    def test_validation_shape(self):
        payload = build_error_payload(ValidationError(), QUERY_ID)
        assert set(payload) == {"status", "error", "timestamp"}

    def test_not_found_shape(self):
        payload = build_error_payload(NotFoundError(), QUERY_ID)
        assert set(payload) == {"status", "error", "query_id", "timestamp"}

    def test_unexpected_error_shape(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            payload = build_error_payload(e, QUERY_ID)
        assert payload["error"] == "boom"
        assert set(payload) == {"status", "error", "details", "query_id", "timestamp"}
        assert " | " in payload["details"]

    def test_internal_error_uses_message(self):
        payload = build_error_payload(InternalError("bad row"), QUERY_ID)
        assert payload["error"] == "bad row"


class TestFetchAndAnalyze:
    def test_success(self, select_rows):
        source = FakeSource(rows=select_rows)
        payload = json.loads(fetch_and_analyze(QUERY_ID, source))
        assert payload["status"] == "success"
        assert source.calls == [QUERY_ID]

    def test_validates_before_fetching(self):
        source = FakeSource(rows=[])
        payload = json.loads(fetch_and_analyze("'; DROP TABLE x; --", source))
        assert payload["status"] == "error"
        assert source.calls == []

    def test_source_failure_becomes_payload(self):
        source = FakeSource(error=ConnectionError("warehouse unavailable"))
        payload = json.loads(fetch_and_analyze(QUERY_ID, source, output_format="minified"))
        assert payload["status"] == "error"
        assert payload["error"] == "warehouse unavailable"
        assert payload["query_id"] == QUERY_ID

    def test_empty_fetch_is_not_found(self):
        payload = json.loads(fetch_and_analyze(QUERY_ID, FakeSource(rows=[])))
        assert "No operator statistics found" in payload["error"]
