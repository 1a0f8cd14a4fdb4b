"""Response assembly and the never-raising outer boundary.

Operators are emitted as a list of independent compact JSON strings so a
consumer that truncates by line or size can still parse each one.
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Protocol

from .analyzer import ProfileAnalysis, analyze_profile
from .errors import NotFoundError, ProfileError, ValidationError
from .graph import validate_query_id

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
PARSE_INSTRUCTIONS = (
    "Each element in operators is a JSON string. "
    "Parse with json.loads() to get the operator dict."
)


class OutputFormat(str, Enum):
    """Serialization mode. Both encode identical data."""
    PRETTY = "pretty"      # indented, a.k.a. expanded
    MINIFIED = "minified"  # single line, a.k.a. compact

    @classmethod
    def parse(cls, value: "str | OutputFormat | None") -> "OutputFormat":
        """Anything other than minified/compact falls back to pretty."""
        if isinstance(value, cls):
            return value
        if value and str(value).strip().lower() in ("minified", "compact"):
            return cls.MINIFIED
        return cls.PRETTY


class OperatorRowSource(Protocol):
    """Anything that can fetch GET_QUERY_OPERATOR_STATS rows."""

    def fetch_operator_rows(self, query_id: str) -> list[dict[str, Any]]:
        ...


def _timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def dumps(payload: Mapping[str, Any], output_format: "str | OutputFormat | None" = OutputFormat.PRETTY) -> str:
    """Serialize a payload in the requested mode."""
    if OutputFormat.parse(output_format) is OutputFormat.MINIFIED:
        return json.dumps(payload, separators=(",", ":"))
    return json.dumps(payload, indent=2)


def build_success_payload(analysis: ProfileAnalysis) -> dict[str, Any]:
    return {
        "status": "success",
        "query_id": analysis.query_id,
        "timestamp": _timestamp(),
        "summary_metrics": analysis.summary.to_dict(),
        "performance_classification": analysis.classify().to_dict(),
        "operators": [op.to_json() for op in analysis.operators],
        "parse_instructions": PARSE_INSTRUCTIONS,
    }


def build_error_payload(error: BaseException, query_id: Optional[str] = None) -> dict[str, Any]:
    """Convert any failure into a machine-parseable error payload."""
    if isinstance(error, ValidationError):
        return {"status": "error", "error": error.message, "timestamp": _timestamp()}

    if isinstance(error, NotFoundError):
        return {
            "status": "error",
            "error": error.message,
            "query_id": query_id,
            "timestamp": _timestamp(),
        }

    details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return {
        "status": "error",
        "error": error.message if isinstance(error, ProfileError) else str(error),
        "details": details.replace("\n", " | "),
        "query_id": query_id,
        "timestamp": _timestamp(),
    }


def _log_failure(error: Exception, query_id: Optional[str]) -> None:
    if isinstance(error, (ValidationError, NotFoundError)):
        logger.info(f"Query {query_id!r} rejected: {error}")
    else:
        logger.exception(f"Profile analysis failed for query {query_id!r}")


def analyze_query(
    query_id: str,
    rows: Optional[Iterable[Mapping[str, Any]]],
    output_format: "str | OutputFormat | None" = OutputFormat.PRETTY,
    max_workers: int = 1,
) -> str:
    """Analyze already-fetched operator rows and return the JSON payload.

    Never raises: every failure becomes an ``{"status": "error"}`` payload.
    """
    try:
        payload = build_success_payload(analyze_profile(query_id, rows, max_workers=max_workers))
    except Exception as e:
        _log_failure(e, query_id)
        payload = build_error_payload(e, query_id)
    return dumps(payload, output_format)


def fetch_and_analyze(
    query_id: str,
    source: OperatorRowSource,
    output_format: "str | OutputFormat | None" = OutputFormat.PRETTY,
    max_workers: int = 1,
) -> str:
    """Validate the id, fetch its operator rows, and analyze them.

    The id is validated before the source is touched, so a malformed id
    never reaches the database.
    """
    try:
        validate_query_id(query_id)
        rows = source.fetch_operator_rows(query_id)
        payload = build_success_payload(analyze_profile(query_id, rows, max_workers=max_workers))
    except Exception as e:
        _log_failure(e, query_id)
        payload = build_error_payload(e, query_id)
    return dumps(payload, output_format)
