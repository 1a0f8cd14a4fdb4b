"""Operator records parsed from Snowflake GET_QUERY_OPERATOR_STATS rows.

Every nested blob (statistics, attributes, execution time breakdown) is
optional and may arrive either as a dict or as a JSON-encoded string. The
helpers here are parse-or-absent: a field that cannot be decoded becomes
``None`` and is logged at DEBUG, it never raises.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class OperatorType(str, Enum):
    """Operator kinds reported by the Snowflake profiler."""
    RESULT = "Result"
    RESULT_WORKER = "ResultWorker"
    TABLE_SCAN = "TableScan"
    EXTERNAL_SCAN = "ExternalScan"
    INTERNAL_OBJECT = "InternalObject"
    VALUES_CLAUSE = "ValuesClause"
    FILTER = "Filter"
    JOIN_FILTER = "JoinFilter"
    PROJECTION = "Projection"
    JOIN = "Join"
    INNER_JOIN = "InnerJoin"
    LEFT_OUTER_JOIN = "LeftOuterJoin"
    RIGHT_OUTER_JOIN = "RightOuterJoin"
    OUTER_JOIN = "OuterJoin"
    CARTESIAN_JOIN = "CartesianJoin"
    AGGREGATE = "Aggregate"
    GROUPING_SETS = "GroupingSets"
    SORT = "Sort"
    SORT_WITH_LIMIT = "SortWithLimit"
    LIMIT = "Limit"
    WINDOW_FUNCTION = "WindowFunction"
    FLATTEN = "Flatten"
    GENERATOR = "Generator"
    UNION_ALL = "UnionAll"
    SECURE_VIEW = "SecureView"
    EXTERNAL_FUNCTION = "ExternalFunction"
    WITH_CLAUSE = "WithClause"
    WITH_REFERENCE = "WithReference"
    CREATE_TABLE_AS_SELECT = "CreateTableAsSelect"
    INSERT = "Insert"
    UPDATE = "Update"
    DELETE = "Delete"
    MERGE = "Merge"
    UNLOAD = "Unload"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> "OperatorType":
        """Map a raw type name to a known kind, falling back to UNKNOWN."""
        try:
            return cls(str(value).strip())
        except ValueError:
            return cls.UNKNOWN


JOIN_TYPES = frozenset({
    OperatorType.JOIN,
    OperatorType.INNER_JOIN,
    OperatorType.LEFT_OUTER_JOIN,
    OperatorType.RIGHT_OUTER_JOIN,
    OperatorType.OUTER_JOIN,
    OperatorType.CARTESIAN_JOIN,
})

DML_TYPES = frozenset({
    OperatorType.INSERT,
    OperatorType.UPDATE,
    OperatorType.DELETE,
    OperatorType.MERGE,
})

# Fixed order; ties on the largest category resolve to the earliest name.
TIME_CATEGORIES = (
    "processing",
    "synchronization",
    "local_disk_io",
    "remote_disk_io",
    "network_communication",
    "other",
)


# ── Parse-or-absent adapters ───────────────────────────────────────────


def parse_json_object(value: Any, field_name: str = "") -> Optional[dict[str, Any]]:
    """Decode a nested blob that may be a dict, a JSON string, or null."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (str, bytes)):
        if not value.strip():
            return None
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Skipping undecodable {field_name or 'field'}: {e}")
            return None
        if isinstance(parsed, dict):
            return parsed
    logger.debug(f"Skipping {field_name or 'field'}: expected an object, got {type(value).__name__}")
    return None


def parse_parent_operators(value: Any) -> Optional[tuple[int, ...]]:
    """Normalize PARENT_OPERATORS to a tuple of ids, or None when absent.

    Accepts a native sequence, a JSON-encoded array string, or null. Anything
    that does not decode to a list of integers is treated as absent.
    """
    if value is None:
        return None

    items: Any = value
    if isinstance(value, (str, bytes)):
        try:
            items = json.loads(value)
        except (json.JSONDecodeError, ValueError):
            logger.debug(f"Unparseable parent_operators {value!r}, treating as absent")
            return None

    if not isinstance(items, (list, tuple)):
        logger.debug(f"parent_operators is not a list: {items!r}")
        return None

    parents = []
    for item in items:
        parent_id = as_int(item)
        if parent_id is None:
            logger.debug(f"Non-integer parent id {item!r}, treating parent_operators as absent")
            return None
        parents.append(parent_id)
    return tuple(parents)


def as_int(value: Any) -> Optional[int]:
    """Coerce an integral value (int, integral float, digit string) to int."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def get_number(mapping: Optional[Mapping[str, Any]], key: str) -> Optional[float]:
    """Read a numeric field; non-numeric values are treated as absent."""
    if not mapping:
        return None
    value = mapping.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.debug(f"Ignoring non-numeric {key}={value!r}")
        return None
    return value


def get_section(mapping: Optional[Mapping[str, Any]], key: str) -> Optional[Mapping[str, Any]]:
    """Read a nested object field; anything else is treated as absent."""
    if not mapping:
        return None
    value = mapping.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        logger.debug(f"Ignoring non-object section {key}={value!r}")
        return None
    return value


def _total(*values: Optional[float]) -> float:
    return sum(v for v in values if v)


# ── Typed records ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Operator:
    """One validated operator row, nested blobs still raw."""
    operator_id: int
    operator_type: OperatorType
    type_name: str
    parent_ids: Optional[tuple[int, ...]] = None
    raw_statistics: Any = None
    raw_attributes: Any = None
    raw_time_breakdown: Any = None

    @property
    def is_root(self) -> bool:
        return not self.parent_ids


@dataclass(frozen=True)
class ExternalFunctionStats:
    """external_function section of OPERATOR_STATISTICS."""
    total_invocations: Optional[float] = None
    average_latency_ms: Optional[float] = None
    http_4xx_errors: Optional[float] = None
    http_5xx_errors: Optional[float] = None
    retries_due_to_transient_errors: Optional[float] = None

    @property
    def errors(self) -> float:
        return _total(self.http_4xx_errors, self.http_5xx_errors)

    @property
    def is_used(self) -> bool:
        return bool(self.total_invocations)


@dataclass(frozen=True)
class OperatorStatistics:
    """Typed view of OPERATOR_STATISTICS; every field is optional."""
    input_rows: Optional[float] = None
    output_rows: Optional[float] = None
    bytes_scanned: Optional[float] = None
    external_bytes_scanned: Optional[float] = None
    bytes_written: Optional[float] = None
    bytes_written_to_result: Optional[float] = None
    cache_hit_pct: Optional[float] = None
    partitions_scanned: Optional[float] = None
    partitions_total: Optional[float] = None
    bytes_spilled_local: Optional[float] = None
    bytes_spilled_remote: Optional[float] = None
    rows_inserted: Optional[float] = None
    rows_updated: Optional[float] = None
    rows_deleted: Optional[float] = None
    network_bytes: Optional[float] = None
    external_function: Optional[ExternalFunctionStats] = None

    @property
    def pruning_efficiency(self) -> Optional[float]:
        """Percent of partitions skipped, unrounded; None without a total."""
        if not self.partitions_total or self.partitions_total <= 0:
            return None
        scanned = self.partitions_scanned or 0
        return (1 - scanned / self.partitions_total) * 100

    @property
    def total_scanned(self) -> float:
        return _total(self.bytes_scanned, self.external_bytes_scanned)

    @property
    def total_written(self) -> float:
        return _total(self.bytes_written, self.bytes_written_to_result)

    @property
    def bytes_spilled(self) -> float:
        return _total(self.bytes_spilled_local, self.bytes_spilled_remote)

    @property
    def dml_rows(self) -> float:
        return _total(self.rows_inserted, self.rows_updated, self.rows_deleted)


@dataclass(frozen=True)
class TimeBreakdown:
    """EXECUTION_TIME_BREAKDOWN with categories in TIME_CATEGORIES order."""
    overall_percentage: float = 0.0
    categories: tuple[tuple[str, float], ...] = ()

    def primary_category(self) -> Optional[tuple[str, float]]:
        """Largest time category, earliest name on ties; None if all zero."""
        best: Optional[tuple[str, float]] = None
        for name, value in self.categories:
            if best is None or value > best[1]:
                best = (name, value)
        if best is None or best[1] <= 0:
            return None
        return best


@dataclass(frozen=True)
class OperatorRecord:
    """An operator together with its decoded nested blobs."""
    operator: Operator
    statistics: OperatorStatistics = field(default_factory=OperatorStatistics)
    time_breakdown: Optional[TimeBreakdown] = None
    attributes: Optional[dict[str, Any]] = None


# ── Blob parsers ────────────────────────────────────────────────────────


def parse_statistics(raw: Any) -> OperatorStatistics:
    """Decode OPERATOR_STATISTICS, keeping whatever fields are readable."""
    stats = parse_json_object(raw, "operator_statistics")
    if not stats:
        return OperatorStatistics()

    io = get_section(stats, "io")
    pruning = get_section(stats, "pruning")
    spilling = get_section(stats, "spilling")
    dml = get_section(stats, "dml")
    network = get_section(stats, "network")

    network_bytes = get_number(network, "network_bytes")
    if network_bytes is None:
        network_bytes = get_number(stats, "network_bytes")

    return OperatorStatistics(
        input_rows=get_number(stats, "input_rows"),
        output_rows=get_number(stats, "output_rows"),
        bytes_scanned=get_number(io, "bytes_scanned"),
        external_bytes_scanned=get_number(io, "external_bytes_scanned"),
        bytes_written=get_number(io, "bytes_written"),
        bytes_written_to_result=get_number(io, "bytes_written_to_result"),
        cache_hit_pct=get_number(io, "percentage_scanned_from_cache"),
        partitions_scanned=get_number(pruning, "partitions_scanned"),
        partitions_total=get_number(pruning, "partitions_total"),
        bytes_spilled_local=get_number(spilling, "bytes_spilled_local_storage"),
        bytes_spilled_remote=get_number(spilling, "bytes_spilled_remote_storage"),
        rows_inserted=get_number(dml, "number_of_rows_inserted"),
        rows_updated=get_number(dml, "number_of_rows_updated"),
        rows_deleted=get_number(dml, "number_of_rows_deleted"),
        network_bytes=network_bytes,
        external_function=_parse_external_function(get_section(stats, "external_function")),
    )


def _parse_external_function(section: Optional[Mapping[str, Any]]) -> Optional[ExternalFunctionStats]:
    if not section:
        return None
    return ExternalFunctionStats(
        total_invocations=get_number(section, "total_invocations"),
        average_latency_ms=get_number(section, "average_latency_per_call"),
        http_4xx_errors=get_number(section, "http_4xx_errors"),
        http_5xx_errors=get_number(section, "http_5xx_errors"),
        retries_due_to_transient_errors=get_number(section, "retries_due_to_transient_errors"),
    )


def parse_time_breakdown(raw: Any) -> Optional[TimeBreakdown]:
    """Decode EXECUTION_TIME_BREAKDOWN; None when the blob is absent."""
    breakdown = parse_json_object(raw, "execution_time_breakdown")
    if breakdown is None:
        return None

    return TimeBreakdown(
        overall_percentage=get_number(breakdown, "overall_percentage") or 0.0,
        categories=tuple(
            (name, get_number(breakdown, name) or 0.0) for name in TIME_CATEGORIES
        ),
    )


def parse_record(operator: Operator) -> OperatorRecord:
    """Decode all nested blobs of one operator."""
    return OperatorRecord(
        operator=operator,
        statistics=parse_statistics(operator.raw_statistics),
        time_breakdown=parse_time_breakdown(operator.raw_time_breakdown),
        attributes=parse_json_object(operator.raw_attributes, "operator_attributes"),
    )


def first_of_type(operators: Sequence[Operator], types: frozenset) -> Optional[Operator]:
    """Return the first operator in row order whose kind is in ``types``."""
    for op in operators:
        if op.operator_type in types:
            return op
    return None
