"""Whole-query reduction of parsed operator records.

Produces totals, averages and the performance issue collections. The
reduction runs after every operator has been parsed and condensed, so it
never sees a partially built operator set.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Sequence, Union

from .formatting import format_bytes
from .operators import DML_TYPES, JOIN_TYPES, Operator, OperatorRecord, OperatorType, first_of_type

logger = logging.getLogger(__name__)

# Flags an operator as a hotspot. Kept apart from the classifier's POOR
# lower edge even though both are 15.
HIGH_EXECUTION_TIME_PCT = 15

# Output rows above input_rows * factor mark an exploding join.
EXPLODING_JOIN_FACTOR = 10


def _compact(data: dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))


def _count(value: float) -> float:
    """Render integral floats (Snowflake DML counts are DOUBLE) as ints."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# ── Performance issues ──────────────────────────────────────────────────


@dataclass(frozen=True)
class HighExecutionTime:
    """Operator consuming more than HIGH_EXECUTION_TIME_PCT of query time."""
    kind: ClassVar[str] = "high_execution_time"
    operator_id: int
    operator_type: str
    pct: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.operator_id, "type": self.operator_type, "pct": self.pct}


@dataclass(frozen=True)
class ExplodingJoin:
    """Join producing more than EXPLODING_JOIN_FACTOR times its input rows."""
    kind: ClassVar[str] = "exploding_join"
    operator_id: int
    operator_type: str
    input_rows: float
    output_rows: float
    factor: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator_id": self.operator_id,
            "operator_type": self.operator_type,
            "input_rows": self.input_rows,
            "output_rows": self.output_rows,
            "multiplication_factor": self.factor,
        }


@dataclass(frozen=True)
class Spilling:
    """Operator that spilled to local and/or remote storage."""
    kind: ClassVar[str] = "spilling"
    operator_id: int
    operator_type: str
    local_bytes: float
    remote_bytes: float

    @property
    def total_bytes(self) -> float:
        return self.local_bytes + self.remote_bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator_id": self.operator_id,
            "operator_type": self.operator_type,
            "bytes_spilled_remote": format_bytes(self.remote_bytes),
            "bytes_spilled_local": format_bytes(self.local_bytes),
            "total_bytes_spilled": format_bytes(self.total_bytes),
        }


@dataclass(frozen=True)
class ExternalFunctionUsage:
    """Operator that called an external function."""
    kind: ClassVar[str] = "external_function"
    operator_id: int
    operator_type: str
    invocations: float
    errors: float
    average_latency_ms: Optional[float]
    retries: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator_id": self.operator_id,
            "operator_type": self.operator_type,
            "invocations": _count(self.invocations),
            "errors": _count(self.errors),
            "average_latency_ms": self.average_latency_ms,
            "retries": _count(self.retries),
        }


PerformanceIssue = Union[HighExecutionTime, ExplodingJoin, Spilling, ExternalFunctionUsage]


def issues_to_json(issues: Sequence[PerformanceIssue]) -> list[str]:
    """Serialize each issue on its own so consumers can skip entries."""
    return [_compact(issue.to_dict()) for issue in issues]


# ── Summary ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SummaryMetrics:
    """Aggregate view of a query's operators. Byte totals are raw counts."""
    query_type: str
    operator_count: int
    total_bytes_scanned: float = 0
    total_bytes_written: float = 0
    final_output_rows: float = 0
    rows_inserted: float = 0
    rows_updated: float = 0
    rows_deleted: float = 0
    bytes_spilled_local: float = 0
    bytes_spilled_remote: float = 0
    average_cache_hit_rate: float = 0.0
    cache_hit_samples: int = 0
    average_pruning_efficiency: float = 0.0
    pruning_samples: int = 0
    max_execution_percentage: float = 0.0
    max_join_multiplication: Optional[float] = None
    high_execution_operators: tuple[HighExecutionTime, ...] = ()
    exploding_joins: tuple[ExplodingJoin, ...] = ()
    spilling_operators: tuple[Spilling, ...] = ()
    external_function_operators: tuple[ExternalFunctionUsage, ...] = ()

    @property
    def dml_rows_affected(self) -> float:
        return self.rows_inserted + self.rows_updated + self.rows_deleted

    @property
    def total_bytes_spilled(self) -> float:
        return self.bytes_spilled_local + self.bytes_spilled_remote

    @property
    def max_operator_spill(self) -> float:
        return max((s.total_bytes for s in self.spilling_operators), default=0)

    @property
    def external_function_calls(self) -> float:
        return sum(e.invocations for e in self.external_function_operators)

    @property
    def external_function_errors(self) -> float:
        return sum(e.errors for e in self.external_function_operators)

    @property
    def external_function_success_rate(self) -> Optional[float]:
        calls = self.external_function_calls
        if not calls:
            return None
        return round(max(calls - self.external_function_errors, 0) / calls * 100, 1)

    @property
    def external_function_latency_ms(self) -> Optional[float]:
        """Call-weighted mean of per-operator average latencies."""
        weighted = [
            (e.average_latency_ms, e.invocations)
            for e in self.external_function_operators
            if e.average_latency_ms is not None
        ]
        calls = sum(n for _, n in weighted)
        if not calls:
            return None
        return round(sum(lat * n for lat, n in weighted) / calls, 2)

    @property
    def has_issues(self) -> bool:
        """External function usage is informational and not counted here."""
        return bool(self.high_execution_operators or self.exploding_joins or self.spilling_operators)

    def to_dict(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "query_type": self.query_type,
            "operator_count": self.operator_count,
            "total_bytes_scanned": format_bytes(self.total_bytes_scanned),
            "total_bytes_written": format_bytes(self.total_bytes_written),
            "final_output_rows": _count(self.final_output_rows),
            "dml_rows_affected": {
                "total": _count(self.dml_rows_affected),
                "inserted": _count(self.rows_inserted),
                "updated": _count(self.rows_updated),
                "deleted": _count(self.rows_deleted),
            },
            "total_bytes_spilled": format_bytes(self.total_bytes_spilled),
        }
        if self.spilling_operators:
            summary["spilling_operator_count"] = len(self.spilling_operators)

        summary["average_cache_hit_rate"] = self.average_cache_hit_rate
        summary["cache_hit_samples"] = self.cache_hit_samples
        summary["average_pruning_efficiency"] = self.average_pruning_efficiency
        summary["pruning_samples"] = self.pruning_samples

        summary["performance_issues"] = {
            "high_execution_time_operators_count": len(self.high_execution_operators),
            "high_execution_time_operators_json": issues_to_json(self.high_execution_operators),
            "exploding_joins_count": len(self.exploding_joins),
            "exploding_joins_json": issues_to_json(self.exploding_joins),
            "operators_with_spilling_count": len(self.spilling_operators),
            "operators_with_spilling_json": issues_to_json(self.spilling_operators),
            "external_function_operators_count": len(self.external_function_operators),
            "external_function_operators_json": issues_to_json(self.external_function_operators),
            "total_operators": self.operator_count,
        }
        summary["external_function_summary"] = {
            "total_calls": _count(self.external_function_calls),
            "total_errors": _count(self.external_function_errors),
            "success_rate_percentage": self.external_function_success_rate,
            "average_latency_ms": self.external_function_latency_ms,
            "operators_using_external_functions": len(self.external_function_operators),
        }
        return summary


def resolve_query_type(operators: Sequence[Operator]) -> str:
    """Infer the statement kind from the operators present.

    CreateTableAsSelect outranks Insert, which outranks the first
    Update/Delete/Merge in row order. Anything else is a SELECT.
    """
    types = {op.operator_type for op in operators}
    if OperatorType.CREATE_TABLE_AS_SELECT in types:
        return "CREATE TABLE AS SELECT"
    if OperatorType.INSERT in types:
        return "INSERT"
    # Insert is ruled out above, so this is the first Update/Delete/Merge.
    dml = first_of_type(operators, DML_TYPES)
    if dml is not None:
        return dml.operator_type.value.upper()
    return "SELECT"


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def aggregate_summary(records: Sequence[OperatorRecord]) -> SummaryMetrics:
    """Reduce parsed operator records into SummaryMetrics in one pass."""
    total_scanned = 0.0
    total_written = 0.0
    final_output_rows: float = 0
    inserted = updated = deleted = 0.0
    spilled_local = spilled_remote = 0.0
    cache_hits: list[float] = []
    pruning_efficiencies: list[float] = []
    max_pct = 0.0
    max_join_factor: Optional[float] = None
    high_execution: list[HighExecutionTime] = []
    exploding: list[ExplodingJoin] = []
    spilling: list[Spilling] = []
    external: list[ExternalFunctionUsage] = []

    for record in records:
        op = record.operator
        stats = record.statistics

        # Result reports the final row count as its input rows.
        if op.operator_type is OperatorType.RESULT and stats.input_rows:
            final_output_rows = stats.input_rows

        total_scanned += stats.total_scanned
        total_written += stats.total_written

        if stats.cache_hit_pct is not None:
            cache_hits.append(stats.cache_hit_pct)
        if stats.pruning_efficiency is not None:
            pruning_efficiencies.append(stats.pruning_efficiency)

        local = stats.bytes_spilled_local or 0
        remote = stats.bytes_spilled_remote or 0
        if local > 0 or remote > 0:
            spilled_local += local
            spilled_remote += remote
            spilling.append(Spilling(op.operator_id, op.type_name, local, remote))

        inserted += stats.rows_inserted or 0
        updated += stats.rows_updated or 0
        deleted += stats.rows_deleted or 0

        if op.operator_type in JOIN_TYPES:
            input_rows = stats.input_rows or 0
            output_rows = stats.output_rows or 0
            if input_rows > 0:
                factor = output_rows / input_rows
                if max_join_factor is None or factor > max_join_factor:
                    max_join_factor = factor
                if output_rows > input_rows * EXPLODING_JOIN_FACTOR:
                    exploding.append(ExplodingJoin(
                        op.operator_id, op.type_name, input_rows, output_rows, round(factor, 2),
                    ))

        if record.time_breakdown is not None:
            pct = record.time_breakdown.overall_percentage
            max_pct = max(max_pct, pct)
            if pct > HIGH_EXECUTION_TIME_PCT:
                high_execution.append(HighExecutionTime(op.operator_id, op.type_name, pct))

        ext = stats.external_function
        if ext is not None and ext.is_used:
            external.append(ExternalFunctionUsage(
                op.operator_id, op.type_name, ext.total_invocations, ext.errors, ext.average_latency_ms,
                ext.retries_due_to_transient_errors or 0,
            ))

    summary = SummaryMetrics(
        query_type=resolve_query_type([r.operator for r in records]),
        operator_count=len(records),
        total_bytes_scanned=total_scanned,
        total_bytes_written=total_written,
        final_output_rows=final_output_rows,
        rows_inserted=inserted,
        rows_updated=updated,
        rows_deleted=deleted,
        bytes_spilled_local=spilled_local,
        bytes_spilled_remote=spilled_remote,
        average_cache_hit_rate=_mean(cache_hits),
        cache_hit_samples=len(cache_hits),
        average_pruning_efficiency=_mean(pruning_efficiencies),
        pruning_samples=len(pruning_efficiencies),
        max_execution_percentage=max_pct,
        max_join_multiplication=round(max_join_factor, 2) if max_join_factor is not None else None,
        high_execution_operators=tuple(high_execution),
        exploding_joins=tuple(exploding),
        spilling_operators=tuple(spilling),
        external_function_operators=tuple(external),
    )
    logger.debug(
        f"Summarized {summary.operator_count} operators: type={summary.query_type}, "
        f"issues={len(high_execution) + len(exploding) + len(spilling)}"
    )
    return summary
