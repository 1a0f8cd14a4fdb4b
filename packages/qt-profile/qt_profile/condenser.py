"""Per-operator condensation into a bounded summary.

Each operator is reduced to the handful of fields that carry diagnostic
signal. Zero and missing values are omitted rather than reported, so an
operator without a time breakdown has no ``overall_percentage`` key at all.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .attributes import extract_attributes
from .formatting import format_bytes
from .operators import Operator, OperatorRecord, parse_record

logger = logging.getLogger(__name__)

# Operators above this share of total time also report their main time category.
PRIMARY_TIME_THRESHOLD_PCT = 5


@dataclass(frozen=True)
class CondensedOperator:
    """The size-bounded representation of one operator."""
    operator_id: int
    operator_type: str
    parent_operators: Optional[tuple[int, ...]]
    overall_percentage: Optional[float] = None
    primary_time: Optional[str] = None
    input_rows: Optional[float] = None
    output_rows: Optional[float] = None
    bytes_scanned: Optional[str] = None
    cache_hit_rate: Optional[float] = None
    bytes_written: Optional[str] = None
    network_bytes: Optional[str] = None
    pruning_efficiency: Optional[float] = None
    spilling: Optional[str] = None
    dml_rows_affected: Optional[float] = None
    external_function_calls: Optional[float] = None
    external_function_latency_ms: Optional[float] = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to the wire shape, dropping absent fields."""
        out: dict[str, Any] = {
            "operator_id": self.operator_id,
            "operator_type": self.operator_type,
            "parent_operators": list(self.parent_operators) if self.parent_operators is not None else None,
        }
        for key in (
            "overall_percentage",
            "primary_time",
            "input_rows",
            "output_rows",
            "bytes_scanned",
            "cache_hit_rate",
            "bytes_written",
            "network_bytes",
            "pruning_efficiency",
            "spilling",
            "dml_rows_affected",
            "external_function_calls",
            "external_function_latency_ms",
        ):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        out.update(self.attributes)
        return out

    def to_json(self) -> str:
        """Compact, self-contained JSON line for this operator."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


def _nonzero(value: Optional[float]) -> Optional[float]:
    return value if value else None


def _formatted(value: Optional[float]) -> Optional[str]:
    return format_bytes(value) if value else None


def condense_record(record: OperatorRecord) -> CondensedOperator:
    """Condense an already-parsed operator record."""
    op = record.operator
    stats = record.statistics

    overall_pct = None
    primary_time = None
    if record.time_breakdown is not None and record.time_breakdown.overall_percentage > 0:
        overall_pct = record.time_breakdown.overall_percentage
        if overall_pct > PRIMARY_TIME_THRESHOLD_PCT:
            primary = record.time_breakdown.primary_category()
            if primary is not None:
                primary_time = f"{primary[0]}:{primary[1]}%"

    pruning = stats.pruning_efficiency
    ext = stats.external_function

    return CondensedOperator(
        operator_id=op.operator_id,
        operator_type=op.type_name,
        parent_operators=op.parent_ids,
        overall_percentage=overall_pct,
        primary_time=primary_time,
        input_rows=_nonzero(stats.input_rows),
        output_rows=_nonzero(stats.output_rows),
        bytes_scanned=_formatted(stats.bytes_scanned),
        cache_hit_rate=_nonzero(stats.cache_hit_pct),
        bytes_written=_formatted(stats.bytes_written),
        network_bytes=_formatted(stats.network_bytes),
        pruning_efficiency=round(pruning, 1) if pruning is not None else None,
        spilling=_formatted(stats.bytes_spilled),
        dml_rows_affected=_nonzero(stats.dml_rows),
        external_function_calls=ext.total_invocations if ext is not None and ext.is_used else None,
        external_function_latency_ms=ext.average_latency_ms if ext is not None and ext.is_used else None,
        attributes=extract_attributes(op.operator_type, record.attributes),
    )


def condense_operator(operator: Operator) -> CondensedOperator:
    """Parse and condense one raw operator."""
    return condense_record(parse_record(operator))


def _parse_and_condense(operator: Operator) -> tuple[OperatorRecord, CondensedOperator]:
    record = parse_record(operator)
    return record, condense_record(record)


def condense_all(
    operators: Sequence[Operator],
    max_workers: int = 1,
) -> tuple[list[OperatorRecord], list[CondensedOperator]]:
    """Parse and condense every operator, preserving row order.

    Operators are independent, so with ``max_workers > 1`` the work is
    spread over a thread pool. Callers only see the complete result.
    """
    if max_workers > 1 and len(operators) > 1:
        logger.debug(f"Condensing {len(operators)} operators on {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(_parse_and_condense, operators))
    else:
        results = [_parse_and_condense(op) for op in operators]

    records = [record for record, _ in results]
    condensed = [c for _, c in results]
    return records, condensed
