"""Analysis pipeline: rows → graph → condensed operators → summary.

Raises the ``qt_profile.errors`` taxonomy; ``qt_profile.response`` turns
results and errors into payloads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from .classifier import Classification, classify_summary
from .condenser import CondensedOperator, condense_all
from .graph import OperatorGraph, assemble_graph
from .summary import SummaryMetrics, aggregate_summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileAnalysis:
    """Everything derived from one profiler snapshot."""
    query_id: str
    graph: OperatorGraph
    operators: tuple[CondensedOperator, ...]
    summary: SummaryMetrics

    def classify(self) -> Classification:
        """Bands are recomputed on every call, never cached."""
        return classify_summary(self.summary)


def analyze_profile(
    query_id: str,
    rows: Optional[Iterable[Mapping[str, Any]]],
    max_workers: int = 1,
) -> ProfileAnalysis:
    """Run the full diagnostic pass over one query's operator rows.

    Args:
        query_id: Snowflake query id (UUID format)
        rows: GET_QUERY_OPERATOR_STATS rows, any column-name case
        max_workers: Threads used for per-operator condensation

    Returns:
        ProfileAnalysis with one condensed operator per input row

    Raises:
        ValidationError, NotFoundError, InternalError
    """
    graph = assemble_graph(query_id, rows)
    records, condensed = condense_all(graph.operators, max_workers=max_workers)
    summary = aggregate_summary(records)

    logger.info(
        f"Analyzed query {query_id}: {summary.operator_count} operators, "
        f"type={summary.query_type}"
    )
    return ProfileAnalysis(
        query_id=str(query_id),
        graph=graph,
        operators=tuple(condensed),
        summary=summary,
    )
