"""Operator graph assembly from raw profiler rows.

Rows arrive in profiler order with PARENT_OPERATORS edges that may be
native arrays, JSON strings or null. Assembly is one flat pass; cycles and
dangling edges are tolerated and never walked recursively.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from .errors import InternalError, NotFoundError, ValidationError
from .operators import Operator, OperatorType, as_int, parse_parent_operators

logger = logging.getLogger(__name__)


def validate_query_id(query_id: Any) -> str:
    """Return the identifier unchanged if it is UUID-shaped.

    Raises:
        ValidationError: if the identifier does not parse as a UUID.
    """
    try:
        uuid.UUID(str(query_id))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError() from None
    return str(query_id)


@dataclass
class OperatorGraph:
    """Operators in row order plus adjacency built in a single pass."""
    operators: list[Operator]
    by_id: dict[int, Operator] = field(default_factory=dict)
    children: dict[int, list[int]] = field(default_factory=dict)
    root_ids: list[int] = field(default_factory=list)
    dangling_edges: list[tuple[int, int]] = field(default_factory=list)

    @classmethod
    def build(cls, operators: Sequence[Operator]) -> "OperatorGraph":
        graph = cls(operators=list(operators))
        for op in graph.operators:
            if op.operator_id in graph.by_id:
                logger.warning(f"Duplicate operator_id {op.operator_id}; keeping first for lookups")
                continue
            graph.by_id[op.operator_id] = op

        for op in graph.operators:
            if op.is_root:
                graph.root_ids.append(op.operator_id)
                continue
            for parent_id in op.parent_ids:
                if parent_id not in graph.by_id:
                    graph.dangling_edges.append((op.operator_id, parent_id))
                    continue
                graph.children.setdefault(parent_id, []).append(op.operator_id)

        if len(graph.root_ids) != 1:
            logger.debug(f"Expected one root operator, found {len(graph.root_ids)}: {graph.root_ids}")
        if graph.dangling_edges:
            logger.debug(f"Ignoring {len(graph.dangling_edges)} edge(s) to unknown parents")
        return graph

    @property
    def root(self) -> Optional[Operator]:
        """The single parent-less operator, when the topology is well formed."""
        if len(self.root_ids) == 1:
            return self.by_id[self.root_ids[0]]
        return None

    def children_of(self, operator_id: int) -> list[Operator]:
        return [self.by_id[c] for c in self.children.get(operator_id, [])]


def _normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Lower-case keys so Snowflake's upper-case columns match."""
    return {str(k).lower(): v for k, v in row.items()}


def _operator_from_row(row: Mapping[str, Any], index: int) -> Operator:
    data = _normalize_row(row)

    operator_id = as_int(data.get("operator_id"))
    if operator_id is None or operator_id < 0:
        raise InternalError(
            f"Operator row {index} has invalid operator_id {data.get('operator_id')!r}"
        )

    type_name = str(data.get("operator_type") or OperatorType.UNKNOWN.value)
    operator_type = OperatorType.parse(type_name)
    if operator_type is OperatorType.UNKNOWN:
        logger.debug(f"Operator {operator_id} has unrecognized type {type_name!r}")

    return Operator(
        operator_id=operator_id,
        operator_type=operator_type,
        type_name=type_name,
        parent_ids=parse_parent_operators(data.get("parent_operators")),
        raw_statistics=data.get("operator_statistics"),
        raw_attributes=data.get("operator_attributes"),
        raw_time_breakdown=data.get("execution_time_breakdown"),
    )


def assemble_operators(query_id: Any, rows: Optional[Iterable[Mapping[str, Any]]]) -> list[Operator]:
    """Validate the identifier and turn raw rows into ordered Operators.

    Raises:
        ValidationError: the query id is not UUID-shaped.
        NotFoundError: no rows were supplied.
        InternalError: a row has no usable operator_id.
    """
    validate_query_id(query_id)

    rows = list(rows or [])
    if not rows:
        raise NotFoundError()

    return [_operator_from_row(row, index) for index, row in enumerate(rows)]


def assemble_graph(query_id: Any, rows: Optional[Iterable[Mapping[str, Any]]]) -> OperatorGraph:
    """Assemble operators and their adjacency for one query."""
    return OperatorGraph.build(assemble_operators(query_id, rows))
