"""Type-keyed extraction of OPERATOR_ATTRIBUTES.

Attribute shapes differ per operator kind. Each kind registers one small
extractor that picks the few fields worth keeping and bounds their size.
Kinds without an extractor contribute nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .formatting import truncate_expression
from .operators import DML_TYPES, JOIN_TYPES, OperatorType, as_int

logger = logging.getLogger(__name__)

JOIN_CONDITION_LIMIT = 100
FILTER_CONDITION_LIMIT = 150
EXPRESSION_SAMPLE_LIMIT = 150
MAX_AGGREGATE_FUNCTIONS = 5
MAX_GROUPING_KEYS = 3
MAX_SORT_KEYS = 3

AttributeExtractor = Callable[[Mapping[str, Any]], dict[str, Any]]

_EXTRACTORS: dict[OperatorType, AttributeExtractor] = {}


def register_extractor(*operator_types: OperatorType) -> Callable[[AttributeExtractor], AttributeExtractor]:
    """Register an extractor for one or more operator kinds."""
    def decorator(func: AttributeExtractor) -> AttributeExtractor:
        for op_type in operator_types:
            _EXTRACTORS[op_type] = func
        return func
    return decorator


def get_extractor(operator_type: OperatorType) -> Optional[AttributeExtractor]:
    return _EXTRACTORS.get(operator_type)


def registered_types() -> frozenset[OperatorType]:
    return frozenset(_EXTRACTORS)


def extract_attributes(operator_type: OperatorType, attrs: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Extract the bounded, type-specific fields for one operator."""
    if not attrs:
        return {}
    extractor = _EXTRACTORS.get(operator_type)
    if extractor is None:
        return {}
    return extractor(attrs)


# ── Field readers ───────────────────────────────────────────────────────


def _text(attrs: Mapping[str, Any], key: str) -> Optional[str]:
    value = attrs.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        logger.debug(f"Ignoring non-scalar attribute {key}")
        return None
    return str(value)


def _text_list(attrs: Mapping[str, Any], key: str) -> Optional[list[str]]:
    value = attrs.get(key)
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        logger.debug(f"Ignoring attribute {key}: expected a list, got {type(value).__name__}")
        return None
    return [str(item) for item in value]


def _joined(attrs: Mapping[str, Any], key: str, limit: int) -> Optional[str]:
    items = _text_list(attrs, key)
    if not items:
        return None
    return ",".join(items[:limit])


def _put(target: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = value


# ── Extractors ──────────────────────────────────────────────────────────


@register_extractor(OperatorType.TABLE_SCAN)
def _table_scan(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "table_name", _text(attrs, "table_name"))
    columns = _text_list(attrs, "columns")
    if columns is not None:
        out["column_count"] = len(columns)
    return out


@register_extractor(*JOIN_TYPES)
def _join(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    condition = _text(attrs, "equality_join_condition")
    if condition is not None:
        out["join_condition"] = truncate_expression(condition, JOIN_CONDITION_LIMIT)
    return out


@register_extractor(OperatorType.FILTER)
def _filter(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    condition = _text(attrs, "filter_condition")
    if condition is not None:
        out["filter_condition"] = truncate_expression(condition, FILTER_CONDITION_LIMIT)
    return out


@register_extractor(OperatorType.AGGREGATE, OperatorType.GROUPING_SETS)
def _aggregate(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "aggregate_functions", _joined(attrs, "functions", MAX_AGGREGATE_FUNCTIONS))
    _put(out, "group_by", _joined(attrs, "grouping_keys", MAX_GROUPING_KEYS))
    return out


@register_extractor(OperatorType.SORT)
def _sort(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "sort_keys", _joined(attrs, "sort_keys", MAX_SORT_KEYS))
    return out


@register_extractor(OperatorType.SORT_WITH_LIMIT)
def _sort_with_limit(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out = _sort(attrs)
    if "rows" in attrs:
        limit = as_int(attrs["rows"])
        if limit is None:
            logger.debug(f"Ignoring non-integer SortWithLimit rows={attrs['rows']!r}")
        else:
            out["limit"] = limit
    return out


@register_extractor(OperatorType.CREATE_TABLE_AS_SELECT)
def _create_table_as_select(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "target_table", _text(attrs, "table_name"))
    expressions = _text_list(attrs, "input_expressions")
    if expressions is not None:
        out["expression_count"] = len(expressions)
        if expressions:
            out["sample_expression"] = truncate_expression(expressions[0], EXPRESSION_SAMPLE_LIMIT)
    return out


@register_extractor(*DML_TYPES)
def _dml(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "target_table", _text(attrs, "table_name"))
    return out


@register_extractor(OperatorType.RESULT)
def _result(attrs: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    expressions = _text_list(attrs, "expressions")
    if expressions is not None:
        out["output_columns"] = len(expressions)
    return out
