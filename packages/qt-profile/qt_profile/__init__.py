"""QueryTorque Profile — Snowflake query operator diagnostics.

Pipeline:
1. Assemble:  GET_QUERY_OPERATOR_STATS rows → operator graph
2. Condense:  one bounded summary per operator (optionally threaded)
3. Summarize: totals, averages, exploding joins, spilling, hotspots
4. Classify:  GREAT / GOOD / POOR / CRITICAL per metric family
5. Respond:   JSON payload with operators as independent JSON lines

Usage:
    from qt_profile import analyze_query
    payload = analyze_query("01be7f13-0206-4552-000d-f46b00202422", rows)

    # Fetch from Snowflake using QT_SNOWFLAKE_* settings:
    from qt_profile import fetch_and_analyze, SnowflakeOperatorStatsSource, get_settings
    with SnowflakeOperatorStatsSource.from_settings(get_settings()) as source:
        payload = fetch_and_analyze(query_id, source, output_format="minified")
"""

__version__ = "0.1.0"

from .analyzer import ProfileAnalysis, analyze_profile
from .classifier import Band, Classification, classify_query, classify_summary
from .condenser import CondensedOperator, condense_operator
from .config import Settings, get_settings
from .errors import InternalError, NotFoundError, ProfileError, ValidationError
from .formatting import format_bytes, truncate_expression
from .graph import OperatorGraph, assemble_graph, assemble_operators
from .operators import Operator, OperatorType
from .response import OutputFormat, analyze_query, fetch_and_analyze
from .source import FileOperatorStatsSource, SnowflakeOperatorStatsSource, load_operator_rows
from .summary import SummaryMetrics, aggregate_summary

__all__ = [
    # Pipeline
    "analyze_profile",
    "ProfileAnalysis",
    "analyze_query",
    "fetch_and_analyze",
    "OutputFormat",
    # Components
    "assemble_graph",
    "assemble_operators",
    "OperatorGraph",
    "Operator",
    "OperatorType",
    "condense_operator",
    "CondensedOperator",
    "aggregate_summary",
    "SummaryMetrics",
    "Band",
    "Classification",
    "classify_query",
    "classify_summary",
    "format_bytes",
    "truncate_expression",
    # Sources
    "SnowflakeOperatorStatsSource",
    "FileOperatorStatsSource",
    "load_operator_rows",
    # Config
    "Settings",
    "get_settings",
    # Errors
    "ProfileError",
    "ValidationError",
    "NotFoundError",
    "InternalError",
]
