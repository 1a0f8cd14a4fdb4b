"""qt-profile report — human-readable diagnostics for one query.

Usage:
    qt-profile report <query_id> --rows operator_stats.json
    qt-profile report <query_id> --limit 20
"""

from __future__ import annotations

import logging
from typing import Optional

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from qt_profile.analyzer import ProfileAnalysis, analyze_profile
from qt_profile.config import get_settings
from qt_profile.errors import ProfileError
from qt_profile.formatting import format_bytes
from qt_profile.graph import validate_query_id
from qt_profile.source import SnowflakeOperatorStatsSource

from ._common import band_markup, console, resolve_source

logger = logging.getLogger(__name__)


def _summary_panel(analysis: ProfileAnalysis) -> Panel:
    s = analysis.summary
    classification = analysis.classify()
    lines = [
        f"Overall: {band_markup(classification.overall)}",
        f"Query type: {s.query_type}",
        f"Operators: {s.operator_count}",
        f"Scanned: {format_bytes(s.total_bytes_scanned)} | Written: {format_bytes(s.total_bytes_written)}",
        f"Output rows: {s.final_output_rows:,}",
        f"Spilled: {format_bytes(s.total_bytes_spilled)}",
        f"Avg cache hit: {s.average_cache_hit_rate}% ({s.cache_hit_samples} samples)",
        f"Avg pruning: {s.average_pruning_efficiency}% ({s.pruning_samples} samples)",
    ]
    if s.dml_rows_affected:
        lines.append(f"DML rows affected: {s.dml_rows_affected:,}")
    return Panel("\n".join(lines), title=f"Query {analysis.query_id}")


def _bands_table(analysis: ProfileAnalysis) -> Table:
    table = Table(title="Performance Bands", show_header=True, header_style="bold")
    table.add_column("Family", width=22)
    table.add_column("Band", width=10)
    for family, band in analysis.classify().families.items():
        table.add_row(family, band_markup(band))
    return table


def _issues_table(analysis: ProfileAnalysis) -> Optional[Table]:
    s = analysis.summary
    issues = [
        *s.high_execution_operators,
        *s.exploding_joins,
        *s.spilling_operators,
        *s.external_function_operators,
    ]
    if not issues:
        return None

    table = Table(title="Detected Issues", show_header=True, header_style="bold")
    table.add_column("Kind", width=20)
    table.add_column("Operator", width=24)
    table.add_column("Details", width=60)
    for issue in issues:
        details = {k: v for k, v in issue.to_dict().items() if k not in ("id", "type", "operator_id", "operator_type")}
        table.add_row(
            issue.kind,
            f"{issue.operator_id} {issue.operator_type}",
            escape(", ".join(f"{k}={v}" for k, v in details.items())),
        )
    return table


def _operators_table(analysis: ProfileAnalysis, limit: int) -> Table:
    table = Table(title="Operators", show_header=True, header_style="bold")
    table.add_column("ID", justify="right", width=5)
    table.add_column("Type", width=20)
    table.add_column("Parents", width=10)
    table.add_column("Time %", justify="right", width=8)
    table.add_column("Rows in/out", width=20)
    table.add_column("Details", width=50)

    for op in analysis.operators[:limit]:
        data = op.to_dict()
        parents = ",".join(str(p) for p in op.parent_operators) if op.parent_operators else "-"
        pct = f"{op.overall_percentage}" if op.overall_percentage is not None else ""
        rows = f"{op.input_rows or 0:,} / {op.output_rows or 0:,}"
        skip = {"operator_id", "operator_type", "parent_operators", "overall_percentage", "input_rows", "output_rows"}
        details = ", ".join(f"{k}={v}" for k, v in data.items() if k not in skip)
        table.add_row(str(op.operator_id), escape(op.operator_type), parents, pct, rows, escape(details))
    return table


@click.command()
@click.argument("query_id")
@click.option(
    "--rows",
    "rows_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file of operator rows (skips Snowflake).",
)
@click.option("--limit", default=50, show_default=True, help="Maximum operators to list.")
def report(query_id: str, rows_file: Optional[str], limit: int) -> None:
    """Render summary, bands, issues and operators as tables."""
    settings = get_settings()
    source = resolve_source(rows_file)

    try:
        validate_query_id(query_id)
        rows = source.fetch_operator_rows(query_id)
        analysis = analyze_profile(query_id, rows, max_workers=settings.condense_workers)
    except (ProfileError, ValueError) as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise SystemExit(1)
    except Exception as e:
        # Connector and I/O failures from the row source.
        logger.debug(f"Report failed for {query_id}", exc_info=True)
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise SystemExit(1)
    finally:
        if isinstance(source, SnowflakeOperatorStatsSource):
            source.close()

    console.print(_summary_panel(analysis))
    console.print(_bands_table(analysis))

    issues = _issues_table(analysis)
    if issues is None:
        console.print("[green]No performance issues detected.[/green]")
    else:
        console.print(issues)

    console.print(_operators_table(analysis, limit))
    if len(analysis.operators) > limit:
        console.print(f"[dim]... and {len(analysis.operators) - limit} more operators[/dim]")
