"""qt-profile analyze — emit the diagnostic JSON payload for one query.

Usage:
    qt-profile analyze 01be7f13-0206-4552-000d-f46b00202422
    qt-profile analyze <query_id> --rows operator_stats.json --format minified
    qt-profile analyze <query_id> --workers 4
"""

from __future__ import annotations

import json
from typing import Optional

import click

from qt_profile.config import get_settings
from qt_profile.response import fetch_and_analyze
from qt_profile.source import SnowflakeOperatorStatsSource

from ._common import resolve_source


@click.command()
@click.argument("query_id")
@click.option(
    "--rows",
    "rows_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file of operator rows (skips Snowflake).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["pretty", "minified", "expanded", "compact"]),
    default=None,
    help="Output mode (default from QT_OUTPUT_FORMAT).",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Threads for per-operator condensation.",
)
def analyze(
    query_id: str,
    rows_file: Optional[str],
    output_format: Optional[str],
    workers: Optional[int],
) -> None:
    """Print the JSON diagnostic payload; exit 1 on an error payload."""
    settings = get_settings()
    source = resolve_source(rows_file)

    try:
        payload = fetch_and_analyze(
            query_id,
            source,
            output_format=output_format or settings.output_format,
            max_workers=workers or settings.condense_workers,
        )
    finally:
        if isinstance(source, SnowflakeOperatorStatsSource):
            source.close()

    click.echo(payload)
    if json.loads(payload).get("status") != "success":
        raise SystemExit(1)
