"""Shared CLI helpers: row sources, Rich output."""

from __future__ import annotations

from typing import Optional

import click
from rich.console import Console

from qt_profile.classifier import Band
from qt_profile.config import get_settings
from qt_profile.response import OperatorRowSource
from qt_profile.source import FileOperatorStatsSource, SnowflakeOperatorStatsSource

console = Console()

BAND_COLORS = {
    Band.GREAT: "green",
    Band.GOOD: "cyan",
    Band.POOR: "yellow",
    Band.CRITICAL: "red",
}


def band_markup(band: Band | str) -> str:
    band = Band(band)
    color = BAND_COLORS[band]
    return f"[bold {color}]{band.value}[/bold {color}]"


def resolve_source(rows_file: Optional[str]) -> OperatorRowSource:
    """Use a rows file when given, otherwise Snowflake from settings.

    Raises click.UsageError when neither is available.
    """
    if rows_file:
        return FileOperatorStatsSource(rows_file)

    settings = get_settings()
    if not settings.has_snowflake:
        raise click.UsageError(
            "No --rows file given and Snowflake is not configured "
            "(set QT_SNOWFLAKE_ACCOUNT and QT_SNOWFLAKE_USER)."
        )
    return SnowflakeOperatorStatsSource.from_settings(settings)
