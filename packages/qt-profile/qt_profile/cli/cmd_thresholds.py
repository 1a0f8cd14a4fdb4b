"""qt-profile thresholds — print every classification rule table."""

from __future__ import annotations

from typing import Optional

import click
from rich.table import Table

from qt_profile.classifier import RULE_TABLES

from ._common import band_markup, console


@click.command()
@click.option(
    "--family",
    type=click.Choice(sorted(RULE_TABLES)),
    default=None,
    help="Show a single metric family.",
)
def thresholds(family: Optional[str]) -> None:
    """Show the band thresholds, in evaluation order."""
    names = [family] if family else list(RULE_TABLES)
    for name in names:
        title, rules = RULE_TABLES[name]
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Band", width=10)
        table.add_column("Criteria", width=70)
        for rule in rules:
            table.add_row(band_markup(rule.band), rule.description)
        console.print(table)
