"""QueryTorque Profile CLI.

Usage: qt-profile <command> [options]
"""

from __future__ import annotations

import click


@click.group()
@click.version_option(version="0.1.0", prog_name="qt-profile")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-essential output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """QueryTorque Profile — Snowflake operator statistics diagnostics."""
    import logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s")
    elif quiet:
        logging.basicConfig(level=logging.WARNING)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")


def _register_commands() -> None:
    """Import and register all sub-commands."""
    from .cmd_analyze import analyze
    from .cmd_report import report
    from .cmd_thresholds import thresholds

    main.add_command(analyze)
    main.add_command(report)
    main.add_command(thresholds)


_register_commands()
