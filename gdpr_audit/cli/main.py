#!/usr/bin/env python3
"""Main CLI entry point for GDPR audits using Typer.

Runs one audit through AuditEngine and prints the report as JSON. Exit
codes let scripts tell a completed audit from a failed one.
"""

import asyncio
import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .. import __version__
from ..audit.capture.config import ConfigLoadError
from ..audit.engine import AuditEngine
from ..audit.models.report import AuditReport


class ExitCode(IntEnum):
    """CLI exit codes for scripting."""
    SUCCESS = 0         # Audit completed and produced a scored report
    AUDIT_FAILED = 1    # Audit ended in an error report
    CONFIG_ERROR = 3    # Configuration or rules file error


app = typer.Typer(
    name="gdpr-audit",
    help="GDPR compliance audit for a single web page",
    add_completion=False,
)


@app.callback()
def main():
    """
    GDPR compliance audit for a single web page.

    Loads the page in a headless browser, records cookies and tracking
    requests fired before consent, and scores the page's consent banner,
    policies and contact details.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"gdpr-audit v{__version__}")


async def _run_audit(engine: AuditEngine, url: str) -> AuditReport:
    async with engine:
        return await engine.audit(url)


@app.command()
def check(
    url: Annotated[
        str,
        typer.Argument(help="URL to audit (http or https)")
    ],

    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to audit configuration file")
    ] = None,

    env: Annotated[
        Optional[str],
        typer.Option("--env", "-e", help="Environment override section to apply")
    ] = None,

    compact: Annotated[
        bool,
        typer.Option("--compact", help="Print JSON on a single line")
    ] = False,

    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    ] = "WARNING",
):
    """
    Audit one URL and print the report as JSON.

    Examples:

        # Audit with built-in defaults
        gdpr-audit check https://example.com

        # Use a config file and the development overrides
        gdpr-audit check --config config/audit.yaml --env development https://example.com
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        typer.echo(f"❌ Invalid log level: {log_level}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        engine = AuditEngine.from_config(config, env)
    except ConfigLoadError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    report = asyncio.run(_run_audit(engine, url))

    indent = None if compact else 2
    typer.echo(json.dumps(report.to_dict(), indent=indent, ensure_ascii=False))

    if report.is_error:
        raise typer.Exit(code=ExitCode.AUDIT_FAILED.value)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    app()
