# src/costcompass/cli/main.py
"""
This module is the main entry point for the CostCompass CLI.

It holds the one-shot commands (init-db, collect, calculate, show) and
registers the long-running start command.
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from typing_extensions import Annotated

from ..core.factory import get_calculator, get_collector, get_db_manager, get_repository
from ..models.metrics import CycleReport
from ..utils.date_utils import parse_calculation_date, utc_now
from . import start
from .utils import format_calculations, format_report, setup_logging, validate_config_or_exit

# --- Setup Logger ---
setup_logging()
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="costcompass",
    help="Track what your Kubernetes workloads cost and how much of what they request goes unused.",
    add_completion=False,
)


def version_callback(value: bool):
    """
    Prints the version of CostCompass.
    """
    if value:
        from .. import __version__

        typer.echo(f"CostCompass version: {__version__}")
        raise typer.Exit()


def _parse_date_option(value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_calculation_date(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.command()
def version():
    """
    Show the version of CostCompass.
    """
    from .. import __version__

    typer.echo(f"CostCompass version: {__version__}")


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    CostCompass CLI main entry point.
    """
    pass


@app.command("init-db")
def init_db():
    """
    Create the database schema if it does not exist.
    """
    validate_config_or_exit()

    async def _init():
        db_manager = get_db_manager()
        try:
            await db_manager.connect()
        finally:
            await db_manager.close()

    try:
        asyncio.run(_init())
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        typer.echo(f"Failed to initialize database: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Database schema is ready.")


@app.command()
def collect():
    """
    Run one Collector cycle: snapshot nodes, pods and current usage.
    """
    validate_config_or_exit()

    async def _collect() -> CycleReport:
        collector = get_collector()
        try:
            return await collector.run_cycle()
        finally:
            await collector.close()
            await get_db_manager().close()

    report = asyncio.run(_collect())
    typer.echo(format_report(report))
    if report.aborted:
        raise typer.Exit(code=1)


@app.command()
def calculate(
    date: Annotated[
        Optional[str],
        typer.Option("--date", help="Calculation date (YYYY-MM-DD). Defaults to today in UTC."),
    ] = None,
):
    """
    Run one Calculator cycle: derive cost and efficiency per namespace and deployment.
    """
    calculation_date = _parse_date_option(date)
    validate_config_or_exit()

    async def _calculate() -> CycleReport:
        calculator = get_calculator()
        try:
            return await calculator.run_cycle(calculation_date)
        finally:
            await get_db_manager().close()

    report = asyncio.run(_calculate())
    typer.echo(format_report(report))
    if report.aborted:
        raise typer.Exit(code=1)


@app.command()
def show(
    date: Annotated[
        Optional[str],
        typer.Option("--date", help="Calculation date (YYYY-MM-DD). Defaults to today in UTC."),
    ] = None,
    namespace: Annotated[
        Optional[str],
        typer.Option("--namespace", "-n", help="Only show this namespace."),
    ] = None,
):
    """
    Print the stored cost calculations of a date.
    """
    calculation_date = _parse_date_option(date) or utc_now().date()
    validate_config_or_exit()

    async def _show():
        try:
            return await get_repository().get_cost_calculations(calculation_date, namespace=namespace)
        finally:
            await get_db_manager().close()

    try:
        calculations = asyncio.run(_show())
    except Exception as e:
        logger.error(f"Failed to read cost calculations: {e}")
        typer.echo(f"Failed to read cost calculations: {e}", err=True)
        raise typer.Exit(code=1)

    console = Console()
    if not calculations:
        console.print(f"No cost calculations found for {calculation_date.isoformat()}.", style="yellow")
        return
    console.print(format_calculations(calculations, title=f"Cost calculations for {calculation_date.isoformat()}"))


app.command(name="start")(start.start)


if __name__ == "__main__":
    app()
