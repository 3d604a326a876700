# src/costcompass/cli/utils.py
import logging
from typing import List

import typer
from rich.table import Table

from ..core.config import config
from ..core.exceptions import ConfigurationError
from ..models.metrics import CostCalculation, CycleReport

logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def validate_config_or_exit():
    """
    Validates the configuration and exits with code 1 if it is invalid, before
    anything connects or starts.
    """
    try:
        config.validate_instance()
    except ConfigurationError as e:
        logger.error(str(e))
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


def format_report(report: CycleReport) -> str:
    """Renders a cycle report as a few human readable lines."""
    status = "aborted" if report.aborted else "ok"
    if report.service == "collector":
        counts = (
            f"nodes={report.nodes_upserted} pods={report.pods_upserted} "
            f"snapshots={report.snapshots_inserted}"
        )
    else:
        counts = f"calculations={report.calculations_upserted} skipped={len(report.skipped_groups)}"

    lines = [f"{report.service}: {status} ({counts})"]
    lines.extend(f"  skipped group: {group}" for group in report.skipped_groups)
    lines.extend(f"  warning: {warning}" for warning in report.warnings)
    lines.extend(f"  error: {error}" for error in report.errors)
    return "\n".join(lines)


def format_calculations(calculations: List[CostCalculation], title: str = "CostCompass Cost Report") -> Table:
    """
    Builds a rich table of cost calculations, most expensive group first.
    Namespace-level rows show '-' as their deployment.
    """
    table = Table(title=title, header_style="bold magenta", show_lines=True)
    table.add_column("Namespace", style="cyan")
    table.add_column("Deployment", style="cyan")
    table.add_column("Pods", justify="right")
    table.add_column("Daily Cost", style="green", justify="right")
    table.add_column("Wasted", style="red", justify="right")
    table.add_column("Efficiency", style="yellow", justify="right")

    for c in sorted(calculations, key=lambda c: c.daily_cost, reverse=True):
        table.add_row(
            c.namespace,
            c.deployment or "-",
            str(c.pod_count),
            f"${c.daily_cost:.4f}",
            f"${c.wasted_cost:.4f}",
            f"{c.efficiency_score:.1f}%",
        )
    return table
