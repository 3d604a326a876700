# src/costcompass/cli/start.py
"""
Start command for the CostCompass CLI.

Runs the Collector, the Calculator or both as periodic loops until SIGINT or
SIGTERM. Also provides the entrypoints of the single-service console scripts.
"""

import asyncio
import logging
import signal
import traceback
from enum import Enum
from typing import List, Optional

import typer
from typing_extensions import Annotated

from ..core.config import config
from ..core.factory import get_calculator, get_collector, get_db_manager
from ..core.scheduler import Scheduler
from ..core.telemetry import initialize_telemetry
from .utils import setup_logging, validate_config_or_exit

logger = logging.getLogger(__name__)


class Service(str, Enum):
    collector = "collector"
    calculator = "calculator"
    all = "all"


async def run_services(service: Service, stop_event: Optional[asyncio.Event] = None):
    """
    Initializes the schema and runs the selected services until stop_event is set.
    """
    stop_event = stop_event or asyncio.Event()
    _install_signal_handlers(stop_event)

    db_manager = get_db_manager()
    await db_manager.connect()
    logger.info("Database connection successful and schema is ready.")

    scheduler = Scheduler()
    closables: List = []
    try:
        if service in (Service.collector, Service.all):
            collector = get_collector()
            closables.append(collector)
            scheduler.add_job_from_string(collector.run_cycle, config.COLLECTOR_INTERVAL)
        if service in (Service.calculator, Service.all):
            calculator = get_calculator()
            scheduler.add_job_from_string(calculator.run_cycle, config.CALCULATOR_INTERVAL)

        logger.info("CostCompass %s is running. Press CTRL+C to exit.", service.value)
        await stop_event.wait()
        logger.info("Shutting down CostCompass gracefully.")
    finally:
        await scheduler.stop()
        for closable in closables:
            await closable.close()
        await db_manager.close()


def _install_signal_handlers(stop_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig, stop_event)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform or outside the main thread.
            logger.debug("Could not install handler for %s.", sig.name)


def _request_shutdown(sig: signal.Signals, stop_event: asyncio.Event):
    logger.info(f"Received {sig.name}, initiating graceful shutdown...")
    stop_event.set()


def start_service(service: Service):
    """
    Validates the configuration and runs the selected services in the foreground.
    """
    setup_logging()
    validate_config_or_exit()
    initialize_telemetry(service_name=f"costcompass-{service.value}")
    logger.info("Initializing CostCompass...")

    try:
        asyncio.run(run_services(service))
    except KeyboardInterrupt:
        logger.info("Shutting down CostCompass service.")
        raise typer.Exit()
    except Exception as e:
        logger.error(f"An unexpected error occurred during startup: {e}")
        logger.error("Startup failed: %s", traceback.format_exc())
        raise typer.Exit(code=1)


def start(
    service: Annotated[
        Service,
        typer.Argument(help="Which service to run."),
    ] = Service.all,
) -> None:
    """
    Initialize the database (if needed) and start the periodic loop(s).
    """
    start_service(service)


def _run_collector():
    """Run the Collector service."""
    start_service(Service.collector)


def _run_calculator():
    """Run the Calculator service."""
    start_service(Service.calculator)


def collector_main():
    typer.run(_run_collector)


def calculator_main():
    typer.run(_run_calculator)
