# src/costcompass/core/telemetry.py
"""Initializes OpenTelemetry services for the CostCompass services."""

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import config

logger = logging.getLogger(__name__)

_initialized = False


def initialize_telemetry(service_name: str = "costcompass") -> bool:
    """
    Configures and initializes the TracerProvider and MeterProvider for OpenTelemetry.
    Data will be exported via OTLP/HTTP.

    Does nothing unless OTEL_ENABLED is set, in which case the API's no-op
    providers stay in place.

    Returns:
        True if exporters were installed.
    """
    global _initialized
    if not config.OTEL_ENABLED:
        logger.debug("OpenTelemetry export disabled.")
        return False
    if _initialized:
        return True

    endpoint = config.OTEL_EXPORTER_OTLP_ENDPOINT.rstrip("/")
    resource = Resource(attributes={SERVICE_NAME: service_name})

    # --- Tracing Configuration ---
    tracer_provider = TracerProvider(resource=resource)
    span_exporter = OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)

    # --- Metrics Configuration ---
    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)

    _initialized = True
    logger.info(f"OpenTelemetry initialized. Exporting to: {endpoint}")
    return True


# Make the tracer and meter globally accessible. Both are proxies, so
# instruments created here start exporting once providers are installed.
tracer = trace.get_tracer("costcompass.tracer")
meter = metrics.get_meter("costcompass.meter")

collector_cycles = meter.create_counter(
    "costcompass.collector.cycles", description="Collector cycles started."
)
collector_failures = meter.create_counter(
    "costcompass.collector.failures", description="Collector cycle failures, by error type."
)
calculator_cycles = meter.create_counter(
    "costcompass.calculator.cycles", description="Calculator cycles started."
)
calculator_failures = meter.create_counter(
    "costcompass.calculator.failures", description="Calculator cycle failures, by error type."
)
calculator_skipped_groups = meter.create_counter(
    "costcompass.calculator.skipped_groups", description="Groups skipped because of invalid data."
)
usage_snapshots_inserted = meter.create_counter(
    "costcompass.usage_snapshots.inserted", description="Usage snapshots written."
)
