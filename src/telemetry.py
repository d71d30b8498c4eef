"""OpenTelemetry configuration for the quotation service."""

import os
import sys

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .logging_config import get_logger

logger = get_logger(__name__)


def setup_telemetry(app: FastAPI) -> bool:
    """Configure OpenTelemetry tracing for the FastAPI application.

    Returns True when instrumentation was installed.
    """
    # Off unless ENABLE_TELEMETRY is set
    if not os.getenv("ENABLE_TELEMETRY"):
        return False

    if "pytest" in sys.modules or os.getenv("TESTING"):
        logger.info("Skipping OpenTelemetry setup during tests")
        return False

    try:
        tracer_provider = TracerProvider()
        # Console exporter; swap for an OTLP exporter in deployment
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(tracer_provider)

        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")

        SQLAlchemyInstrumentor().instrument()
        logger.info("SQLAlchemy instrumentation enabled")
    except Exception as e:
        # Tracing is optional; the service runs without it
        logger.error("Failed to setup OpenTelemetry", error=str(e))
        return False

    logger.info("OpenTelemetry tracing setup completed")
    return True
