"""
OpenTelemetry tracing configuration for segment extraction.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)


def configure_tracing(service_name: str = "media-segment-extraction", endpoint: Optional[str] = None) -> None:
    """
    Install an SDK tracer provider that ships spans to an OTLP collector.

    Without an endpoint the global no-op provider is left in place, so spans
    cost nothing. Call once on startup.

    Args:
        service_name: Name of the service for tracing identification
        endpoint: OTLP gRPC endpoint, e.g. "http://localhost:4317"
    """
    if not endpoint:
        logger.info("[TRACING] No OTLP endpoint configured, tracing disabled")
        return

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    resource = Resource(
        attributes={
            "service.name": service_name,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    trace.set_tracer_provider(provider)

    logger.info(f"[TRACING] OpenTelemetry tracing configured for service '{service_name}' -> {endpoint}")
