from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_configured = False


def setup_tracing(service_name: str, service_version: str | None = None):
    """Registers the global tracer provider, exporting spans over OTLP. Idempotent."""
    global _configured
    if _configured:
        return

    attributes = {SERVICE_NAME: service_name}
    if service_version:
        attributes[SERVICE_VERSION] = service_version

    provider = TracerProvider(resource=Resource(attributes=attributes))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))

    trace.set_tracer_provider(provider)
    _configured = True


def get_tracer(module_name: str):
    """Gets a tracer instance for a specific module."""
    return trace.get_tracer(module_name)
