"""OpenTelemetry tracing configuration for blobtree.

Tracing is off unless enabled through the environment. When it is off the
``BucketFS`` operation decorator calls straight through and no span is
created.

Environment Variables:
    BLOBTREE_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    BLOBTREE_REQUIRE_OTEL: Set to "1" to raise if tracing cannot initialize
    BLOBTREE_OTEL_SERVICE_NAME: Service name for spans (default: "blobtree")
    BLOBTREE_OTEL_EXPORTER: Exporter type - "otlp" or "console" (default: "otlp")
    BLOBTREE_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    BLOBTREE_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests

Object paths are never exported; spans carry a SHA256 of the path instead.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)

BLOBTREE_OTEL_ENABLED_ENV: Final[str] = "BLOBTREE_OTEL_ENABLED"
BLOBTREE_REQUIRE_OTEL_ENV: Final[str] = "BLOBTREE_REQUIRE_OTEL"
BLOBTREE_OTEL_TEST_CAPTURE_ENV: Final[str] = "BLOBTREE_OTEL_TEST_CAPTURE"
BLOBTREE_OTEL_SERVICE_NAME_ENV: Final[str] = "BLOBTREE_OTEL_SERVICE_NAME"
BLOBTREE_OTEL_EXPORTER_ENV: Final[str] = "BLOBTREE_OTEL_EXPORTER"
BLOBTREE_OTEL_ENDPOINT_ENV: Final[str] = "BLOBTREE_OTEL_EXPORTER_OTLP_ENDPOINT"

_TRUE_VALUES = ("1", "true", "yes")

_tracer_provider: TracerProvider | None = None
_is_configured = False
_test_exporter: Any = None  # InMemorySpanExporter when test capture is on


class TracingConfigError(Exception):
    """Raised when tracing setup fails while BLOBTREE_REQUIRE_OTEL=1."""


def _get_env_bool(key: str) -> bool:
    return os.environ.get(key, "").strip().lower() in _TRUE_VALUES


def _get_env_str(key: str, default: str = "") -> str:
    return os.environ.get(key, "").strip() or default


def is_tracing_enabled() -> bool:
    """Return True when BLOBTREE_OTEL_ENABLED is set to a true value."""
    return _get_env_bool(BLOBTREE_OTEL_ENABLED_ENV)


def _create_otlp_exporter(endpoint: str) -> SpanExporter:
    """Create the OTLP/HTTP exporter (``blobtree[otel]`` extra)."""
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

    if endpoint:
        return OTLPSpanExporter(endpoint=endpoint)
    return OTLPSpanExporter()


def _create_console_exporter() -> SpanExporter:
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()


def _build_provider(service_name: str, exporter_type: str, test_capture: bool) -> TracerProvider:
    """Create a provider with one span processor for the chosen exporter."""
    global _test_exporter

    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if test_capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _test_exporter = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
    elif exporter_type == "console":
        provider.add_span_processor(SimpleSpanProcessor(_create_console_exporter()))
    else:
        endpoint = _get_env_str(BLOBTREE_OTEL_ENDPOINT_ENV)
        provider.add_span_processor(BatchSpanProcessor(_create_otlp_exporter(endpoint)))
    return provider


def configure_tracing() -> bool:
    """Install the global tracer provider if tracing is enabled.

    Calling it again is harmless: an installed provider is kept, since
    OpenTelemetry only accepts the first one. Needs ``opentelemetry-sdk``.

    Returns:
        Whether spans will be recorded.

    Raises:
        TracingConfigError: If setup fails and BLOBTREE_REQUIRE_OTEL=1.
    """
    global _tracer_provider, _is_configured

    if not is_tracing_enabled():
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", BLOBTREE_OTEL_ENABLED_ENV)
        return False

    test_capture = _get_env_bool(BLOBTREE_OTEL_TEST_CAPTURE_ENV)
    if test_capture and _test_exporter is not None:
        return True
    if _is_configured and _tracer_provider is not None:
        return True
    _is_configured = True

    service_name = _get_env_str(BLOBTREE_OTEL_SERVICE_NAME_ENV, "blobtree")
    exporter_type = _get_env_str(BLOBTREE_OTEL_EXPORTER_ENV, "otlp")
    if test_capture:
        exporter_type = "in-memory"
    try:
        from opentelemetry import trace

        provider = _build_provider(service_name, exporter_type, test_capture)
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.error("OpenTelemetry tracing setup failed: %s", e)
        if _get_env_bool(BLOBTREE_REQUIRE_OTEL_ENV):
            raise TracingConfigError(f"Tracing is required but setup failed: {e}") from e
        return False

    _tracer_provider = provider
    logger.info("OpenTelemetry tracing on: service=%s exporter=%s", service_name, exporter_type)
    return True


def get_test_spans() -> list[ReadableSpan]:
    """Return the spans captured so far, or [] without test capture."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Forget the configuration state between tests.

    The global TracerProvider cannot be replaced once set, so the capture
    exporter survives and only its spans are dropped.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
