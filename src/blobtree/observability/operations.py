"""Span decorator for ``BucketFS`` operations.

Each decorated operation emits a ``blobtree.fs.<op>`` span when tracing is
enabled. Attributes are limited to safe identifiers: the bucket name, the
backend name, a SHA256 of the requested path, and result sizes. Raw paths
and object contents never leave the process.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from blobtree.models import Entry
from blobtree.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "blobtree.fs"


def path_sha256(path: str) -> str:
    return hashlib.sha256(path.encode("utf-8")).hexdigest()


def traced_fs_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace filesystem operations with OpenTelemetry.

    The decorated method must take the path (or glob pattern) as its first
    positional argument after ``self``.

    Args:
        operation: Operation name (e.g., "open", "read_dir", "remove_all").

    Returns:
        Decorated function that emits OTel spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, name: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, name, *args, **kwargs)

            tracer = trace.get_tracer(TRACER_NAME)
            # error messages carry raw paths; only the error type is exported
            with tracer.start_as_current_span(
                f"blobtree.fs.{operation}",
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                span.set_attribute("blobtree.bucket", getattr(self, "bucket", ""))
                span.set_attribute("blobtree.path_sha256", path_sha256(name))
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                try:
                    result = func(self, name, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    span.set_status(Status(StatusCode.ERROR, type(e).__name__))
                    raise
                if result is not None:
                    _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result sizes to span. Never adds names or contents."""
    if isinstance(result, list):
        span.set_attribute("blobtree.entry_count", len(result))
    elif isinstance(result, bytes):
        span.set_attribute("blobtree.bytes", len(result))
    elif isinstance(result, int):
        span.set_attribute("blobtree.bytes", result)
    elif isinstance(result, Entry):
        span.set_attribute("blobtree.is_dir", result.is_dir)
        if not result.is_dir:
            span.set_attribute("blobtree.bytes", result.size)
