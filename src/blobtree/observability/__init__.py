"""blobtree observability module.

Provides optional OpenTelemetry tracing for filesystem operations.
"""

from blobtree.observability.operations import traced_fs_operation
from blobtree.observability.tracing import configure_tracing, is_tracing_enabled

__all__ = ["configure_tracing", "is_tracing_enabled", "traced_fs_operation"]
