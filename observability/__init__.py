"""Observability infrastructure: logging and optional tracing.

setup_logging:
    Console + rotating file logging with per-run IDs.

run_context / new_run_id:
    Tag every log line of one dossier run with the same ID.

setup_tracing / trace_operation:
    Optional Logfire spans (ENABLE_LOGFIRE=true, pip install logfire).

Example:
    >>> from observability import setup_tracing, trace_operation
    >>> setup_tracing(enabled=True, service_name="dossier")
    >>> with trace_operation("dossier.run", {"config_id": 3}):
    ...     pass
"""

from observability.logging import new_run_id, run_context, setup_logging
from observability.tracing import setup_tracing, trace_operation, TracingContext

__all__ = [
    "setup_logging",
    "new_run_id",
    "run_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]
