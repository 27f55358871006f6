"""
Observability components.

Provides operation-scoped logging and operation metrics.
"""

from .logging import (
    ScopedLoggerAdapter,
    current_scope,
    get_logger,
    log_operation,
    operation_scope,
)
from .metrics import (
    MetricsCollector,
    OperationMetrics,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "ScopedLoggerAdapter",
    "current_scope",
    "get_logger",
    "log_operation",
    "operation_scope",
]
