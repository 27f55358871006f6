"""
Operation-scoped logging for BorrowIt.

Repository operations open an ``operation_scope`` naming the collection and
operation; every record logged inside the scope through ``get_logger``
carries those fields in ``extra``.
"""

import contextvars
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_scope: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "borrowit_log_scope", default=None
)


@contextmanager
def operation_scope(**fields: Any) -> Iterator[dict[str, Any]]:
    """
    Bind fields to every record logged until the block exits.

    Scopes nest; inner fields override outer ones and the outer scope is
    restored on exit.

    Usage:
        with operation_scope(collection_name="users", operation="users.create"):
            logger.info("Inserting user")
    """
    merged = {**current_scope(), **fields}
    token = _scope.set(merged)
    try:
        yield merged
    finally:
        _scope.reset(token)


def current_scope() -> dict[str, Any]:
    """Return a copy of the fields bound by the enclosing operation scopes."""
    return dict(_scope.get() or {})


class ScopedLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges the current operation scope into ``extra``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = current_scope()
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ScopedLoggerAdapter:
    """Get a logger whose records carry the current operation scope."""
    return ScopedLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    success: bool = True,
    duration_ms: float | None = None,
    level: int | None = None,
    **fields: Any,
) -> None:
    """
    Emit one structured record for a finished operation.

    Successes log at INFO and failures at WARNING unless ``level`` is given.
    """
    if level is None:
        level = logging.INFO if success else logging.WARNING

    extra = current_scope()
    extra.update(fields)
    extra["operation"] = operation
    extra["success"] = success

    message = f"{operation} {'succeeded' if success else 'failed'}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" in {duration_ms:.2f}ms"

    logger.log(level, message, extra=extra)
