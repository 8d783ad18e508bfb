"""Structured logging helpers shared by the codec entry points and the CLI.

Purpose
    Keep every log emission predictable and contextual without forcing host
    applications onto a particular logging backend.

Contents
    - ``TRACE_ID``: context variable storing the active trace identifier.
    - ``get_logger``: returns the shared package logger (quiet by default).
    - ``bind_trace_id``: binds or clears the active trace identifier.
    - ``log_debug`` / ``log_info`` / ``log_error``: emit structured entries via a
      single private emitter.
    - ``make_event``: convenience builder for encode/decode event payloads.

System Integration
    Used by :mod:`lib_nested_query.core` around every public decode/encode
    call: completion at debug, input that decodes to nothing at info,
    failures at error. The domain and application layers never log.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_nested_query_trace_id", default=None)
"""Current trace identifier propagated through logging helpers.

Why
    Request handlers decode many query strings; correlating their log lines
    with the surrounding request span needs a shared context.
"""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_nested_query")
_LOGGER.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Expose the package logger so applications may attach handlers.

    Why
        Leaves the library silent by default while giving host applications full
        control over handler and formatter configuration.
    """

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Bind or clear the active trace identifier.

    What
        Stores ``trace_id`` in :data:`TRACE_ID`; ``None`` clears the binding.
    Side Effects
        Mutates the context variable visible to subsequent logging helpers.

    Examples
    --------
    >>> bind_trace_id('req-42')
    >>> TRACE_ID.get()
    'req-42'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def log_debug(message: str, **fields: Any) -> None:
    """Emit a structured debug log entry that includes the trace context."""

    _emit(logging.DEBUG, message, fields)


def log_info(message: str, **fields: Any) -> None:
    """Emit a structured info log entry that includes the trace context."""

    _emit(logging.INFO, message, fields)


def log_error(message: str, **fields: Any) -> None:
    """Emit a structured error log entry that includes the trace context."""

    _emit(logging.ERROR, message, fields)


def make_event(
    operation: str,
    charset: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a structured logging payload for encode/decode events.

    Why
        Downstream log processors rely on stable keys.
    What
        Returns a dictionary with ``operation`` and ``charset`` keys plus any
        optional payload fields.
    Inputs
        operation: ``"decode"`` or ``"encode"``.
        charset: Charset value in effect, if known.
        payload: Optional mapping with extra diagnostic detail.

    Examples
    --------
    >>> make_event('decode', 'utf-8', {'keys': 3})
    {'operation': 'decode', 'charset': 'utf-8', 'keys': 3}
    """

    event: dict[str, Any] = {"operation": operation, "charset": charset}
    if payload:
        event |= dict(payload)
    return event


def _emit(level: int, message: str, fields: Mapping[str, Any]) -> None:
    """Send a log entry through the shared logger with contextual metadata."""

    _LOGGER.log(level, message, extra={"context": _with_trace(fields)})


def _with_trace(fields: Mapping[str, Any]) -> dict[str, Any]:
    context = {"trace_id": TRACE_ID.get()}
    context.update(fields)
    return context
