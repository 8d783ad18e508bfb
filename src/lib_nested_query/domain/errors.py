"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the codec, the decode and encode
pipelines, the composition root, and consuming applications. The hierarchy
lives in the domain layer to respect the Clean Architecture dependency rule
(outer layers may depend on inner layers, not vice versa).

Contents
--------
* :class:`QueryStringError` – umbrella base class for all library failures.
* :class:`InvalidArgument` – rejected options or unsupported input types.
* :class:`LimitExceeded` – parameter or list limits breached while throwing is
  enabled.
* :class:`DepthExceeded` – key nesting deeper than ``depth`` under
  ``strict_depth``.
* :class:`CyclicReference` – the encoder met a value that contains itself.

System Role
-----------
Malformed percent escapes and numeric entities never surface here; they are
recovered locally as literal text. Everything else is raised synchronously at
the point of detection. Each concrete type also derives from the closest
builtin (``ValueError`` / ``IndexError``) so callers using plain ``except``
clauses keep working.
"""

from __future__ import annotations


class QueryStringError(Exception):
    """Base type for all exceptions emitted by ``lib_nested_query``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class InvalidArgument(QueryStringError, ValueError):
    """Raised when options or inputs are rejected before any work starts.

    Typical Sources
    ---------------
    Non-positive ``parameter_limit``, unsupported charsets, ``decode`` input
    that is neither text nor a mapping, and ``decode_dot_in_keys`` combined
    with an explicit ``allow_dots=False``.
    """


class LimitExceeded(QueryStringError, IndexError):
    """Signals a parameter-limit or list-limit breach.

    Only raised when ``throw_on_limit_exceeded`` is set; otherwise parameters
    are truncated and oversized lists are promoted to mappings silently.
    """


class DepthExceeded(QueryStringError, IndexError):
    """Raised when a key nests deeper than ``depth`` and ``strict_depth`` is on."""


class CyclicReference(QueryStringError, ValueError):
    """Raised by the encoder when a container is reachable from itself.

    Why
    ----
    Cycles have no finite text form. Decoding and merging tolerate (and
    preserve) them instead, so this error is specific to encoding.
    """
