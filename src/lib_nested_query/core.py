"""Composition root for ``lib_nested_query``.

Purpose
-------
Provide the two stable entry points, :func:`decode` and :func:`encode`, that
wire the application pipelines to the logging façade. Everything consumers
need is re-exported from the package root.

Contents
--------
* :func:`decode` – query string (or flat mapping) → nested ``dict``.
* :func:`encode` – nested value → query string.

System Role
-----------
Thin orchestration only: option defaults, structured debug events on success,
an error event before library errors propagate. Callbacks supplied through the
options run inside the pipelines and their exceptions pass through untouched.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .application import decoder as _decoder
from .application import encoder as _encoder
from .domain.errors import QueryStringError
from .domain.options import DEFAULT_DECODE_OPTIONS, DEFAULT_ENCODE_OPTIONS, DecodeOptions, EncodeOptions
from .observability import log_debug, log_error, log_info, make_event


def decode(
    value: str | Mapping[Any, Any] | Iterable[tuple[Any, Any]] | None,
    options: DecodeOptions | None = None,
) -> dict[str, Any]:
    """Parse *value* into a nested ``dict``.

    Why
    ----
    Web handlers receive ``a[b][]=c`` style parameters and want the tree they
    describe.

    What
    ----
    Delegates to :func:`lib_nested_query.application.decoder.decode` with
    :data:`DEFAULT_DECODE_OPTIONS` when *options* is omitted and logs a
    ``decode-complete`` debug event with the number of top-level keys.
    Non-empty input that yields nothing is also logged as ``decode-empty``
    at info level.

    Parameters
    ----------
    value:
        Raw query string, an already split flat mapping, ``(key, value)``
        pairs, or ``None``.
    options:
        Optional :class:`DecodeOptions`.

    Returns
    -------
    dict[str, Any]
        Fresh result tree; never shares containers with earlier calls.

    Raises
    ------
    QueryStringError
        Subclasses for invalid arguments and exceeded limits; logged as
        ``decode-failed`` first.

    Examples
    --------
    >>> decode("a[b][c]=d&e[]=f&e[]=g")
    {'a': {'b': {'c': 'd'}}, 'e': ['f', 'g']}
    >>> decode("a.b=c", DecodeOptions(allow_dots=True))
    {'a': {'b': 'c'}}
    >>> decode(None)
    {}
    """

    options = options or DEFAULT_DECODE_OPTIONS
    charset = options.charset.value
    try:
        result = _decoder.decode(value, options)
    except QueryStringError as exc:
        log_error("decode-failed", **make_event("decode", charset, {"error": str(exc), "kind": type(exc).__name__}))
        raise
    size = len(value) if isinstance(value, (str, Mapping)) else 0
    event = make_event("decode", charset, {"input_size": size, "keys": len(result)})
    if size and not result:
        log_info("decode-empty", **event)
    log_debug("decode-complete", **event)
    return result


def encode(value: Any, options: EncodeOptions | None = None) -> str:
    """Serialize *value* into a query string.

    Delegates to :func:`lib_nested_query.application.encoder.encode` and logs
    an ``encode-complete`` debug event with the output length.

    >>> encode({"a": {"b": "c"}})
    'a%5Bb%5D=c'
    >>> encode({"a": ["b", "c"]}, EncodeOptions(list_format="brackets", encode=False))
    'a[]=b&a[]=c'
    """

    options = options or DEFAULT_ENCODE_OPTIONS
    charset = options.charset.value
    try:
        result = _encoder.encode(value, options)
    except QueryStringError as exc:
        log_error("encode-failed", **make_event("encode", charset, {"error": str(exc), "kind": type(exc).__name__}))
        raise
    log_debug("encode-complete", **make_event("encode", charset, {"length": len(result)}))
    return result


__all__ = ["decode", "encode"]
