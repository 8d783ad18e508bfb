"""Public package surface of ``lib_nested_query``.

``decode`` turns ``a[b][]=c`` style query strings into nested dictionaries and
``encode`` goes the other way. Options, enums, filters and errors are
re-exported so callers never need to import from the layer modules.
"""

from __future__ import annotations

from .core import decode, encode
from .domain.errors import CyclicReference, DepthExceeded, InvalidArgument, LimitExceeded, QueryStringError
from .domain.options import (
    DEFAULT_DECODE_OPTIONS,
    DEFAULT_ENCODE_OPTIONS,
    Charset,
    DecodeKind,
    DecodeOptions,
    Duplicates,
    EncodeOptions,
    Format,
    FunctionFilter,
    IterableFilter,
    ListFormat,
    Sentinel,
)
from .domain.values import OverflowDict, Undefined
from .observability import bind_trace_id, get_logger

__all__ = [
    "decode",
    "encode",
    "DecodeOptions",
    "EncodeOptions",
    "DEFAULT_DECODE_OPTIONS",
    "DEFAULT_ENCODE_OPTIONS",
    "Charset",
    "DecodeKind",
    "Duplicates",
    "Format",
    "ListFormat",
    "Sentinel",
    "FunctionFilter",
    "IterableFilter",
    "Undefined",
    "OverflowDict",
    "QueryStringError",
    "InvalidArgument",
    "LimitExceeded",
    "DepthExceeded",
    "CyclicReference",
    "bind_trace_id",
    "get_logger",
]
