"""Percent codec, legacy escape codec and numeric-entity interpreter.

Purpose
-------
Provide the byte-level primitives every other stage builds on. All functions
are pure and fail soft: malformed escapes or entities stay in the output as
literal text instead of raising.

Contents
--------
* :func:`encode` / :func:`decode` – percent codec for UTF-8 and Latin1 in the
  RFC3986 or RFC1738 flavour. Default :class:`ValueEncoder` /
  :class:`ValueDecoder` implementations.
* :func:`escape` / :func:`unescape` – the historical JavaScript ``escape``
  codec (``%XX`` plus ``%uXXXX``).
* :func:`interpret_numeric_entities` – ``&#NNN;`` / ``&#xHH;`` expansion used
  for Latin1 form submissions.
* :func:`to_text` – invariant stringification of scalars.

System Role
-----------
Used by the decoder (keys, values, charset sentinel) and the encoder (keys,
values, comma-joined lists). Has no dependency besides the domain types.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Final, Iterator
from urllib.parse import unquote

from ..domain.options import Charset, Format
from ..domain.values import Undefined

SEGMENT_LIMIT: Final[int] = 1024
"""Maximum number of characters percent-encoded per segment."""

_HEX_TABLE: Final[tuple[str, ...]] = tuple(f"%{code:02X}" for code in range(256))

_ALNUM: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
_UNRESERVED: Final[frozenset[str]] = frozenset(_ALNUM + "-_.~")
_UNRESERVED_RFC1738: Final[frozenset[str]] = _UNRESERVED | {"(", ")"}
_ESCAPE_SAFE: Final[frozenset[str]] = frozenset(_ALNUM + "@*_+-./")
_ESCAPE_SAFE_RFC1738: Final[frozenset[str]] = _ESCAPE_SAFE | {"(", ")"}

_PERCENT_U: Final[re.Pattern[str]] = re.compile(r"%u([0-9A-Fa-f]{4})")
_UNESCAPE: Final[re.Pattern[str]] = re.compile(r"%u([0-9A-Fa-f]{4})|%([0-9A-Fa-f]{2})")
_PERCENT_BYTE: Final[re.Pattern[str]] = re.compile(r"%([0-9A-Fa-f]{2})")
_NUMERIC_ENTITY: Final[re.Pattern[str]] = re.compile(r"&#(?:[xX]([0-9A-Fa-f]+)|([0-9]+));")
_SURROGATE: Final[re.Pattern[str]] = re.compile("[\ud800-\udfff]")

_MAX_CODE_POINT: Final[int] = 0x10FFFF


def to_text(value: Any, charset: Charset = Charset.UTF8) -> str:
    """Render a scalar the way the wire format expects.

    Booleans are lowercase, ``None``/``Undefined`` are empty, bytes are
    decoded with *charset*, dates use ISO-8601.

    >>> to_text(True), to_text(None), to_text(1.5), to_text(b"caf\\xc3\\xa9")
    ('true', '', '1.5', 'café')
    """

    if value is None or value is Undefined:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode(charset.value, errors="replace")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return to_text(value.value, charset)
    return str(value)


def encode(value: Any, charset: Charset | None = Charset.UTF8, format: Format | None = Format.RFC3986) -> str:
    """Percent-encode *value* for use as a key or value.

    Why
        Every byte outside the unreserved set must be escaped; Latin1 pages
        cannot represent most of Unicode and fall back to numeric references.
    What
        Containers, ``None`` and ``Undefined`` encode to ``""``. Text is
        processed in :data:`SEGMENT_LIMIT` sized segments without splitting a
        surrogate pair.

    Examples
    --------
    >>> encode("a b&c")
    'a%20b%26c'
    >>> encode("(x)", format=Format.RFC1738)
    '(x)'
    >>> encode("☺", Charset.LATIN1)
    '%26%239786%3B'
    """

    if value is None or value is Undefined or isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return ""
    charset = charset or Charset.UTF8
    format = format or Format.RFC3986
    text = to_text(value, charset)
    if not text:
        return text
    if charset is Charset.LATIN1:
        return _PERCENT_U.sub(lambda match: f"%26%23{int(match.group(1), 16)}%3B", escape(text, format))
    safe = _UNRESERVED_RFC1738 if format is Format.RFC1738 else _UNRESERVED
    return "".join(_encode_segment(segment, safe) for segment in _segments(text))


def _segments(text: str, size: int = SEGMENT_LIMIT) -> Iterator[str]:
    """Yield slices of at most *size* characters, never ending on a high surrogate."""

    start = 0
    length = len(text)
    while start < length:
        end = min(start + size, length)
        if end < length and end - start > 1 and "\ud800" <= text[end - 1] <= "\udbff":
            end -= 1
        yield text[start:end]
        start = end


def _encode_segment(segment: str, safe: frozenset[str]) -> str:
    if _SURROGATE.search(segment):
        segment = _SURROGATE.sub("\ufffd", _join_surrogates(segment))
    out: list[str] = []
    for char in segment:
        if char in safe:
            out.append(char)
        elif char < "\x80":
            out.append(_HEX_TABLE[ord(char)])
        else:
            out.extend(_HEX_TABLE[byte] for byte in char.encode("utf-8"))
    return "".join(out)


def decode(text: str | None, charset: Charset | None = Charset.UTF8) -> str | None:
    """Reverse :func:`encode`; ``+`` is read as a space.

    >>> decode("a+b%20c")
    'a b c'
    >>> decode("%A7", Charset.LATIN1)
    '§'
    >>> decode("%E9")
    '%E9'
    """

    if text is None:
        return None
    replaced = text.replace("+", " ")
    if "%" not in replaced:
        return replaced
    if charset is Charset.LATIN1:
        return _PERCENT_BYTE.sub(lambda match: chr(int(match.group(1), 16)), replaced)
    try:
        return unquote(replaced, encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        return replaced


def escape(text: str, format: Format = Format.RFC3986) -> str:
    """Legacy JavaScript ``escape``.

    Keeps ``A-Z a-z 0-9 @ * _ + - . /`` (plus ``( )`` under RFC1738); other
    code units below 256 become ``%XX`` and the rest ``%uXXXX``.

    >>> escape("äöü ~")
    '%E4%F6%FC%20%7E'
    >>> escape("😀")
    '%uD83D%uDE00'
    """

    safe = _ESCAPE_SAFE_RFC1738 if format is Format.RFC1738 else _ESCAPE_SAFE
    out: list[str] = []
    for char in text:
        if char in safe:
            out.append(char)
            continue
        code = ord(char)
        if code < 256:
            out.append(_HEX_TABLE[code])
        elif code < 0x10000:
            out.append(f"%u{code:04X}")
        else:
            code -= 0x10000
            out.append(f"%u{0xD800 + (code >> 10):04X}%u{0xDC00 + (code & 0x3FF):04X}")
    return "".join(out)


def unescape(text: str) -> str:
    """Legacy JavaScript ``unescape``; invalid sequences stay literal.

    >>> unescape("%u0041%20%42")
    'A B'
    >>> unescape("100% sure")
    '100% sure'
    """

    if "%" not in text:
        return text
    result = _UNESCAPE.sub(_unescape_match, text)
    return _join_surrogates(result)


def _unescape_match(match: re.Match[str]) -> str:
    wide, narrow = match.groups()
    return chr(int(wide if wide is not None else narrow, 16))


def interpret_numeric_entities(text: str) -> str:
    """Expand ``&#NNN;`` and ``&#xHH;`` references.

    References need a non-empty digit run, a closing ``;`` and a code point
    of at most U+10FFFF; anything else is left untouched. UTF-16 surrogate
    halves written as two references are joined.

    >>> interpret_numeric_entities("x&#61;y &#x41; &#55357;&#56489; &#12")
    'x=y A 💩 &#12'
    """

    if "&#" not in text:
        return text
    result = _NUMERIC_ENTITY.sub(_entity_match, text)
    return _join_surrogates(result)


def _entity_match(match: re.Match[str]) -> str:
    hex_digits, decimal_digits = match.groups()
    code = int(hex_digits, 16) if hex_digits is not None else int(decimal_digits)
    if code > _MAX_CODE_POINT:
        return match.group(0)
    return chr(code)


def _join_surrogates(text: str) -> str:
    """Combine adjacent UTF-16 surrogate halves into single code points."""

    if not _SURROGATE.search(text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")
