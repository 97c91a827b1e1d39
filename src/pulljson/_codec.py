"""
JSON string decoding: escape sequences, UTF-16 surrogate pairs and UTF-8.

Works on raw input bytes and produces raw output bytes. No Unicode
validation is done beyond what the escape grammar itself requires.
"""

import re
from typing import Final

HIGH_SURROGATE_MIN: Final = 0xD800
HIGH_SURROGATE_MAX: Final = 0xDBFF
LOW_SURROGATE_MIN: Final = 0xDC00
LOW_SURROGATE_MAX: Final = 0xDFFF
MAX_CODE_POINT: Final = 0x10FFFF

QUOTE: Final = ord('"')
BACKSLASH: Final = ord("\\")

# Two-character escapes, keyed by the byte following the backslash
ESCAPES: Final[dict[int, int]] = {
    ord('"'): ord('"'),
    ord("\\"): ord("\\"),
    ord("/"): ord("/"),
    ord("b"): ord("\b"),
    ord("f"): ord("\f"),
    ord("n"): ord("\n"),
    ord("r"): ord("\r"),
    ord("t"): ord("\t"),
}

# Bytes copied verbatim: everything except quote, backslash and controls
_PLAIN_RUN = re.compile(rb'[^"\\\x00-\x1f]+')

_HEX_VALUES: Final[dict[int, int]] = {
    **{ord(c): int(c, 16) for c in "0123456789abcdef"},
    **{ord(c): int(c, 16) for c in "ABCDEF"},
}


class CodecError(ValueError):
    """A string literal is malformed at byte offset ``pos``."""

    def __init__(self, msg: str, pos: int) -> None:
        super().__init__(f"{msg} (byte {pos})")
        self.msg = msg
        self.pos = pos


def encode_utf8(cp: int) -> bytes:
    """
    Encodes a code point as UTF-8.

    Surrogate code points are encoded like any other three-byte value;
    callers are responsible for not passing unpaired ones.
    """
    if cp < 0:
        raise ValueError(f"negative code point: {cp}")
    if cp <= 0x7F:
        return bytes((cp,))
    if cp <= 0x7FF:
        return bytes((0xC0 | (cp >> 6), 0x80 | (cp & 0x3F)))
    if cp <= 0xFFFF:
        return bytes(
            (
                0xE0 | (cp >> 12),
                0x80 | ((cp >> 6) & 0x3F),
                0x80 | (cp & 0x3F),
            )
        )
    if cp <= MAX_CODE_POINT:
        return bytes(
            (
                0xF0 | (cp >> 18),
                0x80 | ((cp >> 12) & 0x3F),
                0x80 | ((cp >> 6) & 0x3F),
                0x80 | (cp & 0x3F),
            )
        )
    raise ValueError(f"code point out of range: {cp:#x}")


def combine_surrogates(high: int, low: int) -> int:
    """Combines a UTF-16 surrogate pair into a single code point."""
    return (
        0x10000
        + (high - HIGH_SURROGATE_MIN) * 0x400
        + (low - LOW_SURROGATE_MIN)
    )


def read_utf16_unit(data: bytes, pos: int) -> int:
    """Reads the four hex digits of a ``\\uXXXX`` escape starting at ``pos``."""
    unit = 0
    for offset in range(4):
        idx = pos + offset
        digit = _HEX_VALUES.get(data[idx]) if idx < len(data) else None
        if digit is None:
            raise CodecError("Invalid \\uXXXX escape", idx)
        unit = unit << 4 | digit
    return unit


def _decode_unicode_escape(data: bytes, pos: int) -> tuple[int, int]:
    """
    Decodes a ``\\u`` escape whose hex digits start at ``pos``.

    Returns the code point and the offset just past the escape. A high
    surrogate must be followed immediately by a ``\\u`` low surrogate.
    """
    escape_start = pos - 2
    unit = read_utf16_unit(data, pos)
    pos += 4

    if LOW_SURROGATE_MIN <= unit <= LOW_SURROGATE_MAX:
        raise CodecError("Unpaired low surrogate", escape_start)

    if not HIGH_SURROGATE_MIN <= unit <= HIGH_SURROGATE_MAX:
        return unit, pos

    if data[pos : pos + 2] != b"\\u":
        raise CodecError("Unpaired high surrogate", pos)

    low = read_utf16_unit(data, pos + 2)
    if not LOW_SURROGATE_MIN <= low <= LOW_SURROGATE_MAX:
        raise CodecError("Invalid low surrogate", pos)

    return combine_surrogates(unit, low), pos + 6


def decode_string(data: bytes, pos: int) -> tuple[bytes, int]:
    """
    Decodes a JSON string body.

    ``pos`` points just past the opening quote. Returns the decoded bytes and
    the offset just past the closing quote.
    """
    out = bytearray()
    length = len(data)

    while True:
        run = _PLAIN_RUN.match(data, pos)
        if run is not None:
            out += run.group()
            pos = run.end()

        if pos >= length:
            raise CodecError("Unterminated string", pos)

        char = data[pos]
        if char == QUOTE:
            return bytes(out), pos + 1

        if char != BACKSLASH:
            raise CodecError("Invalid control character in string", pos)

        escape = data[pos + 1] if pos + 1 < length else None
        if escape is not None and escape in ESCAPES:
            out.append(ESCAPES[escape])
            pos += 2
        elif escape == ord("u"):
            cp, pos = _decode_unicode_escape(data, pos + 2)
            out += encode_utf8(cp)
        else:
            raise CodecError("Invalid escape sequence", pos)
