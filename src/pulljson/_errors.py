"""
Error kinds and exceptions raised by the pull decoder.

Every failure a decoder reports is a DecodeError subclass carrying the kind,
the byte offset of the first offending byte and a human readable line and
column.
"""

from enum import Enum
from typing import ClassVar

from ._positions import PositionMapper


class ErrorKind(Enum):
    """Classification of decode failures."""

    INVALID_JSON = "invalid_json"
    INVALID_TYPE = "invalid_type"
    DEPTH_OVERFLOW = "depth_overflow"
    UNRECOVERABLE = "unrecoverable"


class DecodeError(ValueError):
    """
    Reports a decode failure with position and context information.

    ``pos`` is always a byte offset into the UTF-8 input. ``lineno`` and
    ``colno`` count characters when the document was given as ``str`` and
    bytes otherwise.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_JSON

    def __init__(self, msg: str, doc: str | bytes = "", pos: int = 0) -> None:
        if not isinstance(msg, str):
            raise TypeError("msg must be a string")
        if not isinstance(pos, int) or pos < 0:
            raise ValueError("pos must be a non-negative integer")

        self.msg = msg
        self.doc = doc
        self.pos = pos
        self.lineno, self.colno = _line_and_column(doc, pos)

        super().__init__(f"{msg} at line {self.lineno}, column {self.colno}")


class InvalidJsonError(DecodeError):
    """The input violates the JSON grammar."""

    kind = ErrorKind.INVALID_JSON


class InvalidTypeError(DecodeError):
    """A value is present but does not have the shape the reader expects."""

    kind = ErrorKind.INVALID_TYPE


class DepthOverflowError(DecodeError):
    """Opening a container would exceed the configured nesting depth."""

    kind = ErrorKind.DEPTH_OVERFLOW


class UnrecoverableError(DecodeError):
    """Decoded output could not be produced, e.g. out of memory."""

    kind = ErrorKind.UNRECOVERABLE


def _line_and_column(doc: str | bytes, pos: int) -> tuple[int, int]:
    if not doc:
        return 1, pos + 1

    if isinstance(doc, str):
        char_pos = PositionMapper(doc).byte_to_char(pos)
        lineno = doc.count("\n", 0, char_pos) + 1
        return lineno, char_pos - doc.rfind("\n", 0, char_pos)

    lineno = doc.count(b"\n", 0, pos) + 1
    return lineno, pos - doc.rfind(b"\n", 0, pos)
