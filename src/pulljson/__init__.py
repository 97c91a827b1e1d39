"""
Pull-style JSON decoding with an explicit nesting state machine.

Callers drive decoding by asking for the next value in the shape they expect
(``read_u64``, ``open_object``, ...) instead of receiving a document tree.
The first error of a session is latched: every later call raises the same
error without consuming further input.
"""

import logging
import os
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import Final
from typing import NoReturn
from typing import TypeAlias

from ._codec import CodecError
from ._codec import decode_string
from ._errors import DecodeError
from ._errors import DepthOverflowError
from ._errors import ErrorKind
from ._errors import InvalidJsonError
from ._errors import InvalidTypeError
from ._errors import UnrecoverableError

__version__ = "0.1.0"

Position: TypeAlias = int
JsonInput = bytes | bytearray | memoryview | str

logger = logging.getLogger(__name__)

# Profiling infrastructure - zero-cost when disabled
PROFILE_HOT_PATHS = __debug__ and "PULLJSON_PROFILE" in os.environ

DEFAULT_MAX_DEPTH: Final = 128
U64_MAX: Final = 2**64 - 1

_END: Final = -1
_WHITESPACE: Final = b" \t\n\r"
_COMMA: Final = ord(",")
_COLON: Final = ord(":")
_QUOTE: Final = ord('"')
_OPEN_ARRAY: Final = ord("[")
_CLOSE_ARRAY: Final = ord("]")
_OPEN_OBJECT: Final = ord("{")
_CLOSE_OBJECT: Final = ord("}")
_MINUS: Final = ord("-")
_FRACTION_OR_EXPONENT: Final = frozenset(b".eE")

_UNSIGNED_RE = re.compile(rb"[0-9]+")
# Decimal grammar of a C-locale strtod, minus inf/nan/hex and bare fractions
_FLOAT_RE = re.compile(rb"-?[0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?")
# Longest digit run that can still fit in 64 bits
_U64_MAX_DIGITS: Final = len(str(U64_MAX))


@dataclass
class HotPathStats:
    """Statistics for profiling hot paths during decoding."""

    function_name: str
    call_count: int = 0
    total_time_ns: int = 0
    bytes_processed: int = 0

    def record_call(self, duration_ns: int, nbytes: int = 0) -> None:
        """Records a call with its timing and number of bytes processed."""
        self.call_count += 1
        self.total_time_ns += duration_ns
        self.bytes_processed += nbytes


if PROFILE_HOT_PATHS:
    _hot_path_stats: dict[str, HotPathStats] = {}

    class ProfileContext:
        """Context manager for profiling hot paths."""

        def __init__(self, func_name: str, nbytes: int = 0):
            self.func_name = func_name
            self.nbytes = nbytes
            self.start_time = 0

        def __enter__(self) -> "ProfileContext":
            self.start_time = time.perf_counter_ns()
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            duration = time.perf_counter_ns() - self.start_time
            if self.func_name not in _hot_path_stats:
                _hot_path_stats[self.func_name] = HotPathStats(self.func_name)
            _hot_path_stats[self.func_name].record_call(duration, self.nbytes)

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        """Returns current profiling statistics."""
        return _hot_path_stats.copy()

    def clear_hot_path_stats() -> None:
        """Clears profiling statistics."""
        _hot_path_stats.clear()

else:
    # Records nothing when profiling is disabled
    class ProfileContext:  # type: ignore[no-redef]
        def __init__(self, func_name: str, nbytes: int = 0) -> None:
            self.nbytes = nbytes

        def __enter__(self) -> "ProfileContext":
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            pass

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        return {}

    def clear_hot_path_stats() -> None:
        pass


class ValueKind(Enum):
    """Shape of the next value, as classified by ``PullDecoder.peek``."""

    ARRAY = "array"
    OBJECT = "object"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


class PositionTag(Enum):
    """
    Where the cursor sits inside the container at one nesting level.

    The tag at the current level fully determines which separators and
    closers may follow and whether a key string is expected.
    """

    ROOT = "root"
    ARRAY_AWAITING_VALUE = "array_awaiting_value"
    ARRAY_AFTER_VALUE = "array_after_value"
    OBJECT_AWAITING_KEY = "object_awaiting_key"
    OBJECT_AWAITING_VALUE = "object_awaiting_value"


_ARRAY_TAGS: Final = frozenset(
    {PositionTag.ARRAY_AWAITING_VALUE, PositionTag.ARRAY_AFTER_VALUE}
)
_OBJECT_TAGS: Final = frozenset(
    {PositionTag.OBJECT_AWAITING_KEY, PositionTag.OBJECT_AWAITING_VALUE}
)

_VALUE_KINDS: Final[dict[int, ValueKind]] = {
    _OPEN_ARRAY: ValueKind.ARRAY,
    _OPEN_OBJECT: ValueKind.OBJECT,
    _QUOTE: ValueKind.STRING,
    _MINUS: ValueKind.NUMBER,
    **{digit: ValueKind.NUMBER for digit in b"0123456789"},
    ord("t"): ValueKind.BOOLEAN,
    ord("f"): ValueKind.BOOLEAN,
    ord("n"): ValueKind.NULL,
}


@dataclass(frozen=True)
class DecoderConfig:
    """
    Configures a PullDecoder with immutable settings.

    ``max_depth`` bounds the number of simultaneously open containers; the
    nesting stack is sized from it once and never grows.
    """

    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self) -> None:
        if isinstance(self.max_depth, bool) or not isinstance(
            self.max_depth, int
        ):
            raise TypeError("max_depth must be an integer")
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative")


class PullDecoder:
    """
    Decodes one JSON document at a time, driven by typed read calls.

    A session starts with ``begin`` and ends with ``end``; in between the
    caller peeks at each value and calls the matching reader. Instances are
    not thread-safe.
    """

    def __init__(
        self,
        max_depth: int | None = None,
        config: DecoderConfig | None = None,
    ) -> None:
        if config is None:
            config = (
                DecoderConfig()
                if max_depth is None
                else DecoderConfig(max_depth=max_depth)
            )
        elif max_depth is not None:
            raise TypeError("pass either max_depth or config, not both")

        self.config = config
        self.max_depth = config.max_depth
        # Slot 0 is the implicit root level
        self._states = [PositionTag.ROOT] * (self.max_depth + 1)
        self._level = 0
        self._doc: str | bytes = b""
        self._data = b""
        self._pos: Position = 0
        self._active = False
        self._root_done = False
        self._poison: DecodeError | None = None

    # -- session lifecycle ---------------------------------------------

    @property
    def active(self) -> bool:
        """Whether a session is currently attached."""
        return self._active

    @property
    def position(self) -> Position:
        """Byte offset of the cursor into the input."""
        return self._pos

    @property
    def level(self) -> int:
        """Number of currently open containers."""
        return self._level

    @property
    def tag(self) -> PositionTag:
        """Position tag of the innermost open level."""
        return self._states[self._level]

    @property
    def error(self) -> ErrorKind | None:
        """Kind of the latched error, if any."""
        return self._poison.kind if self._poison is not None else None

    def begin(self, data: JsonInput) -> None:
        """
        Attaches ``data`` and moves the cursor to its first token.

        ``str`` input is encoded to UTF-8 once; error positions are still
        reported as line and column in characters. Beginning a session while
        one is active is a programming error.
        """
        if self._active:
            raise RuntimeError("a decoding session is already active")

        if isinstance(data, str):
            self._doc = data
            self._data = data.encode("utf-8", "surrogatepass")
        elif isinstance(data, bytes | bytearray | memoryview):
            self._data = bytes(data)
            self._doc = self._data
        else:
            raise TypeError(
                "the JSON input must be str or bytes-like, "
                f"not {type(data).__name__}"
            )

        self._active = True
        self._pos = self._skip_space(0)
        logger.debug("Began decoding session over %d bytes", len(self._data))

    def end(self) -> None:
        """
        Ends the session, checking that exactly one value was consumed.

        Raises the latched error if one occurred, InvalidTypeError if a
        container is still open and InvalidJsonError for a missing top-level
        value or trailing data. The decoder is reset either way, including
        the latch, so the instance can decode another document.
        """
        if not self._active:
            raise RuntimeError("no decoding session is active")

        try:
            if self._poison is not None:
                raise self._poison.with_traceback(None)
            if self._level > 0:
                raise InvalidTypeError(
                    "Unclosed container at end of input", self._doc, self._pos
                )
            if not self._root_done:
                msg = (
                    "Expecting value"
                    if self._pos >= len(self._data)
                    else "Top-level value was not read"
                )
                raise InvalidJsonError(msg, self._doc, self._pos)
            if self._pos < len(self._data):
                raise InvalidJsonError("Extra data", self._doc, self._pos)
        finally:
            logger.debug(
                "Ended decoding session at byte %d (error=%s)",
                self._pos,
                self.error,
            )
            self._reset()

    @contextmanager
    def session(self, data: JsonInput) -> Iterator["PullDecoder"]:
        """
        Runs one decoding session as a context manager.

        ``end`` is called on normal exit. If the body raises, the session is
        detached and the original exception propagates.
        """
        self.begin(data)
        try:
            yield self
        except BaseException:
            self._reset()
            raise
        self.end()

    def _reset(self) -> None:
        self._level = 0
        self._states[0] = PositionTag.ROOT
        self._doc = b""
        self._data = b""
        self._pos = 0
        self._active = False
        self._root_done = False
        self._poison = None

    # -- cursor and error latch ----------------------------------------

    def _skip_space(self, pos: Position) -> Position:
        with ProfileContext("skip_space") as profile:
            data = self._data
            length = len(data)
            start = pos
            while pos < length and data[pos] in _WHITESPACE:
                pos += 1
            profile.nbytes = pos - start
            return pos

    def _char(self, pos: int | None = None) -> int:
        """Byte at ``pos`` (default: the cursor), or -1 past the end."""
        if pos is None:
            pos = self._pos
        return self._data[pos] if pos < len(self._data) else _END

    def _guard(self) -> None:
        if not self._active:
            raise RuntimeError("no decoding session is active")
        if self._poison is not None:
            raise self._poison.with_traceback(None)

    def _fail(
        self,
        error_type: type[DecodeError],
        msg: str,
        pos: int | None = None,
        cause: BaseException | None = None,
    ) -> NoReturn:
        err = error_type(msg, self._doc, self._pos if pos is None else pos)
        self._poison = err
        logger.debug(
            "Decoder latched %s at byte %d: %s", err.kind.name, err.pos, msg
        )
        raise err from cause

    def _check_value_position(self, *, allow_key: bool) -> None:
        tag = self._states[self._level]
        if tag is PositionTag.OBJECT_AWAITING_KEY and not allow_key:
            self._fail(
                InvalidTypeError,
                "Expecting property name enclosed in double quotes",
            )
        if tag is PositionTag.ROOT and self._root_done:
            self._fail(InvalidJsonError, "Extra data")

    def _starts_value(self, pos: Position) -> bool:
        return self._char(pos) in _VALUE_KINDS

    # -- nesting state machine -----------------------------------------

    def _advance(self) -> None:
        """
        Moves past the separator following a completed value.

        Must run exactly once after every value, including closed
        containers, with the cursor just past that value.
        """
        with ProfileContext("advance"):
            pos = self._skip_space(self._pos)
            self._pos = pos
            char = self._char(pos)
            level = self._level
            tag = self._states[level]

            if tag is PositionTag.ARRAY_AWAITING_VALUE:
                if char == _COMMA:
                    self._states[level] = PositionTag.ARRAY_AFTER_VALUE
                    self._pos = self._after_array_comma(pos)
                elif char != _CLOSE_ARRAY:
                    self._fail(InvalidJsonError, "Expecting ',' delimiter")
            elif tag is PositionTag.ARRAY_AFTER_VALUE:
                if char == _COMMA:
                    self._pos = self._after_array_comma(pos)
                elif char == _CLOSE_ARRAY:
                    self._states[level] = PositionTag.ARRAY_AWAITING_VALUE
                else:
                    self._fail(InvalidJsonError, "Expecting ',' delimiter")
            elif tag is PositionTag.OBJECT_AWAITING_KEY:
                if char != _COLON:
                    self._fail(InvalidJsonError, "Expecting ':' delimiter")
                self._states[level] = PositionTag.OBJECT_AWAITING_VALUE
                self._pos = self._skip_space(pos + 1)
                if not self._starts_value(self._pos):
                    self._fail(InvalidJsonError, "Expecting value")
            elif tag is PositionTag.OBJECT_AWAITING_VALUE:
                if char == _COMMA:
                    self._states[level] = PositionTag.OBJECT_AWAITING_KEY
                    self._pos = self._skip_space(pos + 1)
                    if self._char() != _QUOTE:
                        self._fail(
                            InvalidJsonError,
                            "Expecting property name enclosed in double quotes",
                        )
                elif char != _CLOSE_OBJECT:
                    self._fail(InvalidJsonError, "Expecting ',' delimiter")
            else:
                self._root_done = True

    def _after_array_comma(self, comma_pos: Position) -> Position:
        pos = self._skip_space(comma_pos + 1)
        if not self._starts_value(pos):
            self._pos = pos
            if self._char(pos) == _CLOSE_ARRAY:
                self._fail(
                    InvalidJsonError,
                    "Illegal trailing comma before end of array",
                )
            self._fail(InvalidJsonError, "Expecting value")
        return pos

    # -- lookahead -----------------------------------------------------

    def peek(self) -> ValueKind | None:
        """
        Classifies the next value without consuming it.

        Returns None at a closer, at the end of input, once the top-level
        value has been read, or after an error. Does not validate the value.
        """
        if not self._active or self._poison is not None:
            return None
        if self._level == 0 and self._root_done:
            return None
        return _VALUE_KINDS.get(self._char())

    def more(self) -> bool:
        """Whether another value is available in the current container."""
        if not self._active or self._poison is not None:
            return False

        char = self._char()
        if char == _END:
            return False

        tag = self._states[self._level]
        if tag is PositionTag.ROOT:
            return not self._root_done
        if tag is PositionTag.ARRAY_AWAITING_VALUE:
            return char != _CLOSE_ARRAY
        if tag is PositionTag.ARRAY_AFTER_VALUE:
            return True
        return char != _CLOSE_OBJECT

    # -- scalar readers ------------------------------------------------

    def _read_literal(self, literal: bytes) -> None:
        if not self._data.startswith(literal, self._pos):
            self._fail(InvalidJsonError, "Invalid literal")
        self._pos += len(literal)

    def read_null(self) -> None:
        """Reads the literal ``null``."""
        self._guard()
        self._check_value_position(allow_key=False)

        if self._char() != ord("n"):
            self._fail(InvalidTypeError, "Expecting null")
        self._read_literal(b"null")
        self._advance()

    def read_bool(self) -> bool:
        """Reads ``true`` or ``false``."""
        self._guard()
        self._check_value_position(allow_key=False)

        char = self._char()
        if char == ord("t"):
            self._read_literal(b"true")
            value = True
        elif char == ord("f"):
            self._read_literal(b"false")
            value = False
        else:
            self._fail(InvalidTypeError, "Expecting boolean")

        self._advance()
        return value

    def read_u64(self) -> int:
        """
        Reads an unsigned 64-bit integer.

        Negative numbers, numbers with a fraction or exponent and values
        above ``2**64 - 1`` raise InvalidTypeError, so the caller can retry
        with ``read_f64`` where appropriate.
        """
        self._guard()
        self._check_value_position(allow_key=False)

        with ProfileContext("read_u64") as profile:
            if self._char() == _MINUS:
                self._fail(
                    InvalidTypeError, "Expecting unsigned integer, found sign"
                )

            match = _UNSIGNED_RE.match(self._data, self._pos)
            if match is None:
                self._fail(InvalidTypeError, "Expecting unsigned integer")
            if self._char(match.end()) in _FRACTION_OR_EXPONENT:
                self._fail(
                    InvalidTypeError,
                    "Expecting unsigned integer, found fractional number",
                )

            digits = match.group().lstrip(b"0") or b"0"
            value = (
                int(digits.decode("ascii"))
                if len(digits) <= _U64_MAX_DIGITS
                else U64_MAX + 1
            )
            if value > U64_MAX:
                self._fail(
                    InvalidTypeError,
                    "Number out of range for an unsigned 64-bit integer",
                )
            profile.nbytes = match.end() - match.start()
            self._pos = match.end()

        self._advance()
        return value

    def read_f64(self) -> float:
        """
        Reads a number as a double precision float.

        Parsing ignores the process locale; ``.`` is always the decimal
        point. Magnitudes beyond the float range decode to infinity.
        """
        self._guard()
        self._check_value_position(allow_key=False)

        with ProfileContext("read_f64") as profile:
            match = _FLOAT_RE.match(self._data, self._pos)
            if match is None:
                self._fail(InvalidJsonError, "Expecting number")
            value = float(match.group().decode("ascii"))
            profile.nbytes = match.end() - match.start()
            self._pos = match.end()

        self._advance()
        return value

    def read_bytes(self) -> bytes:
        """
        Reads a string and returns its decoded UTF-8 bytes.

        This is also how object keys are read.
        """
        self._guard()
        self._check_value_position(allow_key=True)

        if self._char() != _QUOTE:
            self._fail(InvalidTypeError, "Expecting string")

        start = self._pos
        try:
            with ProfileContext("read_string") as profile:
                value, end = decode_string(self._data, start + 1)
                profile.nbytes = end - start
        except CodecError as e:
            self._fail(InvalidJsonError, e.msg, e.pos, cause=e)
        except MemoryError as e:
            self._fail(
                UnrecoverableError, "Out of memory decoding string", cause=e
            )

        self._pos = end
        self._advance()
        return value

    def read_string(self) -> str:
        """
        Reads a string as ``str``.

        Lone surrogates in ``str`` input come back as themselves. Bytes
        that are not valid UTF-8 are preserved as lone surrogates
        (``surrogateescape``) rather than rejected.
        """
        value = self.read_bytes()
        try:
            return value.decode("utf-8", "surrogatepass")
        except UnicodeDecodeError:
            return value.decode("utf-8", "surrogateescape")

    # -- containers ----------------------------------------------------

    def _push(self, opener: int, tag: PositionTag, expected: str) -> Position:
        self._guard()
        self._check_value_position(allow_key=False)

        if self._char() != opener:
            self._fail(InvalidTypeError, f"Expecting {expected}")
        if self._level >= self.max_depth:
            self._fail(
                DepthOverflowError,
                f"Nesting depth exceeds maximum of {self.max_depth}",
            )

        self._level += 1
        self._states[self._level] = tag
        self._pos = self._skip_space(self._pos + 1)
        return self._pos

    def open_array(self) -> None:
        """Enters an array; the cursor moves to its first element or ``]``."""
        pos = self._push(_OPEN_ARRAY, PositionTag.ARRAY_AWAITING_VALUE, "array")
        if not (self._starts_value(pos) or self._char(pos) == _CLOSE_ARRAY):
            self._fail(InvalidJsonError, "Expecting value")

    def open_object(self) -> None:
        """Enters an object; the cursor moves to its first key or ``}``."""
        pos = self._push(
            _OPEN_OBJECT, PositionTag.OBJECT_AWAITING_KEY, "object"
        )
        if self._char(pos) not in (_QUOTE, _CLOSE_OBJECT):
            self._fail(
                InvalidJsonError,
                "Expecting property name enclosed in double quotes",
            )

    def _pop(
        self, closer: int, tags: frozenset[PositionTag], name: str
    ) -> None:
        self._guard()

        if self._states[self._level] not in tags:
            self._fail(InvalidTypeError, f"Not inside an {name}")
        if self._char() != closer:
            self._fail(
                InvalidJsonError, f"Expecting '{chr(closer)}' to close {name}"
            )

        self._pos += 1
        self._level -= 1
        # Closing a container completes a value in the enclosing level
        self._advance()

    def close_array(self) -> None:
        """Leaves the current array, which must be at its ``]``."""
        self._pop(_CLOSE_ARRAY, _ARRAY_TAGS, "array")

    def close_object(self) -> None:
        """Leaves the current object, which must be at its ``}``."""
        self._pop(_CLOSE_OBJECT, _OBJECT_TAGS, "object")

    # -- conveniences --------------------------------------------------

    def skip(self) -> None:
        """
        Consumes the next value whatever its shape.

        Containers are walked iteratively and still obey ``max_depth``.
        """
        self._guard()
        self._check_value_position(allow_key=False)

        depth = 0
        while True:
            if depth:
                if not self.more():
                    if self._states[self._level] in _ARRAY_TAGS:
                        self.close_array()
                    else:
                        self.close_object()
                    depth -= 1
                    if depth == 0:
                        return
                    continue
                if self._states[self._level] is PositionTag.OBJECT_AWAITING_KEY:
                    self.read_bytes()

            kind = self.peek()
            if kind is ValueKind.ARRAY:
                self.open_array()
                depth += 1
            elif kind is ValueKind.OBJECT:
                self.open_object()
                depth += 1
            elif kind is ValueKind.STRING:
                self.read_bytes()
            elif kind is ValueKind.NUMBER:
                self.read_f64()
            elif kind is ValueKind.BOOLEAN:
                self.read_bool()
            elif kind is ValueKind.NULL:
                self.read_null()
            else:
                self._fail(InvalidJsonError, "Expecting value")

            if depth == 0:
                return

    def iter_array(self) -> Iterator[ValueKind | None]:
        """
        Opens an array and yields the kind of each element.

        The caller must consume exactly one value per iteration; the array is
        closed after the last element.
        """
        self.open_array()
        while self.more():
            pos = self._pos
            yield self.peek()
            if self._pos == pos and self._poison is None:
                self._fail(InvalidTypeError, "Array element was not consumed")
        self.close_array()

    def iter_object(self) -> Iterator[str]:
        """
        Opens an object and yields each member key.

        The caller must consume the member value before resuming; the object
        is closed after the last member.
        """
        self.open_object()
        while self.more():
            key = self.read_string()
            pos = self._pos
            yield key
            if self._pos == pos and self._poison is None:
                self._fail(
                    InvalidTypeError, "Object member value was not consumed"
                )
        self.close_object()


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "U64_MAX",
    "DecodeError",
    "DecoderConfig",
    "DepthOverflowError",
    "ErrorKind",
    "HotPathStats",
    "InvalidJsonError",
    "InvalidTypeError",
    "PositionTag",
    "PullDecoder",
    "UnrecoverableError",
    "ValueKind",
    "clear_hot_path_stats",
    "get_hot_path_stats",
]
