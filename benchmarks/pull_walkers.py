"""
Adapters that let pulljson be benchmarked next to tree-building parsers.

``pull_loads`` materialises the same Python objects a ``loads`` would (all
numbers as floats); ``pull_skip`` validates a document without keeping any
values, which is the pull decoder's cheapest complete pass.
"""

from typing import Any

from pulljson import PullDecoder
from pulljson import ValueKind


def _read(decoder: PullDecoder) -> Any:
    kind = decoder.peek()
    if kind is ValueKind.ARRAY:
        return [_read(decoder) for _ in decoder.iter_array()]
    if kind is ValueKind.OBJECT:
        return {key: _read(decoder) for key in decoder.iter_object()}
    if kind is ValueKind.STRING:
        return decoder.read_string()
    if kind is ValueKind.NUMBER:
        return decoder.read_f64()
    if kind is ValueKind.BOOLEAN:
        return decoder.read_bool()
    if kind is ValueKind.NULL:
        return decoder.read_null()
    decoder.skip()
    return None


def pull_loads(data: str | bytes) -> Any:
    """Decodes a whole document into Python objects."""
    decoder = PullDecoder()
    with decoder.session(data):
        return _read(decoder)


def pull_skip(data: str | bytes) -> bool:
    """Validates a whole document without materialising it."""
    decoder = PullDecoder()
    with decoder.session(data):
        decoder.skip()
    return True
