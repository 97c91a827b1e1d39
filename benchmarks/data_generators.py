"""
Test data generators for pull decoding benchmarks.

Creates JSON documents shaped like the traffic a pull decoder typically sees:
- Small configuration objects and large catalogs of records
- Number-heavy arrays mixing unsigned integers and floats
- Strings full of escapes and surrogate pairs
- Nesting close to the default depth limit
"""

import json
import random
import string
from typing import Any

# Fixed seed so every library decodes the same bytes
_SEED = 20240517
_ESCAPE_PROBABILITY = 0.3
_NESTING_DEPTH = 100
_ESCAPES = ['\\"', "\\\\", "\\/", "\\b", "\\f", "\\n", "\\r", "\\t"]

DATA_TYPES = (
    "small_config",
    "service_catalog",
    "numeric_array",
    "escaped_strings",
    "deep_nesting",
)


def generate_test_data(data_type: str) -> str:
    """Generates JSON test data based on specified type."""
    generators = {
        "small_config": _generate_small_config,
        "service_catalog": _generate_service_catalog,
        "numeric_array": _generate_numeric_array,
        "escaped_strings": _generate_escaped_strings,
        "deep_nesting": _generate_deep_nesting,
    }

    if data_type not in generators:
        raise ValueError(f"Unknown data type: {data_type}")

    return generators[data_type](random.Random(_SEED))


def _generate_small_config(rng: random.Random) -> str:
    """Generates a small configuration object (< 1KB)."""
    data = {
        "listen": {"host": "0.0.0.0", "port": 8443, "backlog": 512},
        "tls": {"enabled": True, "cert": "/etc/ssl/server.pem", "key": None},
        "workers": 8,
        "timeout": 2.5,
        "log_level": "info",
        "upstreams": ["10.0.0.1:9000", "10.0.0.2:9000"],
    }
    return json.dumps(data)


def _generate_service_catalog(rng: random.Random) -> str:
    """Generates a large catalog (> 10KB) of service records."""
    data = {
        "version": 42,
        "generated": "2024-05-17T08:00:00Z",
        "services": [
            {
                "id": rng.randint(0, 2**64 - 1),
                "name": _random_string(rng, 12),
                "region": rng.choice(["eu-west", "us-east", "ap-south"]),
                "replicas": rng.randint(1, 32),
                "load": round(rng.uniform(0.0, 1.0), 4),
                "healthy": rng.choice([True, False]),
                "owner": rng.choice([None, _random_string(rng, 8)]),
                "tags": [_random_string(rng, 5) for _ in range(4)],
                "endpoints": {
                    "http": f"https://{_random_string(rng, 8)}.internal",
                    "grpc": None,
                },
            }
            for _ in range(80)
        ],
    }
    return json.dumps(data)


def _generate_numeric_array(rng: random.Random) -> str:
    """Generates an array of numbers in every form read_f64 accepts."""
    array: list[Any] = []

    for _ in range(1000):
        choice = rng.randint(1, 4)
        if choice == 1:
            array.append(rng.randint(0, 2**64 - 1))
        elif choice == 2:
            array.append(rng.randint(0, 1000))
        elif choice == 3:
            array.append(round(rng.uniform(-1e6, 1e6), 6))
        else:
            array.append(rng.uniform(-1.0, 1.0) * 10 ** rng.randint(-300, 300))

    return json.dumps(array)


def _generate_escaped_strings(rng: random.Random) -> str:
    """Generates strings with escapes, BMP characters and surrogate pairs."""

    def create_escaped_string() -> str:
        """Creates a string mixing plain text and escape sequences."""
        chars = []
        for _ in range(50):
            if rng.random() < _ESCAPE_PROBABILITY:
                chars.append(rng.choice(_ESCAPES))
            else:
                chars.append(
                    rng.choice(string.ascii_letters + string.digits + " ")
                )
        return "".join(chars)

    def create_unicode_string() -> str:
        """Creates a string of escaped BMP and astral code points."""
        units = []
        for _ in range(20):
            cp = rng.choice(
                [rng.randint(0x00A0, 0xD7FF), rng.randint(0x10000, 0x10FFFF)]
            )
            if cp > 0xFFFF:
                cp -= 0x10000
                units.append(f"\\u{0xD800 + (cp >> 10):04x}")
                units.append(f"\\u{0xDC00 + (cp & 0x3FF):04x}")
            else:
                units.append(f"\\u{cp:04x}")
        return "".join(units)

    escaped = ", ".join(f'"{create_escaped_string()}"' for _ in range(100))
    unicode = ", ".join(f'"{create_unicode_string()}"' for _ in range(100))
    raw_utf8 = json.dumps(
        ["".join(chr(rng.randint(0x0400, 0x04FF)) for _ in range(30))] * 20,
        ensure_ascii=False,
    )
    return (
        f'{{"escaped": [{escaped}], "unicode": [{unicode}], '
        f'"raw_utf8": {raw_utf8}}}'
    )


def _generate_deep_nesting(rng: random.Random) -> str:
    """Generates arrays and objects nested to just under the depth limit."""
    document = f'"{_random_string(rng, 10)}"'
    for depth in range(_NESTING_DEPTH):
        if depth % 2:
            document = f'{{"level": {depth}, "child": {document}}}'
        else:
            document = f"[{depth}, {document}]"
    return document


def _random_string(rng: random.Random, length: int) -> str:
    """Generates a random string of specified length."""
    return "".join(rng.choices(string.ascii_letters, k=length))
