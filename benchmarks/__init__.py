"""
Benchmark suite for pulljson decoding performance.

Compares pulljson against standard JSON libraries including:
- Python standard library json
- orjson (C-optimized)
- ujson (ultra-fast JSON)

Measures decoding speed and memory usage across different data types.
"""
