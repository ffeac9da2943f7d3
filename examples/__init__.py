"""
llmfanout usage examples.

Run any example directly, e.g. ``python examples/01_basic_usage.py``.
"""
