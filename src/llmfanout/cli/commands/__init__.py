"""
CLI command implementations for llmfanout.

Commands:
    run    - Send a prompt to several models
    models - List configured models
"""

from __future__ import annotations

from llmfanout.cli.commands import models, run

__all__ = [
    "models",
    "run",
]
