"""
llmfanout Command-Line Interface.

Commands:
    run     - Send a prompt to several models concurrently
    models  - List configured models and credential status
    config  - Show resolved settings
    version - Show version

Example:
    $ llmfanout run "Explain CRDTs" --group chat
    $ llmfanout run prompt.md src/ -m openai:gpt-4o -m anthropic:claude-3-7-sonnet-20250219
    $ llmfanout models
"""

from __future__ import annotations

from llmfanout.cli.main import app, cli, main

__all__ = [
    "app",
    "cli",
    "main",
]
