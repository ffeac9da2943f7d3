"""
Unit tests for llmfanout modules.

This package contains unit tests for:
- executor: QueryExecutor fan-out, timeouts and prompt resolution
- selector: ModelSelector selection branches
- errors/classify: error taxonomy and classification
- catalog/config/credentials: configuration loading and lookups
- inputs/formatting/output: run input and markdown output
- providers: registry and provider adapters
- cli: typer commands
"""
