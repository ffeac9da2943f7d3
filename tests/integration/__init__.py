"""
Integration tests for llmfanout.

This package contains end-to-end tests that drive a complete run
(input, model selection, fan-out, output files) against fake providers.

Test Modules:
    - test_workflow: Full FanoutWorkflow pipeline and stage failure tests
"""

__all__ = [
    "test_workflow",
]
