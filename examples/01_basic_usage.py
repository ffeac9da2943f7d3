#!/usr/bin/env python
"""
Basic llmfanout Usage Example.

This example demonstrates the fundamental usage patterns of llmfanout:
- Running a full workflow against a configured group
- Selecting models explicitly and reading the results
- Watching per-model status updates as queries progress

Prerequisites:
    - Set OPENAI_API_KEY and/or ANTHROPIC_API_KEY environment variables
    - Install llmfanout: pip install -e .

Run:
    python examples/01_basic_usage.py
"""

import asyncio

from llmfanout import FanoutError, FanoutWorkflow, RunOptions
from llmfanout.core import ModelQueryStatus


# =============================================================================
# Example Functions
# =============================================================================


async def group_run_example() -> None:
    """
    Query every model of the default group.

    Response files land in the configured output directory.
    """
    print("=" * 60)
    print("Group Run Example")
    print("=" * 60)

    workflow = FanoutWorkflow()
    result = await workflow.run(
        RunOptions(prompt="Explain CRDTs in two sentences.", group_name="default")
    )

    print(result.summary)


async def explicit_models_example() -> None:
    """Query two named models without writing files."""
    print("\n" + "=" * 60)
    print("Explicit Models Example")
    print("=" * 60)

    workflow = FanoutWorkflow()
    result = await workflow.run(
        RunOptions(
            prompt="What is the capital of Australia?",
            models=["openai:gpt-4o", "anthropic:claude-3-7-sonnet-20250219"],
            write_files=False,
        )
    )

    for response in result.execution.responses:
        label = f"{response.provider}:{response.model_id}"
        if response.error:
            print(f"{label} failed: {response.error}")
        else:
            print(f"{label}: {response.text[:200]}")


async def status_updates_example() -> None:
    """Print every status transition as it happens."""
    print("\n" + "=" * 60)
    print("Status Updates Example")
    print("=" * 60)

    def on_status(key: str, status: ModelQueryStatus, _results) -> None:
        print(f"  {key}: {status.status.value}")

    workflow = FanoutWorkflow()
    await workflow.run(
        RunOptions(
            prompt="Name three sorting algorithms.",
            specific_model="openai:gpt-4o",
            timeout_ms=30_000,
            write_files=False,
            on_status_update=on_status,
        )
    )


# =============================================================================
# Main
# =============================================================================


async def main() -> None:
    """Run all examples."""
    try:
        await group_run_example()
        await explicit_models_example()
        await status_updates_example()
    except FanoutError as e:
        print(e.format())


if __name__ == "__main__":
    asyncio.run(main())
