"""
Pure formatting of query results.

No I/O: the output writer and the CLI decide where the strings go.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from llmfanout.core.catalog import DEFAULT_GROUP_NAME
from llmfanout.core.types import LLMResponse, QueryExecutionResult, QueryStatus


def format_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_duration(duration_ms: int | None) -> str:
    """``850ms``, ``3.2s`` or ``2m 5s``."""
    if duration_ms is None:
        return "-"
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest}s"


def format_response_markdown(
    response: LLMResponse,
    include_metadata: bool = False,
    include_thinking: bool = False,
    generated_at: datetime | None = None,
) -> str:
    """
    Markdown document for one model response.

    Layout: ``# Model: <key>`` title, ``Group:`` line for non-default
    groups, ``Generated:`` timestamp, then ``## Error`` or ``## Response``
    and optional ``## Thinking`` / ``## Metadata`` sections.
    """
    lines = [f"# Model: {response.provider}:{response.model_id}"]
    if response.group_info is not None and response.group_info.name != DEFAULT_GROUP_NAME:
        lines.append(f"Group: {response.group_info.name}")
    lines.append(f"Generated: {format_timestamp(generated_at)}")
    lines.append("")

    if response.error:
        lines.extend(["## Error", "", "```", response.error, "```", ""])
        if response.error_tip:
            lines.extend([f"Tip: {response.error_tip}", ""])

    if response.text:
        lines.extend(["## Response", "", response.text])

    metadata: dict[str, Any] = dict(response.metadata)
    thinking = metadata.get("thinking")
    if include_thinking and thinking:
        lines.extend(["", "## Thinking", "", "```text", str(thinking), "```"])
        metadata.pop("thinking", None)

    if include_metadata and metadata:
        lines.extend(["", "## Metadata", "", "```json"])
        lines.append(json.dumps(metadata, indent=2, default=str))
        lines.append("```")

    return "\n".join(lines)


def format_console_summary(
    result: QueryExecutionResult,
    run_name: str | None = None,
    output_directory: str | None = None,
    file_errors: dict[str, str] | None = None,
) -> str:
    """Plain-text run summary: counts, per-model failures and where output went."""
    total = len(result.responses)
    succeeded = result.success_count
    failed = result.failure_count

    lines: list[str] = []
    if run_name:
        lines.append(f"Run: {run_name}")
    lines.append(
        f"Results: {succeeded} succeeded, {failed} failed ({total} total) "
        f"in {format_duration(result.timing.duration_ms)}"
    )

    for response in result.responses:
        status = result.statuses.get(response.key)
        duration = format_duration(status.duration_ms if status else None)
        if status is not None and status.status == QueryStatus.SUCCESS:
            lines.append(f"  + {response.key} ({duration})")
        else:
            category = response.error_category.value if response.error_category else "Unknown"
            lines.append(f"  x {response.key} ({duration}) [{category}] {response.error}")
            if response.error_tip:
                lines.append(f"      Tip: {response.error_tip}")

    if file_errors:
        lines.append("")
        lines.append(f"Failed to write {len(file_errors)} file(s):")
        for name, message in file_errors.items():
            lines.append(f"  x {name}: {message}")

    if output_directory:
        lines.append("")
        lines.append(f"Output directory: {output_directory}")

    return "\n".join(lines)
