"""
Output writing.

Each run gets a friendly ``<adjective>-<noun>`` name and its own
directory; every response is written to one markdown file via a
temporary file and an atomic rename. Write failures are collected per
file so one bad file never loses the others.
"""

from __future__ import annotations

import os
import random
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from llmfanout.core.catalog import DEFAULT_GROUP_NAME
from llmfanout.core.formatting import format_response_markdown
from llmfanout.core.types import LLMResponse
from llmfanout.utils.errors import FileSystemError, PermissionDeniedError
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

ADJECTIVES = [
    "amber", "brave", "bright", "calm", "clever", "cosmic", "crisp", "daring",
    "eager", "fancy", "gentle", "golden", "happy", "jolly", "keen", "lively",
    "lucky", "mellow", "nimble", "noble", "quick", "quiet", "rapid", "shiny",
    "silent", "smart", "snowy", "swift", "sunny", "witty",
]
NOUNS = [
    "badger", "beacon", "canyon", "comet", "falcon", "forest", "galaxy", "harbor",
    "heron", "island", "lagoon", "lantern", "meadow", "nebula", "otter", "panda",
    "phoenix", "pioneer", "quasar", "raven", "river", "rocket", "summit", "tiger",
    "voyager", "willow", "wizard", "zephyr",
]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def generate_run_name(rng: random.Random | None = None) -> str:
    """Random ``<adjective>-<noun>`` name such as ``clever-otter``."""
    rng = rng or random.Random()
    return f"{rng.choice(ADJECTIVES)}-{rng.choice(NOUNS)}"


def sanitize_filename(value: str) -> str:
    """Replace characters that are unsafe in file names with ``-``."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("-", value).strip("-.")
    return cleaned or "unnamed"


def response_filename(response: LLMResponse) -> str:
    """
    ``<provider>-<modelId>.md``, prefixed with the group name for
    responses from a non-default group.
    """
    name = f"{sanitize_filename(response.provider)}-{sanitize_filename(response.model_id)}"
    group = response.group_info
    if group is not None and group.name != DEFAULT_GROUP_NAME:
        name = f"{sanitize_filename(group.name)}-{name}"
    return f"{name}.md"


def create_output_directory(base_dir: str | Path, run_name: str) -> Path:
    """
    Create ``<base_dir>/<run_name>``; a numeric suffix is added if the
    directory already exists.

    Raises:
        PermissionDeniedError: base directory not writable
        FileSystemError: any other OS failure
    """
    base = Path(base_dir)
    candidate = base / run_name
    n = 1
    while candidate.exists():
        n += 1
        candidate = base / f"{run_name}-{n}"
    try:
        candidate.mkdir(parents=True)
    except PermissionError as e:
        raise PermissionDeniedError(
            f"Permission denied creating output directory: {candidate}",
            cause=e,
            suggestions=[
                f"Check the write permissions of {base}",
                "Choose another location with --output-dir",
            ],
        ) from e
    except OSError as e:
        raise FileSystemError(
            f"Failed to create output directory: {candidate}",
            file_path=str(candidate),
            cause=e,
            suggestions=["Choose another location with --output-dir"],
        ) from e
    logger.debug("Output directory created", path=str(candidate))
    return candidate


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to a temporary file beside ``path`` then rename it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


@dataclass
class WriteResult:
    """Outcome of writing one run's files."""

    output_directory: Path
    written: list[Path] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def write_responses(
    responses: list[LLMResponse],
    output_directory: Path,
    include_metadata: bool = False,
    include_thinking: bool = False,
) -> WriteResult:
    """Write one markdown file per response into ``output_directory``."""
    result = WriteResult(output_directory=output_directory)
    used: set[str] = set()
    for response in responses:
        filename = response_filename(response)
        stem = filename[: -len(".md")]
        n = 1
        while filename in used:
            n += 1
            filename = f"{stem}-{n}.md"
        used.add(filename)

        content = _CONTROL_CHARS.sub(
            "",
            format_response_markdown(
                response,
                include_metadata=include_metadata,
                include_thinking=include_thinking,
            ),
        )
        path = output_directory / filename
        try:
            write_atomic(path, content)
        except OSError as e:
            logger.warning("Failed to write response file", path=str(path), error=str(e))
            result.errors[filename] = str(e)
            continue
        result.written.append(path)

    logger.debug(
        "Response files written",
        written=len(result.written),
        failed=len(result.errors),
        directory=str(output_directory),
    )
    return result
