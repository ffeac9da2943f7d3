"""
Prompt and context-document input.

A prompt is either literal text or the path of a file holding it.
Context paths (files or directories, walked recursively) are read and
placed ahead of the prompt in a single markdown document. Directory
walks skip hidden entries and anything matched by ``.gitignore``; files
named explicitly are always read.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import pathspec

from llmfanout.utils.errors import (
    ConfigError,
    FanoutError,
    FileSystemError,
    PermissionDeniedError,
    file_not_found_error,
)
from llmfanout.utils.logging import get_logger

logger = get_logger(__name__)

MAX_CONTEXT_FILE_BYTES = 10 * 1024 * 1024
GITIGNORE_FILE = ".gitignore"
SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build"}

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".rb": "ruby",
    ".sh": "bash",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".html": "html",
    ".css": "css",
    ".sql": "sql",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
}


@dataclass
class ContextFile:
    """One context document; ``error`` is set instead of ``content`` when unreadable."""

    path: str
    content: str | None = None
    error: FanoutError | None = None


@dataclass
class InputResult:
    prompt: str
    combined_content: str
    source: str
    context_files: list[ContextFile] = field(default_factory=list)

    @property
    def context_errors(self) -> list[ContextFile]:
        return [f for f in self.context_files if f.error is not None]


def _read_text(path: Path) -> str:
    """Read a UTF-8 file, translating OS failures into classified errors."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise file_not_found_error(str(path), cause=e) from e
    except PermissionError as e:
        raise PermissionDeniedError(
            f"Permission denied to read file: {path}",
            cause=e,
            suggestions=[f"Check the read permissions of {path}"],
        ) from e
    except UnicodeDecodeError as e:
        raise FileSystemError(
            f"File is not valid UTF-8 text: {path}",
            file_path=str(path),
            cause=e,
        ) from e
    except OSError as e:
        raise FileSystemError(
            f"Error reading file: {path}",
            file_path=str(path),
            cause=e,
        ) from e


def read_prompt(value: str) -> tuple[str, str]:
    """
    Resolve the prompt argument.

    Returns ``(prompt_text, source)`` where source is the file path or
    ``"text"`` for a literal prompt.
    """
    path = Path(value)
    if path.is_file():
        text = _read_text(path)
        source = str(path)
    else:
        text = value
        source = "text"
    if not text.strip():
        raise ConfigError(
            "Prompt is empty",
            suggestions=["Pass the prompt text or a file that contains it"],
            examples=['llmfanout run "Explain asyncio in two sentences"'],
        )
    return text, source


def _is_binary(path: Path) -> bool:
    with open(path, "rb") as f:
        return b"\0" in f.read(8192)


def _read_context_file(path: Path) -> ContextFile:
    try:
        if path.stat().st_size > MAX_CONTEXT_FILE_BYTES:
            raise FileSystemError(
                f"Context file too large: {path}",
                file_path=str(path),
                suggestions=[f"Files over {MAX_CONTEXT_FILE_BYTES} bytes are skipped"],
            )
        if _is_binary(path):
            raise FileSystemError(f"Skipping binary file: {path}", file_path=str(path))
        return ContextFile(path=str(path), content=_read_text(path))
    except FanoutError as e:
        return ContextFile(path=str(path), error=e)
    except OSError as e:
        return ContextFile(
            path=str(path),
            error=FileSystemError(f"Error reading file: {path}", file_path=str(path), cause=e),
        )


class GitIgnoreRules:
    """
    ``.gitignore`` rules in effect below a directory.

    Rules come from the ``.gitignore`` files of the enclosing repository
    (up to the directory holding ``.git``) and from every directory visited
    by the walk. Deeper files override shallower ones, and within a file
    the last matching pattern wins, as in git.
    """

    def __init__(self):
        self._specs: list[tuple[Path, pathspec.GitIgnoreSpec]] = []

    @classmethod
    def for_directory(cls, directory: Path) -> GitIgnoreRules:
        rules = cls()
        for parent in reversed(_enclosing_dirs(directory.resolve())):
            rules.load(parent)
        return rules

    def load(self, directory: Path) -> None:
        """Add the rules of ``directory/.gitignore`` if the file exists."""
        path = directory / GITIGNORE_FILE
        if not path.is_file():
            return
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                spec = pathspec.GitIgnoreSpec.from_lines(f)
        except OSError as e:
            logger.warning("Could not read ignore file", path=str(path), error=str(e))
            return
        self._specs.append((directory.resolve(), spec))

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        resolved = path.resolve()
        ignored = False
        for base, spec in self._specs:
            try:
                relative = resolved.relative_to(base).as_posix()
            except ValueError:
                continue
            if is_dir:
                relative += "/"
            for pattern in spec.patterns:
                if pattern.include is not None and pattern.match_file(relative):
                    ignored = pattern.include
        return ignored


def _enclosing_dirs(directory: Path) -> list[Path]:
    """``directory`` and its parents up to the repository root, nearest first."""
    dirs = []
    for candidate in [directory, *directory.parents]:
        dirs.append(candidate)
        if (candidate / ".git").exists():
            return dirs
    # Outside a repository only the directory's own rules apply
    return [directory]


def _walk(directory: Path) -> list[Path]:
    rules = GitIgnoreRules.for_directory(directory)
    files: list[Path] = []
    for root, dirs, names in os.walk(directory):
        current = Path(root)
        if current != directory:
            rules.load(current)
        dirs[:] = sorted(
            d
            for d in dirs
            if d not in SKIPPED_DIRS
            and not d.startswith(".")
            and not rules.is_ignored(current / d, is_dir=True)
        )
        for name in sorted(names):
            path = current / name
            if name.startswith("."):
                continue
            if rules.is_ignored(path):
                logger.debug("Git-ignored file skipped", path=str(path))
                continue
            files.append(path)
    return files


def read_context_paths(paths: list[str]) -> list[ContextFile]:
    """
    Read every file named by ``paths``, descending into directories.

    Unreadable entries are returned with ``error`` set rather than raised,
    so one bad path does not stop the run.
    """
    results: list[ContextFile] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            results.extend(_read_context_file(p) for p in _walk(path))
        elif path.exists():
            results.append(_read_context_file(path))
        else:
            results.append(ContextFile(path=raw, error=file_not_found_error(raw)))

    for item in results:
        if item.error is not None:
            logger.warning("Context file skipped", path=item.path, error=item.error.message)
    return results


def format_combined_input(prompt: str, context_files: list[ContextFile]) -> str:
    """
    Markdown document with the readable context files followed by the prompt.

    Returns the prompt unchanged when no context file is readable.
    """
    readable = [f for f in context_files if f.error is None and f.content is not None]
    if not readable:
        return prompt

    parts = ["# CONTEXT DOCUMENTS", ""]
    for item in readable:
        language = LANGUAGE_BY_SUFFIX.get(Path(item.path).suffix.lower(), "")
        parts.append(f"## File: {os.path.normpath(item.path)}")
        parts.append(f"```{language}")
        parts.append(item.content.rstrip("\n"))
        parts.append("```")
        parts.append("")
    parts.append("# USER PROMPT")
    parts.append("")
    parts.append(prompt)
    return "\n".join(parts)


def process_input(prompt: str, context_paths: list[str] | None = None) -> InputResult:
    """Read the prompt and context documents and combine them."""
    text, source = read_prompt(prompt)
    context_files = read_context_paths(context_paths) if context_paths else []
    combined = format_combined_input(text, context_files)
    logger.debug(
        "Input processed",
        source=source,
        prompt_chars=len(text),
        context_files=len(context_files),
        combined_chars=len(combined),
    )
    return InputResult(
        prompt=text,
        combined_content=combined,
        source=source,
        context_files=context_files,
    )
