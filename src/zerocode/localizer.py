"""Map runtime error text onto generated files and mark the offending lines."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from zerocode.models import ErrorMapping, FileArtifact, FileSet, normalize_path

logger = logging.getLogger(__name__)

ERROR_LINE_RE = re.compile(r"error|exception|at |failed|undefined|cannot|unexpected|syntax", re.IGNORECASE)
FILE_TOKEN_RE = re.compile(
    r"([\w./@-]+\.(?:tsx|ts|jsx|json|js|css|html))\b(?:\?[^:\s)]*)?(?::(\d+)(?::(\d+))?)?",
    re.IGNORECASE,
)
ENTRY_POINT_PATTERNS = (
    re.compile(r"^main\.(?:js|jsx|ts|tsx)$"),
    re.compile(r"^App\.(?:js|jsx|ts|tsx)$"),
)
MARKER_LABEL = "ERROR HERE:"


def extract_error_messages(error_output: str | None) -> list[str]:
    """Keep the lines of a preview/stack dump that look like error reports."""
    if not error_output:
        return []
    return [line.strip() for line in error_output.splitlines() if line.strip() and ERROR_LINE_RE.search(line)]


def merge_errors(errors: Iterable[str], live_preview_error: str | None = None) -> list[str]:
    """Concatenate explicit errors with preview lines, dropping repeats in order."""
    merged: list[str] = []
    seen: set[str] = set()
    for error in [*errors, *extract_error_messages(live_preview_error)]:
        text = str(error).strip()
        if text and text not in seen:
            seen.add(text)
            merged.append(text)
    return merged


def find_entry_point(files: Sequence[FileArtifact]) -> FileArtifact | None:
    for pattern in ENTRY_POINT_PATTERNS:
        for artifact in files:
            if artifact.is_file and pattern.match(artifact.name):
                return artifact
    return None


def _match_file(token: str, files: Sequence[FileArtifact]) -> FileArtifact | None:
    token = normalize_path(token)
    for artifact in files:
        if artifact.path == token or token.endswith(f"/{artifact.path}"):
            return artifact
    for artifact in files:
        if artifact.path.endswith(f"/{token}") or artifact.name == token:
            return artifact
    return None


def map_errors_to_files(errors: Iterable[str], file_set: FileSet) -> dict[str, ErrorMapping]:
    """Attach each error to the file it names, or to the entry point.

    An error naming a file that is not in the set is left out of localization;
    it still reaches the repair prompt through the flat error list.
    """
    files = list(file_set.iter_files())
    entry_point = find_entry_point(files)
    mapping: dict[str, ErrorMapping] = {}

    for error in errors:
        match = FILE_TOKEN_RE.search(error)
        line_no: int | None = None
        if match:
            target = _match_file(match.group(1), files)
            if target is None:
                logger.debug("Error names unknown file %s; not localized", match.group(1))
                continue
            if match.group(2):
                line_no = int(match.group(2))
        elif entry_point is not None:
            target = entry_point
        else:
            continue

        entry = mapping.setdefault(target.path, ErrorMapping(file_path=target.path))
        if line_no and line_no not in entry.error_lines:
            entry.error_lines.append(line_no)
        entry.error_snippets.append(error)

    return mapping


def _marker_for(language: str, message: str) -> str | None:
    if language == "json":
        return None
    if language == "css":
        return f"/* {MARKER_LABEL} {message.replace('*/', '* /')} */"
    if language in ("html", "svg"):
        return f"<!-- {MARKER_LABEL} {message.replace('-->', '-- >')} -->"
    return f"// {MARKER_LABEL} {message}"


def annotate_content(content: str, mapping: ErrorMapping, language: str) -> str:
    """Insert one marker comment above every mapped line of ``content``."""
    message = " | ".join(" ".join(snippet.split()) for snippet in mapping.error_snippets)
    marker = _marker_for(language, message)
    if marker is None or not mapping.error_lines:
        return content

    lines = content.split("\n")
    targets = {line_no for line_no in mapping.error_lines if 0 < line_no <= len(lines)}
    annotated: list[str] = []
    for index, line in enumerate(lines, start=1):
        if index in targets:
            indent = line[: len(line) - len(line.lstrip())]
            annotated.append(indent + marker)
        annotated.append(line)
    return "\n".join(annotated)


def annotate_with_error_markers(file_set: FileSet, mappings: dict[str, ErrorMapping]) -> FileSet:
    """Return a copy of ``file_set`` with error markers above the mapped lines."""
    replacements: list[FileArtifact] = []
    for path, mapping in mappings.items():
        artifact = file_set.get(path)
        if artifact is None or not isinstance(artifact.content, str) or not mapping.error_lines:
            continue
        annotated = annotate_content(artifact.content, mapping, artifact.language)
        if annotated != artifact.content:
            replacements.append(artifact.model_copy(update={"content": annotated}))
    return file_set.with_files(replacements) if replacements else file_set
