"""Structural checks for generated plans: manifests, dependencies, and content rules.

Two modes share one rule set. ``strict`` is used on first-pass generations and
treats every finding as an error. ``flexible`` is used on repair output and keeps
only the findings that make a file set unusable (no files, a file without a path,
no dependency map) as errors; everything else becomes a warning.
"""

from __future__ import annotations

import re
from typing import Any, Literal

from zerocode import config
from zerocode.models import FileSet, ValidationReport, normalize_path

ValidationMode = Literal["strict", "flexible"]

# Attribute-style uses of "placeholder" are legitimate UI text, not unfinished work.
ALLOWED_CONTEXT_RE = re.compile(
    r"""\bplaceholder\s*[=:]\s*(?:"[^"\n]*"|'[^'\n]*'|`[^`]*`|\{[^}\n]*\})""",
    re.IGNORECASE,
)
CHILDREN_RE = re.compile(r"\bchildren\b")
TYPED_CHILDREN_RE = re.compile(r"\bchildren\??\s*:|\bPropsWithChildren\b")
EXPORT_RE = re.compile(r"\bexport\s+(?:default\b|const\b|function\b)")


class _Findings:
    def __init__(self, strict: bool):
        self.strict = strict
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def advisory(self, message: str) -> None:
        """Record a finding that only blocks success in strict mode."""
        if self.strict:
            self.errors.append(message)
        else:
            self.warnings.append(message)

    def report(self) -> ValidationReport:
        return ValidationReport(errors=self.errors, warnings=self.warnings)


def validate_structure(structure: Any, mode: ValidationMode = "strict") -> ValidationReport:
    """Validate a parsed plan ``{files, dependencies, devDependencies}``.

    Args:
        structure: Decoded model output, or ``FileSet.to_structure()``.
        mode: ``strict`` for initial generation, ``flexible`` for repair output.

    Returns:
        A fresh report; ``is_valid`` is true iff no errors were recorded.
    """
    if mode not in ("strict", "flexible"):
        raise ValueError(f"Unknown validation mode: {mode!r}")
    findings = _Findings(strict=mode == "strict")

    if not isinstance(structure, dict):
        findings.error("Invalid structure: not an object")
        return findings.report()

    files = structure.get("files")
    if not isinstance(files, list):
        findings.error("Invalid files: not an array")
        return findings.report()
    if not files:
        findings.error("No files generated")
        return findings.report()

    paths = _check_file_entries(files, findings)

    for required in config.REQUIRED_FILES:
        if required not in paths:
            findings.advisory(f"Missing required file: {required}")

    _check_dependencies(structure, findings)
    return findings.report()


def validate_file_set(file_set: FileSet, mode: ValidationMode = "strict") -> ValidationReport:
    return validate_structure(file_set.to_structure(), mode=mode)


def _check_file_entries(files: list[Any], findings: _Findings) -> set[str]:
    paths: set[str] = set()

    for entry in files:
        if not isinstance(entry, dict):
            findings.error(f"Invalid file entry: not an object ({str(entry)[:80]})")
            continue

        path = entry.get("path") or entry.get("name")
        if not isinstance(path, str) or not path.strip():
            findings.error("File missing path property")
            continue
        path = normalize_path(path)
        paths.add(path)

        file_type = entry.get("type")
        if not file_type:
            findings.advisory(f"Invalid file structure: {path} is missing a type")
        elif file_type not in ("file", "folder"):
            findings.warning(f"Unusual file type: {file_type} for {path}")
        if file_type == "folder":
            continue

        content = entry.get("content")
        if not isinstance(content, str) or not content.strip():
            findings.advisory(f"Invalid file structure: {path} has no content")
            continue

        _check_content(path, content, findings)

    return paths


def _check_content(path: str, content: str, findings: _Findings) -> None:
    scanned = ALLOWED_CONTEXT_RE.sub(lambda match: " " * len(match.group(0)), content)
    for marker in config.FORBIDDEN_CONTENT:
        if marker in scanned:
            findings.advisory(f"File {path} contains forbidden content: {marker}")

    if not path.endswith(".tsx"):
        return

    if CHILDREN_RE.search(content) and not TYPED_CHILDREN_RE.search(content):
        findings.advisory(f"React component {path} uses children but missing proper TypeScript props interface")

    # Sandbox-sanitized repair output has no exports, so this only applies to first-pass output.
    if findings.strict and "/components/" in f"/{path}" and not EXPORT_RE.search(content):
        findings.error(f"React component {path} missing export")


def _check_dependencies(structure: dict[str, Any], findings: _Findings) -> None:
    dependencies = structure.get("dependencies")
    if not isinstance(dependencies, dict):
        findings.error("Invalid dependencies: not an object")
    else:
        for name in config.REQUIRED_DEPENDENCIES:
            if not dependencies.get(name):
                findings.advisory(f"Missing required dependency: {name}")

    dev_dependencies = structure.get("devDependencies")
    if not isinstance(dev_dependencies, dict):
        findings.warning("Missing devDependencies object")
        return
    for name in config.REQUIRED_DEV_DEPENDENCIES:
        if not dev_dependencies.get(name):
            findings.warning(f"Missing recommended dev dependency: {name}")
