"""Pydantic models shared across generation, validation, repair, and caching layers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    computed_field,
    field_validator,
    model_validator,
)

from zerocode import config

logger = logging.getLogger(__name__)

LANGUAGE_BY_EXT = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".json": "json",
    ".css": "css",
    ".scss": "css",
    ".html": "html",
    ".md": "markdown",
    ".svg": "svg",
    ".yml": "yaml",
    ".yaml": "yaml",
}


def infer_language(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    return LANGUAGE_BY_EXT.get(suffix, "text")


def normalize_path(path: str) -> str:
    """Return ``path`` forward-slash separated, without a leading ``./`` or ``/``."""
    text = path.strip().replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text.lstrip("/")


class FileArtifact(BaseModel):
    """One generated file or folder, addressed by its project-relative path."""

    model_config = ConfigDict(frozen=True)

    path: str
    type: Literal["file", "folder"] = "file"
    content: str | None = None
    language: str = ""
    children: tuple[FileArtifact, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        path = normalize_path(str(data.get("path") or data.get("name") or ""))
        data["path"] = path
        data.pop("name", None)
        if data.get("type") == "folder":
            data["content"] = None
        if not data.get("language"):
            data["language"] = infer_language(path)
        return data

    @field_validator("path")
    @classmethod
    def _require_path(cls, value: str) -> str:
        if not value:
            raise ValueError("File artifact path must be non-empty")
        return value

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def is_file(self) -> bool:
        return self.type == "file"


class FileSet(BaseModel):
    """Ordered, immutable output of one generation or repair attempt."""

    model_config = ConfigDict(frozen=True)

    files: tuple[FileArtifact, ...] = ()
    dependencies: dict[str, str] | None = None
    dev_dependencies: dict[str, str] | None = None

    @model_validator(mode="after")
    def _check_unique_paths(self) -> FileSet:
        seen: set[str] = set()
        for artifact in self.walk():
            if artifact.path in seen:
                raise ValueError(f"Duplicate path in file set: {artifact.path}")
            seen.add(artifact.path)
        return self

    def walk(self) -> Iterator[FileArtifact]:
        """Yield every artifact depth-first, folders included."""
        stack = list(reversed(self.files))
        while stack:
            artifact = stack.pop()
            yield artifact
            stack.extend(reversed(artifact.children))

    def iter_files(self) -> Iterator[FileArtifact]:
        return (artifact for artifact in self.walk() if artifact.is_file)

    def paths(self) -> list[str]:
        return [artifact.path for artifact in self.walk()]

    def get(self, path: str) -> FileArtifact | None:
        wanted = normalize_path(path)
        for artifact in self.walk():
            if artifact.path == wanted:
                return artifact
        return None

    def with_files(self, replacements: Iterable[FileArtifact]) -> FileSet:
        """Return a copy with artifacts replaced by path; unknown paths are appended."""
        by_path = {artifact.path: artifact for artifact in replacements}

        def _replace(artifacts: tuple[FileArtifact, ...]) -> tuple[FileArtifact, ...]:
            merged: list[FileArtifact] = []
            for artifact in artifacts:
                if artifact.path in by_path:
                    merged.append(by_path.pop(artifact.path))
                elif artifact.children:
                    merged.append(artifact.model_copy(update={"children": _replace(artifact.children)}))
                else:
                    merged.append(artifact)
            return tuple(merged)

        files = _replace(self.files)
        return self.model_copy(update={"files": files + tuple(by_path.values())})

    def to_structure(self) -> dict[str, Any]:
        """Render the set in the raw plan shape consumed by the structural validator."""
        structure: dict[str, Any] = {
            "files": [
                {"path": artifact.path, "type": artifact.type, "content": artifact.content}
                for artifact in self.walk()
            ],
        }
        if self.dependencies is not None:
            structure["dependencies"] = dict(self.dependencies)
        if self.dev_dependencies is not None:
            structure["devDependencies"] = dict(self.dev_dependencies)
        return structure

    @classmethod
    def from_structure(cls, structure: dict[str, Any]) -> FileSet:
        """Build a file set from a parsed model plan.

        Entries without a usable path are skipped. When the model repeats a path, the
        last entry wins.
        """
        by_path: dict[str, FileArtifact] = {}
        for entry in structure.get("files") or []:
            if not isinstance(entry, dict) or not (entry.get("path") or entry.get("name")):
                logger.warning("Skipping malformed file entry", extra={"entry": repr(entry)[:200]})
                continue
            content = entry.get("content")
            artifact = FileArtifact(
                path=str(entry.get("path") or entry.get("name")),
                type="folder" if entry.get("type") == "folder" else "file",
                content=content if isinstance(content, str) else None,
            )
            if artifact.path in by_path:
                logger.warning("Duplicate path in model output, keeping last", extra={"path": artifact.path})
                del by_path[artifact.path]
            by_path[artifact.path] = artifact

        return cls(
            files=tuple(by_path.values()),
            dependencies=_string_map(structure.get("dependencies")),
            dev_dependencies=_string_map(structure.get("devDependencies")),
        )


def _string_map(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    return {str(key): str(version) for key, version in value.items()}


class ValidationReport(BaseModel):
    """Outcome of one structural validation pass."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not self.errors


class ErrorMapping(BaseModel):
    """Runtime errors localized to one file."""

    file_path: str
    error_lines: list[int] = Field(default_factory=list)
    error_snippets: list[str] = Field(default_factory=list)


class GenerationSettings(BaseModel):
    """Technology selectors sent with every generation request."""

    model_config = ConfigDict(populate_by_name=True)

    framework: str = config.DEFAULT_FRAMEWORK
    styling: str = config.DEFAULT_STYLING
    state_management: str = Field(
        config.DEFAULT_STATE_MANAGEMENT,
        validation_alias=AliasChoices("state_management", "stateManagement"),
    )
    build_tool: str = Field(
        config.DEFAULT_BUILD_TOOL,
        validation_alias=AliasChoices("build_tool", "buildTool"),
    )
    provider: Literal["gemini", "claude"] = Field(
        config.DEFAULT_PROVIDER,
        validation_alias=AliasChoices("provider", "aiProvider"),
    )

    @field_validator("framework", "styling", "state_management", "build_tool", "provider", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value


class Fingerprint(BaseModel):
    """Exact-match cache key for a generation request."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    framework: str
    styling: str
    state_management: str
    provider: str

    @classmethod
    def from_request(cls, prompt: str, settings: GenerationSettings) -> Fingerprint:
        return cls(
            prompt=prompt,
            framework=settings.framework,
            styling=settings.styling,
            state_management=settings.state_management,
            provider=settings.provider,
        )


class GenerationCacheEntry(BaseModel):
    """Cached generation result with access bookkeeping."""

    fingerprint: Fingerprint
    file_set: FileSet
    created_at: datetime
    last_accessed_at: datetime


class SyntaxCheckResult(BaseModel):
    ok: bool
    reason: str | None = None


class FileCodeRequest(BaseModel):
    """Inputs for regenerating a single file."""

    description: str = ""
    design_notes: str = ""
    file_path: str
    file_info: dict[str, Any] = Field(default_factory=dict)
    error_context: str = ""
    framework: str = config.DEFAULT_FRAMEWORK
    styling: str = config.DEFAULT_STYLING


class FileCodeResult(BaseModel):
    code: str
    is_stub: bool
    error_message: str | None = None


class RepairRoundResult(BaseModel):
    success: bool
    changed_paths: list[str] = Field(default_factory=list)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)


class RepairAttempt(BaseModel):
    """One audit log entry per repair round."""

    attempt: int
    errors: list[str]
    result: RepairRoundResult


class RepairResult(BaseModel):
    """Terminal outcome of the repair orchestrator."""

    success: bool
    file_set: FileSet | None = None
    error: str | None = None
    exhausted: bool = False
    audit_log: list[RepairAttempt] = Field(default_factory=list)

    def raise_for_failure(self) -> None:
        """Raise the matching repair error when the result is a failure."""
        from zerocode.errors import RepairError, RepairExhaustedError

        if self.success:
            return
        if self.exhausted:
            raise RepairExhaustedError(self.error or "Repair attempts exhausted", audit_log=self.audit_log)
        raise RepairError(self.error or "Repair failed", audit_log=self.audit_log)
