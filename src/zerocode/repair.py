"""Repair orchestration: localize errors, sanitize excerpts, ask the model, re-validate."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, NamedTuple

from zerocode import config
from zerocode.codegen import generate_file_code, is_stub_content, stub_component_name
from zerocode.errors import ParseError, ProviderAuthError, ProviderError
from zerocode.generator import ModelProvider, parse_plan
from zerocode.localizer import annotate_with_error_markers, map_errors_to_files, merge_errors
from zerocode.models import (
    FileArtifact,
    FileCodeRequest,
    FileSet,
    GenerationSettings,
    RepairAttempt,
    RepairResult,
    RepairRoundResult,
    ValidationReport,
)
from zerocode.prompting import ROUTER_GLOBALS_COMMENT, build_repair_prompt
from zerocode.sanitizer import sanitize_for_sandbox_execution
from zerocode.syntax import TSX_FAMILY, TYPESCRIPT_FAMILY
from zerocode.validator import validate_file_set

logger = logging.getLogger(__name__)

EMPTY_REPAIR_ERROR = "Provider returned only empty or invalid files."


class _RoundOutcome(NamedTuple):
    result: RepairRoundResult
    file_set: FileSet | None = None
    report: ValidationReport | None = None


def _select_files(file_set: FileSet, mapped_paths: Sequence[str]) -> list[FileArtifact]:
    if mapped_paths:
        candidates = [artifact for path in mapped_paths if (artifact := file_set.get(path)) is not None]
    else:
        candidates = list(file_set.walk())

    selected: list[FileArtifact] = []
    for artifact in candidates:
        if not artifact.is_file or not isinstance(artifact.content, str) or not artifact.content.strip():
            logger.info("Skipping %s: no content to repair", artifact.path, extra={"path": artifact.path})
            continue
        selected.append(artifact)
    return selected


def _is_script(artifact: FileArtifact) -> bool:
    return artifact.language in TSX_FAMILY or artifact.language in TYPESCRIPT_FAMILY


def _excerpt(artifact: FileArtifact, content: str) -> str:
    if _is_script(artifact):
        body = sanitize_for_sandbox_execution(content, component_name=stub_component_name(artifact.path))
        return f"--- File: {artifact.path} ---\n{ROUTER_GLOBALS_COMMENT}\n{body}"
    return f"--- File: {artifact.path} ---\n{content}"


def _usable_files(structure: Any) -> list[FileArtifact]:
    if not isinstance(structure, dict) or not isinstance(structure.get("files"), list):
        return []
    usable: list[FileArtifact] = []
    for entry in structure["files"]:
        if not isinstance(entry, dict):
            continue
        path = entry.get("path") or entry.get("name")
        content = entry.get("content")
        if not isinstance(path, str) or not path.strip():
            continue
        if not isinstance(content, str) or not content.strip():
            logger.info("Discarding empty repair output for %s", path, extra={"path": path})
            continue
        usable.append(FileArtifact(path=path, type="file", content=content))
    return usable


def _run_round(
    provider: ModelProvider,
    working: FileSet,
    errors: list[str],
    settings: GenerationSettings,
    codegen_attempts: int,
    description: str,
) -> _RoundOutcome:
    mappings = map_errors_to_files(errors, working)
    selected = _select_files(working, list(mappings))
    marked = annotate_with_error_markers(working, mappings)

    regenerated: list[FileArtifact] = []
    excerpts: list[str] = []
    for artifact in selected:
        if is_stub_content(artifact.content):
            request = FileCodeRequest(
                description=description,
                file_path=artifact.path,
                file_info={"path": artifact.path, "language": artifact.language, "status": "stubbed"},
                error_context="\n".join(errors),
                framework=settings.framework,
                styling=settings.styling,
            )
            result = generate_file_code(provider, request, max_attempts=codegen_attempts)
            if not result.is_stub:
                regenerated.append(artifact.model_copy(update={"content": result.code}))
                excerpts.append(_excerpt(artifact, result.code))
                continue
        marked_artifact = marked.get(artifact.path) or artifact
        excerpts.append(_excerpt(artifact, marked_artifact.content or ""))

    if regenerated:
        working = working.with_files(regenerated)

    prompt = build_repair_prompt(settings.framework, errors, "\n\n".join(excerpts))
    try:
        structure = parse_plan(provider.generate(prompt, settings))
    except ProviderAuthError:
        raise
    except (ProviderError, ParseError) as exc:
        logger.warning("Repair request failed: %s", exc, extra={"reason": str(exc)})
        return _RoundOutcome(RepairRoundResult(success=False, error=str(exc)))

    usable = _usable_files(structure)
    if not usable:
        return _RoundOutcome(RepairRoundResult(success=False, error=EMPTY_REPAIR_ERROR))

    repaired = working.with_files(usable)
    report = validate_file_set(repaired, mode="flexible")
    result = RepairRoundResult(
        success=report.is_valid,
        changed_paths=[artifact.path for artifact in regenerated + usable],
        error=None if report.is_valid else "; ".join(report.errors),
        warnings=report.warnings,
    )
    return _RoundOutcome(result, repaired, report)


def repair_file_set(
    provider: ModelProvider,
    file_set: FileSet,
    errors: Sequence[str],
    settings: GenerationSettings | None = None,
    live_preview_error: str | None = None,
    iterative: bool = False,
    max_rounds: int = config.REPAIR_MAX_ROUNDS,
    codegen_attempts: int = config.CODEGEN_MAX_ATTEMPTS,
    description: str = "",
) -> RepairResult:
    """Repair a generated file set against reported runtime errors.

    Each round localizes the errors, sends marked and sandbox-sanitized excerpts of
    the implicated files (regenerating stubbed files first), merges the returned
    files by path, and validates the result in flexible mode. In iterative mode the
    validator's errors feed the next round until none remain, the output stops
    changing, or ``max_rounds`` is reached.

    Args:
        provider: Model backend for the repair and any file regeneration.
        file_set: The current generated files.
        errors: Error messages reported against the files.
        settings: Technology selectors; defaults when omitted.
        live_preview_error: Raw preview output; error-like lines are merged in.
        iterative: Keep repairing while validation errors remain.
        max_rounds: Round bound for iterative mode.
        codegen_attempts: Provider calls allowed per stub regeneration.
        description: Application description passed to file regeneration.

    Returns:
        The terminal result, with one audit entry per round.

    Raises:
        ProviderAuthError: If the provider rejects the credentials.
    """
    settings = settings or GenerationSettings()
    current_errors = merge_errors(errors, live_preview_error)
    rounds = max(1, max_rounds) if iterative else 1
    working = file_set
    previous_output = file_set
    audit_log: list[RepairAttempt] = []

    for attempt in range(1, rounds + 1):
        outcome = _run_round(provider, working, current_errors, settings, codegen_attempts, description)
        audit_log.append(RepairAttempt(attempt=attempt, errors=list(current_errors), result=outcome.result))
        logger.info(
            "Repair round %d/%d success=%s changed=%s",
            attempt, rounds, outcome.result.success, outcome.result.changed_paths,
            extra={
                "attempt": attempt,
                "success": outcome.result.success,
                "changed_paths": outcome.result.changed_paths,
            },
        )

        if outcome.file_set is None or outcome.report is None:
            return RepairResult(success=False, error=outcome.result.error, audit_log=audit_log)
        if outcome.report.is_valid:
            return RepairResult(success=True, file_set=outcome.file_set, audit_log=audit_log)
        if not iterative:
            return RepairResult(
                success=False,
                file_set=outcome.file_set,
                error=outcome.result.error,
                audit_log=audit_log,
            )
        if outcome.file_set == previous_output:
            logger.warning("Repair reached a fixed point with errors remaining", extra={"attempt": attempt})
            return RepairResult(
                success=False,
                file_set=outcome.file_set,
                error=f"Repair made no further progress: {outcome.result.error}",
                exhausted=True,
                audit_log=audit_log,
            )

        previous_output = outcome.file_set
        working = outcome.file_set
        current_errors = list(outcome.report.errors)

    return RepairResult(
        success=False,
        file_set=working,
        error=f"Repair attempts exhausted after {rounds} rounds: {audit_log[-1].result.error}",
        exhausted=True,
        audit_log=audit_log,
    )
