"""Initial application generation: plan prompt, parse, dependency defaults, strict validation."""

from __future__ import annotations

import logging
from typing import Any

from zerocode import config
from zerocode.cache import GenerationCache
from zerocode.errors import ParseError, StructuralValidationError
from zerocode.generator import ModelProvider, parse_plan
from zerocode.models import FileSet, Fingerprint, GenerationSettings
from zerocode.prompting import build_plan_prompt
from zerocode.validator import validate_structure

logger = logging.getLogger(__name__)


def supplement_dependencies(structure: dict[str, Any]) -> dict[str, Any]:
    """Fill the dependency maps the model commonly leaves out.

    Default runtime dependencies are merged in when ``react`` is missing, the
    default dev set is used when ``devDependencies`` is absent, and
    ``@types/react-dom`` is always present in the dev set.
    """
    structure = dict(structure)

    dependencies = structure.get("dependencies")
    if isinstance(dependencies, dict) and "react" not in dependencies:
        structure["dependencies"] = {**config.DEFAULT_DEPENDENCIES, **dependencies}
    elif dependencies is None:
        structure["dependencies"] = dict(config.DEFAULT_DEPENDENCIES)

    dev_dependencies = structure.get("devDependencies")
    if not isinstance(dev_dependencies, dict):
        dev_dependencies = dict(config.DEFAULT_DEV_DEPENDENCIES)
    else:
        dev_dependencies = dict(dev_dependencies)
    dev_dependencies.setdefault("@types/react-dom", config.DEFAULT_DEV_DEPENDENCIES["@types/react-dom"])
    structure["devDependencies"] = dev_dependencies
    return structure


def plan_initial_file_set(
    provider: ModelProvider,
    description: str,
    settings: GenerationSettings | None = None,
) -> FileSet:
    """Generate a complete application file set from a natural-language description.

    Raises:
        ValueError: If the description is blank.
        ParseError: If the model output is not a JSON object.
        StructuralValidationError: If the plan fails strict validation.
        ProviderError: Propagated from the provider call.
    """
    description = (description or "").strip()
    if not description:
        raise ValueError("Description must be a non-empty string.")
    settings = settings or GenerationSettings()

    raw = provider.generate(build_plan_prompt(description, settings), settings)
    structure = parse_plan(raw)
    if not isinstance(structure, dict):
        raise ParseError("Model output is not a JSON object", raw=raw)

    structure = supplement_dependencies(structure)
    report = validate_structure(structure, mode="strict")
    for warning in report.warnings:
        logger.info("Plan warning: %s", warning)
    if not report.is_valid:
        logger.warning("Plan failed validation with %d errors", len(report.errors), extra={"errors": report.errors})
        raise StructuralValidationError(report)

    file_set = FileSet.from_structure(structure)
    logger.info("Planned %d files", len(file_set.paths()), extra={"provider": provider.name})
    return file_set


def generate_app(
    provider: ModelProvider,
    description: str,
    settings: GenerationSettings | None = None,
    cache: GenerationCache | None = None,
) -> FileSet:
    """Cache-through wrapper over :func:`plan_initial_file_set`."""
    settings = settings or GenerationSettings()
    if cache is None:
        return plan_initial_file_set(provider, description, settings)

    fingerprint = Fingerprint.from_request((description or "").strip(), settings)
    return cache.get_or_create(fingerprint, lambda: plan_initial_file_set(provider, description, settings))
