"""Error taxonomy for the generation, validation, and repair pipeline."""

from __future__ import annotations

from typing import Any


class ZerocodeError(RuntimeError):
    """Base class for every failure the pipeline surfaces to callers."""


class ProviderError(ZerocodeError):
    """Permanent model provider failure; not retried."""

    def __init__(self, message: str, provider: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderAuthError(ProviderError):
    """Missing or rejected credentials (401/403)."""


class ProviderTransientError(ProviderError):
    """Timeouts, rate limits, and server errors that outlived the retry bound."""

    def __init__(self, message: str, provider: str = "", status: int | None = None, attempts: int = 0):
        super().__init__(message, provider=provider, status=status)
        self.attempts = attempts


class ProviderEmptyResponseError(ProviderTransientError):
    """The model answered without any usable text."""


class ParseError(ZerocodeError):
    """Model output could not be parsed as a structured document."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class StructuralValidationError(ZerocodeError):
    """A generated plan failed strict structural validation."""

    def __init__(self, report: Any):
        self.report = report
        super().__init__("Generated structure validation failed: " + "; ".join(report.errors))


class SyntaxCheckFailure(ZerocodeError):
    """A single file's content did not parse or looks truncated."""

    def __init__(self, reason: str, path: str = ""):
        super().__init__(f"{path}: {reason}" if path else reason)
        self.reason = reason
        self.path = path


class RepairError(ZerocodeError):
    """The repair orchestrator could not produce a usable file set."""

    def __init__(self, message: str, audit_log: list[Any] | None = None):
        super().__init__(message)
        self.audit_log = list(audit_log or [])


class RepairExhaustedError(RepairError):
    """Iterative repair stopped at its round bound or a fixed point with errors left."""
