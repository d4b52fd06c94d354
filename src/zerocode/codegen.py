"""Single-file generation with syntax-checked retries and a stub fallback."""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

from zerocode import config
from zerocode.errors import ProviderAuthError, ProviderError, SyntaxCheckFailure
from zerocode.generator import ModelProvider, strip_code_fence
from zerocode.models import FileCodeRequest, FileCodeResult, infer_language
from zerocode.prompting import build_file_prompt
from zerocode.syntax import TSX_FAMILY, TYPESCRIPT_FAMILY, ensure_valid

logger = logging.getLogger(__name__)

NON_SCRIPT_STUBS = {
    "css": "/* stub */",
    "html": "<!-- stub -->",
    "markdown": "<!-- stub -->",
    "svg": '<svg xmlns="http://www.w3.org/2000/svg"/>',
    "yaml": "# stub",
}
STUB_RE = re.compile(
    rf"^const ([A-Za-z_$][\w$]*) = \(\) => null; {re.escape(config.SANDBOX_GLOBAL)}\.\1 = \1;$"
)


def stub_component_name(path: str) -> str:
    """Turn a file's base name into a valid JavaScript identifier."""
    name = re.sub(r"[^\w$]", "_", PurePosixPath(path).stem)
    if not name or name[0].isdigit():
        name = f"_{name}"
    return name


def build_stub(path: str) -> str:
    """Return the minimal syntactically valid stand-in for ``path``."""
    language = infer_language(path)
    if language in TSX_FAMILY or language in TYPESCRIPT_FAMILY:
        name = stub_component_name(path)
        return f"const {name} = () => null; {config.SANDBOX_GLOBAL}.{name} = {name};"
    if language == "json":
        return "{}"
    return NON_SCRIPT_STUBS.get(language, "stub")


def is_stub_content(content: object) -> bool:
    if not isinstance(content, str):
        return False
    text = content.strip()
    return STUB_RE.match(text) is not None or text in NON_SCRIPT_STUBS.values()


def generate_file_code(
    provider: ModelProvider,
    request: FileCodeRequest,
    max_attempts: int = config.CODEGEN_MAX_ATTEMPTS,
) -> FileCodeResult:
    """Generate one file's code, falling back to a stub when the model cannot comply.

    Each attempt's output is syntax-checked; from the second attempt on, the
    caller's error context and the previous rejection reason are appended to the
    prompt. The function is total: credentials errors propagate, every other
    failure ends in a stub after at most ``max_attempts`` provider calls.

    Args:
        provider: Model backend used for ``generate_file`` calls.
        request: Target path, role metadata, and application context.
        max_attempts: Provider calls allowed before stubbing.

    Returns:
        Real code with ``is_stub=False``, or the stub with the last failure reason.
    """
    language = infer_language(request.file_path)
    last_error = ""

    for attempt in range(1, max(1, max_attempts) + 1):
        prior_errors = [request.error_context, last_error] if attempt > 1 else []
        prompt = build_file_prompt(request, prior_errors=prior_errors)
        try:
            code = strip_code_fence(provider.generate_file(prompt))
            ensure_valid(code, language, path=request.file_path)
        except ProviderAuthError:
            raise
        except SyntaxCheckFailure as exc:
            last_error = exc.reason
        except ProviderError as exc:
            last_error = str(exc)
        else:
            logger.debug("Generated %s on attempt %d", request.file_path, attempt)
            return FileCodeResult(code=code, is_stub=False)

        logger.info(
            "Rejected output for %s on attempt %d/%d: %s",
            request.file_path, attempt, max_attempts, last_error,
            extra={"path": request.file_path, "attempt": attempt, "reason": last_error},
        )

    logger.warning(
        "Invalid or incomplete code for %s after retries, using stub: %s",
        request.file_path, last_error,
        extra={"path": request.file_path, "reason": last_error},
    )
    return FileCodeResult(code=build_stub(request.file_path), is_stub=True, error_message=last_error)
