"""Parse generated files and flag output that looks truncated."""

from __future__ import annotations

import json
import re
from functools import lru_cache

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from zerocode.errors import SyntaxCheckFailure
from zerocode.models import FileArtifact, SyntaxCheckResult

TSX_FAMILY = frozenset({"tsx", "jsx", "javascript", "js"})
TYPESCRIPT_FAMILY = frozenset({"typescript", "ts"})
MARKUP_FAMILY = frozenset({"css", "html"})

TRUNCATION_REASON = "Code appears truncated or incomplete."
DANGLING_TAG_RE = re.compile(r"<[A-Za-z][\w.:-]*(?:\s[^>]*)?$")


@lru_cache(maxsize=None)
def _parser(grammar: str) -> Parser:
    if grammar == "typescript":
        language = Language(tree_sitter_typescript.language_typescript())
    else:
        language = Language(tree_sitter_typescript.language_tsx())
    return Parser(language)


def _first_error(node: Node) -> Node | None:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def _describe_error(node: Node) -> str:
    row, column = node.start_point[0] + 1, node.start_point[1] + 1
    if node.is_missing:
        return f"Syntax error: missing {node.type!r} at line {row}, column {column}"
    snippet = (node.text or b"").decode("utf-8", errors="replace").strip().splitlines()
    near = snippet[0][:40] if snippet else ""
    return f"Syntax error: unexpected {near!r} at line {row}, column {column}"


def _looks_truncated(content: str) -> bool:
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    if not lines:
        return True
    last = lines[-1]
    return last.endswith(("<", "{", "(")) or DANGLING_TAG_RE.search(last) is not None


def check(content: str, language: str) -> SyntaxCheckResult:
    """Check that ``content`` is complete, parseable source for ``language``.

    Script languages go through the tree-sitter TSX or TypeScript grammar, JSON
    through ``json.loads``. Code, CSS, and HTML also pass a truncation heuristic
    on the last non-blank line, since model output cut at a token limit often
    parses cleanly up to the cut.
    """
    if not isinstance(content, str) or not content.strip():
        return SyntaxCheckResult(ok=False, reason="File content is empty.")

    family = (language or "").strip().lower()

    if family in TSX_FAMILY or family in TYPESCRIPT_FAMILY:
        grammar = "typescript" if family in TYPESCRIPT_FAMILY else "tsx"
        tree = _parser(grammar).parse(content.encode("utf-8"))
        if tree.root_node.has_error:
            error_node = _first_error(tree.root_node) or tree.root_node
            return SyntaxCheckResult(ok=False, reason=_describe_error(error_node))
    elif family == "json":
        try:
            json.loads(content)
        except json.JSONDecodeError as exc:
            return SyntaxCheckResult(
                ok=False,
                reason=f"Invalid JSON: {exc.msg} at line {exc.lineno}, column {exc.colno}",
            )
        return SyntaxCheckResult(ok=True)
    elif family not in MARKUP_FAMILY:
        return SyntaxCheckResult(ok=True)

    if _looks_truncated(content):
        return SyntaxCheckResult(ok=False, reason=TRUNCATION_REASON)
    return SyntaxCheckResult(ok=True)


def check_artifact(artifact: FileArtifact) -> SyntaxCheckResult:
    return check(artifact.content or "", artifact.language)


def ensure_valid(content: str, language: str, path: str = "") -> str:
    """Return ``content`` unchanged, or raise ``SyntaxCheckFailure``."""
    result = check(content, language)
    if not result.ok:
        raise SyntaxCheckFailure(result.reason or "invalid syntax", path=path)
    return content
