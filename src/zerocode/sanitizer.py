"""Turn module-style TSX into code a script-tag preview sandbox can run.

The sandbox evaluates every file as a plain script: there is no module system and
no TypeScript compiler. The transforms below are ordered regex passes, with small
bracket scanners where a regex cannot see nesting. They are lossy on purpose:
types and module boundaries are dropped, runtime behaviour is kept.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator

from zerocode import config

logger = logging.getLogger(__name__)

GLOBAL = config.SANDBOX_GLOBAL
QUOTES = "'\"`"
CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "with", "return", "typeof", "await", "new"})

IMPORT_FROM_RE = re.compile(
    r"""^[ \t]*import\s+(?:type\s+)?[\w$*{}\s,]+?\s+from\s*['"][^'"\n]+['"][ \t]*;?[ \t]*$\n?""",
    re.MULTILINE,
)
IMPORT_SIDE_EFFECT_RE = re.compile(r"""^[ \t]*import\s*['"][^'"\n]+['"][ \t]*;?[ \t]*$\n?""", re.MULTILINE)

EXPORT_DEFAULT_IDENT_RE = re.compile(r"^([ \t]*)export\s+default\s+([A-Za-z_$][\w$]*)[ \t]*;?[ \t]*$", re.MULTILINE)
EXPORT_DEFAULT_DECL_RE = re.compile(
    r"^([ \t]*)export\s+default\s+((?:async\s+)?(?:function\s*\*?|class))\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)
EXPORT_DEFAULT_EXPR_RE = re.compile(r"^([ \t]*)export\s+default\s+", re.MULTILINE)
EXPORT_LIST_RE = re.compile(
    r"""^[ \t]*export\s*(?:type\s*)?(?:\{[^}]*\}|\*(?:\s+as\s+[\w$]+)?)(?:\s*from\s*['"][^'"\n]+['"])?[ \t]*;?[ \t]*$\n?""",
    re.MULTILINE,
)
EXPORT_KEYWORD_RE = re.compile(
    r"\bexport\s+(?=(?:const|let|var|function|class|async|interface|type|enum|abstract|declare)\b)"
)

INTERFACE_HEAD_RE = re.compile(
    r"^[ \t]*(?:declare\s+)?interface\s+[\w$]+[^{\n]*(?:\n[^{\n]*)?\{",
    re.MULTILINE,
)
TYPE_ALIAS_HEAD_RE = re.compile(r"^[ \t]*(?:declare\s+)?type\s+[\w$]+\s*(?:<[^=\n]*?>)?\s*=", re.MULTILINE)
DECLARE_LINE_RE = re.compile(r"^[ \t]*declare\s+(?:const|let|var|function|global|module)\b[^\n]*$\n?", re.MULTILINE)

FC_ANNOTATION_RE = re.compile(
    r":\s*(?:React\.)?(?:FC|FunctionComponent|VFC|VoidFunctionComponent)\b(?:\s*<[^=]*?>)?(?=\s*=)"
)

_TYPE_ATOM = r"(?:[A-Za-z_$][\w$.]*(?:<[^;{}()]*?>)?(?:\[\])*|'[^'\n]*'|\"[^\"\n]*\")"
TYPE_EXPR = rf"{_TYPE_ATOM}(?:\s*[|&]\s*{_TYPE_ATOM})*"
ARROW_TAIL_RE = re.compile(rf"(\s*:\s*{TYPE_EXPR})?(\s*=>)")
BODY_TAIL_RE = re.compile(rf"(\s*:\s*{TYPE_EXPR})?(\s*\{{)")
FUNCTION_HEAD_RE = re.compile(r"\bfunction\b\s*\*?\s*[\w$]*\s*$")
METHOD_HEAD_RE = re.compile(r"(?:^|[\s;{},])(?:async\s+)?([A-Za-z_$][\w$]*)\s*$")
PARAM_MODIFIER_RE = re.compile(r"^(\s*)(?:(?:public|private|protected|readonly)\s+)+")

FUNCTION_GENERIC_RE = re.compile(r"(\bfunction\s*\*?\s*[\w$]*)\s*<[^<>()]*(?:<[^<>()]*>[^<>()]*)*>(?=\s*\()")
ARROW_GENERIC_RE = re.compile(
    r"(=\s*(?:async\s+)?)<[A-Z][\w$]*(?:\s+extends\s+[^<>=()]+(?:<[^<>]*>)?)?(?:\s*,\s*[A-Z][\w$]*)*\s*,?\s*>(?=\s*\()"
)
CALL_GENERIC_RE = re.compile(r"\b([A-Za-z_$][\w$]*)<(?:[^<>()=;{}]|<[^<>()=;{}]*>)*>(?=\()")
VARIABLE_ANNOTATION_RE = re.compile(
    r"\b(const|let|var)(\s+)([A-Za-z_$][\w$]*|\{[^{}=]*\}|\[[^\[\]=]*\])\s*:\s*[^=;\n]+?\s*(?==(?!>)|;|\n)"
)
AS_ASSERTION_RE = re.compile(
    r"(?<=[\w$)\]}'\"`])\s+as\s+(?:const|string|number|boolean|any|unknown|never|object|"
    r"[A-Z][\w$.]*(?:<(?![/\s>])[^<>;\n]*>)?)(?:\[\])*(?=\s*[;,)\]}])"
)
JSX_TAG_END_RE = re.compile(r"(?<![=\-])>(?!=)")
NON_NULL_RE = re.compile(r"(?<=[\w$)\]])!(?=[.\[)\];,])")
DOTTED_DECLARATION_RE = re.compile(r"\b(const|let|var)\s+([A-Za-z0-9_]+)\.([A-Za-z0-9_]+)\s*=")

CONTAINER_OPEN_RE = re.compile(r"<(Routes|Switch)(?:\s[^<>]*)?>")
RETURN_PAREN_RE = re.compile(r"\breturn\s*\(")
FRAGMENT_PREFIXES = ("<>", "<React.Fragment", "<Fragment")


def _skip_string(text: str, index: int) -> int:
    """Return the index just past the string literal opening at ``index``."""
    quote = text[index]
    i = index + 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == quote:
            return i + 1
        if text[i] == "\n" and quote != "`":
            return i
        i += 1
    return len(text)


def _find_close(text: str, open_index: int, quotes: str = QUOTES) -> int | None:
    """Index of the bracket closing the one at ``open_index``, or ``None``."""
    opener = text[open_index]
    closer = {"(": ")", "{": "}", "[": "]"}[opener]
    depth = 0
    i = open_index
    while i < len(text):
        ch = text[i]
        if ch in quotes:
            i = _skip_string(text, i)
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def strip_imports(text: str) -> str:
    text = IMPORT_FROM_RE.sub("", text)
    return IMPORT_SIDE_EFFECT_RE.sub("", text)


def rewrite_exports(text: str, component_name: str | None = None) -> str:
    """Replace module exports with registrations on the sandbox global."""
    registrations: list[str] = []

    def _declaration(match: re.Match[str]) -> str:
        registrations.append(match.group(3))
        return f"{match.group(1)}{match.group(2)} {match.group(3)}"

    text = EXPORT_DEFAULT_IDENT_RE.sub(rf"\1{GLOBAL}.\2 = \2;", text)
    text = EXPORT_DEFAULT_DECL_RE.sub(_declaration, text)
    text = EXPORT_DEFAULT_EXPR_RE.sub(rf"\g<1>{GLOBAL}.{component_name or '__default'} = ", text)
    text = EXPORT_LIST_RE.sub("", text)
    text = EXPORT_KEYWORD_RE.sub("", text)

    for name in registrations:
        text = f"{text.rstrip()}\n{GLOBAL}.{name} = {name};\n"
    return text


def _type_alias_end(text: str, start: int) -> int:
    """End index of a type alias body starting at ``start`` (just after ``=``)."""
    depth = 0
    i = start
    seen_body = False
    while i < len(text):
        ch = text[i]
        if ch in QUOTES:
            i = _skip_string(text, i)
            seen_body = True
            continue
        if ch in "({[<":
            depth += 1
        elif ch in ")}]" or (ch == ">" and text[i - 1] != "="):
            depth -= 1
        elif ch == ";" and depth <= 0:
            return i + 1
        elif ch == "\n" and depth <= 0 and seen_body:
            rest = text[i + 1 :].lstrip(" \t")
            if not rest.startswith(("|", "&")):
                return i
        if not ch.isspace():
            seen_body = True
        i += 1
    return len(text)


def strip_type_declarations(text: str) -> str:
    """Remove ``interface`` blocks, ``type`` aliases, and ``declare`` lines."""
    while True:
        match = INTERFACE_HEAD_RE.search(text)
        if not match:
            break
        close = _find_close(text, match.end() - 1)
        end = len(text) if close is None else close + 1
        if text[end : end + 1] == ";":
            end += 1
        text = text[: match.start()] + text[end:]

    while True:
        match = TYPE_ALIAS_HEAD_RE.search(text)
        if not match:
            break
        end = _type_alias_end(text, match.end())
        text = text[: match.start()] + text[end:]

    return DECLARE_LINE_RE.sub("", text)


def _split_top_level(params: str) -> Iterator[str]:
    """Split a parameter list on depth-0 commas, keeping the commas."""
    depth = 0
    start = 0
    i = 0
    while i < len(params):
        ch = params[i]
        if ch in QUOTES:
            i = _skip_string(params, i)
            continue
        if ch in "([{<":
            depth += 1
        elif ch in ")]}" or (ch == ">" and params[i - 1 : i] != "="):
            depth -= 1
        elif ch == "," and depth == 0:
            yield params[start : i + 1]
            start = i + 1
        i += 1
    yield params[start:]


def _strip_param_type(param: str) -> str:
    param = PARAM_MODIFIER_RE.sub(r"\1", param)
    body = param.rstrip(", \t\n")
    trailer = param[len(body) :]

    depth = 0
    colon: int | None = None
    i = 0
    while i < len(body):
        ch = body[i]
        if ch in QUOTES:
            i = _skip_string(body, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "<" and colon is not None:
            depth += 1
        elif ch == ">" and colon is not None and body[i - 1] != "=":
            depth -= 1
        elif ch == "=" and depth == 0 and body[i + 1 : i + 2] != ">":
            if colon is None:
                return param
            head = body[:colon].rstrip().removesuffix("?").rstrip()
            return f"{head} {body[i:]}{trailer}"
        elif ch == ":" and depth == 0 and colon is None:
            colon = i
        i += 1

    if colon is None:
        stripped = body.rstrip()
        if stripped.endswith("?"):
            return stripped[:-1] + body[len(stripped) :] + trailer
        return param
    head = body[:colon].rstrip().removesuffix("?").rstrip()
    return head + trailer


def _clean_params(params: str) -> str:
    return "".join(_strip_param_type(piece) for piece in _split_top_level(params))


def _is_signature(text: str, open_index: int, close_index: int) -> re.Match[str] | None:
    """Match the tail after a parameter list when ``(`` starts a function signature."""
    arrow = ARROW_TAIL_RE.match(text, close_index + 1)
    if arrow:
        return arrow
    before = text[max(0, open_index - 120) : open_index]
    body = BODY_TAIL_RE.match(text, close_index + 1)
    if body is None:
        return None
    if FUNCTION_HEAD_RE.search(before):
        return body
    method = METHOD_HEAD_RE.search(before)
    if method and method.group(1) not in CONTROL_KEYWORDS and method.group(1) != "function":
        return body
    return None


def strip_signature_types(text: str) -> str:
    """Drop parameter and return type annotations from functions and arrows."""
    edits: list[tuple[int, int, str]] = []
    covered_until = -1
    for match in re.finditer(r"\(", text):
        open_index = match.start()
        if open_index <= covered_until:
            continue
        close_index = _find_close(text, open_index)
        if close_index is None:
            continue
        tail = _is_signature(text, open_index, close_index)
        if tail is None:
            continue
        params = text[open_index + 1 : close_index]
        cleaned = _clean_params(params)
        tail_end = tail.start(2) if tail.group(1) else close_index + 1
        edits.append((open_index + 1, tail_end, f"{cleaned})"))
        covered_until = close_index

    for start, end, replacement in reversed(edits):
        text = text[:start] + replacement + text[end:]
    return text


def _in_jsx_text(text: str, index: int) -> bool:
    """Tell whether ``index`` sits in JSX child text rather than in an expression."""
    line = text[text.rfind("\n", 0, index) + 1 : index]
    tag_ends = list(JSX_TAG_END_RE.finditer(line))
    if not tag_ends or "<" not in line[: tag_ends[-1].start()]:
        return False
    tail = line[tag_ends[-1].end() :]
    return tail.count("{") <= tail.count("}")


def strip_type_assertions(text: str) -> str:
    return AS_ASSERTION_RE.sub(lambda m: m.group(0) if _in_jsx_text(text, m.start()) else "", text)


def strip_type_syntax(text: str) -> str:
    """Remove annotations, generics, assertions, and typed-children patterns."""
    text = FC_ANNOTATION_RE.sub("", text)
    text = FUNCTION_GENERIC_RE.sub(r"\1", text)
    text = ARROW_GENERIC_RE.sub(r"\1", text)
    text = strip_signature_types(text)
    text = VARIABLE_ANNOTATION_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{m.group(3)} ", text)
    text = CALL_GENERIC_RE.sub(r"\1", text)
    text = strip_type_assertions(text)
    text = NON_NULL_RE.sub("", text)
    return DOTTED_DECLARATION_RE.sub(r"\1 \2_\3 =", text)


def _scan_tag_end(jsx: str, start: int) -> tuple[int, bool]:
    """Return the index of the ``>`` ending the tag at ``start`` and whether it self-closes."""
    i = start + 1
    while i < len(jsx):
        ch = jsx[i]
        if ch in "\"'":
            i = _skip_string(jsx, i)
            continue
        if ch == "{":
            close = _find_close(jsx, i, quotes="\"`")
            i = len(jsx) if close is None else close + 1
            continue
        if ch == ">":
            return i, jsx[start + 1 : i].rstrip().endswith("/")
        i += 1
    return len(jsx) - 1, True


def count_top_level_elements(jsx: str) -> int:
    """Count sibling JSX elements at nesting depth zero."""
    depth = 0
    count = 0
    i = 0
    while i < len(jsx):
        ch = jsx[i]
        if ch == "{":
            close = _find_close(jsx, i, quotes="\"`")
            i = len(jsx) if close is None else close + 1
            continue
        if ch == "<":
            if jsx.startswith("</", i):
                depth -= 1
                end = jsx.find(">", i)
                i = len(jsx) if end == -1 else end + 1
                continue
            nxt = jsx[i + 1 : i + 2]
            if nxt == ">" or nxt.isalpha():
                end, self_closing = _scan_tag_end(jsx, i)
                if depth == 0:
                    count += 1
                if not self_closing:
                    depth += 1
                i = end + 1
                continue
        i += 1
    return count


def _needs_fragment(inner: str) -> bool:
    stripped = inner.strip()
    if not stripped.startswith("<") or stripped.startswith(FRAGMENT_PREFIXES):
        return False
    return count_top_level_elements(stripped) > 1


def wrap_adjacent_jsx(text: str) -> str:
    """Wrap adjacent top-level JSX siblings in a fragment.

    Applies to ``return ( ... )`` blocks and to the children of routing
    containers, where the sandbox's JSX transform rejects sibling roots.
    """
    for match in reversed(list(CONTAINER_OPEN_RE.finditer(text))):
        close_tag = f"</{match.group(1)}>"
        close_index = text.find(close_tag, match.end())
        if close_index == -1:
            continue
        inner = text[match.end() : close_index]
        if _needs_fragment(inner):
            text = f"{text[: match.end()]}\n<>{inner}</>\n{text[close_index:]}"

    for match in reversed(list(RETURN_PAREN_RE.finditer(text))):
        open_index = match.end() - 1
        close_index = _find_close(text, open_index, quotes="")
        if close_index is None:
            continue
        inner = text[open_index + 1 : close_index]
        if _needs_fragment(inner):
            text = f"{text[: open_index + 1]}<>{inner}</>{text[close_index:]}"
    return text


def sanitize_for_sandbox_execution(content: object, component_name: str | None = None) -> str:
    """Make a generated module directly executable as a sandbox script.

    Args:
        content: File content; anything but a string yields ``""``.
        component_name: Name to register an anonymous default export under.

    Returns:
        The transformed source.
    """
    if not isinstance(content, str):
        logger.warning("Skipping non-string content: %r", type(content).__name__)
        return ""

    text = strip_imports(content)
    text = rewrite_exports(text, component_name=component_name)
    text = strip_type_declarations(text)
    text = strip_type_syntax(text)
    text = wrap_adjacent_jsx(text)
    text = re.sub(r"\n[ \t]*\n(?:[ \t]*\n)+", "\n\n", text)
    return text.strip()
