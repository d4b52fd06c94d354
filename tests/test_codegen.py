from __future__ import annotations

import pytest

from zerocode.codegen import build_stub, generate_file_code, is_stub_content, stub_component_name
from zerocode.errors import ProviderAuthError, ProviderError
from zerocode.models import FileCodeRequest, infer_language
from zerocode.syntax import check


def _request(path: str = "src/components/TodoList.tsx") -> FileCodeRequest:
    return FileCodeRequest(
        description="Todo app",
        file_path=path,
        file_info={"role": "list of todos"},
        error_context="ReferenceError: TodoList is not defined",
    )


def test_generate_file_code_given_valid_first_answer_when_generated_then_code_is_returned(
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(files=["```tsx\nconst TodoList = () => <ul />;\n```"])

    # When
    result = generate_file_code(provider, _request())

    # Then
    assert result.is_stub is False
    assert result.code == "const TodoList = () => <ul />;"
    assert len(provider.file_calls) == 1
    assert "Previous error(s)" not in provider.file_calls[0]["system"]


def test_generate_file_code_given_truncated_then_valid_when_generated_then_retry_prompt_has_reason(
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(
        files=["const TodoList = () => (\n  <ul>\n    <li", "const TodoList = () => <ul />;"]
    )

    # When
    result = generate_file_code(provider, _request())

    # Then
    assert result.is_stub is False
    retry_prompt = provider.file_calls[1]["system"]
    assert "Previous error(s) when generating this file: ReferenceError: TodoList is not defined | " in retry_prompt


def test_generate_file_code_given_only_invalid_answers_when_generated_then_stub_after_max_attempts(
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(files=["const = ;", "function (", "<div"])

    # When
    result = generate_file_code(provider, _request(), max_attempts=3)

    # Then
    assert result.is_stub is True
    assert result.code == "const TodoList = () => null; window.TodoList = TodoList;"
    assert result.error_message
    assert len(provider.file_calls) == 3


def test_generate_file_code_given_provider_errors_when_generated_then_stub_is_returned(
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(files=[ProviderError("bad request", status=400)] * 2)

    # When
    result = generate_file_code(provider, _request("src/data.json"), max_attempts=2)

    # Then
    assert result.is_stub is True
    assert result.code == "{}"
    assert "bad request" in result.error_message


def test_generate_file_code_given_auth_error_when_generated_then_it_propagates(scripted_provider_cls) -> None:
    # Given
    provider = scripted_provider_cls(files=[ProviderAuthError("Missing key")])

    # When / Then
    with pytest.raises(ProviderAuthError):
        generate_file_code(provider, _request())


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/pages/home-page.tsx", "home_page"),
        ("src/3d.tsx", "_3d"),
        ("src/App.tsx", "App"),
    ],
)
def test_stub_component_name_given_path_when_named_then_identifier_is_valid(path: str, expected: str) -> None:
    # When
    name = stub_component_name(path)

    # Then
    assert name == expected


def test_build_stub_given_non_script_paths_when_built_then_minimal_content_is_used() -> None:
    # When / Then
    assert build_stub("public/manifest.json") == "{}"
    assert build_stub("src/index.css") == "/* stub */"
    assert build_stub("index.html") == "<!-- stub -->"


@pytest.mark.parametrize(
    "path",
    [
        "src/App.tsx",
        "src/main.jsx",
        "src/utils/format.ts",
        "vite.config.js",
        "package.json",
        "src/index.css",
        "index.html",
        "README.md",
        "public/logo.svg",
        "config.yaml",
        "LICENSE",
    ],
)
def test_build_stub_given_any_file_family_when_checked_then_stub_passes_syntax_check(path: str) -> None:
    # When
    result = check(build_stub(path), infer_language(path))

    # Then
    assert result.ok, result.reason


def test_generate_file_code_given_truncated_css_answers_when_exhausted_then_stub_is_valid_css(
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(files=["a {", "a {", "a {"])

    # When
    result = generate_file_code(provider, _request("src/index.css"), max_attempts=3)

    # Then
    assert result.is_stub is True
    assert result.code == "/* stub */"
    assert check(result.code, "css").ok
    assert is_stub_content(result.code)


def test_is_stub_content_given_stub_and_real_code_when_checked_then_only_stub_matches() -> None:
    # Given
    stub = build_stub("src/components/Card.tsx")

    # When / Then
    assert is_stub_content(stub)
    assert is_stub_content(f"\n{stub}\n")
    assert not is_stub_content("const Card = () => <div />; window.Card = Card;")
    assert not is_stub_content(None)
