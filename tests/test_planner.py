from __future__ import annotations

import json

import pytest

from zerocode.cache import GenerationCache
from zerocode.errors import ParseError, StructuralValidationError
from zerocode.planner import generate_app, plan_initial_file_set, supplement_dependencies
from zerocode.store import Store


def test_plan_initial_file_set_given_complete_plan_when_planned_then_file_set_has_every_required_path(
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=["```json\n" + json.dumps(complete_plan) + "\n```"])

    # When
    file_set = plan_initial_file_set(provider, "A small app", settings)

    # Then
    assert "src/App.tsx" in file_set.paths()
    assert "src/components/Layout.tsx" in file_set.paths()
    assert file_set.dependencies["react"] == "^18.2.0"
    assert "A small app" in provider.plan_calls[0]["user"]


def test_plan_initial_file_set_given_missing_files_when_planned_then_error_lists_exactly_the_missing_ones(
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    complete_plan["files"] = [
        entry for entry in complete_plan["files"] if entry["path"] not in ("index.html", "src/index.css")
    ]
    provider = scripted_provider_cls(plans=[json.dumps(complete_plan)])

    # When
    with pytest.raises(StructuralValidationError) as excinfo:
        plan_initial_file_set(provider, "A small app", settings)

    # Then
    assert excinfo.value.report.errors == [
        "Missing required file: index.html",
        "Missing required file: src/index.css",
    ]


def test_plan_initial_file_set_given_non_json_answer_when_planned_then_parse_error_is_raised(
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=["I cannot help with that."])

    # When / Then
    with pytest.raises(ParseError):
        plan_initial_file_set(provider, "A small app", settings)


def test_plan_initial_file_set_given_blank_description_when_planned_then_provider_is_not_called(
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls()

    # When
    with pytest.raises(ValueError):
        plan_initial_file_set(provider, "   ", settings)

    # Then
    assert provider.calls == []


def test_supplement_dependencies_given_plan_without_react_when_supplemented_then_defaults_are_merged() -> None:
    # Given
    structure = {"files": [], "dependencies": {"zustand": "^4.0.0"}}

    # When
    supplemented = supplement_dependencies(structure)

    # Then
    assert supplemented["dependencies"]["zustand"] == "^4.0.0"
    assert supplemented["dependencies"]["react"] == "^18.2.0"
    assert supplemented["devDependencies"]["vite"]
    assert "devDependencies" not in structure


def test_supplement_dependencies_given_dev_set_without_react_dom_types_when_supplemented_then_they_are_added() -> None:
    # Given
    structure = {"dependencies": {"react": "^18.2.0"}, "devDependencies": {"vite": "^5.0.0"}}

    # When
    supplemented = supplement_dependencies(structure)

    # Then
    assert supplemented["devDependencies"] == {"vite": "^5.0.0", "@types/react-dom": "^18.2.0"}
    assert supplemented["dependencies"] == {"react": "^18.2.0"}


def test_generate_app_given_cache_when_called_twice_then_provider_is_called_once(
    tmp_path,
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    store = Store(tmp_path / "generations.db")
    store.init_db()
    cache = GenerationCache(store)
    provider = scripted_provider_cls(plans=[json.dumps(complete_plan)])

    # When
    first = generate_app(provider, "A small app", settings, cache=cache)
    second = generate_app(provider, "A small app", settings, cache=cache)

    # Then
    assert first == second
    assert len(provider.plan_calls) == 1
