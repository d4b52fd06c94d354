from __future__ import annotations

import json

import pytest

from zerocode.codegen import build_stub
from zerocode.errors import ProviderAuthError, RepairExhaustedError
from zerocode.models import FileArtifact, FileSet
from zerocode.prompting import ROUTER_GLOBALS_COMMENT
from zerocode.repair import EMPTY_REPAIR_ERROR, repair_file_set


def _repair_response(*files: tuple[str, str]) -> str:
    return json.dumps({"files": [{"path": path, "content": content, "type": "file"} for path, content in files]})


FIXED_APP = "const App = () => <div>fixed</div>;\nwindow.App = App;"


def test_repair_given_localized_error_when_repaired_then_only_marked_file_is_sent_and_merged(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(
        plans=[_repair_response(("src/App.tsx", FIXED_APP), ("src/Empty.tsx", "   "))]
    )

    # When
    result = repair_file_set(
        provider,
        complete_file_set,
        ["TypeError: x is undefined at App.tsx:5:3"],
        settings=settings,
    )

    # Then
    assert result.success is True
    assert result.file_set.get("src/App.tsx").content == FIXED_APP
    assert result.file_set.get("src/Empty.tsx") is None
    assert result.file_set.get("src/main.tsx") == complete_file_set.get("src/main.tsx")
    assert len(result.audit_log) == 1
    assert result.audit_log[0].result.changed_paths == ["src/App.tsx"]

    prompt = provider.plan_calls[0]["user"]
    assert "1. TypeError: x is undefined at App.tsx:5:3" in prompt
    assert "--- File: src/App.tsx ---" in prompt
    assert "--- File: src/main.tsx ---" not in prompt
    assert ROUTER_GLOBALS_COMMENT in prompt
    assert "// ERROR HERE: TypeError: x is undefined at App.tsx:5:3\nconst App = () => {" in prompt
    assert "import React" not in prompt


def test_repair_given_live_preview_output_when_repaired_then_error_lines_are_merged(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=[_repair_response(("src/App.tsx", FIXED_APP))])

    # When
    result = repair_file_set(
        provider,
        complete_file_set,
        ["Render failed"],
        settings=settings,
        live_preview_error="vite ready\nUncaught ReferenceError: Layout is not defined\nRender failed",
    )

    # Then
    assert result.audit_log[0].errors == ["Render failed", "Uncaught ReferenceError: Layout is not defined"]


def test_repair_given_only_empty_files_returned_when_repaired_then_round_fails_with_reason(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=[_repair_response(("src/App.tsx", ""))])

    # When
    result = repair_file_set(provider, complete_file_set, ["boom at App.tsx:1"], settings=settings)

    # Then
    assert result.success is False
    assert result.exhausted is False
    assert result.file_set is None
    assert result.error == EMPTY_REPAIR_ERROR


def test_repair_given_unparseable_answer_when_repaired_then_failure_carries_parse_error(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=["no json here"])

    # When
    result = repair_file_set(provider, complete_file_set, ["boom"], settings=settings)

    # Then
    assert result.success is False
    assert "not valid JSON" in result.error


def test_repair_given_auth_failure_when_repaired_then_it_propagates(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=[ProviderAuthError("Missing key")])

    # When / Then
    with pytest.raises(ProviderAuthError):
        repair_file_set(provider, complete_file_set, ["boom"], settings=settings)


def test_repair_given_stubbed_file_when_repaired_then_it_is_regenerated_before_the_repair_request(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    widget_path = "src/components/Widget.tsx"
    file_set = complete_file_set.with_files([FileArtifact(path=widget_path, content=build_stub(widget_path))])
    provider = scripted_provider_cls(
        files=["const Widget = () => <div>ok</div>;"],
        plans=[_repair_response(("src/App.tsx", FIXED_APP))],
    )

    # When
    result = repair_file_set(provider, file_set, ["Widget failed at Widget.tsx:1"], settings=settings)

    # Then
    assert len(provider.file_calls) == 1
    assert "File path: src/components/Widget.tsx" in provider.file_calls[0]["system"]
    assert "const Widget = () => <div>ok</div>;" in provider.plan_calls[0]["user"]
    assert result.file_set.get(widget_path).content == "const Widget = () => <div>ok</div>;"
    assert widget_path in result.audit_log[0].result.changed_paths


def test_repair_given_identical_rounds_when_iterating_then_loop_stops_at_fixed_point(
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    del complete_plan["dependencies"]
    file_set = FileSet.from_structure(complete_plan)
    response = _repair_response(("src/App.tsx", FIXED_APP))
    provider = scripted_provider_cls(plans=[response, response, response])

    # When
    result = repair_file_set(provider, file_set, ["boom at App.tsx:2"], settings=settings, iterative=True, max_rounds=3)

    # Then
    assert result.success is False
    assert result.exhausted is True
    assert len(result.audit_log) == 2
    assert len(provider.plan_calls) == 2
    assert result.audit_log[1].errors == ["Invalid dependencies: not an object"]
    assert result.file_set.get("src/App.tsx").content == FIXED_APP
    with pytest.raises(RepairExhaustedError) as excinfo:
        result.raise_for_failure()
    assert len(excinfo.value.audit_log) == 2


def test_repair_given_changing_output_when_iterating_then_round_bound_exhausts(
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    del complete_plan["dependencies"]
    file_set = FileSet.from_structure(complete_plan)
    provider = scripted_provider_cls(
        plans=[
            _repair_response(("src/App.tsx", "const App = () => 1;")),
            _repair_response(("src/App.tsx", "const App = () => 2;")),
        ]
    )

    # When
    result = repair_file_set(provider, file_set, ["boom"], settings=settings, iterative=True, max_rounds=2)

    # Then
    assert result.exhausted is True
    assert [entry.attempt for entry in result.audit_log] == [1, 2]
    assert result.error.startswith("Repair attempts exhausted after 2 rounds")


def test_repair_given_valid_first_round_when_iterating_then_it_stops_with_success(
    complete_file_set,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    provider = scripted_provider_cls(plans=[_repair_response(("src/App.tsx", FIXED_APP))])

    # When
    result = repair_file_set(provider, complete_file_set, ["boom"], settings=settings, iterative=True)

    # Then
    assert result.success is True
    assert len(result.audit_log) == 1
    result.raise_for_failure()



def test_repair_given_answer_equal_to_input_when_iterating_then_first_round_is_a_fixed_point(
    complete_plan,
    settings,
    scripted_provider_cls,
) -> None:
    # Given
    del complete_plan["dependencies"]
    file_set = FileSet.from_structure(complete_plan)
    unchanged = _repair_response(("src/App.tsx", file_set.get("src/App.tsx").content))
    provider = scripted_provider_cls(plans=[unchanged, unchanged])

    # When
    result = repair_file_set(provider, file_set, ["boom at App.tsx:2"], settings=settings, iterative=True, max_rounds=3)

    # Then
    assert result.exhausted is True
    assert len(result.audit_log) == 1
    assert len(provider.plan_calls) == 1
    assert result.error.startswith("Repair made no further progress")
    assert result.file_set == file_set
