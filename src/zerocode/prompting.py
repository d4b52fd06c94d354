from __future__ import annotations

import json
from collections.abc import Sequence

from zerocode import config
from zerocode.models import FileCodeRequest, GenerationSettings

ROUTER_GLOBALS_COMMENT = (
    "// Assume: const { BrowserRouter, Routes, Route, Link, Navigate, useParams, useNavigate, "
    "useLocation, useSearchParams, Outlet } = window.ReactRouterDOM;"
)

FILE_USER_PROMPT = "Generate the code for this file only."


def build_system_prompt(settings: GenerationSettings) -> str:
    return (
        f"You are an expert {settings.framework} developer who creates complete, functional "
        "applications. Follow all instructions exactly and return only valid JSON when JSON is "
        "requested. Never use markdown fences around JSON."
    )


def build_plan_prompt(description: str, settings: GenerationSettings) -> str:
    output_contract = {
        "files": [{"path": "src/App.tsx", "content": "string", "type": "file"}],
        "dependencies": {name: version for name, version in config.DEFAULT_DEPENDENCIES.items()},
        "devDependencies": {"@types/react": "^18.2.0", "@vitejs/plugin-react": "^4.0.0"},
    }
    required = "\n".join(f"- {path}" for path in config.REQUIRED_FILES)
    forbidden = ", ".join(f'"{marker}"' for marker in config.FORBIDDEN_CONTENT)

    return (
        f"Generate a COMPLETE {settings.framework} application with TypeScript, functional "
        "components, routing, and fully implemented behavior.\n\n"
        "Rules:\n"
        "1) Every file must contain complete, runnable code. No placeholders.\n"
        "2) All imports must resolve to files you return or to declared dependencies.\n"
        "3) Components that render nested content must type their children prop.\n"
        f"4) Never write any of: {forbidden}.\n"
        f"5) Use {settings.styling} for all styling.\n"
        "6) Return valid JSON only with exactly this schema:\n"
        f"{json.dumps(output_contract, ensure_ascii=False)}\n\n"
        "Required files:\n"
        f"{required}\n\n"
        "User requirements:\n"
        f"{description.strip()}\n\n"
        "Technical specifications:\n"
        f"- Framework: {settings.framework}\n"
        f"- Styling: {settings.styling}\n"
        f"- State Management: {settings.state_management}\n"
        f"- Build Tool: {settings.build_tool}\n"
    )


def build_file_prompt(request: FileCodeRequest, prior_errors: Sequence[str] = ()) -> str:
    """Build the per-file generation prompt.

    ``prior_errors`` is appended verbatim so the model sees why the previous
    attempt was rejected.
    """
    prompt = (
        f"You are generating a single file for a {request.framework} application styled with "
        f"{request.styling}.\n"
        "Return only the raw source code of the file, without markdown fences or commentary.\n"
        "The code must be complete and syntactically valid; do not stop mid-expression.\n\n"
        "Application description:\n"
        f"{request.description.strip() or '(not provided)'}\n\n"
        "Design notes:\n"
        f"{request.design_notes.strip() or '(none)'}\n\n"
        f"File path: {request.file_path}\n"
        "File role:\n"
        f"{json.dumps(request.file_info, indent=2, ensure_ascii=False)}\n"
    )
    errors = [error for error in prior_errors if error]
    if errors:
        prompt += "\n\nPrevious error(s) when generating this file: " + " | ".join(errors)
    return prompt


def format_error_list(errors: Sequence[str]) -> str:
    if not errors:
        return "No explicit error messages, but the app is not working as expected."
    return "\n".join(f"{index}. {error}" for index, error in enumerate(errors, start=1))


def build_repair_prompt(framework: str, errors: Sequence[str], files_block: str) -> str:
    return (
        f"You repair a {framework} application that fails in a browser preview sandbox.\n"
        "The sandbox loads every file as a plain script: module imports and exports are not "
        "available, components are registered on window, and lines marked with "
        "'ERROR HERE' are where errors were reported.\n\n"
        "Errors:\n"
        f"{format_error_list(errors)}\n\n"
        "Files:\n"
        f"{files_block}\n\n"
        "Task:\n"
        "- Return corrected full contents only for the files that need changes.\n"
        "- Remove the ERROR HERE markers from the code you return.\n"
        "- Do not add commentary, tests, or unrelated scaffolding.\n"
        'Return a single JSON object: {"files": [{"path": "...", "content": "...", "type": "file"}]}\n'
    )
