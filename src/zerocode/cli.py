"""Typer-based CLI for generating, checking, and repairing application file sets."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from zerocode import config
from zerocode.cache import GenerationCache
from zerocode.codegen import generate_file_code
from zerocode.errors import ZerocodeError
from zerocode.generator import PROVIDERS, get_provider, resolve_anthropic_api_key, resolve_gemini_api_key
from zerocode.models import FileCodeRequest, GenerationSettings, infer_language
from zerocode.planner import generate_app
from zerocode.repair import repair_file_set
from zerocode.store import Store
from zerocode.syntax import check as check_syntax
from zerocode.validator import validate_structure
from zerocode.workspace import dump_file_set, load_file_set, load_structure, read_file_set, write_file_set

app = typer.Typer(add_completion=False, help="zerocode: generate and repair React apps with code models")


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _settings(
    provider: str,
    framework: str = config.DEFAULT_FRAMEWORK,
    styling: str = config.DEFAULT_STYLING,
    state_management: str = config.DEFAULT_STATE_MANAGEMENT,
    build_tool: str = config.DEFAULT_BUILD_TOOL,
) -> GenerationSettings:
    if provider not in PROVIDERS:
        raise typer.BadParameter(f"Unknown provider {provider!r}; expected one of {sorted(PROVIDERS)}")
    return GenerationSettings(
        provider=provider,
        framework=framework,
        styling=styling,
        state_management=state_management,
        build_tool=build_tool,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-db")
def init_db(
    db_path: Path = typer.Option(config.DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Initialize the SQLite generation cache."""
    store = Store(db_path)
    store.init_db()
    typer.echo(f"DB initialized: {db_path}")


@app.command("generate")
def generate(
    description: str = typer.Argument(..., help="Natural-language description of the app"),
    provider: str = typer.Option(config.DEFAULT_PROVIDER, help="Model provider: gemini or claude"),
    model_name: str | None = typer.Option(None, help="Override the provider's default model"),
    framework: str = typer.Option(config.DEFAULT_FRAMEWORK),
    styling: str = typer.Option(config.DEFAULT_STYLING),
    state_management: str = typer.Option(config.DEFAULT_STATE_MANAGEMENT),
    build_tool: str = typer.Option(config.DEFAULT_BUILD_TOOL),
    db_path: Path = typer.Option(config.DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip the generation cache"),
    output_root: Path = typer.Option(config.DEFAULT_OUTPUT_ROOT, "--output", help="Project output directory"),
    json_path: Path | None = typer.Option(None, "--json", help="Also write the file set as JSON"),
) -> None:
    """Generate a complete application and write it to disk."""
    settings = _settings(provider, framework, styling, state_management, build_tool)

    _echo_step(1, 3, "Preparing provider and cache")
    backend = get_provider(settings.provider, model_name=model_name)
    cache: GenerationCache | None = None
    if not no_cache:
        store = Store(db_path)
        store.init_db()
        cache = GenerationCache(store)

    _echo_step(2, 3, f"Generating application with {backend.name} ({backend.model_name})")
    try:
        file_set = generate_app(backend, description, settings, cache=cache)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ZerocodeError as exc:
        raise _fail(exc) from exc

    _echo_step(3, 3, "Writing project files")
    out_dir = write_file_set(file_set, output_root)
    if json_path:
        dump_file_set(file_set, json_path)
    typer.echo(f"Generation complete. files={len(file_set.paths())} path={out_dir}")


@app.command("repair")
def repair(
    source: Path = typer.Argument(..., help="Project directory or file-set JSON"),
    errors: list[str] = typer.Option([], "--error", "-e", help="Runtime error message (repeatable)"),
    preview_log: Path | None = typer.Option(None, help="File with raw live-preview error output"),
    iterative: bool = typer.Option(False, help="Repair repeatedly until validation passes"),
    max_rounds: int = typer.Option(config.REPAIR_MAX_ROUNDS, min=1, help="Round bound for --iterative"),
    provider: str = typer.Option(config.DEFAULT_PROVIDER, help="Model provider: gemini or claude"),
    model_name: str | None = typer.Option(None, help="Override the provider's default model"),
    description: str = typer.Option("", help="App description, used when regenerating stubbed files"),
    output_root: Path | None = typer.Option(None, "--output", help="Write the repaired project here"),
    json_path: Path | None = typer.Option(None, "--json", help="Write the repaired file set as JSON"),
) -> None:
    """Repair a generated project against reported runtime errors."""
    _echo_step(1, 3, "Loading file set")
    try:
        file_set = load_file_set(source)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    live_preview_error = preview_log.read_text(encoding="utf-8") if preview_log else None
    settings = _settings(provider)

    _echo_step(2, 3, f"Repairing {len(file_set.paths())} files")
    backend = get_provider(settings.provider, model_name=model_name)
    try:
        result = repair_file_set(
            backend,
            file_set,
            errors,
            settings=settings,
            live_preview_error=live_preview_error,
            iterative=iterative,
            max_rounds=max_rounds,
            description=description,
        )
    except ZerocodeError as exc:
        raise _fail(exc) from exc

    for entry in result.audit_log:
        status = "ok" if entry.result.success else entry.result.error
        typer.echo(f"    round {entry.attempt}: changed={entry.result.changed_paths} status={status}")

    _echo_step(3, 3, "Writing repaired files")
    if result.file_set is not None:
        if output_root:
            write_file_set(result.file_set, output_root)
        if json_path:
            dump_file_set(result.file_set, json_path)

    try:
        result.raise_for_failure()
    except ZerocodeError as exc:
        raise _fail(exc) from exc
    typer.echo(f"Repair complete. rounds={len(result.audit_log)}")


@app.command("generate-file")
def generate_file(
    file_path: str = typer.Argument(..., help="Project-relative path of the file to generate"),
    description: str = typer.Option("", help="Application description"),
    design_notes: str = typer.Option("", help="Free-form design notes"),
    error_context: str = typer.Option("", help="Errors from an earlier attempt"),
    provider: str = typer.Option(config.DEFAULT_PROVIDER, help="Model provider: gemini or claude"),
    model_name: str | None = typer.Option(None, help="Override the provider's default model"),
    output: Path | None = typer.Option(None, help="Write the code here instead of stdout"),
) -> None:
    """Generate a single file, falling back to a stub when the model cannot comply."""
    settings = _settings(provider)
    backend = get_provider(settings.provider, model_name=model_name)
    request = FileCodeRequest(
        description=description,
        design_notes=design_notes,
        file_path=file_path,
        file_info={"path": file_path, "language": infer_language(file_path)},
        error_context=error_context,
        framework=settings.framework,
        styling=settings.styling,
    )
    try:
        result = generate_file_code(backend, request)
    except ZerocodeError as exc:
        raise _fail(exc) from exc

    if result.is_stub:
        typer.echo(f"Stub written for {file_path}: {result.error_message}", err=True)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.code, encoding="utf-8")
        typer.echo(f"Wrote {output}")
    else:
        typer.echo(result.code)


@app.command("check")
def check(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to check"),
    language: str | None = typer.Option(None, help="Override the language inferred from the extension"),
) -> None:
    """Syntax-check one file."""
    result = check_syntax(path.read_text(encoding="utf-8"), language or infer_language(path.name))
    if not result.ok:
        typer.echo(f"{path}: {result.reason}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{path}: ok")


@app.command("validate")
def validate(
    source: Path = typer.Argument(..., exists=True, help="Project directory or plan JSON"),
    mode: str = typer.Option("strict", help="strict or flexible"),
) -> None:
    """Run structural validation and print errors and warnings."""
    if mode not in ("strict", "flexible"):
        raise typer.BadParameter("mode must be 'strict' or 'flexible'")
    if source.is_dir():
        structure = read_file_set(source).to_structure()
    else:
        try:
            structure = load_structure(source)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    report = validate_structure(structure, mode=mode)
    for error in report.errors:
        typer.echo(f"error: {error}")
    for warning in report.warnings:
        typer.echo(f"warning: {warning}")
    typer.echo(f"valid={report.is_valid} errors={len(report.errors)} warnings={len(report.warnings)}")
    if not report.is_valid:
        raise typer.Exit(code=1)


@app.command("doctor")
def doctor(
    db_path: Path = typer.Option(config.DEFAULT_DB_PATH, "--db", help="SQLite database path"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    has_db = db_path.exists()
    typer.echo(f"DB exists: {has_db} ({db_path})")
    if has_db:
        store = Store(db_path)
        store.init_db()
        typer.echo(f"Cached generations: {store.count()}")
    typer.echo(f"Default provider: {config.DEFAULT_PROVIDER}")
    typer.echo(f"GEMINI_API_KEY set: {bool(resolve_gemini_api_key())}")
    typer.echo(f"ANTHROPIC_API_KEY set: {bool(resolve_anthropic_api_key())}")


if __name__ == "__main__":
    app()
