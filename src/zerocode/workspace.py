"""Move file sets between disk, JSON bundles, and memory."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from zerocode import config
from zerocode.models import FileArtifact, FileSet, normalize_path

logger = logging.getLogger(__name__)


def _resolve_inside(root: Path, relative: str) -> Path:
    target = (root / normalize_path(relative)).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"Refusing to write outside the output directory: {relative}")
    return target


def write_file_set(file_set: FileSet, output_root: Path) -> Path:
    """Write every artifact under ``output_root`` and return the resolved root.

    ``package.json`` is regenerated from the dependency maps when the set does not
    carry one.

    Args:
        file_set: Files to materialize.
        output_root: Directory that receives the project tree.

    Returns:
        The resolved output directory.

    Raises:
        ValueError: If an artifact path escapes ``output_root``.
    """
    root = Path(output_root).resolve()
    root.mkdir(parents=True, exist_ok=True)

    for artifact in file_set.walk():
        target = _resolve_inside(root, artifact.path)
        if not artifact.is_file:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(artifact.content or "", encoding="utf-8")

    if file_set.get("package.json") is None and (file_set.dependencies or file_set.dev_dependencies):
        manifest = {
            "name": root.name,
            "private": True,
            "version": "0.0.0",
            "type": "module",
            "dependencies": file_set.dependencies or {},
            "devDependencies": file_set.dev_dependencies or {},
        }
        (root / "package.json").write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")

    logger.info("Wrote %d files to %s", len(file_set.paths()), root)
    return root


def _read_manifest(root: Path) -> tuple[dict[str, str] | None, dict[str, str] | None]:
    manifest_path = root / "package.json"
    if not manifest_path.is_file():
        return None, None
    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring unreadable package.json: %s", exc)
        return None, None
    if not isinstance(manifest, dict):
        return None, None
    dependencies = manifest.get("dependencies")
    dev_dependencies = manifest.get("devDependencies")
    return (
        dependencies if isinstance(dependencies, dict) else None,
        dev_dependencies if isinstance(dev_dependencies, dict) else None,
    )


def read_file_set(root: Path) -> FileSet:
    """Load a project directory as a flat file set.

    Dependency maps come from ``package.json``. Build output, VCS metadata, and
    installed packages are skipped; undecodable files are skipped with a warning.
    """
    root = Path(root)
    if not root.is_dir():
        raise ValueError(f"Not a directory: {root}")

    files: list[FileArtifact] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in config.IGNORED_DIRS for part in relative.parts) or path.name in config.IGNORED_FILES:
            continue
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping non-text file %s", relative.as_posix())
            continue
        files.append(FileArtifact(path=relative.as_posix(), type="file", content=content))

    dependencies, dev_dependencies = _read_manifest(root)
    return FileSet.model_validate(
        {"files": files, "dependencies": dependencies, "dev_dependencies": dev_dependencies}
    )


def dump_file_set(file_set: FileSet, path: Path) -> Path:
    """Write ``file_set`` as a plan-shaped JSON document."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(file_set.to_structure(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_structure(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def load_file_set(path: Path) -> FileSet:
    """Load a file set from a plan-shaped JSON file or from a project directory."""
    path = Path(path)
    if path.is_dir():
        return read_file_set(path)
    structure = load_structure(path)
    if not isinstance(structure, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return FileSet.from_structure(structure)
