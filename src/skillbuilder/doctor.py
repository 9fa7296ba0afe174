"""Environment diagnostics for a SkillBuilder repository."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .cache import CACHE_DIR
from .config import find_repo_root, load_config
from .exceptions import ConfigError
from .models import EditorTarget, SkillBuilderConfig
from .sources import resolve_source_path


@dataclass(frozen=True)
class Diagnostic:
    """Result of a single doctor check."""

    passed: bool
    message: str
    fix: str | None = None


def _output_dir(config: SkillBuilderConfig, target: EditorTarget) -> str:
    output = config.output
    if target == EditorTarget.CURSOR:
        return output.cursor.dir
    if target == EditorTarget.WINDSURF:
        return output.windsurf.dir
    if target == EditorTarget.ANTIGRAVITY:
        return output.antigravity.dir
    return str(Path(output.vscode.file).parent)


def _is_writable(path: Path) -> bool:
    # A directory that does not exist yet is writable if its nearest existing
    # ancestor is, since generators create it on demand.
    current = path
    while not current.exists():
        if current == current.parent:
            return False
        current = current.parent
    return current.is_dir() and os.access(current, os.W_OK)


def check_config(config: SkillBuilderConfig, repo_root: Path) -> list[Diagnostic]:
    """Check targets, skills, output paths, source files and the cache."""
    results: list[Diagnostic] = [
        Diagnostic(True, f"Targets configured: {', '.join(t.value for t in config.targets)}"),
    ]

    if config.skills:
        results.append(Diagnostic(True, f"{len(config.skills)} skill(s) defined"))
    else:
        results.append(
            Diagnostic(False, "No skills defined", "Run: skillbuilder create <skill-name>"),
        )

    for target in config.targets:
        output_path = repo_root / _output_dir(config, target)
        if _is_writable(output_path):
            results.append(Diagnostic(True, f"Output path writable: {target.value}"))
        else:
            results.append(
                Diagnostic(
                    False,
                    f"Output path not writable: {target.value}",
                    f"Ensure directory exists and is writable: {output_path}",
                ),
            )

    for skill in config.skills:
        for file_path in skill.sources.files:
            if not resolve_source_path(file_path, repo_root).exists():
                results.append(
                    Diagnostic(
                        False,
                        f"Source file not found: {file_path}",
                        f"Check path or remove from skill: {skill.id}",
                    ),
                )

    if (repo_root / CACHE_DIR).exists():
        results.append(Diagnostic(True, "Cache directory exists"))
    else:
        results.append(
            Diagnostic(False, "Cache directory missing", "Run: skillbuilder build"),
        )

    return results


def run_diagnostics(start: Path | None = None) -> list[Diagnostic]:
    """Run every check from ``start`` (defaults to the working directory)."""
    repo_root = find_repo_root(start)
    if repo_root is None:
        return [Diagnostic(False, "Not in a git repository", "Initialize git with: git init")]

    results = [Diagnostic(True, "Repository root found")]
    try:
        config = load_config(repo_root)
    except ConfigError as e:
        results.append(
            Diagnostic(False, f"Configuration error: {e}", "Check skillbuilder.json for errors"),
        )
        return results

    results.append(Diagnostic(True, "Configuration loaded successfully"))
    results.extend(check_config(config, repo_root))
    return results
