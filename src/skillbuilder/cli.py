"""SkillBuilder command-line interface."""

from __future__ import annotations

import logging
import re
import sys
import time
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from .config import (
    CONFIG_FILE,
    create_default_config,
    find_repo_root,
    load_config,
    save_config,
    slugify,
)
from .doctor import run_diagnostics
from .exceptions import SkillBuilderError
from .generators import generate_all_rules
from .ingestion import IngestionPipeline
from .linter import LintSeverity, is_valid_url, lint_config
from .models import (
    EditorTarget,
    FormattingConstraints,
    MergeOutcome,
    MergeResult,
    RuleStyle,
    Skill,
    SkillBuilderConfig,
    SkillConstraints,
    SkillSources,
)
from .watcher import DEFAULT_DEBOUNCE_SECONDS, SKILLS_DIR, SkillWatcher

app = typer.Typer(
    name="skillbuilder",
    help="Create and maintain project-level AI instructions for multiple editors",
    add_completion=False,
)
console = Console()

DEFAULT_TARGETS = "cursor,windsurf"


def _get_version_string() -> str:
    """Get version string from package metadata or pyproject.toml."""
    try:
        return get_version("skillbuilder")
    except PackageNotFoundError:
        pass

    # Development checkout without an installed distribution
    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        content = pyproject_path.read_text()
        match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', content)
        if match:
            return f"{match.group(1)} (development)"

    return "unknown"


def _stderr_logger(*_args: object) -> structlog.PrintLogger:
    return structlog.PrintLogger(sys.stderr)


def _setup_logging(verbose: bool, log_format: str) -> None:
    """Configure structlog. Called once per invocation before any command runs."""
    level = logging.DEBUG if verbose else logging.WARNING

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"SkillBuilder version {_get_version_string()}")
        raise typer.Exit


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug details to stderr",
    ),
    log_format: str = typer.Option(
        "text",
        "--log-format",
        help="Log format: text or json",
    ),
) -> None:
    """SkillBuilder: project-level AI instructions from one config."""
    _setup_logging(verbose, log_format)


def _resolve_repo(repo: Path | None) -> Path:
    """Return the explicit repo or discover the enclosing git repository."""
    if repo is not None:
        return repo.resolve()
    root = find_repo_root()
    if root is None:
        console.print("[red]Error:[/red] Not in a git repository")
        raise typer.Exit(1)
    return root


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _relative(path: Path | None, repo_root: Path) -> str:
    if path is None:
        return ""
    try:
        return str(path.relative_to(repo_root))
    except ValueError:
        return str(path)


def _print_merge_results(results: list[MergeResult], repo_root: Path) -> None:
    colors = {
        MergeOutcome.CREATED: "green",
        MergeOutcome.UPDATED: "green",
        MergeOutcome.SKIPPED: "dim",
        MergeOutcome.CONFLICT: "yellow",
    }
    for result in results:
        color = colors[result.outcome]
        console.print(
            f"  • [{color}]{result.outcome.value}[/{color}] {_relative(result.path, repo_root)}",
        )


def _sync(config: SkillBuilderConfig, repo_root: Path) -> list[MergeResult]:
    pipeline = IngestionPipeline(config, repo_root)
    contents = {result.skill_id: result.content for result in pipeline.build_all()}
    return generate_all_rules(config, repo_root, contents)


REPO_OPTION = typer.Option(
    None,
    "--repo",
    "-r",
    help="Repository root (defaults to the enclosing git repository)",
    file_okay=False,
    dir_okay=True,
)


@app.command()
def init(
    targets: str | None = typer.Option(
        None,
        "--targets",
        help="Comma-separated targets (cursor,windsurf,vscode,antigravity)",
    ),
    style: str | None = typer.Option(
        None,
        "--style",
        help="Rule style (strict, balanced, minimal)",
    ),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Use defaults instead of prompting",
    ),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Initialize SkillBuilder in a repository."""
    repo_root = _resolve_repo(repo)

    try:
        if non_interactive:
            target_list = _split_csv(targets or DEFAULT_TARGETS)
            style_value = style or RuleStyle.BALANCED.value
            create_example = True
        else:
            target_list = _split_csv(
                targets
                or typer.prompt(
                    "Which editors should we support? "
                    f"({', '.join(t.value for t in EditorTarget)})",
                    default=DEFAULT_TARGETS,
                ),
            )
            style_value = style or typer.prompt(
                "Default rule style? (strict, balanced, minimal)",
                default=RuleStyle.BALANCED.value,
            )
            create_example = typer.confirm("Create example core skill?", default=True)

        if (repo_root / CONFIG_FILE).exists() and not non_interactive:
            if not typer.confirm(f"{CONFIG_FILE} exists. Overwrite?"):
                console.print("Initialization cancelled")
                return

        config = create_default_config(target_list, style_value)
        if create_example:
            config = config.replace_skill(
                Skill(
                    id="core",
                    name="Core Project Rules",
                    goal="How to work in this repository safely and consistently",
                    sources=SkillSources(files=("./README.md",)),
                    constraints=SkillConstraints(
                        tone="concise",
                        safety="strict",
                        formatting=FormattingConstraints(no_em_dash=True),
                    ),
                ),
            )

        save_config(config, repo_root)
        (repo_root / SKILLS_DIR).mkdir(parents=True, exist_ok=True)
        console.print(f"[green]✓[/green] Configuration created at {repo_root / CONFIG_FILE}")

        if create_example:
            try:
                _print_merge_results(_sync(config, repo_root), repo_root)
                console.print("[green]✓[/green] Initial rules generated")
            except SkillBuilderError as e:
                console.print(f"[yellow]Rules generation skipped:[/yellow] {e}")

        console.print("\nNext steps:")
        console.print("  • Create a new skill: skillbuilder create <name>")
        console.print("  • Add documentation: skillbuilder add-url <url>")
        console.print("  • Sync rules: skillbuilder sync")
        console.print("  • Watch for changes: skillbuilder watch")

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def create(
    name: str | None = typer.Argument(None, help="Skill name"),
    goal: str | None = typer.Option(None, "--goal", help="Goal statement"),
    scope: str | None = typer.Option(None, "--scope", help="Comma-separated path globs"),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Fail instead of prompting for missing values",
    ),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Create a new skill."""
    repo_root = _resolve_repo(repo)

    try:
        config = load_config(repo_root)

        if non_interactive and not (name and goal):
            console.print("[red]Error:[/red] --non-interactive requires NAME and --goal")
            raise typer.Exit(1)

        name = name or typer.prompt("Skill name")
        goal = goal or typer.prompt("Goal statement")
        if scope is None and not non_interactive:
            scope = typer.prompt("Path scopes (comma-separated, blank for none)", default="")
        scopes = tuple(_split_csv(scope or ""))

        skill_id = slugify(name)
        if not skill_id:
            console.print(f"[red]Error:[/red] Invalid skill name: {name}")
            raise typer.Exit(1)
        if config.get_skill(skill_id) is not None:
            console.print(f"[red]Error:[/red] A skill with this name already exists: {skill_id}")
            raise typer.Exit(1)

        safety = "strict" if config.style == RuleStyle.STRICT else "balanced"
        skill = Skill(
            id=skill_id,
            name=name,
            goal=goal,
            scopes=scopes,
            constraints=SkillConstraints(
                tone="concise",
                safety=safety,
                formatting=FormattingConstraints(no_em_dash=True),
            ),
        )
        save_config(config.replace_skill(skill), repo_root)

        skill_dir = repo_root / SKILLS_DIR / skill_id
        skill_dir.mkdir(parents=True, exist_ok=True)
        scope_lines = "\n".join(f"- {s}" for s in scopes) if scopes else "No scopes defined"
        (skill_dir / "skill.md").write_text(
            f"# {name}\n\n{goal}\n\n## Scopes\n{scope_lines}\n\n## Sources\n"
            "Add documentation sources with:\n"
            f"- `skillbuilder add-url <url> --skill {skill_id}`\n"
            f"- `skillbuilder add-file <path> --skill {skill_id}`\n",
            encoding="utf-8",
        )

        console.print(f"[green]✓[/green] Skill created: {name} ({skill_id})")

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _select_skill(config: SkillBuilderConfig, skill_id: str | None) -> Skill:
    if skill_id is None and len(config.skills) == 1:
        return config.skills[0]

    if skill_id is None:
        console.print("[red]Error:[/red] Please specify --skill <skill-id>")
        console.print("Available skills:")
        for skill in config.skills:
            console.print(f"  • {skill.id}: {skill.name}")
        raise typer.Exit(1)

    skill = config.get_skill(skill_id)
    if skill is None:
        console.print(f"[red]Error:[/red] Skill not found: {skill_id}")
        raise typer.Exit(1)
    return skill


def _add_source(kind: str, value: str, skill_id: str | None, repo: Path | None) -> None:
    repo_root = _resolve_repo(repo)
    try:
        config = load_config(repo_root)
        skill = _select_skill(config, skill_id)

        existing = skill.sources.urls if kind == "urls" else skill.sources.files
        label = "URL" if kind == "urls" else "File"
        if value in existing:
            console.print(f"[yellow]{label} already added to skill:[/yellow] {skill.id}")
            return

        sources = skill.sources.model_copy(update={kind: (*existing, value)})
        save_config(config.replace_skill(skill.model_copy(update={"sources": sources})), repo_root)

        console.print(f"[green]✓[/green] {label} added to skill: {skill.name}")
        console.print("  Run: skillbuilder sync to update rules")

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("add-url")
def add_url(
    url: str = typer.Argument(..., help="Documentation URL"),
    skill: str | None = typer.Option(None, "--skill", help="Skill ID to add the URL to"),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Add a URL as a documentation source."""
    if not is_valid_url(url):
        console.print(f"[red]Error:[/red] Invalid URL: {url}")
        raise typer.Exit(1)
    _add_source("urls", url, skill, repo)


@app.command("add-file")
def add_file(
    file: str = typer.Argument(..., help="Local file path"),
    skill: str | None = typer.Option(None, "--skill", help="Skill ID to add the file to"),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Add a local file as a documentation source."""
    _add_source("files", file, skill, repo)


@app.command()
def build(repo: Path | None = REPO_OPTION) -> None:
    """Build skill content from sources."""
    repo_root = _resolve_repo(repo)
    try:
        config = load_config(repo_root)
        results = IngestionPipeline(config, repo_root).build_all()

        for result in results:
            console.print(
                f"[green]✓[/green] Built skill: {result.skill_id} "
                f"({result.sources.urls} URLs, {result.sources.files} files)",
            )
            for failure in result.failures:
                console.print(f"  [yellow]⚠ Skipped {failure.identifier}:[/yellow] {failure.reason}")

        console.print(f"\n[green]✓[/green] Built {len(results)} skill(s)")
        console.print("  Run: skillbuilder sync to generate rules")

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def sync(
    targets: str | None = typer.Option(
        None,
        "--targets",
        help="Comma-separated list of targets to sync",
    ),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Generate and update editor-specific rules files."""
    repo_root = _resolve_repo(repo)
    try:
        config = load_config(repo_root)
        if targets:
            selected = _split_csv(targets)
            configured = {t.value for t in config.targets}
            for name in selected:
                if name not in configured:
                    console.print(f"[yellow]Warning:[/yellow] Ignoring unconfigured target: {name}")
            config = config.model_copy(
                update={"targets": tuple(t for t in config.targets if t.value in selected)},
            )
            if not config.targets:
                console.print("[yellow]No configured targets selected, nothing to sync[/yellow]")
                return

        results = _sync(config, repo_root)
        _print_merge_results(results, repo_root)

        console.print("\n[green]✓[/green] Sync complete")
        console.print(f"  Targets: {', '.join(t.value for t in config.targets)}")
        console.print(f"  Skills: {len(config.skills)}")

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def watch(
    debounce: float = typer.Option(
        DEFAULT_DEBOUNCE_SECONDS,
        "--debounce",
        help="Seconds of quiet before rebuilding",
    ),
    repo: Path | None = REPO_OPTION,
) -> None:
    """Watch for changes and auto-sync."""
    repo_root = _resolve_repo(repo)
    try:
        config = load_config(repo_root)

        def report_error(error: Exception) -> None:
            console.print(f"[red]✗ Sync failed:[/red] {error}")

        def report_complete(results: list[MergeResult]) -> None:
            _print_merge_results(results, repo_root)
            console.print("[green]✓ Sync complete[/green]")

        watcher = SkillWatcher(
            repo_root,
            config,
            on_error=report_error,
            on_complete=report_complete,
            debounce_seconds=debounce,
        )
        watcher.start()
        console.print("[blue]Watching for changes...[/blue]")
        console.print(f"  {len(watcher.watch_paths())} paths monitored")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watch mode...[/yellow]")
        finally:
            watcher.stop()

    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def doctor() -> None:
    """Diagnose configuration issues."""
    results = run_diagnostics()

    table = Table(title="SkillBuilder Doctor")
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Fix", style="dim")

    for result in results:
        status = "[green]✓ pass[/green]" if result.passed else "[red]✗ fail[/red]"
        table.add_row(result.message, status, result.fix or "")

    console.print(table)

    if any(not r.passed for r in results):
        console.print("[yellow]⚠ Some issues found. Address them and run doctor again.[/yellow]")
        raise typer.Exit(1)
    console.print("[green]✓ All checks passed![/green]")


@app.command()
def lint(repo: Path | None = REPO_OPTION) -> None:
    """Lint skill configuration."""
    repo_root = _resolve_repo(repo)
    try:
        config = load_config(repo_root)
    except SkillBuilderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    issues = lint_config(config)
    if not issues:
        console.print("[green]✓ No issues found[/green]")
        return

    errors = [i for i in issues if i.severity == LintSeverity.ERROR]
    for issue in issues:
        if issue.severity == LintSeverity.ERROR:
            console.print(f"[red]✗ {issue.skill_id}: {issue.message}[/red]")
        else:
            console.print(f"[yellow]⚠ {issue.skill_id}: {issue.message}[/yellow]")

    console.print(f"\n{len(errors)} error(s), {len(issues) - len(errors)} warning(s)")
    if errors:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show SkillBuilder version information."""
    console.print(f"SkillBuilder version {_get_version_string()}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
