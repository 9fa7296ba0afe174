"""Per-editor rule generators.

Each generator renders skills with the configured style and hands the result
to the merge engine, so hand-written text around the generated block
survives regeneration. Generators always merge non-interactively.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from .merge import safe_merge
from .models import EditorTarget, MergeResult, Skill, SkillBuilderConfig
from .templates import render_template

CORE_BLOCK = "core"


class RuleGenerator:
    """Writes rendered skills into each target editor's file layout."""

    def __init__(
        self,
        config: SkillBuilderConfig,
        repo_root: Path,
        source_contents: Mapping[str, str],
    ) -> None:
        """Initialize generator.

        Args:
            config: Loaded configuration
            repo_root: Repository root that output paths are relative to
            source_contents: Built content keyed by skill id
        """
        self.config = config
        self.repo_root = Path(repo_root)
        self.source_contents = source_contents

    def _render(self, skill: Skill) -> str:
        return render_template(skill, self.config.style, self.source_contents.get(skill.id))

    def _render_with_scope_comment(self, skill: Skill) -> str:
        content = self._render(skill)
        if skill.scopes:
            return f"<!-- Scopes: {', '.join(skill.scopes)} -->\n\n{content}"
        return content

    def generate_cursor(self) -> list[MergeResult]:
        """One file per skill under the cursor rules dir, block id = skill id."""
        output_dir = self.repo_root / self.config.output.cursor.dir
        return [
            safe_merge(
                output_dir / f"{skill.id}.md",
                skill.id,
                self._render_with_scope_comment(skill),
                interactive=False,
            )
            for skill in self.config.skills
        ]

    def generate_windsurf(self) -> list[MergeResult]:
        """One file per skill plus the optional aggregated global rules file."""
        windsurf = self.config.output.windsurf
        output_dir = self.repo_root / windsurf.dir
        results = [
            safe_merge(
                output_dir / f"{skill.id}.md",
                CORE_BLOCK,
                self._render_with_scope_comment(skill),
                interactive=False,
            )
            for skill in self.config.skills
        ]

        if windsurf.global_file:
            sections = []
            for skill in self.config.skills:
                heading = f"## {skill.name}"
                if skill.scopes:
                    heading += f" (applies to: {', '.join(skill.scopes)})"
                sections.append(f"{heading}\n\n{self._render(skill)}")
            results.append(
                safe_merge(
                    self.repo_root / windsurf.global_file,
                    CORE_BLOCK,
                    "\n\n---\n\n".join(sections),
                    interactive=False,
                ),
            )
        return results

    def generate_vscode(self) -> list[MergeResult]:
        """A single Copilot instructions file with one section per skill."""
        sections = []
        for skill in self.config.skills:
            content = self._render(skill)
            if skill.scopes:
                scopes = " or ".join(skill.scopes)
                content = f"When working in {scopes}, follow these rules:\n\n{content}"
            sections.append(f"## {skill.name}\n\n{content}")

        full_content = (
            "# GitHub Copilot Instructions\n\n"
            "This file contains AI instructions for working in this repository.\n\n"
            + "\n\n---\n\n".join(sections)
            + "\n"
        )
        target = self.repo_root / self.config.output.vscode.file
        return [safe_merge(target, CORE_BLOCK, full_content, interactive=False)]

    def generate_antigravity(self) -> list[MergeResult]:
        """One file per skill under the antigravity rules dir."""
        output_dir = self.repo_root / self.config.output.antigravity.dir
        return [
            safe_merge(
                output_dir / f"{skill.id}.md",
                CORE_BLOCK,
                self._render(skill),
                interactive=False,
            )
            for skill in self.config.skills
        ]

    def generate(self, target: EditorTarget) -> list[MergeResult]:
        """Run the generator for a single target."""
        generators: dict[EditorTarget, Callable[[], list[MergeResult]]] = {
            EditorTarget.CURSOR: self.generate_cursor,
            EditorTarget.WINDSURF: self.generate_windsurf,
            EditorTarget.VSCODE: self.generate_vscode,
            EditorTarget.ANTIGRAVITY: self.generate_antigravity,
        }
        return generators[target]()

    def generate_all(self) -> list[MergeResult]:
        """Run the generators for every configured target, in order."""
        results: list[MergeResult] = []
        for target in self.config.targets:
            results.extend(self.generate(target))
        return results


def generate_all_rules(
    config: SkillBuilderConfig,
    repo_root: Path,
    source_contents: Mapping[str, str],
) -> list[MergeResult]:
    """Generate rules for every configured target."""
    return RuleGenerator(config, repo_root, source_contents).generate_all()
