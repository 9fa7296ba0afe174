"""Core data models for SkillBuilder."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EditorTarget(str, Enum):
    """Editors whose instruction-file layout SkillBuilder can generate."""

    CURSOR = "cursor"
    WINDSURF = "windsurf"
    VSCODE = "vscode"
    ANTIGRAVITY = "antigravity"


class RuleStyle(str, Enum):
    """Rendering verbosity presets."""

    STRICT = "strict"
    BALANCED = "balanced"
    MINIMAL = "minimal"


class _FrozenModel(BaseModel):
    """Immutable model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SkillSources(_FrozenModel):
    """Documentation sources attached to a skill."""

    urls: tuple[str, ...] = Field(default=(), description="Remote documentation URLs")
    files: tuple[str, ...] = Field(
        default=(),
        description="Local files, relative to the repository root or absolute",
    )


class FormattingConstraints(_FrozenModel):
    """Output formatting constraints for a skill."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    no_em_dash: bool = Field(
        default=False,
        alias="noEmDash",
        description="Forbid em-dashes in generated output",
    )


class SkillConstraints(_FrozenModel):
    """Behavioural constraints rendered into every template."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    tone: str | None = Field(default=None, description="Preferred tone")
    safety: str | None = Field(default=None, description="Safety level")
    formatting: FormattingConstraints = Field(
        default_factory=FormattingConstraints,
        description="Formatting preferences",
    )


class Skill(_FrozenModel):
    """A named rule set with a goal, path scopes and documentation sources."""

    id: str = Field(..., description="Slug, unique within the config")
    name: str = Field(..., description="Human-readable skill name")
    goal: str = Field(..., description="What the skill is for")
    scopes: tuple[str, ...] = Field(
        default=(),
        description="Glob patterns the skill applies to",
    )
    sources: SkillSources = Field(default_factory=SkillSources)
    constraints: SkillConstraints = Field(default_factory=SkillConstraints)

    @field_validator("id", "name", "goal")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty identity fields."""
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v


class DirOutput(_FrozenModel):
    """Output location for targets that write one file per skill."""

    dir: str


class WindsurfOutput(_FrozenModel):
    """Windsurf output: per-skill rules plus an optional aggregated file."""

    dir: str = ".windsurf/rules"
    global_file: str | None = Field(
        default=".windsurf/global_rules.md",
        alias="global",
        description="Aggregated rules file; null disables it",
    )


class FileOutput(_FrozenModel):
    """Output location for targets that write a single aggregated file."""

    file: str


class OutputConfig(_FrozenModel):
    """Per-target output paths, relative to the repository root."""

    cursor: DirOutput = Field(default_factory=lambda: DirOutput(dir=".cursor/rules"))
    windsurf: WindsurfOutput = Field(default_factory=WindsurfOutput)
    vscode: FileOutput = Field(
        default_factory=lambda: FileOutput(file=".github/copilot-instructions.md"),
    )
    antigravity: DirOutput = Field(
        default_factory=lambda: DirOutput(dir=".antigravity/rules"),
    )


class Limits(_FrozenModel):
    """Character ceilings applied during ingestion."""

    max_url_chars: int = Field(default=12000, alias="maxUrlChars", gt=0)
    max_file_chars: int = Field(default=12000, alias="maxFileChars", gt=0)
    max_generated_chars_per_file: int = Field(
        default=18000,
        alias="maxGeneratedCharsPerFile",
        gt=0,
    )


class SkillBuilderConfig(_FrozenModel):
    """Complete skillbuilder.json configuration."""

    version: str = Field(..., description="Config format version")
    targets: tuple[EditorTarget, ...] = Field(..., min_length=1)
    style: RuleStyle = Field(default=RuleStyle.BALANCED)
    skills: tuple[Skill, ...] = Field(default=())
    output: OutputConfig = Field(default_factory=OutputConfig)
    limits: Limits = Field(default_factory=Limits)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Require a non-empty version string."""
        if not v.strip():
            msg = "Config missing version field"
            raise ValueError(msg)
        return v

    def get_skill(self, skill_id: str) -> Skill | None:
        """Return the skill with the given id, if any."""
        for skill in self.skills:
            if skill.id == skill_id:
                return skill
        return None

    def replace_skill(self, skill: Skill) -> SkillBuilderConfig:
        """Return a copy with the same-id skill replaced (or appended)."""
        skills = list(self.skills)
        for i, existing in enumerate(skills):
            if existing.id == skill.id:
                skills[i] = skill
                break
        else:
            skills.append(skill)
        return self.model_copy(update={"skills": tuple(skills)})

    def to_json_dict(self) -> dict[str, Any]:
        """Serialise with the camelCase keys used on disk."""
        return self.model_dump(mode="json", by_alias=True)


class CachedContent(_FrozenModel):
    """A fetched or read source, keyed by the digest of its identifier."""

    digest: str = Field(..., alias="hash")
    url: str | None = Field(default=None)
    file_path: str | None = Field(default=None, alias="filePath")
    content: str
    fetched_at_millis: int = Field(..., alias="timestamp")
    char_count: int = Field(..., alias="charCount")

    @property
    def origin_identifier(self) -> str:
        """The URL or file path this entry was resolved from."""
        return self.url if self.url is not None else (self.file_path or "")


class MergeOutcome(str, Enum):
    """Result of a single region-merge write attempt."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging one or more blocks into a target file."""

    outcome: MergeOutcome
    description: str
    path: Path | None = None

    @property
    def success(self) -> bool:
        """Conflicts are the only unsuccessful outcome."""
        return self.outcome != MergeOutcome.CONFLICT


@dataclass(frozen=True)
class SourceCounts:
    """How many sources of each kind resolved successfully."""

    urls: int = 0
    files: int = 0


@dataclass(frozen=True)
class SourceFailure:
    """A single source that was skipped during ingestion."""

    identifier: str
    reason: str


@dataclass(frozen=True)
class BuildResult:
    """Concatenated source content for one skill."""

    skill_id: str
    content: str
    sources: SourceCounts = field(default_factory=SourceCounts)
    failures: tuple[SourceFailure, ...] = ()
