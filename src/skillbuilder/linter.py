"""Static checks over configured skills."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from .models import Skill, SkillBuilderConfig

MIN_GOAL_CHARS = 10
MAX_GOAL_CHARS = 500


class LintSeverity(str, Enum):
    """Lint issue severity levels."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class LintIssue:
    """A single problem found in a skill definition."""

    severity: LintSeverity
    skill_id: str
    message: str


def is_valid_glob(pattern: str) -> bool:
    """Check that a scope glob is non-empty and has balanced brackets and braces."""
    if not pattern.strip():
        return False

    depth = {"[": 0, "{": 0}
    closers = {"]": "[", "}": "{"}
    escaped = False
    for char in pattern:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in depth:
            depth[char] += 1
        elif char in closers:
            opener = closers[char]
            if depth[opener] == 0:
                return False
            depth[opener] -= 1
    return not any(depth.values())


def is_valid_url(url: str) -> bool:
    """Check that ``url`` is an absolute http(s) URL with a host."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def lint_skill(skill: Skill) -> list[LintIssue]:
    """Return all issues found in one skill."""
    issues: list[LintIssue] = []

    def add(severity: LintSeverity, message: str) -> None:
        issues.append(LintIssue(severity, skill.id, message))

    goal = skill.goal.strip()
    if len(goal) < MIN_GOAL_CHARS:
        add(LintSeverity.WARNING, "Goal statement is very short")
    elif len(goal) > MAX_GOAL_CHARS:
        add(LintSeverity.WARNING, f"Goal statement is very long (>{MAX_GOAL_CHARS} chars)")

    for scope in skill.scopes:
        if not is_valid_glob(scope):
            add(LintSeverity.ERROR, f"Invalid glob pattern: {scope}")

    if not skill.sources.urls and not skill.sources.files:
        add(LintSeverity.WARNING, "No sources defined (URLs or files)")

    for url in skill.sources.urls:
        if not is_valid_url(url):
            add(LintSeverity.ERROR, f"Invalid URL: {url}")

    return issues


def lint_config(config: SkillBuilderConfig) -> list[LintIssue]:
    """Lint every skill, plus duplicate ids across skills."""
    issues: list[LintIssue] = []
    seen: set[str] = set()
    for skill in config.skills:
        if skill.id in seen:
            issues.append(LintIssue(LintSeverity.ERROR, skill.id, "Duplicate skill id"))
        seen.add(skill.id)
        issues.extend(lint_skill(skill))
    return issues
