"""Markdown templates for each rule style."""

from __future__ import annotations

from .models import RuleStyle, Skill


def _format_constraints(skill: Skill) -> str:
    constraints: list[str] = []

    if skill.constraints.tone:
        constraints.append(f"- Tone: {skill.constraints.tone}")
    if skill.constraints.safety:
        constraints.append(f"- Safety level: {skill.constraints.safety}")
    if skill.constraints.formatting.no_em_dash:
        constraints.append("- Never use em-dashes, use hyphens instead")
    if skill.scopes:
        constraints.append(f"- Applies to: {', '.join(skill.scopes)}")

    if not constraints:
        return "Follow best practices and maintain code quality."
    return "\n".join(constraints)


def render_strict(skill: Skill, source_content: str | None = None) -> str:
    """Short imperative rules, cautious about refactors."""
    em_dash_note = " (use hyphens instead)" if skill.constraints.formatting.no_em_dash else ""
    sections = [
        f"# {skill.name}",
        "",
        "## Goal",
        skill.goal,
        "",
        "## Constraints",
        _format_constraints(skill),
        "",
        "## Do",
        "- Follow existing patterns exactly",
        "- Run tests before committing",
        "- Ask before large refactors",
        "- Preserve existing code style",
        "",
        "## Don't",
        "- Make destructive changes without confirmation",
        "- Modify generated files",
        "- Touch infrastructure without approval",
        f"- Use em-dashes in output{em_dash_note}",
    ]
    if source_content:
        sections.extend(["", "## Reference", source_content])
    return "\n".join(sections).strip()


def render_balanced(skill: Skill, source_content: str | None = None) -> str:
    """Rules plus preferred patterns, safety rules and common commands."""
    sections = [
        f"# {skill.name}",
        "",
        "## Purpose",
        skill.goal,
        "",
        "## Working in this project",
        _format_constraints(skill),
        "",
        "### Preferred patterns",
        "- Follow existing code conventions",
        "- Write clear, maintainable code",
        "- Add tests for new features",
        "- Document complex logic",
        "",
        "### Safety rules",
        "- Run tests before committing",
        "- Ask before major refactors",
        "- Don't modify generated folders",
        "- Preserve user configurations",
        "",
        "### Commands",
        "```bash",
        "# Install dependencies",
        "npm install",
        "",
        "# Run development server",
        "npm run dev",
        "",
        "# Run tests",
        "npm test",
        "",
        "# Build for production",
        "npm run build",
        "```",
    ]
    if source_content:
        sections.extend(["", "## Documentation", source_content])
    return "\n".join(sections).strip()


def render_minimal(skill: Skill, source_content: str | None = None) -> str:
    """High-level constraints only; source content is not included."""
    sections = [
        f"# {skill.name}",
        "",
        skill.goal,
        "",
        "## Key constraints",
        _format_constraints(skill),
        "",
        "## Safety",
        "- Run tests before committing",
        "- Ask before destructive changes",
    ]
    return "\n".join(sections).strip()


_RENDERERS = {
    RuleStyle.STRICT: render_strict,
    RuleStyle.BALANCED: render_balanced,
    RuleStyle.MINIMAL: render_minimal,
}


def render_template(
    skill: Skill,
    style: RuleStyle | str,
    source_content: str | None = None,
) -> str:
    """Render ``skill`` in the given style, defaulting to balanced."""
    try:
        renderer = _RENDERERS[RuleStyle(style)]
    except ValueError:
        renderer = render_balanced
    return renderer(skill, source_content)
