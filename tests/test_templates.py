"""Tests for rule style templates."""

import pytest

from skillbuilder.models import (
    FormattingConstraints,
    RuleStyle,
    Skill,
    SkillConstraints,
)
from skillbuilder.templates import (
    render_balanced,
    render_minimal,
    render_strict,
    render_template,
)


class TestTemplates:
    """Test each template renderer."""

    @pytest.fixture
    def skill(self) -> Skill:
        """Create a skill with every constraint set."""
        return Skill(
            id="api",
            name="API Rules",
            goal="Design consistent HTTP endpoints",
            scopes=("src/api/**", "tests/api/**"),
            constraints=SkillConstraints(
                tone="concise",
                safety="strict",
                formatting=FormattingConstraints(no_em_dash=True),
            ),
        )

    def test_strict(self, skill: Skill) -> None:
        """Test strict layout with reference material."""
        output = render_strict(skill, "Reference body")

        assert output.startswith("# API Rules\n\n## Goal\nDesign consistent HTTP endpoints")
        assert "## Do\n- Follow existing patterns exactly" in output
        assert "- Use em-dashes in output (use hyphens instead)" in output
        assert output.endswith("## Reference\nReference body")

    def test_balanced(self, skill: Skill) -> None:
        """Test balanced layout with documentation."""
        output = render_balanced(skill, "Doc body")

        assert "## Purpose\nDesign consistent HTTP endpoints" in output
        assert "### Preferred patterns" in output
        assert "### Safety rules" in output
        assert output.endswith("## Documentation\nDoc body")

    def test_minimal_omits_sources(self, skill: Skill) -> None:
        """Test that minimal style never includes source content."""
        output = render_minimal(skill, "Doc body")

        assert "Doc body" not in output
        assert "## Key constraints" in output

    def test_constraints_listed(self, skill: Skill) -> None:
        """Test constraint bullet rendering."""
        output = render_balanced(skill)

        assert "- Tone: concise" in output
        assert "- Safety level: strict" in output
        assert "- Never use em-dashes, use hyphens instead" in output
        assert "- Applies to: src/api/**, tests/api/**" in output

    def test_default_constraints_text(self) -> None:
        """Test the fallback text when no constraints are set."""
        skill = Skill(id="core", name="Core", goal="Work safely")
        assert "Follow best practices and maintain code quality." in render_minimal(skill)

    def test_no_source_section_without_content(self, skill: Skill) -> None:
        """Test that empty source content adds no section."""
        assert "## Reference" not in render_strict(skill, "")
        assert "## Documentation" not in render_balanced(skill, None)

    def test_render_template_dispatch(self, skill: Skill) -> None:
        """Test style dispatch and the balanced fallback."""
        assert render_template(skill, RuleStyle.STRICT) == render_strict(skill)
        assert render_template(skill, "minimal") == render_minimal(skill)
        assert render_template(skill, "unknown") == render_balanced(skill)
