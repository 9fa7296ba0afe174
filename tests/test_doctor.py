"""Tests for repository diagnostics."""

import tempfile
from pathlib import Path

import pytest

from skillbuilder.cache import CACHE_DIR
from skillbuilder.config import CONFIG_FILE, save_config, validate_config
from skillbuilder.doctor import check_config, run_diagnostics


def _config(files: tuple[str, ...] = ()) -> dict:
    return {
        "version": "1.0",
        "targets": ["cursor", "vscode"],
        "style": "balanced",
        "skills": [
            {
                "id": "core",
                "name": "Core",
                "goal": "Work safely in this repo",
                "sources": {"files": list(files)},
            },
        ],
    }


class TestDoctor:
    """Test doctor checks."""

    @pytest.fixture
    def repo(self) -> Path:
        """Create a temporary git repository."""
        with tempfile.TemporaryDirectory() as temp_dir:
            repo_path = Path(temp_dir).resolve()
            (repo_path / ".git").mkdir()
            yield repo_path

    def test_healthy_repo(self, repo: Path) -> None:
        """Test that a built repo passes every check."""
        (repo / "README.md").write_text("readme")
        (repo / CACHE_DIR).mkdir(parents=True)
        save_config(validate_config(_config(("README.md",))), repo)

        results = run_diagnostics(repo)

        assert all(r.passed for r in results), [r.message for r in results if not r.passed]
        messages = [r.message for r in results]
        assert "Repository root found" in messages
        assert "Configuration loaded successfully" in messages
        assert "Targets configured: cursor, vscode" in messages
        assert "Output path writable: cursor" in messages

    def test_missing_config(self, repo: Path) -> None:
        """Test that a missing config stops further checks."""
        results = run_diagnostics(repo)

        assert results[-1].passed is False
        assert results[-1].message.startswith("Configuration error:")
        assert results[-1].fix == f"Check {CONFIG_FILE} for errors"

    def test_missing_source_and_cache(self, repo: Path) -> None:
        """Test that missing source files and cache are reported with fixes."""
        config = validate_config(_config(("docs/missing.md",)))

        failed = [r for r in check_config(config, repo) if not r.passed]

        assert [r.message for r in failed] == [
            "Source file not found: docs/missing.md",
            "Cache directory missing",
        ]
        assert failed[0].fix == "Check path or remove from skill: core"
        assert failed[1].fix == "Run: skillbuilder build"

    def test_no_skills(self, repo: Path) -> None:
        """Test the empty skills check."""
        data = _config()
        data["skills"] = []
        results = check_config(validate_config(data), repo)

        assert any(r.message == "No skills defined" and not r.passed for r in results)

    def test_not_a_git_repo(self) -> None:
        """Test the result outside any repository."""
        with tempfile.TemporaryDirectory() as temp_dir:
            start = Path(temp_dir)
            results = run_diagnostics(start)
            if len(results) > 1:
                pytest.skip("temporary directory is inside a git repository")

        assert results[0].passed is False
        assert results[0].message == "Not in a git repository"
