"""Tests for the source ingestion pipeline."""

from __future__ import annotations

import tempfile
from pathlib import Path

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from skillbuilder.cache import SourceCache
from skillbuilder.exceptions import FetchTimeoutError, SourceError
from skillbuilder.hashing import digest
from skillbuilder.ingestion import (
    SECTION_SEPARATOR,
    IngestionPipeline,
    build_all_skills,
    build_skill,
    fold_sources,
    format_section,
)
from skillbuilder.models import (
    CachedContent,
    Limits,
    Skill,
    SkillBuilderConfig,
    SkillSources,
)

DOC_URL = "https://example.com/docs"


def _config(*skills: Skill, limits: Limits | None = None) -> SkillBuilderConfig:
    return SkillBuilderConfig(
        version="1.0",
        targets=("cursor",),
        skills=skills,
        limits=limits or Limits(),
    )


def _skill(urls: tuple[str, ...] = (), files: tuple[str, ...] = ()) -> Skill:
    return Skill(
        id="core",
        name="Core",
        goal="Work safely",
        sources=SkillSources(urls=urls, files=files),
    )


def _no_fetch(url: str, **_: object) -> str:
    raise AssertionError(f"unexpected fetch of {url}")


class TestFoldSources:
    def test_collects_sections_and_counts(self) -> None:
        result = fold_sources(
            [("url", "u1"), ("file", "f1"), ("file", "f2")],
            lambda kind, identifier: identifier.upper(),
        )
        assert result.sections == (
            format_section("u1", "U1"),
            format_section("f1", "F1"),
            format_section("f2", "F2"),
        )
        assert result.counts.urls == 1
        assert result.counts.files == 2
        assert result.failures == ()

    def test_failure_is_skipped_and_recorded(self) -> None:
        def resolve(kind: str, identifier: str) -> str:
            if identifier == "bad":
                raise SourceError("HTTP 500: Internal Server Error")
            return "ok"

        with capture_logs() as logs:
            result = fold_sources([("url", "bad"), ("url", "good")], resolve)

        assert result.counts.urls == 1
        assert result.sections == (format_section("good", "ok"),)
        assert result.failures[0].identifier == "bad"
        assert "HTTP 500" in result.failures[0].reason
        assert any(
            entry["event"] == "source_failed" and entry["log_level"] == "warning"
            for entry in logs
        )

    def test_unexpected_error_propagates(self) -> None:
        def resolve(kind: str, identifier: str) -> str:
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            fold_sources([("url", "x")], resolve)


class TestIngestionPipeline:
    @pytest.fixture
    def repo(self) -> Path:
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    def test_cache_hit_skips_fetch(self, repo: Path) -> None:
        cache = SourceCache(repo)
        cache.put(
            CachedContent(
                digest=digest(DOC_URL),
                url=DOC_URL,
                content="from cache",
                fetched_at_millis=1,
                char_count=10,
            ),
        )
        skill = _skill(urls=(DOC_URL,))
        pipeline = IngestionPipeline(_config(skill), repo, cache=cache, fetch=_no_fetch)

        result = pipeline.build_skill(skill)

        assert result.content == format_section(DOC_URL, "from cache")
        assert result.sources.urls == 1

    def test_miss_fetches_and_caches(self, repo: Path) -> None:
        calls: list[tuple[str, int, float]] = []

        def fetch(url: str, max_chars: int, timeout: float) -> str:
            calls.append((url, max_chars, timeout))
            return "fetched"

        skill = _skill(urls=(DOC_URL,))
        limits = Limits(maxUrlChars=500)
        pipeline = IngestionPipeline(_config(skill, limits=limits), repo, fetch=fetch)

        pipeline.build_skill(skill)
        pipeline.build_skill(skill)

        assert calls == [(DOC_URL, 500, 10.0)]
        cached = SourceCache(repo).get(digest(DOC_URL))
        assert cached.content == "fetched"
        assert cached.char_count == 7
        assert cached.url == DOC_URL

    def test_empty_cached_content_refetches(self, repo: Path) -> None:
        cache = SourceCache(repo)
        cache.put(
            CachedContent(
                digest=digest(DOC_URL),
                url=DOC_URL,
                content="",
                fetched_at_millis=1,
                char_count=0,
            ),
        )
        skill = _skill(urls=(DOC_URL,))
        pipeline = IngestionPipeline(
            _config(skill),
            repo,
            cache=cache,
            fetch=lambda url, **_: "fresh",
        )

        assert pipeline.build_skill(skill).content == format_section(DOC_URL, "fresh")

    def test_timeout_skips_only_that_source(self, repo: Path) -> None:
        slow = "https://slow.example.com"

        def fetch(url: str, **_: object) -> str:
            if url == slow:
                raise FetchTimeoutError(f"Timed out after 10s fetching {url}")
            return "fast content"

        skill = _skill(urls=(slow, DOC_URL))
        result = IngestionPipeline(_config(skill), repo, fetch=fetch).build_skill(skill)

        assert result.sources.urls == 1
        assert result.sources.files == 0
        assert result.content == format_section(DOC_URL, "fast content")
        assert [f.identifier for f in result.failures] == [slow]

    def test_urls_before_files(self, repo: Path) -> None:
        (repo / "README.md").write_text("readme", encoding="utf-8")
        skill = _skill(urls=(DOC_URL,), files=("./README.md",))
        pipeline = IngestionPipeline(_config(skill), repo, fetch=lambda url, **_: "remote")

        result = pipeline.build_skill(skill)

        assert result.content == SECTION_SEPARATOR.join([
            format_section(DOC_URL, "remote"),
            format_section("./README.md", "readme"),
        ])
        assert result.sources.urls == 1
        assert result.sources.files == 1

    def test_file_entries_cached_by_path(self, repo: Path) -> None:
        (repo / "README.md").write_text("readme", encoding="utf-8")
        skill = _skill(files=("README.md",))
        IngestionPipeline(_config(skill), repo).build_skill(skill)

        cached = SourceCache(repo).get(digest("README.md"))
        assert cached.file_path == "README.md"
        assert cached.url is None

    def test_missing_file_is_skipped(self, repo: Path) -> None:
        skill = _skill(files=("missing.md",))
        result = IngestionPipeline(_config(skill), repo).build_skill(skill)

        assert result.content == ""
        assert result.sources.files == 0
        assert len(result.failures) == 1

    def test_total_content_truncated(self, repo: Path) -> None:
        urls = tuple(f"https://example.com/{i}" for i in range(5))
        skill = _skill(urls=urls)
        limits = Limits(maxGeneratedCharsPerFile=100)
        pipeline = IngestionPipeline(
            _config(skill, limits=limits),
            repo,
            fetch=lambda url, **_: "z" * 80,
        )

        result = pipeline.build_skill(skill)

        assert len(result.content) == 100
        assert result.sources.urls == 5

    def test_no_sources(self, repo: Path) -> None:
        skill = _skill()
        result = IngestionPipeline(_config(skill), repo, fetch=_no_fetch).build_skill(skill)
        assert result.content == ""
        assert result.sources.urls == 0
        assert result.sources.files == 0

    def test_fetches_over_http(self, repo: Path) -> None:
        skill = _skill(urls=(DOC_URL,))
        with respx.mock:
            respx.get(DOC_URL).mock(return_value=httpx.Response(200, text="Hello"))
            result = build_skill(skill, _config(skill), repo)

        assert result.content == f"### Source: {DOC_URL}\n\nHello"
        assert result.sources.urls == 1


class TestBuildAllSkills:
    def test_keyed_by_skill_id(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = Path(temp_dir)
            (repo / "a.md").write_text("A", encoding="utf-8")
            first = Skill(
                id="first",
                name="First",
                goal="First goal",
                sources=SkillSources(files=("a.md",)),
            )
            second = Skill(id="second", name="Second", goal="Second goal")

            contents = build_all_skills(_config(first, second), repo, fetch=_no_fetch)

        assert contents == {"first": format_section("a.md", "A"), "second": ""}

    def test_module_functions_forward_timeout(self) -> None:
        timeouts: list[float] = []

        def fetch(url: str, max_chars: int, timeout: float) -> str:
            timeouts.append(timeout)
            return "docs"

        with tempfile.TemporaryDirectory() as temp_dir:
            repo = Path(temp_dir)
            skill = _skill(urls=(DOC_URL,))
            build_skill(skill, _config(skill), repo, fetch=fetch, timeout=2.5)

            other = Skill(
                id="other",
                name="Other",
                goal="Other goal",
                sources=SkillSources(urls=("https://example.com/other",)),
            )
            build_all_skills(_config(other), repo, fetch=fetch, timeout=4.0)

        assert timeouts == [2.5, 4.0]
