"""Resolve skill sources into one content blob per skill."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from .cache import SourceCache
from .exceptions import CacheError, SourceError
from .hashing import digest
from .models import (
    BuildResult,
    CachedContent,
    Skill,
    SkillBuilderConfig,
    SourceCounts,
    SourceFailure,
)
from .sources import DEFAULT_TIMEOUT_SECONDS, fetch_source, read_source

log = structlog.get_logger()

SECTION_SEPARATOR = "\n\n---\n\n"

FetchFn = Callable[..., str]
ReadFn = Callable[..., str]

URL = "url"
FILE = "file"


@dataclass(frozen=True)
class FoldResult:
    """Accumulated outcome of resolving a skill's sources in order."""

    sections: tuple[str, ...]
    counts: SourceCounts
    failures: tuple[SourceFailure, ...]


def format_section(identifier: str, content: str) -> str:
    """Label a source's content for inclusion in a skill blob."""
    return f"### Source: {identifier}\n\n{content}"


def fold_sources(
    sources: Iterable[tuple[str, str]],
    resolve: Callable[[str, str], str],
) -> FoldResult:
    """Resolve ``(kind, identifier)`` pairs in order, skipping failures.

    A source that raises ``SourceError``, ``CacheError`` or ``OSError`` is
    logged and recorded as a failure; later sources are still resolved.
    Anything else propagates.
    """
    sections: list[str] = []
    failures: list[SourceFailure] = []
    urls = files = 0

    for kind, identifier in sources:
        try:
            content = resolve(kind, identifier)
        except (SourceError, CacheError, OSError) as e:
            log.warning("source_failed", kind=kind, source=identifier, error=str(e))
            failures.append(SourceFailure(identifier=identifier, reason=str(e)))
            continue

        sections.append(format_section(identifier, content))
        if kind == URL:
            urls += 1
        else:
            files += 1

    return FoldResult(
        sections=tuple(sections),
        counts=SourceCounts(urls=urls, files=files),
        failures=tuple(failures),
    )


class IngestionPipeline:
    """Builds skill content from cached, fetched and read sources."""

    def __init__(
        self,
        config: SkillBuilderConfig,
        repo_root: Path,
        cache: SourceCache | None = None,
        fetch: FetchFn = fetch_source,
        read: ReadFn = read_source,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Loaded configuration; limits are taken from it
            repo_root: Repository root for relative file sources and the cache
            cache: Source cache, defaults to the repository's cache
            fetch: ``fetch(url, max_chars=..., timeout=...)`` collaborator
            read: ``read(path, repo_root, max_chars=...)`` collaborator
            timeout: Per-URL fetch timeout in seconds
        """
        self.config = config
        self.repo_root = Path(repo_root)
        self.cache = cache or SourceCache(self.repo_root)
        self.fetch = fetch
        self.read = read
        self.timeout = timeout

    def _resolve(self, kind: str, identifier: str) -> str:
        key = digest(identifier)
        cached = self.cache.get(key)
        if cached is not None and cached.content:
            log.debug("cache_hit", source=identifier, digest=key)
            return cached.content

        limits = self.config.limits
        if kind == URL:
            content = self.fetch(identifier, max_chars=limits.max_url_chars, timeout=self.timeout)
        else:
            content = self.read(identifier, self.repo_root, max_chars=limits.max_file_chars)

        origin = {"url": identifier} if kind == URL else {"file_path": identifier}
        self.cache.put(
            CachedContent(
                digest=key,
                content=content,
                fetched_at_millis=int(time.time() * 1000),
                char_count=len(content),
                **origin,
            ),
        )
        return content

    def build_skill(self, skill: Skill) -> BuildResult:
        """Resolve every source of ``skill`` and concatenate the results.

        URLs are resolved before files, each in declaration order. The joined
        text is cut at ``limits.max_generated_chars_per_file`` characters.
        """
        sources = [(URL, url) for url in skill.sources.urls]
        sources.extend((FILE, path) for path in skill.sources.files)

        folded = fold_sources(sources, self._resolve)
        full_content = SECTION_SEPARATOR.join(folded.sections)
        limit = self.config.limits.max_generated_chars_per_file

        log.info(
            "skill_built",
            skill=skill.id,
            urls=folded.counts.urls,
            files=folded.counts.files,
            failed=len(folded.failures),
        )
        return BuildResult(
            skill_id=skill.id,
            content=full_content[:limit],
            sources=folded.counts,
            failures=folded.failures,
        )

    def build_all(self) -> list[BuildResult]:
        """Build every configured skill in order.

        Source failures are absorbed per skill; any other error stops the batch.
        """
        return [self.build_skill(skill) for skill in self.config.skills]


def build_skill(
    skill: Skill,
    config: SkillBuilderConfig,
    repo_root: Path,
    cache: SourceCache | None = None,
    fetch: FetchFn = fetch_source,
    read: ReadFn = read_source,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> BuildResult:
    """Build one skill with a pipeline for ``repo_root``."""
    pipeline = IngestionPipeline(
        config,
        repo_root,
        cache=cache,
        fetch=fetch,
        read=read,
        timeout=timeout,
    )
    return pipeline.build_skill(skill)


def build_all_skills(
    config: SkillBuilderConfig,
    repo_root: Path,
    cache: SourceCache | None = None,
    fetch: FetchFn = fetch_source,
    read: ReadFn = read_source,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> dict[str, str]:
    """Build every skill and return content keyed by skill id."""
    pipeline = IngestionPipeline(
        config,
        repo_root,
        cache=cache,
        fetch=fetch,
        read=read,
        timeout=timeout,
    )
    return {result.skill_id: result.content for result in pipeline.build_all()}
