"""Tests for the content-addressed source cache."""

import json
import tempfile
from pathlib import Path

import pytest

from skillbuilder.cache import CACHE_DIR, SourceCache
from skillbuilder.hashing import digest
from skillbuilder.models import CachedContent


def _entry(identifier: str, content: str = "cached text") -> CachedContent:
    return CachedContent(
        digest=digest(identifier),
        url=identifier,
        content=content,
        fetched_at_millis=1_700_000_000_000,
        char_count=len(content),
    )


class TestSourceCache:
    """Test SourceCache persistence."""

    @pytest.fixture
    def repo(self) -> Path:
        """Create a temporary repository root."""
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    def test_miss_on_empty_cache(self, repo: Path) -> None:
        """Test that a missing index is an empty cache."""
        cache = SourceCache(repo)
        assert cache.get(digest("https://example.com")) is None
        assert cache.load_index() == {}

    def test_put_then_get(self, repo: Path) -> None:
        """Test that a stored entry can be read back by digest."""
        cache = SourceCache(repo)
        entry = _entry("https://example.com")
        cache.put(entry)

        assert cache.get(entry.digest) == entry
        assert SourceCache(repo).get(entry.digest) == entry

    def test_put_writes_index_and_record(self, repo: Path) -> None:
        """Test the on-disk layout and key names."""
        cache = SourceCache(repo)
        entry = _entry("https://example.com")
        cache.put(entry)

        cache_dir = repo / CACHE_DIR
        index = json.loads((cache_dir / "index.json").read_text())
        record = json.loads((cache_dir / f"{entry.digest}.json").read_text())

        assert set(index) == {entry.digest}
        assert record == index[entry.digest]
        assert record == {
            "hash": entry.digest,
            "url": "https://example.com",
            "content": "cached text",
            "timestamp": 1_700_000_000_000,
            "charCount": 11,
        }

    def test_put_overwrites_existing(self, repo: Path) -> None:
        """Test that a second put for the same digest replaces the first."""
        cache = SourceCache(repo)
        cache.put(_entry("https://example.com", "old"))
        cache.put(_entry("https://example.com", "new"))

        assert cache.get(digest("https://example.com")).content == "new"
        assert len(cache.load_index()) == 1

    def test_corrupt_index_is_empty_cache(self, repo: Path) -> None:
        """Test that an unparseable index degrades to a miss."""
        cache_dir = repo / CACHE_DIR
        cache_dir.mkdir(parents=True)
        (cache_dir / "index.json").write_text("{not json")

        cache = SourceCache(repo)
        assert cache.get(digest("https://example.com")) is None

        # A later put recovers the index
        cache.put(_entry("https://example.com"))
        assert cache.get(digest("https://example.com")) is not None

    def test_non_object_index_is_empty_cache(self, repo: Path) -> None:
        """Test that a JSON array index is ignored."""
        cache_dir = repo / CACHE_DIR
        cache_dir.mkdir(parents=True)
        (cache_dir / "index.json").write_text("[]")

        assert SourceCache(repo).load_index() == {}

    def test_invalid_entries_skipped(self, repo: Path) -> None:
        """Test that malformed entries are dropped and valid ones kept."""
        good = _entry("https://example.com")
        cache_dir = repo / CACHE_DIR
        cache_dir.mkdir(parents=True)
        (cache_dir / "index.json").write_text(json.dumps({
            good.digest: good.model_dump(mode="json", by_alias=True),
            "bad": {"hash": "bad"},
        }))

        index = SourceCache(repo).load_index()
        assert list(index) == [good.digest]
