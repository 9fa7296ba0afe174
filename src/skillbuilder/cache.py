"""Content-addressed source cache.

Fetched and read sources are stored under ``.skillbuilder/cache`` in the
repository root. A single ``index.json`` maps digest to entry; each entry is
also written to ``<digest>.json`` so it can be inspected by hand.

The index is loaded in full on every lookup and rewritten in full on every
``put``. There is no locking: two processes writing different digests at the
same time can lose one of the writes (last writer wins on the whole index).
Read failures of any kind degrade to an empty cache; write failures raise
``CacheError``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from .exceptions import CacheError
from .models import CachedContent

log = structlog.get_logger()

CACHE_DIR = Path(".skillbuilder") / "cache"
INDEX_FILE = "index.json"


class SourceCache:
    """JSON-file cache of source content keyed by identifier digest."""

    def __init__(self, repo_root: Path) -> None:
        """Initialize cache for a repository.

        Args:
            repo_root: Repository root that owns the ``.skillbuilder`` directory
        """
        self.repo_root = Path(repo_root)
        self.cache_dir = self.repo_root / CACHE_DIR

    @property
    def index_path(self) -> Path:
        return self.cache_dir / INDEX_FILE

    def _ensure_dir(self) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir

    def load_index(self) -> dict[str, CachedContent]:
        """Load the full index, treating any corruption as an empty cache."""
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            log.warning("cache_index_unreadable", path=str(self.index_path), error=str(e))
            return {}

        if not isinstance(raw, dict):
            log.warning("cache_index_unreadable", path=str(self.index_path), error="not an object")
            return {}

        index: dict[str, CachedContent] = {}
        for key, value in raw.items():
            try:
                index[key] = CachedContent.model_validate(value)
            except ValidationError:
                log.warning("cache_entry_invalid", digest=key)
        return index

    def save_index(self, index: dict[str, CachedContent]) -> None:
        """Rewrite the whole index file.

        Raises:
            CacheError: If the cache directory or index cannot be written
        """
        payload = {key: _dump(entry) for key, entry in index.items()}
        try:
            self._ensure_dir()
            self.index_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            msg = f"Failed to write cache index: {e}"
            raise CacheError(msg, details={"path": str(self.index_path)}) from e

    def get(self, digest: str) -> CachedContent | None:
        """Return the cached entry for ``digest`` or None on a miss."""
        return self.load_index().get(digest)

    def put(self, entry: CachedContent) -> None:
        """Insert or overwrite an entry and persist its per-digest record.

        Raises:
            CacheError: If either file cannot be written
        """
        index = self.load_index()
        index[entry.digest] = entry
        self.save_index(index)

        record_path = self.cache_dir / f"{entry.digest}.json"
        try:
            record_path.write_text(json.dumps(_dump(entry), indent=2), encoding="utf-8")
        except OSError as e:
            msg = f"Failed to write cache record: {e}"
            raise CacheError(msg, details={"path": str(record_path)}) from e

        log.debug("cache_put", digest=entry.digest, origin=entry.origin_identifier)


def _dump(entry: CachedContent) -> dict[str, Any]:
    return entry.model_dump(mode="json", by_alias=True, exclude_none=True)
