"""Region-based merge of generated content into user-owned files.

Generated text lives between a begin and an end marker keyed by a block id::

    <!-- skillbuilder:begin core -->
    ...generated...
    <!-- skillbuilder:end core -->

Everything outside recognised markers belongs to the user and is written back
byte for byte. Markers are located with a literal first-occurrence search, so
if a marker is duplicated only the first copy of each is honoured.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

from .exceptions import MergeError
from .models import MergeOutcome, MergeResult

log = structlog.get_logger()

BLOCK_SEPARATOR = "\n\n"


def create_marker(block_id: str, is_start: bool) -> str:
    """Return the begin or end marker for ``block_id``."""
    if is_start:
        return f"<!-- skillbuilder:begin {block_id} -->"
    return f"<!-- skillbuilder:end {block_id} -->"


def wrap_content(block_id: str, content: str) -> str:
    """Surround ``content`` with the markers for ``block_id``."""
    return f"{create_marker(block_id, True)}\n{content}\n{create_marker(block_id, False)}"


def find_block(text: str, block_id: str) -> tuple[int, int] | None:
    """Locate the marked span for ``block_id``.

    Args:
        text: Existing file content
        block_id: Block identifier

    Returns:
        ``(start, end)`` such that ``text[start:end]`` runs from the first
        begin marker through the first end marker inclusive, or None when
        either marker is missing or the end marker precedes the begin marker
    """
    begin_marker = create_marker(block_id, True)
    end_marker = create_marker(block_id, False)

    start = text.find(begin_marker)
    end = text.find(end_marker)
    if start == -1 or end == -1 or end < start:
        return None
    return start, end + len(end_marker)


def splice_block(text: str, block_id: str, content: str) -> str | None:
    """Replace the marked span for ``block_id``, or None if it is not present."""
    span = find_block(text, block_id)
    if span is None:
        return None
    start, end = span
    return text[:start] + wrap_content(block_id, content) + text[end:]


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Failed to read {path}: {e}"
        raise MergeError(msg, details={"path": str(path)}) from e


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        msg = f"Failed to write {path}: {e}"
        raise MergeError(msg, details={"path": str(path)}) from e


def safe_merge(
    file_path: Path,
    block_id: str,
    new_content: str,
    interactive: bool = True,
) -> MergeResult:
    """Write ``new_content`` into the ``block_id`` region of ``file_path``.

    Args:
        file_path: Target file
        block_id: Block identifier used in the markers
        new_content: Text to place between the markers
        interactive: When True, a file without markers is left untouched and
            a conflict is reported. When False, the whole file is replaced
            with a freshly wrapped block so automated runs always converge.

    Returns:
        The merge outcome

    Raises:
        MergeError: If the target cannot be read or written
    """
    path = Path(file_path)

    if not path.exists():
        _write(path, wrap_content(block_id, new_content))
        return MergeResult(MergeOutcome.CREATED, f"Created {path}", path)

    existing = _read(path)
    merged = splice_block(existing, block_id, new_content)

    if merged is None:
        if interactive:
            log.warning("merge_conflict", path=str(path), block_id=block_id)
            return MergeResult(
                MergeOutcome.CONFLICT,
                f"Markers missing in {path}. Manual intervention required.",
                path,
            )
        _write(path, wrap_content(block_id, new_content))
        return MergeResult(
            MergeOutcome.UPDATED,
            f"Overwrote {path} (markers were missing)",
            path,
        )

    _write(path, merged)
    return MergeResult(MergeOutcome.UPDATED, f"Updated {path}", path)


def merge_blocks(
    file_path: Path,
    blocks: Iterable[tuple[str, str]],
    interactive: bool = True,
) -> MergeResult:
    """Merge several ``(block_id, content)`` pairs in one read-modify-write.

    Blocks whose markers are missing are appended at the end of the file
    instead of conflicting, so ``interactive`` does not change the result.

    Raises:
        MergeError: If the target cannot be read or written
    """
    path = Path(file_path)
    pairs = list(blocks)

    if not pairs:
        return MergeResult(MergeOutcome.SKIPPED, f"No blocks to write to {path}", path)

    if not path.exists():
        _write(path, BLOCK_SEPARATOR.join(wrap_content(b, c) for b, c in pairs))
        return MergeResult(MergeOutcome.CREATED, f"Created {path}", path)

    text = _read(path)
    for block_id, content in pairs:
        merged = splice_block(text, block_id, content)
        if merged is None:
            log.debug("merge_block_appended", path=str(path), block_id=block_id)
            merged = text + BLOCK_SEPARATOR + wrap_content(block_id, content)
        text = merged

    _write(path, text)
    return MergeResult(MergeOutcome.UPDATED, f"Updated {path}", path)
