"""Readers for skill documentation sources.

URL sources are fetched with a single HTTP GET and reduced to Markdown-ish
plain text; file sources are read from disk. Both truncate to a character
ceiling and raise ``SourceError`` for anything that prevents producing text,
which the ingestion pipeline treats as a skipped source.
"""

from __future__ import annotations

import re
import time
from pathlib import Path

import httpx
import lxml.html
import structlog
from lxml import etree

from .exceptions import FetchTimeoutError, SourceError

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_CHARS = 12000
USER_AGENT = "SkillBuilder/1.0 (AI Rules Generator)"

_REMOVE_XPATH = (
    "//script | //style | //nav | //header | //footer | //iframe | //noscript"
    " | //*[contains(concat(' ', normalize-space(@class), ' '), ' advertisement ')]"
    " | //*[contains(concat(' ', normalize-space(@class), ' '), ' ad ')]"
    " | //*[@id='comments']"
)
_HEADINGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
_TEXT_TYPES = ("text/", "application/json", "application/xml", "application/xhtml")
_XML_DECLARATION = re.compile(r"\A\s*<\?xml[^>]*\?>")


def build_http_client(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.Client:
    """Create an httpx client with the SkillBuilder user agent and timeout."""
    return httpx.Client(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": USER_AGENT},
    )


def _timeout_error(url: str, timeout: float) -> FetchTimeoutError:
    msg = f"Timed out after {timeout:g}s fetching {url}"
    return FetchTimeoutError(msg, details={"url": url})


def _read_body(response: httpx.Response, deadline: float, url: str, timeout: float) -> bytes:
    """Read a streamed body, aborting once ``deadline`` has passed."""
    chunks: list[bytes] = []
    if time.monotonic() > deadline:
        raise _timeout_error(url, timeout)
    for chunk in response.iter_bytes():
        if time.monotonic() > deadline:
            raise _timeout_error(url, timeout)
        chunks.append(chunk)
    return b"".join(chunks)


def fetch_source(
    url: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> str:
    """Fetch ``url`` and return its text content truncated to ``max_chars``.

    ``timeout`` is an overall deadline for the whole request. httpx limits
    each connect and read to ``timeout`` as well, and the streamed body is
    checked against the deadline after every chunk, so a server that trickles
    bytes is cut off instead of holding the request open.

    HTML responses are cleaned with :func:`clean_html`; other textual
    responses are returned as-is.

    Raises:
        FetchTimeoutError: If the request exceeds ``timeout`` seconds
        SourceError: On network errors, non-2xx responses or binary content
    """
    owns_client = client is None
    http = client or build_http_client(timeout)
    deadline = time.monotonic() + timeout
    try:
        with http.stream("GET", url, timeout=timeout) as response:
            if not response.is_success:
                msg = f"HTTP {response.status_code}: {response.reason_phrase}"
                raise SourceError(msg, details={"url": url, "status": response.status_code})

            content_type = response.headers.get("content-type", "text/html").lower()
            if not content_type.startswith(_TEXT_TYPES):
                msg = f"Unsupported content type {content_type!r} for {url}"
                raise SourceError(msg, details={"url": url})

            body = _read_body(response, deadline, url, timeout)
            encoding = response.encoding or "utf-8"
            status_code = response.status_code
    except httpx.TimeoutException as e:
        raise _timeout_error(url, timeout) from e
    except httpx.HTTPError as e:
        msg = f"Network error fetching {url}: {e}"
        raise SourceError(msg, details={"url": url}) from e
    finally:
        if owns_client:
            http.close()

    text = body.decode(encoding, errors="replace")
    if "html" in content_type:
        text = clean_html(text)
    log.debug("source_fetched", url=url, status_code=status_code, chars=len(text))
    return text[:max_chars]


def clean_html(html: str) -> str:
    """Reduce an HTML or XHTML document to readable text.

    Navigation chrome, scripts and ads are dropped. Headings become ``##``
    lines, list items become ``-`` bullets and preformatted blocks are fenced.

    Raises:
        SourceError: If the document cannot be parsed
    """
    # lxml refuses str input that carries an encoding declaration.
    html = _XML_DECLARATION.sub("", html, count=1)
    if not html.strip():
        return ""

    try:
        root = lxml.html.fromstring(html)
    except (etree.ParserError, ValueError) as e:
        msg = f"Failed to clean HTML: {e}"
        raise SourceError(msg) from e

    for element in root.xpath(_REMOVE_XPATH):
        if element.getparent() is not None:
            element.drop_tree()

    if root.tag == "body":
        body = root
    else:
        body = root.find(".//body")
        if body is None:
            body = root
    return _extract_text(body).strip()


def _extract_text(element: lxml.html.HtmlElement) -> str:
    parts = [element.text or ""]
    for child in element:
        if isinstance(child.tag, str):
            tag = child.tag.lower()
            inner = child.text_content().strip()
            if tag in _HEADINGS:
                parts.append(f"\n\n## {inner}\n\n")
            elif tag == "p":
                parts.append(f"{inner}\n\n")
            elif tag in ("pre", "code"):
                parts.append(f"```\n{inner}\n```\n\n")
            elif tag == "li":
                parts.append(f"- {inner}\n")
            else:
                parts.append(_extract_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def resolve_source_path(file_path: str, repo_root: Path) -> Path:
    """Resolve a configured file source against the repository root."""
    path = Path(file_path)
    return path if path.is_absolute() else Path(repo_root) / path


def read_source(
    file_path: str,
    repo_root: Path,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    """Read a local file source truncated to ``max_chars``.

    Raises:
        SourceError: If the path is missing, not a file, or not UTF-8 text
    """
    path = resolve_source_path(file_path, repo_root)
    try:
        if not path.is_file():
            msg = f"Path is not a file: {path}"
            raise SourceError(msg, details={"path": str(path)})
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        msg = f"Failed to read file {file_path}: not UTF-8 text"
        raise SourceError(msg, details={"path": str(path)}) from e
    except OSError as e:
        msg = f"Failed to read file {file_path}: {e}"
        raise SourceError(msg, details={"path": str(path)}) from e
    return content[:max_chars]
