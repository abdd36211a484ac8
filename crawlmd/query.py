"""crawlmd.query - fetch a page and turn it into Markdown plus metadata.

Uses only the stdlib (``urllib``) for HTTP.  Fetch failures are raised as
:class:`~crawlmd.errors.FetchError` and never retried here; callers decide.

Basic usage::

    from crawlmd.query import crawl

    result = crawl("https://example.com/blog/some-post")
    print(result.article.title)
    print(result.markdown)
    print(result.metadata["og:title"])

Low-level access::

    from crawlmd.query import fetch_html, parse

    html = fetch_html("https://example.com/blog/post")
    result = parse(html, url="https://example.com/blog/post")
"""

from __future__ import annotations

import gzip
import logging
import urllib.error
import urllib.request
import zlib
from typing import Any, NamedTuple
from urllib.parse import urlparse

from crawlmd import settings
from crawlmd.errors import ExtractionError, FetchError
from crawlmd.extractors.dom import Element
from crawlmd.extractors.main_content import extract_article
from crawlmd.extractors.markdown import html_to_markdown
from crawlmd.extractors.metadata import (
    MetadataEntry,
    extract_metadata,
    flatten_metadata,
)
from crawlmd.items import ArticleResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Low-level HTTP fetch
# ---------------------------------------------------------------------------

def _decode_response_body(raw: bytes, headers: Any, url: str) -> str:
    encoding = ""
    if headers is not None:
        encoding = str(headers.get("Content-Encoding", "") or "").lower().strip()

    try:
        if encoding == "gzip":
            raw = gzip.decompress(raw)
        elif encoding in ("deflate", "zlib"):
            raw = zlib.decompress(raw)
    except (OSError, zlib.error) as exc:
        raise FetchError(
            f"{encoding} decompression failed for {url}: {exc}", url=url, reason=str(exc),
        ) from exc

    charset = "utf-8"
    if headers is not None and hasattr(headers, "get_content_charset"):
        charset = headers.get_content_charset("utf-8") or "utf-8"
    try:
        return raw.decode(charset, errors="replace")
    except (LookupError, ValueError):
        return raw.decode("utf-8", errors="replace")


def fetch_html(
    url: str,
    *,
    timeout: int | None = None,
    user_agent: str | None = None,
) -> str:
    """Fetch *url* and return the response body as a decoded string.

    Args:
        url:        Fully-qualified HTTP/HTTPS URL.
        timeout:    Request timeout in seconds (default ``settings.FETCH_TIMEOUT``).
        user_agent: Override the default browser User-Agent string.

    Raises:
        FetchError: On HTTP errors, connection failures, or invalid URLs.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FetchError(
            f"Unsupported URL: {url!r}", url=url, reason="unsupported url scheme",
        )

    req = urllib.request.Request(
        url,
        headers={
            "User-Agent": user_agent or settings.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
        },
    )

    logger.debug("GET %s", url)
    try:
        with urllib.request.urlopen(req, timeout=timeout or settings.FETCH_TIMEOUT) as resp:
            raw: bytes = resp.read(settings.MAX_RESPONSE_BYTES)
            return _decode_response_body(raw, resp.headers, url)
    except urllib.error.HTTPError as exc:
        raise FetchError(
            f"Failed to fetch {url}: HTTP {exc.code} {exc.reason}",
            url=url,
            status=exc.code,
            reason=str(exc.reason),
        ) from exc
    except urllib.error.URLError as exc:
        raise FetchError(
            f"Failed to fetch {url}: {exc.reason}", url=url, reason=str(exc.reason),
        ) from exc
    except OSError as exc:
        raise FetchError(
            f"Network error fetching {url}: {exc}", url=url, reason=str(exc),
        ) from exc


# ---------------------------------------------------------------------------
# Page -> article + Markdown + metadata
# ---------------------------------------------------------------------------

class CrawlResult(NamedTuple):
    url: str
    html: str
    article: ArticleResult
    markdown: str
    entries: list[MetadataEntry]

    @property
    def metadata(self) -> dict[str, Any]:
        """Flattened ``key -> content`` view of :attr:`entries`."""
        return flatten_metadata(self.entries)


def parse(html: str, url: str = "") -> CrawlResult:
    """Extract the article from pre-fetched *html* with no network requests.

    Raises:
        ExtractionError: If no readable article could be isolated.
    """
    article = extract_article(html, url)
    if article is None:
        raise ExtractionError(f"Failed to parse article from {url or 'document'}", url=url)

    markdown = html_to_markdown(article.content_html)
    entries = extract_metadata(html, article=article)
    logger.info(
        "parsed %s: %d chars of text, %d metadata entries",
        url or "<html>", article.length, len(entries),
    )
    return CrawlResult(url=url, html=html, article=article, markdown=markdown, entries=entries)


def crawl(url: str, *, timeout: int | None = None) -> CrawlResult:
    """Fetch *url*, extract its article and render it as Markdown.

    Raises:
        FetchError:      If the page cannot be fetched.
        ExtractionError: If no readable article could be isolated.
    """
    logger.info("crawl: %s", url)
    html = fetch_html(url, timeout=timeout)
    return parse(html, url=url)


def get_metadata(
    source: str | Element,
    *,
    article: ArticleResult | None = None,
    timeout: int | None = None,
) -> list[MetadataEntry]:
    """Ordered metadata of a URL, a raw HTML string, or a parsed tree.

    Strings starting with ``http://`` or ``https://`` are fetched first.
    """
    if isinstance(source, str) and source.strip().lower().startswith(("http://", "https://")):
        source = fetch_html(source.strip(), timeout=timeout)
    return extract_metadata(source, article=article)
