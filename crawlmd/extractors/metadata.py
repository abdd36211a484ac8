"""Ordered metadata extraction from a normalized HTML tree.

Produces a list of ``{key, content}`` entries in document order:

1. article-level fields from content extraction (when supplied), each only if
   non-empty,
2. every ``<meta>`` carrying a ``property`` (or ``name``) and a ``content``,
3. every ``<script type="application/ld+json">`` that parses, keyed
   ``json-ld:<index>`` where the index counts all such scripts.

Duplicate keys are kept; callers pick "first wins" or "last wins" when
flattening with :func:`flatten_metadata`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from crawlmd.extractors.dom import Element, find_first, iter_elements, normalize, text_content

if TYPE_CHECKING:
    from crawlmd.items import ArticleResult

logger = logging.getLogger(__name__)

JSONLD_TYPE = "application/ld+json"
JSONLD_KEY_PREFIX = "json-ld:"


@dataclass(frozen=True)
class MetadataEntry:
    key: str
    content: Any  # str for <meta>, any JSON value for JSON-LD

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "content": self.content}


# ---------------------------------------------------------------------------
# Article-level fields
# ---------------------------------------------------------------------------

# (entry key, getter); an entry is emitted only when the value is truthy
ARTICLE_FIELDS: tuple[tuple[str, Callable[[ArticleResult], Any]], ...] = (
    ("title", lambda a: a.title),
    ("excerpt", lambda a: a.excerpt),
    ("byline", lambda a: a.byline),
    ("siteName", lambda a: a.site_name),
    ("publishedTime", lambda a: a.published_time),
    ("dir", lambda a: a.dir),
    ("length", lambda a: a.length),
)


def article_entries(article: ArticleResult) -> list[MetadataEntry]:
    entries: list[MetadataEntry] = []
    for key, getter in ARTICLE_FIELDS:
        value = getter(article)
        if isinstance(value, str):
            value = value.strip()
        if value:
            entries.append(MetadataEntry(key, value))
    return entries


# ---------------------------------------------------------------------------
# <meta> and JSON-LD
# ---------------------------------------------------------------------------

def _meta_entries(root: Element) -> list[MetadataEntry]:
    entries: list[MetadataEntry] = []
    for tag in iter_elements(root, "meta"):
        key = tag.get("property") or tag.get("name")
        content = tag.get("content")
        if not key or not content:
            continue
        entries.append(MetadataEntry(key, content))
    return entries


def _is_jsonld(tag: Element) -> bool:
    return (tag.get("type") or "").strip().lower() == JSONLD_TYPE


def _jsonld_entries(root: Element) -> list[MetadataEntry]:
    entries: list[MetadataEntry] = []
    scripts = [s for s in iter_elements(root, "script") if _is_jsonld(s)]
    for index, script in enumerate(scripts):
        raw = text_content(script) or "{}"
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.debug("Skipping malformed JSON-LD block %d: %s", index, exc)
            continue
        entries.append(MetadataEntry(f"{JSONLD_KEY_PREFIX}{index}", parsed))
    return entries


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_meta_tags(
    root: Element,
    article: ArticleResult | None = None,
) -> list[MetadataEntry]:
    """Return the ordered metadata entries of the tree rooted at *root*.

    Never raises for a well-formed tree; a bad JSON-LD block only drops its
    own entry.
    """
    entries: list[MetadataEntry] = []
    if article is not None:
        entries.extend(article_entries(article))
    entries.extend(_meta_entries(root))
    entries.extend(_jsonld_entries(root))
    return entries


def document_title(root: Element) -> str | None:
    """Text of the first ``<title>`` element, if non-empty."""
    title_tag = find_first(root, "title")
    if title_tag is None:
        return None
    return text_content(title_tag).strip() or None


def extract_metadata(
    source: str | Element,
    article: ArticleResult | None = None,
) -> list[MetadataEntry]:
    """Metadata of an HTML string or tree.

    Without *article*, the document ``<title>`` (when present) is emitted first
    under the key ``title``.
    """
    root = normalize(source) if isinstance(source, str) else source
    entries: list[MetadataEntry] = []
    if article is None:
        title = document_title(root)
        if title:
            entries.append(MetadataEntry("title", title))
    entries.extend(extract_meta_tags(root, article))
    return entries


def flatten_metadata(
    entries: Iterable[MetadataEntry],
    *,
    first_wins: bool = False,
) -> dict[str, Any]:
    """Collapse *entries* into a key -> content mapping.

    By default later entries overwrite earlier ones with the same key; pass
    ``first_wins=True`` to keep the first occurrence instead.
    """
    flat: dict[str, Any] = {}
    for entry in entries:
        if first_wins and entry.key in flat:
            continue
        flat[entry.key] = entry.content
    return flat
