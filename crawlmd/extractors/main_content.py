"""Readable-article extraction.

readability-lxml (Mozilla Readability algorithm) isolates the main content;
the surrounding page supplies the article-level fields readability-lxml does
not report itself (byline, site name, publication time, text direction,
excerpt).  :func:`extract_article` returns ``None`` when nothing readable is
found, which callers must treat as a failure rather than as empty content.
"""

from __future__ import annotations

import contextlib
import logging
import re

import dateparser
from bs4 import BeautifulSoup, Tag

from crawlmd.extractors.dom import (
    Element,
    find_first,
    iter_elements,
    normalize,
    text_content,
)
from crawlmd.items import ArticleResult

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

# ---------------------------------------------------------------------------
# Cookie-consent / template removal
# ---------------------------------------------------------------------------

# CSS selectors for known cookie-consent widgets, removed before extraction
_COOKIE_CONSENT_SELECTORS: tuple[str, ...] = (
    "#CybotCookiebotDialog", "#onetrust-consent-sdk", "#onetrust-banner-sdk",
    "#cookie-law-info-bar", "#cmplz-cookiebanner-container", "#BorlabsCookieBox",
    ".cookie-banner", ".cookie-notice", ".cookie-consent", ".gdpr-banner",
    "[aria-label='cookieconsent']",
)

_TEMPLATE_RE = re.compile(r"<template\b[^>]*>.*?</template>", re.DOTALL | re.IGNORECASE)


def _preprocess_html(html: str) -> str:
    """Strip ``<template>`` blocks and cookie-consent overlays from *html*.

    Templates are removed with a regex before parsing: lxml re-parents their
    children into the body, where readability would happily pick them up.
    """
    html = _TEMPLATE_RE.sub("", html)
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as exc:
        logger.debug("HTML pre-processing failed: %s", exc)
        return html

    for selector in _COOKIE_CONSENT_SELECTORS:
        with contextlib.suppress(Exception):
            for el in soup.select(selector):
                if isinstance(el, Tag):
                    el.decompose()
    return str(soup)


# ---------------------------------------------------------------------------
# Readability
# ---------------------------------------------------------------------------

def _try_readability(html: str, url: str = "") -> tuple[str, str] | None:
    """Return ``(content_html, title)`` or ``None`` when readability fails."""
    try:
        from readability import Document  # type: ignore[import-untyped]

        doc = Document(html, url=url or None)
        content = doc.summary(html_partial=True)
        title = doc.short_title() or doc.title()
    except Exception as exc:
        logger.debug("readability failed for %s: %s", url or "<html>", exc)
        return None
    return content, title


# ---------------------------------------------------------------------------
# Page-level fields
# ---------------------------------------------------------------------------

def _meta_content(root: Element, *keys: str) -> str | None:
    """First non-empty ``content`` of a meta whose property/name is in *keys*."""
    wanted = {k.lower() for k in keys}
    for tag in iter_elements(root, "meta"):
        key = (tag.get("property") or tag.get("name") or "").lower()
        if key in wanted:
            content = (tag.get("content") or "").strip()
            if content:
                return content
    return None


def _clean_text(node: Element) -> str:
    return _WS_RE.sub(" ", text_content(node)).strip()


def _parse_date(raw: str | None) -> str | None:
    """Parse a date string to ISO 8601.

    Returns None on failure or when the year falls outside 1990-2099
    (catches epoch defaults like 1970-01-01 and far-future typos).
    """
    if not raw:
        return None
    raw = _WS_RE.sub(" ", raw.strip())
    try:
        parsed = dateparser.parse(
            raw,
            settings={
                "RETURN_AS_TIMEZONE_AWARE": True,
                "PREFER_DAY_OF_MONTH": "first",
            },
        )
    except Exception as exc:
        logger.debug("Date parse failed for %r: %s", raw, exc)
        return None
    if parsed is None or not (1990 <= parsed.year <= 2099):
        return None
    return parsed.isoformat()


def _extract_byline(root: Element) -> str | None:
    byline = _meta_content(root, "author", "article:author", "twitter:creator")
    if byline:
        return byline
    for el in iter_elements(root):
        rel = (el.get("rel") or "").lower().split()
        classes = (el.get("class") or "").lower()
        if "author" in rel or "byline" in classes or el.get("itemprop") == "author":
            text = _clean_text(el)
            if text:
                return text[:200]
    return None


def _extract_published_time(root: Element) -> str | None:
    raw = _meta_content(
        root, "article:published_time", "datePublished", "pubdate", "date",
    )
    if not raw:
        time_tag = find_first(root, "time")
        if time_tag is not None:
            raw = (time_tag.get("datetime") or "").strip() or _clean_text(time_tag)
    return _parse_date(raw)


def _extract_dir(root: Element) -> str | None:
    for tag in ("html", "body"):
        el = find_first(root, tag)
        if el is not None:
            value = (el.get("dir") or "").strip().lower()
            if value:
                return value
    return None


def _extract_excerpt(root: Element, content_root: Element) -> str | None:
    excerpt = _meta_content(root, "og:description", "description", "twitter:description")
    if excerpt:
        return excerpt
    for p in iter_elements(content_root, "p"):
        text = _clean_text(p)
        if text:
            return text
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_article(html: str, url: str = "") -> ArticleResult | None:
    """Isolate the readable article in *html*.

    Returns ``None`` when readability fails or the isolated content has no
    words ("content not extractable").
    """
    if not html or not html.strip():
        return None

    cleaned = _preprocess_html(html)
    extracted = _try_readability(cleaned, url)
    if extracted is None:
        return None
    content_html, readability_title = extracted

    content_root = normalize(content_html)
    text = text_content(content_root).strip()
    if not text.split():
        logger.debug("readability produced no text for %s", url or "<html>")
        return None

    page = normalize(cleaned)
    title = (
        readability_title
        or _meta_content(page, "og:title", "twitter:title")
        or ""
    )
    return ArticleResult(
        title=title,
        content_html=content_html,
        text_content=text,
        excerpt=_extract_excerpt(page, content_root),
        byline=_extract_byline(page),
        site_name=_meta_content(page, "og:site_name", "application-name"),
        published_time=_extract_published_time(page),
        dir=_extract_dir(page),
        length=len(text),
    )
