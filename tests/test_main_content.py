"""Tests for crawlmd.extractors.main_content - readable article isolation."""

from __future__ import annotations

from unittest.mock import patch

from crawlmd.extractors.dom import normalize
from crawlmd.extractors.main_content import (
    _extract_byline,
    _extract_dir,
    _extract_published_time,
    _parse_date,
    _preprocess_html,
    extract_article,
)

# ---------------------------------------------------------------------------
# Full extraction
# ---------------------------------------------------------------------------

class TestExtractArticle:
    def test_fixture_article(self, article_html):
        article = extract_article(article_html, "https://blog.example.com/post")
        assert article is not None
        assert "Markdown" in article.title
        assert "Turning arbitrary web pages into clean Markdown" in article.text_content
        assert article.byline == "Jane Smith"
        assert article.site_name == "Tech Blog"
        assert article.published_time is not None
        assert article.published_time.startswith("2024-01-15")
        assert article.dir == "ltr"
        assert article.excerpt.startswith("A practical guide")
        assert article.length == len(article.text_content)

    def test_scripts_not_in_text(self, article_html):
        article = extract_article(article_html)
        assert article is not None
        assert "tracking" not in article.text_content

    def test_empty_body_returns_none(self, no_article_html):
        assert extract_article(no_article_html) is None

    def test_blank_input_returns_none(self):
        assert extract_article("") is None
        assert extract_article("   \n") is None

    def test_readability_failure_returns_none(self, article_html):
        with patch("readability.Document", side_effect=ValueError("boom")):
            assert extract_article(article_html) is None


# ---------------------------------------------------------------------------
# Page-level helpers
# ---------------------------------------------------------------------------

class TestPreprocess:
    def test_templates_removed(self):
        out = _preprocess_html("<body><template><p>hidden</p></template><p>shown</p></body>")
        assert "hidden" not in out
        assert "shown" in out

    def test_cookie_banner_removed(self):
        out = _preprocess_html(
            '<body><div id="onetrust-banner-sdk">Accept cookies</div><p>text</p></body>',
        )
        assert "Accept cookies" not in out
        assert "text" in out


class TestPageFields:
    def test_byline_from_rel_author(self):
        root = normalize('<p>By <a rel="author" href="/u/1">Sam Lee</a></p>')
        assert _extract_byline(root) == "Sam Lee"

    def test_byline_missing(self):
        assert _extract_byline(normalize("<p>nobody</p>")) is None

    def test_published_time_from_time_tag(self):
        root = normalize('<time datetime="2023-06-01T08:30:00Z">June 1</time>')
        assert _extract_published_time(root).startswith("2023-06-01")

    def test_dir_from_body(self):
        assert _extract_dir(normalize('<body dir="RTL"><p>x</p></body>')) == "rtl"

    def test_dir_missing(self):
        assert _extract_dir(normalize("<p>x</p>")) is None


class TestParseDate:
    def test_iso(self):
        assert _parse_date("2024-01-15T10:00:00+00:00").startswith("2024-01-15T10:00:00")

    def test_out_of_range_year_rejected(self):
        assert _parse_date("1970-01-01") is None

    def test_garbage(self):
        assert _parse_date("xyzzy plugh") is None
        assert _parse_date(None) is None
