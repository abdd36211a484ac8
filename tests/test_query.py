"""Tests for crawlmd.query - fetch, parse and crawl."""

from __future__ import annotations

import gzip
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from crawlmd.errors import CrawlmdError, ExtractionError, FetchError
from crawlmd.items import ArticleResult
from crawlmd.query import CrawlResult, crawl, fetch_html, get_metadata, parse

URL = "https://example.com/blog/post"


# ---------------------------------------------------------------------------
# fetch_html() - HTTP fetch (mocked)
# ---------------------------------------------------------------------------

class TestFetchHtml:
    def _make_mock_response(
        self,
        body: bytes,
        charset: str = "utf-8",
        encoding: str = "",
    ) -> MagicMock:
        resp = MagicMock()
        resp.read.return_value = body
        resp.headers.get.return_value = encoding
        resp.headers.get_content_charset.return_value = charset
        resp.__enter__ = lambda s: s
        resp.__exit__ = MagicMock(return_value=False)
        return resp

    def test_returns_string(self):
        mock_resp = self._make_mock_response(b"<html><body><p>Hello world</p></body></html>")
        with patch("urllib.request.urlopen", return_value=mock_resp):
            result = fetch_html(URL)
        assert isinstance(result, str)
        assert "Hello world" in result

    def test_charset_honoured(self):
        mock_resp = self._make_mock_response("<p>café</p>".encode("latin-1"), charset="latin-1")
        with patch("urllib.request.urlopen", return_value=mock_resp):
            assert "café" in fetch_html(URL)

    def test_gzip_body_decompressed(self):
        body = gzip.compress(b"<p>zipped</p>")
        mock_resp = self._make_mock_response(body, encoding="gzip")
        with patch("urllib.request.urlopen", return_value=mock_resp):
            assert fetch_html(URL) == "<p>zipped</p>"

    def test_corrupt_gzip_raises_fetch_error(self):
        mock_resp = self._make_mock_response(b"not gzip", encoding="gzip")
        with patch("urllib.request.urlopen", return_value=mock_resp), \
             pytest.raises(FetchError):
            fetch_html(URL)

    def test_user_agent_sent(self):
        mock_resp = self._make_mock_response(b"<p>x</p>")
        with patch("urllib.request.urlopen", return_value=mock_resp) as mock_open:
            fetch_html(URL, user_agent="TestAgent/1.0")
        request = mock_open.call_args[0][0]
        assert request.get_header("User-agent") == "TestAgent/1.0"

    def test_http_error_raises_fetch_error(self):
        with patch(
            "urllib.request.urlopen",
            side_effect=urllib.error.HTTPError(URL, 404, "Not Found", {}, None),
        ), pytest.raises(FetchError) as exc_info:
            fetch_html(URL)
        assert exc_info.value.status == 404
        assert exc_info.value.url == URL
        assert "404" in str(exc_info.value)

    def test_url_error_raises_fetch_error(self):
        with patch(
            "urllib.request.urlopen",
            side_effect=urllib.error.URLError("Connection refused"),
        ), pytest.raises(FetchError) as exc_info:
            fetch_html(URL)
        assert exc_info.value.status == 0
        assert "Connection refused" in exc_info.value.reason

    def test_timeout_raises_fetch_error(self):
        with patch("urllib.request.urlopen", side_effect=TimeoutError("timed out")), \
             pytest.raises(FetchError):
            fetch_html(URL, timeout=1)

    def test_invalid_scheme_raises_fetch_error(self):
        with patch("urllib.request.urlopen") as mock_open, \
             pytest.raises(FetchError) as exc_info:
            fetch_html("ftp://example.com/file.txt")
        assert exc_info.value.reason == "unsupported url scheme"
        mock_open.assert_not_called()

    def test_not_retried(self):
        with patch(
            "urllib.request.urlopen",
            side_effect=urllib.error.URLError("down"),
        ) as mock_open, pytest.raises(FetchError):
            fetch_html(URL)
        assert mock_open.call_count == 1


# ---------------------------------------------------------------------------
# parse() - no network
# ---------------------------------------------------------------------------

class TestParse:
    def test_returns_crawl_result(self, article_html):
        result = parse(article_html, url=URL)
        assert isinstance(result, CrawlResult)
        assert isinstance(result.article, ArticleResult)
        assert result.url == URL
        assert result.html == article_html

    def test_markdown_from_article(self, article_html):
        result = parse(article_html, url=URL)
        assert "Turning arbitrary web pages" in result.markdown

    def test_metadata_starts_with_article_fields(self, article_html):
        result = parse(article_html, url=URL)
        assert result.entries[0].key == "title"
        assert result.metadata["byline"] == "Jane Smith"
        assert result.metadata["og:site_name"] == "Tech Blog"
        assert result.metadata["json-ld:0"]["@type"] == "Article"

    def test_no_article_raises(self, no_article_html):
        with pytest.raises(ExtractionError) as exc_info:
            parse(no_article_html, url=URL)
        assert exc_info.value.url == URL


# ---------------------------------------------------------------------------
# crawl() / get_metadata() - mocked network
# ---------------------------------------------------------------------------

class TestCrawl:
    def test_fetches_then_parses(self, article_html):
        with patch("crawlmd.query.fetch_html", return_value=article_html) as mock_fetch:
            result = crawl(URL, timeout=5)
        mock_fetch.assert_called_once_with(URL, timeout=5)
        assert result.article.title

    def test_fetch_error_propagates(self):
        with patch(
            "crawlmd.query.fetch_html",
            side_effect=FetchError("HTTP 404", url=URL, status=404),
        ), pytest.raises(FetchError) as exc_info:
            crawl(URL)
        assert exc_info.value.status == 404

    def test_errors_share_base_class(self):
        assert issubclass(FetchError, CrawlmdError)
        assert issubclass(ExtractionError, CrawlmdError)
        assert issubclass(CrawlmdError, RuntimeError)


class TestGetMetadata:
    def test_url_is_fetched(self, article_html):
        with patch("crawlmd.query.fetch_html", return_value=article_html) as mock_fetch:
            entries = get_metadata(URL)
        mock_fetch.assert_called_once()
        assert entries[0].key == "title"

    def test_html_string_not_fetched(self):
        with patch("crawlmd.query.fetch_html") as mock_fetch:
            entries = get_metadata('<meta name="k" content="v">')
        mock_fetch.assert_not_called()
        assert [e.key for e in entries] == ["k"]


# ---------------------------------------------------------------------------
# Top-level import convenience
# ---------------------------------------------------------------------------

class TestTopLevelImport:
    def test_public_names(self):
        import crawlmd

        for name in ("crawl", "parse", "fetch_html", "html_to_markdown",
                     "convert_html", "get_metadata", "FetchError"):
            assert callable(getattr(crawlmd, name))
