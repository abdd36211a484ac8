"""crawlmd - turn any web page into readable Markdown plus metadata.

Quick single-URL usage::

    from crawlmd import crawl

    result = crawl("https://example.com/blog/some-post")
    print(result.article.title)
    print(result.markdown)

Converting HTML you already have::

    from crawlmd import html_to_markdown, get_metadata

    md = html_to_markdown("<p>Hello <strong>world</strong></p>")   # "Hello **world**"
    entries = get_metadata("<meta property='og:title' content='A'>")

Custom rules::

    from crawlmd import convert_html, tag_rule

    mark = tag_rule("mark", ["mark"], lambda content, node, ctx: f"=={content}==")
    result = convert_html(html, extra_rules=[mark])
    if not result.ok:
        print("conversion failed:", result.fault)
"""

from crawlmd.errors import ConversionFault, CrawlmdError, ExtractionError, FetchError
from crawlmd.extractors.markdown import ConversionResult, convert_html, html_to_markdown
from crawlmd.extractors.metadata import MetadataEntry, flatten_metadata
from crawlmd.extractors.rules import ConversionOptions, Rule, tag_rule
from crawlmd.query import CrawlResult, crawl, fetch_html, get_metadata, parse

__version__ = "0.1.0"
__all__ = [
    "ConversionFault",
    "ConversionOptions",
    "ConversionResult",
    "CrawlResult",
    "CrawlmdError",
    "ExtractionError",
    "FetchError",
    "MetadataEntry",
    "Rule",
    "crawl",
    "convert_html",
    "fetch_html",
    "flatten_metadata",
    "get_metadata",
    "html_to_markdown",
    "parse",
    "tag_rule",
]
