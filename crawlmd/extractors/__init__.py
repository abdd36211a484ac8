"""Extraction sub-package: HTML tree, Markdown rules/serializer, metadata, article."""

from .dom import Comment, Element, Text, normalize
from .main_content import extract_article
from .markdown import ConversionResult, convert_html, html_to_markdown, serialize
from .metadata import MetadataEntry, extract_meta_tags, extract_metadata, flatten_metadata
from .rules import ConversionOptions, Rule, RuleRegistry, build_registry, tag_rule

__all__ = [
    "Comment",
    "ConversionOptions",
    "ConversionResult",
    "Element",
    "MetadataEntry",
    "Rule",
    "RuleRegistry",
    "Text",
    "build_registry",
    "convert_html",
    "extract_article",
    "extract_meta_tags",
    "extract_metadata",
    "flatten_metadata",
    "html_to_markdown",
    "normalize",
    "serialize",
    "tag_rule",
]
