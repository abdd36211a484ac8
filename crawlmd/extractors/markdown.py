"""Convert HTML to Markdown, preserving code blocks and tables verbatim.

Conversion runs on markdownify's :class:`~markdownify.MarkdownConverter`.
:class:`RuleConverter` asks the :class:`~crawlmd.extractors.rules.RuleRegistry`
which rule owns each element; rules that do not replace markdownify's
output delegate to the stock ``convert_<tag>`` method through
``ConversionContext.default_render``.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from bs4 import Comment as SoupComment
from bs4 import Doctype, NavigableString, Tag
from markdownify import (  # type: ignore[import-untyped]
    MarkdownConverter,
    abstract_inline_conversion,
)

from crawlmd.errors import ConversionFault
from crawlmd.extractors.dom import (
    Element,
    Node,
    find_first,
    iter_elements,
    normalize,
    outer_html,
)
from crawlmd.extractors.rules import (
    BLOCK_TAGS,
    NOISE_TAGS,
    ConversionContext,
    ConversionOptions,
    Rule,
    RuleRegistry,
    build_registry,
)

logger = logging.getLogger(__name__)

_EXCESSIVE_BLANK_LINES_RE = re.compile(r"\n{3,}")
_BLANK_LINE_WHITESPACE_RE = re.compile(r"^[ \t]+$", re.MULTILINE)


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of one conversion.

    ``fault`` is ``None`` for a clean run, including one that legitimately
    produced no Markdown.  When it is set, ``markdown`` is always ``""``.
    """

    markdown: str
    fault: ConversionFault | None = None

    @property
    def ok(self) -> bool:
        return self.fault is None


# ---------------------------------------------------------------------------
# Text position helpers
# ---------------------------------------------------------------------------

def _is_boundary(node: Any) -> bool:
    return isinstance(node, Tag) and (node.name in BLOCK_TAGS or node.name == "br")


def _is_noise(node: Any) -> bool:
    return isinstance(node, Tag) and node.name in NOISE_TAGS


def _renders_empty(node: Any) -> bool:
    if isinstance(node, (SoupComment, Doctype)) or _is_noise(node):
        return True
    return isinstance(node, NavigableString) and not node.strip()


def _starts_line(el: NavigableString) -> bool:
    """Whether *el* is the first visible text on its Markdown line."""
    node: Any = el
    while True:
        prev = node.previous_sibling
        while prev is not None and _renders_empty(prev):
            prev = prev.previous_sibling
        if prev is not None:
            return _is_boundary(prev)
        node = node.parent
        if node is None or node.parent is None or _is_boundary(node):
            return True


def _follows_whitespace(el: NavigableString) -> bool:
    """Whether the text rendered just before *el* ends in whitespace."""
    prev = el.previous_element
    while prev is not None:
        if isinstance(prev, Tag):
            if _is_boundary(prev):
                return True
        elif prev and not isinstance(prev, (SoupComment, Doctype)) and not _is_noise(prev.parent):
            return prev[-1].isspace()
        prev = prev.previous_element
    return True


# ---------------------------------------------------------------------------
# Converter
# ---------------------------------------------------------------------------

def _keep_blank(convert: Callable[..., str]) -> Callable[..., str]:
    """Pass whitespace-only content through instead of dropping it."""

    @functools.wraps(convert)
    def wrapper(self, el, text, parent_tags):
        if text and not text.strip():
            return text
        return convert(self, el, text, parent_tags)

    return wrapper


class RuleConverter(MarkdownConverter):
    """markdownify converter that lets a :class:`RuleRegistry` claim each element.

    *index* maps ``id()`` of each soup tag to the :class:`Element` built from
    it; tags missing from the index are converted by markdownify alone.
    """

    convert_em = _keep_blank(
        abstract_inline_conversion(lambda self: self.options["em_delimiter"]),
    )
    convert_i = convert_em
    convert_strong = _keep_blank(
        abstract_inline_conversion(lambda self: self.options["strong_delimiter"]),
    )
    convert_b = convert_strong

    def __init__(
        self,
        registry: RuleRegistry,
        index: dict[int, Element],
        ctx: ConversionContext,
    ) -> None:
        super().__init__(**ctx.options.markdownify_options())
        self._registry = registry
        self._index = index
        self._ctx = ctx
        self._pending: dict[int, Rule] = {}
        self._line_start = True

    def process_tag(self, node, parent_tags=None):
        element = self._index.get(id(node))
        if element is None:
            return super().process_tag(node, parent_tags=parent_tags)
        rule = self._registry.resolve(element)
        if rule.opaque:
            stock = super().get_conv_fn(node.name)
            return self._render(rule, element, node, "", parent_tags, stock)
        self._pending[id(node)] = rule
        with self._ctx.entering(element):
            return super().process_tag(node, parent_tags=parent_tags)

    def get_conv_fn(self, tag_name):
        return functools.partial(self._convert, super().get_conv_fn(tag_name))

    def _convert(self, stock, el, text, parent_tags):
        rule = self._pending.pop(id(el), None)
        if rule is None:
            return stock(el, text, parent_tags=parent_tags) if stock else text
        return self._render(rule, self._index[id(el)], el, text, parent_tags, stock)

    def _render(
        self,
        rule: Rule,
        element: Element,
        el: Tag,
        text: str,
        parent_tags: Any,
        stock: Callable[..., str] | None,
    ) -> str:
        ctx = self._ctx
        ctx.parent_tags = frozenset(parent_tags or ())
        if stock is None:
            ctx.default_render = None
        else:
            tags = parent_tags or set()
            ctx.default_render = lambda content: stock(el, content, parent_tags=tags)
        return rule.render(text, element, ctx)

    def process_text(self, el, parent_tags=None):
        if parent_tags is not None and "pre" in parent_tags:
            return super().process_text(el, parent_tags=parent_tags)
        self._line_start = _starts_line(el)
        text = super().process_text(el, parent_tags=parent_tags)
        if text.startswith(" ") and _follows_whitespace(el):
            text = text.lstrip(" ")
        return text

    def escape(self, text, parent_tags):
        if self._line_start:
            return super().escape(text, parent_tags)
        # A leading letter keeps the start-of-line patterns off mid-line text
        return super().escape("x" + text, parent_tags)[1:]


def _with_source(root: Node) -> Element:
    if isinstance(root, Element) and root.source is not None:
        return root
    # Hand-built trees have no parse behind them
    reparsed = normalize(outer_html(root))
    return find_first(reparsed, "body") or reparsed


def postprocess(markdown: str) -> str:
    """Empty whitespace-only lines, squeeze blank-line runs, trim the ends."""
    markdown = _BLANK_LINE_WHITESPACE_RE.sub("", markdown)
    markdown = _EXCESSIVE_BLANK_LINES_RE.sub("\n\n", markdown)
    return markdown.strip()


def serialize(
    root: Node,
    registry: RuleRegistry,
    options: ConversionOptions | None = None,
) -> ConversionResult:
    """Convert *root* with *registry* and return the rendered Markdown.

    Never raises.  Any exception from the conversion is logged with its
    traceback and reported through :attr:`ConversionResult.fault`.
    """
    registry.freeze()
    ctx = ConversionContext(options=options or ConversionOptions())
    try:
        target = _with_source(root)
        if target.source is None:
            return ConversionResult(markdown="")
        index = {id(el.source): el for el in iter_elements(target) if el.source is not None}
        converter = RuleConverter(registry, index, ctx)
        markdown = postprocess(converter.process_tag(target.source, parent_tags=set()))
    except Exception as exc:
        logger.exception("Markdown conversion failed")
        fault = ConversionFault(f"{type(exc).__name__}: {exc}", cause=exc)
        return ConversionResult(markdown="", fault=fault)
    return ConversionResult(markdown=markdown)


def convert_html(
    html: str,
    *,
    options: ConversionOptions | None = None,
    extra_rules: Iterable[Rule] = (),
) -> ConversionResult:
    """Parse *html* and convert its ``<body>`` (or the whole tree) to Markdown."""
    if not html or not html.strip():
        return ConversionResult(markdown="")
    root = normalize(html)
    target = find_first(root, "body") or root
    registry = build_registry(extra_rules)
    return serialize(target, registry, options or ConversionOptions.from_settings())


def html_to_markdown(html: str) -> str:
    """Convert *html* to clean Markdown.

    Returns ``""`` both for empty input and when conversion hits an internal
    fault; use :func:`convert_html` to tell the two apart.
    """
    return convert_html(html).markdown


def format_markdown_article(
    title: str,
    byline: str | None,
    published_time: str | None,
    excerpt: str | None,
    content_markdown: str,
    site_name: str | None = None,
) -> str:
    """Render a complete article Markdown document with a header block."""
    lines: list[str] = []

    if title:
        lines.append(f"# {title}")
        lines.append("")

    meta_parts: list[str] = []
    if byline:
        meta_parts.append(f"**Author:** {byline}")
    if site_name:
        meta_parts.append(f"**Site:** {site_name}")
    if published_time:
        meta_parts.append(f"**Published:** {published_time}")

    if meta_parts:
        lines.append("  \n".join(meta_parts))
        lines.append("")

    if excerpt:
        lines.append(f"> {excerpt}")
        lines.append("")

    lines.append("---")
    lines.append("")
    lines.append(content_markdown)

    return "\n".join(lines)
