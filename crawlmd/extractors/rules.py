"""Markdown rendering rules and the registry that picks one per element.

A :class:`Rule` pairs a predicate over :class:`~crawlmd.extractors.dom.Element`
with a render function receiving the already-rendered Markdown of the
element's children.  :class:`RuleRegistry` resolves the single rule that
applies to an element: highest priority first, and among equal priorities the
most recently registered rule, so a caller overrides a default by simply
registering another rule.

Elements no rule claims go through :func:`render_fallback`, which hands them
to markdownify's own converter for the tag (headings, paragraphs, emphasis,
links, inline code, blockquotes, ...).  The default rules below only cover
what has to differ from markdownify: noise removal, verbatim code and tables,
list numbering and images without a source.

Registries are built per conversion (:func:`build_registry`) and frozen before
the walk starts; nothing is shared between requests.
"""

from __future__ import annotations

import contextlib
import logging
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from markdownify import ATX, UNDERLINED  # type: ignore[import-untyped]

from crawlmd import settings
from crawlmd.extractors.dom import Comment, Element, Text, outer_html, text_content

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Classification tables
# ---------------------------------------------------------------------------

BLOCK_TAGS: frozenset[str] = frozenset(
    {
        "address", "article", "aside", "blockquote", "body", "center", "dd",
        "details", "dialog", "dir", "div", "dl", "dt", "fieldset",
        "figcaption", "figure", "footer", "form", "frameset", "h1", "h2",
        "h3", "h4", "h5", "h6", "header", "hgroup", "hr", "html", "li",
        "main", "menu", "nav", "noframes", "ol", "output", "p", "pre",
        "section", "summary", "table", "tbody", "td", "tfoot", "th", "thead",
        "tr", "ul",
    },
)

NOISE_TAGS: frozenset[str] = frozenset({"script", "style", "noscript", "template", "head"})


# ---------------------------------------------------------------------------
# Options & context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConversionOptions:
    em_delimiter: str = "*"
    strong_delimiter: str = "**"
    bullet_marker: str = "*"
    code_fence: str = "```"
    heading_style: str = "atx"  # "atx" | "setext"
    escape_misc: bool = True

    @classmethod
    def from_settings(cls) -> ConversionOptions:
        return cls(
            em_delimiter=settings.EM_DELIMITER,
            strong_delimiter=settings.STRONG_DELIMITER,
            bullet_marker=settings.BULLET_MARKER,
        )

    def markdownify_options(self) -> dict[str, Any]:
        """Keyword options for :class:`markdownify.MarkdownConverter`."""
        return {
            "heading_style": UNDERLINED if self.heading_style == "setext" else ATX,
            "em_delimiter": self.em_delimiter,
            "strong_delimiter": self.strong_delimiter,
            "escape_misc": self.escape_misc,
            "autolinks": False,
            # Collapse source line breaks to spaces without reflowing paragraphs
            "wrap": True,
            "wrap_width": None,
        }


@dataclass
class ListFrame:
    ordered: bool
    next_number: int = 1


def _list_start(node: Element) -> int:
    raw = (node.get("start") or "").strip()
    try:
        return int(raw)
    except ValueError:
        return 1


@dataclass
class ConversionContext:
    """Mutable state threaded through one walk; never reused."""

    options: ConversionOptions
    lists: list[ListFrame] = field(default_factory=list)
    blockquote_depth: int = 0
    # Set by the converter just before a rule renders an element: markdownify's
    # context tags for it and its stock conversion, if markdownify has one.
    parent_tags: frozenset[str] = frozenset()
    default_render: Callable[[str], str] | None = field(default=None, repr=False)

    @property
    def list_depth(self) -> int:
        return len(self.lists)

    @property
    def in_code(self) -> bool:
        return "_noformat" in self.parent_tags

    @contextlib.contextmanager
    def entering(self, node: Element) -> Iterator[ConversionContext]:
        tag = node.tag_name
        is_list = tag in ("ul", "ol")
        is_quote = tag == "blockquote"
        if is_list:
            self.lists.append(ListFrame(ordered=tag == "ol", next_number=_list_start(node)))
        if is_quote:
            self.blockquote_depth += 1
        try:
            yield self
        finally:
            if is_list:
                self.lists.pop()
            if is_quote:
                self.blockquote_depth -= 1


# ---------------------------------------------------------------------------
# Rule & registry
# ---------------------------------------------------------------------------

Predicate = Callable[[Element], bool]
RenderFn = Callable[[str, Element, ConversionContext], str]


@dataclass(frozen=True)
class Rule:
    """How one kind of element becomes Markdown.

    ``opaque`` rules are rendered without visiting children; ``content`` is
    then always the empty string and the rule reads the node itself.
    """

    name: str
    predicate: Predicate
    render: RenderFn
    priority: int = 0
    opaque: bool = False


def tag_rule(
    name: str,
    tags: Iterable[str],
    render: RenderFn,
    *,
    priority: int = 0,
    opaque: bool = False,
) -> Rule:
    """Build a rule matching any element whose tag name is in *tags*."""
    tag_set = frozenset(t.lower() for t in tags)
    return Rule(
        name=name,
        predicate=lambda node: node.tag_name in tag_set,
        render=render,
        priority=priority,
        opaque=opaque,
    )


class RuleRegistry:
    """Ordered rule set.  Frozen registries reject further registration."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._entries: list[tuple[int, Rule]] = []
        self._ordered: list[Rule] | None = None
        self._frozen = False
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        if self._frozen:
            raise RuntimeError(f"cannot register rule {rule.name!r}: registry is frozen")
        self._entries.append((len(self._entries), rule))
        self._ordered = None

    def freeze(self) -> RuleRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def rules(self) -> list[Rule]:
        """Rules in resolution order."""
        if self._ordered is None:
            ranked = sorted(self._entries, key=lambda e: (-e[1].priority, -e[0]))
            self._ordered = [rule for _, rule in ranked]
        return list(self._ordered)

    def resolve(self, node: Element) -> Rule:
        if self._ordered is None:
            self.rules()
        for rule in self._ordered or ():
            if rule.predicate(node):
                return rule
        return FALLBACK_RULE

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Built-in render functions
# ---------------------------------------------------------------------------

_WS_RE = re.compile(r"[ \t\n\r\f]+")


def render_fallback(content: str, node: Element, ctx: ConversionContext) -> str:
    """Render an element no rule claimed.

    markdownify's converter for the tag is used when there is one.  Otherwise
    block tags become a blank-line separated block and inline tags pass their
    content through.
    """
    if ctx.default_render is not None:
        return ctx.default_render(content)
    if node.tag_name in BLOCK_TAGS:
        inner = content.strip()
        return f"\n\n{inner}\n\n" if inner else ""
    return content


FALLBACK_RULE = Rule(
    name="fallback",
    predicate=lambda node: True,
    render=render_fallback,
    priority=-(2**31),
)


def _render_nothing(content: str, node: Element, ctx: ConversionContext) -> str:
    return ""


def _first_significant_child(node: Element) -> Element | Text | None:
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, Text) and not child.content.strip():
            continue
        return child
    return None


def _is_fenced_code(node: Element) -> bool:
    if node.tag_name != "pre":
        return False
    first = _first_significant_child(node)
    return isinstance(first, Element) and first.tag_name == "code"


def _render_fenced_code(content: str, node: Element, ctx: ConversionContext) -> str:
    code = text_content(node)
    fence = ctx.options.code_fence
    while fence in code:
        fence += fence[0]
    return f"\n\n{fence}\n{code}\n{fence}\n\n"


def _render_table(content: str, node: Element, ctx: ConversionContext) -> str:
    return f"\n\n{outer_html(node)}\n\n"


def _render_list_item(content: str, node: Element, ctx: ConversionContext) -> str:
    frame = ctx.lists[-1] if ctx.lists else None
    if frame is not None and frame.ordered:
        prefix = f"{frame.next_number}.  "
        frame.next_number += 1
    else:
        prefix = f"{ctx.options.bullet_marker}   "
    body = content.strip()
    if not body:
        return "\n"
    return prefix + body.replace("\n", "\n    ") + "\n"


def _render_image(content: str, node: Element, ctx: ConversionContext) -> str:
    if not (node.get("src") or "").strip():
        return _WS_RE.sub(" ", node.get("alt") or "").strip()
    return render_fallback(content, node, ctx)


# ---------------------------------------------------------------------------
# Default rule set
# ---------------------------------------------------------------------------

def default_rules() -> list[Rule]:
    """The built-in rules, lowest precedence first."""
    return [
        tag_rule("list_item", ("li",), _render_list_item),
        tag_rule("image", ("img",), _render_image),
        Rule("fenced_code_block", _is_fenced_code, _render_fenced_code,
             priority=10, opaque=True),
        tag_rule("tables", ("table",), _render_table, priority=10, opaque=True),
        tag_rule("remove_noise", NOISE_TAGS, _render_nothing, priority=100, opaque=True),
    ]


def build_registry(extra_rules: Iterable[Rule] = ()) -> RuleRegistry:
    """Return a fresh, frozen registry: defaults first, then *extra_rules*."""
    registry = RuleRegistry(default_rules())
    for rule in extra_rules:
        registry.register(rule)
    logger.debug("Built rule registry with %d rules", len(registry))
    return registry.freeze()
