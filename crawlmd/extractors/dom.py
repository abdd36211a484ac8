"""Parse raw HTML into an immutable, explicitly typed node tree.

BeautifulSoup (lxml backend) does the error-recovering parse; this module then
copies the result into three plain node kinds - :class:`Element`,
:class:`Text` and :class:`Comment` - so that the Markdown rules and the
metadata scanner can match on node type instead of poking at parser objects.

Normalization contract:
- entities are decoded in text content,
- void elements (``br``, ``img``, ...) have no children,
- tag and attribute names are lower case,
- multi-valued attributes (``class``, ``rel``) are joined with single spaces,
- whitespace-only text nodes are kept; collapsing them is the serializer's job,
- doctypes, declarations and processing instructions are dropped,
- a single newline directly after ``<pre>`` is dropped, as browsers do.
"""

from __future__ import annotations

import html as html_lib
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from bs4 import (
    BeautifulSoup,
    CData,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)
from bs4 import Comment as SoupComment

logger = logging.getLogger(__name__)

DOCUMENT_TAG = "#document"

VOID_ELEMENTS: frozenset[str] = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    },
)

# Elements whose text is emitted unescaped when re-serialized
_RAW_TEXT_ELEMENTS: frozenset[str] = frozenset({"script", "style"})

_EMPTY_ATTRS: Mapping[str, str] = MappingProxyType({})


# ---------------------------------------------------------------------------
# Node variants
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Text:
    content: str
    parent: Element | None = field(default=None, repr=False, compare=False)


@dataclass(eq=False)
class Comment:
    content: str
    parent: Element | None = field(default=None, repr=False, compare=False)


@dataclass(eq=False)
class Element:
    """An HTML element.

    ``parent`` is a back-reference filled in by the parent's constructor; it is
    only used to look at siblings and ancestors during a walk.  ``source`` is
    the BeautifulSoup tag the element was copied from, which markdownify walks
    when the tree is rendered.
    """

    tag_name: str
    attributes: Mapping[str, str] = field(default_factory=lambda: _EMPTY_ATTRS)
    children: tuple[Node, ...] = ()
    parent: Element | None = field(default=None, repr=False, compare=False)
    source: Tag | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.tag_name = self.tag_name.lower()
        self.attributes = MappingProxyType(
            {str(k).lower(): str(v) for k, v in self.attributes.items()},
        )
        self.children = tuple(self.children)
        for child in self.children:
            child.parent = self

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    @property
    def element_children(self) -> tuple[Element, ...]:
        return tuple(c for c in self.children if isinstance(c, Element))


Node = Union[Element, Text, Comment]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _safe_str(val: Any, default: str = "") -> str:
    """Convert a BeautifulSoup attribute value (str | list | None) to str."""
    if val is None:
        return default
    if isinstance(val, list):
        return " ".join(str(v) for v in val)
    return str(val)


def _leaf(value: NavigableString) -> Node | None:
    if isinstance(value, SoupComment):
        return Comment(str(value))
    if isinstance(value, CData):
        return Text(str(value))
    if isinstance(value, (Doctype, Declaration, ProcessingInstruction)):
        return None
    return Text(str(value))


def _drop_pre_leading_newline(soup: BeautifulSoup) -> None:
    for pre in soup.find_all("pre"):
        first = pre.contents[0] if pre.contents else None
        if type(first) is not NavigableString or not first.startswith("\n"):
            continue
        rest = str(first)[1:]
        if rest:
            first.replace_with(NavigableString(rest))
        else:
            first.extract()


def _from_soup(soup: BeautifulSoup) -> Element:
    """Copy a parsed soup into :class:`Element` nodes without recursion.

    Children are built before their parent (post-order) so each element can
    be constructed once with its final, immutable child tuple.
    """
    built: dict[int, Element] = {}
    stack: list[tuple[Tag, bool]] = [(soup, False)]

    while stack:
        tag, expanded = stack.pop()
        if not expanded:
            stack.append((tag, True))
            for child in reversed(tag.contents):
                if isinstance(child, Tag):
                    stack.append((child, False))
            continue

        children: list[Node] = []
        for child in tag.contents:
            if isinstance(child, Tag):
                children.append(built.pop(id(child)))
            elif isinstance(child, NavigableString):
                leaf = _leaf(child)
                if leaf is not None:
                    children.append(leaf)

        name = DOCUMENT_TAG if tag is soup else (tag.name or "")
        if name in VOID_ELEMENTS:
            children = []
        attrs = {k: _safe_str(v) for k, v in (tag.attrs or {}).items()}
        built[id(tag)] = Element(name, attrs, tuple(children), source=tag)

    return built[id(soup)]


def normalize(html: str | None) -> Element:
    """Parse *html* and return the ``#document`` root element.

    Never raises: unparseable input yields an empty document.
    """
    if not html:
        return Element(DOCUMENT_TAG)
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as exc:
        logger.warning("HTML parse failed, returning empty document: %s", exc)
        return Element(DOCUMENT_TAG)
    _drop_pre_leading_newline(soup)
    return _from_soup(soup)


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------

def iter_nodes(root: Node) -> Iterator[Node]:
    """Yield *root* and every descendant in document order."""
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, Element):
            stack.extend(reversed(node.children))


def iter_elements(root: Node, tag: str | None = None) -> Iterator[Element]:
    """Yield elements under *root* (inclusive) in document order."""
    for node in iter_nodes(root):
        if isinstance(node, Element) and (tag is None or node.tag_name == tag):
            yield node


def find_first(root: Node, tag: str) -> Element | None:
    return next(iter_elements(root, tag), None)


def text_content(node: Node) -> str:
    """Concatenated text of *node* and its descendants (comments excluded)."""
    if isinstance(node, Text):
        return node.content
    if isinstance(node, Comment):
        return ""
    return "".join(n.content for n in iter_nodes(node) if isinstance(n, Text))


def outer_html(node: Node) -> str:
    """Re-serialize *node* as HTML markup."""
    if isinstance(node, Text):
        parent = node.parent
        if parent is not None and parent.tag_name in _RAW_TEXT_ELEMENTS:
            return node.content
        return html_lib.escape(node.content, quote=False)
    if isinstance(node, Comment):
        return f"<!--{node.content}-->"
    if node.tag_name == DOCUMENT_TAG:
        return "".join(outer_html(c) for c in node.children)

    attrs = "".join(
        f' {name}="{html_lib.escape(value, quote=True)}"'
        for name, value in node.attributes.items()
    )
    if node.tag_name in VOID_ELEMENTS:
        return f"<{node.tag_name}{attrs}>"
    inner = "".join(outer_html(c) for c in node.children)
    return f"<{node.tag_name}{attrs}>{inner}</{node.tag_name}>"
