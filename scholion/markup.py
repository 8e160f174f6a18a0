"""Markup parsing and annotation-aware recombination."""

from __future__ import annotations

import html
import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from .errors import ErrorCategory
from .policy import WarningPolicy
from .resolver import annotation_identifier
from .segmenter import OverlaySegmenter
from .structures import (
    AnnotatedSegment,
    AnnotationRange,
    ElementNode,
    Node,
    TextEntry,
    TextNode,
    iter_text_nodes,
)

CONTAINER_TAG = "div"
CONTAINER_ID = "text_content"
ANNOTATED_CLASS = "annotated_text"

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img",
        "input", "link", "meta", "source", "track", "wbr",
    }
)
RAW_TEXT_ELEMENTS = frozenset({"script", "style"})
LINE_BREAK_TAG = "br"

WHITESPACE_PATTERN = re.compile(r"\s+")


def normalise_whitespace(markup: str) -> str:
    """Replace non-breaking spaces and collapse whitespace runs to one space."""

    return WHITESPACE_PATTERN.sub(" ", markup.replace("\u00a0", " ")).strip()


def _convert(element: Tag) -> ElementNode:
    children: List[Node] = []
    for child in element.children:
        if isinstance(child, Tag):
            children.append(_convert(child))
        elif isinstance(child, PreformattedString):
            # Comments, doctypes and declarations carry no readable text.
            continue
        elif isinstance(child, NavigableString):
            children.append(TextNode(str(child)))
    attributes = tuple((name, str(value)) for name, value in element.attrs.items())
    return ElementNode(
        tag_name=element.name,
        attributes=attributes,
        children=tuple(children),
    )


def parse_markup(markup: str, *, container_id: Optional[str] = CONTAINER_ID) -> ElementNode:
    """Parse a markup string into an explicit tree wrapped in a container element."""

    soup = BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)
    root = _convert(soup)
    attributes = (("id", container_id),) if container_id else ()
    return ElementNode(tag_name=CONTAINER_TAG, attributes=attributes, children=root.children)


def plain_text(tree: Node) -> str:
    return "".join(leaf.content for leaf in iter_text_nodes(tree))


def text_length(tree: Node) -> int:
    return sum(len(leaf.content) for leaf in iter_text_nodes(tree))


def _open_tag(element: ElementNode) -> str:
    attrs = "".join(
        f' {name}="{html.escape(value, quote=True)}"' for name, value in element.attributes
    )
    return f"<{element.tag_name}{attrs}>"


class MarkupRecombiner:
    """Re-emits a markup tree with annotated spans around covered text."""

    def __init__(
        self,
        ranges: Sequence[AnnotationRange],
        *,
        total_length: Optional[int] = None,
        policy: Optional[WarningPolicy] = None,
    ) -> None:
        self.policy = policy or WarningPolicy()
        self.segmenter = OverlaySegmenter(
            ranges,
            total_length=total_length,
            policy=self.policy,
        )
        self.offset = 0
        self._parts: List[str] = []

    def recombine(self, tree: Node) -> str:
        self.offset = 0
        self._parts = []
        self._visit(tree, raw=False)
        return "".join(self._parts)

    # --- Internal helpers -------------------------------------------------

    def _visit(self, node: Node, *, raw: bool) -> None:
        if isinstance(node, TextNode):
            self._emit_text(node.content, raw=raw)
            return

        if node.tag_name == LINE_BREAK_TAG:
            for child in node.children:
                self._visit(child, raw=raw)
            return

        self._parts.append(_open_tag(node))
        if node.tag_name in VOID_ELEMENTS:
            if node.children:
                self.policy.handle_warning(
                    ErrorCategory.MARKUP,
                    f"Void element <{node.tag_name}> has children; emitting them after it.",
                )
                for child in node.children:
                    self._visit(child, raw=raw)
            return

        child_raw = raw or node.tag_name in RAW_TEXT_ELEMENTS
        for child in node.children:
            self._visit(child, raw=child_raw)
        self._parts.append(f"</{node.tag_name}>")

    def _emit_text(self, content: str, *, raw: bool) -> None:
        if raw:
            self._parts.append(content)
            self.offset += len(content)
            return

        for piece in self.segmenter.segment(content, self.offset):
            escaped = html.escape(piece.text, quote=False)
            if isinstance(piece, AnnotatedSegment):
                self._parts.append(
                    f'<span id="{annotation_identifier(piece.annotation_id)}" '
                    f'class="{ANNOTATED_CLASS}">{escaped}</span>'
                )
            else:
                self._parts.append(escaped)
        self.offset += len(content)


def recombine(
    tree: Node,
    ranges: Sequence[AnnotationRange],
    *,
    policy: Optional[WarningPolicy] = None,
) -> str:
    """Render ``tree`` with every annotation range wrapped in an identifying span."""

    recombiner = MarkupRecombiner(ranges, total_length=text_length(tree), policy=policy)
    return recombiner.recombine(tree)


def render_text_entry(
    entry: TextEntry,
    *,
    collapse_whitespace: bool = True,
    policy: Optional[WarningPolicy] = None,
) -> str:
    """Parse a fetched text and render it with its annotations overlaid."""

    markup = entry.markup_text
    if collapse_whitespace:
        markup = normalise_whitespace(markup)
    tree = parse_markup(markup)
    return recombine(tree, entry.annotation_ranges, policy=policy)
