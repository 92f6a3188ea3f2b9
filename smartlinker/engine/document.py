"""Plain-text rendering of HTML content with offsets mapped back to blocks.

The anchor discovery strategies work on a flat string. ``TextDocument``
keeps the bookkeeping needed to turn an offset in that string back into
the paragraph (block) it came from and to tell whether the text there
may receive a link. Everything else in the engine deals in typed
``Span`` values and never re-parses the markup.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore

from .text import collapse_whitespace, iter_words

# Elements whose boundaries separate paragraphs
BLOCK_TAGS: set[str] = {
    "p", "li", "blockquote", "td", "th", "div", "section", "article", "dd", "dt",
    "figcaption", "h1", "h2", "h3", "h4", "h5", "h6", "pre",
}

# Tags inside which links should never be inserted
SKIP_TAGS: set[str] = {"a", "code", "pre", "h1", "h2", "h3", "button"}

# Tags whose text is not rendered content
IGNORED_TAGS: set[str] = {"script", "style", "noscript", "template", "svg"}

ENGINE_LINK_ATTR = "data-smartlink"

BLOCK_SEPARATOR = "\n\n"

_SENTENCE_RE = re.compile(r"(?:[^.!?\n]|\n(?!\n))+[.!?]*")


@dataclass(frozen=True)
class Span:
    """A half-open ``[start, end)`` range of the plain text."""

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Segment:
    """One text node's extent within the plain text."""

    start: int
    end: int
    block: int
    linkable: bool


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _has_ancestor(node: NavigableString, names: set[str]) -> bool:
    parent = node.parent
    while parent is not None and getattr(parent, "name", None):
        if parent.name.lower() in names:
            return True
        parent = parent.parent
    return False


def nearest_block(node: NavigableString) -> Optional[Tag]:
    """Return the closest enclosing block element, or ``None`` at top level."""

    parent = node.parent
    while parent is not None and getattr(parent, "name", None):
        if parent.name.lower() in BLOCK_TAGS:
            return parent
        parent = parent.parent
    return None


def iter_text_nodes(soup: BeautifulSoup) -> Iterator[Tuple[NavigableString, Optional[Tag], bool]]:
    """Yield ``(node, block, linkable)`` for every rendered text node in order."""

    for node in list(soup.descendants):
        if type(node) is not NavigableString:
            continue
        if _has_ancestor(node, IGNORED_TAGS):
            continue
        yield node, nearest_block(node), not _has_ancestor(node, SKIP_TAGS)


def engine_links(soup: BeautifulSoup) -> List[Tag]:
    return soup.find_all("a", attrs={ENGINE_LINK_ATTR: True})


def normalise_url(url: str) -> str:
    return (url or "").strip().rstrip("/").lower()


class TextDocument:
    """HTML content flattened to text, one block per paragraph."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self.segments: List[Segment] = []
        self._starts: List[int] = []
        block_ids: Dict[int, int] = {}
        parts: List[str] = []
        cursor = 0
        last_block: Optional[int] = None

        for node, block_tag, linkable in iter_text_nodes(soup):
            value = str(node)
            if not value:
                continue
            if block_tag is None and not value.strip():
                continue
            # Text outside any block element shares one block.
            key = id(block_tag) if block_tag is not None else 0
            block = block_ids.setdefault(key, len(block_ids))
            if last_block is not None and block != last_block:
                parts.append(BLOCK_SEPARATOR)
                cursor += len(BLOCK_SEPARATOR)
            last_block = block
            self.segments.append(Segment(cursor, cursor + len(value), block, linkable))
            self._starts.append(cursor)
            parts.append(value)
            cursor += len(value)

        self.text = "".join(parts)
        self.linked_urls = {
            normalise_url(anchor.get("href", ""))
            for anchor in soup.find_all("a", href=True)
        }
        existing = engine_links(soup)
        self.engine_link_count = len(existing)
        self.engine_anchor_texts = {anchor.get_text().strip().lower() for anchor in existing}

    @classmethod
    def from_html(cls, html: str) -> "TextDocument":
        return cls(parse_html(html))

    def __len__(self) -> int:
        return len(self.text)

    def segment_at(self, offset: int) -> Optional[Segment]:
        index = bisect.bisect_right(self._starts, offset) - 1
        if index < 0:
            return None
        segment = self.segments[index]
        if segment.start <= offset < segment.end:
            return segment
        return None

    def linkable_segment(self, start: int, end: int) -> Optional[Segment]:
        """Return the segment holding ``[start, end)`` when it may be linked."""

        if end <= start:
            return None
        segment = self.segment_at(start)
        if segment is None or not segment.linkable or end > segment.end:
            return None
        return segment

    def sentences(self) -> List[Span]:
        spans: List[Span] = []
        for match in _SENTENCE_RE.finditer(self.text):
            span = _strip_span(self.text, match.start(), match.end())
            if span is not None:
                spans.append(span)
        return spans

    def words(self) -> List[Span]:
        return [Span(match.start(), match.end(), match.group(0)) for match in iter_words(self.text)]

    def context(self, start: int, end: int, window: int = 45) -> str:
        """Return a trimmed snippet of the text surrounding a span."""

        lower = max(0, start - window)
        upper = min(len(self.text), end + window)
        return collapse_whitespace(self.text[lower:upper])

    def position_label(
        self,
        offset: int,
        intro_chars: int = 500,
        intro_ratio: float = 0.2,
        conclusion_ratio: float = 0.8,
    ) -> str:
        ratio = offset / max(len(self.text), 1)
        if offset <= intro_chars or ratio <= intro_ratio:
            return "intro"
        if ratio >= conclusion_ratio:
            return "conclusion"
        return "body"


def _strip_span(text: str, start: int, end: int) -> Optional[Span]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and (text[end - 1].isspace() or text[end - 1] in ".!?"):
        end -= 1
    if start >= end:
        return None
    return Span(start, end, text[start:end])
