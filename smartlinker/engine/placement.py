"""Link insertion and removal on the parsed document tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore

from .document import ENGINE_LINK_ATTR, engine_links, iter_text_nodes, nearest_block, parse_html
from .text import collapse_whitespace, phrase_pattern
from .types import InsertedLink, InsertionResult, normalise_content_type

logger = logging.getLogger(__name__)

LINK_ID_ATTR = "data-link-id"


@dataclass(frozen=True)
class LinkPlan:
    """What the mutator needs to place one link."""

    target_id: str
    url: str
    anchor_text: str
    content_type: str = "post"


def insert_links(
    html: str,
    plans: Sequence[LinkPlan],
    *,
    max_links: int = 8,
    max_summary_links: int = 3,
) -> InsertionResult:
    """Wrap the first free occurrence of each anchor in a link to its target.

    Constraints are checked against links this engine inserted earlier as
    well as those added in this pass: at most ``max_links`` engine links,
    of which at most ``max_summary_links`` point at summary pages, one
    link per block, and no repeated anchor text. Plans that cannot be
    honoured are reported in ``skipped`` with a reason.
    """

    soup = parse_html(html)
    existing = engine_links(soup)
    link_count = len(existing)
    summary_count = sum(1 for anchor in existing if anchor.get("data-target-type") == "page")
    used_anchors = {collapse_whitespace(anchor.get_text()).lower() for anchor in existing}
    used_blocks = {_block_key(nearest_block(anchor)) for anchor in existing}
    link_ids = {anchor.get(LINK_ID_ATTR) for anchor in existing}

    inserted: List[InsertedLink] = []
    skipped: List[Tuple[str, str]] = []

    for plan in plans:
        anchor_key = collapse_whitespace(plan.anchor_text).lower()
        is_summary = normalise_content_type(plan.content_type) == "page"
        if not anchor_key or not plan.url:
            skipped.append((plan.target_id, "invalid"))
            continue
        if link_count >= max_links:
            skipped.append((plan.target_id, "link_cap"))
            continue
        if is_summary and summary_count >= max_summary_links:
            skipped.append((plan.target_id, "summary_cap"))
            continue
        if anchor_key in used_anchors:
            skipped.append((plan.target_id, "duplicate_anchor"))
            continue

        link_id = _next_link_id(plan.target_id, link_ids)
        placed = _wrap_first_occurrence(soup, plan, link_id, used_blocks)
        if placed is None:
            skipped.append((plan.target_id, "no_occurrence"))
            continue

        block_key, matched_text, context = placed
        used_blocks.add(block_key)
        used_anchors.add(anchor_key)
        link_ids.add(link_id)
        link_count += 1
        if is_summary:
            summary_count += 1
        inserted.append(
            InsertedLink(
                link_id=link_id,
                target_id=plan.target_id,
                url=plan.url,
                anchor_text=matched_text,
                context=context or None,
            )
        )

    if skipped:
        logger.debug("Skipped %d link(s): %s", len(skipped), skipped)
    return InsertionResult(html=str(soup), inserted=inserted, skipped=skipped)


def remove_link(html: str, link_id: str) -> Tuple[str, bool]:
    """Unwrap the engine link with ``link_id`` back to plain text."""

    soup = parse_html(html)
    removed = False
    for anchor in soup.find_all("a", attrs={LINK_ID_ATTR: link_id}):
        anchor.unwrap()
        removed = True
    return str(soup), removed


def remove_all_links(html: str) -> Tuple[str, int]:
    """Unwrap every engine-inserted link, leaving other links untouched."""

    soup = parse_html(html)
    anchors = engine_links(soup)
    for anchor in anchors:
        anchor.unwrap()
    return str(soup), len(anchors)


def _wrap_first_occurrence(
    soup: BeautifulSoup,
    plan: LinkPlan,
    link_id: str,
    used_blocks: set,
) -> Optional[Tuple[object, str, str]]:
    pattern = phrase_pattern(plan.anchor_text)
    for text_node, block, linkable in iter_text_nodes(soup):
        if not linkable:
            continue
        block_key = _block_key(block)
        if block_key in used_blocks:
            continue
        original = str(text_node)
        match = pattern.search(original)
        if not match:
            continue

        after = original[match.end():]
        if after:
            text_node.insert_after(NavigableString(after))

        anchor = soup.new_tag("a", href=plan.url)
        anchor[ENGINE_LINK_ATTR] = "1"
        anchor[LINK_ID_ATTR] = link_id
        anchor["data-target-id"] = plan.target_id
        anchor["data-target-type"] = normalise_content_type(plan.content_type)
        anchor.string = match.group(0)
        text_node.insert_after(anchor)

        before = original[:match.start()]
        if before:
            text_node.replace_with(NavigableString(before))
        else:
            text_node.extract()

        context = collapse_whitespace(original[max(0, match.start() - 45):match.end() + 45])
        return block_key, match.group(0), context
    return None


def _block_key(block: Optional[Tag]) -> object:
    # Content with no block elements is a single block keyed by None.
    return id(block) if block is not None else None


def _next_link_id(target_id: str, taken: set) -> str:
    index = 1
    while f"sl-{target_id}-{index}" in taken:
        index += 1
    return f"sl-{target_id}-{index}"
