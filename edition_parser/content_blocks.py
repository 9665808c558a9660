"""
Content Block Transformer
=========================
Turns a persisted article body (markup) plus its images into the ordered,
typed content blocks served by the read API.

Pipeline:
    1. Sidebar regions (<aside>, div.sidebar / div.kader), balanced scan
    2. Remaining top-level blocks outside sidebars
    3. Text cleanup, empty blocks dropped
    4. Sort by source offset (publication order)
    5. Image blocks for non-featured images, by sort_order
    6. Images inserted after the text block at their sort_order
    7. Dense renumbering 0..n-1

Pure functions; safe to call concurrently for different articles.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import NamedTuple, Optional

from .models import ArticleImage, BlockType, ContentBlock, FeaturedImage

logger = logging.getLogger(__name__)

# Opening, closing or self-closing tag; group 1 "/" for closing, group 2 name
TAG_PATTERN = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9]*)\b[^>]*?(/?)>")

SIDEBAR_DIV_PATTERN = re.compile(
    r"<div\b[^>]*\bclass\s*=\s*[\"'][^\"']*(?:sidebar|kader)[^\"']*[\"'][^>]*>",
    re.IGNORECASE,
)
ASIDE_PATTERN = re.compile(r"<aside\b[^>]*>", re.IGNORECASE)
LIST_ITEM_PATTERN = re.compile(r"<li\b[^>]*>(.*?)</li>", re.IGNORECASE | re.DOTALL)

BLOCK_TAG_TYPES = {
    "p": BlockType.PARAGRAPH,
    "h2": BlockType.SUBHEADING,
    "h3": BlockType.SUBHEADING,
    "h4": BlockType.SUBHEADING,
    "blockquote": BlockType.QUOTE,
    "ul": BlockType.PARAGRAPH,
    "ol": BlockType.PARAGRAPH,
    "div": BlockType.PARAGRAPH,
}

RECOGNIZED_TAGS = {
    "p", "h2", "h3", "h4", "blockquote", "ul", "ol", "li", "div", "aside",
    "span", "br", "a", "em", "strong", "i", "b", "img",
}


class PositionedBlock(NamedTuple):
    """A text or sidebar block with its start offset in the source markup."""
    position: int
    type: BlockType
    content: str


# ─── Text Cleanup ─────────────────────────────────────────────────────────────


def clean_html_content(markup: str) -> str:
    """
    Plain text of a markup fragment.

    >>> clean_html_content("Tom &amp; <em>Jerry</em>")
    'Tom & Jerry'
    """
    if not markup:
        return ""
    text = re.sub(r"<[^>]+>", " ", markup)
    text = html_lib.unescape(text)
    return " ".join(text.split())


# ─── Balanced Scanning ────────────────────────────────────────────────────────


def find_balanced_end(markup: str, tag: str, start: int) -> Optional[int]:
    """
    Offset just past the tag that closes an element opened before ``start``.

    Counts nested open/close tags of the same name. Returns None when the
    element is never closed.
    """
    tag = tag.lower()
    depth = 1
    for match in TAG_PATTERN.finditer(markup, start):
        if match.group(2).lower() != tag or match.group(3):
            continue
        depth += -1 if match.group(1) else 1
        if depth == 0:
            return match.end()
    return None


def find_lazy_end(markup: str, tag: str, start: int) -> tuple[int, int]:
    """
    (inner end, end) for an element whose balanced close tag is missing.

    Closes at the first same-name close tag, else just before the next
    same-name open tag, else at the end of the markup.
    """
    tag = tag.lower()
    next_open = None
    for match in TAG_PATTERN.finditer(markup, start):
        if match.group(2).lower() != tag or match.group(3):
            continue
        if match.group(1):
            return match.start(), match.end()
        if next_open is None:
            next_open = match.start()
    if next_open is not None:
        return next_open, next_open
    return len(markup), len(markup)


def _inner(markup: str, open_end: int, close_end: int) -> str:
    return markup[open_end:markup.rfind("<", open_end, close_end)]


def find_sidebar_regions(markup: str) -> list[tuple[int, int, str]]:
    """
    Locate sidebar containers.

    Returns:
        (start, end, inner markup) per sidebar, ordered by start. Containers
        nested in an earlier sidebar are part of that sidebar.
    """
    regions: list[tuple[int, int, str]] = []
    candidates = [(m, "aside") for m in ASIDE_PATTERN.finditer(markup)]
    candidates += [(m, "div") for m in SIDEBAR_DIV_PATTERN.finditer(markup)]
    candidates.sort(key=lambda c: c[0].start())

    for match, tag in candidates:
        if any(start <= match.start() < end for start, end, _ in regions):
            continue
        end = find_balanced_end(markup, tag, match.end())
        if end is None:
            logger.warning(f"Unclosed <{tag}> sidebar at offset {match.start()}")
            continue
        regions.append((match.start(), end, _inner(markup, match.end(), end)))
    return regions


# ─── Block Parsing ────────────────────────────────────────────────────────────


def _block_text(tag: str, inner: str) -> str:
    if tag in ("ul", "ol"):
        items = [clean_html_content(item) for item in LIST_ITEM_PATTERN.findall(inner)]
        if items:
            return " ".join(item for item in items if item)
    return clean_html_content(inner)


def _warn_unrecognized_tags(markup: str):
    unknown = sorted({
        m.group(2).lower()
        for m in TAG_PATTERN.finditer(markup)
        if not m.group(1) and m.group(2).lower() not in RECOGNIZED_TAGS
    })
    if unknown:
        logger.warning(f"Unrecognized HTML tags skipped: {', '.join(unknown)}")


def parse_html_to_blocks_with_position(markup: str) -> list[PositionedBlock]:
    """
    Text and sidebar blocks of an article body, in publication order.

    Args:
        markup: Persisted article body.

    Returns:
        Blocks sorted by their start offset in ``markup``.
    """
    if not markup or not markup.strip():
        return []

    regions = find_sidebar_regions(markup)
    blocks: list[PositionedBlock] = []
    for start, _, inner in regions:
        text = clean_html_content(inner)
        if text:
            blocks.append(PositionedBlock(start, BlockType.SIDEBAR, text))

    pos = 0
    while True:
        match = TAG_PATTERN.search(markup, pos)
        if match is None:
            break
        pos = match.end()
        tag = match.group(2).lower()
        if match.group(1) or match.group(3) or tag not in BLOCK_TAG_TYPES:
            continue

        region = next(
            (r for r in regions if r[0] <= match.start() < r[1]), None
        )
        if region is not None:
            pos = max(pos, region[1])
            continue

        end = find_balanced_end(markup, tag, match.end())
        if end is None:
            inner_end, end = find_lazy_end(markup, tag, match.end())
            # never run into a sidebar
            sidebar_start = min(
                (r[0] for r in regions if match.start() < r[0] < end), default=None
            )
            if sidebar_start is not None:
                inner_end = end = min(inner_end, sidebar_start)
            inner = markup[match.end():inner_end]
            logger.warning(
                f"Unclosed <{tag}> at offset {match.start()}, closed at {end}"
            )
        else:
            inner = _inner(markup, match.end(), end)
        pos = end

        text = _block_text(tag, inner)
        if text:
            blocks.append(PositionedBlock(match.start(), BLOCK_TAG_TYPES[tag], text))

    _warn_unrecognized_tags(markup)
    blocks.sort(key=lambda b: b.position)
    return blocks


def parse_html_to_blocks(markup: str) -> list[ContentBlock]:
    """Text and sidebar blocks without images, numbered in order."""
    return [
        ContentBlock(type=block.type, content=block.content, order=i)
        for i, block in enumerate(parse_html_to_blocks_with_position(markup))
    ]


# ─── Images ───────────────────────────────────────────────────────────────────


def create_image_blocks(images: list[ArticleImage]) -> list[ContentBlock]:
    """Image blocks for non-featured images, ordered by sort_order."""
    ordered = sorted(
        (img for img in images if not img.is_featured),
        key=lambda img: img.sort_order,
    )
    return [
        ContentBlock(
            type=BlockType.IMAGE,
            content=img.caption or "",
            image_url=img.url,
            caption=img.caption or None,
        )
        for img in ordered
    ]


def get_featured_image(images: list[ArticleImage]) -> Optional[FeaturedImage]:
    """The flagged featured image, else the image with the lowest sort_order."""
    featured = next((img for img in images if img.is_featured), None)
    if featured is None and images:
        featured = min(images, key=lambda img: img.sort_order)
    if featured is None:
        return None
    return FeaturedImage(url=featured.url, caption=featured.caption)


# ─── Transform ────────────────────────────────────────────────────────────────


def transform_to_content_blocks(
    content: str,
    images: list[ArticleImage],
) -> list[ContentBlock]:
    """
    Ordered content blocks for one article.

    An image with sort_order N follows the N-th text block (0-indexed), or
    the last one when N is out of range. Featured images are left out.
    """
    text_blocks = [
        ContentBlock(type=block.type, content=block.content)
        for block in parse_html_to_blocks_with_position(content)
    ]
    non_featured = sorted(
        (img for img in images if not img.is_featured),
        key=lambda img: img.sort_order,
    )
    image_blocks = create_image_blocks(non_featured)

    if not text_blocks:
        merged = image_blocks
    else:
        insertions: dict[int, list[ContentBlock]] = {}
        for img, block in zip(non_featured, image_blocks):
            slot = max(0, min(img.sort_order, len(text_blocks) - 1))
            insertions.setdefault(slot, []).append(block)

        merged = []
        for i, block in enumerate(text_blocks):
            merged.append(block)
            merged.extend(insertions.get(i, []))

    return [
        block.model_copy(update={"order": i}) for i, block in enumerate(merged)
    ]
