"""
Element Extractor
=================
Turns the markup of one spread into an ordered stream of classified
elements (one variant per role, plus images and article-end markers).

Only the small fixed set of tags produced by the layout export is
considered; everything else is walked through but never emitted.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, Optional

from bs4 import BeautifulSoup, Tag

from .models import (
    ELEMENT_TYPES,
    ArticleElement,
    CoverHeadline,
    EndMarkerElement,
    ImageElement,
    Role,
    Spread,
    StyleAnalysis,
)

logger = logging.getLogger(__name__)

ARTICLE_END_MARKER = "■"

TEXT_TAGS = ["p", "div", "span", "h1", "h2", "h3", "h4", "h5", "h6"]
ELEMENT_TAGS = TEXT_TAGS + ["img"]

# Resolution order when an element carries classes of several roles
ROLE_PRIORITY = [
    Role.COVER_TITLE,
    Role.COVER_CHAPEAU,
    Role.INTRO_VERSE,
    Role.VERSE_REFERENCE,
    Role.AUTHOR_BIO,
    Role.SUBHEADING,
    Role.STREAMER,
    Role.SIDEBAR,
    Role.CAPTION,
    Role.TITLE,
    Role.CHAPEAU,
    Role.BODY,
    Role.AUTHOR,
    Role.CATEGORY,
]

# Roles whose hard line breaks survive extraction
LINE_BREAK_ROLES = {Role.TITLE, Role.CHAPEAU, Role.AUTHOR, Role.INTRO_VERSE}

_LINE_BREAK = "\u2028"
_SPACES_PATTERN = re.compile(r"[^\S\u2028]+")


def iter_class_names(html: str) -> Iterator[str]:
    """Yield every class name found on text-bearing elements."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(TEXT_TAGS):
        for class_name in tag.get("class") or []:
            yield class_name


def resolve_role(class_names: list[str], styles: StyleAnalysis) -> Optional[Role]:
    """Pick the highest-priority role among an element's classes."""
    roles = {styles.role_of(name) for name in class_names}
    for role in ROLE_PRIORITY:
        if role in roles:
            return role
    return None


def element_text(tag: Tag, keep_line_breaks: bool = False) -> str:
    """
    Plain text of an element.

    Source whitespace collapses to single spaces. ``<br>`` breaks become
    ``\\n`` when ``keep_line_breaks`` is set, otherwise spaces.
    """
    raw = _SPACES_PATTERN.sub(" ", tag.get_text())
    lines = [line.strip() for line in raw.split(_LINE_BREAK)]
    joiner = "\n" if keep_line_breaks else " "
    return joiner.join(line for line in lines if line)


def image_filename(src: str) -> str:
    """Filename part of an image src (path and query stripped)."""
    return src.split("?", 1)[0].split("#", 1)[0].rstrip("/").split("/")[-1]


def _owns_end_marker(tag: Tag) -> bool:
    """True if the marker sits in the element's own text, not a child's."""
    return any(
        ARTICLE_END_MARKER in text
        for text in tag.find_all(string=True, recursive=False)
    )


def extract_elements(
    spread: Spread, styles: StyleAnalysis
) -> list[ArticleElement]:
    """
    Extract classified elements from one spread in document order.

    Elements nested inside an already emitted element are skipped, except
    author names, which are often spans inside a bio paragraph. Images are
    always emitted.

    Args:
        spread: Loaded spread with raw markup.
        styles: Class -> role analysis for the whole export.

    Returns:
        Ordered list of ArticleElement variants.
    """
    soup = BeautifulSoup(spread.html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with(_LINE_BREAK)

    position = {
        "spread_index": spread.spread_index,
        "page_start": spread.page_start,
        "page_end": spread.page_end,
    }
    elements: list[ArticleElement] = []
    emitted: set[int] = set()

    for tag in soup.find_all(ELEMENT_TAGS):
        if tag.name == "img":
            src = (tag.get("src") or "").strip()
            if src and not src.startswith("data:"):
                elements.append(ImageElement(
                    filename=image_filename(src), src=src, **position
                ))
            continue

        role = resolve_role(tag.get("class") or [], styles)
        has_marker = _owns_end_marker(tag)
        nested = any(id(parent) in emitted for parent in tag.parents)

        if role is not None and (not nested or role == Role.AUTHOR):
            text = element_text(tag, keep_line_breaks=role in LINE_BREAK_ROLES)
            text = text.replace(ARTICLE_END_MARKER, "").strip()
            if text:
                elements.append(ELEMENT_TYPES[role](text=text, **position))
                emitted.add(id(tag))

        if has_marker:
            elements.append(EndMarkerElement(**position))

    logger.debug(
        f"Spread {spread.spread_index}: {len(elements)} classified elements"
    )
    return elements


def extract_cover_headlines(
    spread: Spread, styles: StyleAnalysis
) -> list[CoverHeadline]:
    """Collect cover titles, each with the first cover chapeau that follows it."""
    headlines: list[CoverHeadline] = []
    for element in extract_elements(spread, styles):
        if element.kind == Role.COVER_TITLE.value:
            headlines.append(CoverHeadline(title=element.text))
        elif element.kind == Role.COVER_CHAPEAU.value and headlines:
            if headlines[-1].subtitle is None:
                headlines[-1].subtitle = element.text

    logger.info(f"Extracted {len(headlines)} cover headlines")
    return headlines
