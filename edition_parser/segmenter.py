"""
Article Segmenter
=================
Deterministic state machine that groups the classified element stream of a
whole edition into articles.

A title element opens an article and closes the previous one. Everything up
to the next title belongs to the open article. Content before the first
title is layout decoration and is discarded.

Usage:
    result = extract_articles(export, config)
    for article in result.articles:
        print(article.title, article.page_start, article.page_end)
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional

from .config import EditionConfig
from .elements import extract_elements
from .errors import ExtractionError
from .models import (
    ArticleExtractionResult,
    BodyParagraph,
    EditionExport,
    ExtractedArticle,
    ParagraphKind,
    Role,
)

logger = logging.getLogger(__name__)

# ─── Free-text Patterns ──────────────────────────────────────────────────────

# "1920-2001", "(1920 – 2001)"
LIFESPAN_PATTERN = re.compile(r"\(?\b(\d{4})\s*[-–]\s*(\d{4})\b\)?")

BIBLE_BOOKS = [
    "Genesis", "Exodus", "Leviticus", "Numeri", "Deuteronomium", "Jozua",
    "Richteren", "Ruth", "Samuël", "Samuel", "Koningen", "Kronieken", "Ezra",
    "Nehemia", "Esther", "Job", "Psalmen", "Psalm", "Spreuken", "Prediker",
    "Hooglied", "Jesaja", "Jeremia", "Klaagliederen", "Ezechiël", "Ezechiel",
    "Daniël", "Daniel", "Hosea", "Joël", "Joel", "Amos", "Obadja", "Jona",
    "Micha", "Nahum", "Habakuk", "Sefanja", "Haggai", "Zacharia", "Maleachi",
    "Mattheüs", "Matteüs", "Matthéüs", "Markus", "Marcus", "Lukas", "Lucas",
    "Johannes", "Handelingen", "Romeinen", "Korinthe", "Korintiërs",
    "Galaten", "Efeziërs", "Efeze", "Filippenzen", "Kolossenzen",
    "Thessalonicenzen", "Tessalonicenzen", "Timotheüs", "Titus", "Filemon",
    "Hebreeën", "Jakobus", "Petrus", "Judas", "Openbaring",
]

# "Psalm 23:1", "1 Korinthe 13:4-7", "Johannes 3:16a"
VERSE_REFERENCE_PATTERN = re.compile(
    r"\b(?:[1-3]\s?)?(?:" + "|".join(BIBLE_BOOKS) + r")"
    r"\s+\d+:\d+[a-z]?(?:\s*[-–]\s*\d+[a-z]?)?"
)

_BODY_KINDS = {
    Role.BODY: ParagraphKind.PARAGRAPH,
    Role.SUBHEADING: ParagraphKind.SUBHEADING,
    Role.STREAMER: ParagraphKind.STREAMER,
    Role.SIDEBAR: ParagraphKind.SIDEBAR,
}

_COVER_KINDS = {Role.COVER_TITLE.value, Role.COVER_CHAPEAU.value}


def find_lifespan(text: str) -> Optional[str]:
    """First birth-death year pair in the text, as "YYYY-YYYY"."""
    for match in LIFESPAN_PATTERN.finditer(text):
        start, end = int(match.group(1)), int(match.group(2))
        if end >= start:
            return f"{start}-{end}"
    return None


def find_verse_reference(text: str) -> Optional[str]:
    match = VERSE_REFERENCE_PATTERN.search(text)
    return match.group(0) if match else None


def generate_excerpt(text: str, max_length: int = 150) -> Optional[str]:
    """
    Shorten plain text to ``max_length`` characters.
    Cuts at the last space when it is close to the limit and appends "...".
    """
    text = " ".join(text.split())
    if not text:
        return None
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated + "..."


# ─── State Machine ───────────────────────────────────────────────────────────


class ParserState(Enum):
    """Segmenter states."""
    IDLE = "IDLE"
    IN_ARTICLE = "IN_ARTICLE"


class ArticleSegmenter:
    """
    Groups an ordered element stream into per-article element lists.
    Each group starts with its title element.
    """

    def __init__(self, honor_end_marker: bool = False):
        self.honor_end_marker = honor_end_marker
        self.state = ParserState.IDLE
        self.current: list = []
        self.groups: list[list] = []
        self.orphans = 0

    def reset(self):
        """Reset the state machine for a fresh run."""
        self.state = ParserState.IDLE
        self.current = []
        self.groups = []
        self.orphans = 0

    def finalize(self):
        """Close the article still open at end of stream."""
        if self.state == ParserState.IN_ARTICLE:
            self._close_article()

    def parse(self, elements: list) -> list[list]:
        """Segment elements into article groups."""
        self.reset()
        for element in elements:
            self._process_element(element)
        self.finalize()

        if self.orphans:
            logger.info(f"Discarded {self.orphans} orphan elements before titles")
        return self.groups

    def _process_element(self, element):
        kind = element.kind

        if kind in _COVER_KINDS:
            return

        if kind == Role.TITLE.value:
            if self.state == ParserState.IN_ARTICLE:
                self._close_article()
            self.current = [element]
            self.state = ParserState.IN_ARTICLE
            return

        if kind == "end-marker":
            if self.honor_end_marker and self.state == ParserState.IN_ARTICLE:
                self._close_article()
            return

        if self.state == ParserState.IDLE:
            self.orphans += 1
            logger.debug(
                f"Skipping orphan {kind} element on spread {element.spread_index}"
            )
            return

        self.current.append(element)

    def _close_article(self):
        self.groups.append(self.current)
        self.current = []
        self.state = ParserState.IDLE


# ─── Article Building ────────────────────────────────────────────────────────


def build_article(elements: list, excerpt_length: int = 150) -> ExtractedArticle:
    """
    Build one article from its element group.

    Raises:
        ExtractionError: If the group is malformed or the article is invalid.
    """
    if not elements or elements[0].kind != Role.TITLE.value:
        raise ExtractionError("Article group does not start with a title")

    title = elements[0].text
    chapeau: Optional[str] = None
    intro_verse: Optional[str] = None
    category: Optional[str] = None
    author_bio: Optional[str] = None
    verse_reference: Optional[str] = None
    author_names: list[str] = []
    paragraphs: list[BodyParagraph] = []
    referenced_images: list[str] = []
    captions: dict[str, str] = {}
    pending_image: Optional[str] = None

    for element in elements[1:]:
        kind = element.kind

        if kind == "image":
            referenced_images.append(element.filename)
            pending_image = element.filename
            continue

        if kind == Role.CAPTION.value:
            if pending_image and pending_image not in captions:
                captions[pending_image] = element.text
            pending_image = None
            continue

        pending_image = None

        if kind == Role.CHAPEAU.value:
            chapeau = chapeau or element.text
        elif kind == Role.INTRO_VERSE.value:
            intro_verse = intro_verse or element.text
        elif kind in (
            Role.BODY.value,
            Role.SUBHEADING.value,
            Role.STREAMER.value,
            Role.SIDEBAR.value,
        ):
            paragraphs.append(BodyParagraph(
                kind=_BODY_KINDS[Role(kind)], text=element.text
            ))
        elif kind == Role.CATEGORY.value:
            category = category or element.text
        elif kind == Role.AUTHOR.value:
            author_names.append(element.text)
        elif kind == Role.AUTHOR_BIO.value:
            author_bio = author_bio or element.text
        elif kind == Role.VERSE_REFERENCE.value:
            verse_reference = verse_reference or element.text

    chapeau = chapeau or intro_verse
    body_text = " ".join(
        p.text for p in paragraphs if p.kind == ParagraphKind.PARAGRAPH
    )
    free_text = " ".join(filter(None, [chapeau, intro_verse, body_text]))

    try:
        return ExtractedArticle(
            title=title,
            chapeau=chapeau,
            body_paragraphs=paragraphs,
            excerpt=generate_excerpt(body_text, excerpt_length),
            category=category,
            lifespan=find_lifespan(free_text),
            verse_reference=verse_reference or find_verse_reference(free_text),
            author_names=author_names,
            author_bio=author_bio,
            page_start=min(e.page_start for e in elements),
            page_end=max(e.page_end for e in elements),
            source_spread_indexes=sorted({e.spread_index for e in elements}),
            referenced_images=referenced_images,
            captions=captions,
        )
    except ValueError as e:
        raise ExtractionError(f"Invalid article '{title}': {e}") from e


def _build_safely(group: list, excerpt_length: int):
    try:
        return build_article(group, excerpt_length)
    except Exception as e:
        title = getattr(group[0], "text", "?") if group else "?"
        return ExtractionError(f"Failed to extract article '{title}': {e}")


def extract_articles(
    export: EditionExport,
    config: Optional[EditionConfig] = None,
) -> ArticleExtractionResult:
    """
    Segment all spreads of an export into articles.

    Args:
        export: Loaded export with spreads and style analysis.
        config: End-marker handling, excerpt length, worker count.

    Returns:
        ArticleExtractionResult. A failing article is reported in ``errors``
        and never drops the other articles.
    """
    config = config or EditionConfig()
    result = ArticleExtractionResult()

    # ── Phase 1: Classified elements in page order ────────────────────
    elements: list = []
    for spread in export.spreads:
        try:
            elements.extend(extract_elements(spread, export.styles))
        except Exception as e:
            msg = f"Failed to read elements of spread {spread.filename}: {e}"
            result.errors.append(msg)
            logger.error(msg)

    # ── Phase 2: Segmentation ─────────────────────────────────────────
    segmenter = ArticleSegmenter(honor_end_marker=config.honor_end_marker)
    groups = segmenter.parse(elements)
    logger.info(f"Segmented {len(elements)} elements into {len(groups)} articles")

    # ── Phase 3: Per-article build ────────────────────────────────────
    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            outcomes = list(pool.map(
                lambda group: _build_safely(group, config.excerpt_length), groups
            ))
    else:
        outcomes = [_build_safely(group, config.excerpt_length) for group in groups]

    for outcome in outcomes:
        if isinstance(outcome, ExtractionError):
            result.errors.append(str(outcome))
            logger.warning(str(outcome))
        else:
            result.articles.append(outcome)

    logger.info(
        f"Extracted {len(result.articles)} articles "
        f"({len(result.errors)} errors)"
    )
    return result
