"""
Author Extractor
================
Splits and normalizes the raw author strings of extracted articles,
de-duplicates authors across the edition, matches author photos and
persists authors plus article-author relations.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
from pathlib import Path
from typing import Optional, Protocol

from .models import (
    ArticleAuthorRecord,
    AuthorExtractionResult,
    AuthorRecord,
    EditionExport,
    ExtractedArticle,
    ExtractedAuthor,
    SaveAuthorsResult,
)

logger = logging.getLogger(__name__)

# Comma, ampersand, whole-word "en" / "and" (case-sensitive)
AUTHOR_SEPARATOR_PATTERN = re.compile(r"\s*[,&]\s*|\s+(?:en|and)\s+")

AUTHOR_PREFIX_PATTERN = re.compile(
    r"^(?:(?:door|tekst|text|auteur|author)\s*:\s*|by\s+)", re.IGNORECASE
)
TRAILING_PUNCTUATION_PATTERN = re.compile(r"[.,\s]+$")

# Tokens this short are initials and never used for photo matching
MIN_MATCH_TOKEN_LENGTH = 3

AUTHOR_PHOTO_URL = "/uploads/editions/{edition_id}/images/authors/{filename}"


# ─── Names ────────────────────────────────────────────────────────────────────


def parse_author_names(raw_strings: list[str]) -> list[str]:
    """
    Split raw author strings into individual names.

    >>> parse_author_names(["Jan Jansen en Piet de Vries", "Jan Jansen"])
    ['Jan Jansen', 'Piet de Vries']
    """
    names: dict[str, None] = {}
    for raw in raw_strings:
        text = " ".join(raw.splitlines())
        for piece in AUTHOR_SEPARATOR_PATTERN.split(text):
            piece = piece.strip()
            if piece:
                names.setdefault(piece, None)
    return list(names)


def normalize_name(name: str) -> str:
    """
    Canonical form of an author name.

    Strips "Door:", "Tekst:" and "by " prefixes and trailing periods/commas,
    and collapses whitespace. ``normalize_name(normalize_name(x))`` equals
    ``normalize_name(x)``.
    """
    normalized = " ".join(name.split())
    while True:
        previous = normalized
        normalized = AUTHOR_PREFIX_PATTERN.sub("", normalized)
        normalized = TRAILING_PUNCTUATION_PATTERN.sub("", normalized).strip()
        if normalized == previous:
            return normalized


def _filename_key(filename: str) -> str:
    return re.sub(r"[_\s]+", "-", filename.lower())


def match_author_photo(
    name: str,
    candidate_filenames: list[str],
    image_paths: dict[str, str],
) -> tuple[Optional[str], Optional[str]]:
    """
    Find the photo of an author among candidate filenames.

    Tries the full name ("jan-jansen"), then the surname, then any other
    name token. Tokens shorter than three characters are skipped.

    Returns:
        (filename, source path relative to the export root), or (None, None).
    """
    lower_name = name.lower().strip()
    if not lower_name or not candidate_filenames:
        return None, None

    keys = [(filename, _filename_key(filename)) for filename in candidate_filenames]
    tokens = lower_name.split()

    attempts = []
    if len(lower_name) >= MIN_MATCH_TOKEN_LENGTH:
        attempts.append("-".join(tokens))
    if len(tokens[-1]) >= MIN_MATCH_TOKEN_LENGTH:
        attempts.append(tokens[-1])
    attempts.extend(t for t in tokens if len(t) >= MIN_MATCH_TOKEN_LENGTH)

    for needle in attempts:
        for filename, key in keys:
            if needle in key:
                return filename, image_paths.get(filename)
    return None, None


# ─── Aggregation ──────────────────────────────────────────────────────────────


class AuthorAccumulator:
    """
    Name -> author map for one batch.
    Safe to merge into from several threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, dict] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def add(
        self,
        name: str,
        article_title: str,
        photo_filename: Optional[str] = None,
        photo_source_path: Optional[str] = None,
    ):
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                self._entries[name] = {
                    "photo_filename": photo_filename,
                    "photo_source_path": photo_source_path,
                    "article_titles": [article_title],
                }
                return
            if article_title not in entry["article_titles"]:
                entry["article_titles"].append(article_title)
            if entry["photo_filename"] is None and photo_filename:
                entry["photo_filename"] = photo_filename
                entry["photo_source_path"] = photo_source_path

    def merge(self, other: AuthorAccumulator):
        """Fold another accumulator into this one."""
        for author in other.authors():
            for title in author.article_titles:
                self.add(
                    author.name, title,
                    author.photo_filename, author.photo_source_path,
                )

    def authors(self) -> list[ExtractedAuthor]:
        with self._lock:
            return [
                ExtractedAuthor(
                    name=name,
                    photo_filename=entry["photo_filename"],
                    photo_source_path=entry["photo_source_path"],
                    article_titles=list(entry["article_titles"]),
                )
                for name, entry in self._entries.items()
            ]


def extract_authors_from_articles(
    articles: list[ExtractedArticle],
    export: EditionExport,
    accumulator: Optional[AuthorAccumulator] = None,
) -> AuthorExtractionResult:
    """
    Build one ExtractedAuthor per distinct normalized name.

    Args:
        articles: Articles in publication order.
        export: Export providing the author-photo bucket and image paths.
        accumulator: Existing accumulator to merge into (new one if omitted).

    Returns:
        AuthorExtractionResult with authors in first-seen order.
    """
    accumulator = accumulator if accumulator is not None else AuthorAccumulator()
    errors: list[str] = []

    for article in articles:
        try:
            for raw_name in parse_author_names(article.author_names):
                name = normalize_name(raw_name)
                if not name:
                    continue
                if name in accumulator:
                    accumulator.add(name, article.title)
                    continue
                filename, source_path = match_author_photo(
                    name, export.images.author_photos, export.images.images
                )
                accumulator.add(name, article.title, filename, source_path)
        except Exception as e:
            msg = f"Failed to extract authors from article '{article.title}': {e}"
            errors.append(msg)
            logger.error(msg)

    authors = accumulator.authors()
    logger.info(
        f"Extracted {len(authors)} unique authors from {len(articles)} articles"
    )
    return AuthorExtractionResult(authors=authors, errors=errors)


# ─── Persistence ──────────────────────────────────────────────────────────────


class AuthorStore(Protocol):
    """Persistence operations used by ``save_authors``."""

    def upsert_author(
        self, name: str, photo_url: Optional[str] = None
    ) -> AuthorRecord: ...

    def upsert_article_author(
        self, article_id: int, author_id: int
    ) -> ArticleAuthorRecord: ...


def _copy_author_photo(
    author: ExtractedAuthor,
    edition_id: int,
    export_root: Path,
    photos_dir: Path,
) -> str:
    source = export_root / author.photo_source_path
    filename = author.photo_filename or source.name
    photos_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, photos_dir / filename)
    return AUTHOR_PHOTO_URL.format(edition_id=edition_id, filename=filename)


def save_authors(
    store: AuthorStore,
    edition_id: int,
    authors: list[ExtractedAuthor],
    article_title_to_id: dict[str, int],
    export_root: Optional[str | Path] = None,
    photos_dir: Optional[str | Path] = None,
) -> SaveAuthorsResult:
    """
    Persist authors and their article relations.

    Each author is upserted by name. A photo is copied into ``photos_dir``
    when both directories are given; a copy failure leaves the photo unset.
    A failing author or relation is recorded in ``errors`` and the batch
    continues. A title missing from ``article_title_to_id`` is a warning.
    """
    result = SaveAuthorsResult()
    logger.info(f"Saving {len(authors)} authors for edition {edition_id}")

    for author in authors:
        photo_url: Optional[str] = None
        if author.photo_source_path and export_root and photos_dir:
            try:
                photo_url = _copy_author_photo(
                    author, edition_id, Path(export_root), Path(photos_dir)
                )
            except OSError as e:
                msg = f"Could not copy photo for {author.name}: {e}"
                result.warnings.append(msg)
                logger.warning(msg)

        try:
            record = store.upsert_author(author.name, photo_url)
        except Exception as e:
            msg = f"Failed to save author {author.name}: {e}"
            result.errors.append(msg)
            logger.error(msg)
            continue
        result.authors.append(record)

        for title in author.article_titles:
            article_id = article_title_to_id.get(title)
            if article_id is None:
                msg = f"No article ID found for title: {title}"
                result.warnings.append(msg)
                logger.warning(msg)
                continue
            try:
                relation = store.upsert_article_author(article_id, record.id)
            except Exception as e:
                msg = (
                    f"Failed to link article {article_id} "
                    f"to author {record.id}: {e}"
                )
                result.errors.append(msg)
                logger.error(msg)
                continue
            result.relations.append(relation)

    logger.info(
        f"Saved {len(result.authors)} authors, {len(result.relations)} relations"
    )
    return result
