"""
Edition Engine
==============
Main orchestrator that combines export loading, segmentation, author and
image extraction and persistence into a complete edition pipeline.

Usage:
    engine = EditionEngine(config)
    result = engine.process("path/to/export")
    # result is a ProcessingResult with status, stats, errors and warnings

Architecture:
    Export → Loader → Spreads + Styles → Segmenter → ExtractedArticles →
    Authors / Images → SQLite → ProcessingResult
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from . import database as db
from .authors import extract_authors_from_articles, save_authors
from .config import EditionConfig
from .images import map_images_to_articles, save_images
from .loader import load_export
from .metadata import extract_metadata
from .models import EditionMetadata, EditionStatus, ExtractedArticle, ProcessingResult
from .segmenter import extract_articles

logger = logging.getLogger(__name__)

_LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"

__all__ = ["EditionConfig", "EditionEngine"]


class EditionEngine:
    """
    Main edition processing engine.

    Orchestrates the full pipeline:
        1. Export loading (spreads, images, styles, metadata)
        2. Article segmentation
        3. Article persistence
        4. Author extraction and persistence
        5. Image mapping and persistence
        6. Run status
    """

    def __init__(
        self,
        config: Optional[EditionConfig] = None,
        metadata_extractor: Callable[[Path], EditionMetadata] = extract_metadata,
    ):
        self.config = config or EditionConfig()
        self.metadata_extractor = metadata_extractor
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("edition_parser")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            Path(self.config.log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.log_file, encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )
            package_logger.addHandler(file_handler)

    def process(self, export_root: str | Path) -> ProcessingResult:
        """
        Process one edition export end to end.

        Args:
            export_root: Root directory of the export.

        Returns:
            ProcessingResult with edition id, stats and run status.

        Raises:
            ExportRootError: If the export root is missing or unreadable.
        """
        start_time = time.time()
        config = self.config
        db_path = config.db_path
        result = ProcessingResult()

        # ── Step 1: Load export ───────────────────────────────────────
        logger.info(f"Starting edition processing of: {export_root}")
        export = load_export(
            export_root, config, config.style_rules(), self.metadata_extractor
        )
        result.errors.extend(export.errors)
        result.stats.spreads_loaded = len(export.spreads)

        db.init_db(db_path)
        edition_id = db.insert_edition(export.root_dir, db_path=db_path)
        result.edition_id = edition_id
        self._save_metadata(edition_id, export.metadata)

        if not export.spreads:
            result.errors.append("No spreads found in export")
            return self._finish(result, start_time)

        # ── Step 2: Segmentation ──────────────────────────────────────
        logger.info("Phase 1: Article segmentation")
        extraction = extract_articles(export, config)
        result.errors.extend(extraction.errors)
        result.stats.articles_extracted = len(extraction.articles)

        # ── Step 3: Articles ──────────────────────────────────────────
        logger.info("Phase 2: Article persistence")
        title_to_id = self._save_articles(edition_id, extraction.articles, result)

        # ── Step 4: Authors ───────────────────────────────────────────
        logger.info("Phase 3: Authors")
        authors = extract_authors_from_articles(extraction.articles, export)
        result.errors.extend(authors.errors)
        result.stats.authors_extracted = len(authors.authors)

        photos_dir = (
            Path(config.uploads_dir) / "editions" / str(edition_id)
            / "images" / "authors"
        )
        saved_authors = save_authors(
            db.SqliteAuthorStore(db_path),
            edition_id,
            authors.authors,
            title_to_id,
            export_root=export.root_dir,
            photos_dir=photos_dir,
        )
        result.errors.extend(saved_authors.errors)
        result.warnings.extend(saved_authors.warnings)
        result.stats.authors_saved = len(saved_authors.authors)

        # ── Step 5: Images ────────────────────────────────────────────
        logger.info("Phase 4: Images")
        mapping = map_images_to_articles(extraction.articles, export)
        result.errors.extend(mapping.errors)
        result.warnings.extend(mapping.warnings)
        result.stats.images_extracted = len(mapping.images)

        saved_images = save_images(
            edition_id,
            mapping.images,
            title_to_id,
            export.root_dir,
            config.uploads_dir,
            db_path=db_path,
        )
        result.errors.extend(saved_images.errors)
        result.warnings.extend(saved_images.warnings)
        result.stats.images_saved = len(saved_images.images)

        return self._finish(result, start_time)

    def _save_metadata(self, edition_id: int, metadata: EditionMetadata):
        fields = {
            "cover_headlines": [h.model_dump() for h in metadata.cover_headlines],
        }
        # None means "not found": keep whatever is stored
        if metadata.edition_number is not None:
            fields["edition_number"] = metadata.edition_number
        if metadata.edition_date is not None:
            fields["edition_date"] = metadata.edition_date
        db.update_edition(edition_id, db_path=self.config.db_path, **fields)

    def _save_articles(
        self,
        edition_id: int,
        articles: list[ExtractedArticle],
        result: ProcessingResult,
    ) -> dict[str, int]:
        """Insert articles. Returns title -> id (first article wins)."""
        title_to_id: dict[str, int] = {}
        for article in articles:
            try:
                article_id = db.insert_article(
                    edition_id, article.model_dump(), db_path=self.config.db_path
                )
            except Exception as e:
                msg = f"Failed to save article '{article.title}': {e}"
                result.errors.append(msg)
                logger.error(msg)
                continue

            result.stats.articles_saved += 1
            if article.title in title_to_id:
                msg = f"Duplicate article title '{article.title}', relations use the first"
                result.warnings.append(msg)
                logger.warning(msg)
            else:
                title_to_id[article.title] = article_id
        return title_to_id

    def _finish(self, result: ProcessingResult, start_time: float) -> ProcessingResult:
        """Decide the run status and store it on the edition."""
        stats = result.stats
        if stats.spreads_loaded == 0 or (stats.articles_saved == 0 and result.errors):
            result.status = EditionStatus.FAILED
        elif result.errors or result.warnings:
            result.status = EditionStatus.COMPLETED_WITH_ERRORS
        else:
            result.status = EditionStatus.COMPLETED

        stats.elapsed_ms = int((time.time() - start_time) * 1000)

        if result.edition_id is not None:
            db.update_edition(
                result.edition_id,
                db_path=self.config.db_path,
                status=result.status.value,
                error_message=result.errors[0] if result.errors else None,
            )

        logger.info(
            f"Edition {result.edition_id} {result.status.value} in "
            f"{stats.elapsed_ms} ms: {stats.articles_saved} articles, "
            f"{stats.authors_saved} authors, {stats.images_saved} images"
        )
        return result
