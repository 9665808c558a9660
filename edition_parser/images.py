"""
Image Mapper
============
Selects the content images of each extracted article and stores them.

The first content image of an article is its featured image; sort_order is
the image's position among the article's content images.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from . import database as db
from .models import (
    ArticleImage,
    EditionExport,
    ExtractedArticle,
    ExtractedImage,
    ImageMappingResult,
    SaveImagesResult,
)

logger = logging.getLogger(__name__)

ARTICLE_IMAGE_URL = "/uploads/editions/{edition_id}/images/articles/{filename}"

NON_CONTENT_KEYWORDS = ("logo", "icon", "advertentie")
NON_CONTENT_PREFIXES = ("adv_", "data:")


def is_content_image(filename: str, export: EditionExport) -> bool:
    """False for decorative images, advertisements and author photos."""
    lower = filename.lower()
    if lower.startswith(NON_CONTENT_PREFIXES):
        return False
    if any(kw in lower for kw in NON_CONTENT_KEYWORDS):
        return False
    return (
        filename not in export.images.decorative_images
        and filename not in export.images.author_photos
    )


def _images_for_article(
    article: ExtractedArticle,
    export: EditionExport,
    warnings: list[str],
) -> list[ExtractedImage]:
    images: list[ExtractedImage] = []
    seen: set[str] = set()

    for filename in article.referenced_images:
        if filename in seen or not is_content_image(filename, export):
            continue
        seen.add(filename)

        source_path = export.images.images.get(filename)
        if source_path is None:
            msg = f"Image {filename} not found in export for '{article.title}'"
            warnings.append(msg)
            logger.warning(msg)
            continue

        images.append(ExtractedImage(
            filename=filename,
            source_path=source_path,
            caption=article.captions.get(filename),
            is_featured=not images,
            sort_order=len(images),
            article_title=article.title,
        ))
    return images


def map_images_to_articles(
    articles: list[ExtractedArticle],
    export: EditionExport,
) -> ImageMappingResult:
    """Collect the content images of every article."""
    result = ImageMappingResult()
    for article in articles:
        try:
            result.images.extend(_images_for_article(article, export, result.warnings))
        except Exception as e:
            msg = f"Failed to map images for article '{article.title}': {e}"
            result.errors.append(msg)
            logger.error(msg)

    logger.info(
        f"Mapped {len(result.images)} images from {len(articles)} articles"
    )
    return result


def save_images(
    edition_id: int,
    images: list[ExtractedImage],
    article_title_to_id: dict[str, int],
    export_root: str | Path,
    uploads_dir: str | Path,
    db_path: str = None,
) -> SaveImagesResult:
    """
    Copy image files into the uploads directory and insert image rows.

    Args:
        edition_id: Owning edition.
        images: Output of ``map_images_to_articles``.
        article_title_to_id: Title -> persisted article id.
        export_root: Root of the export the source paths are relative to.
        uploads_dir: Base uploads directory.
        db_path: Database path (default: EDITION_DB_PATH).

    Returns:
        SaveImagesResult. A failing image is recorded and skipped.
    """
    result = SaveImagesResult()
    target_dir = Path(uploads_dir) / "editions" / str(edition_id) / "images" / "articles"

    for image in images:
        article_id = article_title_to_id.get(image.article_title)
        if article_id is None:
            msg = f"No article ID found for title: {image.article_title}"
            result.warnings.append(msg)
            logger.warning(msg)
            continue

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(Path(export_root) / image.source_path, target_dir / image.filename)
            url = ARTICLE_IMAGE_URL.format(edition_id=edition_id, filename=image.filename)
            db.insert_image(
                article_id,
                url,
                caption=image.caption,
                is_featured=image.is_featured,
                sort_order=image.sort_order,
                db_path=db_path,
            )
        except Exception as e:
            msg = f"Failed to save image {image.filename}: {e}"
            result.errors.append(msg)
            logger.error(msg)
            continue

        result.images.append(ArticleImage(
            url=url,
            caption=image.caption,
            is_featured=image.is_featured,
            sort_order=image.sort_order,
        ))

    logger.info(
        f"Saved {len(result.images)} images, {len(result.errors)} errors"
    )
    return result
