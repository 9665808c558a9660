"""
Read Service Layer
==================
Builds read-API responses from SQLite.
Never re-parses an export; everything comes from persisted rows.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import database as db
from .content_blocks import get_featured_image, transform_to_content_blocks
from .models import ArticleImage

logger = logging.getLogger(__name__)


def get_article_detail(article_id: int, db_path: str = None) -> Optional[dict]:
    """
    Article detail as served by the read API.
    Returns None if the article does not exist.
    """
    article = db.get_article(article_id, db_path)
    if not article:
        return None

    images = [
        ArticleImage(
            url=row["url"],
            caption=row["caption"],
            is_featured=row["is_featured"],
            sort_order=row["sort_order"],
        )
        for row in db.get_article_images(article_id, db_path)
    ]
    featured = get_featured_image(images)
    blocks = transform_to_content_blocks(article["content"] or "", images)

    return {
        "id": article["id"],
        "title": article["title"],
        "chapeau": article["chapeau"],
        "excerpt": article["excerpt"],
        "category": article["category"],
        "pageStart": article["page_start"],
        "pageEnd": article["page_end"],
        "authors": [
            {"id": a["id"], "name": a["name"], "photoUrl": a["photo_url"]}
            for a in db.get_article_authors(article_id, db_path)
        ],
        "featuredImage": featured.model_dump() if featured else None,
        "contentBlocks": [block.to_api() for block in blocks],
    }


def get_edition_detail(edition_id: int, db_path: str = None) -> Optional[dict]:
    """Edition metadata with a short listing of its articles."""
    edition = db.get_edition(edition_id, db_path)
    if not edition:
        return None

    return {
        "id": edition["id"],
        "editionNumber": edition["edition_number"],
        "editionDate": edition["edition_date"],
        "status": edition["status"],
        "coverHeadlines": edition["cover_headlines"],
        "articles": [
            {
                "id": a["id"],
                "title": a["title"],
                "excerpt": a["excerpt"],
                "category": a["category"],
                "pageStart": a["page_start"],
                "pageEnd": a["page_end"],
            }
            for a in db.list_edition_articles(edition_id, db_path)
        ],
    }
