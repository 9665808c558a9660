"""
SQLite Database Layer
=====================
Persistent storage for processed editions.
Editions, articles, images, authors and article-author relations are
stored in SQLite. No in-memory caching; always reads from disk.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from .errors import PersistenceError
from .models import ArticleAuthorRecord, AuthorRecord

logger = logging.getLogger(__name__)

# Default database path: project_root/database.sqlite
_DEFAULT_DB_PATH = str(Path(__file__).parent.parent / "database.sqlite")


def get_db_path() -> str:
    """Return the configured database path."""
    return os.environ.get("EDITION_DB_PATH", _DEFAULT_DB_PATH)


@contextmanager
def get_connection(db_path: str = None):
    """
    Context manager for database connections.
    Ensures proper commit/rollback and connection cleanup.
    """
    db_path = db_path or get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = None):
    """
    Initialize the database schema.
    Safe to call multiple times; uses IF NOT EXISTS.
    """
    db_path = db_path or get_db_path()
    logger.info(f"Initializing database at: {db_path}")

    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS editions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                export_root TEXT DEFAULT '',
                edition_number INTEGER,
                edition_date TEXT,
                cover_headlines TEXT DEFAULT '[]',
                status TEXT DEFAULT 'pending',
                error_message TEXT DEFAULT NULL,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                edition_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                chapeau TEXT,
                excerpt TEXT,
                category TEXT,
                content TEXT DEFAULT '',
                lifespan TEXT,
                verse_reference TEXT,
                author_bio TEXT,
                page_start INTEGER DEFAULT 1,
                page_end INTEGER DEFAULT 1,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(edition_id) REFERENCES editions(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS authors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                photo_url TEXT,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS article_authors (
                article_id INTEGER NOT NULL,
                author_id INTEGER NOT NULL,
                PRIMARY KEY (article_id, author_id),
                FOREIGN KEY(article_id) REFERENCES articles(id) ON DELETE CASCADE,
                FOREIGN KEY(author_id) REFERENCES authors(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS images (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                article_id INTEGER NOT NULL,
                url TEXT NOT NULL,
                caption TEXT,
                is_featured INTEGER DEFAULT 0,
                sort_order INTEGER DEFAULT 0,
                FOREIGN KEY(article_id) REFERENCES articles(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_articles_edition_id
                ON articles(edition_id);
            CREATE INDEX IF NOT EXISTS idx_images_article_id
                ON images(article_id);
            CREATE INDEX IF NOT EXISTS idx_article_authors_author_id
                ON article_authors(author_id);
        """)

    logger.info("Database schema initialized successfully")


# ─── Edition CRUD ─────────────────────────────────────────────────────────────


def insert_edition(
    export_root: str = "",
    status: str = "processing",
    db_path: str = None,
) -> int:
    """Insert a new edition record. Returns the edition_id."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "INSERT INTO editions (export_root, status) VALUES (?, ?)",
            (export_root, status),
        )
        edition_id = cursor.lastrowid
        logger.info(f"Inserted edition id={edition_id} root={export_root!r}")
        return edition_id


def update_edition(edition_id: int, db_path: str = None, **fields) -> bool:
    """Update edition fields. Returns True if row was found."""
    allowed = {
        "export_root", "edition_number", "edition_date", "cover_headlines",
        "status", "error_message",
    }
    fields = {k: v for k, v in fields.items() if k in allowed}
    if not fields:
        return False

    if "edition_date" in fields and fields["edition_date"] is not None:
        fields["edition_date"] = str(fields["edition_date"])
    if "cover_headlines" in fields and not isinstance(fields["cover_headlines"], str):
        fields["cover_headlines"] = json.dumps(fields["cover_headlines"])

    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [edition_id]

    with get_connection(db_path) as conn:
        cursor = conn.execute(
            f"UPDATE editions SET {set_clause}, updated_at = CURRENT_TIMESTAMP "
            f"WHERE id = ?",
            values,
        )
        return cursor.rowcount > 0


def get_edition(edition_id: int, db_path: str = None) -> Optional[dict]:
    """Fetch a single edition by ID."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM editions WHERE id = ?", (edition_id,)
        ).fetchone()
        if not row:
            return None
        edition = dict(row)
        edition["cover_headlines"] = json.loads(edition["cover_headlines"] or "[]")
        return edition


# ─── Article CRUD ─────────────────────────────────────────────────────────────


def insert_article(edition_id: int, article: dict, db_path: str = None) -> int:
    """
    Insert an article. ``article`` holds the ExtractedArticle fields
    (title, chapeau, excerpt, category, content, ...). Returns article_id.
    """
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO articles
               (edition_id, title, chapeau, excerpt, category, content,
                lifespan, verse_reference, author_bio, page_start, page_end)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                edition_id,
                article["title"],
                article.get("chapeau"),
                article.get("excerpt"),
                article.get("category"),
                article.get("content", ""),
                article.get("lifespan"),
                article.get("verse_reference"),
                article.get("author_bio"),
                article.get("page_start", 1),
                article.get("page_end", 1),
            ),
        )
        return cursor.lastrowid


def get_article(article_id: int, db_path: str = None) -> Optional[dict]:
    """Fetch a single article by ID."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM articles WHERE id = ?", (article_id,)
        ).fetchone()
        return dict(row) if row else None


def list_edition_articles(edition_id: int, db_path: str = None) -> list[dict]:
    """All articles of an edition in page order."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT * FROM articles WHERE edition_id = ?
               ORDER BY page_start, id""",
            (edition_id,),
        ).fetchall()
        return [dict(r) for r in rows]


# ─── Image CRUD ──────────────────────────────────────────────────────────────


def insert_image(
    article_id: int,
    url: str,
    caption: str = None,
    is_featured: bool = False,
    sort_order: int = 0,
    db_path: str = None,
) -> int:
    """Insert a new image record. Returns image_id."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO images (article_id, url, caption, is_featured, sort_order)
               VALUES (?, ?, ?, ?, ?)""",
            (article_id, url, caption, 1 if is_featured else 0, sort_order),
        )
        return cursor.lastrowid


def get_article_images(article_id: int, db_path: str = None) -> list[dict]:
    """Get all images for an article, ordered by sort_order."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT * FROM images WHERE article_id = ?
               ORDER BY sort_order, id""",
            (article_id,),
        ).fetchall()
        images = [dict(r) for r in rows]
        for image in images:
            image["is_featured"] = bool(image["is_featured"])
        return images


# ─── Author CRUD ──────────────────────────────────────────────────────────────


def upsert_author(name: str, photo_url: str = None, db_path: str = None) -> dict:
    """
    Insert an author or return the existing one with the same name.
    An existing photo_url is only replaced by a new non-empty one.
    """
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO authors (name, photo_url) VALUES (?, ?)
               ON CONFLICT(name) DO UPDATE SET
                   photo_url = COALESCE(excluded.photo_url, authors.photo_url)""",
            (name, photo_url or None),
        )
        row = conn.execute(
            "SELECT id, name, photo_url FROM authors WHERE name = ?", (name,)
        ).fetchone()
        return dict(row)


def upsert_article_author(
    article_id: int, author_id: int, db_path: str = None
) -> dict:
    """Link an author to an article. Idempotent."""
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT OR IGNORE INTO article_authors (article_id, author_id)
               VALUES (?, ?)""",
            (article_id, author_id),
        )
        return {"article_id": article_id, "author_id": author_id}


def get_article_authors(article_id: int, db_path: str = None) -> list[dict]:
    """Authors linked to an article, in link order."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT a.id, a.name, a.photo_url
               FROM authors a
               JOIN article_authors aa ON aa.author_id = a.id
               WHERE aa.article_id = ?
               ORDER BY aa.rowid""",
            (article_id,),
        ).fetchall()
        return [dict(r) for r in rows]


class SqliteAuthorStore:
    """Author persistence backed by the functions above."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path

    def upsert_author(self, name: str, photo_url: str = None) -> AuthorRecord:
        try:
            return AuthorRecord(**upsert_author(name, photo_url, self.db_path))
        except sqlite3.Error as e:
            raise PersistenceError(f"author upsert failed for {name!r}: {e}") from e

    def upsert_article_author(
        self, article_id: int, author_id: int
    ) -> ArticleAuthorRecord:
        try:
            return ArticleAuthorRecord(
                **upsert_article_author(article_id, author_id, self.db_path)
            )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"relation upsert failed for article {article_id}, "
                f"author {author_id}: {e}"
            ) from e
