"""
Export Loader
=============
Loads a layout export from disk: spread markup files, the image index,
the style analysis and edition metadata.

Directory Layout:
    <export_root>/
    └── publication-web-resources/      (optionally one folder deeper)
        ├── html/
        │   ├── publication.html        spread 0 (cover)
        │   └── publication-N.html      spread N
        └── image/                      images, possibly in subfolders

A missing or unreadable export root is fatal (ExportRootError). Everything
else degrades gracefully: bad spreads are skipped and reported in
``EditionExport.errors``.
"""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from .config import EditionConfig
from .elements import extract_cover_headlines, iter_class_names
from .errors import ExportRootError, LoadError
from .metadata import extract_metadata
from .models import (
    EditionExport,
    EditionMetadata,
    ImageIndex,
    Spread,
)
from .style_classifier import DEFAULT_STYLE_RULES, StyleRuleSet, analyze_styles

logger = logging.getLogger(__name__)

RESOURCES_DIR_NAME = "publication-web-resources"
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"}

AUTHOR_PHOTO_KEYWORDS = ("auteur", "author")
DECORATIVE_KEYWORDS = ("logo", "icon", "adv_", "advertentie", "ornament")

# data-page="4", data-page-number="4", <meta name="page" content="4">
PAGE_HINT_PATTERNS = [
    re.compile(r"data-page(?:-number)?\s*=\s*[\"'](\d+)[\"']", re.IGNORECASE),
    re.compile(
        r"<meta\s+name\s*=\s*[\"']page[\"']\s+content\s*=\s*[\"'](\d+)[\"']",
        re.IGNORECASE,
    ),
]


# ─── Directory Discovery ─────────────────────────────────────────────────────


def find_resources_dir(export_root: Path) -> Optional[Path]:
    """
    Locate the resources folder, directly under the root or one level down
    (ZIP extractions usually add a wrapping folder).
    """
    direct = export_root / RESOURCES_DIR_NAME
    if (direct / "html").is_dir():
        return direct

    try:
        entries = sorted(export_root.iterdir())
    except OSError:
        return None

    for entry in entries:
        if entry.name == "__MACOSX" or entry.name.startswith("."):
            continue
        nested = entry / RESOURCES_DIR_NAME
        if (nested / "html").is_dir():
            return nested
    return None


def find_html_dir(export_root: Path) -> Optional[Path]:
    resources = find_resources_dir(export_root)
    return resources / "html" if resources else None


# ─── Spreads ──────────────────────────────────────────────────────────────────


def parse_spread_filename(
    filename: str,
    stem: str = "publication",
    pages_per_spread: int = 2,
) -> tuple[int, int, int]:
    """
    Map a spread filename to (spread_index, page_start, page_end).

    ``<stem>.html`` is the cover (spread 0, page 1). ``<stem>-N.html`` is
    spread N; with two pages per spread it covers pages 2N..2N+1.

    Raises:
        LoadError: If the filename does not follow the convention.
    """
    match = re.fullmatch(
        re.escape(stem) + r"(?:-(\d+))?\.x?html?", filename, re.IGNORECASE
    )
    if not match:
        raise LoadError(f"Unknown spread filename pattern: {filename}")

    if match.group(1) is None:
        return 0, 1, 1

    spread_index = int(match.group(1))
    if spread_index == 0:
        return 0, 1, 1
    page_start = (spread_index - 1) * pages_per_spread + 2
    return spread_index, page_start, page_start + pages_per_spread - 1


def detect_page_hints(html: str) -> Optional[tuple[int, int]]:
    """Return the (min, max) page number marked in the markup, if any."""
    pages = [
        int(m.group(1))
        for pattern in PAGE_HINT_PATTERNS
        for m in pattern.finditer(html)
        if int(m.group(1)) >= 1
    ]
    if not pages:
        return None
    return min(pages), max(pages)


def _load_spread(
    path: Path, stem: str, pages_per_spread: int
) -> Spread:
    spread_index, page_start, page_end = parse_spread_filename(
        path.name, stem, pages_per_spread
    )
    try:
        html = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Cannot read spread {path.name}: {e}") from e

    hints = detect_page_hints(html)
    if hints:
        page_start, page_end = hints

    return Spread(
        filename=path.name,
        spread_index=spread_index,
        page_start=page_start,
        page_end=page_end,
        html=html,
    )


def load_spreads(
    html_dir: Path,
    stem: str = "publication",
    pages_per_spread: int = 2,
    workers: int = 1,
) -> tuple[list[Spread], list[str]]:
    """
    Load every spread file in ``html_dir``.

    Returns:
        (spreads ordered by spread_index, error messages for skipped files)
    """
    files = sorted(p for p in html_dir.iterdir() if p.suffix.lower() == ".html")
    errors: list[str] = []
    spreads: list[Spread] = []

    def load_one(path: Path):
        try:
            return _load_spread(path, stem, pages_per_spread)
        except (LoadError, ValueError) as e:
            return e

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(load_one, files))
    else:
        outcomes = [load_one(path) for path in files]

    for path, outcome in zip(files, outcomes):
        if isinstance(outcome, Exception):
            msg = f"Skipping spread {path.name}: {outcome}"
            errors.append(msg)
            logger.warning(msg)
        else:
            spreads.append(outcome)

    spreads.sort(key=lambda s: s.spread_index)
    return spreads, errors


# ─── Images ───────────────────────────────────────────────────────────────────


def index_images(
    image_dir: Path,
    export_root: Path,
    decorative_max_bytes: int = 0,
) -> tuple[ImageIndex, list[str]]:
    """
    Index all images below ``image_dir`` and bucket them.

    Author photos are recognised by folder or filename keywords, decorative
    images by filename keywords or by a file size below
    ``decorative_max_bytes``. Everything else is an article image.

    Returns:
        (ImageIndex, warnings for duplicate filenames)
    """
    index = ImageIndex()
    warnings: list[str] = []

    for path in sorted(image_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue

        filename = path.name
        if filename in index.images:
            msg = f"Duplicate image filename {filename}, keeping first"
            warnings.append(msg)
            logger.warning(msg)
            continue

        relative = path.relative_to(export_root).as_posix()
        index.images[filename] = relative

        lower_path = path.relative_to(image_dir).as_posix().lower()
        lower_name = filename.lower()

        if any(kw in lower_path for kw in AUTHOR_PHOTO_KEYWORDS):
            index.author_photos.append(filename)
        elif any(kw in lower_name for kw in DECORATIVE_KEYWORDS) or (
            decorative_max_bytes and path.stat().st_size < decorative_max_bytes
        ):
            index.decorative_images.append(filename)
        else:
            index.article_images.append(filename)

    logger.info(
        f"Indexed {len(index.images)} images "
        f"({len(index.article_images)} article, "
        f"{len(index.author_photos)} author, "
        f"{len(index.decorative_images)} decorative)"
    )
    return index, warnings


def collect_class_names(spreads: list[Spread]) -> list[str]:
    """Distinct class names on text-bearing elements, in first-seen order."""
    seen: dict[str, None] = {}
    for spread in spreads:
        for class_name in iter_class_names(spread.html):
            seen.setdefault(class_name, None)
    return list(seen)


# ─── Export ───────────────────────────────────────────────────────────────────


def load_export(
    export_root: str | Path,
    config: Optional[EditionConfig] = None,
    rules: Optional[StyleRuleSet] = None,
    metadata_extractor: Callable[[Path], EditionMetadata] = extract_metadata,
) -> EditionExport:
    """
    Load and analyze a complete export.

    Args:
        export_root: Root directory of the export.
        config: Filename stem, pages per spread, decorative threshold, workers.
        rules: Style classification rule table (default: built-in table).
        metadata_extractor: Callable returning edition number/date.

    Returns:
        EditionExport, possibly partial, with non-fatal errors.

    Raises:
        ExportRootError: If the export root is missing or unreadable.
    """
    config = config or EditionConfig()
    rules = rules or DEFAULT_STYLE_RULES
    stem = config.spread_stem
    pages_per_spread = config.pages_per_spread
    decorative_max_bytes = config.decorative_max_bytes
    workers = config.workers

    root = Path(export_root)
    if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
        raise ExportRootError(f"Export root not found or unreadable: {root}")

    logger.info(f"Loading export from: {root}")
    export = EditionExport(root_dir=str(root))

    resources = find_resources_dir(root)
    if resources is None:
        msg = "Could not find HTML directory in export"
        export.errors.append(msg)
        logger.warning(msg)
    else:
        # ── Step 1: Spreads ────────────────────────────────────────────
        try:
            spreads, errors = load_spreads(
                resources / "html", stem, pages_per_spread, workers
            )
            export.spreads = spreads
            export.errors.extend(errors)
            logger.info(f"Loaded {len(spreads)} spreads")
        except OSError as e:
            msg = f"Failed to load spreads: {e}"
            export.errors.append(msg)
            logger.error(msg)

        # ── Step 2: Images ─────────────────────────────────────────────
        image_dir = resources / "image"
        if image_dir.is_dir():
            try:
                export.images, warnings = index_images(
                    image_dir, root, decorative_max_bytes
                )
                export.errors.extend(warnings)
            except OSError as e:
                msg = f"Failed to index images: {e}"
                export.errors.append(msg)
                logger.error(msg)
        else:
            logger.warning(f"No image directory at {image_dir}")

        # ── Step 3: Styles ─────────────────────────────────────────────
        export.styles = analyze_styles(collect_class_names(export.spreads), rules)

    # ── Step 4: Metadata ───────────────────────────────────────────────
    try:
        export.metadata = metadata_extractor(root) or EditionMetadata()
    except Exception as e:
        msg = f"Failed to extract metadata: {e}"
        export.errors.append(msg)
        logger.error(msg)

    cover = next((s for s in export.spreads if s.spread_index == 0), None)
    if cover is not None:
        export.metadata.cover_headlines = extract_cover_headlines(
            cover, export.styles
        )

    if export.errors:
        logger.warning(f"Export loaded with {len(export.errors)} error(s)")
    return export
