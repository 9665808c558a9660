"""
Metadata Extractor
==================
Finds the edition number and edition date in the spread markup.

Looks for "Jaargang 42" / "Nr. 123" style numbers and Dutch long dates
("15 januari 2026"). A miss is not an error: the fields stay ``None`` and
callers treat that as "no update".
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional

from bs4 import BeautifulSoup

from .models import EditionMetadata

logger = logging.getLogger(__name__)

DUTCH_MONTHS = {
    "januari": 1,
    "februari": 2,
    "maart": 3,
    "april": 4,
    "mei": 5,
    "juni": 6,
    "juli": 7,
    "augustus": 8,
    "september": 9,
    "oktober": 10,
    "november": 11,
    "december": 12,
}

# "Jaargang 42", "Nr. 123", "Nr 123"
EDITION_NUMBER_PATTERN = re.compile(r"(?:Jaargang|Nr\.?)\s*(\d+)", re.IGNORECASE)

# "15 januari 2026"
EDITION_DATE_PATTERN = re.compile(
    r"(\d{1,2})\s+(" + "|".join(DUTCH_MONTHS) + r")\s+(\d{4})",
    re.IGNORECASE,
)


def parse_dutch_date(day: str, month: str, year: str) -> Optional[date]:
    """Build a date from Dutch day/month-name/year parts, or None if invalid."""
    month_number = DUTCH_MONTHS.get(month.lower())
    if month_number is None:
        return None
    try:
        return date(int(year), month_number, int(day))
    except ValueError:
        return None


def extract_metadata_from_text(text: str) -> EditionMetadata:
    """Scan plain text for an edition number and date."""
    number_match = EDITION_NUMBER_PATTERN.search(text)
    date_match = EDITION_DATE_PATTERN.search(text)
    return EditionMetadata(
        edition_number=int(number_match.group(1)) if number_match else None,
        edition_date=(
            parse_dutch_date(*date_match.groups()) if date_match else None
        ),
    )


def extract_metadata(export_root: str | Path) -> EditionMetadata:
    """
    Extract edition metadata from an export.

    Args:
        export_root: Root directory of the export.

    Returns:
        EditionMetadata from the first spread file (in name order) that
        contains a number or a date; all-``None`` when nothing matched.
    """
    from .loader import find_html_dir

    html_dir = find_html_dir(Path(export_root))
    if html_dir is None:
        logger.warning(f"No HTML directory under {export_root}")
        return EditionMetadata()

    for html_file in sorted(html_dir.glob("*.html")):
        markup = html_file.read_text(encoding="utf-8", errors="replace")
        soup = BeautifulSoup(markup, "html.parser")
        body = soup.body or soup
        metadata = extract_metadata_from_text(body.get_text(" "))

        if metadata.edition_number is not None or metadata.edition_date is not None:
            logger.info(
                f"Metadata from {html_file.name}: edition "
                f"{metadata.edition_number}, date {metadata.edition_date}"
            )
            return metadata

    logger.info("No edition metadata found")
    return EditionMetadata()
