"""
Configuration
=============
Run configuration shared by the loader, segmenter and engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .style_classifier import DEFAULT_STYLE_RULES, StyleRuleSet, load_style_rules


@dataclass
class EditionConfig:
    """Configuration for the edition engine."""

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Storage (db_path None -> EDITION_DB_PATH / default)
    db_path: Optional[str] = None
    uploads_dir: str = "uploads"

    # Export layout
    spread_stem: str = "publication"
    pages_per_spread: int = 2
    decorative_max_bytes: int = 0
    style_rules_file: Optional[str] = None

    # Segmentation
    honor_end_marker: bool = False
    excerpt_length: int = 150

    # Processing
    workers: int = 1

    def style_rules(self) -> StyleRuleSet:
        if self.style_rules_file:
            return load_style_rules(self.style_rules_file)
        return DEFAULT_STYLE_RULES
