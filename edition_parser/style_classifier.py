"""
Style Classifier
================
Maps markup class names observed in the export to semantic roles.

Classification is table driven: a ``StyleRuleSet`` is an ordered list of
rules (role -> keywords, exclusions). Rules are evaluated in order and the
first match wins, so more specific rules must come first. The table can be
replaced by a JSON file to support other layout variants.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from .models import Role, StyleAnalysis

logger = logging.getLogger(__name__)


class StyleRule(BaseModel):
    """
    A single classification rule.

    Matches when the lower-cased class name contains any keyword (or equals
    one, for ``exact`` rules) and contains none of the exclusions.
    """
    role: Role
    keywords: list[str] = Field(min_length=1)
    excludes: list[str] = Field(default_factory=list)
    exact: bool = False

    def matches(self, lower_name: str) -> bool:
        if any(ex.lower() in lower_name for ex in self.excludes):
            return False
        if self.exact:
            return any(lower_name == kw.lower() for kw in self.keywords)
        return any(kw.lower() in lower_name for kw in self.keywords)


class StyleRuleSet(BaseModel):
    """Ordered rule table plus class prefixes that are never classified."""
    ignore_prefixes: list[str] = Field(default_factory=list)
    rules: list[StyleRule] = Field(default_factory=list)


# ─── Default Rule Table ───────────────────────────────────────────────────────
# Dutch/English InDesign paragraph and character style names.

DEFAULT_STYLE_RULES = StyleRuleSet(
    ignore_prefixes=["charoverride", "paraoverride", "objectstyle", "_idgen"],
    rules=[
        # Cover before general kop/chapeau
        StyleRule(role=Role.COVER_TITLE, keywords=["omslag_kop", "cover_title"]),
        StyleRule(
            role=Role.COVER_CHAPEAU,
            keywords=["omslag_ankeiler", "omslag_chapeau", "cover_chapeau"],
        ),
        # Meditation verse before title
        StyleRule(role=Role.INTRO_VERSE, keywords=["kop-boven-vers"]),
        StyleRule(
            role=Role.VERSE_REFERENCE,
            keywords=["meditatie_vers"],
            excludes=["boven-vers"],
        ),
        # Author bio paragraph vs. author name span
        StyleRule(
            role=Role.AUTHOR_BIO,
            keywords=["artikelen_onderschrift-auteur"],
            exact=True,
        ),
        StyleRule(
            role=Role.AUTHOR_BIO,
            keywords=["onderschrift-auteur"],
            excludes=["naam", "info-auteur"],
        ),
        StyleRule(role=Role.AUTHOR, keywords=["onderschrift-auteur_naam-auteur"]),
        StyleRule(
            role=Role.SUBHEADING,
            keywords=["tussenkop", "subheading", "subhead"],
        ),
        StyleRule(
            role=Role.STREAMER,
            keywords=["streamer", "quote", "citaat", "pullquote"],
        ),
        StyleRule(
            role=Role.CAPTION,
            keywords=["fotobijschrift", "bijschrift", "caption"],
        ),
        StyleRule(
            role=Role.CAPTION,
            keywords=["onderschrift"],
            excludes=["auteur"],
        ),
        # "basistekst" is body text even inside a kader
        StyleRule(
            role=Role.SIDEBAR,
            keywords=["kader", "sidebar", "inzet", "box"],
            excludes=["basistekst"],
        ),
        StyleRule(role=Role.SIDEBAR, keywords=["titel-boek", "title-book"]),
        StyleRule(role=Role.TITLE, keywords=["hoofdkop", "titel", "title"]),
        StyleRule(
            role=Role.TITLE,
            keywords=["kop"],
            excludes=["tussenkop", "streamer", "omslag", "boven-vers"],
        ),
        StyleRule(
            role=Role.CHAPEAU,
            keywords=["chapeau", "ankeiler"],
            excludes=["omslag"],
        ),
        # "introletter" is a drop cap, not intro text
        StyleRule(
            role=Role.CHAPEAU,
            keywords=["intro"],
            excludes=["boven-vers", "introletter", "intro-letter"],
        ),
        StyleRule(role=Role.AUTHOR, keywords=["auteur", "author", "geschreven"]),
        StyleRule(role=Role.CATEGORY, keywords=["rubriek", "categor", "thema"]),
        StyleRule(
            role=Role.BODY,
            keywords=["platte-tekst", "plattetekst", "brood", "body", "basistekst"],
        ),
    ],
)


def load_style_rules(path: str | Path) -> StyleRuleSet:
    """Load a rule table from a JSON file."""
    text = Path(path).read_text(encoding="utf-8")
    rules = StyleRuleSet.model_validate_json(text)
    logger.info(f"Loaded {len(rules.rules)} style rules from {path}")
    return rules


def classify_class_name(
    class_name: str,
    rules: StyleRuleSet = DEFAULT_STYLE_RULES,
) -> Optional[Role]:
    """Return the role of a class name, or None if no rule matches."""
    lower_name = class_name.lower()
    if any(lower_name.startswith(prefix) for prefix in rules.ignore_prefixes):
        return None
    for rule in rules.rules:
        if rule.matches(lower_name):
            return rule.role
    return None


def analyze_styles(
    class_names: Iterable[str],
    rules: StyleRuleSet = DEFAULT_STYLE_RULES,
) -> StyleAnalysis:
    """
    Classify a set of observed class names.

    Args:
        class_names: Distinct class names seen on text-bearing elements.
        rules: Rule table, evaluated in order.

    Returns:
        StyleAnalysis with each class assigned to at most one role.
    """
    analysis = StyleAnalysis()
    for class_name in class_names:
        if not class_name:
            continue
        role = classify_class_name(class_name, rules)
        if role is not None:
            analysis.add(class_name, role)

    _log_style_analysis(analysis)
    return analysis


def merge_style_analysis(a: StyleAnalysis, b: StyleAnalysis) -> StyleAnalysis:
    """Combine two analyses; on conflict the role from ``a`` is kept."""
    merged = StyleAnalysis()
    for source in (a, b):
        for class_name, role in source.class_map.items():
            merged.add(class_name, role)
    return merged


def _log_style_analysis(analysis: StyleAnalysis):
    logger.info(f"Classified {len(analysis.class_map)} class names")
    for role in Role:
        classes = analysis.classes_for(role)
        logger.debug(f"  - {role.value}: {', '.join(classes) or 'none'}")
