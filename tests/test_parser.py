"""
Test Suite for the Edition Parser
=================================
Unit and integration tests for models, export loading, style
classification, element extraction and article segmentation.
"""

from __future__ import annotations

import json
from datetime import date

import pytest
from pydantic import ValidationError

from edition_parser.config import EditionConfig
from edition_parser.content_blocks import transform_to_content_blocks
from edition_parser.elements import extract_cover_headlines, extract_elements
from edition_parser.errors import ExportRootError, ExtractionError, LoadError
from edition_parser.loader import (
    detect_page_hints,
    find_html_dir,
    load_export,
    parse_spread_filename,
)
from edition_parser.metadata import (
    extract_metadata,
    extract_metadata_from_text,
    parse_dutch_date,
)
from edition_parser.models import (
    BodyElement,
    BodyParagraph,
    CaptionElement,
    ChapeauElement,
    CoverTitleElement,
    EditionExport,
    EditionMetadata,
    EndMarkerElement,
    ExtractedArticle,
    ImageElement,
    IntroVerseElement,
    ParagraphKind,
    Role,
    Spread,
    StyleAnalysis,
    TitleElement,
)
from edition_parser import segmenter
from edition_parser.segmenter import (
    ArticleSegmenter,
    ParserState,
    build_article,
    extract_articles,
    find_lifespan,
    find_verse_reference,
    generate_excerpt,
)
from edition_parser.style_classifier import (
    analyze_styles,
    classify_class_name,
    load_style_rules,
    merge_style_analysis,
)

from conftest import SAMPLE_SPREADS, write_export


def _el(cls, text=None, spread=1, **kwargs):
    """Build an element positioned on a default two-page spread."""
    position = {
        "spread_index": spread,
        "page_start": max(1, spread * 2),
        "page_end": max(1, spread * 2 + 1),
    }
    if text is not None:
        kwargs["text"] = text
    return cls(**position, **kwargs)


def _spread(html: str, index: int = 1) -> Spread:
    start, end = (1, 1) if index == 0 else (index * 2, index * 2 + 1)
    return Spread(
        filename=f"publication-{index}.html",
        spread_index=index,
        page_start=start,
        page_end=end,
        html=html,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSpread:
    """Test Spread model."""

    def test_valid_spread(self):
        spread = Spread(filename="publication-1.html", spread_index=1,
                        page_start=2, page_end=3)
        assert spread.page_start <= spread.page_end

    def test_inverted_page_range_rejected(self):
        with pytest.raises(ValidationError):
            Spread(filename="x.html", spread_index=1, page_start=5, page_end=4)

    def test_pages_are_one_based(self):
        with pytest.raises(ValidationError):
            Spread(filename="x.html", spread_index=0, page_start=0, page_end=1)


class TestExtractedArticle:
    """Test ExtractedArticle model."""

    def test_content_markup(self):
        article = ExtractedArticle(
            title="Titel",
            body_paragraphs=[
                BodyParagraph(text="Eén & twee"),
                BodyParagraph(kind=ParagraphKind.SUBHEADING, text="Kop"),
                BodyParagraph(kind=ParagraphKind.STREAMER, text="Citaat"),
                BodyParagraph(kind=ParagraphKind.SIDEBAR, text="Kader <tekst>"),
                BodyParagraph(text="Slot"),
            ],
            page_start=2,
            page_end=3,
        )
        assert article.content == (
            "<p>Eén &amp; twee</p>\n"
            "<h3>Kop</h3>\n"
            "<blockquote>Citaat</blockquote>\n"
            "<aside>Kader &lt;tekst&gt;</aside>\n"
            "<p>Slot</p>"
        )
        assert article.sidebars == ["Kader <tekst>"]
        assert article.has_body is True

    def test_sidebar_alone_is_no_body(self):
        article = ExtractedArticle(
            title="Titel",
            body_paragraphs=[BodyParagraph(kind=ParagraphKind.SIDEBAR, text="Kader")],
            page_start=2,
            page_end=3,
        )
        assert article.has_body is False

    def test_frozen(self):
        article = ExtractedArticle(title="Titel", page_start=2, page_end=3)
        with pytest.raises(ValidationError):
            article.title = "Anders"

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            ExtractedArticle(title="", page_start=2, page_end=3)

    def test_spread_indexes_must_ascend(self):
        with pytest.raises(ValidationError):
            ExtractedArticle(
                title="Titel", page_start=2, page_end=5,
                source_spread_indexes=[2, 1],
            )

    def test_serialization_includes_content(self):
        article = ExtractedArticle(
            title="Titel",
            body_paragraphs=[BodyParagraph(text="Tekst")],
            page_start=2,
            page_end=3,
        )
        data = json.loads(article.model_dump_json())
        assert data["content"] == "<p>Tekst</p>"
        assert data["body_paragraphs"][0]["kind"] == "paragraph"


class TestStyleAnalysis:
    """Test StyleAnalysis model."""

    def test_class_has_one_role(self):
        analysis = StyleAnalysis()
        assert analysis.add("Hoofdkop", Role.TITLE) is True
        assert analysis.add("Hoofdkop", Role.BODY) is False
        assert analysis.role_of("Hoofdkop") == Role.TITLE
        assert analysis.classes_for(Role.BODY) == []


# ═══════════════════════════════════════════════════════════════════════════════
# LOADER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSpreadFilenames:
    """Test spread filename -> page range mapping."""

    def test_cover(self):
        assert parse_spread_filename("publication.html") == (0, 1, 1)

    def test_numbered_spreads(self):
        assert parse_spread_filename("publication-1.html") == (1, 2, 3)
        assert parse_spread_filename("publication-3.html") == (3, 6, 7)

    def test_single_page_spreads(self):
        assert parse_spread_filename(
            "publication-3.html", pages_per_spread=1
        ) == (3, 4, 4)

    def test_custom_stem(self):
        assert parse_spread_filename("krant-2.html", stem="krant") == (2, 4, 5)

    def test_unknown_name(self):
        with pytest.raises(LoadError):
            parse_spread_filename("index.html")


class TestPageHints:
    """Test page-number hints in markup."""

    def test_data_attributes(self):
        html = '<div data-page="12"></div><p data-page-number="13">x</p>'
        assert detect_page_hints(html) == (12, 13)

    def test_meta_tag(self):
        assert detect_page_hints('<meta name="page" content="9">') == (9, 9)

    def test_no_hints(self):
        assert detect_page_hints("<p>Geen paginanummer</p>") is None


class TestLoadExport:
    """Test loading a complete export."""

    def test_spreads_ordered(self, sample_export):
        export = load_export(sample_export)
        assert [s.spread_index for s in export.spreads] == [0, 1, 2, 3]
        assert all(s.page_start <= s.page_end for s in export.spreads)
        assert (export.spreads[2].page_start, export.spreads[2].page_end) == (4, 5)
        assert export.errors == []

    def test_image_buckets(self, sample_export):
        images = load_export(sample_export).images
        assert images.article_images == ["foto1.jpg"]
        assert images.author_photos == ["jan-jansen.jpg"]
        assert images.decorative_images == ["logo.png"]
        assert images.images["foto1.jpg"] == "publication-web-resources/image/foto1.jpg"
        assert images.images["jan-jansen.jpg"] == (
            "publication-web-resources/image/auteurs/jan-jansen.jpg"
        )

    def test_styles_classified(self, sample_export):
        styles = load_export(sample_export).styles
        assert styles.role_of("Hoofdkop") == Role.TITLE
        assert styles.role_of("Kader") == Role.SIDEBAR
        assert styles.role_of("Colofon") is None

    def test_metadata_and_cover(self, sample_export):
        metadata = load_export(sample_export).metadata
        assert metadata.edition_number == 42
        assert metadata.edition_date == date(2026, 1, 15)
        assert len(metadata.cover_headlines) == 1
        assert metadata.cover_headlines[0].title == "Licht in de duisternis"
        assert metadata.cover_headlines[0].subtitle == "Een nieuw jaar"

    def test_nested_resources_dir(self, tmp_path):
        root = write_export(tmp_path, SAMPLE_SPREADS, wrapper="editie-12")
        (tmp_path / "__MACOSX").mkdir()
        assert find_html_dir(tmp_path) == (
            tmp_path / "editie-12" / "publication-web-resources" / "html"
        )
        assert len(load_export(root).spreads) == 4

    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(ExportRootError):
            load_export(tmp_path / "bestaat-niet")

    def test_fatal_error_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_export(tmp_path / "bestaat-niet")

    def test_missing_html_dir_recorded(self, tmp_path):
        export = load_export(tmp_path)
        assert export.spreads == []
        assert any("HTML directory" in e for e in export.errors)

    def test_bad_spread_skipped(self, tmp_path):
        spreads = dict(SAMPLE_SPREADS)
        spreads["publication-x.html"] = "<p>kapot</p>"
        export = load_export(write_export(tmp_path, spreads))
        assert len(export.spreads) == 4
        assert len(export.errors) == 1
        assert "publication-x.html" in export.errors[0]

    def test_undecodable_spread_skipped(self, tmp_path):
        root = write_export(tmp_path, SAMPLE_SPREADS)
        html_dir = root / "publication-web-resources" / "html"
        (html_dir / "publication-4.html").write_bytes(b"\xff\xfe\xfa broken")
        export = load_export(root)
        assert [s.spread_index for s in export.spreads] == [0, 1, 2, 3]
        assert any("publication-4.html" in e for e in export.errors)

    def test_page_hints_override_range(self, tmp_path):
        spreads = {"publication-1.html": '<p data-page="10" class="Hoofdkop">T</p>'}
        export = load_export(write_export(tmp_path, spreads))
        assert (export.spreads[0].page_start, export.spreads[0].page_end) == (10, 10)

    def test_duplicate_image_keeps_first(self, tmp_path):
        images = {"a/foto.jpg": b"first", "b/foto.jpg": b"second"}
        export = load_export(write_export(tmp_path, SAMPLE_SPREADS, images))
        assert export.images.images["foto.jpg"].endswith("a/foto.jpg")
        assert any("Duplicate image" in e for e in export.errors)

    def test_small_images_decorative(self, tmp_path):
        images = {"streep.png": b"12345", "foto.jpg": b"x" * 200}
        config = EditionConfig(decorative_max_bytes=100)
        export = load_export(write_export(tmp_path, SAMPLE_SPREADS, images), config)
        assert export.images.decorative_images == ["streep.png"]
        assert export.images.article_images == ["foto.jpg"]

    def test_metadata_failure_recorded(self, sample_export):
        def broken(root):
            raise RuntimeError("metadata service down")

        export = load_export(sample_export, metadata_extractor=broken)
        assert export.metadata.edition_number is None
        assert any("metadata service down" in e for e in export.errors)
        assert len(export.spreads) == 4

    def test_custom_metadata_extractor(self, sample_export):
        export = load_export(
            sample_export,
            metadata_extractor=lambda root: EditionMetadata(edition_number=7),
        )
        assert export.metadata.edition_number == 7
        assert export.metadata.edition_date is None

    def test_parallel_loading_preserves_order(self, sample_export):
        export = load_export(sample_export, EditionConfig(workers=4))
        assert [s.spread_index for s in export.spreads] == [0, 1, 2, 3]


# ═══════════════════════════════════════════════════════════════════════════════
# METADATA TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMetadata:
    """Test edition number and date extraction."""

    def test_jaargang(self):
        assert extract_metadata_from_text("Jaargang 42").edition_number == 42

    def test_nr(self):
        assert extract_metadata_from_text("Nr. 123 van deze week").edition_number == 123

    def test_dutch_date(self):
        metadata = extract_metadata_from_text("Verschenen 3 Maart 2025")
        assert metadata.edition_date == date(2025, 3, 3)

    def test_invalid_date(self):
        assert parse_dutch_date("31", "februari", "2025") is None

    def test_nothing_found(self, tmp_path):
        root = write_export(tmp_path, {"publication.html": "<p>Leeg</p>"})
        metadata = extract_metadata(root)
        assert metadata.edition_number is None
        assert metadata.edition_date is None


# ═══════════════════════════════════════════════════════════════════════════════
# STYLE CLASSIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStyleClassifier:
    """Test class name -> role rules."""

    @pytest.mark.parametrize("class_name,role", [
        ("Hoofdkop", Role.TITLE),
        ("Tussenkop", Role.SUBHEADING),
        ("Omslag_kop", Role.COVER_TITLE),
        ("Omslag_ankeiler", Role.COVER_CHAPEAU),
        ("Kop-boven-vers", Role.INTRO_VERSE),
        ("Meditatie_vers", Role.VERSE_REFERENCE),
        ("Artikelen_onderschrift-auteur", Role.AUTHOR_BIO),
        ("Artikelen_onderschrift-auteur_naam-auteur", Role.AUTHOR),
        ("Onderschrift", Role.CAPTION),
        ("Fotobijschrift", Role.CAPTION),
        ("Kader", Role.SIDEBAR),
        ("Basistekst-kader", Role.BODY),
        ("Chapeau", Role.CHAPEAU),
        ("Rubriek", Role.CATEGORY),
        ("Streamer", Role.STREAMER),
        ("Platte-tekst", Role.BODY),
    ])
    def test_default_rules(self, class_name, role):
        assert classify_class_name(class_name) == role

    def test_drop_cap_not_chapeau(self):
        assert classify_class_name("Introletter") is None

    def test_override_classes_ignored(self):
        assert classify_class_name("CharOverride-3") is None
        assert classify_class_name("_idGenParaOverride-1") is None

    def test_analyze_styles(self):
        analysis = analyze_styles(["Hoofdkop", "Platte-tekst", "Onbekend", ""])
        assert analysis.classes_for(Role.TITLE) == ["Hoofdkop"]
        assert analysis.classes_for(Role.BODY) == ["Platte-tekst"]
        assert "Onbekend" not in analysis.class_map

    def test_rules_from_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "rules": [{"role": "title", "keywords": ["kopregel"]}],
        }), encoding="utf-8")
        rules = load_style_rules(path)
        assert classify_class_name("Kopregel", rules) == Role.TITLE
        assert classify_class_name("Hoofdkop", rules) is None

    def test_merge_keeps_first_role(self):
        a = StyleAnalysis()
        a.add("Kop", Role.TITLE)
        b = StyleAnalysis()
        b.add("Kop", Role.BODY)
        b.add("Tekst", Role.BODY)
        merged = merge_style_analysis(a, b)
        assert merged.role_of("Kop") == Role.TITLE
        assert merged.role_of("Tekst") == Role.BODY


# ═══════════════════════════════════════════════════════════════════════════════
# ELEMENT EXTRACTION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestExtractElements:
    """Test markup -> classified element stream."""

    def _extract(self, html: str, classes: list[str]):
        return extract_elements(_spread(html), analyze_styles(classes))

    def test_document_order_and_kinds(self):
        html = (
            '<p class="Hoofdkop">Titel</p>'
            '<p class="Platte-tekst">Tekst</p>'
            '<img src="../image/a.jpg"/>'
            '<p class="Fotobijschrift">Onderschrift</p>'
        )
        elements = self._extract(html, ["Hoofdkop", "Platte-tekst", "Fotobijschrift"])
        assert [e.kind for e in elements] == ["title", "body", "image", "caption"]
        assert elements[2].filename == "a.jpg"
        assert all(e.page_start == 2 and e.page_end == 3 for e in elements)

    def test_line_breaks_kept_in_title_only(self):
        html = (
            '<p class="Hoofdkop">Het woord<br/>dat blijft</p>'
            '<p class="Platte-tekst">Een<br/>twee</p>'
        )
        title, body = self._extract(html, ["Hoofdkop", "Platte-tekst"])
        assert title.text == "Het woord\ndat blijft"
        assert body.text == "Een twee"

    def test_whitespace_collapsed(self):
        html = '<p class="Platte-tekst">  veel\n\n   ruimte  </p>'
        (body,) = self._extract(html, ["Platte-tekst"])
        assert body.text == "veel ruimte"

    def test_nested_author_span_emitted(self):
        html = (
            '<p class="Artikelen_onderschrift-auteur">Ds. A. Bakker is predikant. '
            '<span class="Artikelen_onderschrift-auteur_naam-auteur">A. Bakker</span></p>'
        )
        elements = self._extract(html, [
            "Artikelen_onderschrift-auteur",
            "Artikelen_onderschrift-auteur_naam-auteur",
        ])
        assert [e.kind for e in elements] == ["author-bio", "author"]
        assert elements[1].text == "A. Bakker"

    def test_nested_body_in_sidebar_skipped(self):
        html = '<div class="Kader"><p class="Platte-tekst">Kadertekst</p></div>'
        elements = self._extract(html, ["Kader", "Platte-tekst"])
        assert [e.kind for e in elements] == ["sidebar"]
        assert elements[0].text == "Kadertekst"

    def test_inline_images_skipped(self):
        html = '<img src="data:image/png;base64,AAAA"/><img src="../image/b.png?v=2"/>'
        elements = self._extract(html, [])
        assert [e.filename for e in elements] == ["b.png"]

    def test_end_marker(self):
        html = '<p class="Platte-tekst">Slot. ■</p><p class="Platte-tekst">Daarna</p>'
        elements = self._extract(html, ["Platte-tekst"])
        assert [e.kind for e in elements] == ["body", "end-marker", "body"]
        assert elements[0].text == "Slot."

    def test_unclassified_text_ignored(self):
        assert self._extract('<p class="Onbekend">x</p><p>y</p>', ["Onbekend"]) == []

    def test_cover_headlines(self):
        html = (
            '<p class="Omslag_kop">Eerste</p>'
            '<p class="Omslag_ankeiler">Ondertitel</p>'
            '<p class="Omslag_kop">Tweede</p>'
        )
        styles = analyze_styles(["Omslag_kop", "Omslag_ankeiler"])
        headlines = extract_cover_headlines(_spread(html, 0), styles)
        assert [(h.title, h.subtitle) for h in headlines] == [
            ("Eerste", "Ondertitel"),
            ("Tweede", None),
        ]


# ═══════════════════════════════════════════════════════════════════════════════
# SEGMENTER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestArticleSegmenter:
    """Test the segmentation state machine."""

    def test_titles_open_articles(self):
        segmenter_ = ArticleSegmenter()
        groups = segmenter_.parse([
            _el(TitleElement, "Een"),
            _el(BodyElement, "a"),
            _el(TitleElement, "Twee"),
            _el(BodyElement, "b"),
        ])
        assert [[e.text for e in g] for g in groups] == [["Een", "a"], ["Twee", "b"]]
        assert segmenter_.state == ParserState.IDLE

    def test_orphans_discarded(self):
        segmenter_ = ArticleSegmenter()
        groups = segmenter_.parse([
            _el(BodyElement, "losse tekst"),
            _el(ImageElement, filename="x.jpg", src="x.jpg"),
            _el(TitleElement, "Titel"),
        ])
        assert len(groups) == 1
        assert [e.kind for e in groups[0]] == ["title"]
        assert segmenter_.orphans == 2

    def test_cover_elements_ignored(self):
        groups = ArticleSegmenter().parse([
            _el(TitleElement, "Titel"),
            _el(CoverTitleElement, "Omslag", spread=0),
            _el(BodyElement, "tekst"),
        ])
        assert [e.kind for e in groups[0]] == ["title", "body"]

    def test_end_marker_ignored_by_default(self):
        groups = ArticleSegmenter().parse([
            _el(TitleElement, "Titel"),
            _el(EndMarkerElement),
            _el(BodyElement, "na het blokje"),
        ])
        assert [e.kind for e in groups[0]] == ["title", "body"]

    def test_end_marker_honored(self):
        segmenter_ = ArticleSegmenter(honor_end_marker=True)
        groups = segmenter_.parse([
            _el(TitleElement, "Titel"),
            _el(BodyElement, "tekst"),
            _el(EndMarkerElement),
            _el(BodyElement, "advertentie"),
        ])
        assert [e.kind for e in groups[0]] == ["title", "body"]
        assert segmenter_.orphans == 1

    def test_each_group_holds_one_title(self):
        groups = ArticleSegmenter().parse([
            _el(TitleElement, "Een"),
            _el(TitleElement, "Twee"),
            _el(BodyElement, "b"),
            _el(TitleElement, "Drie"),
        ])
        assert [[e.kind for e in g].count("title") for g in groups] == [1, 1, 1]
        assert [g[0].text for g in groups] == ["Een", "Twee", "Drie"]

    def test_reset(self):
        segmenter_ = ArticleSegmenter()
        segmenter_.parse([_el(TitleElement, "Titel")])
        segmenter_.reset()
        assert segmenter_.groups == []
        assert segmenter_.state == ParserState.IDLE


class TestBuildArticle:
    """Test building one article from its element group."""

    def test_sidebar_keeps_publication_order(self):
        html = (
            '<p class="Hoofdkop">Titel</p>'
            '<p class="Platte-tekst">Voor</p>'
            '<div class="Kader"><p class="Platte-tekst">Kader</p></div>'
            '<p class="Platte-tekst">Na</p>'
        )
        elements = extract_elements(
            _spread(html), analyze_styles(["Hoofdkop", "Platte-tekst", "Kader"])
        )
        article = build_article(elements)
        assert article.sidebars == ["Kader"]
        assert article.excerpt == "Voor Na"
        blocks = transform_to_content_blocks(article.content, [])
        assert [(b.type.value, b.content) for b in blocks] == [
            ("paragraph", "Voor"),
            ("sidebar", "Kader"),
            ("paragraph", "Na"),
        ]

    def test_fields(self):
        article = build_article([
            _el(TitleElement, "Titel"),
            _el(ChapeauElement, "Eerste chapeau"),
            _el(ChapeauElement, "Tweede chapeau"),
            _el(BodyElement, "Tekst"),
            _el(ImageElement, filename="a.jpg", src="../image/a.jpg"),
            _el(CaptionElement, "Bij a", spread=2),
        ])
        assert article.chapeau == "Eerste chapeau"
        assert article.referenced_images == ["a.jpg"]
        assert article.captions == {"a.jpg": "Bij a"}
        assert (article.page_start, article.page_end) == (2, 5)
        assert article.source_spread_indexes == [1, 2]

    def test_caption_must_follow_image(self):
        article = build_article([
            _el(TitleElement, "Titel"),
            _el(ImageElement, filename="a.jpg", src="a.jpg"),
            _el(BodyElement, "Tussendoor"),
            _el(CaptionElement, "Verdwaald onderschrift"),
        ])
        assert article.captions == {}

    def test_first_caption_wins(self):
        article = build_article([
            _el(TitleElement, "Titel"),
            _el(ImageElement, filename="a.jpg", src="a.jpg"),
            _el(CaptionElement, "Eerste"),
            _el(ImageElement, filename="a.jpg", src="a.jpg"),
            _el(CaptionElement, "Tweede"),
        ])
        assert article.captions == {"a.jpg": "Eerste"}

    def test_intro_verse_fallback(self):
        article = build_article([
            _el(TitleElement, "Meditatie"),
            _el(IntroVerseElement, "De Heere is mijn Herder"),
        ])
        assert article.chapeau == "De Heere is mijn Herder"

    def test_free_text_patterns(self):
        article = build_article([
            _el(TitleElement, "In memoriam"),
            _el(ChapeauElement, "Ds. K. de Boer (1931–2020)"),
            _el(BodyElement, "Zijn lievelingstekst was Johannes 3:16."),
        ])
        assert article.lifespan == "1931-2020"
        assert article.verse_reference == "Johannes 3:16"
        assert article.excerpt == "Zijn lievelingstekst was Johannes 3:16."

    def test_group_without_title(self):
        with pytest.raises(ExtractionError):
            build_article([_el(BodyElement, "tekst")])


class TestPatterns:
    """Test free-text helpers."""

    def test_lifespan(self):
        assert find_lifespan("(1931 - 2020)") == "1931-2020"
        assert find_lifespan("van 2020-1931") is None
        assert find_lifespan("geen jaartallen") is None

    def test_verse_reference(self):
        assert find_verse_reference("zie 1 Korinthe 13:4-7 hier") == "1 Korinthe 13:4-7"
        assert find_verse_reference("Psalm 23:1") == "Psalm 23:1"
        assert find_verse_reference("hoofdstuk 3:16") is None

    def test_excerpt_short(self):
        assert generate_excerpt("Kort.") == "Kort."
        assert generate_excerpt("   ") is None

    def test_excerpt_cut_at_word(self):
        excerpt = generate_excerpt(" ".join(["woord"] * 40))
        assert excerpt == " ".join(["woord"] * 25) + "..."


class TestExtractArticles:
    """Test segmentation of a loaded export."""

    def test_sample_export(self, sample_export):
        result = extract_articles(load_export(sample_export))
        assert result.errors == []
        assert [a.title for a in result.articles] == [
            "Het woord\ndat blijft", "In memoriam",
        ]

        first, second = result.articles
        assert first.category is None
        assert first.chapeau == "Over trouw en genade"
        assert first.author_names == ["Door: Jan Jansen en Piet de Vries"]
        assert [p.kind for p in first.body_paragraphs] == [
            ParagraphKind.PARAGRAPH,
            ParagraphKind.SUBHEADING,
            ParagraphKind.PARAGRAPH,
            ParagraphKind.STREAMER,
        ]
        assert first.captions == {"foto1.jpg": "De herder"}
        assert first.verse_reference == "Psalm 23:1"

        assert second.lifespan == "1931-2020"
        assert second.sidebars == ["Kadertekst"]
        assert second.source_spread_indexes == [2, 3]
        assert (second.page_start, second.page_end) == (4, 7)
        assert second.referenced_images == ["logo.png"]

    def test_page_ranges_valid(self, sample_export):
        for article in extract_articles(load_export(sample_export)).articles:
            assert article.page_start <= article.page_end

    def test_one_bad_article_isolated(self, sample_export, monkeypatch):
        original = segmenter.build_article

        def flaky(elements, excerpt_length=150):
            if elements[0].text == "In memoriam":
                raise ValueError("kapotte opmaak")
            return original(elements, excerpt_length)

        monkeypatch.setattr(segmenter, "build_article", flaky)
        result = extract_articles(load_export(sample_export))
        assert [a.title for a in result.articles] == ["Het woord\ndat blijft"]
        assert len(result.errors) == 1
        assert "In memoriam" in result.errors[0]

    def test_parallel_build_same_result(self, sample_export):
        export = load_export(sample_export)
        sequential = extract_articles(export)
        parallel = extract_articles(export, EditionConfig(workers=3))
        assert parallel.articles == sequential.articles

    def test_end_marker_config(self, tmp_path):
        spreads = {
            "publication-1.html": (
                '<p class="Hoofdkop">Titel</p>'
                '<p class="Platte-tekst">Tekst ■</p>'
                '<p class="Platte-tekst">Advertentie</p>'
            ),
        }
        export = load_export(write_export(tmp_path, spreads))
        default = extract_articles(export).articles[0]
        honored = extract_articles(
            export, EditionConfig(honor_end_marker=True)
        ).articles[0]
        assert len(default.body_paragraphs) == 2
        assert [p.text for p in honored.body_paragraphs] == ["Tekst"]

    def test_empty_export(self):
        result = extract_articles(EditionExport(root_dir="leeg"))
        assert result.articles == []
        assert result.errors == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
