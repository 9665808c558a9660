"""
Data Models
===========
Pydantic models for the edition extraction pipeline.
All models are serializable to JSON; read-API models dump with camelCase keys.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from html import escape
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


# ─── Enums ────────────────────────────────────────────────────────────────────


class Role(str, Enum):
    """Semantic role assigned to an observed markup class name."""
    TITLE = "title"
    CHAPEAU = "chapeau"
    BODY = "body"
    AUTHOR = "author"
    CATEGORY = "category"
    SUBHEADING = "subheading"
    STREAMER = "streamer"
    SIDEBAR = "sidebar"
    CAPTION = "caption"
    COVER_TITLE = "cover-title"
    COVER_CHAPEAU = "cover-chapeau"
    INTRO_VERSE = "intro-verse"
    AUTHOR_BIO = "author-bio"
    VERSE_REFERENCE = "verse-reference"


class ParagraphKind(str, Enum):
    """Tag of a body paragraph inside an extracted article."""
    PARAGRAPH = "paragraph"
    SUBHEADING = "subheading"
    STREAMER = "streamer"
    SIDEBAR = "sidebar"


class BlockType(str, Enum):
    """Type of a content block exposed by the read API."""
    PARAGRAPH = "paragraph"
    SUBHEADING = "subheading"
    QUOTE = "quote"
    IMAGE = "image"
    SIDEBAR = "sidebar"


class EditionStatus(str, Enum):
    """Lifecycle status of an uploaded edition."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


# ─── Export Models ────────────────────────────────────────────────────────────


class Spread(BaseModel):
    """One exported layout unit with its raw markup."""
    filename: str
    spread_index: int = Field(ge=0)
    page_start: int = Field(ge=1)
    page_end: int = Field(ge=1)
    html: str = Field(default="", repr=False)

    @model_validator(mode="after")
    def _check_page_range(self):
        if self.page_start > self.page_end:
            raise ValueError(
                f"page_start {self.page_start} > page_end {self.page_end} "
                f"for {self.filename}"
            )
        return self


class ImageIndex(BaseModel):
    """
    Index of the images shipped with an export.
    The buckets reference keys of ``images``.
    """
    images: dict[str, str] = Field(
        default_factory=dict,
        description="Image filename -> path relative to the export root",
    )
    article_images: list[str] = Field(default_factory=list)
    author_photos: list[str] = Field(default_factory=list)
    decorative_images: list[str] = Field(default_factory=list)


class StyleAnalysis(BaseModel):
    """Per-role lists of markup class names. A class has at most one role."""
    class_map: dict[str, Role] = Field(default_factory=dict)
    by_role: dict[Role, list[str]] = Field(
        default_factory=lambda: {role: [] for role in Role}
    )

    def add(self, class_name: str, role: Role) -> bool:
        """Assign a role to a class. Returns False if it already had one."""
        if class_name in self.class_map:
            return False
        self.class_map[class_name] = role
        self.by_role.setdefault(role, []).append(class_name)
        return True

    def classes_for(self, role: Role) -> list[str]:
        return list(self.by_role.get(role, []))

    def role_of(self, class_name: str) -> Optional[Role]:
        return self.class_map.get(class_name)


class CoverHeadline(BaseModel):
    """A headline printed on the cover spread."""
    title: str
    subtitle: Optional[str] = None


class EditionMetadata(BaseModel):
    """Edition-level metadata. ``None`` means "not found, do not update"."""
    edition_number: Optional[int] = None
    edition_date: Optional[date] = None
    cover_headlines: list[CoverHeadline] = Field(default_factory=list)


class EditionExport(BaseModel):
    """A loaded export, possibly partial, with its non-fatal load errors."""
    root_dir: str
    spreads: list[Spread] = Field(default_factory=list)
    images: ImageIndex = Field(default_factory=ImageIndex)
    styles: StyleAnalysis = Field(default_factory=StyleAnalysis)
    metadata: EditionMetadata = Field(default_factory=EditionMetadata)
    errors: list[str] = Field(default_factory=list)


# ─── Classified Elements ─────────────────────────────────────────────────────


class _ElementBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    spread_index: int = Field(ge=0)
    page_start: int = Field(ge=1)
    page_end: int = Field(ge=1)


class _TextElement(_ElementBase):
    text: str


class TitleElement(_TextElement):
    kind: Literal["title"] = "title"


class ChapeauElement(_TextElement):
    kind: Literal["chapeau"] = "chapeau"


class BodyElement(_TextElement):
    kind: Literal["body"] = "body"


class SubheadingElement(_TextElement):
    kind: Literal["subheading"] = "subheading"


class StreamerElement(_TextElement):
    kind: Literal["streamer"] = "streamer"


class AuthorElement(_TextElement):
    kind: Literal["author"] = "author"


class AuthorBioElement(_TextElement):
    kind: Literal["author-bio"] = "author-bio"


class CategoryElement(_TextElement):
    kind: Literal["category"] = "category"


class CaptionElement(_TextElement):
    kind: Literal["caption"] = "caption"


class SidebarElement(_TextElement):
    kind: Literal["sidebar"] = "sidebar"


class IntroVerseElement(_TextElement):
    kind: Literal["intro-verse"] = "intro-verse"


class VerseReferenceElement(_TextElement):
    kind: Literal["verse-reference"] = "verse-reference"


class CoverTitleElement(_TextElement):
    kind: Literal["cover-title"] = "cover-title"


class CoverChapeauElement(_TextElement):
    kind: Literal["cover-chapeau"] = "cover-chapeau"


class ImageElement(_ElementBase):
    kind: Literal["image"] = "image"
    filename: str
    src: str


class EndMarkerElement(_ElementBase):
    kind: Literal["end-marker"] = "end-marker"


ArticleElement = Annotated[
    Union[
        TitleElement,
        ChapeauElement,
        BodyElement,
        SubheadingElement,
        StreamerElement,
        AuthorElement,
        AuthorBioElement,
        CategoryElement,
        CaptionElement,
        SidebarElement,
        IntroVerseElement,
        VerseReferenceElement,
        CoverTitleElement,
        CoverChapeauElement,
        ImageElement,
        EndMarkerElement,
    ],
    Field(discriminator="kind"),
]

# Text-carrying element class for each role
ELEMENT_TYPES: dict[Role, type[_TextElement]] = {
    Role.TITLE: TitleElement,
    Role.CHAPEAU: ChapeauElement,
    Role.BODY: BodyElement,
    Role.SUBHEADING: SubheadingElement,
    Role.STREAMER: StreamerElement,
    Role.AUTHOR: AuthorElement,
    Role.AUTHOR_BIO: AuthorBioElement,
    Role.CATEGORY: CategoryElement,
    Role.CAPTION: CaptionElement,
    Role.SIDEBAR: SidebarElement,
    Role.INTRO_VERSE: IntroVerseElement,
    Role.VERSE_REFERENCE: VerseReferenceElement,
    Role.COVER_TITLE: CoverTitleElement,
    Role.COVER_CHAPEAU: CoverChapeauElement,
}


# ─── Article Models ──────────────────────────────────────────────────────────


class BodyParagraph(BaseModel):
    """One body text unit, tagged with the role it came from."""
    model_config = ConfigDict(frozen=True)

    kind: ParagraphKind = ParagraphKind.PARAGRAPH
    text: str


_PARAGRAPH_TAGS = {
    ParagraphKind.PARAGRAPH: "p",
    ParagraphKind.SUBHEADING: "h3",
    ParagraphKind.STREAMER: "blockquote",
    ParagraphKind.SIDEBAR: "aside",
}


class ExtractedArticle(BaseModel):
    """
    An article as segmented from the export.
    Immutable once built.
    """
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    chapeau: Optional[str] = None
    body_paragraphs: list[BodyParagraph] = Field(default_factory=list)
    excerpt: Optional[str] = None
    category: Optional[str] = None
    lifespan: Optional[str] = None
    verse_reference: Optional[str] = None
    author_names: list[str] = Field(
        default_factory=list,
        description="Raw author strings, not yet split or normalized",
    )
    author_bio: Optional[str] = None
    page_start: int = Field(ge=1)
    page_end: int = Field(ge=1)
    source_spread_indexes: list[int] = Field(default_factory=list)
    referenced_images: list[str] = Field(default_factory=list)
    captions: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_invariants(self):
        if self.page_start > self.page_end:
            raise ValueError(
                f"page_start {self.page_start} > page_end {self.page_end}"
            )
        if self.source_spread_indexes != sorted(self.source_spread_indexes):
            raise ValueError("source_spread_indexes must be ascending")
        return self

    @computed_field
    @property
    def content(self) -> str:
        """Body markup as persisted for the read API."""
        parts = []
        for paragraph in self.body_paragraphs:
            tag = _PARAGRAPH_TAGS[paragraph.kind]
            parts.append(f"<{tag}>{escape(paragraph.text, quote=False)}</{tag}>")
        return "\n".join(parts)

    @computed_field
    @property
    def has_body(self) -> bool:
        return any(
            p.text.strip()
            for p in self.body_paragraphs
            if p.kind != ParagraphKind.SIDEBAR
        )

    @property
    def sidebars(self) -> list[str]:
        return [
            p.text for p in self.body_paragraphs if p.kind == ParagraphKind.SIDEBAR
        ]


class ArticleExtractionResult(BaseModel):
    articles: list[ExtractedArticle] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# ─── Author Models ────────────────────────────────────────────────────────────


class ExtractedAuthor(BaseModel):
    """One author per distinct normalized name across the edition."""
    model_config = ConfigDict(frozen=True)

    name: str
    photo_filename: Optional[str] = None
    photo_source_path: Optional[str] = None
    article_titles: list[str] = Field(default_factory=list)


class AuthorExtractionResult(BaseModel):
    authors: list[ExtractedAuthor] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class AuthorRecord(BaseModel):
    """A persisted author row."""
    id: int
    name: str
    photo_url: Optional[str] = None


class ArticleAuthorRecord(BaseModel):
    article_id: int
    author_id: int


class SaveAuthorsResult(BaseModel):
    authors: list[AuthorRecord] = Field(default_factory=list)
    relations: list[ArticleAuthorRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ─── Image Models ─────────────────────────────────────────────────────────────


class ExtractedImage(BaseModel):
    """An article image selected for persistence."""
    filename: str
    source_path: str
    caption: Optional[str] = None
    is_featured: bool = False
    sort_order: int = Field(default=0, ge=0)
    article_title: str


class ImageMappingResult(BaseModel):
    images: list[ExtractedImage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ArticleImage(BaseModel):
    """A persisted article image as consumed by the content block transformer."""
    url: str
    caption: Optional[str] = None
    is_featured: bool = False
    sort_order: int = 0


class SaveImagesResult(BaseModel):
    images: list[ArticleImage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ─── Read API Models ─────────────────────────────────────────────────────────


class ContentBlock(BaseModel):
    """One typed, ordered unit of an article's content."""
    type: BlockType
    content: str = ""
    image_url: Optional[str] = Field(
        default=None, serialization_alias="imageUrl"
    )
    caption: Optional[str] = None
    order: int = Field(default=0, ge=0)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class FeaturedImage(BaseModel):
    url: str
    caption: Optional[str] = None


# ─── Processing Result ───────────────────────────────────────────────────────


class ProcessingStats(BaseModel):
    spreads_loaded: int = 0
    articles_extracted: int = 0
    articles_saved: int = 0
    authors_extracted: int = 0
    authors_saved: int = 0
    images_extracted: int = 0
    images_saved: int = 0
    elapsed_ms: int = 0


class ProcessingResult(BaseModel):
    """Outcome of one edition run."""
    edition_id: Optional[int] = None
    status: EditionStatus = EditionStatus.PENDING
    stats: ProcessingStats = Field(default_factory=ProcessingStats)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return self.status != EditionStatus.FAILED
