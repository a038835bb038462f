"""
Extraction Models - Data types for extraction domain.

A page is a flat, ordered list of nodes. Hierarchy is expressed through
``parent_id`` references rather than nesting.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator
from pydantic.json_schema import SkipJsonSchema

from .prompts import DEFAULT_OBJECTIVE

HeadingLevel = Literal["h1", "h2", "h3", "h4", "h5", "h6"]
ListLevel = Literal["l1", "l2", "l3", "l4", "l5", "l6"]
TextLevel = Literal["paragraph", "citation", "code", "aside", "abstract", "footnote"]
ImageKind = Literal[
    "photo",
    "diagram",
    "chart",
    "logo",
    "icon",
    "badge",
    "illustration",
    "screenshot",
    "map",
    "formula",
    "signature",
    "unknown",
]
TableKind = Literal["data", "form", "layout", "comparison", "schedule"]


def _truncate_coords(value: Any) -> Any:
    """Models sometimes emit float coordinates; keep the integer part."""
    if isinstance(value, (list, tuple)):
        return tuple(int(v) if isinstance(v, float) else v for v in value)
    return value


BBox = Annotated[tuple[int, ...], BeforeValidator(_truncate_coords)]

_BODY_CONFIG = {"frozen": True, "ser_json_bytes": "base64", "val_json_bytes": "base64"}


# --- Node bodies ---


class SectionBody(BaseModel):
    """Logical grouping of content, introduced by a heading."""

    type: Literal["section"] = "section"
    description: str

    model_config = _BODY_CONFIG


class HeadingBody(BaseModel):
    type: Literal["heading"] = "heading"
    level: HeadingLevel
    content: str

    model_config = _BODY_CONFIG


class ParagraphBody(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    level: TextLevel = "paragraph"
    content: str
    continuation: bool | None = None

    model_config = _BODY_CONFIG


class ListItemBody(BaseModel):
    type: Literal["list_item"] = "list_item"
    level: ListLevel = "l1"
    content: str
    continuation: bool | None = None

    model_config = _BODY_CONFIG


class TocEntryBody(BaseModel):
    """Table of contents entry. ``target_section_id`` is linked later, never here."""

    type: Literal["toc_entry"] = "toc_entry"
    title: str
    description: str | None = None
    target_page: int | None = None
    target_section_id: str | None = None
    level: ListLevel = "l1"

    model_config = _BODY_CONFIG

    @field_validator("target_section_id", mode="before")
    @classmethod
    def drop_section_link(cls, value: Any) -> None:
        return None


class ImageBody(BaseModel):
    """Visual element located by a bounding box."""

    type: Literal["image"] = "image"
    kind: ImageKind = "unknown"
    bbox: BBox | None = None
    caption: str | None = None
    description: str
    continuation: bool | None = None
    # PNG crop, filled after extraction
    image_data: SkipJsonSchema[bytes | None] = Field(default=None, repr=False)

    model_config = _BODY_CONFIG


class TableBody(BaseModel):
    type: Literal["table"] = "table"
    kind: TableKind = "data"
    bbox: BBox | None = None
    caption: str | None = None
    description: str
    content: str
    continuation: bool | None = None
    # PNG crop, filled after extraction
    image_data: SkipJsonSchema[bytes | None] = Field(default=None, repr=False)

    model_config = _BODY_CONFIG


class HeaderBody(BaseModel):
    type: Literal["header"] = "header"
    content: str

    model_config = _BODY_CONFIG


class FooterBody(BaseModel):
    type: Literal["footer"] = "footer"
    content: str

    model_config = _BODY_CONFIG


class MetadataBody(BaseModel):
    type: Literal["metadata"] = "metadata"
    content: str

    model_config = _BODY_CONFIG


NodeBody = Annotated[
    Union[
        SectionBody,
        HeadingBody,
        ParagraphBody,
        ListItemBody,
        TocEntryBody,
        ImageBody,
        TableBody,
        HeaderBody,
        FooterBody,
        MetadataBody,
    ],
    Field(discriminator="type"),
]

# Page furniture is never part of the section tree
_ROOT_ONLY_TYPES = frozenset({"header", "footer", "metadata"})


class Node(BaseModel):
    """
    Document node: identity and hierarchy around a typed body.

    Accepts both the envelope form and the flat form models tend to emit:

        >>> Node.model_validate({"type": "heading", "id": "2", "parent_id": "1",
        ...                      "level": "h1", "content": "Introduction"})
    """

    id: str
    parent_id: str | None = None
    body: NodeBody

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def lift_flat_form(cls, data: Any) -> Any:
        """Wrap flat payload fields into ``body`` and detach page furniture."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "body" not in data and "type" in data:
            node_id = data.pop("id", None)
            parent_id = data.pop("parent_id", None)
            data = {"id": node_id, "parent_id": parent_id, "body": data}

        body = data.get("body")
        body_type = body.get("type") if isinstance(body, dict) else getattr(body, "type", None)
        if body_type in _ROOT_ONLY_TYPES:
            data["parent_id"] = None
        return data

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def type(self) -> str:
        return self.body.type

    @property
    def kind(self) -> str | None:
        return getattr(self.body, "kind", None)

    @property
    def bbox(self) -> tuple[int, ...] | None:
        return getattr(self.body, "bbox", None)

    @property
    def content(self) -> str | None:
        return getattr(self.body, "content", None)

    @property
    def description(self) -> str | None:
        return getattr(self.body, "description", None)

    @property
    def image_data(self) -> bytes | None:
        return getattr(self.body, "image_data", None)

    @property
    def is_visual(self) -> bool:
        """Image or table with a bounding box."""
        return self.kind is not None and self.bbox is not None

    def with_region(self, bbox: tuple[int, int, int, int], image_data: bytes) -> Node:
        """Copy of this node with a pixel bbox and its cropped PNG."""
        body = self.body.model_copy(update={"bbox": bbox, "image_data": image_data})
        return self.model_copy(update={"body": body})

    def to_flat(self, include_image_data: bool = False) -> dict[str, Any]:
        """Render the flat wire form (``type``, ``id``, ``parent_id`` plus payload)."""
        exclude = None if include_image_data else {"image_data"}
        flat: dict[str, Any] = {"type": self.type, "id": self.id, "parent_id": self.parent_id}
        flat.update(self.body.model_dump(mode="json", exclude=exclude))
        return flat


class Page(BaseModel):
    """Nodes of one page, in reading order."""

    index: int = Field(ge=0)
    nodes: list[Node] = Field(default_factory=list)

    model_config = {"frozen": True}

    def nodes_of(self, node_type: str) -> list[Node]:
        return [n for n in self.nodes if n.type == node_type]


class PageNodes(BaseModel):
    """Structured response expected from the document model for one page."""

    nodes: list[Node] = Field(default_factory=list)


# --- Diagnostics ---


class PageError(BaseModel):
    """Failure captured for one page during extraction."""

    page_index: int
    message: str
    error_type: str
    request: dict[str, Any] = Field(default_factory=dict)
    status_code: int | None = None
    response_body: str | None = None


class PageEvaluation(BaseModel):
    """Critic verdict for one extracted page."""

    page_index: int
    score: float = Field(ge=0.0, le=1.0)
    correct: bool = True
    summary: str = ""
    issues: list[str] = Field(default_factory=list)


# --- Options ---


class ExtractionOptions(BaseModel):
    """Per-run extraction parameters."""

    model: str = "gemini-2.0-flash"
    objective: str = DEFAULT_OBJECTIVE
    max_concurrency: int = Field(default=3, ge=1)
    timeout_seconds: float = Field(default=360, gt=0)

    model_config = {"frozen": True}


class QualityOptions(BaseModel):
    """Parameters for the sample/evaluate/refine pass."""

    refine_model: str = "gemini-2.5-pro"
    objective: str = DEFAULT_OBJECTIVE
    threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    sample_size: int = Field(default=3, ge=1)
    iterations: int = Field(default=1, ge=1)
    parallel_refine: int = Field(default=1, ge=1)
    timeout_seconds: float = Field(default=360, gt=0)

    model_config = {"frozen": True}


class TitleOptions(BaseModel):
    model: str = "gemini-2.0-flash"
    timeout_seconds: float = Field(default=30, gt=0)

    model_config = {"frozen": True}


class TitleResponse(BaseModel):
    """Structured response for title inference."""

    title: str | None = Field(default=None, description="The inferred document title")


# --- Results ---


class ExtractedDocument(BaseModel):
    """Complete extraction result for one source."""

    # Source information
    source: str
    page_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Extracted content
    pages: list[Page] = Field(default_factory=list)
    title: str | None = None

    # Processing info
    extraction_time: datetime = Field(default_factory=datetime.now)
    processing_seconds: float = 0.0
    model_used: str = ""

    @property
    def node_count(self) -> int:
        return sum(len(page.nodes) for page in self.pages)
