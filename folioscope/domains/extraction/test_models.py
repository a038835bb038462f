"""
Tests for extraction domain models.
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from .models import (
    ExtractedDocument,
    ExtractionOptions,
    HeadingBody,
    ImageBody,
    Node,
    Page,
    PageNodes,
    QualityOptions,
)


# --- Node Parsing Tests ---


def test_node_accepts_flat_form() -> None:
    """Test the flat wire form is lifted into the envelope."""
    node = Node.model_validate(
        {"type": "heading", "id": "2", "parent_id": "1", "level": "h1", "content": "Introduction"}
    )
    assert node.id == "2"
    assert node.parent_id == "1"
    assert isinstance(node.body, HeadingBody)
    assert node.type == "heading"
    assert node.content == "Introduction"


def test_node_accepts_envelope_form() -> None:
    node = Node.model_validate(
        {"id": "1", "parent_id": None, "body": {"type": "section", "description": "Overview."}}
    )
    assert node.type == "section"
    assert node.description == "Overview."


def test_node_coerces_integer_ids() -> None:
    node = Node.model_validate({"type": "paragraph", "id": 3, "parent_id": 1, "content": "Text"})
    assert node.id == "3"
    assert node.parent_id == "1"
    assert node.body.level == "paragraph"


def test_page_furniture_has_no_parent() -> None:
    """Test header, footer and metadata nodes are detached from sections."""
    for node_type in ("header", "footer", "metadata"):
        node = Node.model_validate(
            {"type": node_type, "id": "9", "parent_id": "1", "content": "Page 3"}
        )
        assert node.parent_id is None


def test_toc_entry_never_links_section() -> None:
    node = Node.model_validate(
        {
            "type": "toc_entry",
            "id": "4",
            "parent_id": "1",
            "title": "Chapter 1 Introduction",
            "target_page": 3,
            "target_section_id": "7",
            "level": "l1",
        }
    )
    assert node.body.target_section_id is None
    assert node.body.target_page == 3


def test_empty_description_does_not_reject_node() -> None:
    """Test one weak description leaves the rest of the page usable."""
    node = Node.model_validate(
        {"type": "image", "id": "5", "kind": "photo", "bbox": [0, 0, 10, 10], "description": ""}
    )
    assert node.description == ""
    assert node.is_visual


def test_table_requires_content() -> None:
    with pytest.raises(ValidationError):
        Node.model_validate(
            {"type": "table", "id": "6", "kind": "data", "description": "Prices per region"}
        )


def test_unknown_node_type_rejected() -> None:
    with pytest.raises(ValidationError):
        Node.model_validate({"type": "sidebar", "id": "1", "content": "?"})


def test_invalid_level_rejected() -> None:
    with pytest.raises(ValidationError):
        Node.model_validate({"type": "heading", "id": "1", "level": "h7", "content": "Deep"})


def test_bbox_floats_truncated() -> None:
    node = Node.model_validate(
        {
            "type": "image",
            "id": "5",
            "kind": "chart",
            "bbox": [10.7, 20.2, 30.9, 40.1],
            "description": "Revenue by quarter",
        }
    )
    assert node.bbox == (10, 20, 30, 40)
    assert node.is_visual


def test_visual_requires_bbox() -> None:
    node = Node.model_validate(
        {"type": "image", "id": "5", "kind": "logo", "description": "Company logo"}
    )
    assert node.bbox is None
    assert not node.is_visual


# --- Immutability Tests ---


def test_node_is_immutable() -> None:
    node = Node.model_validate({"type": "paragraph", "id": "1", "content": "Text"})
    with pytest.raises(ValidationError):
        node.id = "2"  # type: ignore


def test_with_region_returns_copy() -> None:
    """Test enrichment helper leaves the original untouched."""
    node = Node.model_validate(
        {"type": "image", "id": "5", "kind": "photo", "bbox": [1, 2, 3, 4], "description": "A cat"}
    )
    enriched = node.with_region((0, 0, 8, 8), b"png-bytes")

    assert enriched is not node
    assert enriched.bbox == (0, 0, 8, 8)
    assert enriched.image_data == b"png-bytes"
    assert node.bbox == (1, 2, 3, 4)
    assert node.image_data is None


# --- Serialization Tests ---


def test_to_flat_round_trip() -> None:
    raw = {
        "type": "list_item",
        "id": "7",
        "parent_id": "1",
        "level": "l2",
        "content": "Nested item",
        "continuation": True,
    }
    node = Node.model_validate(raw)
    flat = node.to_flat()

    assert flat["type"] == "list_item"
    assert flat["id"] == "7"
    assert flat["parent_id"] == "1"
    assert flat["content"] == "Nested item"
    assert Node.model_validate(flat) == node


def test_to_flat_omits_image_data_by_default() -> None:
    node = Node.model_validate(
        {"type": "image", "id": "5", "kind": "photo", "bbox": [1, 2, 3, 4], "description": "A cat"}
    ).with_region((0, 0, 8, 8), b"\x89PNG")

    assert "image_data" not in node.to_flat()
    assert node.to_flat(include_image_data=True)["image_data"]


def test_image_data_hidden_from_response_schema() -> None:
    """Test the schema sent to the model never asks for image bytes."""
    schema = json.dumps(PageNodes.model_json_schema())
    assert "image_data" not in schema
    assert "toc_entry" in schema


def test_document_json_round_trip_with_image_data() -> None:
    node = Node.model_validate(
        {"type": "image", "id": "5", "kind": "photo", "bbox": [1, 2, 3, 4], "description": "A cat"}
    ).with_region((0, 0, 8, 8), b"\x89PNG\r\n")
    document = ExtractedDocument(source="cat.png", page_count=1, pages=[Page(index=0, nodes=[node])])

    restored = ExtractedDocument.model_validate_json(document.model_dump_json())

    assert restored.pages[0].nodes[0].image_data == b"\x89PNG\r\n"
    assert restored.node_count == 1


# --- Page and Options Tests ---


def test_page_nodes_of() -> None:
    page = Page(
        index=0,
        nodes=[
            Node.model_validate({"type": "section", "id": "1", "description": "Intro"}),
            Node.model_validate({"type": "heading", "id": "2", "parent_id": "1", "level": "h1", "content": "Intro"}),
        ],
    )
    assert [n.id for n in page.nodes_of("heading")] == ["2"]


def test_page_index_non_negative() -> None:
    with pytest.raises(ValidationError):
        Page(index=-1)


def test_option_defaults() -> None:
    extraction = ExtractionOptions()
    assert extraction.max_concurrency == 3
    assert extraction.timeout_seconds == 360

    quality = QualityOptions()
    assert quality.threshold == 0.8
    assert quality.sample_size == 3
    assert quality.iterations == 1
    assert quality.parallel_refine == 1


def test_quality_threshold_bounds() -> None:
    with pytest.raises(ValidationError):
        QualityOptions(threshold=1.5)


def test_image_body_repr_hides_bytes() -> None:
    body = ImageBody(kind="photo", description="A cat", image_data=b"x" * 1000)
    assert "xxxx" not in repr(body)
