"""
Tests for the sampled quality pass.
"""

from __future__ import annotations

import random
import re
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from folioscope.adapters.gemini.models import EvaluationIssue, EvaluationResult, RefineResult
from folioscope.config.errors import LLMError

from .evaluator import QualityAssurer
from .models import Node, Page, PageNodes, QualityOptions
from .prompts import PAGE_EVAL_CRITERIA

_TASK_PAGE = re.compile(r"document page (\d+) ")


def _page(index: int, text: str = "original") -> Page:
    return Page(
        index=index,
        nodes=[
            Node.model_validate({"type": "section", "id": "1", "description": f"Section {index}"}),
            Node.model_validate(
                {"type": "paragraph", "id": "2", "parent_id": "1", "content": f"{text} {index}"}
            ),
        ],
    )


def _verdict(score: float) -> EvaluationResult:
    issues = [] if score >= 0.8 else [EvaluationIssue(issue="Table not captured", severity="high")]
    return EvaluationResult(overall_score=score, correct=score >= 0.8, summary="ok", issues=issues)


def _refined(text: str = "refined") -> RefineResult:
    return RefineResult(
        result=PageNodes(
            nodes=[Node.model_validate({"type": "paragraph", "id": "1", "content": text})]
        ),
        final_score=0.9,
        iterations_count=1,
        converged=True,
    )


def _scores_by_page(scores: dict[int, float]) -> Any:
    async def evaluate(task: str, output: str, **kwargs: Any) -> EvaluationResult:
        match = _TASK_PAGE.search(task)
        assert match is not None
        return _verdict(scores[int(match.group(1))])

    return evaluate


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.evaluate = AsyncMock()
    client.refine = AsyncMock(return_value=_refined())
    return client


@pytest.fixture
def options() -> QualityOptions:
    return QualityOptions(refine_model="gemini-2.5-pro", threshold=0.8, sample_size=3)


# --- Sampling Tests ---


def test_sample_all_pages_when_small() -> None:
    assert QualityAssurer.sample_pages(3, 3) == [0, 1, 2]
    assert QualityAssurer.sample_pages(2, 5) == [0, 1]
    assert QualityAssurer.sample_pages(0, 3) == []


def test_sample_one_and_two() -> None:
    assert QualityAssurer.sample_pages(10, 1) == [0]
    assert QualityAssurer.sample_pages(10, 2) == [0, 9]


def test_sample_first_last_and_interior() -> None:
    """Test larger samples keep both ends and fill the rest from the interior."""
    for seed in range(25):
        sample = QualityAssurer.sample_pages(20, 5, random.Random(seed))
        assert len(sample) == 5
        assert sample == sorted(set(sample))
        assert sample[0] == 0
        assert sample[-1] == 19
        assert all(0 < i < 19 for i in sample[1:-1])


def test_sample_is_reproducible_with_seed() -> None:
    first = QualityAssurer.sample_pages(50, 6, random.Random(7))
    second = QualityAssurer.sample_pages(50, 6, random.Random(7))
    assert first == second


# --- Serialization Tests ---


def test_serialize_page() -> None:
    raw = [
        {"type": "section", "id": "1", "description": "Setup steps"},
        {"type": "heading", "id": "2", "parent_id": "1", "level": "h2", "content": "Installation"},
        {"type": "paragraph", "id": "3", "parent_id": "1", "content": "x" * 300},
        {"type": "list_item", "id": "4", "parent_id": "1", "content": "Run the installer"},
        {"type": "image", "id": "5", "kind": "screenshot", "description": "Installer window"},
        {"type": "table", "id": "6", "kind": "comparison", "description": "Editions", "content": "|a|"},
        {"type": "header", "id": "7", "content": "ACME Manual"},
        {"type": "footer", "id": "8", "content": "Page 2"},
        {"type": "metadata", "id": "9", "content": "Version 3.1"},
        {"type": "toc_entry", "id": "10", "title": "1 Installation", "level": "l1"},
    ]
    page = Page(index=0, nodes=[Node.model_validate(n) for n in raw])

    lines = QualityAssurer.serialize_page(page).split("\n")

    assert lines == [
        "[Section] Setup steps",
        "[Heading h2] Installation",
        "[Paragraph] " + "x" * 200,
        "[ListItem] Run the installer",
        "[Image: screenshot] Installer window",
        "[Table: comparison] Editions",
        "[Header] ACME Manual",
        "[Footer] Page 2",
        "[Metadata] Version 3.1",
        "[TOC] 1 Installation",
    ]


# --- Evaluation Tests ---


async def test_evaluate_page(client: MagicMock, options: QualityOptions) -> None:
    client.evaluate.return_value = _verdict(0.4)

    evaluation = await QualityAssurer(client).evaluate_page(_page(2), options)

    assert evaluation.page_index == 2
    assert evaluation.score == 0.4
    assert not evaluation.correct
    assert evaluation.issues == ["Table not captured"]
    kwargs = client.evaluate.call_args.kwargs
    assert "document page 2 " in kwargs["task"]
    assert kwargs["output"].startswith("[Section] Section 2")
    assert kwargs["criteria"] == PAGE_EVAL_CRITERIA
    assert kwargs["model"] == "gemini-2.5-pro"


# --- Multi-page Pass Tests ---


async def test_assure_pages_replaces_only_failing_pages(
    client: MagicMock, options: QualityOptions
) -> None:
    """Test passing pages keep their identity and failing pages are refined."""
    client.evaluate.side_effect = _scores_by_page({0: 0.9, 1: 0.5, 2: 0.95})
    pages = [_page(i) for i in range(3)]
    images = [Image.new("RGB", (40, 20), "white") for _ in range(3)]

    result = await QualityAssurer(client).assure_pages(pages, images, [0, 0, 0], options)

    assert result[0] is pages[0]
    assert result[2] is pages[2]
    assert result[1].index == 1
    assert result[1].nodes[0].content == "refined"
    client.refine.assert_awaited_once()
    kwargs = client.refine.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-pro"
    assert kwargs["threshold"] == 0.8
    assert kwargs["iterations"] == 1
    assert kwargs["image"].startswith(b"\x89PNG")


async def test_assure_pages_leaves_unsampled_pages(client: MagicMock) -> None:
    client.evaluate.return_value = _verdict(0.1)
    pages = [_page(i) for i in range(6)]
    images = [Image.new("RGB", (40, 20), "white") for _ in range(6)]

    result = await QualityAssurer(client).assure_pages(
        pages, images, None, QualityOptions(sample_size=2)
    )

    assert client.evaluate.await_count == 2
    assert client.refine.await_count == 2
    assert [p.index for p in result] == [0, 1, 2, 3, 4, 5]
    assert result[0] is not pages[0]
    assert result[5] is not pages[5]
    assert all(result[i] is pages[i] for i in range(1, 5))


async def test_assure_pages_all_pass(client: MagicMock, options: QualityOptions) -> None:
    client.evaluate.return_value = _verdict(0.8)
    pages = [_page(i) for i in range(4)]

    result = await QualityAssurer(client, rng=random.Random(1)).assure_pages(
        pages, [Image.new("RGB", (10, 10))] * 4, [0] * 4, options
    )

    assert all(a is b for a, b in zip(result, pages))
    client.refine.assert_not_awaited()


async def test_assure_pages_refines_rotated_raster(client: MagicMock, options: QualityOptions) -> None:
    """Test refinement sees the upright raster and re-enriches with the refine model scale."""
    client.evaluate.return_value = _verdict(0.2)
    client.refine.return_value = RefineResult(
        result=PageNodes(
            nodes=[
                Node.model_validate(
                    {
                        "type": "image",
                        "id": "1",
                        "kind": "photo",
                        "bbox": [0, 0, 1000, 1000],
                        "description": "Whole page photo",
                    }
                )
            ]
        ),
        final_score=0.85,
    )
    images = [Image.new("RGB", (40, 20), "white")]

    [page] = await QualityAssurer(client).assure_pages([_page(0)], images, [90], options)

    assert "This image is 20 pixels wide and 40 pixels tall" in client.refine.call_args.args[1]
    assert page.nodes[0].bbox == (0, 0, 20, 40)
    assert page.nodes[0].image_data is not None


async def test_assure_pages_parallel_evaluation(client: MagicMock) -> None:
    client.evaluate.return_value = _verdict(0.9)
    pages = [_page(i) for i in range(5)]

    result = await QualityAssurer(client).assure_pages(
        pages, [Image.new("RGB", (10, 10))] * 5, None, QualityOptions(sample_size=5, parallel_refine=3)
    )

    assert client.evaluate.await_count == 5
    assert result == pages


async def test_assure_pages_propagates_evaluation_failure(
    client: MagicMock, options: QualityOptions
) -> None:
    client.evaluate.side_effect = LLMError("critic unavailable")

    with pytest.raises(LLMError):
        await QualityAssurer(client).assure_pages([_page(0)], [Image.new("RGB", (10, 10))], [0], options)


# --- Single-page Pass Tests ---


async def test_assure_single_passing(client: MagicMock, options: QualityOptions) -> None:
    client.evaluate.return_value = _verdict(0.95)
    refine_fn = AsyncMock()
    pages = [_page(0)]

    result = await QualityAssurer(client).assure_single(pages, refine_fn, options)

    assert result[0] is pages[0]
    refine_fn.assert_not_awaited()


async def test_assure_single_failing(client: MagicMock, options: QualityOptions) -> None:
    client.evaluate.return_value = _verdict(0.3)
    replacement = _page(0, text="better")
    refine_fn = AsyncMock(return_value=replacement)

    result = await QualityAssurer(client).assure_single([_page(0)], refine_fn, options)

    assert result == [replacement]
    refine_fn.assert_awaited_once_with(0, options)


async def test_refine_text(client: MagicMock, options: QualityOptions) -> None:
    page = await QualityAssurer(client).refine_text("# Notes\n\nSome text", 0, options)

    args, kwargs = client.refine.call_args
    assert args[0] is PageNodes
    assert "Some text" in args[1]
    assert "image" not in kwargs
    assert kwargs["criteria"] == PAGE_EVAL_CRITERIA
    assert page.nodes[0].content == "refined"
