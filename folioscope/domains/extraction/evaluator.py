"""
Quality Assurer - Sample, evaluate and re-extract weak pages.

Uses LLM-as-judge on a sample of pages (first, last and random interior
pages). Pages scoring below the threshold are re-extracted with the
refine loop on a stronger model; everything else is returned untouched.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from PIL import Image

from .enricher import VisualNodeEnricher
from .extractor import encode_png
from .models import Page, PageEvaluation, PageNodes, QualityOptions
from .prompts import PAGE_EVAL_CRITERIA, PAGE_EVAL_TASK, image_task, text_task
from .rotation import rotate_image

if TYPE_CHECKING:
    from .contracts import DocumentModel

logger = logging.getLogger(__name__)

__all__ = ["QualityAssurer", "RefineFn"]

RefineFn = Callable[[int, QualityOptions], Awaitable[Page]]

_PARAGRAPH_PREVIEW_CHARS = 200


class QualityAssurer:
    """
    Post-extraction quality pass.

    Example:
        >>> assurer = QualityAssurer(gemini_client)
        >>> pages = await assurer.assure_pages(pages, images, rotations, QualityOptions())
    """

    def __init__(
        self,
        client: DocumentModel,
        enricher: VisualNodeEnricher | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize quality assurer.

        Args:
            client: Document model used as critic and refiner
            enricher: Visual node enricher for refined pages
            rng: Random source for interior page sampling
        """
        self._client = client
        self._enricher = enricher or VisualNodeEnricher()
        self._rng = rng

    @staticmethod
    def sample_pages(
        page_count: int,
        sample_size: int,
        rng: random.Random | None = None,
    ) -> list[int]:
        """
        Choose page indices to evaluate.

        Returns:
            Sorted unique indices: every page when ``page_count <= sample_size``,
            otherwise the first and last page plus random interior pages
        """
        if page_count <= sample_size:
            return list(range(page_count))
        if sample_size == 1:
            return [0]
        last = page_count - 1
        if sample_size == 2:
            return [0, last]
        interior = (rng or random).sample(range(1, last), sample_size - 2)
        return sorted({0, last, *interior})

    @staticmethod
    def serialize_page(page: Page) -> str:
        """Render a page as one ``[Type] text`` line per node for the critic."""
        lines = []
        for node in page.nodes:
            body = node.body
            if body.type == "section":
                lines.append(f"[Section] {body.description}")
            elif body.type == "heading":
                lines.append(f"[Heading {body.level}] {body.content}")
            elif body.type == "paragraph":
                lines.append(f"[Paragraph] {body.content[:_PARAGRAPH_PREVIEW_CHARS]}")
            elif body.type == "list_item":
                lines.append(f"[ListItem] {body.content}")
            elif body.type == "image":
                lines.append(f"[Image: {body.kind}] {body.description}")
            elif body.type == "table":
                lines.append(f"[Table: {body.kind}] {body.description}")
            elif body.type in ("header", "footer", "metadata"):
                lines.append(f"[{body.type.capitalize()}] {body.content}")
            elif body.type == "toc_entry":
                lines.append(f"[TOC] {body.title}")
            else:
                lines.append(f"[{node.type}] {node.content or node.description or ''}")
        return "\n".join(lines)

    async def evaluate_page(self, page: Page, options: QualityOptions) -> PageEvaluation:
        """Score one page's extraction with the critic model."""
        logger.info("Evaluating page %d (model=%s)", page.index, options.refine_model)
        result = await self._client.evaluate(
            task=PAGE_EVAL_TASK.format(page_index=page.index),
            output=self.serialize_page(page),
            criteria=PAGE_EVAL_CRITERIA,
            model=options.refine_model,
            timeout_seconds=options.timeout_seconds,
        )
        evaluation = PageEvaluation(
            page_index=page.index,
            score=result.overall_score,
            correct=result.correct,
            summary=result.summary,
            issues=[issue.issue for issue in result.issues],
        )
        logger.info(
            "Page %d evaluated: score=%.2f, correct=%s", page.index, evaluation.score, evaluation.correct
        )
        return evaluation

    async def refine_image(
        self,
        image: Image.Image,
        page_index: int,
        options: QualityOptions,
    ) -> Page:
        """Re-extract an upright page raster with the refine loop."""
        width, height = image.size
        logger.info(
            "Refining page %d (model=%s, iterations=%d, threshold=%.2f)",
            page_index,
            options.refine_model,
            options.iterations,
            options.threshold,
        )
        refined = await self._client.refine(
            PageNodes,
            image_task(width, height),
            system_instruction=options.objective,
            image=await asyncio.to_thread(encode_png, image),
            model=options.refine_model,
            iterations=options.iterations,
            threshold=options.threshold,
            criteria=PAGE_EVAL_CRITERIA,
            timeout_seconds=options.timeout_seconds,
        )
        # The refine model produced these coordinates, so its scale applies
        nodes = await asyncio.to_thread(
            self._enricher.enrich, refined.result.nodes, image, options.refine_model, page_index
        )
        logger.info(
            "Page %d refined: %d nodes, score=%s, converged=%s",
            page_index,
            len(nodes),
            refined.final_score,
            refined.converged,
        )
        return Page(index=page_index, nodes=nodes)

    async def refine_text(
        self,
        content: str,
        page_index: int,
        options: QualityOptions,
    ) -> Page:
        """Re-extract text content with the refine loop."""
        logger.info("Refining text page %d (model=%s)", page_index, options.refine_model)
        refined = await self._client.refine(
            PageNodes,
            text_task(content),
            system_instruction=options.objective,
            model=options.refine_model,
            iterations=options.iterations,
            threshold=options.threshold,
            criteria=PAGE_EVAL_CRITERIA,
            timeout_seconds=options.timeout_seconds,
        )
        return Page(index=page_index, nodes=list(refined.result.nodes))

    async def assure_pages(
        self,
        pages: Sequence[Page],
        images: Sequence[Image.Image],
        rotations: Sequence[int] | None,
        options: QualityOptions,
    ) -> list[Page]:
        """
        Evaluate sampled pages and replace those below the threshold.

        Args:
            pages: Extracted pages in index order
            images: Original (uncorrected) rasters, indexed like ``pages``
            rotations: Clockwise correction per page
            options: Quality pass parameters

        Returns:
            Pages with only sub-threshold sampled pages replaced
        """
        rotations = list(rotations or [])
        sample = self.sample_pages(len(pages), options.sample_size, self._rng)
        semaphore = asyncio.Semaphore(options.parallel_refine)
        logger.info(
            "Quality pass: sampling pages %s of %d (threshold=%.2f)",
            sample,
            len(pages),
            options.threshold,
        )

        async def evaluate_with_limit(position: int) -> PageEvaluation:
            async with semaphore:
                return await self.evaluate_page(pages[position], options)

        evaluations = await asyncio.gather(*(evaluate_with_limit(i) for i in sample))
        failing = [
            position
            for position, evaluation in zip(sample, evaluations)
            if evaluation.score < options.threshold
        ]

        if not failing:
            logger.info("All sampled pages passed quality threshold")
            return list(pages)

        logger.info("Refining %d pages below threshold: %s", len(failing), failing)

        async def refine_with_limit(position: int) -> Page:
            index = pages[position].index
            rotation = rotations[index] if index < len(rotations) else 0
            image = images[index]
            if rotation:
                image = await asyncio.to_thread(rotate_image, image, rotation)
            async with semaphore:
                return await self.refine_image(image, index, options)

        refined = await asyncio.gather(*(refine_with_limit(i) for i in failing))
        replacements = dict(zip(failing, refined))
        return [replacements.get(position, page) for position, page in enumerate(pages)]

    async def assure_single(
        self,
        pages: Sequence[Page],
        refine_fn: RefineFn,
        options: QualityOptions,
    ) -> list[Page]:
        """
        Quality pass for single-page sources (image file, text, string).

        Args:
            pages: The one extracted page
            refine_fn: Re-extracts page 0 for the source at hand
            options: Quality pass parameters
        """
        if not pages:
            return list(pages)
        evaluation = await self.evaluate_page(pages[0], options)
        if evaluation.score >= options.threshold:
            logger.info("Page passed quality threshold (score=%.2f)", evaluation.score)
            return list(pages)
        logger.info("Page below threshold (score=%.2f), refining", evaluation.score)
        return [await refine_fn(0, options)]
