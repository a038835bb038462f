"""
Page Extractor - Concurrent per-page extraction with the document model.

Each page is rotated upright, sent to the model as a PNG, and its visual
nodes are cropped from the raster. Pages run concurrently up to a fixed
limit; results are reassembled in page order once every page is done.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from PIL import Image

from folioscope.config.errors import ExtractionError

from .enricher import VisualNodeEnricher
from .models import ExtractionOptions, Page, PageError, PageNodes
from .prompts import image_task, text_task
from .rotation import rotate_image

if TYPE_CHECKING:
    from .contracts import DocumentModel

logger = logging.getLogger(__name__)

__all__ = ["PageExtractor", "encode_png", "page_error_from"]


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def page_error_from(
    error: Exception,
    page_index: int,
    request: dict[str, Any] | None = None,
) -> PageError:
    """
    Describe a page failure.

    Transport errors from the model adapter carry ``status_code``,
    ``response_body`` and a sanitized ``request``; those are kept.
    """
    context = dict(request or {})
    adapter_request = getattr(error, "request", None)
    if isinstance(adapter_request, dict):
        context.update(adapter_request)

    status = getattr(error, "status_code", None)
    body = getattr(error, "response_body", None)
    return PageError(
        page_index=page_index,
        message=str(error),
        error_type=type(error).__name__,
        request=context,
        status_code=status if isinstance(status, int) else None,
        response_body=body if isinstance(body, str) else None,
    )


class PageExtractor:
    """
    Extracts typed nodes from page rasters.

    Example:
        >>> from folioscope.adapters.gemini import GeminiClient
        >>> extractor = PageExtractor(GeminiClient())
        >>> pages = await extractor.extract_pages(images, rotations, ExtractionOptions())
    """

    def __init__(
        self,
        client: DocumentModel,
        enricher: VisualNodeEnricher | None = None,
    ) -> None:
        """
        Initialize extractor.

        Args:
            client: Document model (Gemini client)
            enricher: Visual node enricher (default scale table if None)
        """
        self._client = client
        self._enricher = enricher or VisualNodeEnricher()

    async def extract_image(
        self,
        image: Image.Image,
        page_index: int,
        options: ExtractionOptions,
    ) -> Page:
        """
        Extract one upright page raster.

        Raises:
            LLMError: Model call failed or returned an invalid structure
        """
        width, height = image.size
        logger.info(
            "Extracting page %d (model=%s, %dx%d)", page_index, options.model, width, height
        )
        response = await self._client.ask_structured(
            PageNodes,
            image_task(width, height),
            system_instruction=options.objective,
            image=await asyncio.to_thread(encode_png, image),
            model=options.model,
            timeout_seconds=options.timeout_seconds,
        )
        nodes = await asyncio.to_thread(
            self._enricher.enrich, response.nodes, image, options.model, page_index
        )
        return Page(index=page_index, nodes=nodes)

    async def extract_text(
        self,
        content: str,
        page_index: int,
        options: ExtractionOptions,
    ) -> Page:
        """Extract nodes from text or markdown content sent directly to the model."""
        logger.info(
            "Extracting text page %d (model=%s, %d chars)", page_index, options.model, len(content)
        )
        response = await self._client.ask_structured(
            PageNodes,
            text_task(content),
            system_instruction=options.objective,
            model=options.model,
            timeout_seconds=options.timeout_seconds,
        )
        return Page(index=page_index, nodes=list(response.nodes))

    async def extract_pages(
        self,
        images: Sequence[Image.Image],
        rotations: Sequence[int] | None,
        options: ExtractionOptions,
    ) -> list[Page]:
        """
        Extract every page, at most ``options.max_concurrency`` at a time.

        All pages are attempted even when some fail.

        Args:
            images: Page rasters in page order (as rendered)
            rotations: Clockwise correction per page (missing entries mean 0)
            options: Extraction parameters

        Returns:
            Pages sorted by index

        Raises:
            ExtractionError: One or more pages failed
        """
        if not images:
            return []

        rotations = list(rotations or [])
        semaphore = asyncio.Semaphore(options.max_concurrency)
        start_time = time.time()

        async def extract_with_limit(index: int, image: Image.Image) -> Page | PageError:
            rotation = rotations[index] if index < len(rotations) else 0
            request = {
                "page_index": index,
                "model": options.model,
                "rotation": rotation,
                "image_width": image.width,
                "image_height": image.height,
            }
            async with semaphore:
                try:
                    if rotation:
                        logger.info("Correcting page %d rotation by %d degrees", index, rotation)
                        image = await asyncio.to_thread(rotate_image, image, rotation)
                    return await self.extract_image(image, index, options)
                except Exception as e:
                    logger.warning("Page %d failed: %s", index, e)
                    return page_error_from(e, index, request)

        results = await asyncio.gather(
            *(extract_with_limit(i, image) for i, image in enumerate(images))
        )

        pages = sorted((r for r in results if isinstance(r, Page)), key=lambda p: p.index)
        errors = sorted((r for r in results if isinstance(r, PageError)), key=lambda e: e.page_index)

        if errors:
            first = errors[0]
            raise ExtractionError(
                f"Extraction failed for {len(errors)} of {len(images)} pages "
                f"(first failure on page {first.page_index}: {first.message})",
                details={
                    "failed_page": first.page_index,
                    "error_message": first.message,
                    "total_errors": len(errors),
                    "all_errors": [e.model_dump() for e in errors],
                },
            )

        logger.info(
            "Extracted %d pages (%d nodes) in %.1fs",
            len(pages),
            sum(len(p.nodes) for p in pages),
            time.time() - start_time,
        )
        return pages
