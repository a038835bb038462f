"""
Document Service - Source dispatch for PDF, image and text extraction.

Wires the rasterizer, page extractor, quality pass and title inference
together and returns one ``ExtractedDocument`` per source.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from folioscope.adapters.pdf import PDFRasterizer, load_image
from folioscope.config.errors import (
    CorruptDocumentError,
    DocumentNotFoundError,
    ErrorCode,
    FolioscopeError,
    UnsupportedDocumentError,
)

from .bbox import BBoxScales
from .enricher import VisualNodeEnricher
from .evaluator import QualityAssurer
from .extractor import PageExtractor
from .models import (
    ExtractedDocument,
    ExtractionOptions,
    Page,
    QualityOptions,
    TitleOptions,
)
from .title import TitleInferrer

if TYPE_CHECKING:
    from folioscope.config.settings import Settings

    from .contracts import DocumentModel, PageRasterizer

logger = logging.getLogger(__name__)

__all__ = ["DocumentService", "IMAGE_SUFFIXES", "TEXT_SUFFIXES"]

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp"})
TEXT_SUFFIXES = frozenset({".txt", ".md", ".markdown"})


class DocumentService:
    """
    Extracts documents end to end.

    Example:
        >>> service = DocumentService.from_settings(get_settings())
        >>> document = await service.extract_file("report.pdf", refine=True, infer_title=True)
        >>> print(document.title, document.page_count)
    """

    def __init__(
        self,
        client: DocumentModel,
        rasterizer: PageRasterizer | None = None,
        extraction: ExtractionOptions | None = None,
        quality: QualityOptions | None = None,
        title: TitleOptions | None = None,
        bbox_scales: BBoxScales | None = None,
        dpi: int | None = None,
    ) -> None:
        """
        Initialize service.

        Args:
            client: Document model (Gemini client)
            rasterizer: PDF page renderer (PyMuPDF if None)
            extraction: Extraction parameters
            quality: Quality pass parameters
            title: Title inference parameters
            bbox_scales: Model -> bbox coordinate scale table
            dpi: PDF rendering resolution override
        """
        self.rasterizer = rasterizer or PDFRasterizer()
        self.extraction = extraction or ExtractionOptions()
        self.quality = quality or QualityOptions()
        self.title = title or TitleOptions(model=self.extraction.model)
        self.dpi = dpi

        enricher = VisualNodeEnricher(bbox_scales)
        self.extractor = PageExtractor(client, enricher)
        self.assurer = QualityAssurer(client, enricher)
        self.title_inferrer = TitleInferrer(client)

    @classmethod
    def from_settings(cls, settings: Settings, client: DocumentModel | None = None) -> DocumentService:
        """Build a service (and a Gemini client if none is given) from settings."""
        if client is None:
            from folioscope.adapters.gemini import GeminiClient, GeminiConfig

            client = GeminiClient(
                GeminiConfig(
                    model=settings.gemini_model,
                    api_key=settings.google_api_key,
                    temperature=settings.gemini_temperature,
                    timeout_seconds=settings.extraction_timeout_seconds,
                    rate_limit_rpm=settings.gemini_rate_limit_rpm,
                )
            )
        return cls(
            client,
            rasterizer=PDFRasterizer(dpi=settings.render_dpi),
            extraction=ExtractionOptions(
                model=settings.gemini_model,
                max_concurrency=settings.max_concurrency,
                timeout_seconds=settings.extraction_timeout_seconds,
            ),
            quality=QualityOptions(
                refine_model=settings.refine_model,
                threshold=settings.refine_threshold,
                sample_size=settings.refine_sample_size,
                iterations=settings.refine_iterations,
                parallel_refine=settings.parallel_refine,
                timeout_seconds=settings.extraction_timeout_seconds,
            ),
            title=TitleOptions(
                model=settings.gemini_model,
                timeout_seconds=settings.title_timeout_seconds,
            ),
            bbox_scales=BBoxScales(settings.bbox_scales),
        )

    async def extract_file(
        self,
        path: str | Path,
        refine: bool = False,
        infer_title: bool = False,
    ) -> ExtractedDocument:
        """
        Extract any supported file, dispatching on its suffix.

        Raises:
            UnsupportedDocumentError: No extractor for the suffix
        """
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == ".pdf":
            return await self.extract_pdf(path, refine=refine, infer_title=infer_title)
        if suffix in IMAGE_SUFFIXES:
            return await self.extract_image_file(path, refine=refine, infer_title=infer_title)
        if suffix in TEXT_SUFFIXES:
            return await self.extract_text_file(path, refine=refine, infer_title=infer_title)
        raise UnsupportedDocumentError(
            f"Unsupported file type: {suffix or '(none)'}",
            details={"path": str(path), "supported": sorted({".pdf", *IMAGE_SUFFIXES, *TEXT_SUFFIXES})},
        )

    async def extract_pdf(
        self,
        path: str | Path,
        refine: bool = False,
        infer_title: bool = False,
    ) -> ExtractedDocument:
        """
        Extract every page of a PDF.

        Raises:
            DocumentNotFoundError, CorruptDocumentError, EncryptedDocumentError:
                PDF cannot be opened
            ExtractionError: One or more pages failed
        """
        start_time = time.time()
        path = Path(path)
        logger.info("Starting PDF extraction: %s", path)

        images = await asyncio.to_thread(self.rasterizer.render_pages, path, None, self.dpi)
        rotations = await self._detect_rotations(path, len(images))
        metadata = await self._pdf_metadata(path)

        pages = await self.extractor.extract_pages(images, rotations, self.extraction)
        if refine:
            pages = await self.assurer.assure_pages(pages, images, rotations, self.quality)

        return await self._finish(path, pages, metadata, infer_title, start_time)

    async def extract_image_file(
        self,
        path: str | Path,
        refine: bool = False,
        infer_title: bool = False,
    ) -> ExtractedDocument:
        """Extract a single image file as page 0."""
        start_time = time.time()
        path = Path(path)
        logger.info("Starting image extraction: %s", path)

        image = await asyncio.to_thread(load_image, path)
        pages = [await self.extractor.extract_image(image, 0, self.extraction)]
        if refine:

            async def refine_fn(page_index: int, options: QualityOptions) -> Page:
                return await self.assurer.refine_image(image, page_index, options)

            pages = await self.assurer.assure_single(pages, refine_fn, self.quality)

        metadata = {"width": image.width, "height": image.height}
        return await self._finish(path, pages, metadata, infer_title, start_time)

    async def extract_text_file(
        self,
        path: str | Path,
        refine: bool = False,
        infer_title: bool = False,
    ) -> ExtractedDocument:
        """Extract a text or markdown file as page 0."""
        path = Path(path)
        if not path.exists():
            raise DocumentNotFoundError(f"Text file not found: {path}", details={"path": str(path)})
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptDocumentError(
                f"Text file is not valid UTF-8: {path}",
                details={"path": str(path), "cause": str(e)},
            ) from e
        return await self.extract_string(
            content, refine=refine, infer_title=infer_title, source=str(path)
        )

    async def extract_string(
        self,
        content: str,
        refine: bool = False,
        infer_title: bool = False,
        source: str = "<string>",
    ) -> ExtractedDocument:
        """
        Extract raw text or markdown content as page 0.

        Raises:
            FolioscopeError: Content is empty
        """
        if not content.strip():
            raise FolioscopeError(
                ErrorCode.VALIDATION_ERROR, "Content is empty", details={"source": source}
            )
        start_time = time.time()
        logger.info("Starting text extraction: %s (%d chars)", source, len(content))

        pages = [await self.extractor.extract_text(content, 0, self.extraction)]
        if refine:

            async def refine_fn(page_index: int, options: QualityOptions) -> Page:
                return await self.assurer.refine_text(content, page_index, options)

            pages = await self.assurer.assure_single(pages, refine_fn, self.quality)

        metadata = {"characters": len(content)}
        return await self._finish(source, pages, metadata, infer_title, start_time)

    async def _detect_rotations(self, path: Path, page_count: int) -> list[int]:
        """Text-direction rotation hints; upright for every page if detection fails."""
        try:
            rotations = await asyncio.to_thread(self.rasterizer.detect_text_rotation, path)
        except Exception as e:
            logger.warning("Rotation detection failed for %s, assuming upright pages: %s", path, e)
            return [0] * page_count
        rotated = sum(1 for r in rotations if r)
        if rotated:
            logger.info("Detected %d rotated pages in %s", rotated, path)
        return rotations

    async def _pdf_metadata(self, path: Path) -> dict[str, Any]:
        info = await asyncio.to_thread(self.rasterizer.metadata, path)
        return info.model_dump(mode="json", exclude_none=True)

    async def _finish(
        self,
        source: str | Path,
        pages: list[Page],
        metadata: dict[str, Any],
        infer_title: bool,
        start_time: float,
    ) -> ExtractedDocument:
        title = await self.title_inferrer.infer_title(pages, self.title) if infer_title else None
        document = ExtractedDocument(
            source=str(source),
            page_count=len(pages),
            metadata=metadata,
            pages=pages,
            title=title,
            processing_seconds=time.time() - start_time,
            model_used=self.extraction.model,
        )
        logger.info(
            "Extraction complete: %s - %d pages, %d nodes in %.1fs",
            document.source,
            document.page_count,
            document.node_count,
            document.processing_seconds,
        )
        return document
