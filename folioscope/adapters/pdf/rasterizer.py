"""
PDF Rasterizer - Page rendering, metadata and text-direction heuristics.

Uses PyMuPDF for parsing/rendering and Pillow for the resulting rasters.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from folioscope.config.errors import (
    CorruptDocumentError,
    DocumentNotFoundError,
    EncryptedDocumentError,
)

logger = logging.getLogger(__name__)

__all__ = ["DocumentInfo", "PDFRasterizer", "load_image", "DEFAULT_DPI"]

DEFAULT_DPI = 150

_PDF_DATE_FORMATS = (
    (14, "%Y%m%d%H%M%S"),
    (12, "%Y%m%d%H%M"),
    (8, "%Y%m%d"),
    (4, "%Y"),
)


class DocumentInfo(BaseModel):
    """PDF document information dictionary."""

    page_count: int = 0
    author: str | None = None
    title: str | None = None
    subject: str | None = None
    creator: str | None = None
    producer: str | None = None
    keywords: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _parse_pdf_date(value: str | None) -> datetime | None:
    """Parse a PDF date string (D:YYYYMMDDHHmmSS...)."""
    if not value:
        return None
    digits = value.removeprefix("D:")[:14]
    for length, fmt in _PDF_DATE_FORMATS:
        if len(digits) >= length and digits[:length].isdigit():
            try:
                return datetime.strptime(digits[:length], fmt)
            except ValueError:
                continue
    return None


def _direction_to_rotation(cos: float, sin: float) -> int:
    """
    Map a PyMuPDF writing direction to the clockwise image correction.

    PyMuPDF's ``dir`` is expressed in page space where y grows downward:
    (1, 0) reads left-to-right, (0, -1) bottom-to-top, (-1, 0) upside down,
    (0, 1) top-to-bottom.
    """
    angle = math.degrees(math.atan2(-sin, cos)) % 360
    rotation = int(round(angle / 90.0)) * 90 % 360
    return rotation


def load_image(path: str | Path) -> Image.Image:
    """
    Load an image file as an RGB raster.

    Raises:
        DocumentNotFoundError: File does not exist
        CorruptDocumentError: File is not a readable image
    """
    path = Path(path)
    if not path.exists():
        raise DocumentNotFoundError(
            f"Image file not found: {path}", details={"path": str(path)}
        )
    try:
        with Image.open(path) as image:
            image.load()
            return image.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise CorruptDocumentError(
            f"Failed to read image file: {path}",
            details={"path": str(path), "cause": str(e)},
        ) from e


class PDFRasterizer:
    """
    Renders PDF pages to Pillow images.

    Example:
        >>> rasterizer = PDFRasterizer(dpi=150)
        >>> images = rasterizer.render_pages("report.pdf")
        >>> rotations = rasterizer.detect_text_rotation("report.pdf")
    """

    def __init__(self, dpi: int = DEFAULT_DPI) -> None:
        self.dpi = dpi

    def _open(self, path: str | Path) -> fitz.Document:
        """Open a PDF, mapping failures onto the document error taxonomy."""
        path = Path(path)
        if not path.exists():
            raise DocumentNotFoundError(f"PDF file not found: {path}", details={"path": str(path)})

        try:
            document = fitz.open(str(path), filetype="pdf")
        except RuntimeError as e:
            raise CorruptDocumentError(
                "Failed to load PDF - file may be corrupted",
                details={"path": str(path), "cause": str(e)},
            ) from e

        if document.needs_pass:
            document.close()
            raise EncryptedDocumentError(
                "PDF is encrypted/password protected", details={"path": str(path)}
            )
        return document

    @staticmethod
    def _select(page_count: int, pages: Iterable[int] | None) -> list[int]:
        if pages is None:
            return list(range(page_count))
        return sorted(i for i in set(pages) if 0 <= i < page_count)

    def render_pages(
        self,
        path: str | Path,
        pages: Iterable[int] | None = None,
        dpi: int | None = None,
    ) -> list[Image.Image]:
        """
        Render PDF pages to RGB images.

        Args:
            path: PDF file path
            pages: 0-based page indices to render (all pages if None)
            dpi: Rendering resolution override

        Returns:
            One image per selected page, in page order
        """
        dpi = dpi or self.dpi
        with self._open(path) as document:
            images = []
            for index in self._select(document.page_count, pages):
                pixmap = document.load_page(index).get_pixmap(dpi=dpi, alpha=False)
                images.append(
                    Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
                )
            logger.debug("Rendered %d pages from %s at %d dpi", len(images), path, dpi)
            return images

    def page_count(self, path: str | Path) -> int:
        """Number of pages in a PDF."""
        with self._open(path) as document:
            return document.page_count

    def metadata(self, path: str | Path) -> DocumentInfo:
        """Read the PDF information dictionary."""
        with self._open(path) as document:
            info = document.metadata or {}
            return DocumentInfo(
                page_count=document.page_count,
                author=info.get("author") or None,
                title=info.get("title") or None,
                subject=info.get("subject") or None,
                creator=info.get("creator") or None,
                producer=info.get("producer") or None,
                keywords=info.get("keywords") or None,
                created_at=_parse_pdf_date(info.get("creationDate")),
                updated_at=_parse_pdf_date(info.get("modDate")),
            )

    def detect_text_rotation(
        self,
        path: str | Path,
        pages: Iterable[int] | None = None,
    ) -> list[int]:
        """
        Detect per-page content rotation from the writing direction of text.

        The majority direction (weighted by character count) decides the page.
        Pages without text are assumed upright. Catches landscape content laid
        on portrait pages, which the page /Rotate entry does not.

        Returns:
            Clockwise correction in degrees (0, 90, 180 or 270) per selected page
        """
        with self._open(path) as document:
            rotations = []
            for index in self._select(document.page_count, pages):
                votes: Counter[int] = Counter()
                text = document.load_page(index).get_text("dict")
                for block in text.get("blocks", []):
                    for line in block.get("lines", []):
                        chars = sum(len(span.get("text", "").strip()) for span in line.get("spans", []))
                        if chars:
                            cos, sin = line.get("dir", (1.0, 0.0))
                            votes[_direction_to_rotation(cos, sin)] += chars
                rotations.append(votes.most_common(1)[0][0] if votes else 0)
            return rotations
