"""
Extraction Domain - Documents to typed, hierarchical page nodes.

This domain handles:
- Concurrent per-page extraction with the document model
- Bounding box normalization and visual region cropping
- Page rotation correction
- Sampled quality evaluation and refinement
- Title inference
"""

from .bbox import BBOX_PADDING_PX, BBoxScales, transform_bbox
from .contracts import DocumentModel, PageRasterizer
from .enricher import VisualNodeEnricher
from .evaluator import QualityAssurer
from .extractor import PageExtractor
from .models import (
    ExtractedDocument,
    ExtractionOptions,
    Node,
    Page,
    PageError,
    PageEvaluation,
    PageNodes,
    QualityOptions,
    TitleOptions,
    TitleResponse,
)
from .rotation import rotate_image
from .service import DocumentService
from .title import TitleInferrer

__all__ = [
    # Contracts
    "DocumentModel",
    "PageRasterizer",
    # Models
    "Node",
    "Page",
    "PageNodes",
    "PageError",
    "PageEvaluation",
    "ExtractedDocument",
    "ExtractionOptions",
    "QualityOptions",
    "TitleOptions",
    "TitleResponse",
    # Geometry
    "BBOX_PADDING_PX",
    "BBoxScales",
    "transform_bbox",
    "rotate_image",
    # Implementations
    "VisualNodeEnricher",
    "PageExtractor",
    "QualityAssurer",
    "TitleInferrer",
    "DocumentService",
]
