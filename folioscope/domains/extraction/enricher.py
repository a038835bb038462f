"""
Visual Node Enricher - Attach cropped PNG regions to image and table nodes.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence

from PIL import Image

from .bbox import BBoxScales, transform_bbox
from .models import Node

logger = logging.getLogger(__name__)

__all__ = ["VisualNodeEnricher", "crop_png"]


def crop_png(image: Image.Image, bbox: tuple[int, int, int, int]) -> bytes:
    """PNG-encode the ``bbox`` region of ``image``."""
    buffer = io.BytesIO()
    image.crop(bbox).save(buffer, format="PNG")
    return buffer.getvalue()


class VisualNodeEnricher:
    """
    Crops visual nodes out of the page raster they were extracted from.

    Example:
        >>> enricher = VisualNodeEnricher(BBoxScales())
        >>> nodes = enricher.enrich(page_nodes, image, "gemini-2.0-flash", page_index=0)
    """

    def __init__(self, bbox_scales: BBoxScales | None = None) -> None:
        self.bbox_scales = bbox_scales or BBoxScales()

    def enrich(
        self,
        nodes: Sequence[Node],
        image: Image.Image,
        model: str,
        page_index: int,
    ) -> list[Node]:
        """
        Return ``nodes`` with visual nodes carrying pixel bboxes and PNG crops.

        Nodes whose box is empty after clamping, and non-visual nodes,
        are returned unchanged. Order is preserved.

        Args:
            nodes: Page nodes in reading order
            image: The raster the model was shown
            model: Model that produced the coordinates (selects the scale)
            page_index: Page index, for logging
        """
        scale = self.bbox_scales.scale_for(model)
        width, height = image.size
        enriched: list[Node] = []
        cropped = 0
        skipped = 0

        for node in nodes:
            if not node.is_visual:
                enriched.append(node)
                continue
            bbox = transform_bbox(node.bbox, width, height, scale)
            if bbox is None:
                skipped += 1
                enriched.append(node)
                continue
            enriched.append(node.with_region(bbox, crop_png(image, bbox)))
            cropped += 1

        logger.debug(
            "Page %d: %d nodes, %d visual regions cropped, %d invalid boxes (model=%s, scale=%s)",
            page_index,
            len(enriched),
            cropped,
            skipped,
            model,
            scale,
        )
        return enriched
