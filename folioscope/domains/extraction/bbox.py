"""
Bounding Box Transform - Model coordinates to padded, clamped pixel boxes.

Vision models disagree on coordinate spaces: Gemini and GLM report boxes
normalized to 0..1000, GPT-4o and Claude report pixels of the image they saw.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from folioscope.config.settings import DEFAULT_BBOX_SCALES

__all__ = ["BBOX_PADDING_PX", "BBoxScales", "transform_bbox"]

# Expands crops outward so detected regions are not clipped at the edges
BBOX_PADDING_PX = 4


def transform_bbox(
    bbox: Sequence[float] | None,
    width: int,
    height: int,
    scale: int | None = None,
) -> tuple[int, int, int, int] | None:
    """
    Map a model bbox onto a ``width`` x ``height`` raster.

    Args:
        bbox: ``[xmin, ymin, xmax, ymax]`` in model coordinates
        width: Raster width in pixels
        height: Raster height in pixels
        scale: Normalization range of the model (None for pixel coordinates)

    Returns:
        Padded box clamped to the raster, or None if empty after clamping
        or not a four-coordinate box

    Example:
        >>> transform_bbox([100, 100, 900, 900], 800, 600, scale=1000)
        (76, 56, 724, 544)
    """
    if bbox is None or len(bbox) != 4:
        return None

    if scale:
        xmin, xmax = (int(v * width / scale) for v in (bbox[0], bbox[2]))
        ymin, ymax = (int(v * height / scale) for v in (bbox[1], bbox[3]))
    else:
        xmin, ymin, xmax, ymax = (int(v) for v in bbox)

    xmin = max(0, min(xmin - BBOX_PADDING_PX, width))
    ymin = max(0, min(ymin - BBOX_PADDING_PX, height))
    xmax = max(0, min(xmax + BBOX_PADDING_PX, width))
    ymax = max(0, min(ymax + BBOX_PADDING_PX, height))

    if xmin >= xmax or ymin >= ymax:
        return None
    return xmin, ymin, xmax, ymax


class BBoxScales:
    """
    Model name -> coordinate scale lookup.

    Unknown models are assumed to report pixel coordinates.
    """

    def __init__(self, scales: Mapping[str, int | None] | None = None) -> None:
        self._scales = dict(DEFAULT_BBOX_SCALES if scales is None else scales)

    def scale_for(self, model: str | None) -> int | None:
        if model is None:
            return None
        return self._scales.get(model)
