"""
Rotation Corrector - Turn page rasters upright before extraction.
"""

from __future__ import annotations

from PIL import Image

__all__ = ["rotate_image", "SUPPORTED_ROTATIONS"]

# degrees -> (cos, sin), exact so quarter turns never resample off-grid
_QUARTER_TURNS: dict[int, tuple[int, int]] = {
    90: (0, 1),
    180: (-1, 0),
    270: (0, -1),
}

SUPPORTED_ROTATIONS = frozenset({0, *_QUARTER_TURNS})


def rotate_image(image: Image.Image, degrees: int) -> Image.Image:
    """
    Rotate ``image`` clockwise by a quarter-turn multiple.

    The raster is rotated about the destination centre onto a white canvas
    with nearest-neighbour sampling; 90 and 270 swap width and height.

    Args:
        image: Source raster
        degrees: 0, 90, 180 or 270

    Returns:
        The same object for 0, otherwise a new image

    Raises:
        ValueError: Unsupported angle
    """
    if degrees not in SUPPORTED_ROTATIONS:
        raise ValueError(f"Unsupported rotation: {degrees} (expected one of 0, 90, 180, 270)")
    if degrees == 0:
        return image

    cos, sin = _QUARTER_TURNS[degrees]
    src_w, src_h = image.size
    dst_w, dst_h = (src_h, src_w) if degrees in (90, 270) else (src_w, src_h)

    # Pillow wants the inverse map: destination pixel -> source pixel
    a, b = cos, sin
    d, e = -sin, cos
    c = src_w / 2 - a * dst_w / 2 - b * dst_h / 2
    f = src_h / 2 - d * dst_w / 2 - e * dst_h / 2

    return image.transform(
        (dst_w, dst_h),
        Image.Transform.AFFINE,
        (a, b, c, d, e, f),
        resample=Image.Resampling.NEAREST,
        fillcolor="white",
    )
