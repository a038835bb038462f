"""
PDF Adapter - Page rasterizing and document information via PyMuPDF.
"""

from .rasterizer import DEFAULT_DPI, DocumentInfo, PDFRasterizer, load_image

__all__ = [
    "PDFRasterizer",
    "DocumentInfo",
    "load_image",
    "DEFAULT_DPI",
]
