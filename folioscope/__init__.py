"""
Folioscope - Documents to typed, hierarchical page nodes with Gemini.

Example:
    >>> from folioscope.config import get_settings
    >>> from folioscope.domains.extraction import DocumentService
    >>> service = DocumentService.from_settings(get_settings())
    >>> document = await service.extract_file("report.pdf", refine=True)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
