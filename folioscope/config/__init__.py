"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    CorruptDocumentError,
    DocumentNotFoundError,
    EncryptedDocumentError,
    ErrorCode,
    ExtractionError,
    FolioscopeError,
    LLMError,
    UnsupportedDocumentError,
)
from .settings import DEFAULT_BBOX_SCALES, Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "DEFAULT_BBOX_SCALES",
    # Errors
    "ErrorCode",
    "FolioscopeError",
    "DocumentNotFoundError",
    "CorruptDocumentError",
    "EncryptedDocumentError",
    "UnsupportedDocumentError",
    "ExtractionError",
    "LLMError",
]
