"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from folioscope.config.errors import ErrorCode, FolioscopeError

    raise FolioscopeError(ErrorCode.DOCUMENT_CORRUPT, "PDF parsing failed")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Document errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    DOCUMENT_CORRUPT = "DOCUMENT_CORRUPT"
    DOCUMENT_ENCRYPTED = "DOCUMENT_ENCRYPTED"
    DOCUMENT_UNSUPPORTED = "DOCUMENT_UNSUPPORTED"

    # Extraction errors
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PAGE_EXTRACTION_FAILED = "PAGE_EXTRACTION_FAILED"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class FolioscopeError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class DocumentNotFoundError(FolioscopeError):
    """Source document does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.DOCUMENT_NOT_FOUND, message, details)


class CorruptDocumentError(FolioscopeError):
    """Source document cannot be parsed or rendered."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.DOCUMENT_CORRUPT, message, details)


class EncryptedDocumentError(FolioscopeError):
    """Source document is password protected."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.DOCUMENT_ENCRYPTED, message, details)


class UnsupportedDocumentError(FolioscopeError):
    """Source document type has no extractor."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.DOCUMENT_UNSUPPORTED, message, details)


class ExtractionError(FolioscopeError):
    """
    Aggregated fault for a multi-page extraction.

    Raised once every page has been attempted and at least one failed.
    ``details`` carries ``failed_page``, ``error_message``, ``total_errors``
    and ``all_errors`` (one dict per failing page, in page order).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EXTRACTION_FAILED, message, details)

    @property
    def failed_page(self) -> int | None:
        return self.details.get("failed_page")

    @property
    def total_errors(self) -> int:
        return int(self.details.get("total_errors", 0))

    @property
    def all_errors(self) -> list[dict[str, Any]]:
        return list(self.details.get("all_errors", []))


class LLMError(FolioscopeError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)
