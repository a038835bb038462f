"""
Tests for settings and the error taxonomy.
"""

from __future__ import annotations

import pytest

from .errors import (
    CorruptDocumentError,
    ErrorCode,
    ExtractionError,
    FolioscopeError,
    LLMError,
)
from .settings import DEFAULT_BBOX_SCALES, Settings, get_settings


# --- Settings Tests ---


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    monkeypatch.delenv("MAX_CONCURRENCY", raising=False)
    settings = Settings(_env_file=None)

    assert settings.gemini_model == "gemini-2.0-flash"
    assert settings.max_concurrency == 3
    assert settings.extraction_timeout_seconds == 360
    assert settings.title_timeout_seconds == 30
    assert settings.refine_threshold == 0.8
    assert settings.bbox_scales == DEFAULT_BBOX_SCALES
    assert settings.bbox_scales is not DEFAULT_BBOX_SCALES


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-flash")
    monkeypatch.setenv("max_concurrency", "8")
    monkeypatch.setenv("BBOX_SCALES", '{"my-vlm": 1000, "pixel-vlm": null}')

    settings = Settings(_env_file=None)

    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.max_concurrency == 8
    assert settings.bbox_scales == {"my-vlm": 1000, "pixel-vlm": None}


def test_settings_validation() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, refine_threshold=2.0)


def test_get_settings_cached() -> None:
    assert get_settings() is get_settings()


# --- Error Tests ---


def test_error_message_and_dict() -> None:
    error = CorruptDocumentError("PDF parsing failed", details={"path": "a.pdf"})

    assert isinstance(error, FolioscopeError)
    assert str(error) == "[DOCUMENT_CORRUPT] PDF parsing failed"
    assert error.to_dict() == {
        "code": "DOCUMENT_CORRUPT",
        "message": "PDF parsing failed",
        "details": {"path": "a.pdf"},
    }


def test_extraction_error_accessors() -> None:
    error = ExtractionError(
        "2 pages failed",
        details={
            "failed_page": 1,
            "error_message": "timeout",
            "total_errors": 2,
            "all_errors": [{"page_index": 1}, {"page_index": 4}],
        },
    )

    assert error.code == ErrorCode.EXTRACTION_FAILED
    assert error.failed_page == 1
    assert error.total_errors == 2
    assert [e["page_index"] for e in error.all_errors] == [1, 4]


def test_llm_error_code() -> None:
    assert LLMError("down").code == ErrorCode.LLM_UNAVAILABLE
    assert LLMError("bad json", code=ErrorCode.LLM_INVALID_RESPONSE).code == ErrorCode.LLM_INVALID_RESPONSE
