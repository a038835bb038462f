"""
Gemini Adapter - Unified Google Gemini API client.

This is the ONLY place that calls the Gemini API.
All domains use this adapter for LLM operations.
"""

from .client import DEFAULT_EVAL_CRITERIA, GeminiAPIError, GeminiClient, RateLimitError
from .models import (
    CriterionScore,
    EvaluationIssue,
    EvaluationResult,
    GeminiConfig,
    GeminiResponse,
    RefineResult,
    ThinkingLevel,
)

__all__ = [
    "GeminiClient",
    "GeminiConfig",
    "GeminiResponse",
    "GeminiAPIError",
    "RateLimitError",
    "ThinkingLevel",
    "EvaluationResult",
    "EvaluationIssue",
    "CriterionScore",
    "RefineResult",
    "DEFAULT_EVAL_CRITERIA",
]
