"""
Gemini Models - Request/Response types for Gemini API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

ResultT = TypeVar("ResultT")


class ThinkingLevel(str, Enum):
    """Gemini thinking mode levels."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GeminiConfig(BaseModel):
    """Configuration for Gemini client."""

    model: str = Field(default="gemini-2.0-flash")
    api_key: str | None = Field(default=None, repr=False)
    temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    thinking_level: ThinkingLevel = Field(default=ThinkingLevel.NONE)
    max_output_tokens: int = Field(default=8192)
    timeout_seconds: int = Field(default=360)
    max_retries: int = Field(default=3, ge=1)
    retry_min_wait_seconds: float = Field(default=2.0, ge=0.0)
    retry_max_wait_seconds: float = Field(default=30.0, ge=0.0)
    rate_limit_rpm: int = Field(default=60)

    model_config = {"frozen": True}


class GeminiResponse(BaseModel):
    """Generic Gemini API response."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    finish_reason: str = "STOP"


class CriterionScore(BaseModel):
    """Score for one named evaluation criterion."""

    name: str
    score: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> float:
        return min(1.0, max(0.0, float(value)))


class EvaluationIssue(BaseModel):
    """Problem reported by the critic."""

    issue: str
    severity: str = "medium"  # "high", "medium", "low"
    mitigation: str | None = None


class EvaluationResult(BaseModel):
    """Critic verdict for a generated output."""

    overall_score: float = Field(ge=0.0, le=1.0, description="Weighted average of criteria scores, 0.0-1.0")
    correct: bool = Field(description="False if any high-severity issue exists")
    summary: str = Field(default="", description="Brief overall assessment")
    criteria: list[CriterionScore] = Field(default_factory=list)
    issues: list[EvaluationIssue] = Field(default_factory=list)

    @field_validator("overall_score", mode="before")
    @classmethod
    def clamp_overall(cls, value: Any) -> float:
        return min(1.0, max(0.0, float(value)))

    @property
    def scores(self) -> dict[str, float]:
        """Criterion scores keyed by name, plus ``overall``."""
        scores = {c.name: c.score for c in self.criteria}
        scores["overall"] = self.overall_score
        return scores


class RefineResult(BaseModel, Generic[ResultT]):
    """Output of an improve/verify loop."""

    result: ResultT
    final_score: float | None = None
    iterations_count: int = 0
    converged: bool = False

    model_config = {"arbitrary_types_allowed": True}
