"""
Extraction Contracts - Interfaces for extraction domain.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol, TypeVar, runtime_checkable

from PIL import Image
from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@runtime_checkable
class DocumentModel(Protocol):
    """
    Contract for the document-understanding model.

    ``GeminiClient`` satisfies it; tests substitute an ``AsyncMock``.

    Example:
        >>> from folioscope.adapters.gemini import GeminiClient
        >>> assert isinstance(GeminiClient(), DocumentModel)
    """

    async def ask_structured(
        self,
        schema: type[SchemaT],
        prompt: str,
        system_instruction: str | None = None,
        image: bytes | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> SchemaT:
        """
        Ask for a response validated against ``schema``.

        Args:
            schema: Pydantic model the answer must conform to
            prompt: User prompt
            system_instruction: Objective for the model
            image: Optional PNG bytes
            model: Model name override
            timeout_seconds: Per-call timeout

        Returns:
            Validated instance of ``schema``
        """
        ...

    async def evaluate(
        self,
        task: str,
        output: str,
        criteria: Mapping[str, str] | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """Score ``output`` against ``task`` (returns an ``EvaluationResult``)."""
        ...

    async def refine(
        self,
        schema: type[SchemaT],
        prompt: str,
        system_instruction: str | None = None,
        image: bytes | None = None,
        model: str | None = None,
        iterations: int = 1,
        threshold: float = 0.8,
        criteria: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """Ask, evaluate and improve (returns a ``RefineResult``)."""
        ...


@runtime_checkable
class PageRasterizer(Protocol):
    """Contract for turning a paginated document into page images."""

    def render_pages(
        self,
        path: str | Path,
        pages: Iterable[int] | None = None,
        dpi: int | None = None,
    ) -> list[Image.Image]:
        ...

    def page_count(self, path: str | Path) -> int:
        ...

    def metadata(self, path: str | Path) -> BaseModel:
        """Document information (author, title, dates, ...)."""
        ...

    def detect_text_rotation(
        self,
        path: str | Path,
        pages: Iterable[int] | None = None,
    ) -> list[int]:
        """Clockwise correction in degrees per page."""
        ...
