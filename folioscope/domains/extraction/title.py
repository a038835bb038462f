"""
Title Inferrer - Derive a document title from extracted structure.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .models import Node, Page, TitleOptions, TitleResponse
from .prompts import TITLE_OBJECTIVE, TITLE_PROMPT

if TYPE_CHECKING:
    from .contracts import DocumentModel

logger = logging.getLogger(__name__)

__all__ = ["TitleInferrer", "build_title_context"]

_MAX_HEADINGS = 5
_MAX_SECTIONS = 5
_FIRST_PARAGRAPH_CHARS = 500


def build_title_context(pages: Sequence[Page]) -> tuple[str, bool]:
    """
    Assemble the title prompt context.

    Returns:
        (context text, whether any heading, section or metadata was found)
    """

    def of_type(node_type: str) -> list[Node]:
        return [node for page in pages for node in page.nodes_of(node_type)]

    headings = [n.content for n in of_type("heading")][:_MAX_HEADINGS]
    sections = [n.description for n in of_type("section")][:_MAX_SECTIONS]
    metadata = [n.content for n in of_type("metadata")]
    first_paragraph = next(
        (n.content for n in of_type("paragraph") if n.body.level == "paragraph"),
        None,
    )

    parts = [
        "Document headings:\n" + "\n".join(f"- {h}" for h in headings),
        "Section summaries:\n" + "\n".join(f"- {s}" for s in sections if s),
    ]
    if metadata:
        parts.append("Metadata:\n" + "\n".join(metadata))
    if first_paragraph:
        parts.append("First paragraph:\n" + first_paragraph[:_FIRST_PARAGRAPH_CHARS])

    return "\n\n".join(parts), bool(headings or sections or metadata)


class TitleInferrer:
    """
    Infers a concise title with one structured model call.

    Example:
        >>> inferrer = TitleInferrer(gemini_client)
        >>> title = await inferrer.infer_title(pages, TitleOptions())
    """

    def __init__(self, client: DocumentModel) -> None:
        self._client = client

    async def infer_title(self, pages: Sequence[Page], options: TitleOptions) -> str | None:
        """
        Infer the document title.

        Returns:
            The title, or None when the pages carry no structural signal
            or the model cannot name one
        """
        context, has_signal = build_title_context(pages)
        if not has_signal:
            logger.debug("No headings, sections or metadata - skipping title inference")
            return None

        logger.debug("Inferring document title (model=%s)", options.model)
        response = await self._client.ask_structured(
            TitleResponse,
            TITLE_PROMPT.format(context=context),
            system_instruction=TITLE_OBJECTIVE,
            model=options.model,
            timeout_seconds=options.timeout_seconds,
        )
        title = (response.title or "").strip()
        return title or None
