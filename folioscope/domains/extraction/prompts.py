"""
Extraction Prompts - Instructions sent to the document model.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_OBJECTIVE",
    "PAGE_EVAL_CRITERIA",
    "PAGE_EVAL_TASK",
    "TITLE_OBJECTIVE",
    "TITLE_PROMPT",
    "image_task",
    "text_task",
]

DEFAULT_OBJECTIVE = """You are an expert document analyzer. Extract document content as typed nodes with hierarchical structure.

Your task is to parse the document into semantic nodes, preserving both reading order AND document hierarchy.
Use parent_id to link content to its parent section. This creates a tree structure from a flat list.

Every node has the shape {"id": ..., "parent_id": ..., "body": {"type": ..., <fields>}}.

NODE TYPES (body.type):

section - A logical grouping of content (created when you see a heading)
  - description: Descriptive summary (2-3 sentences) explaining WHAT this section covers,
    its main topics, key concepts, and why it matters. Be specific and informative.
  - parent_id: ID of the parent section (null for top-level sections)

heading - The actual heading text (belongs to a section)
  - level: h1, h2, h3, h4, h5, h6
  - content: The heading text
  - parent_id: ID of the section this heading introduces

paragraph - Body text content
  - level: paragraph, citation, code, aside, abstract, footnote
  - content: The text content

list_item - Bulleted or numbered list items
  - level: l1 (top-level), l2 (nested), l3-l6 (deeper nesting)
  - content: The list item text

toc_entry - Table of contents entry (ONLY from actual TOC pages in the document)
  - title: The entry title text EXACTLY as written (e.g. 'Chapter 1 Introduction')
  - target_page: Page number shown next to the entry (null if not visible)
  - target_section_id: ALWAYS null
  - level: l1 (top-level entry), l2 (sub-entry), l3-l6 (deeper nesting)
  Do NOT infer or generate TOC entries. If there is no TOC page, do not create toc_entry nodes.

image - ALL visual elements regardless of size (description is REQUIRED)
  - kind: photo, diagram, chart, logo, icon, badge, illustration, screenshot, map, formula, signature, unknown
  - bbox: [xmin, ymin, xmax, ymax]
  - caption: Text from the document caption (null if none)
  - description: REQUIRED - your description of what the image shows

table - Data tables (description AND content are REQUIRED)
  - kind: data, form, layout, comparison, schedule
  - bbox: [xmin, ymin, xmax, ymax]
  - caption: Text from the document caption (null if none)
  - description: REQUIRED - your description of the table content and structure
  - content: REQUIRED - table data as ASCII art, | for columns and - for row separators.
    Reproduce ALL rows and columns exactly. Example:
    | Name    | Age | Role      |
    |---------|-----|-----------|
    | Alice   | 30  | Engineer  |

header - Page header (parent_id is always null)
  - content: The header text

footer - Page footer (parent_id is always null)
  - content: The footer text

metadata - Document metadata (parent_id is always null)
  - content: Title, version, date, author, etc.

HIERARCHY RULES:
1. When you see a heading, create BOTH a section AND a heading node
2. The heading's parent_id points to the section it introduces
3. h1 heading -> section with parent_id null (top-level)
4. h2 heading -> section whose parent_id points to the enclosing h1 section (and so on down)
5. paragraph, list_item, image, table and toc_entry nodes point to their containing section
6. Content before the first heading has parent_id null

CONTENT RULES:
1. Assign a unique id to each node ("1", "2", "3", ...)
2. Preserve reading order (top-to-bottom, left-to-right)
3. Keep text content exact - no interpretation or summarization
4. For image/table: caption is ONLY the document's caption text
5. Set continuation=true if content continues from the previous page
6. Detect ALL visual elements, including tiny icons, license badges and header/footer logos

EXAMPLE (flat list with parent_id references):
[
  {"id": "1", "parent_id": null, "body": {"type": "section", "description": "Introduction establishing the research context and motivation. Covers the problem statement and objectives."}},
  {"id": "2", "parent_id": "1", "body": {"type": "heading", "level": "h1", "content": "Chapter 1 Introduction"}},
  {"id": "3", "parent_id": "1", "body": {"type": "paragraph", "level": "paragraph", "content": "Intro text..."}},
  {"id": "4", "parent_id": "1", "body": {"type": "image", "kind": "diagram", "bbox": [120, 340, 880, 720], "caption": null, "description": "A flowchart of the four research stages."}}
]"""

_BASE_TASK = (
    "Extract all content from this document {source} as typed nodes with parent_id hierarchy. "
    "Create section nodes for headings, and link content to sections via parent_id."
)

_IMAGE_TASK = (
    _BASE_TASK.format(source="page")
    + " For image and table nodes, description is REQUIRED.\n\n"
    "IMAGE DIMENSIONS: This image is {width} pixels wide and {height} pixels tall. "
    "All bbox coordinates MUST be within these bounds: xmin and xmax in range [0, {width}], "
    "ymin and ymax in range [0, {height}]."
)

PAGE_EVAL_TASK = (
    "Extract all visible content from document page {page_index} into structured typed nodes "
    "(section, heading, paragraph, list_item, image, table) with correct parent_id hierarchy. "
    "Every piece of visible text should be captured. Section descriptions should be meaningful "
    "2-3 sentence summaries."
)

PAGE_EVAL_CRITERIA: dict[str, str] = {
    "completeness": (
        "Does the extraction capture all expected content elements for a document page? "
        "Are there enough nodes for the visible content?"
    ),
    "structure": (
        "Are nodes properly typed (section, heading, paragraph, list_item, image, table) and "
        "hierarchically organized with correct parent_id references?"
    ),
    "descriptions": (
        "Are section descriptions meaningful, specific, and informative 2-3 sentence summaries?"
    ),
}

TITLE_OBJECTIVE = (
    "You are a document analyst. Infer the most appropriate title for a document "
    "based on its structure and content."
)

TITLE_PROMPT = (
    "Based on the following document content, infer the document's title. "
    "Return the most likely title - it should be concise and descriptive.\n\n{context}"
)


def image_task(width: int, height: int) -> str:
    """User prompt for a page raster of the given size."""
    return _IMAGE_TASK.format(width=width, height=height)


def text_task(content: str) -> str:
    """User prompt for raw text or markdown content."""
    return f"{_BASE_TASK.format(source='text')}\n\n<document_content>\n{content}\n</document_content>"
