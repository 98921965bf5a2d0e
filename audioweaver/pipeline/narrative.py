"""Text assembly around the summarization stage.

Builds the labelled, ordered document text sent to the summarizer and
derives a title and description from a raw narrative.
"""

import re
from typing import List, Optional, Sequence, Tuple

DEFAULT_TITLE = "Document Summary"
DEFAULT_DESCRIPTION = "An AI-generated summary of the uploaded documents."
MAX_DESCRIPTION_LENGTH = 200
ELLIPSIS = "..."

_HEADING_MARKERS = re.compile(r"^\s*#+\s*")


def placeholder_marker(filename: str) -> str:
    """Inline stand-in for a document whose text could not be extracted."""
    return f"[Text could not be extracted from {filename}]"


def document_segment(index: int, filename: str, body: str) -> str:
    return f"Document {index}: {filename}\n{body}"


def concatenate_documents(segments: Sequence[Tuple[str, str]]) -> str:
    """Join (filename, body) pairs in input order, separated by blank lines."""
    return "\n\n".join(
        document_segment(i, filename, body) for i, (filename, body) in enumerate(segments, 1)
    )


def _paragraphs(text: str) -> List[str]:
    blocks = re.split(r"\n\s*\n", text.replace("\r\n", "\n"))
    return [" ".join(line.strip() for line in b.strip().splitlines() if line.strip()) for b in blocks if b.strip()]


def _title_line(lines: List[str]) -> Optional[Tuple[int, str]]:
    """(index, title) of the first line with text left after heading markers."""
    for i, line in enumerate(lines):
        title = _HEADING_MARKERS.sub("", line).strip()
        if title:
            return i, title
    return None


def _lines(text: str) -> List[str]:
    return text.replace("\r\n", "\n").split("\n")


def derive_title(text: str) -> str:
    found = _title_line(_lines(text))
    return found[1] if found else DEFAULT_TITLE


def truncate_description(description: str) -> str:
    if len(description) <= MAX_DESCRIPTION_LENGTH:
        return description
    return description[: MAX_DESCRIPTION_LENGTH - len(ELLIPSIS)] + ELLIPSIS


def derive_description(text: str) -> str:
    """First non-empty paragraph after the title line, capped at 200 chars."""
    lines = _lines(text)
    found = _title_line(lines)
    if found is None:
        return DEFAULT_DESCRIPTION

    remainder = "\n".join(lines[found[0] + 1:])
    for paragraph in _paragraphs(remainder):
        paragraph = _HEADING_MARKERS.sub("", paragraph).strip()
        if paragraph:
            return truncate_description(paragraph)
    return DEFAULT_DESCRIPTION


def split_narrative(text: str, title: Optional[str] = None, description: Optional[str] = None) -> Tuple[str, str]:
    """Fill in whichever of title/description the summarizer did not provide."""
    title = (title or "").strip() or derive_title(text)
    description = (description or "").strip()
    description = truncate_description(description) if description else derive_description(text)
    return title, description
