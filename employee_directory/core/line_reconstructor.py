"""
Reading-order text reconstruction from positioned text fragments.

Fragments come from a PDF text layer (one per glyph) or from OCR (one per
word). They are grouped into line bands by vertical position, ordered left
to right inside each band, and joined with gap-based spacing rather than
linguistic assumptions.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

PAGE_SEPARATOR = "\n\n"


@dataclass
class RawTextFragment:
    """A single text token with its box on the page (top-left origin)."""
    text: str
    x: float
    y: float
    width: float
    height: float
    page_index: int = 0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass
class PageContent:
    """One page of a loaded document.

    ``fragments`` is set when positions are known; ``text`` when the source
    already delivered reading-order text (OCR text-only, DOCX, plain text).
    """
    page_index: int
    fragments: Optional[List[RawTextFragment]] = None
    text: Optional[str] = None


@dataclass
class LoadedDocument:
    source: str
    pages: List[PageContent] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def fragment_count(self) -> int:
        return sum(len(p.fragments or []) for p in self.pages)


@dataclass
class ReconstructionConfig:
    # Fraction of the smaller fragment height two tops may differ by on one line
    line_tolerance_ratio: float = 0.5
    # Fraction of the smaller fragment height a horizontal gap must exceed to become a space
    space_gap_ratio: float = 0.15


def _same_line(prev: RawTextFragment, frag: RawTextFragment, ratio: float) -> bool:
    band = ratio * min(prev.height, frag.height)
    return abs(frag.y - prev.y) <= band


def group_lines(
    fragments: List[RawTextFragment],
    config: Optional[ReconstructionConfig] = None,
) -> List[List[RawTextFragment]]:
    """
    Group fragments into lines, top to bottom, each line left to right.

    Fragments are visited by (y, original index); a fragment joins the current
    line while it stays inside the tolerance band of the fragment visited just
    before it, so a gently sloped line stays one line.
    Ties on x are broken by original index so the result is deterministic.
    Whitespace-only fragments are dropped.
    """
    config = config or ReconstructionConfig()

    indexed: List[Tuple[int, RawTextFragment]] = [
        (i, f) for i, f in enumerate(fragments) if not f.is_blank
    ]
    indexed.sort(key=lambda item: (item[1].y, item[0]))

    lines: List[List[Tuple[int, RawTextFragment]]] = []
    prev: Optional[RawTextFragment] = None
    for item in indexed:
        frag = item[1]
        if prev is not None and _same_line(prev, frag, config.line_tolerance_ratio):
            lines[-1].append(item)
        else:
            lines.append([item])
        prev = frag

    ordered: List[List[RawTextFragment]] = []
    for line in lines:
        line.sort(key=lambda item: (item[1].x, item[0]))
        ordered.append([f for _, f in line])
    return ordered


def sort_fragments(
    fragments: List[RawTextFragment],
    config: Optional[ReconstructionConfig] = None,
) -> List[RawTextFragment]:
    """Flattened reading order of ``fragments``."""
    return [f for line in group_lines(fragments, config) for f in line]


def _join_line(line: List[RawTextFragment], space_gap_ratio: float) -> str:
    parts = [line[0].text]
    for prev, cur in zip(line, line[1:]):
        gap = cur.x - prev.right
        if gap > space_gap_ratio * min(prev.height, cur.height):
            if not parts[-1].endswith(" ") and not cur.text.startswith(" "):
                parts.append(" ")
        parts.append(cur.text)
    return "".join(parts).strip()


def reconstruct_page(
    fragments: List[RawTextFragment],
    config: Optional[ReconstructionConfig] = None,
) -> str:
    """
    Rebuild the text of one page.

    A new line starts whenever a fragment falls outside the current line's
    vertical band; within a line a single space marks a horizontal gap wider
    than ``space_gap_ratio`` of the glyph height. A page with no visible
    fragments yields an empty string.
    """
    config = config or ReconstructionConfig()
    return "\n".join(
        _join_line(line, config.space_gap_ratio) for line in group_lines(fragments, config)
    )


def reconstruct_document(
    document: LoadedDocument,
    config: Optional[ReconstructionConfig] = None,
) -> str:
    """Join page texts with a blank line between pages."""
    page_texts = []
    for page in document.pages:
        if page.fragments is not None:
            page_texts.append(reconstruct_page(page.fragments, config))
        else:
            page_texts.append((page.text or "").strip("\n"))
    return PAGE_SEPARATOR.join(page_texts)
