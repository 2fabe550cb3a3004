import logging
from io import BytesIO
from typing import List

import pdfplumber

from employee_directory.core.errors import DocumentParseError
from employee_directory.core.line_reconstructor import PageContent, RawTextFragment

logger = logging.getLogger(__name__)


def _char_to_fragment(char: dict, page_index: int) -> RawTextFragment:
    top = float(char["top"])
    bottom = float(char.get("bottom", top + char.get("height", char.get("size", 0))))
    x0 = float(char["x0"])
    x1 = float(char.get("x1", x0 + char.get("width", 0)))
    return RawTextFragment(
        text=char["text"],
        x=x0,
        y=top,
        width=x1 - x0,
        height=bottom - top,
        page_index=page_index,
    )


def extract_pdf_fragments(pdf_bytes: bytes) -> List[PageContent]:
    """
    Read the digital text layer of a PDF, one fragment per visible glyph.

    Whitespace glyphs are skipped: word boundaries are recovered from
    horizontal gaps during line reconstruction. A scanned PDF yields pages
    with empty fragment lists.
    """
    pages: List[PageContent] = []
    try:
        with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
            for page_index, page in enumerate(pdf.pages):
                fragments = [
                    _char_to_fragment(char, page_index)
                    for char in page.chars
                    if char.get("text", "").strip()
                ]
                pages.append(PageContent(page_index=page_index, fragments=fragments))
    except Exception as e:
        logger.warning(f"pdfplumber could not read the upload: {type(e).__name__}: {e}")
        raise DocumentParseError(
            "Failed to parse PDF content.",
            details=f"{type(e).__name__}: {e}",
        ) from e

    if not pages:
        raise DocumentParseError("Failed to parse PDF content.", details="PDF has no pages.")

    logger.info(
        f"PDF text layer: {len(pages)} page(s), {sum(len(p.fragments) for p in pages)} glyph fragment(s)"
    )
    return pages


def has_text_layer(pages: List[PageContent]) -> bool:
    return any(p.fragments for p in pages)
