from io import BytesIO
from typing import List

from docx import Document

from employee_directory.core.errors import DocumentParseError


def extract_docx_text(docx_bytes: bytes) -> str:
    """
    Deterministically extract non-empty paragraph text from a DOCX,
    one paragraph per line. DOCX has no pages, so callers treat it as one.
    """
    try:
        doc = Document(BytesIO(docx_bytes))
    except Exception as e:
        raise DocumentParseError("Failed to parse DOCX content.", details=f"{type(e).__name__}: {e}") from e

    out: List[str] = []
    for p in doc.paragraphs:
        t = (p.text or "").strip()
        if t:
            out.append(t)
    return "\n".join(out)
