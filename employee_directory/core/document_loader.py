import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from employee_directory.core.docx_extractor import extract_docx_text
from employee_directory.core.errors import (
    ConfigurationError,
    EmptyDocumentError,
    UnsupportedDocumentError,
)
from employee_directory.core.line_reconstructor import LoadedDocument, PageContent
from employee_directory.core.pdf_extractor import extract_pdf_fragments, has_text_layer
from employee_directory.core.vision_client import VisionOCRClient

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIMES = {"text/plain", "text/markdown"}
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tif", ".tiff")


def detect_kind(mime_type: Optional[str], filename: Optional[str] = None) -> Optional[str]:
    """Map a declared MIME type (or, failing that, a filename) to pdf/image/docx/text."""
    content_type = (mime_type or "").split(";")[0].strip().lower()
    name = (filename or "").lower()

    if content_type == "application/pdf" or name.endswith(".pdf"):
        return "pdf"
    if content_type.startswith("image/") or name.endswith(IMAGE_SUFFIXES):
        return "image"
    if content_type == DOCX_MIME or name.endswith(".docx"):
        return "docx"
    if content_type in TEXT_MIMES or name.endswith((".txt", ".md")):
        return "text"
    return None


async def load_document(
    data: bytes,
    mime_type: Optional[str],
    filename: Optional[str] = None,
    ocr: Optional[VisionOCRClient] = None,
) -> LoadedDocument:
    """
    Turn uploaded bytes into pages of positioned fragments or plain text.

    PDFs use the digital text layer; a PDF without one is sent to Vision
    when an OCR client is available. Images always need OCR. DOCX and plain
    text are already in reading order and become a single text page.
    """
    if not data:
        raise EmptyDocumentError("Empty file uploaded.")

    kind = detect_kind(mime_type, filename)
    logger.info(f"Loading {len(data)} byte(s) as {kind or 'unknown'} (declared {mime_type!r})")

    if kind == "pdf":
        pages = await run_in_threadpool(extract_pdf_fragments, data)
        if has_text_layer(pages) or ocr is None:
            return LoadedDocument(source="pdf", pages=pages)
        logger.info("PDF has no text layer, falling back to Vision OCR")
        texts = await ocr.pdf_text_pages(data)
        return LoadedDocument(
            source="ocr",
            pages=[PageContent(page_index=i, text=t) for i, t in enumerate(texts)],
        )

    if kind == "image":
        if ocr is None:
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials not set.",
                details="Image uploads need OCR. Set GOOGLE_APPLICATION_CREDENTIALS_JSON.",
            )
        fragments = await ocr.image_fragments(data)
        return LoadedDocument(source="ocr", pages=[PageContent(page_index=0, fragments=fragments)])

    if kind == "docx":
        text = await run_in_threadpool(extract_docx_text, data)
        return LoadedDocument(source="docx", pages=[PageContent(page_index=0, text=text)])

    if kind == "text":
        text = data.decode("utf-8", errors="replace")
        return LoadedDocument(source="text", pages=[PageContent(page_index=0, text=text)])

    raise UnsupportedDocumentError(f"Unsupported content type: {mime_type}")
