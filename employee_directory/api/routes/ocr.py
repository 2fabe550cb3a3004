import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from employee_directory.api.deps import get_context
from employee_directory.core.context import ServiceContext
from employee_directory.core.errors import BadRequestError
from employee_directory.core.logging_config import preview
from employee_directory.core.schemas import ErrorBody, OcrRequest, OcrResponse, WorkExperienceResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ocr"])

ERROR_RESPONSES = {
    400: {"model": ErrorBody, "description": "Missing or invalid base64PdfData"},
    500: {"model": ErrorBody, "description": "Google Cloud credentials missing or malformed"},
    502: {"model": ErrorBody, "description": "Vision or language-model provider failure"},
}


def decode_base64_pdf(data: Optional[str]) -> bytes:
    if not data:
        raise BadRequestError("Missing base64PdfData in request body")
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        pdf_bytes = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadRequestError("base64PdfData is not valid base64", details=str(e)) from e
    if not pdf_bytes:
        raise BadRequestError("Missing base64PdfData in request body")
    return pdf_bytes


@router.post(
    "/api/ocr-pdf",
    response_model=OcrResponse,
    summary="OCR a PDF",
    description="Run Google Cloud Vision DOCUMENT_TEXT_DETECTION over a base64-encoded PDF and return its text.",
    responses=ERROR_RESPONSES,
)
async def ocr_pdf(body: OcrRequest, context: ServiceContext = Depends(get_context)):
    pdf_bytes = decode_base64_pdf(body.base64_pdf_data)
    text = await context.require_ocr().pdf_text(pdf_bytes)
    return OcrResponse(extracted_text=text)


@router.post(
    "/api/extract-work-experience",
    response_model=WorkExperienceResponse,
    summary="OCR a PDF and extract work experience",
    description="OCR a base64-encoded PDF, then ask the language model for the job history in the full text. Without an OpenAI key the OCR text is still returned with no records.",
    responses=ERROR_RESPONSES,
)
async def extract_work_experience(body: OcrRequest, context: ServiceContext = Depends(get_context)):
    pdf_bytes = decode_base64_pdf(body.base64_pdf_data)
    text = await context.require_ocr().pdf_text(pdf_bytes)
    logger.info(f"Text extracted via Vision (length {len(text)}): {preview(text, 1500)}")

    if not context.has_extractor():
        logger.error("OpenAI API key is not configured. Extraction step will be skipped.")
        return WorkExperienceResponse(extracted_text=text)
    if not text.strip():
        return WorkExperienceResponse(extracted_text=text)

    extraction = await context.require_extractor().extract_from_document_text(text)
    return WorkExperienceResponse(extracted_text=text, work_experience=extraction.as_display())
