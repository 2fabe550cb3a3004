from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from employee_directory.api.deps import get_context
from employee_directory.core.context import ServiceContext
from employee_directory.core.errors import BadRequestError, DocumentTooLargeError
from employee_directory.core.pipeline import ExperienceImportPipeline
from employee_directory.core.schemas import ErrorBody, ImportResponse

router = APIRouter(tags=["experience"])


@asynccontextmanager
async def upload_scope(upload: UploadFile, max_bytes: int) -> AsyncIterator[bytes]:
    """
    Read an upload and release its spooled temp storage on every exit path.
    """
    try:
        raw = await upload.read(max_bytes + 1)
        if len(raw) > max_bytes:
            raise DocumentTooLargeError(
                "Uploaded file is too large.",
                details=f"Maximum size is {max_bytes} bytes.",
            )
        yield raw
    finally:
        await upload.close()


@router.post(
    "/api/process-linkedin-pdf",
    response_model=ImportResponse,
    summary="Import Work Experience",
    description="Extract the Experience section of a LinkedIn profile export (PDF, screenshot, DOCX or text), turn it into job records with the language model and append them to the employee's Work Experience rows.",
    responses={
        200: {
            "description": "Records extracted; see airtableSaveStatus for the save outcome",
            "content": {
                "application/json": {
                    "example": {
                        "job_experiences": [
                            {
                                "Company": "Acme Corp",
                                "Role": "Senior Engineer",
                                "Start Date": "Jan 2020",
                                "End Date": "Present",
                                "Years Worked": "4 yrs",
                                "Description": "Led the platform team.",
                            }
                        ],
                        "extractedTextLength": 5120,
                        "section": {"start": 812, "end": 2240, "headingFound": True, "boundary": "stop_heading"},
                        "parseStatus": "wrapper",
                        "airtableSaveStatus": {
                            "success": True,
                            "status": "created",
                            "message": "Saved 1 job experience(s) in 1 batch(es).",
                            "perBatchResults": [{"index": 0, "size": 1, "success": True, "recordIds": ["recXXXX"]}],
                            "failedBatchIndex": None,
                            "skippedDuplicates": 0,
                        },
                    }
                }
            },
        },
        400: {"model": ErrorBody, "description": "No file, empty file, or too little experience text"},
        413: {"model": ErrorBody, "description": "File too large"},
        415: {"model": ErrorBody, "description": "Unsupported file format"},
        500: {"model": ErrorBody, "description": "Configuration error or unreadable document"},
        502: {"model": ErrorBody, "description": "OCR or language-model provider failure"},
    },
)
async def process_linkedin_pdf(
    linkedin_pdf: Optional[UploadFile] = File(
        None, alias="linkedinPdf", description="LinkedIn profile export (PDF, image, DOCX or TXT)"
    ),
    employee_record_id: Optional[str] = Form(
        None, alias="employeeRecordId", description="Airtable record id of the employee to link rows to"
    ),
    context: ServiceContext = Depends(get_context),
):
    """
    Import work experience from a profile export.

    Without **employeeRecordId** the records are still returned, and
    **airtableSaveStatus.status** is `skipped`.
    """
    if linkedin_pdf is None:
        raise BadRequestError('No PDF file uploaded. Ensure the file input name is "linkedinPdf".')

    async with upload_scope(linkedin_pdf, context.settings.max_upload_bytes) as raw:
        result = await ExperienceImportPipeline(context).run(
            raw,
            mime_type=linkedin_pdf.content_type,
            filename=linkedin_pdf.filename,
            employee_id=employee_record_id,
        )
    return result.to_response()
