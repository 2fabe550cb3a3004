"""
Experience import: document -> text -> Experience section -> model -> Airtable.

Stages run strictly one after another inside a single request; nothing is
cached between requests.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from employee_directory.core.context import ServiceContext
from employee_directory.core.document_loader import detect_kind, load_document
from employee_directory.core.errors import EmptyDocumentError, InsufficientTextError
from employee_directory.core.extraction_client import ParsedExtraction
from employee_directory.core.line_reconstructor import reconstruct_document
from employee_directory.core.logging_config import preview
from employee_directory.core.schemas import ImportResponse, SectionInfo, UpsertStatus
from employee_directory.core.section_extractor import ExperienceSection, extract_section

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    document_text: str
    section: Optional[ExperienceSection]
    extraction: ParsedExtraction
    upsert: UpsertStatus

    def to_response(self) -> ImportResponse:
        section_info = None
        if self.section is not None:
            section_info = SectionInfo(
                start=self.section.start,
                end=self.section.end,
                heading_found=self.section.heading_found,
                boundary=self.section.boundary,
            )
        return ImportResponse(
            job_experiences=self.extraction.as_display(),
            # The section sent to the model, kept even when its reply was unusable
            extracted_text=self.section.text if self.section is not None else "",
            extracted_text_length=len(self.document_text),
            section=section_info,
            parse_status=self.extraction.status,
            airtable_save_status=self.upsert,
        )


class ExperienceImportPipeline:
    def __init__(self, context: ServiceContext):
        self.context = context

    async def run(
        self,
        data: bytes,
        mime_type: Optional[str],
        filename: Optional[str] = None,
        employee_id: Optional[str] = None,
    ) -> ImportResult:
        settings = self.context.settings
        # Fail fast on configuration before any vendor call is made
        extractor = self.context.require_extractor()
        upserter = self.context.upserter()

        if not data:
            raise EmptyDocumentError("Empty file uploaded.")

        if detect_kind(mime_type, filename) == "image" and settings.image_strategy == "model":
            extraction = await extractor.extract_from_image(data, mime_type or "image/png")
            document_text, section = "", None
        else:
            document = await load_document(data, mime_type, filename, ocr=self.context.optional_ocr())
            document_text = reconstruct_document(document, self.context.reconstruction_config())
            logger.info(
                f"Extracted {len(document_text)} characters from {document.page_count} page(s) via {document.source}"
            )
            logger.debug(f"Document text: {preview(document_text, settings.log_preview_chars)}")

            section = extract_section(document_text, self.context.section_policy())
            if len(section.text) < settings.min_section_chars:
                logger.warning(f"Extracted experience text is too short: {preview(section.text, 200)!r}")
                raise InsufficientTextError(
                    "Could not extract sufficient experience text from the document.",
                    details="The 'Experience' section might be missing, unclear, or too short.",
                )
            extraction = await extractor.extract_from_text(section.text)

        logger.info(f"Model returned {len(extraction.records)} job record(s) ({extraction.status})")
        upsert = await upserter.upsert_job_experiences(employee_id, extraction.records)
        return ImportResult(document_text=document_text, section=section, extraction=extraction, upsert=upsert)
