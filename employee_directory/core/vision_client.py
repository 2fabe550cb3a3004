"""
Google Cloud Vision OCR.

``DOCUMENT_TEXT_DETECTION`` is used two ways:

* PDFs go through ``batch_annotate_files`` and come back as reading-order
  text per page (no positions, reconstruction is skipped);
* images go through ``batch_annotate_images`` and every detected word is
  turned into a positioned fragment for the line reconstructor.
"""

import json
import logging
import os
from typing import Any, List, Optional

from google.api_core.exceptions import GoogleAPICallError
from google.auth.exceptions import GoogleAuthError
from google.cloud import vision
from google.oauth2 import service_account

from employee_directory.core.config import Settings
from employee_directory.core.errors import ConfigurationError, ExtractionServiceError
from employee_directory.core.line_reconstructor import PAGE_SEPARATOR, RawTextFragment

logger = logging.getLogger(__name__)

VISION_SCOPES = ["https://www.googleapis.com/auth/cloud-vision"]
REQUIRED_KEY_FIELDS = ("project_id", "client_email", "private_key")


def load_vision_credentials(settings: Settings) -> Optional[service_account.Credentials]:
    """
    Build service-account credentials from settings.

    Returns None when no credential variable is set at all; raises
    ConfigurationError when one is set but unusable.
    """
    if settings.google_application_credentials_json:
        try:
            info = json.loads(settings.google_application_credentials_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "Server configuration error: Malformed Google Cloud credentials JSON.",
                details=str(e),
            ) from e
        if not isinstance(info, dict):
            raise ConfigurationError(
                "Server configuration error: Malformed Google Cloud credentials JSON.",
                details="Expected a JSON object.",
            )
        missing = [k for k in REQUIRED_KEY_FIELDS if not info.get(k)]
        if missing:
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials incomplete.",
                details=f"Missing field(s): {', '.join(missing)}",
            )
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=VISION_SCOPES)
        except ValueError as e:
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials rejected.",
                details=str(e),
            ) from e

    if settings.google_application_credentials:
        path = settings.google_application_credentials
        if not os.path.exists(path):
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials file not found.",
                details=path,
            )
        try:
            return service_account.Credentials.from_service_account_file(path, scopes=VISION_SCOPES)
        except ValueError as e:
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials rejected.",
                details=str(e),
            ) from e

    return None


def _document_text_feature() -> vision.Feature:
    return vision.Feature(type_=vision.Feature.Type.DOCUMENT_TEXT_DETECTION)


def _raise_for_error(response: Any, what: str) -> None:
    error = getattr(response, "error", None)
    message = getattr(error, "message", "") if error is not None else ""
    if message:
        raise ExtractionServiceError(
            f"Failed to process {what} with Google Cloud Vision API",
            provider_status=getattr(error, "code", None) or None,
            details=message,
        )


class VisionOCRClient:
    def __init__(self, annotator: Any, timeout: Optional[float] = None):
        self._annotator = annotator
        self._timeout = timeout

    @classmethod
    def from_credentials(cls, credentials: service_account.Credentials, timeout: Optional[float] = None) -> "VisionOCRClient":
        return cls(vision.ImageAnnotatorAsyncClient(credentials=credentials), timeout=timeout)

    async def aclose(self) -> None:
        """Release the gRPC channel behind the annotator."""
        transport = getattr(self._annotator, "transport", None)
        if transport is not None:
            await transport.close()

    async def _call(self, method: str, requests: list, what: str) -> Any:
        logger.info(f"Sending {what} to Google Cloud Vision API")
        try:
            return await getattr(self._annotator, method)(requests=requests, timeout=self._timeout)
        except GoogleAPICallError as e:
            logger.error(f"Vision API call failed: {e}")
            raise ExtractionServiceError(
                f"Failed to process {what} with Google Cloud Vision API",
                provider_status=e.code if isinstance(e.code, int) else None,
                details=e.message,
            ) from e
        except GoogleAuthError as e:
            logger.error(f"Vision API authentication failed: {e}")
            raise ExtractionServiceError(
                f"Failed to process {what} with Google Cloud Vision API",
                details=f"Authentication failed: {e}",
            ) from e

    async def pdf_text_pages(self, pdf_bytes: bytes) -> List[str]:
        """OCR a PDF. Returns one reading-order string per page."""
        request = vision.AnnotateFileRequest(
            input_config=vision.InputConfig(content=pdf_bytes, mime_type="application/pdf"),
            features=[_document_text_feature()],
        )
        response = await self._call("batch_annotate_files", [request], "PDF")
        if not response.responses:
            return []
        file_response = response.responses[0]
        _raise_for_error(file_response, "PDF")

        pages: List[str] = []
        for page_response in file_response.responses:
            _raise_for_error(page_response, "PDF")
            annotation = page_response.full_text_annotation
            pages.append(annotation.text if annotation else "")
        logger.info(f"Vision returned {len(pages)} page(s), {sum(len(p) for p in pages)} characters")
        return pages

    async def pdf_text(self, pdf_bytes: bytes) -> str:
        pages = await self.pdf_text_pages(pdf_bytes)
        return PAGE_SEPARATOR.join(p.strip("\n") for p in pages)

    async def image_fragments(self, image_bytes: bytes, page_index: int = 0) -> List[RawTextFragment]:
        """OCR an image. Every detected word becomes a positioned fragment."""
        request = vision.AnnotateImageRequest(
            image=vision.Image(content=image_bytes),
            features=[_document_text_feature()],
        )
        response = await self._call("batch_annotate_images", [request], "image")
        if not response.responses:
            return []
        image_response = response.responses[0]
        _raise_for_error(image_response, "image")

        fragments: List[RawTextFragment] = []
        annotation = image_response.full_text_annotation
        for page in annotation.pages:
            for block in page.blocks:
                for paragraph in block.paragraphs:
                    for word in paragraph.words:
                        text = "".join(symbol.text for symbol in word.symbols)
                        vertices = list(word.bounding_box.vertices)
                        if not text.strip() or not vertices:
                            continue
                        xs = [v.x for v in vertices]
                        ys = [v.y for v in vertices]
                        fragments.append(
                            RawTextFragment(
                                text=text,
                                x=float(min(xs)),
                                y=float(min(ys)),
                                width=float(max(xs) - min(xs)),
                                height=float(max(ys) - min(ys)),
                                page_index=page_index,
                            )
                        )
        logger.info(f"Vision returned {len(fragments)} word fragment(s) for image")
        return fragments
