import logging
from typing import Optional

from employee_directory.core.airtable_client import AirtableClient
from employee_directory.core.config import Settings
from employee_directory.core.errors import ConfigurationError
from employee_directory.core.extraction_client import ExtractionClient
from employee_directory.core.line_reconstructor import ReconstructionConfig
from employee_directory.core.section_extractor import SectionPolicy
from employee_directory.core.upsert import BatchUpserter
from employee_directory.core.vision_client import VisionOCRClient, load_vision_credentials

logger = logging.getLogger(__name__)

_UNSET = object()


class ServiceContext:
    """
    Settings plus the vendor clients built from them.

    Clients are created on first use so a missing credential only fails the
    endpoints that need it, with a ConfigurationError naming the variable.
    Tests pass pre-built clients instead.
    """

    def __init__(
        self,
        settings: Settings,
        extractor: Optional[ExtractionClient] = None,
        airtable: Optional[AirtableClient] = None,
        ocr=_UNSET,
    ):
        self.settings = settings
        self._extractor = extractor
        self._airtable = airtable
        self._ocr = ocr

    def has_extractor(self) -> bool:
        return self._extractor is not None or bool(self.settings.openai_api_key.strip())

    def require_extractor(self) -> ExtractionClient:
        if self._extractor is None:
            if not self.settings.openai_api_key.strip():
                raise ConfigurationError(
                    "Server configuration error",
                    details="OpenAI API key not configured. Set OPENAI_API_KEY.",
                )
            self._extractor = ExtractionClient.from_settings(self.settings)
        return self._extractor

    def require_airtable(self) -> AirtableClient:
        if self._airtable is None:
            missing = [
                name
                for name, value in (
                    ("AIRTABLE_BASE_ID", self.settings.airtable_base_id),
                    ("AIRTABLE_PAT", self.settings.airtable_pat),
                )
                if not value.strip()
            ]
            if missing:
                raise ConfigurationError(
                    "Server configuration error",
                    details=f"Airtable credentials not configured. Set {', '.join(missing)}.",
                )
            self._airtable = AirtableClient.from_settings(self.settings)
        return self._airtable

    def optional_ocr(self) -> Optional[VisionOCRClient]:
        """The Vision client, or None when no Google credential is set at all."""
        if self._ocr is _UNSET:
            credentials = load_vision_credentials(self.settings)
            if credentials is None:
                self._ocr = None
            else:
                self._ocr = VisionOCRClient.from_credentials(
                    credentials, timeout=self.settings.http_timeout_seconds
                )
        return self._ocr

    def require_ocr(self) -> VisionOCRClient:
        ocr = self.optional_ocr()
        if ocr is None:
            raise ConfigurationError(
                "Server configuration error: Google Cloud credentials not set.",
                details="Set GOOGLE_APPLICATION_CREDENTIALS_JSON (key JSON) or GOOGLE_APPLICATION_CREDENTIALS (key path).",
            )
        return ocr

    def section_policy(self) -> SectionPolicy:
        return SectionPolicy.from_settings(self.settings)

    def reconstruction_config(self) -> ReconstructionConfig:
        return ReconstructionConfig(
            line_tolerance_ratio=self.settings.line_tolerance_ratio,
            space_gap_ratio=self.settings.space_gap_ratio,
        )

    def upserter(self) -> BatchUpserter:
        return BatchUpserter.from_settings(self.settings, self.require_airtable())

    async def aclose(self) -> None:
        """Close whichever vendor clients were created."""
        if self._extractor is not None:
            await self._extractor.aclose()
        if self._airtable is not None:
            await self._airtable.aclose()
        if self._ocr is not _UNSET and self._ocr is not None:
            await self._ocr.aclose()
