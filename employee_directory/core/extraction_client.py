"""
Structured job-history extraction through the OpenAI chat completions API.

One attempt per user action: the SDK client is built with ``max_retries=0``
and a fixed deadline. Transport and HTTP failures become
ExtractionServiceError; content that is not the expected JSON shape is
logged and degrades to an empty record list.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from employee_directory.core.config import Settings
from employee_directory.core.errors import (
    ExtractionParseError,
    ExtractionServiceError,
    InsufficientTextError,
)
from employee_directory.core.logging_config import preview
from employee_directory.core.schemas import JobExperienceRecord

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that extracts structured work history data from LinkedIn "
    "Experience sections. Only return valid JSON. No markdown. No explanation. The JSON should "
    "be an object with a single key 'job_experiences', which is an array of job objects."
)

EXTRACTION_INSTRUCTIONS = """Extract the job experiences from this LinkedIn profile content.

For each role, include these keys exactly:
- "Company"
- "Role" (the role held at the company)
- "Start Date" (month and year if available, e.g. "Jan 2020")
- "End Date" (month and year if available, or "Present", e.g. "Dec 2022" or "Present")
- "Years Worked" (e.g. "2 yrs 3 mos" or "Less than a year")
- "Description" (max 70 words, summarize key responsibilities and achievements)

List each distinct role separately, even if from the same company: a promotion from "Software Engineer" to "Senior Software Engineer" at the same company is two entries.

Ignore irrelevant content. Return only a JSON object with a single key "job_experiences" holding the array."""

DOCUMENT_START_MARKER = "--- PDF DOCUMENT CONTENT START ---"
DOCUMENT_END_MARKER = "--- PDF DOCUMENT CONTENT END ---"

WRAPPER_KEYS = ("job_experiences", "jobExperiences", "work_experience", "workExperience", "experiences")

# ```json ... ``` or ``` ... ```, fences only recognized at both ends
CODE_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL)


@dataclass
class ParsedExtraction:
    """Tagged result of validating model content.

    ``status`` is one of array, wrapper, unrecognized, invalid_json, empty.
    """
    status: str
    records: List[JobExperienceRecord] = field(default_factory=list)
    content: str = ""

    def as_display(self) -> List[Dict[str, str]]:
        return [r.to_display() for r in self.records]


def strip_code_fence(content: str) -> str:
    text = content.strip()
    m = CODE_FENCE_RE.match(text)
    return m.group(1).strip() if m else text


def _decode_json(content: str) -> Any:
    try:
        return json.loads(strip_code_fence(content))
    except (json.JSONDecodeError, ValueError) as e:
        raise ExtractionParseError("Model content is not valid JSON.", details=str(e)) from e


def _to_records(items: List[Any]) -> List[JobExperienceRecord]:
    records: List[JobExperienceRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            record = JobExperienceRecord.model_validate(item)
        except ValidationError:
            continue
        if not record.is_blank():
            records.append(record)
    return records


def parse_model_content(content: Optional[str], preview_chars: int = 2000) -> ParsedExtraction:
    """
    Validate model output into job records. Never raises.

    Accepts a bare JSON array, or an object holding the array under one of
    the known wrapper keys. Elements without a single recognizable key are
    dropped.
    """
    if not content or not content.strip():
        logger.warning("Model returned empty content")
        return ParsedExtraction(status="empty", content=content or "")

    try:
        parsed = _decode_json(content)
    except ExtractionParseError as e:
        logger.error(f"Failed to parse model content as JSON ({e.details}): {preview(content, preview_chars)}")
        return ParsedExtraction(status="invalid_json", content=content)

    if isinstance(parsed, list):
        return ParsedExtraction(status="array", records=_to_records(parsed), content=content)

    if isinstance(parsed, dict):
        for key in WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return ParsedExtraction(status="wrapper", records=_to_records(parsed[key]), content=content)

    logger.warning(f"Model response was valid JSON but not a job list: {preview(content, preview_chars)}")
    return ParsedExtraction(status="unrecognized", content=content)


def _provider_message(error: openai.APIStatusError) -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return error.message


class ExtractionClient:
    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o",
        json_mode: bool = True,
        preview_chars: int = 2000,
    ):
        self._client = client
        self.model = model
        self.json_mode = json_mode
        self.preview_chars = preview_chars

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "ExtractionClient":
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.http_timeout_seconds,
            max_retries=0,
            http_client=http_client,
        )
        return cls(
            client,
            model=settings.openai_model,
            json_mode=settings.openai_json_mode,
            preview_chars=settings.log_preview_chars,
        )

    async def aclose(self) -> None:
        await self._client.close()

    async def _complete(self, messages: List[Dict[str, Any]]) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0,
        }
        if self.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            message = _provider_message(e)
            logger.error(f"OpenAI API error {e.status_code}: {message}")
            raise ExtractionServiceError(
                "Failed to process text with OpenAI.",
                provider_status=e.status_code,
                details=message,
            ) from e
        except openai.APIConnectionError as e:
            logger.error(f"OpenAI API unreachable: {e}")
            raise ExtractionServiceError("Failed to process text with OpenAI.", details=str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        logger.debug(f"Raw content from OpenAI: {preview(content or '', self.preview_chars)}")
        return content or ""

    async def extract_from_text(self, section_text: str) -> ParsedExtraction:
        """Extract job records from a trimmed Experience section."""
        if not section_text or not section_text.strip():
            raise InsufficientTextError("No text provided to OpenAI for processing.")
        logger.info(f"Sending {len(section_text)} characters of experience text to OpenAI")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{EXTRACTION_INSTRUCTIONS}\n\nPrioritize the most recent roles. Here is the text:\n\n{section_text}",
            },
        ]
        return parse_model_content(await self._complete(messages), self.preview_chars)

    async def extract_from_document_text(self, document_text: str) -> ParsedExtraction:
        """Extract job records from a whole OCR'd profile, delimited by content markers."""
        if not document_text or not document_text.strip():
            raise InsufficientTextError("No text provided to OpenAI for processing.")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{EXTRACTION_INSTRUCTIONS}\n\n{DOCUMENT_START_MARKER}\n{document_text}\n{DOCUMENT_END_MARKER}",
            },
        ]
        return parse_model_content(await self._complete(messages), self.preview_chars)

    async def extract_from_image(self, image_bytes: bytes, mime_type: str) -> ParsedExtraction:
        """Send a profile screenshot straight to the model together with the instructions."""
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        logger.info(f"Sending {len(image_bytes)} byte image to OpenAI")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_INSTRUCTIONS},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            },
        ]
        return parse_model_content(await self._complete(messages), self.preview_chars)
