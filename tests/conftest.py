"""
Shared fakes for the vendor services.

OpenAI and Airtable are faked at the HTTP layer with httpx.MockTransport,
so the real SDK/client code paths run. Vision is faked at the annotator
object the SDK would otherwise provide.
"""

import json
import re
from types import SimpleNamespace
from typing import Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest
from openai import AsyncOpenAI

from employee_directory.core.airtable_client import AirtableClient
from employee_directory.core.config import Settings
from employee_directory.core.extraction_client import ExtractionClient


def make_settings(**overrides) -> Settings:
    values = dict(
        openai_api_key="",
        airtable_base_id="",
        airtable_pat="",
        google_application_credentials_json="",
        google_application_credentials="",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def chat_completion(content: Optional[str]) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
    }


class FakeLLM:
    """Chat-completions endpoint answering every request with ``content``."""

    def __init__(self, content: Optional[str] = "[]", status_code: int = 200, error_message: str = "boom"):
        self.content = content
        self.status_code = status_code
        self.error_message = error_message
        self.requests: List[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.status_code != 200:
            return httpx.Response(
                self.status_code,
                json={"error": {"message": self.error_message, "type": "invalid_request_error", "code": None}},
            )
        return httpx.Response(200, json=chat_completion(self.content))

    def client(self, json_mode: bool = True) -> ExtractionClient:
        openai_client = AsyncOpenAI(
            api_key="test-key",
            base_url="https://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )
        return ExtractionClient(openai_client, model="gpt-4o", json_mode=json_mode)


RECORD_ID_RE = re.compile(r"RECORD_ID\(\)='([^']*)'")
FIELD_EQUALS_RE = re.compile(r"^\{([^}]+)\}='([^']*)'$")


class FakeAirtable:
    """In-memory Airtable base speaking just enough of the REST API."""

    def __init__(self, page_limit: int = 100):
        self.tables: Dict[str, Dict[str, dict]] = {}
        self.requests: List[httpx.Request] = []
        self.posts: List[dict] = []
        self.fail_posts: Dict[int, int] = {}
        self.page_limit = page_limit
        self._next_id = 1

    def add(self, table: str, fields: dict, record_id: Optional[str] = None) -> str:
        if record_id is None:
            record_id = f"rec{self._next_id:05d}"
            self._next_id += 1
        self.tables.setdefault(table, {})[record_id] = {"id": record_id, "fields": dict(fields)}
        return record_id

    def _filter(self, rows: List[dict], formula: Optional[str]) -> List[dict]:
        if not formula:
            return rows
        ids = RECORD_ID_RE.findall(formula)
        if ids:
            return [r for r in rows if r["id"] in ids]
        m = FIELD_EQUALS_RE.match(formula)
        if m:
            field, value = m.groups()
            out = []
            for r in rows:
                v = r["fields"].get(field)
                if v == value or (isinstance(v, list) and value in v):
                    out.append(r)
            return out
        return rows

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = unquote(request.url.path).split("/")
        # ["", "v0", base, table, (record_id)]
        table = parts[3]
        record_id = parts[4] if len(parts) > 4 else None

        if request.method == "POST":
            index = len(self.posts)
            body = json.loads(request.content)
            self.posts.append(body)
            if index in self.fail_posts:
                return httpx.Response(
                    self.fail_posts[index],
                    json={"error": {"type": "INVALID_VALUE_FOR_COLUMN", "message": "Field 'Start Date' cannot accept the provided value"}},
                )
            created = [
                {"id": self.add(table, r["fields"]), "fields": r["fields"]} for r in body["records"]
            ]
            return httpx.Response(200, json={"records": created})

        rows = list(self.tables.get(table, {}).values())
        if record_id:
            for r in rows:
                if r["id"] == record_id:
                    return httpx.Response(200, json=r)
            return httpx.Response(404, json={"error": "NOT_FOUND"})

        rows = self._filter(rows, request.url.params.get("filterByFormula"))
        start = int(request.url.params.get("offset", "0"))
        page = rows[start:start + self.page_limit]
        payload = {"records": page}
        if start + self.page_limit < len(rows):
            payload["offset"] = str(start + self.page_limit)
        return httpx.Response(200, json=payload)

    def client(self) -> AirtableClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return AirtableClient("appTEST", http, api_url="https://airtable.test/v0")


def build_pdf(lines: List[str], font_size: int = 12) -> bytes:
    """Single-page Helvetica PDF with one text line per entry, 20pt apart."""
    ops = []
    for i, line in enumerate(lines):
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"BT /F1 {font_size} Tf 72 {700 - 20 * i} Td ({escaped}) Tj ET")
    content = "\n".join(ops)
    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        "<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        "/Resources << /Font << /F1 5 0 R >> >> >>",
        f"<< /Length {len(content)} >>\nstream\n{content}\nendstream",
        "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = b"%PDF-1.4\n"
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n{body}\nendobj\n".encode("latin-1")
    xref = len(out)
    out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode("latin-1")
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode("latin-1")
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref}\n%%EOF\n".encode("latin-1")
    return out


def vision_word(text: str, x: int, y: int, width: int, height: int = 20):
    vertices = [
        SimpleNamespace(x=x, y=y),
        SimpleNamespace(x=x + width, y=y),
        SimpleNamespace(x=x + width, y=y + height),
        SimpleNamespace(x=x, y=y + height),
    ]
    return SimpleNamespace(
        symbols=[SimpleNamespace(text=c) for c in text],
        bounding_box=SimpleNamespace(vertices=vertices),
    )


def no_error():
    return SimpleNamespace(message="", code=0)


class FakeAnnotator:
    """Stands in for vision.ImageAnnotatorAsyncClient."""

    def __init__(self, pdf_pages: Optional[List[str]] = None, words: Optional[list] = None, error: str = ""):
        self.pdf_pages = pdf_pages or []
        self.words = words or []
        self.error = error
        self.calls: List[str] = []

    async def batch_annotate_files(self, requests, timeout=None):
        self.calls.append("files")
        page_responses = [
            SimpleNamespace(error=no_error(), full_text_annotation=SimpleNamespace(text=t, pages=[]))
            for t in self.pdf_pages
        ]
        error = SimpleNamespace(message=self.error, code=3) if self.error else no_error()
        return SimpleNamespace(responses=[SimpleNamespace(error=error, responses=page_responses)])

    async def batch_annotate_images(self, requests, timeout=None):
        self.calls.append("images")
        annotation = SimpleNamespace(
            text="",
            pages=[SimpleNamespace(blocks=[SimpleNamespace(paragraphs=[SimpleNamespace(words=self.words)])])],
        )
        error = SimpleNamespace(message=self.error, code=3) if self.error else no_error()
        return SimpleNamespace(responses=[SimpleNamespace(error=error, full_text_annotation=annotation)])


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_airtable():
    return FakeAirtable()
