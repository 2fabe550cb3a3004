"""
Thin async client for the Airtable REST API.

Airtable owns the schema; this client only lists, reads and creates rows.
Every non-2xx answer or transport failure is raised as AirtableError
(UpsertError for writes) carrying the status and Airtable's error payload.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from employee_directory.core.config import Settings
from employee_directory.core.errors import AirtableError, UpsertError

logger = logging.getLogger(__name__)

# Airtable rejects create/update requests with more than 10 records
MAX_RECORDS_PER_REQUEST = 10
MAX_PAGE_SIZE = 100


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500] if response.text else None


def record_id_formula(record_ids: List[str]) -> str:
    """OR(RECORD_ID()='rec1',RECORD_ID()='rec2',...)"""
    clauses = []
    for rid in record_ids:
        escaped = rid.replace("\\", "\\\\").replace("'", "\\'")
        clauses.append(f"RECORD_ID()='{escaped}'")
    return f"OR({','.join(clauses)})"


class AirtableClient:
    def __init__(
        self,
        base_id: str,
        http: httpx.AsyncClient,
        api_url: str = "https://api.airtable.com/v0",
    ):
        self.base_id = base_id
        self.api_url = api_url.rstrip("/")
        self._http = http

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "AirtableClient":
        http = httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            headers={
                "Authorization": f"Bearer {settings.airtable_pat.strip()}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        return cls(settings.airtable_base_id.strip(), http, api_url=settings.airtable_api_url)

    async def aclose(self) -> None:
        await self._http.aclose()

    def table_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.api_url}/{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url += f"/{quote(record_id, safe='')}"
        return url

    async def _request(self, method: str, url: str, error_cls=AirtableError, **kwargs) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Airtable {method} {url} failed: {type(e).__name__}: {e}")
            raise error_cls(f"Airtable request failed: {type(e).__name__}", payload=str(e)) from e

        payload = _payload(response)
        if not response.is_success:
            logger.error(f"Airtable {method} {url} returned {response.status_code}: {str(payload)[:500]}")
            raise error_cls(
                f"Airtable returned HTTP {response.status_code}",
                status=response.status_code,
                payload=payload,
            )
        return payload

    async def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        fields: Optional[List[str]] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> List[Dict[str, Any]]:
        """All rows of ``table`` matching ``formula``, following pagination offsets."""
        params: Dict[str, Any] = {"pageSize": min(page_size, MAX_PAGE_SIZE)}
        if formula:
            params["filterByFormula"] = formula
        if fields:
            params["fields[]"] = fields

        records: List[Dict[str, Any]] = []
        offset = None
        while True:
            if offset:
                params["offset"] = offset
            payload = await self._request("GET", self.table_url(table), params=params)
            records.extend(payload.get("records", []))
            offset = payload.get("offset")
            if not offset:
                break
        return records

    async def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        return await self._request("GET", self.table_url(table, record_id))

    async def records_by_ids(self, table: str, record_ids: List[str]) -> List[Dict[str, Any]]:
        if not record_ids:
            return []
        return await self.list_records(table, formula=record_id_formula(record_ids))

    async def create_records(self, table: str, fields_list: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Create up to 10 rows in one request. Raises UpsertError on rejection."""
        if len(fields_list) > MAX_RECORDS_PER_REQUEST:
            raise ValueError(f"Airtable accepts at most {MAX_RECORDS_PER_REQUEST} records per request")
        payload = await self._request(
            "POST",
            self.table_url(table),
            error_cls=UpsertError,
            json={"records": [{"fields": fields} for fields in fields_list]},
        )
        return payload.get("records", []) if isinstance(payload, dict) else []
