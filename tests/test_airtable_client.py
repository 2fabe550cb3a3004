import asyncio

import httpx
import pytest

from conftest import FakeAirtable, make_settings

from employee_directory.core.airtable_client import AirtableClient, record_id_formula
from employee_directory.core.errors import AirtableError, UpsertError


def test_record_id_formula():
    assert record_id_formula(["rec1", "rec2"]) == "OR(RECORD_ID()='rec1',RECORD_ID()='rec2')"
    assert record_id_formula(["it's"]) == "OR(RECORD_ID()='it\\'s')"


def test_table_names_are_url_encoded():
    client = FakeAirtable().client()
    assert client.table_url("Work Experience", "rec1") == "https://airtable.test/v0/appTEST/Work%20Experience/rec1"


def test_list_records_follows_offsets():
    fake = FakeAirtable(page_limit=2)
    for i in range(5):
        fake.add("Skills", {"Skill Name": f"skill {i}"})

    rows = asyncio.run(fake.client().list_records("Skills"))

    assert [r["fields"]["Skill Name"] for r in rows] == [f"skill {i}" for i in range(5)]
    assert len(fake.requests) == 3
    assert fake.requests[1].url.params["offset"] == "2"


def test_records_by_ids():
    fake = FakeAirtable()
    a = fake.add("Traits", {"Trait Name": "Curious"})
    fake.add("Traits", {"Trait Name": "Calm"})
    client = fake.client()

    rows = asyncio.run(client.records_by_ids("Traits", [a]))
    assert [r["id"] for r in rows] == [a]

    assert asyncio.run(client.records_by_ids("Traits", [])) == []
    assert len(fake.requests) == 1


def test_missing_record_raises_with_status():
    with pytest.raises(AirtableError) as info:
        asyncio.run(FakeAirtable().client().get_record("Employee Database", "recMISSING"))
    assert info.value.status == 404
    assert info.value.payload == {"error": "NOT_FOUND"}


def test_rejected_create_raises_upsert_error():
    fake = FakeAirtable()
    fake.fail_posts = {0: 422}
    with pytest.raises(UpsertError) as info:
        asyncio.run(fake.client().create_records("Work Experience", [{"Company": "Acme"}]))
    assert info.value.status == 422


def test_create_refuses_more_than_ten():
    with pytest.raises(ValueError):
        asyncio.run(FakeAirtable().client().create_records("Work Experience", [{}] * 11))


def test_transport_failure_is_airtable_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = AirtableClient("appTEST", httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(AirtableError) as info:
        asyncio.run(client.list_records("Skills"))
    assert info.value.status is None
    assert info.value.status_code == 502


def test_from_settings_sends_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"records": []})

    settings = make_settings(airtable_base_id="appXYZ", airtable_pat=" patSECRET ")
    client = AirtableClient.from_settings(settings, transport=httpx.MockTransport(handler))
    asyncio.run(client.list_records("Skills", formula="{Level}='Good'", fields=["Skill Name"]))

    request = seen[0]
    assert request.headers["Authorization"] == "Bearer patSECRET"
    assert request.url.path == "/v0/appXYZ/Skills"
    assert request.url.params["filterByFormula"] == "{Level}='Good'"
    assert request.url.params.get_list("fields[]") == ["Skill Name"]
