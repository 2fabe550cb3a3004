"""
Tests for batched Work Experience writes.
"""

import asyncio

import pytest

from conftest import FakeAirtable, make_settings

from employee_directory.core.schemas import JobExperienceRecord
from employee_directory.core.upsert import BatchUpserter, dedup_key, partition


def records(n):
    return [
        JobExperienceRecord(company=f"Company {i}", role="Engineer", start_date=f"Jan {2000 + i}")
        for i in range(n)
    ]


def test_partition_sizes():
    assert [len(b) for b in partition(list(range(25)), 10)] == [10, 10, 5]
    assert partition([], 10) == []


def test_batch_size_is_bounded():
    airtable = FakeAirtable().client()
    with pytest.raises(ValueError):
        BatchUpserter(airtable, batch_size=11)
    with pytest.raises(ValueError):
        BatchUpserter(airtable, batch_size=0)


def test_dedup_key_normalizes_case_and_spacing():
    assert dedup_key("Acme  Corp", "engineer", None) == dedup_key("acme corp", "Engineer ", "")


class TestUpsertJobExperiences:

    def test_records_are_written_in_batches_of_ten(self):
        fake = FakeAirtable()
        upserter = BatchUpserter(fake.client())

        status = asyncio.run(upserter.upsert_job_experiences("recEMP", records(25)))

        assert status.success is True
        assert status.status == "created"
        assert [len(p["records"]) for p in fake.posts] == [10, 10, 5]
        assert [r.size for r in status.per_batch_results] == [10, 10, 5]
        assert len(status.per_batch_results[0].record_ids) == 10

    def test_failed_batch_stops_processing(self):
        fake = FakeAirtable()
        fake.fail_posts = {1: 422}
        upserter = BatchUpserter(fake.client())

        status = asyncio.run(upserter.upsert_job_experiences("recEMP", records(25)))

        assert status.success is False
        assert status.status == "failed"
        assert status.failed_batch_index == 1
        assert len(fake.posts) == 2
        failed = status.per_batch_results[-1]
        assert failed.success is False
        assert failed.status_code == 422
        assert failed.error["error"]["type"] == "INVALID_VALUE_FOR_COLUMN"
        assert "10 record(s) saved" in status.message

    def test_missing_employee_is_skipped(self):
        fake = FakeAirtable()
        upserter = BatchUpserter(fake.client())
        for employee_id in (None, "", "   "):
            status = asyncio.run(upserter.upsert_job_experiences(employee_id, records(3)))
            assert status.status == "skipped"
            assert status.success is False
        assert fake.requests == []

    def test_no_records_is_empty(self):
        fake = FakeAirtable()
        status = asyncio.run(BatchUpserter(fake.client()).upsert_job_experiences("recEMP", []))
        assert status.status == "empty"
        assert status.success is True
        assert fake.requests == []

    def test_fields_are_linked_to_employee(self):
        fake = FakeAirtable()
        upserter = BatchUpserter(fake.client())
        record = JobExperienceRecord(company="Acme", role="CTO", years_worked="3 yrs")

        asyncio.run(upserter.upsert_job_experiences(" recEMP ", [record]))

        fields = fake.posts[0]["records"][0]["fields"]
        assert fields == {"Company": "Acme", "Role": "CTO", "Employee Database": ["recEMP"]}

    def test_years_worked_is_optional_column(self):
        upserter = BatchUpserter(FakeAirtable().client(), include_years_worked=True)
        fields = upserter.to_fields(JobExperienceRecord(company="Acme", years_worked="3 yrs"), "recEMP")
        assert fields["Years Worked"] == "3 yrs"

    def test_skip_existing_drops_known_rows(self):
        fake = FakeAirtable()
        known = fake.add("Work Experience", {"Company": "Company 0", "Role": "Engineer", "Start Date": "Jan 2000"})
        fake.add("Employee Database", {"Employee Name": "Jane", "Work Experience": [known]}, record_id="recEMP")
        upserter = BatchUpserter(fake.client(), duplicate_policy="skip_existing")

        status = asyncio.run(upserter.upsert_job_experiences("recEMP", records(3)))

        assert status.status == "created"
        assert status.skipped_duplicates == 1
        assert [r["fields"]["Company"] for r in fake.posts[0]["records"]] == ["Company 1", "Company 2"]

    def test_skip_existing_with_nothing_new(self):
        fake = FakeAirtable()
        known = fake.add("Work Experience", {"Company": "Company 0", "Role": "Engineer", "Start Date": "Jan 2000"})
        fake.add("Employee Database", {"Work Experience": [known]}, record_id="recEMP")
        upserter = BatchUpserter(fake.client(), duplicate_policy="skip_existing")

        status = asyncio.run(upserter.upsert_job_experiences("recEMP", records(1)))

        assert status.status == "empty"
        assert status.skipped_duplicates == 1
        assert fake.posts == []

    def test_from_settings(self):
        settings = make_settings(upsert_batch_size=4, work_experience_table="Jobs", duplicate_policy="skip_existing")
        upserter = BatchUpserter.from_settings(settings, FakeAirtable().client())
        assert upserter.batch_size == 4
        assert upserter.table == "Jobs"
        assert upserter.duplicate_policy == "skip_existing"
