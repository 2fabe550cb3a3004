import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from employee_directory.core.airtable_client import MAX_RECORDS_PER_REQUEST, AirtableClient
from employee_directory.core.config import DuplicatePolicy, Settings
from employee_directory.core.errors import AirtableError, UpsertError
from employee_directory.core.schemas import BatchResult, JobExperienceRecord, UpsertStatus

logger = logging.getLogger(__name__)

DedupKey = Tuple[str, str, str]


def partition(items: List[Any], size: int) -> List[List[Any]]:
    if size < 1:
        raise ValueError("batch size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def dedup_key(company: Optional[str], role: Optional[str], start_date: Optional[str]) -> DedupKey:
    return (_norm(company), _norm(role), _norm(start_date))


class BatchUpserter:
    """
    Appends extracted job records to the Work Experience table.

    ``duplicate_policy="append"`` inserts everything, which repeats rows when
    the same profile is imported twice. ``"skip_existing"`` first reads the
    employee's linked rows and drops records whose (company, role, start date)
    already exist. Existing rows are never modified or deleted.
    """

    def __init__(
        self,
        airtable: AirtableClient,
        table: str = "Work Experience",
        link_field: str = "Employee Database",
        batch_size: int = MAX_RECORDS_PER_REQUEST,
        duplicate_policy: DuplicatePolicy = "append",
        include_years_worked: bool = False,
        employee_table: str = "Employee Database",
        employee_link_field: str = "Work Experience",
    ):
        if not 1 <= batch_size <= MAX_RECORDS_PER_REQUEST:
            raise ValueError(f"batch size must be between 1 and {MAX_RECORDS_PER_REQUEST}")
        self.airtable = airtable
        self.table = table
        self.link_field = link_field
        self.batch_size = batch_size
        self.duplicate_policy = duplicate_policy
        self.include_years_worked = include_years_worked
        self.employee_table = employee_table
        self.employee_link_field = employee_link_field

    @classmethod
    def from_settings(cls, settings: Settings, airtable: AirtableClient) -> "BatchUpserter":
        return cls(
            airtable,
            table=settings.work_experience_table,
            link_field=settings.work_experience_link_field,
            batch_size=settings.upsert_batch_size,
            duplicate_policy=settings.duplicate_policy,
            include_years_worked=settings.include_years_worked,
            employee_table=settings.employee_table,
            employee_link_field=settings.employee_work_experience_field,
        )

    def to_fields(self, record: JobExperienceRecord, employee_id: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "Company": record.company,
            "Role": record.role,
            "Start Date": record.start_date,
            "End Date": record.end_date,
            "Description": record.description,
        }
        if self.include_years_worked:
            fields["Years Worked"] = record.years_worked
        fields = {k: v for k, v in fields.items() if v is not None}
        fields[self.link_field] = [employee_id]
        return fields

    async def _existing_keys(self, employee_id: str) -> Set[DedupKey]:
        employee = await self.airtable.get_record(self.employee_table, employee_id)
        linked = (employee.get("fields") or {}).get(self.employee_link_field) or []
        rows = await self.airtable.records_by_ids(self.table, linked)
        keys = set()
        for row in rows:
            f = row.get("fields") or {}
            keys.add(dedup_key(f.get("Company"), f.get("Role"), f.get("Start Date")))
        return keys

    async def upsert_job_experiences(
        self, employee_id: Optional[str], records: List[JobExperienceRecord]
    ) -> UpsertStatus:
        """
        Create ``records`` linked to ``employee_id`` in ordered batches.

        Stops at the first rejected batch and reports its index. A missing
        employee id is a skip, not a failure: nothing is attempted.
        """
        if not employee_id or not employee_id.strip():
            logger.warning("Employee Record ID not provided. Skipping save to Airtable.")
            return UpsertStatus(
                success=False,
                status="skipped",
                message="Employee Record ID not provided. Skipping save to Airtable.",
            )
        employee_id = employee_id.strip()

        if not records:
            return UpsertStatus(success=True, status="empty", message="No job experiences to save.")

        skipped = 0
        if self.duplicate_policy == "skip_existing":
            try:
                existing = await self._existing_keys(employee_id)
            except AirtableError as e:
                return UpsertStatus(
                    success=False,
                    status="failed",
                    message=f"Could not read existing work experience: {e.message}",
                )
            kept = [r for r in records if dedup_key(r.company, r.role, r.start_date) not in existing]
            skipped = len(records) - len(kept)
            records = kept
            if skipped:
                logger.info(f"Skipping {skipped} job experience(s) already linked to {employee_id}")
            if not records:
                return UpsertStatus(
                    success=True,
                    status="empty",
                    message="All job experiences already exist.",
                    skipped_duplicates=skipped,
                )

        batches = partition(records, self.batch_size)
        results: List[BatchResult] = []
        for index, batch in enumerate(batches):
            try:
                created = await self.airtable.create_records(
                    self.table, [self.to_fields(r, employee_id) for r in batch]
                )
            except UpsertError as e:
                saved = sum(r.size for r in results)
                logger.error(f"Work experience batch {index}/{len(batches)} failed after {saved} saved: {e.message}")
                results.append(
                    BatchResult(
                        index=index,
                        size=len(batch),
                        success=False,
                        status_code=e.status,
                        error=e.payload if e.payload is not None else e.message,
                    )
                )
                return UpsertStatus(
                    success=False,
                    status="failed",
                    message=f"Batch {index} of {len(batches)} failed; {saved} record(s) saved before it.",
                    per_batch_results=results,
                    failed_batch_index=index,
                    skipped_duplicates=skipped,
                )
            results.append(
                BatchResult(
                    index=index,
                    size=len(batch),
                    success=True,
                    record_ids=[r["id"] for r in created if r.get("id")],
                )
            )

        total = sum(r.size for r in results)
        logger.info(f"Saved {total} job experience(s) for {employee_id} in {len(batches)} batch(es)")
        return UpsertStatus(
            success=True,
            status="created",
            message=f"Saved {total} job experience(s) in {len(batches)} batch(es).",
            per_batch_results=results,
            skipped_duplicates=skipped,
        )
