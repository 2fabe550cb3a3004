import asyncio
import logging
from typing import Any, Dict, List, Optional

from employee_directory.core.airtable_client import AirtableClient
from employee_directory.core.config import Settings
from employee_directory.core.schemas import (
    EmployeeProfile,
    EmployeeSummary,
    SkillLevelEntry,
    WorkExperienceEntry,
)

logger = logging.getLogger(__name__)

SKILL_LEVELS = ("Basic", "Average", "Good", "Excellent")


def _first(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _summary(record: Dict[str, Any]) -> EmployeeSummary:
    f = record.get("fields") or {}
    return EmployeeSummary(
        id=record["id"],
        name=f.get("Employee Name"),
        job_title=f.get("Job Title"),
        department=f.get("Department"),
        location=f.get("Location"),
    )


async def list_employees(airtable: AirtableClient, settings: Settings, query: str = "") -> List[EmployeeSummary]:
    """Every employee whose name or job title contains ``query``, sorted by name."""
    records = await airtable.list_records(settings.employee_table)
    term = query.strip().lower()
    employees = [_summary(r) for r in records]
    if term:
        employees = [
            e for e in employees
            if term in (e.name or "").lower() or term in (e.job_title or "").lower()
        ]
    return sorted(employees, key=lambda e: (e.name or "").lower())


async def _work_experience(airtable: AirtableClient, settings: Settings, ids: List[str]) -> List[WorkExperienceEntry]:
    rows = await airtable.records_by_ids(settings.work_experience_table, ids)
    entries = []
    for row in rows:
        f = row.get("fields") or {}
        entries.append(
            WorkExperienceEntry(
                id=row["id"],
                company=f.get("Company"),
                role=f.get("Role"),
                start_date=f.get("Start Date"),
                end_date=f.get("End Date"),
                description=f.get("Description"),
            )
        )
    # Most recent first; undated rows last
    return sorted(entries, key=lambda e: e.start_date or "", reverse=True)


async def _skills(airtable: AirtableClient, settings: Settings, employee_id: str) -> List[SkillLevelEntry]:
    levels = await airtable.list_records(
        settings.skill_level_table, formula=f"{{Employee}}='{employee_id}'"
    )
    skill_ids = [sid for sid in (_first((r.get("fields") or {}).get("Skill")) for r in levels) if sid]
    names = {
        r["id"]: (r.get("fields") or {}).get("Skill Name")
        for r in await airtable.records_by_ids(settings.skill_table, skill_ids)
    }

    entries = []
    for row in levels:
        f = row.get("fields") or {}
        skill_id = _first(f.get("Skill"))
        level = f.get("Level")
        entries.append(
            SkillLevelEntry(
                skill_id=skill_id,
                name=names.get(skill_id) or "Unknown",
                level=level if level in SKILL_LEVELS else None,
            )
        )
    return sorted(entries, key=lambda e: e.name.lower())


async def _traits(airtable: AirtableClient, settings: Settings, ids: List[str]) -> List[str]:
    rows = await airtable.records_by_ids(settings.trait_table, ids)
    return sorted(n for n in ((r.get("fields") or {}).get("Trait Name") for r in rows) if n)


async def get_profile(airtable: AirtableClient, settings: Settings, employee_id: str) -> EmployeeProfile:
    """
    Employee header plus linked work experience, skill levels and traits.

    The three linked lookups are independent reads and run concurrently.
    """
    record = await airtable.get_record(settings.employee_table, employee_id)
    f = record.get("fields") or {}

    work_experience, skills, traits = await asyncio.gather(
        _work_experience(airtable, settings, f.get(settings.employee_work_experience_field) or []),
        _skills(airtable, settings, employee_id),
        _traits(airtable, settings, f.get(settings.employee_traits_field) or []),
    )

    photos = f.get("Profile Photo") or []
    return EmployeeProfile(
        employee=_summary(record),
        bio=f.get("Bio"),
        photo_url=photos[0].get("url") if photos and isinstance(photos[0], dict) else None,
        work_experience=work_experience,
        skills=skills,
        traits=traits,
    )
