from typing import List

from fastapi import APIRouter, Depends, Query

from employee_directory.api.deps import get_context
from employee_directory.core.context import ServiceContext
from employee_directory.core.directory import get_profile, list_employees
from employee_directory.core.errors import AirtableError, DirectoryServiceError
from employee_directory.core.schemas import EmployeeProfile, EmployeeSummary, ErrorBody

router = APIRouter(prefix="/api/employees", tags=["employees"])


@router.get(
    "",
    response_model=List[EmployeeSummary],
    summary="List Employees",
    responses={500: {"model": ErrorBody}, 502: {"model": ErrorBody}},
)
async def employees(
    q: str = Query("", description="Case-insensitive match on employee name or job title"),
    context: ServiceContext = Depends(get_context),
):
    return await list_employees(context.require_airtable(), context.settings, q)


@router.get(
    "/{record_id}/profile",
    response_model=EmployeeProfile,
    summary="Employee Profile",
    responses={404: {"model": ErrorBody}, 500: {"model": ErrorBody}, 502: {"model": ErrorBody}},
)
async def employee_profile(record_id: str, context: ServiceContext = Depends(get_context)):
    try:
        return await get_profile(context.require_airtable(), context.settings, record_id)
    except AirtableError as e:
        if e.status == 404:
            raise DirectoryServiceError("Employee not found", details=record_id, status_code=404) from e
        raise
