from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from hrdirectory.core.dependencies import get_directory_cache
from hrdirectory.models.employee import EmployeeLookupRequest, EmployeeLookupResponse, EnrichedEmployeeRecord
from hrdirectory.services.directory_cache import DirectoryCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=list[EnrichedEmployeeRecord])
async def list_employees(cache: DirectoryCache = Depends(get_directory_cache)):  # noqa: B008
    return cache.cached_employees()


@router.post("/lookup", response_model=EmployeeLookupResponse)
async def lookup_employees(
    request: EmployeeLookupRequest,
    cache: DirectoryCache = Depends(get_directory_cache),  # noqa: B008
):
    try:
        employees = await cache.get_employees(request.emails)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err

    missing = [email for email, record in employees.items() if record is None]
    logger.info("Lookup of %d identities, %d missing", len(employees), len(missing))
    return EmployeeLookupResponse(employees=employees, missing=missing)


@router.get("/{email}", response_model=EnrichedEmployeeRecord)
async def get_employee(
    email: str,
    cache: DirectoryCache = Depends(get_directory_cache),  # noqa: B008
):
    try:
        employee = await cache.get_employee(email)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with email '{email}' not found",
        )

    return employee
