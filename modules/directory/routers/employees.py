"""
Employee Directory API Router.

Listing with search and sort, the edit dialog's create/update/delete, the
manager dropdown and avatar resolution. Mutations made while the remote
store is unreachable are stored locally and queued (``queued: true``,
HTTP 202).
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from core.api.auth import CurrentUser, UserBackendDep
from modules.directory.core.config import DirectorySettings, get_directory_settings
from modules.directory.schemas.employee import (
    AvatarResponse,
    EmployeeListResponse,
    ManagerOption,
    MutationResponse,
    SortDirection,
    SortField,
)
from modules.directory.services.directory import (
    DirectoryService,
    MutationResult,
    filter_and_sort,
    get_directory_service,
    to_view,
)
from modules.directory.services.exceptions import (
    DirectoryError,
    DirectoryOperationError,
    EmployeeConflictError,
    EmployeeNotFoundError,
    EmployeeValidationError,
)
from modules.directory.services.gravatar import get_gravatar_url, initials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["Employees"])

DirectoryServiceDep = Annotated[DirectoryService, Depends(get_directory_service)]
DirectorySettingsDep = Annotated[DirectorySettings, Depends(get_directory_settings)]

UNEXPECTED_ERROR = "An unexpected error occurred"

_ERROR_STATUS: dict[type[DirectoryError], int] = {
    EmployeeValidationError: status.HTTP_400_BAD_REQUEST,
    EmployeeNotFoundError: status.HTTP_404_NOT_FOUND,
    EmployeeConflictError: status.HTTP_409_CONFLICT,
    DirectoryOperationError: status.HTTP_502_BAD_GATEWAY,
}


def _to_http(error: DirectoryError) -> HTTPException:
    code = _ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=error.message)


def _mutation_response(result: MutationResult, response: Response) -> MutationResponse:
    if result.queued:
        response.status_code = status.HTTP_202_ACCEPTED
    return MutationResponse(
        success=True,
        queued=result.queued,
        notice=result.notice,
        employee=result.employee,
    )


# =============================================================================
# Listing
# =============================================================================


@router.get("", response_model=EmployeeListResponse)
async def list_employees(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    settings: DirectorySettingsDep,
    search: Annotated[Optional[str], Query(description="Case-insensitive search")] = None,
    sort: Annotated[SortField, Query(description="Sort column")] = "employee_number",
    direction: Annotated[SortDirection, Query(description="Sort direction")] = "asc",
) -> EmployeeListResponse:
    """Cache-first employee listing, filtered and sorted."""
    result = await service.fetch_employees(backend)
    rows = filter_and_sort(result.employees, search, sort, direction)

    return EmployeeListResponse(
        employees=[
            to_view(e, settings.avatar_size_list, settings.avatar_default_image)
            for e in rows
        ],
        total=len(rows),
        source=result.source,
        online=service.monitor.is_online,
        notice=result.notice,
    )


@router.get("/managers", response_model=list[ManagerOption])
async def list_managers(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    exclude_id: Annotated[Optional[str], Query(description="Employee being edited")] = None,
) -> list[ManagerOption]:
    """Manager dropdown options ordered by first name."""
    managers = await service.list_managers(backend, exclude_id)
    return [
        ManagerOption(
            id=m.id,
            first_name=m.first_name,
            last_name=m.last_name,
            employee_number=m.employee_number,
        )
        for m in managers
    ]


@router.get("/avatar", response_model=AvatarResponse)
async def get_avatar(
    current_user: CurrentUser,
    settings: DirectorySettingsDep,
    email: Annotated[Optional[str], Query()] = None,
    size: Annotated[Optional[int], Query(gt=0, le=2048)] = None,
    first_name: Annotated[Optional[str], Query()] = None,
    last_name: Annotated[Optional[str], Query()] = None,
) -> AvatarResponse:
    """Resolve the Gravatar URL for an email (edit dialog preview)."""
    size = size or settings.avatar_size_preview
    fallback = initials(first_name, last_name) if (first_name or last_name) else None
    return AvatarResponse(
        url=get_gravatar_url(email, size, settings.avatar_default_image),
        size=size,
        initials=fallback,
    )


# =============================================================================
# Mutations
# =============================================================================


@router.post("", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    response: Response,
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    form: Annotated[dict[str, Any], Body(description="Edit dialog fields")],
) -> MutationResponse:
    """Create an employee; queued locally while offline."""
    try:
        result = await service.create_employee(backend, form)
    except DirectoryError as e:
        raise _to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error creating employee: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=UNEXPECTED_ERROR,
        )
    return _mutation_response(result, response)


@router.put("/{employee_id}", response_model=MutationResponse)
async def update_employee(
    employee_id: str,
    response: Response,
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
    form: Annotated[dict[str, Any], Body(description="Edit dialog fields")],
) -> MutationResponse:
    """Update an employee; queued locally while offline."""
    try:
        result = await service.update_employee(backend, employee_id, form)
    except DirectoryError as e:
        raise _to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error updating employee {employee_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=UNEXPECTED_ERROR,
        )
    return _mutation_response(result, response)


@router.delete("/{employee_id}", response_model=MutationResponse)
async def delete_employee(
    employee_id: str,
    response: Response,
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
) -> MutationResponse:
    """Delete an employee; queued locally while offline."""
    try:
        result = await service.delete_employee(backend, employee_id)
    except DirectoryError as e:
        raise _to_http(e)
    except Exception as e:
        logger.exception(f"Unexpected error deleting employee {employee_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=UNEXPECTED_ERROR,
        )
    return _mutation_response(result, response)
