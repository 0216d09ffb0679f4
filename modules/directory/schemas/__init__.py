"""
Directory Module Schemas.
"""

from modules.directory.schemas.employee import (
    WRITABLE_COLUMNS,
    AvatarResponse,
    DirectoryStatusResponse,
    Employee,
    EmployeeForm,
    EmployeeListResponse,
    EmployeeView,
    HierarchyNodeResponse,
    HierarchyResponse,
    ManagerOption,
    ManagerRef,
    MutationResponse,
    Notice,
    SortDirection,
    SortField,
    SyncResultResponse,
    first_error_message,
)

__all__ = [
    "WRITABLE_COLUMNS",
    "AvatarResponse",
    "DirectoryStatusResponse",
    "Employee",
    "EmployeeForm",
    "EmployeeListResponse",
    "EmployeeView",
    "HierarchyNodeResponse",
    "HierarchyResponse",
    "ManagerOption",
    "ManagerRef",
    "MutationResponse",
    "Notice",
    "SortDirection",
    "SortField",
    "SyncResultResponse",
    "first_error_message",
]
