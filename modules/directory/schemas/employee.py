"""
Directory Schemas.

Pydantic models for employee records, the edit form and API responses.
"""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError


# Columns the client writes; everything else is owned by the backend.
WRITABLE_COLUMNS = (
    "employee_number",
    "first_name",
    "last_name",
    "email",
    "birth_date",
    "salary",
    "role",
    "manager_id",
)

SortField = Literal[
    "employee_number",
    "first_name",
    "last_name",
    "email",
    "role",
    "salary",
    "birth_date",
]
SortDirection = Literal["asc", "desc"]
NoticeLevel = Literal["success", "info", "error"]
DataSource = Literal["remote", "cache", "none"]


class ManagerRef(BaseModel):
    """Embedded manager name returned with listing reads."""

    first_name: str
    last_name: str


class Employee(BaseModel):
    """Employee record as stored remotely and mirrored locally."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    employee_number: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    birth_date: date
    salary: float
    role: str
    manager_id: Optional[str] = None
    manager: Optional[ManagerRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeForm(BaseModel):
    """
    Edit dialog input.

    Fields are validated in declaration order so the first error reported
    is the first invalid field on the form.
    """

    model_config = ConfigDict(validate_default=True)

    employee_number: Any = ""
    first_name: Any = ""
    last_name: Any = ""
    email: Any = None
    birth_date: Any = None
    salary: Any = None
    role: Any = ""
    manager_id: Any = None

    @staticmethod
    def _require(value: Any, message: str) -> str:
        text = "" if value is None else str(value)
        if not text:
            raise PydanticCustomError("required", message)
        return text

    @field_validator("employee_number", mode="before")
    @classmethod
    def _check_employee_number(cls, v: Any) -> str:
        return cls._require(v, "Employee number is required")

    @field_validator("first_name", mode="before")
    @classmethod
    def _check_first_name(cls, v: Any) -> str:
        return cls._require(v, "First name is required")

    @field_validator("last_name", mode="before")
    @classmethod
    def _check_last_name(cls, v: Any) -> str:
        return cls._require(v, "Last name is required")

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, v: Any) -> Optional[str]:
        if v is None or str(v) == "":
            return None
        try:
            validate_email(str(v))
        except PydanticCustomError:
            raise PydanticCustomError("email", "Invalid email address")
        return str(v)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _check_birth_date(cls, v: Any) -> date:
        if isinstance(v, date):
            return v
        text = cls._require(v, "Birth date is required")
        try:
            return date.fromisoformat(text.strip())
        except ValueError:
            raise PydanticCustomError("date", "Invalid birth date")

    @field_validator("salary", mode="before")
    @classmethod
    def _check_salary(cls, v: Any) -> float:
        if isinstance(v, bool):
            raise PydanticCustomError("number", "Salary must be a number")
        try:
            salary = float(v)
        except (TypeError, ValueError):
            raise PydanticCustomError("number", "Salary must be a number")
        if salary != salary:  # NaN
            raise PydanticCustomError("number", "Salary must be a number")
        if salary < 0:
            raise PydanticCustomError("min", "Salary must be positive")
        return salary

    @field_validator("role", mode="before")
    @classmethod
    def _check_role(cls, v: Any) -> str:
        return cls._require(v, "Role is required")

    @field_validator("manager_id", mode="before")
    @classmethod
    def _normalize_manager(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        if not text or text.lower() == "none":
            return None
        return text

    def to_payload(self) -> dict[str, Any]:
        """Column values to write remotely (no id)."""
        return {
            "employee_number": self.employee_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "birth_date": self.birth_date.isoformat(),
            "salary": self.salary,
            "role": self.role,
            "manager_id": self.manager_id,
        }


def first_error_message(exc: ValidationError) -> str:
    """Message of the first failing field, as the form shows it."""
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    return str(errors[0]["msg"])


# =============================================================================
# Responses
# =============================================================================


class Notice(BaseModel):
    """User-facing message returned alongside data."""

    level: NoticeLevel
    message: str


class EmployeeView(Employee):
    """Employee plus presentation helpers for list rows and chart nodes."""

    avatar_url: str = ""
    initials: str = ""
    manager_name: Optional[str] = None


class EmployeeListResponse(BaseModel):
    """Directory listing."""

    employees: list[EmployeeView]
    total: int
    source: DataSource = Field(..., description="Where the rows came from")
    online: bool
    notice: Optional[Notice] = None


class MutationResponse(BaseModel):
    """Result of create/update/delete."""

    success: bool
    queued: bool = Field(False, description="Stored locally, will sync when online")
    notice: Notice
    employee: Optional[Employee] = None


class ManagerOption(BaseModel):
    """Entry of the manager dropdown."""

    id: str
    first_name: str
    last_name: str
    employee_number: str


class HierarchyNodeResponse(BaseModel):
    """Org chart node."""

    employee: EmployeeView
    subordinates: list["HierarchyNodeResponse"] = Field(default_factory=list)
    expanded: bool = False


class HierarchyResponse(BaseModel):
    """Org chart forest."""

    roots: list[HierarchyNodeResponse]
    total: int
    source: DataSource
    online: bool
    notice: Optional[Notice] = None


class DirectoryStatusResponse(BaseModel):
    """Connectivity and queue state."""

    online: bool
    syncing: bool
    pending_operations: int
    last_change: Optional[datetime] = None
    last_latency_ms: Optional[int] = None


class SyncResultResponse(BaseModel):
    """Outcome of draining the pending queue."""

    status: Literal["empty", "synced", "failed", "busy", "offline"]
    synced: int = 0
    total: int = 0
    failed_operation: Optional[str] = None
    message: Optional[str] = None
    notice: Optional[Notice] = None
    progress_notice: Optional[Notice] = None


class AvatarResponse(BaseModel):
    """Resolved avatar for an email."""

    url: str
    size: int
    initials: Optional[str] = None
