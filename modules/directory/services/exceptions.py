"""
Directory service exceptions.

Each carries the user-facing message the routers put in the response.
"""


class DirectoryError(Exception):
    """Base exception for directory errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmployeeValidationError(DirectoryError):
    """Raised when the edit form fails validation."""
    pass


class EmployeeNotFoundError(DirectoryError):
    """Raised when an employee id is neither remote nor cached."""
    pass


class EmployeeConflictError(DirectoryError):
    """Raised on duplicate employee number/email or a self-manager assignment."""
    pass


class DirectoryOperationError(DirectoryError):
    """Raised when the backend rejects a mutation for any other reason."""
    pass
