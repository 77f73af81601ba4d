"""Worker domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 80


class UserRole(StrEnum):
    """Role of a worker across the organisation."""

    MASTER_ADMIN = "master_admin"
    ADMIN = "admin"
    STORE_MANAGER = "store_manager"
    EMPLOYEE = "employee"


MANAGER_ROLES: tuple[UserRole, ...] = (UserRole.STORE_MANAGER, UserRole.ADMIN, UserRole.MASTER_ADMIN)


class Worker(BaseModel):
    """Worker data transfer object."""

    id: str = Field(..., description="Unique worker ID from database")
    name: str = Field(..., description="Display name of the worker")
    email: str | None = Field(default=None, description="Contact email")
    role: UserRole = Field(default=UserRole.EMPLOYEE, description="Worker role")
    site_id: str | None = Field(default=None, description="Home site ID")
    is_active: bool = Field(default=True, description="Inactive workers cannot act on tasks")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is non-empty and of reasonable length."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
        return v
