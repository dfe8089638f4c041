"""
Identity, role and session models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Gate-relevant roles. Every non-privileged user type collapses to NONE."""

    NONE = "NONE"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in (cls.ADMIN.value, cls.SUPER_ADMIN.value):
                return cls(normalized)
        return cls.NONE

    @property
    def is_privileged(self) -> bool:
        return self in PRIVILEGED_ROLES


PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class Identity(BaseModel):
    """Opaque principal issued by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class Session(BaseModel):
    """A fully resolved privileged session. Absence is modelled as None."""

    model_config = ConfigDict(frozen=True)

    identity: Identity
    role: Role
    resolved_at: datetime

    @field_validator("role")
    @classmethod
    def _privileged_only(cls, value: Role) -> Role:
        if value not in PRIVILEGED_ROLES:
            raise ValueError(f"role {value.value} cannot hold a session")
        return value

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN


class Profile(BaseModel):
    """Display details for a user row."""

    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    photo_url: Optional[str] = None
    role: Role = Field(default=Role.NONE, validation_alias="type")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Role:
        return Role.parse(value)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email or self.user_id
