"""Domain models for users and catalog entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SystemStatus(str, Enum):
    """Operational state of a catalog entry."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class AccessLevel(str, Enum):
    """Descriptive audience of a catalog entry. Not enforced anywhere."""

    PUBLIC = "Public"
    RESTRICTED = "Restricted"
    DEPARTMENT_SPECIFIC = "Department-Specific"


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the portal database."""

    id: int
    email: str
    password_hash: str = field(repr=False)
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class System:
    """A catalog entry describing a managed internal software system."""

    id: int
    name: str
    url: str
    status: SystemStatus
    access_level: AccessLevel
    created_at: datetime
    updated_at: datetime
    icon: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    responsible: Optional[str] = None
    description: Optional[str] = None
    tech_stack: Optional[str] = None
    expiration_date: Optional[datetime] = None
    dependencies: Optional[str] = None


@dataclass(frozen=True)
class Caller:
    """Identity resolved from a bearer token for the current request only."""

    user_id: int
    claims: dict = field(default_factory=dict, compare=False)


__all__ = ["AccessLevel", "Caller", "System", "SystemStatus", "User"]
