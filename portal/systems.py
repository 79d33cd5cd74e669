"""Catalog service for System records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .database import Database
from .errors import NotFoundError
from .models import AccessLevel, System, SystemStatus
from .validation import SYSTEM_SCHEMA

logger = logging.getLogger("portal.systems")


class _Unset:
    """Marker for patch attributes the caller did not supply."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class SystemDraft:
    """Input for creating a catalog entry."""

    name: Any
    url: Any
    icon: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    responsible: Optional[str] = None
    description: Optional[str] = None
    tech_stack: Optional[str] = None
    expiration_date: Optional[datetime] = None
    dependencies: Optional[str] = None
    status: Any = None
    access_level: Any = None

    def to_fields(self) -> Dict[str, Any]:
        """Return the supplied attributes with status and access level defaulted."""

        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data = {key: value for key, value in data.items() if value is not None}
        data.setdefault("status", SystemStatus.ACTIVE)
        data.setdefault("access_level", AccessLevel.PUBLIC)
        return data


@dataclass(frozen=True)
class SystemPatch:
    """Partial update. Attributes left as ``UNSET`` are not touched."""

    name: Any = UNSET
    url: Any = UNSET
    icon: Any = UNSET
    category: Any = UNSET
    tags: Any = UNSET
    responsible: Any = UNSET
    description: Any = UNSET
    tech_stack: Any = UNSET
    expiration_date: Any = UNSET
    dependencies: Any = UNSET
    status: Any = UNSET
    access_level: Any = UNSET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SystemPatch":
        known = {f.name for f in fields(cls)}
        SYSTEM_SCHEMA.ensure_valid({key: data[key] for key in data if key not in known}, partial=True)
        return cls(**{key: value for key, value in data.items() if key in known})

    def touched(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


def _coerce_enums(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("status") is not None:
        data["status"] = SystemStatus(data["status"])
    if data.get("access_level") is not None:
        data["access_level"] = AccessLevel(data["access_level"])
    return data


class SystemCatalog:
    """Validated create/update/delete/query operations over System records.

    ``update`` reads then writes without a version check, so concurrent
    updates to the same record resolve as last write wins.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def create(self, draft: SystemDraft) -> System:
        data = draft.to_fields()
        SYSTEM_SCHEMA.ensure_valid(data)
        system = self._database.create_system(_coerce_enums(data))
        logger.info("Created system %s (%s)", system.id, system.name)
        return system

    def find_all(self) -> List[System]:
        return self._database.find_systems()

    def find_one(self, system_id: int) -> System:
        system = self._database.get_system(system_id)
        if system is None:
            raise NotFoundError(f"System with ID {system_id} not found")
        return system

    def update(self, system_id: int, patch: SystemPatch) -> System:
        existing = self.find_one(system_id)
        changes = patch.touched()
        if not changes:
            return existing

        SYSTEM_SCHEMA.ensure_valid(changes, partial=True)
        updated = self._database.update_system(system_id, _coerce_enums(changes))
        if updated is None:
            raise NotFoundError(f"System with ID {system_id} not found")
        logger.info("Updated system %s fields: %s", system_id, ", ".join(sorted(changes)))
        return updated

    def update_status(self, system_id: int, status: Any) -> System:
        self.find_one(system_id)
        SYSTEM_SCHEMA.ensure_valid({"status": status}, partial=True)
        updated = self._database.update_system(system_id, {"status": SystemStatus(status)})
        if updated is None:
            raise NotFoundError(f"System with ID {system_id} not found")
        logger.info("System %s status set to %s", system_id, updated.status.value)
        return updated

    def remove(self, system_id: int) -> None:
        if not self._database.delete_system(system_id):
            raise NotFoundError(f"System with ID {system_id} not found")
        logger.info("Removed system %s", system_id)

    def find_by_category(self, category: str) -> List[System]:
        return self._database.find_systems(category=category)

    def find_by_status(self, status: str) -> List[System]:
        return self._database.find_systems(status=status)

    def find_by_access_level(self, access_level: str) -> List[System]:
        return self._database.find_systems(access_level=access_level)


__all__ = ["SystemCatalog", "SystemDraft", "SystemPatch", "UNSET"]
