"""SQLite-backed persistence for users and catalog entries."""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import resolve_database_path
from .errors import ConflictError
from .models import AccessLevel, System, SystemStatus, User


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


# SQLite INTEGER columns hold signed 64-bit values.
_ROW_ID_RANGE = range(-(2**63), 2**63)


def _storable_id(row_id: int) -> bool:
    return row_id in _ROW_ID_RANGE


# Maps System attribute names to their column names.
_SYSTEM_COLUMNS: Dict[str, str] = {
    "name": "name",
    "url": "url",
    "icon": "icon",
    "category": "category",
    "tags": "tags",
    "responsible": "responsible",
    "description": "description",
    "tech_stack": "tech_stack",
    "expiration_date": "expiration_date",
    "dependencies": "dependencies",
    "status": "status",
    "access_level": "access_level",
}


def _serialize_system_value(column: str, value: object) -> object:
    if value is None:
        return None
    if column == "tags":
        return json.dumps(list(value))  # type: ignore[arg-type]
    if column == "expiration_date":
        return _serialize_datetime(value)  # type: ignore[arg-type]
    if isinstance(value, (SystemStatus, AccessLevel)):
        return value.value
    return value


class Database:
    """Simple wrapper around SQLite for persisting users and systems.

    Every call opens its own connection; no state is shared between requests
    other than the file on disk.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS systems (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    url TEXT NOT NULL,
                    icon TEXT,
                    category TEXT,
                    tags TEXT,
                    responsible TEXT,
                    description TEXT,
                    tech_stack TEXT,
                    expiration_date TEXT,
                    dependencies TEXT,
                    status TEXT NOT NULL DEFAULT 'Active',
                    access_level TEXT NOT NULL DEFAULT 'Public',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_systems_category ON systems(category);
                CREATE INDEX IF NOT EXISTS idx_systems_status ON systems(status);
                CREATE INDEX IF NOT EXISTS idx_systems_access_level ON systems(access_level);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, email: str, password_hash: str, *, is_active: bool = True) -> User:
        """Insert a user row. The caller is responsible for hashing the password."""

        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, password_hash, is_active, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (email, password_hash, int(bool(is_active)), serialized, serialized),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A user with that email already exists") from exc
            user_id = cursor.lastrowid

        return User(
            id=int(user_id),
            email=email,
            password_hash=password_hash,
            is_active=bool(is_active),
            created_at=created_at,
            updated_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        if not _storable_id(user_id):
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # System management
    # ------------------------------------------------------------------
    def create_system(self, fields: Mapping[str, Any]) -> System:
        """Insert a system row from already validated attribute values."""

        unknown = set(fields) - set(_SYSTEM_COLUMNS)
        if unknown:
            raise KeyError(f"Unknown system fields: {', '.join(sorted(unknown))}")

        created_at = _serialize_datetime(_current_timestamp())
        columns: List[str] = []
        values: List[object] = []
        for key, column in _SYSTEM_COLUMNS.items():
            if key not in fields or fields[key] is None:
                continue
            columns.append(column)
            values.append(_serialize_system_value(column, fields[key]))
        columns.extend(["created_at", "updated_at"])
        values.extend([created_at, created_at])

        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO systems ({', '.join(columns)}) VALUES ({placeholders})"

        with self._connect() as conn:
            cursor = conn.execute(query, values)
            system_id = cursor.lastrowid

        system = self.get_system(int(system_id))
        if system is None:
            raise RuntimeError("Failed to load system after creation")
        return system

    def get_system(self, system_id: int) -> Optional[System]:
        if not _storable_id(system_id):
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM systems WHERE id = ?", (system_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_system(row)

    def find_systems(self, **filters: object) -> List[System]:
        """Return systems matching every supplied equality filter, ordered by id."""

        clauses: List[str] = []
        values: List[object] = []
        for key, value in filters.items():
            column = _SYSTEM_COLUMNS.get(key)
            if column is None or column == "tags":
                raise KeyError(f"Cannot filter systems by {key!r}")
            clauses.append(f"{column} = ?")
            values.append(_serialize_system_value(column, value))

        query = "SELECT * FROM systems"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"

        with self._connect() as conn:
            rows = conn.execute(query, values).fetchall()
        return [self._row_to_system(row) for row in rows]

    def update_system(self, system_id: int, fields: Mapping[str, Any]) -> Optional[System]:
        """Write the supplied attributes; ``None`` values clear nullable columns.

        Returns ``None`` when no row with ``system_id`` exists.
        """

        if not _storable_id(system_id):
            return None

        updates: List[str] = []
        values: List[object] = []
        for key, value in fields.items():
            column = _SYSTEM_COLUMNS.get(key)
            if column is None:
                raise KeyError(f"Unknown system field: {key}")
            updates.append(f"{column} = ?")
            values.append(_serialize_system_value(column, value))

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(_current_timestamp()))
        values.append(system_id)
        query = f"UPDATE systems SET {', '.join(updates)} WHERE id = ?"

        with self._connect() as conn:
            cursor = conn.execute(query, values)
            if cursor.rowcount == 0:
                return None

        return self.get_system(system_id)

    def delete_system(self, system_id: int) -> bool:
        if not _storable_id(system_id):
            return False
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM systems WHERE id = ?", (system_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            email=str(row["email"]),
            password_hash=str(row["password_hash"]),
            is_active=bool(row["is_active"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_system(self, row: sqlite3.Row) -> System:
        tags = row["tags"]
        expiration = row["expiration_date"]
        return System(
            id=int(row["id"]),
            name=str(row["name"]),
            url=str(row["url"]),
            status=SystemStatus(row["status"]),
            access_level=AccessLevel(row["access_level"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
            icon=row["icon"],
            category=row["category"],
            tags=json.loads(tags) if tags is not None else None,
            responsible=row["responsible"],
            description=row["description"],
            tech_stack=row["tech_stack"],
            expiration_date=_parse_datetime(str(expiration)) if expiration else None,
            dependencies=row["dependencies"],
        )


__all__ = ["Database", "resolve_database_path"]
