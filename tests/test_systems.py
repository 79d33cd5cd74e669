from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

import pytest

from portal.database import Database
from portal.errors import NotFoundError, ValidationError
from portal.models import AccessLevel, SystemStatus
from portal.systems import UNSET, SystemCatalog, SystemDraft, SystemPatch


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "portal.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def catalog(database: Database) -> SystemCatalog:
    return SystemCatalog(database)


def _hr_system(catalog: SystemCatalog):
    return catalog.create(
        SystemDraft(
            name="HR System",
            url="https://hr.example.com",
            icon="fa-users",
            category="HR",
            tags=["human resources", "payroll"],
            responsible="Jane Doe",
            description="Human resources management",
            tech_stack="React, Node.js, PostgreSQL",
            expiration_date=datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
            dependencies="Auth, Notifications",
        )
    )


def test_create_applies_defaults(catalog: SystemCatalog) -> None:
    system = catalog.create(SystemDraft(name="ERP", url="https://erp.example.com"))

    assert system.status is SystemStatus.ACTIVE
    assert system.access_level is AccessLevel.PUBLIC
    assert system.category is None
    assert system.tags is None


def test_create_keeps_supplied_fields(catalog: SystemCatalog) -> None:
    system = _hr_system(catalog)

    assert system.tags == ["human resources", "payroll"]
    assert system.tech_stack == "React, Node.js, PostgreSQL"
    assert catalog.find_one(system.id) == system


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"status": "Retired"}, "status"),
        ({"access_level": "Secret"}, "access_level"),
        ({"name": "x" * 46}, "name"),
        ({"url": "not a url"}, "url"),
        ({"url": "erp.example.com"}, "url"),
        ({"url": "https://example.com/" + "a" * 170}, "url"),
        ({"icon": "i" * 51}, "icon"),
        ({"description": "d" * 121}, "description"),
        ({"name": "   "}, "name"),
    ],
)
def test_create_rejects_invalid_fields_before_persistence(
    database: Database, overrides: dict, field: str
) -> None:
    values = {"name": "ERP", "url": "https://erp.example.com", **overrides}
    with mock.patch.object(database, "create_system") as create_system:
        catalog = SystemCatalog(database)
        with pytest.raises(ValidationError) as exc_info:
            catalog.create(SystemDraft(**values))
    create_system.assert_not_called()
    assert [v.field for v in exc_info.value.violations] == [field]


def test_create_reports_every_violation(catalog: SystemCatalog) -> None:
    with pytest.raises(ValidationError) as exc_info:
        catalog.create(SystemDraft(name=None, url=None, status="Gone"))
    fields = {v.field for v in exc_info.value.violations}
    assert fields == {"name", "url", "status"}


def test_find_all_returns_storage_order(catalog: SystemCatalog) -> None:
    first = catalog.create(SystemDraft(name="A", url="https://a.example.com"))
    second = catalog.create(SystemDraft(name="B", url="https://b.example.com"))
    assert [s.id for s in catalog.find_all()] == [first.id, second.id]


def test_update_changes_only_supplied_fields(catalog: SystemCatalog) -> None:
    original = _hr_system(catalog)

    updated = catalog.update(original.id, SystemPatch(name="X"))

    assert updated.name == "X"
    for attribute in (
        "url",
        "icon",
        "category",
        "tags",
        "responsible",
        "description",
        "tech_stack",
        "expiration_date",
        "dependencies",
        "status",
        "access_level",
        "created_at",
    ):
        assert getattr(updated, attribute) == getattr(original, attribute), attribute


def test_update_can_clear_optional_field(catalog: SystemCatalog) -> None:
    original = _hr_system(catalog)
    updated = catalog.update(original.id, SystemPatch(icon=None, tags=["core"]))
    assert updated.icon is None
    assert updated.tags == ["core"]


def test_update_validates_touched_fields(catalog: SystemCatalog) -> None:
    original = _hr_system(catalog)

    with pytest.raises(ValidationError):
        catalog.update(original.id, SystemPatch(access_level="Everyone"))
    with pytest.raises(ValidationError):
        catalog.update(original.id, SystemPatch(name=None))

    assert catalog.find_one(original.id) == original


def test_empty_patch_returns_existing(catalog: SystemCatalog) -> None:
    original = _hr_system(catalog)
    assert SystemPatch().touched() == {}
    assert catalog.update(original.id, SystemPatch()) == original


def test_patch_from_mapping_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError) as exc_info:
        SystemPatch.from_mapping({"name": "ok", "owner": "nobody"})
    assert [v.field for v in exc_info.value.violations] == ["owner"]

    patch = SystemPatch.from_mapping({"name": "ok"})
    assert patch.name == "ok"
    assert patch.url is UNSET


def test_update_status(catalog: SystemCatalog) -> None:
    original = catalog.create(SystemDraft(name="ERP", url="https://erp.example.com"))

    updated = catalog.update_status(original.id, "Inactive")
    assert updated.status is SystemStatus.INACTIVE
    assert updated.name == original.name

    with pytest.raises(ValidationError):
        catalog.update_status(original.id, "Paused")
    with pytest.raises(ValidationError):
        catalog.update_status(original.id, None)


@pytest.mark.parametrize(
    "operation",
    [
        lambda catalog: catalog.find_one(404),
        lambda catalog: catalog.update(404, SystemPatch(name="X")),
        lambda catalog: catalog.update(404, SystemPatch(status="bogus")),
        lambda catalog: catalog.update_status(404, "Inactive"),
        lambda catalog: catalog.update_status(404, "bogus"),
        lambda catalog: catalog.remove(404),
    ],
)
def test_missing_ids_raise_not_found(catalog: SystemCatalog, operation) -> None:
    with pytest.raises(NotFoundError):
        operation(catalog)


@pytest.mark.parametrize("system_id", [2**63, -(2**63) - 1])
def test_ids_beyond_integer_range_raise_not_found(catalog: SystemCatalog, system_id: int) -> None:
    with pytest.raises(NotFoundError):
        catalog.find_one(system_id)
    with pytest.raises(NotFoundError):
        catalog.update(system_id, SystemPatch(name="X"))
    with pytest.raises(NotFoundError):
        catalog.update_status(system_id, "Inactive")
    with pytest.raises(NotFoundError):
        catalog.remove(system_id)


def test_remove_deletes_record(catalog: SystemCatalog) -> None:
    system = catalog.create(SystemDraft(name="ERP", url="https://erp.example.com"))
    assert catalog.remove(system.id) is None
    with pytest.raises(NotFoundError):
        catalog.find_one(system.id)
    with pytest.raises(NotFoundError):
        catalog.remove(system.id)


def test_filter_queries(catalog: SystemCatalog) -> None:
    hr = _hr_system(catalog)
    erp = catalog.create(
        SystemDraft(
            name="ERP",
            url="https://erp.example.com",
            category="Finance",
            status="Inactive",
            access_level="Department-Specific",
        )
    )

    assert [s.id for s in catalog.find_by_category("HR")] == [hr.id]
    assert [s.id for s in catalog.find_by_status("Inactive")] == [erp.id]
    assert [s.id for s in catalog.find_by_status("Active")] == [hr.id]
    assert [s.id for s in catalog.find_by_access_level("Department-Specific")] == [erp.id]

    assert catalog.find_by_category("Legal") == []
    assert catalog.find_by_status("Unknown") == []
    assert catalog.find_by_access_level("Restricted") == []
