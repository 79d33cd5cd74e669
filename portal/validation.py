"""Explicit validation schemas for portal inputs.

A :class:`Schema` is a list of :class:`FieldRule` objects. Validation never
raises on bad input; it returns every :class:`Violation` found so callers
can report them together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Type

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError, Violation
from .models import AccessLevel, SystemStatus

Check = Callable[[Any], Optional[str]]

_http_url = TypeAdapter(HttpUrl)
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def max_length(limit: int) -> Check:
    def check(value: Any) -> Optional[str]:
        if len(value) > limit:
            return f"must be at most {limit} characters"
        return None

    return check


def not_blank(value: Any) -> Optional[str]:
    if not value.strip():
        return "must not be empty"
    return None


def one_of(enum_type: Type[Enum]) -> Check:
    allowed = [member.value for member in enum_type]

    def check(value: Any) -> Optional[str]:
        if value not in allowed:
            quoted = ", ".join(f'"{item}"' for item in allowed)
            return f"must be one of {quoted}"
        return None

    return check


def absolute_url(value: Any) -> Optional[str]:
    try:
        _http_url.validate_python(value)
    except PydanticValidationError:
        return "must be a valid absolute http(s) URL"
    return None


def email_address(value: Any) -> Optional[str]:
    if not _EMAIL_PATTERN.match(value):
        return "must be a valid email address"
    return None


def _type_message(expected: type) -> str:
    if expected is str:
        return "must be a string"
    if expected is list:
        return "must be a list of strings"
    if expected is datetime:
        return "must be a timestamp"
    return f"must be of type {expected.__name__}"


@dataclass(frozen=True)
class FieldRule:
    """Constraints for one named input field."""

    name: str
    kind: type = str
    required: bool = False
    nullable: bool = True
    checks: Sequence[Check] = field(default_factory=tuple)

    def validate(self, value: Any) -> List[Violation]:
        if value is None:
            if self.required or not self.nullable:
                return [Violation(self.name, "is required")]
            return []

        if isinstance(value, Enum):
            value = value.value

        if not isinstance(value, self.kind):
            return [Violation(self.name, _type_message(self.kind))]

        if self.kind is list:
            if not all(isinstance(item, str) for item in value):
                return [Violation(self.name, _type_message(list))]

        for check in self.checks:
            message = check(value)
            if message is not None:
                return [Violation(self.name, message)]
        return []


class Schema:
    """An ordered set of field rules for one input type."""

    def __init__(self, name: str, rules: Iterable[FieldRule]) -> None:
        self.name = name
        self._rules = {rule.name: rule for rule in rules}

    @property
    def fields(self) -> Sequence[str]:
        return tuple(self._rules)

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> List[Violation]:
        """Return the violations in ``data``.

        In partial mode only the keys present in ``data`` are checked, so a
        patch is validated on its touched fields alone.
        """

        violations: List[Violation] = []
        for key in data:
            if key not in self._rules:
                violations.append(Violation(key, "is not a recognised field"))

        for name, rule in self._rules.items():
            if partial and name not in data:
                continue
            violations.extend(rule.validate(data.get(name)))
        return violations

    def ensure_valid(self, data: Mapping[str, Any], *, partial: bool = False) -> None:
        violations = self.validate(data, partial=partial)
        if violations:
            raise ValidationError(violations)


SYSTEM_SCHEMA = Schema(
    "system",
    [
        FieldRule("name", required=True, checks=(not_blank, max_length(45))),
        FieldRule("url", required=True, checks=(not_blank, max_length(180), absolute_url)),
        FieldRule("icon", checks=(max_length(50),)),
        FieldRule("category", checks=(max_length(60),)),
        FieldRule("tags", kind=list),
        FieldRule("responsible", checks=(max_length(60),)),
        FieldRule("description", checks=(max_length(120),)),
        FieldRule("tech_stack", checks=(max_length(90),)),
        FieldRule("expiration_date", kind=datetime),
        FieldRule("dependencies", checks=(max_length(180),)),
        FieldRule("status", nullable=False, checks=(one_of(SystemStatus),)),
        FieldRule("access_level", nullable=False, checks=(one_of(AccessLevel),)),
    ],
)

CREDENTIALS_SCHEMA = Schema(
    "credentials",
    [
        FieldRule("email", required=True, checks=(not_blank, max_length(255), email_address)),
        FieldRule("password", required=True, checks=(not_blank, max_length(128))),
    ],
)


__all__ = [
    "CREDENTIALS_SCHEMA",
    "FieldRule",
    "SYSTEM_SCHEMA",
    "Schema",
    "absolute_url",
    "email_address",
    "max_length",
    "not_blank",
    "one_of",
]
