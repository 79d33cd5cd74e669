"""Domain errors raised by the portal services.

Each error carries the HTTP status it maps to so the API layer can turn
any of them into a response with a single exception handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure."""

    field: str
    message: str


class PortalError(Exception):
    """Base class for errors surfaced directly to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Raised when input fails validation; holds every violation found."""

    status_code = 400

    def __init__(self, violations: Iterable[Violation]) -> None:
        self.violations: List[Violation] = list(violations)
        if not self.violations:
            raise ValueError("ValidationError requires at least one violation")
        summary = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(summary)


class UnauthorizedError(PortalError):
    status_code = 401


class ConflictError(PortalError):
    status_code = 409


class NotFoundError(PortalError):
    status_code = 404


__all__ = [
    "ConflictError",
    "NotFoundError",
    "PortalError",
    "UnauthorizedError",
    "ValidationError",
    "Violation",
]
