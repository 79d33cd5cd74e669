"""User directory: identity records and credential checks."""

from __future__ import annotations

import logging
from typing import Optional

from .database import Database
from .errors import ConflictError, NotFoundError
from .models import User
from .security import PasswordHasher

logger = logging.getLogger("portal.users")


class UserDirectory:
    """Owns user records, enforces unique emails and verifies passwords."""

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._database = database
        self._hasher = hasher

    def create(self, email: str, password: str) -> User:
        """Hash ``password`` and persist a new active user.

        Raises :class:`ConflictError` if ``email`` is already registered.
        """

        if self._database.get_user_by_email(email) is not None:
            raise ConflictError("A user with that email already exists")

        password_hash = self._hasher.hash(password)
        # The unique column still guards against a concurrent registration.
        user = self._database.create_user(email, password_hash)
        logger.info("Created user %s", user.id)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self._database.get_user_by_email(email)

    def find_by_id(self, user_id: int) -> User:
        user = self._database.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def validate_credentials(self, email: str, password: str) -> Optional[User]:
        """Return the user when ``password`` matches, otherwise ``None``."""

        user = self._database.get_user_by_email(email)
        if user is None:
            return None
        if not self._hasher.verify(password, user.password_hash):
            return None
        return user


__all__ = ["UserDirectory"]
