"""Registration and login orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import UnauthorizedError
from .models import User
from .security import TokenService
from .users import UserDirectory

logger = logging.getLogger("portal.auth")

REGISTRATION_MESSAGE = "registration succeeded"
LOGIN_MESSAGE = "login succeeded"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful registration or login."""

    message: str
    token: str
    user: User


class AuthService:
    def __init__(self, directory: UserDirectory, tokens: TokenService) -> None:
        self._directory = directory
        self._tokens = tokens

    def register(self, email: str, password: str, confirm_password: str) -> AuthResult:
        if password != confirm_password:
            raise UnauthorizedError("passwords do not match")

        user = self._directory.create(email, password)
        logger.info("Registered user %s", user.id)
        return AuthResult(message=REGISTRATION_MESSAGE, token=self._issue_token(user), user=user)

    def login(self, email: str, password: str) -> AuthResult:
        user = self._directory.validate_credentials(email, password)
        if user is None:
            # Same error for unknown email and wrong password.
            logger.warning("Failed login attempt")
            raise UnauthorizedError("invalid credentials")

        logger.info("User %s logged in", user.id)
        return AuthResult(message=LOGIN_MESSAGE, token=self._issue_token(user), user=user)

    def _issue_token(self, user: User) -> str:
        return self._tokens.sign({"sub": user.id})


__all__ = ["AuthResult", "AuthService", "LOGIN_MESSAGE", "REGISTRATION_MESSAGE"]
