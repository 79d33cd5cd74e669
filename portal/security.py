"""Security helpers: password hashing, token signing and the bearer guard."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Sequence

import jwt
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .errors import UnauthorizedError
from .models import Caller

logger = logging.getLogger("portal.security")

_DEFAULT_SCHEMES: Sequence[str] = ("pbkdf2_sha256",)


class PasswordHasher:
    """One-way password hashing backed by a passlib ``CryptContext``."""

    def __init__(self, schemes: Sequence[str] = _DEFAULT_SCHEMES) -> None:
        self._context = CryptContext(schemes=list(schemes), deprecated="auto")

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except ValueError:
            # Unrecognised or corrupted hash.
            return False


class TokenService:
    """Signs and verifies JWT bearer tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta | None = timedelta(hours=24),
    ) -> None:
        if not secret:
            raise ValueError("A signing secret must be provided")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl

    def sign(self, claims: Mapping[str, Any]) -> str:
        """Return a signed token for ``claims``.

        ``iat``/``exp`` are added here. JWT requires ``sub`` to be a string, so
        numeric subjects are encoded as text.
        """

        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = dict(claims)
        if "sub" in payload:
            payload["sub"] = str(payload["sub"])
        payload.setdefault("iat", now)
        if self._ttl is not None:
            payload.setdefault("exp", now + self._ttl)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the decoded claims or raise :class:`UnauthorizedError`."""

        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid token") from exc


def caller_from_claims(claims: Mapping[str, Any]) -> Caller:
    subject = claims.get("sub")
    try:
        user_id = int(str(subject))
    except (TypeError, ValueError) as exc:
        raise UnauthorizedError("Invalid token subject") from exc
    return Caller(user_id=user_id, claims=dict(claims))


class BearerAuth:
    """FastAPI dependency resolving the bearer token into a :class:`Caller`."""

    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> Caller:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise UnauthorizedError("Missing bearer token")

        token = credentials.credentials.strip()
        if not token:
            raise UnauthorizedError("Missing bearer token")

        try:
            claims = self._tokens.verify(token)
            return caller_from_claims(claims)
        except UnauthorizedError:
            logger.warning("Rejected bearer token for %s %s", request.method, request.url.path)
            raise


__all__ = ["BearerAuth", "PasswordHasher", "TokenService", "caller_from_claims"]
