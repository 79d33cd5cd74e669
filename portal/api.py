"""FastAPI application exposing authentication and the systems catalog."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .auth import AuthResult, AuthService
from .config import Settings, load_settings
from .database import Database
from .errors import PortalError, ValidationError
from .models import Caller, System, User
from .security import BearerAuth, PasswordHasher, TokenService
from .systems import SystemCatalog, SystemDraft, SystemPatch
from .users import UserDirectory
from .validation import CREDENTIALS_SCHEMA

logger = logging.getLogger("portal.api")

STATUS_MESSAGE = "Systems Portal API is running"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class LoginRequest(_CamelModel):
    # Left untyped: malformed credentials fail as invalid credentials.
    email: Any = None
    password: Any = None


class _CatalogRequest(_CamelModel):
    model_config = ConfigDict(extra="forbid")


class SystemFields(_CatalogRequest):
    name: Optional[str] = None
    url: Optional[str] = None
    icon: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    responsible: Optional[str] = None
    description: Optional[str] = None
    tech_stack: Optional[str] = None
    expiration_date: Optional[datetime] = None
    dependencies: Optional[str] = None
    status: Optional[str] = None
    access_level: Optional[str] = None


class StatusUpdateRequest(_CatalogRequest):
    status: Optional[str] = None


class UserResponse(_CamelModel):
    id: int
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(_CamelModel):
    message: str
    token: str
    user: UserResponse


class SystemResponse(_CamelModel):
    id: int
    name: str
    url: str
    icon: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    responsible: Optional[str] = None
    description: Optional[str] = None
    tech_stack: Optional[str] = None
    expiration_date: Optional[datetime] = None
    dependencies: Optional[str] = None
    status: str
    access_level: str
    created_at: datetime
    updated_at: datetime


class StatusResponse(BaseModel):
    status: str
    timestamp: str
    message: str


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def auth_to_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(message=result.message, token=result.token, user=user_to_response(result.user))


def system_to_response(system: System) -> SystemResponse:
    return SystemResponse(
        id=system.id,
        name=system.name,
        url=system.url,
        icon=system.icon,
        category=system.category,
        tags=list(system.tags) if system.tags is not None else None,
        responsible=system.responsible,
        description=system.description,
        tech_stack=system.tech_stack,
        expiration_date=system.expiration_date,
        dependencies=system.dependencies,
        status=system.status.value,
        access_level=system.access_level.value,
        created_at=system.created_at,
        updated_at=system.updated_at,
    )


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _error_body(message: str, errors: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"detail": message}
    if errors:
        body["errors"] = errors
    return body


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    logger.warning(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    errors = None
    if isinstance(exc, ValidationError):
        errors = [{"field": to_camel(v.field), "message": v.message} for v in exc.violations]
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, errors),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: List[Dict[str, str]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "path", "query")]
        errors.append({"field": ".".join(location) or "body", "message": str(error.get("msg", "invalid"))})
    summary = "; ".join(f"{item['field']}: {item['message']}" for item in errors)
    logger.warning("Malformed request on %s %s: %s", request.method, request.url.path, summary)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(summary, errors))


def register_status_routes(app: FastAPI) -> None:
    @app.get("/status", response_model=StatusResponse, tags=["status"])
    async def get_status() -> StatusResponse:
        return StatusResponse(
            status="online",
            timestamp=datetime.now(timezone.utc).isoformat(),
            message=STATUS_MESSAGE,
        )


def register_auth_routes(app: FastAPI, auth_service: AuthService) -> None:
    @app.post(
        "/auth/register",
        status_code=status.HTTP_201_CREATED,
        response_model=AuthResponse,
        tags=["auth"],
    )
    def register(request: RegisterRequest) -> AuthResponse:
        CREDENTIALS_SCHEMA.ensure_valid({"email": request.email, "password": request.password})
        result = auth_service.register(
            request.email or "",
            request.password or "",
            request.confirm_password or "",
        )
        return auth_to_response(result)

    @app.post("/auth/login", response_model=AuthResponse, tags=["auth"])
    def login(request: LoginRequest) -> AuthResponse:
        result = auth_service.login(_as_text(request.email), _as_text(request.password))
        return auth_to_response(result)


def register_user_routes(app: FastAPI, directory: UserDirectory, guard: BearerAuth) -> None:
    @app.get("/users/profile", response_model=UserResponse, tags=["users"])
    def get_profile(caller: Caller = Depends(guard)) -> UserResponse:
        return user_to_response(directory.find_by_id(caller.user_id))


def register_system_routes(
    app: FastAPI,
    catalog: SystemCatalog,
    *,
    guard: BearerAuth | None = None,
) -> None:
    """Expose the catalog endpoints, optionally behind the bearer guard."""

    dependencies = [Depends(guard)] if guard is not None else []
    route_options: Dict[str, Any] = {
        "dependencies": dependencies,
        "response_model_exclude_none": True,
        "tags": ["systems"],
    }

    @app.post(
        "/systems",
        status_code=status.HTTP_201_CREATED,
        response_model=SystemResponse,
        **route_options,
    )
    def create_system(request: SystemFields) -> SystemResponse:
        draft = SystemDraft(**request.model_dump())
        return system_to_response(catalog.create(draft))

    @app.get("/systems", response_model=List[SystemResponse], **route_options)
    def list_systems() -> List[SystemResponse]:
        return [system_to_response(system) for system in catalog.find_all()]

    @app.get("/systems/category/{category}", response_model=List[SystemResponse], **route_options)
    def systems_by_category(category: str) -> List[SystemResponse]:
        return [system_to_response(system) for system in catalog.find_by_category(category)]

    @app.get("/systems/status/{system_status}", response_model=List[SystemResponse], **route_options)
    def systems_by_status(system_status: str) -> List[SystemResponse]:
        return [system_to_response(system) for system in catalog.find_by_status(system_status)]

    @app.get("/systems/access-level/{access_level}", response_model=List[SystemResponse], **route_options)
    def systems_by_access_level(access_level: str) -> List[SystemResponse]:
        return [system_to_response(system) for system in catalog.find_by_access_level(access_level)]

    @app.get("/systems/{system_id}", response_model=SystemResponse, **route_options)
    def get_system(system_id: int) -> SystemResponse:
        return system_to_response(catalog.find_one(system_id))

    @app.patch("/systems/{system_id}", response_model=SystemResponse, **route_options)
    def update_system(system_id: int, request: SystemFields) -> SystemResponse:
        patch = SystemPatch.from_mapping(request.model_dump(exclude_unset=True))
        return system_to_response(catalog.update(system_id, patch))

    @app.patch("/systems/{system_id}/status", response_model=SystemResponse, **route_options)
    def update_system_status(system_id: int, request: StatusUpdateRequest) -> SystemResponse:
        return system_to_response(catalog.update_status(system_id, request.status))

    @app.delete(
        "/systems/{system_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        dependencies=dependencies,
        tags=["systems"],
    )
    def delete_system(system_id: int) -> Response:
        catalog.remove(system_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    hasher: PasswordHasher | None = None,
    tokens: TokenService | None = None,
    initialize_database: bool = True,
) -> FastAPI:
    """Wire the services together and return the FastAPI application."""

    if settings is None:
        settings = load_settings()

    if database is None:
        database = Database(settings.database_path)
    if initialize_database:
        database.initialize()

    if hasher is None:
        hasher = PasswordHasher()
    if tokens is None:
        tokens = TokenService(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(seconds=settings.token_ttl_seconds),
        )

    directory = UserDirectory(database, hasher)
    auth_service = AuthService(directory, tokens)
    catalog = SystemCatalog(database)
    guard = BearerAuth(tokens)

    app = FastAPI(
        title="Systems Portal API",
        description="Internal software catalog with token-based authentication",
        version="1.0.0",
    )
    app.add_exception_handler(PortalError, portal_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]

    app.state.settings = settings
    app.state.database = database
    app.state.directory = directory
    app.state.auth_service = auth_service
    app.state.catalog = catalog
    app.state.tokens = tokens

    if settings.protect_systems:
        logger.info("System catalog routes require a bearer token")

    register_status_routes(app)
    register_auth_routes(app, auth_service)
    register_user_routes(app, directory, guard)
    register_system_routes(app, catalog, guard=guard if settings.protect_systems else None)

    return app


__all__ = ["create_app"]
