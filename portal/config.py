"""Configuration management for the systems portal service."""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger("portal.config")

DEFAULT_JWT_ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the API factory and the CLI."""

    database_path: Path
    jwt_secret: str
    jwt_algorithm: str = DEFAULT_JWT_ALGORITHM
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    protect_systems: bool = False

    @staticmethod
    def from_dict(data: Mapping[str, Any], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data such as a parsed YAML file."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        secret = data.get("jwt_secret")
        if not secret:
            logger.warning(
                "No JWT secret configured; generated a per-process secret. Tokens will not"
                " survive a restart. Set PORTAL_JWT_SECRET for persistent sessions."
            )
            secret = secrets.token_urlsafe(48)

        ttl = int(data.get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS))
        if ttl <= 0:
            raise ValueError("token_ttl_seconds must be a positive number of seconds")

        return Settings(
            database_path=database_path,
            jwt_secret=str(secret),
            jwt_algorithm=str(data.get("jwt_algorithm") or DEFAULT_JWT_ALGORITHM),
            token_ttl_seconds=ttl,
            protect_systems=_coerce_flag(data.get("protect_systems"), False),
        )


def _coerce_flag(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean setting: {value!r}")


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "portal.sqlite3").resolve(strict=False)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "portal.yaml").resolve(strict=False)


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from the YAML file (if any) overridden by environment variables."""

    env = os.environ if environ is None else environ

    config_path = resolve_config_path(env.get("PORTAL_CONFIG"))
    data: Dict[str, Any] = {}
    base_path: Path | None = None
    if config_path.exists():
        data = _load_yaml(config_path)
        base_path = config_path.parent
        logger.info("Loaded configuration from %s", config_path)
    elif env.get("PORTAL_CONFIG"):
        raise FileNotFoundError(f"Configuration file {config_path} does not exist")

    overrides = {
        "database_path": env.get("PORTAL_DB_PATH"),
        "jwt_secret": env.get("PORTAL_JWT_SECRET"),
        "jwt_algorithm": env.get("PORTAL_JWT_ALGORITHM"),
        "token_ttl_seconds": env.get("PORTAL_TOKEN_TTL"),
        "protect_systems": env.get("PORTAL_PROTECT_SYSTEMS"),
    }
    for key, value in overrides.items():
        if value is not None and value.strip():
            data[key] = value.strip()
            if key == "database_path":
                base_path = None

    return Settings.from_dict(data, base_path=base_path)


__all__ = ["Settings", "load_settings", "resolve_config_path", "resolve_database_path"]
