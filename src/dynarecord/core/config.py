"""Process configuration read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from dynarecord.core.types import BackendType
from dynarecord.exceptions import RoutingConfigurationError

ENV_PREFIX = "DYNARECORD_"
ROUTING_PREFIX = "ROUTING_"
DEFAULT_DATABASE_URL = "sqlite:///./dynarecord.db"

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_backend(name: str) -> str:
    try:
        return BackendType.parse(name).value
    except ValueError:
        raise RoutingConfigurationError(name, BackendType.values()) from None


class Settings(BaseModel):
    """Runtime settings.

    Read once at start-up; routing never changes afterwards except through
    an explicit RoutingPolicy.reload().
    """

    model_config = ConfigDict(frozen=True)

    database_url: str = DEFAULT_DATABASE_URL
    mongodb_url: str | None = None
    mongodb_database: str = "dynarecord"
    default_backend: str = BackendType.RELATIONAL.value
    routing: dict[str, str] = Field(default_factory=dict)
    echo: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from the environment.

        Recognized variables:
        - DYNARECORD_DATABASE_URL: metadata and relational records database
        - DYNARECORD_MONGODB_URL: enables the document backend when set
        - DYNARECORD_MONGODB_DATABASE: database holding entity collections
        - DYNARECORD_DEFAULT_BACKEND: backend for entities without a route
        - DYNARECORD_ECHO / DYNARECORD_LOG_LEVEL
        - ROUTING_<ENTITY>=<backend>: per-entity route, e.g. ROUTING_CUSTOMER=mongodb

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            RoutingConfigurationError: If a backend name is not recognized
        """
        env = os.environ if environ is None else environ

        routing = {
            key[len(ROUTING_PREFIX) :].lower(): _parse_backend(value)
            for key, value in env.items()
            if key.startswith(ROUTING_PREFIX) and len(key) > len(ROUTING_PREFIX) and value.strip()
        }

        return cls(
            database_url=env.get(f"{ENV_PREFIX}DATABASE_URL") or DEFAULT_DATABASE_URL,
            mongodb_url=env.get(f"{ENV_PREFIX}MONGODB_URL") or None,
            mongodb_database=env.get(f"{ENV_PREFIX}MONGODB_DATABASE") or "dynarecord",
            default_backend=_parse_backend(
                env.get(f"{ENV_PREFIX}DEFAULT_BACKEND") or BackendType.RELATIONAL.value
            ),
            routing=routing,
            echo=env.get(f"{ENV_PREFIX}ECHO", "").strip().lower() in _TRUTHY,
            log_level=(env.get(f"{ENV_PREFIX}LOG_LEVEL") or "WARNING").upper(),
        )
