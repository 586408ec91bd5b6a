"""Entity -> backend routing.

The routing table is built once from configuration and never depends on
record content, so every record of an entity lives in exactly one backend.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from dynarecord.core.types import BackendType
from dynarecord.exceptions import RoutingConfigurationError

if TYPE_CHECKING:
    from dynarecord.storage.base import StorageAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingTable:
    """Immutable snapshot of the routing configuration."""

    routes: Mapping[str, str]
    default: str


class RoutingPolicy:
    """Maps entity names to storage adapters.

    Example:
        policy = RoutingPolicy(
            {"relational": sql_adapter, "document": mongo_adapter},
            routes={"auditevent": "document"},
            default="relational",
        )
        policy.resolve_adapter("AuditEvent").backend_name  # "document"
    """

    def __init__(
        self,
        adapters: Mapping[str, StorageAdapter],
        routes: Mapping[str, str] | None = None,
        default: str = BackendType.RELATIONAL.value,
    ) -> None:
        """Initialize the policy.

        Args:
            adapters: Registered adapters keyed by backend name
            routes: Entity name -> backend name (names or aliases)
            default: Backend used for entities without an explicit route

        Raises:
            RoutingConfigurationError: If a route or the default names an
                unregistered backend
        """
        self._adapters = MappingProxyType(dict(adapters))
        self._write_lock = threading.Lock()
        self._table = self._build_table(routes or {}, default)

    def _backend(self, name: str) -> str:
        try:
            backend = BackendType.parse(name).value
        except ValueError:
            backend = name.strip().lower()
        if backend not in self._adapters:
            raise RoutingConfigurationError(name, self.available_backends())
        return backend

    def _build_table(self, routes: Mapping[str, str], default: str) -> RoutingTable:
        table = {
            entity.strip().lower(): self._backend(backend) for entity, backend in routes.items()
        }
        return RoutingTable(routes=MappingProxyType(table), default=self._backend(default))

    def available_backends(self) -> list[str]:
        """Names of registered backends."""
        return sorted(self._adapters)

    @property
    def default_backend(self) -> str:
        return self._table.default

    @property
    def routes(self) -> Mapping[str, str]:
        """Current explicit routes, lowercase entity name -> backend."""
        return self._table.routes

    def backend_for(self, entity_name: str) -> str:
        """Backend name serving the entity."""
        table = self._table
        return table.routes.get(entity_name.lower(), table.default)

    def resolve_adapter(self, entity_name: str) -> StorageAdapter:
        """Return the adapter serving an entity. Pure table lookup."""
        return self._adapters[self.backend_for(entity_name)]

    def reload(self, routes: Mapping[str, str], default: str | None = None) -> None:
        """Replace the routing table.

        The new table is validated in full before it is swapped in; readers see
        either the old or the new table, never a mix.

        Raises:
            RoutingConfigurationError: If the new configuration is invalid; the
                current table stays in place
        """
        with self._write_lock:
            table = self._build_table(routes, default or self._table.default)
            self._table = table
        logger.info(
            "Routing reloaded: default=%s, %d explicit route(s)", table.default, len(table.routes)
        )

    def describe(self, entity_name: str) -> dict[str, Any]:
        """Report which backend serves an entity and why."""
        table = self._table
        key = entity_name.lower()
        return {
            "entity": entity_name,
            "backend": table.routes.get(key, table.default),
            "explicit": key in table.routes,
            "default_backend": table.default,
        }

    def health(self) -> dict[str, bool]:
        """Health of every registered backend."""
        return {name: adapter.health_check() for name, adapter in sorted(self._adapters.items())}

    def close(self) -> None:
        """Close every registered adapter."""
        for adapter in self._adapters.values():
            adapter.close()
