"""Storage adapter contract.

Each physical backend gets one adapter. Adapters take operation descriptors
and hand back the uniform StoredRecord shape; nothing backend-native crosses
this boundary.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar

from dynarecord.core.types import StoredRecord
from dynarecord.exceptions import StorageError
from dynarecord.query.descriptor import OperationDescriptor, OperationKind

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_data(payload: Mapping[str, Any] | None) -> str:
    """Serialize record data to JSON text."""
    return json.dumps(dict(payload or {}), default=_json_default)


def to_json_compatible(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    """Reduce record data to plain JSON values so every backend stores the same shape."""
    return json.loads(dump_data(payload))


class StorageAdapter(ABC):
    """Base class for storage backends.

    Implementations must be safe for concurrent use: every call opens its own
    session or cursor and no lock is held across I/O.
    """

    driver_errors: ClassVar[tuple[type[BaseException], ...]] = ()
    """Exceptions of the underlying driver that are wrapped in StorageError."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Name of the backend, used in routing and errors."""

    @contextmanager
    def _storage_errors(
        self, operation: str, descriptor: OperationDescriptor | None = None
    ) -> Iterator[None]:
        """Translate driver failures into StorageError. Never retries."""
        try:
            yield
        except self.driver_errors as e:
            target = descriptor.target if descriptor else "-"
            logger.error(
                "%s %s failed on %s", self.backend_name, operation, target, exc_info=True
            )
            raise StorageError(self.backend_name, operation, e) from e

    def _expect(self, descriptor: OperationDescriptor, kind: OperationKind) -> None:
        if descriptor.kind != kind:
            raise ValueError(
                f"{type(self).__name__}.{kind.value} cannot execute "
                f"a {descriptor.kind.value} descriptor"
            )

    def execute(self, descriptor: OperationDescriptor) -> Any:
        """Run a descriptor through the matching operation."""
        handlers = {
            OperationKind.FIND_MANY: self.find_many,
            OperationKind.FIND_ONE: self.find_one,
            OperationKind.COUNT: self.count,
            OperationKind.CREATE: self.create,
            OperationKind.UPDATE: self.update,
            OperationKind.SOFT_DELETE: self.soft_delete,
            OperationKind.HARD_DELETE: self.hard_delete,
        }
        logger.debug(
            "Executing %s on %s via %s", descriptor.kind.value, descriptor.target, self.backend_name
        )
        return handlers[descriptor.kind](descriptor)

    @abstractmethod
    def create(self, descriptor: OperationDescriptor) -> StoredRecord:
        """Insert a new record and return it."""

    @abstractmethod
    def find_many(self, descriptor: OperationDescriptor) -> list[StoredRecord]:
        """Return one page of live records."""

    @abstractmethod
    def find_one(self, descriptor: OperationDescriptor) -> StoredRecord:
        """Return one live record.

        Raises:
            RecordNotFoundError: If absent or soft-deleted
        """

    @abstractmethod
    def count(self, descriptor: OperationDescriptor) -> int:
        """Count live records matching the descriptor's filter."""

    @abstractmethod
    def update(self, descriptor: OperationDescriptor) -> StoredRecord:
        """Replace a live record's data and return the result.

        Raises:
            RecordNotFoundError: If absent or soft-deleted
        """

    @abstractmethod
    def soft_delete(self, descriptor: OperationDescriptor) -> None:
        """Flag a live record as deleted.

        Raises:
            RecordNotFoundError: If absent or already soft-deleted
        """

    @abstractmethod
    def hard_delete(self, descriptor: OperationDescriptor) -> None:
        """Physically remove a record.

        Raises:
            RecordNotFoundError: If absent
        """

    @abstractmethod
    def health_check(self) -> bool:
        """Return True when the backend answers."""

    def close(self) -> None:
        """Release backend resources."""
