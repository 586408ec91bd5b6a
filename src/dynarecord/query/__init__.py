"""Storage-neutral operation descriptors."""

from dynarecord.query.descriptor import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DescriptorBuilder,
    OperationDescriptor,
    OperationKind,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "DescriptorBuilder",
    "OperationDescriptor",
    "OperationKind",
]
