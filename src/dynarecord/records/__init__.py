"""Record operations."""

from dynarecord.records.service import RecordService

__all__ = ["RecordService"]
