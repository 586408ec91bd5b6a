"""Payload validation against entity metadata."""

from dynarecord.validation.engine import ValidationEngine

__all__ = ["ValidationEngine"]
