"""Handwash Database Models."""

from handwash.models.record import Record

__all__ = [
    "Record",
]
