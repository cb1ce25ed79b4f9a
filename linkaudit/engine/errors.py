"""Exceptions raised by the broken internal links pipeline."""

from __future__ import annotations


class AuditError(Exception):
    """Base class for failures inside an audit step."""


class ValidationError(AuditError):
    """A step received a message or record it cannot work with."""


class DataUnavailableError(AuditError):
    """Nothing usable could be read for the current audit run."""


class ObjectNotFound(AuditError):
    """The requested key does not exist in object storage."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No object found for key {key}")
        self.key = key


class SuggestionSyncError(AuditError):
    """Creating or updating suggestions failed."""


class NotificationError(AuditError):
    """A message could not be delivered to the recommendation queue."""

    def __init__(self, message: str, *, batch_index: int | None = None) -> None:
        super().__init__(message)
        self.batch_index = batch_index
